import json
from datetime import date, datetime, time, timedelta

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.recon.db import db_session
from app.recon.models import AuditEvent, Dealership
from app.recon.rbac import current_dealership_id, require_permission

bp = Blueprint("admin", __name__)


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


@bp.get("/")
@require_permission("admin.view")
def index():
    s = db_session()
    dealership = s.get(Dealership, current_dealership_id())
    status = {
        "env": (current_app.config.get("ENV") or "development").strip().lower(),
        "dealership": {"id": dealership.id, "name": dealership.name} if dealership else None,
        "db_connected": False,
        "db_error": None,
        "cache_enabled": bool(current_app.config.get("CACHE_ENABLED")),
        "cache_dir": current_app.config.get("CACHE_DIR"),
    }

    # DB connectivity (lightweight)
    try:
        s.execute(text("SELECT 1"))
        status["db_connected"] = True
    except SQLAlchemyError as e:
        status["db_error"] = str(e)

    return jsonify(status)


@bp.get("/me")
@require_permission("admin.view")
def me():
    user = g.current_user
    perms = set()
    for r in user.roles or []:
        for p in r.permissions or []:
            perms.add(p.key)
    return jsonify(
        {
            "id": user.id,
            "email": user.email,
            "initials": user.display_initials,
            "roles": sorted({r.key for r in (user.roles or [])}),
            "permissions": sorted(perms),
        }
    )


@bp.get("/audit")
@require_permission("admin.view")
def audit_list():
    """
    Last 200 audit events for the current dealership, with simple filters:
    - action (contains)
    - actor_email (contains)
    - entity_id (exact), e.g. a vehicle id
    - date range (YYYY-MM-DD)
    """
    s = db_session()
    action = (request.args.get("action") or "").strip()
    actor_email = (request.args.get("actor_email") or "").strip()
    entity_id = (request.args.get("entity_id") or "").strip()
    date_from = _parse_date(request.args.get("date_from") or "")
    date_to = _parse_date(request.args.get("date_to") or "")

    errors = []
    if (request.args.get("date_from") or "").strip() and not date_from:
        errors.append("date_from must be YYYY-MM-DD")
    if (request.args.get("date_to") or "").strip() and not date_to:
        errors.append("date_to must be YYYY-MM-DD")
    if errors:
        return jsonify({"errors": errors}), 400

    q = s.query(AuditEvent).filter(AuditEvent.dealership_id == current_dealership_id())
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if actor_email:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{actor_email.lower()}%"))
    if entity_id:
        q = q.filter(AuditEvent.entity_id == entity_id)
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        # inclusive end-date (treat as whole day)
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(200).all()
    return jsonify(
        [
            {
                "id": ev.id,
                "createdAt": ev.created_at.isoformat(),
                "requestId": ev.request_id,
                "actorEmail": ev.actor_user_email,
                "action": ev.action,
                "entityType": ev.entity_type,
                "entityId": ev.entity_id,
                "reason": ev.reason,
                "metadata": json.loads(ev.metadata_json) if ev.metadata_json else None,
            }
            for ev in events
        ]
    )
