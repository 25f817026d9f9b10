from __future__ import annotations

from flask import Blueprint, abort, current_app, g, jsonify, request

from app.recon.audit import record_event
from app.recon.db import db_session
from app.recon.models import User
from app.recon.modules.inspection_data.service import (
    load_inspection_data,
    record_rating,
    save_inspection_data,
    update_checklist_status,
)
from app.recon.modules.inspection_data.status import summarize
from app.recon.modules.inspection_settings.service import get_active_sections
from app.recon.rbac import current_dealership_id, require_permission
from app.recon.store import StoreError, cache_from_config, checklist_store, settings_store, vehicle_inspection_store

bp = Blueprint("inspection_data", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _section_keys(s, dealership_id: str) -> list[str]:
    sections = get_active_sections(settings_store(s), dealership_id, cache=cache_from_config(current_app.config))
    return [sec["key"] for sec in sections]


def _save(s, vehicle_id: str, data: dict):
    """Persist and audit; returns a JSON response. Primary-write failure -> 503."""
    did = current_dealership_id()
    user = _current_user()
    try:
        result = save_inspection_data(
            vehicle_inspection_store(s, did),
            vehicle_id,
            data,
            initials=user.display_initials,
            user_id=user.id,
            checklists=checklist_store(s),
        )
    except StoreError:
        s.rollback()
        current_app.logger.exception("Inspection save failed (vehicle_id=%s request_id=%s)", vehicle_id, getattr(g, "request_id", None))
        return jsonify({"ok": False, "error": "Inspection could not be saved. Please retry."}), 503
    if result is None:
        abort(404)

    record_event(
        s,
        actor=user,
        action="inspection.save",
        entity_type="Vehicle",
        entity_id=vehicle_id,
        metadata={"notes_added": len(result.new_notes), "mirrored": result.mirrored},
    )
    s.commit()
    return jsonify(
        {
            "ok": True,
            "data": result.data,
            "newNotes": result.new_notes,
            "teamNotes": result.team_notes,
            "summary": summarize(result.data, _section_keys(s, did)),
        }
    )


@bp.get("/vehicles/<vehicle_id>/inspection")
@require_permission("vehicles.view")
def inspection_get(vehicle_id: str):
    s = db_session()
    did = current_dealership_id()
    data = load_inspection_data(vehicle_inspection_store(s, did), vehicle_id)
    if data is None:
        abort(404)
    return jsonify({"data": data, "summary": summarize(data, _section_keys(s, did))})


@bp.put("/vehicles/<vehicle_id>/inspection")
@require_permission("inspections.edit")
def inspection_put(vehicle_id: str):
    payload = request.get_json(silent=True)
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        return jsonify({"errors": ["data must be a JSON object."]}), 400
    return _save(db_session(), vehicle_id, data)


@bp.post("/vehicles/<vehicle_id>/inspection/rate")
@require_permission("inspections.edit")
def inspection_rate(vehicle_id: str):
    payload = request.get_json(silent=True) or {}
    section = str(payload.get("section") or "").strip()
    item_id = str(payload.get("itemId") or "").strip()
    if not section or not item_id:
        return jsonify({"errors": ["section and itemId are required."]}), 400

    s = db_session()
    current = load_inspection_data(vehicle_inspection_store(s, current_dealership_id()), vehicle_id)
    if current is None:
        abort(404)
    try:
        data = record_rating(
            current,
            section,
            item_id,
            str(payload.get("rating") or ""),
            label=str(payload.get("label") or item_id),
            initials=_current_user().display_initials,
        )
    except ValueError as e:
        return jsonify({"errors": [str(e)]}), 400
    return _save(s, vehicle_id, data)


@bp.post("/vehicles/<vehicle_id>/inspection/status")
@require_permission("inspections.edit")
def inspection_status(vehicle_id: str):
    payload = request.get_json(silent=True) or {}
    status = str(payload.get("status") or "").strip()
    s = db_session()
    if load_inspection_data(vehicle_inspection_store(s, current_dealership_id()), vehicle_id) is None:
        abort(404)
    try:
        updated = update_checklist_status(checklist_store(s), vehicle_id, status, notes=payload.get("notes"))
    except ValueError as e:
        return jsonify({"errors": [str(e)]}), 400
    except StoreError:
        s.rollback()
        current_app.logger.exception("Checklist status update failed (vehicle_id=%s)", vehicle_id)
        return jsonify({"ok": False, "error": "Checklist status could not be saved."}), 503
    if not updated:
        abort(404)

    record_event(
        s,
        actor=_current_user(),
        action="inspection.status",
        entity_type="Vehicle",
        entity_id=vehicle_id,
        metadata={"status": status},
    )
    s.commit()
    return jsonify({"ok": True, "status": status})
