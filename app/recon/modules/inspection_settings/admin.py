from __future__ import annotations

from flask import Blueprint, Response, abort, current_app, g, jsonify, request

from app.recon.audit import record_event
from app.recon.db import db_session
from app.recon.models import User
from app.recon.modules.inspection_settings import service as settings_service
from app.recon.rbac import current_dealership_id, require_permission
from app.recon.store import cache_from_config, settings_store

bp = Blueprint("inspection_settings", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _stores():
    s = db_session()
    return s, settings_store(s), cache_from_config(current_app.config)


def _payload() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        abort(400, description="Expected a JSON object.")
    return payload


def _audit_and_commit(s, action: str, entity_id: str | None = None, metadata: dict | None = None) -> None:
    record_event(
        s,
        actor=_current_user(),
        action=f"inspection_settings.{action}",
        entity_type="InspectionSettings",
        entity_id=entity_id or current_dealership_id(),
        metadata=metadata,
    )
    s.commit()


@bp.errorhandler(settings_service.SettingsNotSaved)
def _settings_not_saved(e):
    db_session().rollback()
    current_app.logger.error("%s (request_id=%s)", e, getattr(g, "request_id", None))
    return jsonify({"ok": False, "error": "Settings could not be saved. Please retry."}), 503


# ---------- Whole document ----------
@bp.get("/inspection-settings")
@require_permission("inspection_settings.view")
def settings_get():
    _s, store, cache = _stores()
    return jsonify(settings_service.get_settings(store, current_dealership_id(), cache=cache))


@bp.post("/inspection-settings/initialize")
@require_permission("inspection_settings.edit")
def settings_initialize():
    s, store, cache = _stores()
    did = current_dealership_id()
    created = settings_service.initialize_default_settings(store, did, cache=cache)
    if created:
        _audit_and_commit(s, "initialize")
    return jsonify({"ok": True, "created": created})


@bp.post("/inspection-settings/reset")
@require_permission("inspection_settings.edit")
def settings_reset():
    payload = _payload()
    if payload.get("confirm") is not True:
        return jsonify({"ok": False, "error": "Reset discards all custom sections; send confirm=true."}), 400
    s, store, cache = _stores()
    did = current_dealership_id()
    if not settings_service.reset_to_defaults(store, did, cache=cache):
        s.rollback()
        return jsonify({"ok": False, "error": "Settings could not be saved."}), 503
    _audit_and_commit(s, "reset")
    return jsonify({"ok": True, "settings": settings_service.get_settings(store, did, cache=cache)})


@bp.get("/inspection-settings/export")
@require_permission("inspection_settings.view")
def settings_export():
    _s, store, cache = _stores()
    did = current_dealership_id()
    body = settings_service.export_settings(store, did, cache=cache)
    return Response(
        body,
        mimetype="application/json",
        headers={"Content-Disposition": f'attachment; filename="inspection-settings-{did}.json"'},
    )


@bp.post("/inspection-settings/import")
@require_permission("inspection_settings.edit")
def settings_import():
    f = request.files.get("file")
    if f is not None:
        raw = f.read().decode("utf-8", errors="replace")
    else:
        raw = request.get_data(as_text=True)

    s, store, cache = _stores()
    did = current_dealership_id()
    if not settings_service.import_settings(store, did, raw, cache=cache):
        s.rollback()
        return jsonify({"ok": False}), 400
    _audit_and_commit(s, "import")
    return jsonify({"ok": True, "settings": settings_service.get_settings(store, did, cache=cache)})


# ---------- Sections ----------
@bp.get("/inspection-settings/sections/active")
@require_permission("inspection_settings.view")
def sections_active():
    _s, store, cache = _stores()
    return jsonify(settings_service.get_active_sections(store, current_dealership_id(), cache=cache))


@bp.post("/inspection-settings/sections")
@require_permission("inspection_settings.edit")
def section_add():
    payload = _payload()
    errors = settings_service.validate_section_payload(payload)
    if errors:
        return jsonify({"errors": errors}), 400

    s, store, cache = _stores()
    try:
        section = settings_service.add_section(store, current_dealership_id(), payload, cache=cache)
    except ValueError as e:
        return jsonify({"errors": [str(e)]}), 409
    _audit_and_commit(s, "section_add", metadata={"section_id": section["id"], "key": section["key"]})
    return jsonify(section), 201


@bp.patch("/inspection-settings/sections/<section_id>")
@require_permission("inspection_settings.edit")
def section_update(section_id: str):
    payload = _payload()
    errors = settings_service.validate_section_payload(payload, partial=True)
    if errors:
        return jsonify({"errors": errors}), 400

    s, store, cache = _stores()
    try:
        section = settings_service.update_section(store, current_dealership_id(), section_id, payload, cache=cache)
    except ValueError as e:
        return jsonify({"errors": [str(e)]}), 409
    if section is None:
        abort(404)
    _audit_and_commit(s, "section_update", metadata={"section_id": section_id, "fields": sorted(payload)})
    return jsonify(section)


@bp.delete("/inspection-settings/sections/<section_id>")
@require_permission("inspection_settings.edit")
def section_delete(section_id: str):
    s, store, cache = _stores()
    if not settings_service.delete_section(store, current_dealership_id(), section_id, cache=cache):
        abort(404)
    _audit_and_commit(s, "section_delete", metadata={"section_id": section_id})
    return jsonify({"ok": True})


# ---------- Items ----------
@bp.get("/inspection-settings/sections/<section_id>/items/active")
@require_permission("inspection_settings.view")
def items_active(section_id: str):
    _s, store, cache = _stores()
    return jsonify(settings_service.get_active_section_items(store, current_dealership_id(), section_id, cache=cache))


@bp.post("/inspection-settings/sections/<section_id>/items")
@require_permission("inspection_settings.edit")
def item_add(section_id: str):
    payload = _payload()
    if not str(payload.get("label") or "").strip():
        return jsonify({"errors": ["Item label is required."]}), 400

    s, store, cache = _stores()
    item = settings_service.add_item(store, current_dealership_id(), section_id, payload, cache=cache)
    if item is None:
        abort(404)
    _audit_and_commit(s, "item_add", metadata={"section_id": section_id, "item_id": item["id"]})
    return jsonify(item), 201


@bp.patch("/inspection-settings/sections/<section_id>/items/<item_id>")
@require_permission("inspection_settings.edit")
def item_update(section_id: str, item_id: str):
    payload = _payload()
    s, store, cache = _stores()
    item = settings_service.update_item(store, current_dealership_id(), section_id, item_id, payload, cache=cache)
    if item is None:
        abort(404)
    _audit_and_commit(s, "item_update", metadata={"section_id": section_id, "item_id": item_id, "fields": sorted(payload)})
    return jsonify(item)


@bp.delete("/inspection-settings/sections/<section_id>/items/<item_id>")
@require_permission("inspection_settings.edit")
def item_delete(section_id: str, item_id: str):
    s, store, cache = _stores()
    if not settings_service.delete_item(store, current_dealership_id(), section_id, item_id, cache=cache):
        abort(404)
    _audit_and_commit(s, "item_delete", metadata={"section_id": section_id, "item_id": item_id})
    return jsonify({"ok": True})


@bp.post("/inspection-settings/sections/<section_id>/items/reorder")
@require_permission("inspection_settings.edit")
def items_reorder(section_id: str):
    item_ids = _payload().get("itemIds")
    if not isinstance(item_ids, list) or not all(isinstance(i, str) for i in item_ids):
        return jsonify({"errors": ["itemIds must be a list of item ids."]}), 400

    s, store, cache = _stores()
    if not settings_service.reorder_items(store, current_dealership_id(), section_id, item_ids, cache=cache):
        abort(404)
    _audit_and_commit(s, "items_reorder", metadata={"section_id": section_id, "item_ids": item_ids})
    return jsonify({"ok": True})


# ---------- Rating labels / global / PDF ----------
@bp.get("/inspection-settings/rating-labels/<label_key>")
@require_permission("inspection_settings.view")
def rating_label_get(label_key: str):
    _s, store, cache = _stores()
    label = settings_service.get_rating_label(store, current_dealership_id(), label_key, cache=cache)
    if label is None:
        abort(404)
    return jsonify(label)


@bp.patch("/inspection-settings/rating-labels/<label_key>")
@require_permission("inspection_settings.edit")
def rating_label_update(label_key: str):
    payload = _payload()
    s, store, cache = _stores()
    label = settings_service.update_rating_label(store, current_dealership_id(), label_key, payload, cache=cache)
    if label is None:
        abort(404)
    _audit_and_commit(s, "rating_label_update", metadata={"key": label_key, "fields": sorted(payload)})
    return jsonify(label)


@bp.patch("/inspection-settings/global")
@require_permission("inspection_settings.edit")
def global_settings_update():
    payload = _payload()
    s, store, cache = _stores()
    did = current_dealership_id()
    settings_service.update_global_settings(store, did, payload, cache=cache)
    _audit_and_commit(s, "global_update", metadata={"fields": sorted(payload)})
    return jsonify(settings_service.get_settings(store, did, cache=cache)["globalSettings"])


@bp.patch("/inspection-settings/customer-pdf")
@require_permission("inspection_settings.edit")
def customer_pdf_settings_update():
    payload = _payload()
    s, store, cache = _stores()
    did = current_dealership_id()
    settings_service.update_customer_pdf_settings(store, did, payload, cache=cache)
    _audit_and_commit(s, "customer_pdf_update", metadata={"fields": sorted(payload)})
    return jsonify(settings_service.get_settings(store, did, cache=cache)["customerPdfSettings"])
