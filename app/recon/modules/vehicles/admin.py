from __future__ import annotations

from flask import Blueprint, abort, current_app, g, jsonify, request

from app.recon.db import db_session
from app.recon.models import User
from app.recon.modules.inspection_data.service import load_inspection_data
from app.recon.modules.inspection_data.status import categorize_vehicle, summarize
from app.recon.modules.inspection_settings.service import get_active_sections
from app.recon.modules.vehicles.models import Vehicle
from app.recon.modules.vehicles.service import (
    LIST_FILTERS,
    add_team_note,
    create_vehicle,
    get_vehicle,
    list_vehicles,
    mark_pending,
    mark_sold,
    reactivate,
    validate_vehicle_payload,
    vehicle_to_dict,
)
from app.recon.rbac import current_dealership_id, require_permission
from app.recon.store import cache_from_config, settings_store, vehicle_inspection_store

bp = Blueprint("vehicles", __name__)

DASHBOARD_BUCKETS = ("pending", "needs-attention", "completed")


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _section_keys(s, dealership_id: str) -> list[str]:
    sections = get_active_sections(settings_store(s), dealership_id, cache=cache_from_config(current_app.config))
    return [sec["key"] for sec in sections]


def _vehicle_or_404(s, vehicle_id: str) -> Vehicle:
    vehicle = get_vehicle(s, current_dealership_id(), vehicle_id)
    if vehicle is None:
        abort(404)
    return vehicle


def _with_status(s, vehicle: Vehicle, keys: list[str]) -> dict:
    d = vehicle_to_dict(vehicle)
    data = load_inspection_data(vehicle_inspection_store(s, vehicle.dealership_id), vehicle.id)
    d["inspection"] = summarize(data, keys)
    d["category"] = categorize_vehicle(d, data, keys)
    return d


# ---------- List ----------
@bp.get("/vehicles")
@require_permission("vehicles.view")
def vehicles_list():
    s = db_session()
    did = current_dealership_id()
    which = (request.args.get("status") or "active").strip()
    if which not in LIST_FILTERS:
        return jsonify({"errors": [f"status must be one of: {', '.join(LIST_FILTERS)}"]}), 400
    search = (request.args.get("q") or "").strip()

    keys = _section_keys(s, did)
    vehicles = list_vehicles(s, did, which=which, search=search)
    return jsonify([_with_status(s, v, keys) for v in vehicles])


@bp.get("/vehicles/dashboard")
@require_permission("vehicles.view")
def vehicles_dashboard():
    s = db_session()
    did = current_dealership_id()
    keys = _section_keys(s, did)

    buckets: dict[str, list[dict]] = {name: [] for name in DASHBOARD_BUCKETS}
    for v in list_vehicles(s, did, which="active"):
        d = _with_status(s, v, keys)
        if d["category"] in buckets:
            buckets[d["category"]].append(d)
    return jsonify({"counts": {k: len(v) for k, v in buckets.items()}, "vehicles": buckets})


# ---------- New ----------
@bp.post("/vehicles")
@require_permission("vehicles.create")
def vehicles_new():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        abort(400, description="Expected a JSON object.")
    errors = validate_vehicle_payload(payload)
    if errors:
        return jsonify({"errors": errors}), 400

    s = db_session()
    vin = str(payload.get("vin")).strip().upper()
    if s.query(Vehicle).filter(Vehicle.vin == vin).one_or_none() is not None:
        return jsonify({"errors": [f"A vehicle with VIN {vin} already exists."]}), 409

    vehicle = create_vehicle(s, current_dealership_id(), payload, _current_user())
    s.commit()
    current_app.logger.info("Vehicle created id=%s vin=%s", vehicle.id, vehicle.vin)
    return jsonify(vehicle_to_dict(vehicle)), 201


# ---------- Detail ----------
@bp.get("/vehicles/<vehicle_id>")
@require_permission("vehicles.view")
def vehicle_detail(vehicle_id: str):
    s = db_session()
    vehicle = _vehicle_or_404(s, vehicle_id)
    return jsonify(_with_status(s, vehicle, _section_keys(s, vehicle.dealership_id)))


# ---------- Team notes ----------
@bp.post("/vehicles/<vehicle_id>/notes")
@require_permission("vehicles.edit")
def vehicle_note_add(vehicle_id: str):
    payload = request.get_json(silent=True) or {}
    s = db_session()
    vehicle = _vehicle_or_404(s, vehicle_id)
    try:
        note = add_team_note(
            s,
            vehicle,
            text=str(payload.get("text") or ""),
            category=str(payload.get("category") or "general"),
            user=_current_user(),
        )
    except ValueError as e:
        return jsonify({"errors": [str(e)]}), 400
    s.commit()
    return jsonify(note), 201


# ---------- Sale state ----------
def _sale_transition(vehicle_id: str, fn):
    payload = request.get_json(silent=True) or {}
    s = db_session()
    vehicle = _vehicle_or_404(s, vehicle_id)
    fn(s, vehicle, _current_user(), reason=(str(payload.get("reason") or "").strip() or None))
    s.commit()
    return jsonify(vehicle_to_dict(vehicle))


@bp.post("/vehicles/<vehicle_id>/mark-sold")
@require_permission("vehicles.edit")
def vehicle_mark_sold(vehicle_id: str):
    return _sale_transition(vehicle_id, mark_sold)


@bp.post("/vehicles/<vehicle_id>/mark-pending")
@require_permission("vehicles.edit")
def vehicle_mark_pending(vehicle_id: str):
    return _sale_transition(vehicle_id, mark_pending)


@bp.post("/vehicles/<vehicle_id>/reactivate")
@require_permission("vehicles.edit")
def vehicle_reactivate(vehicle_id: str):
    return _sale_transition(vehicle_id, reactivate)
