from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any

from app.recon.audit import record_event
from app.recon.modules.inspection_data.reconcile import prepend_notes

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.recon.models import User
    from app.recon.modules.vehicles.models import Vehicle


REQUIRED_FIELDS = ("vin", "year", "make", "model", "color", "location")
LIST_FILTERS = ("active", "sold", "pending", "all")


def parse_date(s: str | None) -> date | None:
    """Parse YYYY-MM-DD date string."""
    if not s:
        return None
    s = s.strip()
    if not s:
        return None
    return date.fromisoformat(s)


def stock_number(vin: str) -> str:
    return (vin or "")[-6:]


def validate_vehicle_payload(payload: dict[str, Any]) -> list[str]:
    """Validate vehicle creation payload. Returns list of errors."""
    errors = []
    for name in REQUIRED_FIELDS:
        if not str(payload.get(name) or "").strip():
            errors.append(f"{name} is required.")
    year = payload.get("year")
    if year not in (None, ""):
        try:
            y = int(year)
            if y < 1900 or y > 2100:
                errors.append("year must be between 1900 and 2100.")
        except (TypeError, ValueError):
            errors.append("year must be a number.")
    mileage = payload.get("mileage")
    if mileage not in (None, ""):
        try:
            if int(mileage) < 0:
                errors.append("mileage cannot be negative.")
        except (TypeError, ValueError):
            errors.append("mileage must be a number.")
    try:
        parse_date(payload.get("dateAcquired"))
    except ValueError:
        errors.append("dateAcquired must be YYYY-MM-DD.")
    return errors


def create_vehicle(s: "Session", dealership_id: str, payload: dict[str, Any], user: "User") -> "Vehicle":
    from app.recon.modules.vehicles.models import Vehicle

    now = datetime.utcnow()
    vehicle = Vehicle(
        dealership_id=dealership_id,
        vin=str(payload.get("vin") or "").strip().upper(),
        year=int(payload["year"]),
        make=str(payload.get("make") or "").strip(),
        model=str(payload.get("model") or "").strip(),
        trim=(str(payload.get("trim") or "").strip() or None),
        color=str(payload.get("color") or "").strip(),
        mileage=int(payload.get("mileage") or 0),
        price=payload.get("price") or 0,
        date_acquired=parse_date(payload.get("dateAcquired")) or date.today(),
        location_name=str(payload.get("location") or "").strip(),
        notes=(str(payload.get("notes") or "").strip() or None),
        inspection_data={},
        team_notes=[],
        created_at=now,
        updated_at=now,
    )
    s.add(vehicle)
    s.flush()

    record_event(
        s,
        actor=user,
        action="vehicle.create",
        entity_type="Vehicle",
        entity_id=vehicle.id,
        metadata={"vin": vehicle.vin, "year": vehicle.year, "make": vehicle.make, "model": vehicle.model},
    )
    return vehicle


def get_vehicle(s: "Session", dealership_id: str, vehicle_id: str) -> "Vehicle | None":
    from app.recon.modules.vehicles.models import Vehicle

    return (
        s.query(Vehicle)
        .filter(Vehicle.id == vehicle_id, Vehicle.dealership_id == dealership_id)
        .one_or_none()
    )


def list_vehicles(s: "Session", dealership_id: str, *, which: str = "active", search: str = "") -> list["Vehicle"]:
    from app.recon.modules.vehicles.models import Vehicle

    q = s.query(Vehicle).filter(Vehicle.dealership_id == dealership_id)
    if which == "active":
        q = q.filter(Vehicle.is_sold == False, Vehicle.is_pending == False)  # noqa: E712
    elif which == "sold":
        q = q.filter(Vehicle.is_sold == True)  # noqa: E712
    elif which == "pending":
        q = q.filter(Vehicle.is_pending == True)  # noqa: E712

    search = (search or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(
            (Vehicle.vin.ilike(like))
            | (Vehicle.make.ilike(like))
            | (Vehicle.model.ilike(like))
            | (Vehicle.location_name.ilike(like))
        )
    return q.order_by(Vehicle.date_acquired.asc(), Vehicle.created_at.asc()).all()


def add_team_note(s: "Session", vehicle: "Vehicle", *, text: str, category: str, user: "User") -> dict[str, Any]:
    """Manual note; lands in the same newest-first list as the rating-change notes."""
    text = (text or "").strip()
    if not text:
        raise ValueError("Note text is required.")
    note = {
        "id": f"note-{uuid.uuid4().hex[:12]}",
        "text": text,
        "userInitials": user.display_initials,
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "category": (category or "general").strip() or "general",
    }
    vehicle.team_notes = prepend_notes(vehicle.team_notes, [note])
    vehicle.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="vehicle.team_note_add",
        entity_type="Vehicle",
        entity_id=vehicle.id,
        metadata={"category": note["category"], "note_id": note["id"]},
    )
    return note


def _set_sale_state(s: "Session", vehicle: "Vehicle", *, is_sold: bool, is_pending: bool, action: str, user: "User", reason: str | None = None) -> "Vehicle":
    old = {"is_sold": vehicle.is_sold, "is_pending": vehicle.is_pending}
    vehicle.is_sold = is_sold
    vehicle.is_pending = is_pending
    vehicle.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action=action,
        entity_type="Vehicle",
        entity_id=vehicle.id,
        reason=reason,
        metadata={"old": old, "new": {"is_sold": is_sold, "is_pending": is_pending}},
    )
    return vehicle


def mark_sold(s: "Session", vehicle: "Vehicle", user: "User", reason: str | None = None) -> "Vehicle":
    return _set_sale_state(s, vehicle, is_sold=True, is_pending=False, action="vehicle.mark_sold", user=user, reason=reason)


def mark_pending(s: "Session", vehicle: "Vehicle", user: "User", reason: str | None = None) -> "Vehicle":
    return _set_sale_state(s, vehicle, is_sold=False, is_pending=True, action="vehicle.mark_pending", user=user, reason=reason)


def reactivate(s: "Session", vehicle: "Vehicle", user: "User", reason: str | None = None) -> "Vehicle":
    return _set_sale_state(s, vehicle, is_sold=False, is_pending=False, action="vehicle.reactivate", user=user, reason=reason)


def vehicle_to_dict(vehicle: "Vehicle") -> dict[str, Any]:
    return {
        "id": vehicle.id,
        "vin": vehicle.vin,
        "stockNumber": stock_number(vehicle.vin),
        "year": vehicle.year,
        "make": vehicle.make,
        "model": vehicle.model,
        "trim": vehicle.trim,
        "color": vehicle.color,
        "mileage": vehicle.mileage,
        "price": float(vehicle.price or 0),
        "dateAcquired": vehicle.date_acquired.isoformat() if vehicle.date_acquired else None,
        "location": vehicle.location_name,
        "notes": vehicle.notes,
        "teamNotes": list(vehicle.team_notes or []),
        "isSold": bool(vehicle.is_sold),
        "isPending": bool(vehicle.is_pending),
    }
