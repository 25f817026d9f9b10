"""
INSPECTION DATA PERSISTENCE
===========================

Write                         | Store                   | On failure
------------------------------|-------------------------|-------------------------------
inspection_data + team_notes  | vehicle row (one write) | StoreError propagates to caller
checklist mirror              | inspection_checklists   | logged and swallowed

Audit notes are computed against the currently stored document and written in the
same upsert as the data, so the audit trail and the ratings cannot diverge. The
mirror is written afterwards in its own savepoint; losing it never undoes the
primary write, and nothing is rolled back automatically.

Concurrent editors are not serialised: each save overwrites the whole document and
the last writer wins.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from app.recon.modules.inspection_data.models import CHECKLIST_STATUSES
from app.recon.modules.inspection_data.reconcile import build_rating_change_notes, prepend_notes
from app.recon.modules.inspection_settings.defaults import CANONICAL_SECTION_KEYS, RESERVED_DATA_KEYS
from app.recon.store import DocumentStore, StoreError

logger = logging.getLogger(__name__)

# UI-facing names -> storage codes. Storage codes map to themselves.
STORAGE_RATINGS = {
    "great": "G",
    "fair": "F",
    "needs-attention": "N",
    "not-checked": "not-checked",
    "G": "G",
    "F": "F",
    "N": "N",
}


@dataclass(frozen=True)
class SaveResult:
    data: dict[str, Any]
    new_notes: list[dict[str, Any]] = field(default_factory=list)
    team_notes: list[dict[str, Any]] = field(default_factory=list)
    mirrored: bool = False


def to_storage_rating(rating: str) -> str:
    code = STORAGE_RATINGS.get((rating or "").strip())
    if code is None:
        raise ValueError(f"Unknown rating {rating!r}")
    return code


def empty_inspection_data(section_keys=CANONICAL_SECTION_KEYS) -> dict[str, Any]:
    data: dict[str, Any] = {key: [] for key in section_keys}
    data["customSections"] = {}
    data["sectionNotes"] = {}
    return data


def normalize_inspection_data(data: Any) -> dict[str, Any]:
    """Keep every section as-is; guarantee the two free-form maps exist."""
    doc = copy.deepcopy(data) if isinstance(data, dict) else {}
    for key in RESERVED_DATA_KEYS:
        if not isinstance(doc.get(key), dict):
            doc[key] = {}
    return doc


def record_rating(
    data: dict[str, Any],
    section_key: str,
    item_id: str,
    rating: str,
    *,
    label: str,
    initials: str,
    now: str | None = None,
) -> dict[str, Any]:
    """Return a copy of ``data`` with one item rated. ``rating`` may be a UI synonym."""
    if section_key in RESERVED_DATA_KEYS:
        raise ValueError(f"{section_key!r} is not a section")
    code = to_storage_rating(rating)
    stamp = now or datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

    doc = normalize_inspection_data(data)
    items = doc.get(section_key)
    if not isinstance(items, list):
        items = []
    doc[section_key] = items

    for item in items:
        if isinstance(item, dict) and item.get("id") == item_id:
            item.update({"rating": code, "updatedBy": initials, "updatedAt": stamp})
            return doc
    items.append({"id": item_id, "label": label, "rating": code, "updatedBy": initials, "updatedAt": stamp})
    return doc


def load_inspection_data(vehicles: DocumentStore, vehicle_id: str) -> dict[str, Any] | None:
    """
    None only when the vehicle itself does not exist. A vehicle that was never
    inspected gets the canonical empty document.
    """
    doc = vehicles.get(vehicle_id)
    if doc is None:
        return None
    stored = doc.get("inspection_data")
    if not isinstance(stored, dict) or not stored:
        return empty_inspection_data()
    return normalize_inspection_data(stored)


def save_inspection_data(
    vehicles: DocumentStore,
    vehicle_id: str,
    data: dict[str, Any],
    *,
    initials: str | None = None,
    user_id: int | None = None,
    checklists: DocumentStore | None = None,
    now: str | None = None,
) -> SaveResult | None:
    """
    Overwrite the vehicle's inspection data and prepend audit notes for every rating
    change. Returns None if the vehicle does not exist.
    """
    current = vehicles.get(vehicle_id)
    if current is None:
        return None

    normalized = normalize_inspection_data(data)
    new_notes = build_rating_change_notes(
        current.get("inspection_data") or {},
        normalized,
        initials=initials,
        user_id=str(user_id) if user_id is not None else None,
        now=now,
    )
    team_notes = prepend_notes(current.get("team_notes"), new_notes)
    vehicles.upsert(vehicle_id, {"inspection_data": normalized, "team_notes": team_notes})
    if new_notes:
        logger.info("Inspection saved vehicle_id=%s notes_added=%d", vehicle_id, len(new_notes))

    mirrored = False
    if checklists is not None:
        try:
            checklists.upsert(
                vehicle_id,
                {"checklist_data": normalized, "inspector_id": user_id, "status": "in-progress"},
            )
            mirrored = True
        except StoreError:
            logger.warning("Checklist mirror write failed (vehicle_id=%s)", vehicle_id, exc_info=True)

    return SaveResult(data=normalized, new_notes=new_notes, team_notes=team_notes, mirrored=mirrored)


def update_checklist_status(
    checklists: DocumentStore,
    vehicle_id: str,
    status: str,
    *,
    notes: str | None = None,
) -> bool:
    if status not in CHECKLIST_STATUSES:
        raise ValueError(f"Invalid checklist status {status!r}. Must be one of: {', '.join(CHECKLIST_STATUSES)}")
    if checklists.get(vehicle_id) is None:
        return False
    patch: dict[str, Any] = {"status": status}
    if status == "completed":
        patch["completed_at"] = datetime.utcnow()
    if notes:
        patch["notes"] = notes
    checklists.upsert(vehicle_id, patch)
    return True
