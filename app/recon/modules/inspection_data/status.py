from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Any

from app.recon.modules.inspection_settings.defaults import CANONICAL_SECTION_KEYS

NOT_STARTED = "not-started"
PENDING = "pending"
NEEDS_ATTENTION = "needs-attention"
COMPLETED = "completed"

BADGE_NEEDS_ATTENTION = "needs-attention"
BADGE_IN_PROGRESS = "in-progress"
BADGE_READY_FOR_SALE = "ready-for-sale"
BADGE_NOT_STARTED = "not-started"


def section_status(items: Any) -> str:
    """
    Precedence: empty -> any not-checked -> any N -> any F -> all G -> not-started.
    A single unchecked item puts the whole section back to not-started.
    """
    if not isinstance(items, list) or not items:
        return NOT_STARTED
    ratings = [i.get("rating") if isinstance(i, dict) else None for i in items]
    if "not-checked" in ratings:
        return NOT_STARTED
    if "N" in ratings:
        return NEEDS_ATTENTION
    if "F" in ratings:
        return PENDING
    if all(r == "G" for r in ratings):
        return COMPLETED
    return NOT_STARTED


def section_statuses(data: dict[str, Any] | None, keys: Iterable[str] = CANONICAL_SECTION_KEYS) -> dict[str, str]:
    data = data or {}
    return {key: section_status(data.get(key)) for key in keys}


def completion_percentage(statuses: dict[str, str]) -> int:
    """Share of sections that are anything but not-started, rounded half up."""
    if not statuses:
        return 0
    counted = sum(1 for st in statuses.values() if st in (COMPLETED, PENDING, NEEDS_ATTENTION))
    return int(math.floor(counted / len(statuses) * 100 + 0.5))


def is_ready_for_sale(statuses: dict[str, str]) -> bool:
    return bool(statuses) and all(st == COMPLETED for st in statuses.values())


def overall_badge(statuses: dict[str, str]) -> str:
    if any(st == NEEDS_ATTENTION for st in statuses.values()):
        return BADGE_NEEDS_ATTENTION
    if any(st == PENDING for st in statuses.values()):
        return BADGE_IN_PROGRESS
    if is_ready_for_sale(statuses):
        return BADGE_READY_FOR_SALE
    return BADGE_NOT_STARTED


def summarize(data: dict[str, Any] | None, keys: Iterable[str] = CANONICAL_SECTION_KEYS) -> dict[str, Any]:
    statuses = section_statuses(data, keys)
    return {
        "sections": statuses,
        "progress": completion_percentage(statuses),
        "badge": overall_badge(statuses),
        "readyForSale": is_ready_for_sale(statuses),
    }


def categorize_vehicle(
    vehicle: dict[str, Any],
    data: dict[str, Any] | None,
    keys: Iterable[str] = CANONICAL_SECTION_KEYS,
) -> str | None:
    """
    Dashboard bucket for a vehicle, decided on section statuses: any needs-attention
    section wins, then every section completed, otherwise "pending" (working).
    Sold and pending-sale vehicles are not categorised.
    """
    if vehicle.get("isSold") or vehicle.get("isPending"):
        return None
    statuses = section_statuses(data, keys)
    if any(st == NEEDS_ATTENTION for st in statuses.values()):
        return NEEDS_ATTENTION
    if is_ready_for_sale(statuses):
        return COMPLETED
    return PENDING
