"""
Rating-change auditing.

Compares two full inspection-data documents for one vehicle and produces the team
notes describing what changed. Neither input is mutated.

Only item ratings are audited. Label or note edits produce nothing, and items that
disappear from the new document are not reported.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from app.recon.modules.inspection_settings.defaults import RESERVED_DATA_KEYS

RATING_LABELS = {
    "G": "Great",
    "F": "Fair",
    "N": "Needs Attention",
    "not-checked": "Not Checked",
    # UI-side synonyms, in case unconverted values reach storage
    "great": "Great",
    "fair": "Fair",
    "needs-attention": "Needs Attention",
}


def rating_label(code: str | None) -> str:
    if not code:
        return "Not Checked"
    return RATING_LABELS.get(code, code)


def _items_by_section(data: dict[str, Any] | None, key: str) -> list[dict]:
    items = (data or {}).get(key)
    if not isinstance(items, list):
        return []
    return [i for i in items if isinstance(i, dict)]


def _section_keys(old: dict[str, Any] | None, new: dict[str, Any] | None) -> list[str]:
    keys: list[str] = []
    for doc in (new or {}, old or {}):
        for key in doc:
            if key not in RESERVED_DATA_KEYS and key not in keys:
                keys.append(key)
    return keys


def _note(text: str, *, initials: str, category: str, timestamp: str) -> dict[str, Any]:
    return {
        "id": f"note-{uuid.uuid4().hex[:12]}",
        "text": text,
        "userInitials": initials,
        "timestamp": timestamp,
        "category": category,
    }


def build_rating_change_notes(
    old: dict[str, Any] | None,
    new: dict[str, Any] | None,
    *,
    initials: str | None = None,
    user_id: str | None = None,
    now: str | None = None,
) -> list[dict[str, Any]]:
    """
    One note per item whose rating changed, or that was rated for the first time.
    ``initials`` (display initials) is preferred over ``user_id`` as the note author.
    """
    author = (initials or "").strip() or (str(user_id) if user_id is not None else "")
    timestamp = now or datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

    notes = []
    for key in _section_keys(old, new):
        old_items = {i.get("id"): i for i in _items_by_section(old, key)}
        for item in _items_by_section(new, key):
            label = item.get("label") or item.get("id") or "Item"
            new_rating = item.get("rating")
            previous = old_items.get(item.get("id"))
            if previous is not None:
                if previous.get("rating") == new_rating:
                    continue
                text = f"{label} changed from {rating_label(previous.get('rating'))} to {rating_label(new_rating)}"
            elif new_rating:
                text = f"{label} rated as {rating_label(new_rating)}"
            else:
                continue
            notes.append(_note(text, initials=author, category=key, timestamp=timestamp))
    return notes


def prepend_notes(existing: list[dict[str, Any]] | None, new_notes: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Team notes are kept newest first."""
    return list(new_notes) + [n for n in (existing or []) if isinstance(n, dict)]
