"""
Per-dealership inspection settings.

READ POLICY
===========
``get_settings`` is the only place that decides what happens when the stored document
is missing, partial, from an older shape, or unreadable:

Stored state                 | Result
-----------------------------|------------------------------------------------
no row                       | defaults (deterministic; no fresh ids/timestamps)
store error, cache readable  | cached copy merged with defaults
store error, no cache        | defaults
partial / legacy document    | stored values merged over defaults, per sub-object
not a JSON object            | defaults

Callers never see an exception from a read. Every write replaces the whole document.
``save_settings`` reports a failed durable write as False; the section, item, label and
flag edits raise ``SettingsNotSaved`` instead so the caller cannot mistake it for success.
"""
from __future__ import annotations

import copy
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from app.recon.modules.inspection_settings.defaults import (
    DEFAULT_CUSTOMER_PDF_SETTINGS,
    DEFAULT_GLOBAL_SETTINGS,
    DEFAULT_INSPECTION_SETTINGS,
    DEFAULT_RATING_LABELS,
    RATING_LABEL_KEYS,
)
from app.recon.store import DocumentStore, StoreError

logger = logging.getLogger(__name__)

REQUIRED_IMPORT_KEYS = ("sections", "ratingLabels", "globalSettings", "customerPdfSettings")

# Fields a caller may not overwrite through a partial update.
_PROTECTED_FIELDS = frozenset({"id", "createdAt"})


class ImportSettingsError(ValueError):
    pass


class SettingsNotSaved(StoreError):
    """An edit was applied in memory but the durable write failed."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _order_key(entry: dict) -> tuple[int, float]:
    order = entry.get("order")
    if isinstance(order, bool) or not isinstance(order, (int, float)):
        return (1, 0)
    return (0, order)


def _sorted_by_order(entries: list[dict]) -> list[dict]:
    return sorted(entries, key=_order_key)


# ---------- Typed merges ----------
def _merge_flags(defaults: dict[str, Any], stored: Any) -> dict[str, Any]:
    """
    Stored value wins per key when it has the default's type; unknown keys are dropped.
    """
    merged = dict(defaults)
    if not isinstance(stored, dict):
        return merged
    for key, default_value in defaults.items():
        if key not in stored:
            continue
        value = stored[key]
        if isinstance(default_value, bool):
            if isinstance(value, bool):
                merged[key] = value
        elif isinstance(value, type(default_value)):
            merged[key] = value
    return merged


def merge_global_settings(stored: Any) -> dict[str, Any]:
    return _merge_flags(DEFAULT_GLOBAL_SETTINGS, stored)


def merge_customer_pdf_settings(stored: Any) -> dict[str, Any]:
    return _merge_flags(DEFAULT_CUSTOMER_PDF_SETTINGS, stored)


def merge_rating_labels(stored: Any) -> list[dict[str, Any]]:
    """
    Always exactly the four canonical labels, in canonical order.
    A stored label overrides its default field by field; missing labels are backfilled.
    """
    if not isinstance(stored, list) or not stored:
        return copy.deepcopy(DEFAULT_RATING_LABELS)
    by_key: dict[str, dict] = {}
    for entry in stored:
        if isinstance(entry, dict) and entry.get("key") in RATING_LABEL_KEYS and entry["key"] not in by_key:
            by_key[entry["key"]] = entry
    labels = []
    for default in DEFAULT_RATING_LABELS:
        label = {**default, **copy.deepcopy(by_key.get(default["key"], {}))}
        label["key"] = default["key"]
        labels.append(label)
    return labels


def _normalize_section(section: dict) -> dict:
    sec = copy.deepcopy(section)
    items = sec.get("items")
    sec["items"] = _sorted_by_order([i for i in items if isinstance(i, dict)]) if isinstance(items, list) else []
    return sec


def merge_sections(stored: Any) -> list[dict[str, Any]]:
    """Stored sections if there is at least one, else the defaults; sorted by ``order``."""
    sections = []
    seen_keys: set[str] = set()
    if isinstance(stored, list):
        for entry in stored:
            if not isinstance(entry, dict):
                continue
            key = entry.get("key")
            if key in seen_keys:
                continue
            if key is not None:
                seen_keys.add(key)
            sections.append(_normalize_section(entry))
    if not sections:
        sections = copy.deepcopy(DEFAULT_INSPECTION_SETTINGS["sections"])
    return _sorted_by_order(sections)


def default_settings(dealership_id: str) -> dict[str, Any]:
    doc = copy.deepcopy(DEFAULT_INSPECTION_SETTINGS)
    doc["dealershipId"] = dealership_id
    return doc


def fresh_default_settings(dealership_id: str) -> dict[str, Any]:
    """Defaults with a newly generated id and timestamps, ready to be persisted."""
    now = _now_iso()
    doc = default_settings(dealership_id)
    doc.update({"id": _new_id("settings"), "createdAt": now, "updatedAt": now})
    return doc


def merge_with_defaults(stored: dict[str, Any], dealership_id: str) -> dict[str, Any]:
    merged = default_settings(dealership_id)
    merged.update(copy.deepcopy(stored))
    merged["dealershipId"] = dealership_id
    merged["customerPdfSettings"] = merge_customer_pdf_settings(stored.get("customerPdfSettings"))
    merged["globalSettings"] = merge_global_settings(stored.get("globalSettings"))
    merged["ratingLabels"] = merge_rating_labels(stored.get("ratingLabels"))
    merged["sections"] = merge_sections(stored.get("sections"))
    return merged


# ---------- Read / write ----------
def _read_stored(store: DocumentStore, dealership_id: str, cache: DocumentStore | None) -> Any:
    try:
        return store.get(dealership_id)
    except StoreError:
        logger.exception("Inspection settings read failed (dealership_id=%s)", dealership_id)
    if cache is None:
        return None
    try:
        return cache.get(dealership_id)
    except StoreError:
        logger.exception("Inspection settings cache read failed (dealership_id=%s)", dealership_id)
        return None


def get_settings(store: DocumentStore, dealership_id: str, *, cache: DocumentStore | None = None) -> dict[str, Any]:
    stored = _read_stored(store, dealership_id, cache)
    if not isinstance(stored, dict):
        if stored is not None:
            logger.warning("Ignoring malformed inspection settings (dealership_id=%s)", dealership_id)
        return default_settings(dealership_id)
    try:
        return merge_with_defaults(stored, dealership_id)
    except (TypeError, ValueError, AttributeError):
        logger.exception("Inspection settings merge failed; using defaults (dealership_id=%s)", dealership_id)
        return default_settings(dealership_id)


def save_settings(
    store: DocumentStore,
    dealership_id: str,
    settings: dict[str, Any],
    *,
    cache: DocumentStore | None = None,
) -> bool:
    """
    Stamp ``updatedAt`` and write the whole document. Returns False when the durable
    write failed; that failure is logged, not raised. The cache mirror is best-effort.
    """
    now = _now_iso()
    # First write of an in-memory default document gets a real identity.
    if settings.get("id") in (None, "", DEFAULT_INSPECTION_SETTINGS["id"]):
        settings["id"] = _new_id("settings")
        settings["createdAt"] = settings.get("createdAt") or now
    settings["updatedAt"] = now
    doc = copy.deepcopy(settings)
    doc["dealershipId"] = dealership_id

    if cache is not None:
        try:
            cache.upsert(dealership_id, doc)
        except StoreError:
            logger.warning("Inspection settings cache mirror failed (dealership_id=%s)", dealership_id, exc_info=True)

    try:
        store.upsert(dealership_id, doc)
    except StoreError:
        logger.exception("Inspection settings not saved (dealership_id=%s)", dealership_id)
        return False
    return True


def _persist(store: DocumentStore, dealership_id: str, settings: dict[str, Any], cache: DocumentStore | None) -> None:
    if not save_settings(store, dealership_id, settings, cache=cache):
        raise SettingsNotSaved(f"Inspection settings for dealership {dealership_id} were not saved.")


def initialize_default_settings(store: DocumentStore, dealership_id: str, *, cache: DocumentStore | None = None) -> bool:
    """Persist defaults only if the dealership has no stored document yet."""
    try:
        existing = store.get(dealership_id)
    except StoreError:
        logger.exception("Cannot check existing inspection settings (dealership_id=%s)", dealership_id)
        return False
    if existing is not None:
        return False
    return save_settings(store, dealership_id, fresh_default_settings(dealership_id), cache=cache)


def reset_to_defaults(store: DocumentStore, dealership_id: str, *, cache: DocumentStore | None = None) -> bool:
    """Destructive: custom sections and items are discarded. Callers must confirm first."""
    return save_settings(store, dealership_id, fresh_default_settings(dealership_id), cache=cache)


# ---------- Sections ----------
def _find(entries: list[dict], entry_id: str) -> int:
    for idx, entry in enumerate(entries):
        if entry.get("id") == entry_id:
            return idx
    return -1


def _apply_updates(target: dict, updates: dict[str, Any]) -> None:
    for key, value in updates.items():
        if key in _PROTECTED_FIELDS:
            continue
        target[key] = copy.deepcopy(value)
    target["updatedAt"] = _now_iso()


def validate_section_payload(payload: dict[str, Any], *, partial: bool = False) -> list[str]:
    errors = []
    if not partial or "key" in payload:
        key = str(payload.get("key") or "").strip()
        if not key:
            errors.append("Section key is required.")
        elif key in ("customSections", "sectionNotes"):
            errors.append(f"Section key {key!r} is reserved.")
    if not partial or "label" in payload:
        if not str(payload.get("label") or "").strip():
            errors.append("Section label is required.")
    if "order" in payload:
        order = payload.get("order")
        if isinstance(order, bool) or not isinstance(order, int):
            errors.append("Section order must be an integer.")
    if "items" in payload and not isinstance(payload.get("items"), list):
        errors.append("Section items must be a list.")
    return errors


def add_section(
    store: DocumentStore,
    dealership_id: str,
    section_data: dict[str, Any],
    *,
    cache: DocumentStore | None = None,
) -> dict[str, Any]:
    settings = get_settings(store, dealership_id, cache=cache)
    key = str(section_data.get("key") or "").strip()
    if any(sec.get("key") == key for sec in settings["sections"]):
        raise ValueError(f"Section key {key!r} already exists.")

    now = _now_iso()
    section = {
        "description": "",
        "icon": "",
        "color": "",
        "isActive": True,
        "isCustomerVisible": True,
        "order": len(settings["sections"]) + 1,
        **copy.deepcopy(section_data),
        "key": key,
        "id": _new_id("section"),
        "createdAt": now,
        "updatedAt": now,
    }
    section["items"] = [i for i in section.get("items") or [] if isinstance(i, dict)]

    settings["sections"].append(section)
    settings["sections"] = _sorted_by_order(settings["sections"])
    _persist(store, dealership_id, settings, cache)
    return section


def update_section(
    store: DocumentStore,
    dealership_id: str,
    section_id: str,
    updates: dict[str, Any],
    *,
    cache: DocumentStore | None = None,
) -> dict[str, Any] | None:
    settings = get_settings(store, dealership_id, cache=cache)
    idx = _find(settings["sections"], section_id)
    if idx == -1:
        return None
    section = settings["sections"][idx]
    updates = dict(updates)
    if "key" in updates:
        key = str(updates.get("key") or "").strip()
        if any(sec.get("key") == key for i, sec in enumerate(settings["sections"]) if i != idx):
            raise ValueError(f"Section key {key!r} already exists.")
        updates["key"] = key
    _apply_updates(section, updates)
    if "order" in updates:
        settings["sections"] = _sorted_by_order(settings["sections"])
    _persist(store, dealership_id, settings, cache)
    return section


def delete_section(store: DocumentStore, dealership_id: str, section_id: str, *, cache: DocumentStore | None = None) -> bool:
    settings = get_settings(store, dealership_id, cache=cache)
    remaining = [sec for sec in settings["sections"] if sec.get("id") != section_id]
    if len(remaining) == len(settings["sections"]):
        return False
    settings["sections"] = remaining
    _persist(store, dealership_id, settings, cache)
    return True


# ---------- Items ----------
def add_item(
    store: DocumentStore,
    dealership_id: str,
    section_id: str,
    item_data: dict[str, Any],
    *,
    cache: DocumentStore | None = None,
) -> dict[str, Any] | None:
    settings = get_settings(store, dealership_id, cache=cache)
    idx = _find(settings["sections"], section_id)
    if idx == -1:
        return None
    section = settings["sections"][idx]

    now = _now_iso()
    item = {
        "description": "",
        "isRequired": False,
        "isActive": True,
        "order": len(section["items"]) + 1,
        **copy.deepcopy(item_data),
        "id": _new_id("item"),
        "createdAt": now,
        "updatedAt": now,
    }
    section["items"].append(item)
    section["items"] = _sorted_by_order(section["items"])
    _persist(store, dealership_id, settings, cache)
    return item


def update_item(
    store: DocumentStore,
    dealership_id: str,
    section_id: str,
    item_id: str,
    updates: dict[str, Any],
    *,
    cache: DocumentStore | None = None,
) -> dict[str, Any] | None:
    settings = get_settings(store, dealership_id, cache=cache)
    sidx = _find(settings["sections"], section_id)
    if sidx == -1:
        return None
    section = settings["sections"][sidx]
    iidx = _find(section["items"], item_id)
    if iidx == -1:
        return None
    item = section["items"][iidx]
    _apply_updates(item, updates)
    if "order" in updates:
        section["items"] = _sorted_by_order(section["items"])
    _persist(store, dealership_id, settings, cache)
    return item


def delete_item(
    store: DocumentStore,
    dealership_id: str,
    section_id: str,
    item_id: str,
    *,
    cache: DocumentStore | None = None,
) -> bool:
    settings = get_settings(store, dealership_id, cache=cache)
    sidx = _find(settings["sections"], section_id)
    if sidx == -1:
        return False
    section = settings["sections"][sidx]
    remaining = [i for i in section["items"] if i.get("id") != item_id]
    if len(remaining) == len(section["items"]):
        return False
    section["items"] = remaining
    _persist(store, dealership_id, settings, cache)
    return True


def reorder_items(
    store: DocumentStore,
    dealership_id: str,
    section_id: str,
    item_ids: list[str],
    *,
    cache: DocumentStore | None = None,
) -> bool:
    """Rewrite each listed item's ``order`` to its 1-based position in ``item_ids``."""
    settings = get_settings(store, dealership_id, cache=cache)
    sidx = _find(settings["sections"], section_id)
    if sidx == -1:
        return False
    section = settings["sections"][sidx]
    now = _now_iso()
    by_id = {i.get("id"): i for i in section["items"]}
    for position, item_id in enumerate(item_ids, start=1):
        item = by_id.get(item_id)
        if item is not None:
            item["order"] = position
            item["updatedAt"] = now
    section["items"] = _sorted_by_order(section["items"])
    _persist(store, dealership_id, settings, cache)
    return True


# ---------- Rating labels / global / PDF ----------
def get_rating_label(store: DocumentStore, dealership_id: str, label_key: str, *, cache: DocumentStore | None = None) -> dict[str, Any] | None:
    settings = get_settings(store, dealership_id, cache=cache)
    for label in settings["ratingLabels"]:
        if label["key"] == label_key:
            return label
    return None


def update_rating_label(
    store: DocumentStore,
    dealership_id: str,
    label_key: str,
    updates: dict[str, Any],
    *,
    cache: DocumentStore | None = None,
) -> dict[str, Any] | None:
    if label_key not in RATING_LABEL_KEYS:
        return None
    settings = get_settings(store, dealership_id, cache=cache)
    for label in settings["ratingLabels"]:
        if label["key"] == label_key:
            label.update({k: copy.deepcopy(v) for k, v in updates.items() if k != "key"})
            _persist(store, dealership_id, settings, cache)
            return label
    return None


def update_global_settings(
    store: DocumentStore,
    dealership_id: str,
    updates: dict[str, Any],
    *,
    cache: DocumentStore | None = None,
) -> bool:
    settings = get_settings(store, dealership_id, cache=cache)
    settings["globalSettings"] = _merge_flags(settings["globalSettings"], updates)
    _persist(store, dealership_id, settings, cache)
    return True


def update_customer_pdf_settings(
    store: DocumentStore,
    dealership_id: str,
    updates: dict[str, Any],
    *,
    cache: DocumentStore | None = None,
) -> bool:
    settings = get_settings(store, dealership_id, cache=cache)
    settings["customerPdfSettings"] = _merge_flags(settings["customerPdfSettings"], updates)
    _persist(store, dealership_id, settings, cache)
    return True


def get_active_sections(store: DocumentStore, dealership_id: str, *, cache: DocumentStore | None = None) -> list[dict[str, Any]]:
    settings = get_settings(store, dealership_id, cache=cache)
    return _sorted_by_order([sec for sec in settings["sections"] if sec.get("isActive")])


def get_active_section_items(
    store: DocumentStore,
    dealership_id: str,
    section_id: str,
    *,
    cache: DocumentStore | None = None,
) -> list[dict[str, Any]]:
    settings = get_settings(store, dealership_id, cache=cache)
    idx = _find(settings["sections"], section_id)
    if idx == -1:
        return []
    return _sorted_by_order([i for i in settings["sections"][idx]["items"] if i.get("isActive")])


# ---------- Export / import ----------
def export_settings(store: DocumentStore, dealership_id: str, *, cache: DocumentStore | None = None) -> str:
    return json.dumps(get_settings(store, dealership_id, cache=cache), indent=2, ensure_ascii=False)


def parse_settings_document(settings_json: str) -> dict[str, Any]:
    try:
        doc = json.loads(settings_json)
    except (TypeError, ValueError) as e:
        raise ImportSettingsError(f"Settings file is not valid JSON: {e}") from e
    if not isinstance(doc, dict):
        raise ImportSettingsError("Settings file must contain a JSON object.")
    missing = [k for k in REQUIRED_IMPORT_KEYS if k not in doc]
    if missing:
        raise ImportSettingsError(f"Settings file is missing: {', '.join(missing)}")
    if not isinstance(doc["sections"], list) or not isinstance(doc["ratingLabels"], list):
        raise ImportSettingsError("sections and ratingLabels must be lists.")
    if not isinstance(doc["globalSettings"], dict) or not isinstance(doc["customerPdfSettings"], dict):
        raise ImportSettingsError("globalSettings and customerPdfSettings must be objects.")
    return doc


def import_settings(
    store: DocumentStore,
    dealership_id: str,
    settings_json: str,
    *,
    cache: DocumentStore | None = None,
) -> bool:
    """
    All-or-nothing: a malformed document is rejected before anything is written.
    The imported document always gets a fresh id and timestamps.
    """
    try:
        doc = parse_settings_document(settings_json)
    except ImportSettingsError as e:
        logger.warning("Inspection settings import rejected (dealership_id=%s): %s", dealership_id, e)
        return False

    now = _now_iso()
    merged = merge_with_defaults(doc, dealership_id)
    merged.update({"id": _new_id("settings"), "createdAt": now, "updatedAt": now})
    return save_settings(store, dealership_id, merged, cache=cache)
