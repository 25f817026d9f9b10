"""Tests for the per-dealership inspection settings store."""
import json

import pytest

from app.recon.modules.inspection_settings import service as svc
from app.recon.modules.inspection_settings.defaults import CANONICAL_SECTION_KEYS, RATING_LABEL_KEYS

from _fakes import MemoryDocumentStore

DID = "dealer-1"


@pytest.fixture()
def store():
    return MemoryDocumentStore()


def _section_keys(settings):
    return [s["key"] for s in settings["sections"]]


# ---------- Reads ----------
def test_missing_document_returns_defaults(store):
    settings = svc.get_settings(store, DID)
    assert settings["id"] == "default"
    assert settings["dealershipId"] == DID
    assert _section_keys(settings) == list(CANONICAL_SECTION_KEYS)
    assert [lbl["key"] for lbl in settings["ratingLabels"]] == list(RATING_LABEL_KEYS)
    assert store.writes == []


def test_reads_are_repeatable(store):
    assert svc.get_settings(store, DID) == svc.get_settings(store, DID)


def test_partial_document_is_merged_per_sub_object(store):
    store.docs[DID] = {"id": "settings-abc", "globalSettings": {"allowSkipItems": True}}
    settings = svc.get_settings(store, DID)
    assert settings["id"] == "settings-abc"
    assert settings["globalSettings"]["allowSkipItems"] is True
    assert settings["globalSettings"]["requireUserInitials"] is True
    assert settings["customerPdfSettings"]["includeVehiclePhotos"] is True
    assert _section_keys(settings) == list(CANONICAL_SECTION_KEYS)


def test_legacy_rating_labels_are_backfilled(store):
    store.docs[DID] = {"ratingLabels": [{"key": "great", "label": "Excellent"}]}
    labels = svc.get_settings(store, DID)["ratingLabels"]
    assert [lbl["key"] for lbl in labels] == list(RATING_LABEL_KEYS)
    assert labels[0]["label"] == "Excellent"
    assert labels[0]["color"]
    assert labels[1]["label"] == "Fair"


def test_wrongly_typed_flags_fall_back_to_defaults(store):
    store.docs[DID] = {"globalSettings": {"allowSkipItems": "yes", "bogus": True}}
    flags = svc.get_settings(store, DID)["globalSettings"]
    assert flags["allowSkipItems"] is False
    assert "bogus" not in flags


def test_empty_section_list_falls_back_to_defaults(store):
    store.docs[DID] = {"sections": []}
    assert _section_keys(svc.get_settings(store, DID)) == list(CANONICAL_SECTION_KEYS)


def test_malformed_document_returns_defaults(store):
    store.docs[DID] = ["not", "an", "object"]
    assert svc.get_settings(store, DID)["id"] == "default"


def test_store_failure_falls_back_to_cache(store):
    cache = MemoryDocumentStore({DID: {"id": "settings-cached", "sections": [{"key": "custom", "label": "Custom", "items": []}]}})
    store.fail_reads = True
    settings = svc.get_settings(store, DID, cache=cache)
    assert settings["id"] == "settings-cached"
    assert _section_keys(settings) == ["custom"]


def test_store_failure_without_cache_returns_defaults(store):
    store.fail_reads = True
    assert svc.get_settings(store, DID)["id"] == "default"


# ---------- Writes ----------
def test_first_save_of_defaults_assigns_identity(store):
    settings = svc.get_settings(store, DID)
    assert svc.save_settings(store, DID, settings) is True
    saved = store.docs[DID]
    assert saved["id"].startswith("settings-")
    assert saved["createdAt"]
    assert saved["updatedAt"] == settings["updatedAt"]


def test_save_failure_returns_false_but_cache_is_written(store):
    cache = MemoryDocumentStore()
    store.fail_writes = True
    assert svc.save_settings(store, DID, svc.get_settings(store, DID), cache=cache) is False
    assert DID in cache.docs
    assert DID not in store.docs


def test_initialize_default_settings_only_once(store):
    assert svc.initialize_default_settings(store, DID) is True
    first_id = store.docs[DID]["id"]
    assert svc.initialize_default_settings(store, DID) is False
    assert store.docs[DID]["id"] == first_id
    assert len(store.writes) == 1


def test_reset_to_defaults_discards_custom_sections(store):
    svc.add_section(store, DID, {"key": "detailing", "label": "Detailing"})
    assert "detailing" in _section_keys(svc.get_settings(store, DID))
    assert svc.reset_to_defaults(store, DID) is True
    assert _section_keys(svc.get_settings(store, DID)) == list(CANONICAL_SECTION_KEYS)


# ---------- Sections ----------
def test_add_section_appends_with_next_order(store):
    section = svc.add_section(store, DID, {"key": "detailing", "label": "Detailing"})
    assert section["id"].startswith("section-")
    assert section["order"] == len(CANONICAL_SECTION_KEYS) + 1
    assert section["items"] == []
    assert _section_keys(svc.get_settings(store, DID))[-1] == "detailing"


def test_add_section_rejects_duplicate_key(store):
    with pytest.raises(ValueError):
        svc.add_section(store, DID, {"key": "emissions", "label": "Emissions again"})


def test_validate_section_payload():
    assert svc.validate_section_payload({"key": "x", "label": "X"}) == []
    assert svc.validate_section_payload({"label": "X"}) == ["Section key is required."]
    assert svc.validate_section_payload({"key": "sectionNotes", "label": "X"})
    assert svc.validate_section_payload({"order": "2"}, partial=True) == ["Section order must be an integer."]
    assert svc.validate_section_payload({}, partial=True) == []


def test_update_section_reorders_only_when_order_changes(store):
    updated = svc.update_section(store, DID, "section-photos", {"order": 0, "id": "hijack"})
    assert updated["id"] == "section-photos"
    assert _section_keys(svc.get_settings(store, DID))[0] == "photos"

    svc.update_section(store, DID, "section-emissions", {"label": "Smog"})
    settings = svc.get_settings(store, DID)
    assert next(s for s in settings["sections"] if s["key"] == "emissions")["label"] == "Smog"


def test_update_section_rejects_key_of_another_section(store):
    with pytest.raises(ValueError):
        svc.update_section(store, DID, "section-cosmetic", {"key": "emissions"})
    settings = svc.get_settings(store, DID)
    assert _section_keys(settings) == list(CANONICAL_SECTION_KEYS)
    assert store.writes == []


def test_update_section_strips_key_and_allows_keeping_its_own(store):
    svc.update_section(store, DID, "section-cosmetic", {"key": "cosmetic", "label": "Body"})
    updated = svc.update_section(store, DID, "section-cosmetic", {"key": "  bodywork "})
    assert updated["key"] == "bodywork"
    assert len(svc.get_settings(store, DID)["sections"]) == len(CANONICAL_SECTION_KEYS)


def test_update_unknown_section_returns_none(store):
    assert svc.update_section(store, DID, "section-nope", {"label": "x"}) is None
    assert store.writes == []


def test_delete_section(store):
    assert svc.delete_section(store, DID, "section-cleaning") is True
    assert "cleaning" not in _section_keys(svc.get_settings(store, DID))


def test_delete_unknown_section_does_not_write(store):
    assert svc.delete_section(store, DID, "section-nope") is False
    assert store.writes == []


# ---------- Items ----------
def test_item_lifecycle(store):
    item = svc.add_item(store, DID, "section-photos", {"label": "Drone shot"})
    assert item["id"].startswith("item-")
    assert item["order"] == 3

    updated = svc.update_item(store, DID, "section-photos", item["id"], {"isActive": False})
    assert updated["isActive"] is False
    active = svc.get_active_section_items(store, DID, "section-photos")
    assert item["id"] not in [i["id"] for i in active]

    assert svc.delete_item(store, DID, "section-photos", item["id"]) is True
    assert svc.delete_item(store, DID, "section-photos", item["id"]) is False


def test_add_item_to_unknown_section(store):
    assert svc.add_item(store, DID, "section-nope", {"label": "x"}) is None


def test_reorder_items(store):
    assert svc.reorder_items(store, DID, "section-cleaning", ["cleaning-3", "cleaning-1", "cleaning-2"]) is True
    items = svc.get_active_section_items(store, DID, "section-cleaning")
    assert [i["id"] for i in items] == ["cleaning-3", "cleaning-1", "cleaning-2"]
    assert [i["order"] for i in items] == [1, 2, 3]


def test_active_sections_exclude_inactive(store):
    svc.update_section(store, DID, "section-photos", {"isActive": False})
    keys = [s["key"] for s in svc.get_active_sections(store, DID)]
    assert "photos" not in keys
    assert keys == ["emissions", "cosmetic", "mechanical", "cleaning"]


# ---------- Rating labels / flags ----------
def test_update_rating_label_keeps_key(store):
    label = svc.update_rating_label(store, DID, "fair", {"label": "OK", "key": "renamed"})
    assert label["key"] == "fair"
    assert label["label"] == "OK"
    assert svc.get_rating_label(store, DID, "fair")["label"] == "OK"


def test_update_unknown_rating_label(store):
    assert svc.update_rating_label(store, DID, "excellent", {"label": "x"}) is None
    assert svc.get_rating_label(store, DID, "excellent") is None


def test_update_global_and_pdf_settings(store):
    assert svc.update_global_settings(store, DID, {"allowSkipItems": True, "unknown": 1}) is True
    assert svc.update_customer_pdf_settings(store, DID, {"footerText": "Thanks!"}) is True
    settings = svc.get_settings(store, DID)
    assert settings["globalSettings"]["allowSkipItems"] is True
    assert "unknown" not in settings["globalSettings"]
    assert settings["customerPdfSettings"]["footerText"] == "Thanks!"


@pytest.mark.parametrize(
    "edit",
    [
        lambda st: svc.add_section(st, DID, {"key": "detailing", "label": "Detailing"}),
        lambda st: svc.update_section(st, DID, "section-photos", {"label": "Pictures"}),
        lambda st: svc.delete_section(st, DID, "section-photos"),
        lambda st: svc.add_item(st, DID, "section-photos", {"label": "Drone shot"}),
        lambda st: svc.reorder_items(st, DID, "section-photos", []),
        lambda st: svc.update_rating_label(st, DID, "fair", {"label": "OK"}),
        lambda st: svc.update_global_settings(st, DID, {"allowSkipItems": True}),
        lambda st: svc.update_customer_pdf_settings(st, DID, {"footerText": "Thanks!"}),
    ],
)
def test_edits_raise_when_durable_write_fails(store, edit):
    store.fail_writes = True
    with pytest.raises(svc.SettingsNotSaved):
        edit(store)
    assert DID not in store.docs


# ---------- Export / import ----------
def test_export_then_import_round_trip(store):
    svc.add_section(store, DID, {"key": "detailing", "label": "Detailing"})
    exported = svc.export_settings(store, DID)
    original = svc.get_settings(store, DID)

    other = MemoryDocumentStore()
    assert svc.import_settings(other, "dealer-2", exported) is True
    imported = svc.get_settings(other, "dealer-2")
    assert imported["sections"] == original["sections"]
    assert imported["ratingLabels"] == original["ratingLabels"]
    assert imported["dealershipId"] == "dealer-2"
    assert imported["id"] != original["id"]


@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        json.dumps([1, 2, 3]),
        json.dumps({"sections": []}),
        json.dumps({"sections": {}, "ratingLabels": [], "globalSettings": {}, "customerPdfSettings": {}}),
    ],
)
def test_import_rejects_malformed_documents(store, payload):
    assert svc.import_settings(store, DID, payload) is False
    assert store.writes == []


def test_parse_settings_document_names_missing_keys():
    with pytest.raises(svc.ImportSettingsError) as exc:
        svc.parse_settings_document(json.dumps({"sections": [], "ratingLabels": []}))
    assert "globalSettings" in str(exc.value)
