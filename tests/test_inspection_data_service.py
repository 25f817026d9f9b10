"""Tests for loading/saving per-vehicle inspection data."""
import pytest

from app.recon.modules.inspection_data.service import (
    empty_inspection_data,
    load_inspection_data,
    normalize_inspection_data,
    record_rating,
    save_inspection_data,
    to_storage_rating,
    update_checklist_status,
)
from app.recon.store import StoreError

from _fakes import MemoryDocumentStore

VID = "veh-1"
NOW = "2026-05-01T12:00:00.000Z"


@pytest.fixture()
def vehicles():
    return MemoryDocumentStore(
        {VID: {"inspection_data": {}, "team_notes": [{"id": "note-manual", "text": "Keys in office"}]}},
        patch=True,
        create_missing=False,
    )


@pytest.fixture()
def checklists():
    return MemoryDocumentStore(patch=True)


def _engine(rating):
    return {"mechanical": [{"id": "mechanical-1", "label": "Engine", "rating": rating}]}


def test_to_storage_rating():
    assert to_storage_rating("great") == "G"
    assert to_storage_rating("needs-attention") == "N"
    assert to_storage_rating("F") == "F"
    assert to_storage_rating("not-checked") == "not-checked"
    with pytest.raises(ValueError):
        to_storage_rating("excellent")


def test_empty_shape():
    data = empty_inspection_data()
    assert data["emissions"] == [] and data["photos"] == []
    assert data["customSections"] == {} and data["sectionNotes"] == {}


def test_normalize_keeps_sections_and_adds_maps():
    data = normalize_inspection_data({"cosmetic": [{"id": "c1"}], "sectionNotes": None})
    assert data == {"cosmetic": [{"id": "c1"}], "customSections": {}, "sectionNotes": {}}
    assert normalize_inspection_data(None) == {"customSections": {}, "sectionNotes": {}}


def test_load_missing_vehicle_returns_none(vehicles):
    assert load_inspection_data(vehicles, "nope") is None


def test_load_never_inspected_vehicle_returns_empty_shape(vehicles):
    assert load_inspection_data(vehicles, VID) == empty_inspection_data()


def test_save_writes_data_and_prepends_notes(vehicles, checklists):
    result = save_inspection_data(vehicles, VID, _engine("G"), initials="JD", user_id=7, checklists=checklists, now=NOW)

    assert [n["text"] for n in result.new_notes] == ["Engine rated as Great"]
    stored = vehicles.docs[VID]
    assert stored["inspection_data"]["mechanical"][0]["rating"] == "G"
    assert [n["id"] for n in stored["team_notes"]][-1] == "note-manual"
    assert stored["team_notes"][0]["text"] == "Engine rated as Great"
    # data and notes go out in a single write
    assert len(vehicles.writes) == 1

    assert result.mirrored is True
    mirror = checklists.docs[VID]
    assert mirror["status"] == "in-progress"
    assert mirror["inspector_id"] == 7
    assert mirror["checklist_data"] == result.data


def test_second_save_reports_change(vehicles):
    save_inspection_data(vehicles, VID, _engine("G"), initials="JD")
    result = save_inspection_data(vehicles, VID, _engine("F"), initials="JD")
    assert [n["text"] for n in result.new_notes] == ["Engine changed from Great to Fair"]
    texts = [n["text"] for n in vehicles.docs[VID]["team_notes"]]
    assert texts[:2] == ["Engine changed from Great to Fair", "Engine rated as Great"]


def test_save_missing_vehicle_returns_none(vehicles):
    assert save_inspection_data(vehicles, "nope", _engine("G")) is None
    assert vehicles.writes == []


def test_mirror_failure_is_swallowed(vehicles, checklists):
    checklists.fail_writes = True
    result = save_inspection_data(vehicles, VID, _engine("N"), initials="JD", checklists=checklists)
    assert result.mirrored is False
    assert vehicles.docs[VID]["inspection_data"]["mechanical"][0]["rating"] == "N"


def test_primary_failure_propagates(vehicles, checklists):
    vehicles.fail_writes = True
    with pytest.raises(StoreError):
        save_inspection_data(vehicles, VID, _engine("G"), checklists=checklists)
    assert checklists.writes == []


def test_last_write_wins(vehicles):
    """Concurrent editors are not merged; the later full document replaces the earlier one."""
    first = {"mechanical": _engine("G")["mechanical"], "photos": [{"id": "p1", "label": "Exterior", "rating": "G"}]}
    save_inspection_data(vehicles, VID, first, initials="AA")
    save_inspection_data(vehicles, VID, _engine("F"), initials="BB")
    stored = vehicles.docs[VID]["inspection_data"]
    assert "photos" not in stored
    assert stored["mechanical"][0]["rating"] == "F"


def test_record_rating_updates_existing_item():
    data = record_rating(_engine("G"), "mechanical", "mechanical-1", "needs-attention", label="Engine", initials="JD", now=NOW)
    item = data["mechanical"][0]
    assert item["rating"] == "N"
    assert item["updatedBy"] == "JD"
    assert item["updatedAt"] == NOW


def test_record_rating_adds_new_item_without_mutating_input():
    original = _engine("G")
    data = record_rating(original, "photos", "photos-1", "fair", label="Exterior photos", initials="JD")
    assert data["photos"] == [
        {"id": "photos-1", "label": "Exterior photos", "rating": "F", "updatedBy": "JD", "updatedAt": data["photos"][0]["updatedAt"]}
    ]
    assert "photos" not in original


def test_record_rating_rejects_reserved_keys():
    with pytest.raises(ValueError):
        record_rating({}, "sectionNotes", "x", "great", label="x", initials="JD")


def test_update_checklist_status(checklists):
    with pytest.raises(ValueError):
        update_checklist_status(checklists, VID, "done")
    assert update_checklist_status(checklists, VID, "completed") is False

    checklists.docs[VID] = {"status": "in-progress", "completed_at": None}
    assert update_checklist_status(checklists, VID, "completed", notes="All good") is True
    assert checklists.docs[VID]["status"] == "completed"
    assert checklists.docs[VID]["completed_at"] is not None
    assert checklists.docs[VID]["notes"] == "All good"
