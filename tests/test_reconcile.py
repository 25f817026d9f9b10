"""
Rating-change audit notes.

Only rating changes and first ratings produce notes; removals and label edits are silent.
"""
import copy

from app.recon.modules.inspection_data.reconcile import build_rating_change_notes, prepend_notes, rating_label

NOW = "2026-05-01T12:00:00.000Z"


def _item(item_id, label, rating):
    return {"id": item_id, "label": label, "rating": rating}


def test_rating_label():
    assert rating_label("G") == "Great"
    assert rating_label("needs-attention") == "Needs Attention"
    assert rating_label(None) == "Not Checked"
    assert rating_label("") == "Not Checked"
    assert rating_label("X") == "X"


def test_first_rating_is_reported():
    notes = build_rating_change_notes({}, {"mechanical": [_item("m1", "Engine", "G")]}, initials="JD", now=NOW)
    assert len(notes) == 1
    note = notes[0]
    assert note["text"] == "Engine rated as Great"
    assert note["userInitials"] == "JD"
    assert note["category"] == "mechanical"
    assert note["timestamp"] == NOW
    assert note["id"].startswith("note-")


def test_changed_rating_is_reported():
    old = {"mechanical": [_item("m1", "Engine", "G")]}
    new = {"mechanical": [_item("m1", "Engine", "N")]}
    notes = build_rating_change_notes(old, new, initials="JD", now=NOW)
    assert [n["text"] for n in notes] == ["Engine changed from Great to Needs Attention"]


def test_unchanged_and_label_only_edits_are_silent():
    old = {"cosmetic": [_item("c1", "Paint", "F")]}
    new = {"cosmetic": [_item("c1", "Paint and body", "F")]}
    assert build_rating_change_notes(old, new, initials="JD") == []


def test_removed_items_are_silent():
    old = {"cosmetic": [_item("c1", "Paint", "F"), _item("c2", "Glass", "G")]}
    new = {"cosmetic": [_item("c1", "Paint", "F")]}
    assert build_rating_change_notes(old, new, initials="JD") == []


def test_unrated_new_item_is_silent():
    new = {"photos": [{"id": "p1", "label": "Exterior"}]}
    assert build_rating_change_notes({}, new, initials="JD") == []


def test_reserved_keys_are_not_sections():
    new = {"customSections": {"x": [_item("x1", "X", "G")]}, "sectionNotes": {"photos": "blurry"}}
    assert build_rating_change_notes({}, new, initials="JD") == []


def test_one_note_per_changed_item_across_sections():
    old = {"emissions": [_item("e1", "Emissions test", "not-checked")]}
    new = {
        "emissions": [_item("e1", "Emissions test", "G")],
        "cleaning": [_item("cl1", "Exterior wash", "F")],
    }
    notes = build_rating_change_notes(old, new, initials="AB", now=NOW)
    assert sorted(n["text"] for n in notes) == [
        "Emissions test changed from Not Checked to Great",
        "Exterior wash rated as Fair",
    ]
    assert {n["category"] for n in notes} == {"emissions", "cleaning"}


def test_author_falls_back_to_user_id():
    notes = build_rating_change_notes({}, {"photos": [_item("p1", "Exterior", "G")]}, user_id="42")
    assert notes[0]["userInitials"] == "42"


def test_inputs_are_not_mutated():
    old = {"mechanical": [_item("m1", "Engine", "G")]}
    new = {"mechanical": [_item("m1", "Engine", "F")]}
    old_copy, new_copy = copy.deepcopy(old), copy.deepcopy(new)
    build_rating_change_notes(old, new, initials="JD")
    assert old == old_copy
    assert new == new_copy


def test_prepend_notes_keeps_newest_first():
    existing = [{"id": "note-old", "text": "older"}]
    new = [{"id": "note-a", "text": "a"}, {"id": "note-b", "text": "b"}]
    assert [n["id"] for n in prepend_notes(existing, new)] == ["note-a", "note-b", "note-old"]
    assert prepend_notes(None, []) == []
