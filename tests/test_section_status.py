import pytest

from app.recon.modules.inspection_data.status import (
    categorize_vehicle,
    completion_percentage,
    is_ready_for_sale,
    overall_badge,
    section_status,
    section_statuses,
    summarize,
)


def _items(*ratings):
    return [{"id": f"i{n}", "label": f"Item {n}", "rating": r} for n, r in enumerate(ratings)]


def _all(rating):
    return {key: _items(rating) for key in ("emissions", "cosmetic", "mechanical", "cleaning", "photos")}


@pytest.mark.parametrize(
    "items, expected",
    [
        ([], "not-started"),
        (None, "not-started"),
        (_items("G", "G"), "completed"),
        (_items("G", "F"), "pending"),
        (_items("F", "N"), "needs-attention"),
        # a single unchecked item resets the whole section
        (_items("N", "not-checked"), "not-started"),
    ],
)
def test_section_status(items, expected):
    assert section_status(items) == expected


def test_section_statuses_cover_requested_keys_only():
    data = {"emissions": _items("G"), "extra": _items("N")}
    statuses = section_statuses(data, ["emissions", "photos"])
    assert statuses == {"emissions": "completed", "photos": "not-started"}


def test_completion_percentage():
    data = _all("G")
    data["photos"] = []
    statuses = section_statuses(data)
    assert completion_percentage(statuses) == 80
    assert completion_percentage({}) == 0
    # rounded half up
    assert completion_percentage({"a": "completed", "b": "pending", "c": "not-started"}) == 67
    assert completion_percentage({"a": "completed", "b": "not-started", "c": "not-started"}) == 33


def test_badge_precedence():
    data = _all("G")
    data["mechanical"] = _items("G", "N")
    data["photos"] = []
    summary = summarize(data)
    assert summary["progress"] == 80
    assert summary["badge"] == "needs-attention"
    assert summary["readyForSale"] is False

    assert overall_badge({"a": "pending", "b": "completed"}) == "in-progress"
    assert overall_badge({"a": "not-started"}) == "not-started"


def test_ready_for_sale_requires_every_section_completed():
    statuses = section_statuses(_all("G"))
    assert is_ready_for_sale(statuses) is True
    assert overall_badge(statuses) == "ready-for-sale"
    assert is_ready_for_sale({}) is False


def test_categorize_vehicle():
    active = {"isSold": False, "isPending": False}
    assert categorize_vehicle({"isSold": True}, _all("G")) is None
    assert categorize_vehicle({"isPending": True}, _all("G")) is None
    assert categorize_vehicle(active, {}) == "pending"
    assert categorize_vehicle(active, _all("G")) == "completed"
    assert categorize_vehicle(active, _all("N")) == "needs-attention"
    assert categorize_vehicle(active, _all("F")) == "pending"

    data = _all("G")
    data["photos"] = _items("G", "not-checked")
    assert categorize_vehicle(active, data) == "pending"


@pytest.mark.parametrize(
    "sections, expected",
    [
        # a red section outranks an untouched one
        ({"emissions": _items("N"), "cosmetic": []}, "needs-attention"),
        ({"emissions": _items("N"), "cosmetic": _items("G")}, "needs-attention"),
        ({"emissions": _items("G"), "cosmetic": _items("F")}, "pending"),
        ({"emissions": _items("G"), "cosmetic": []}, "pending"),
        ({"emissions": _items("G"), "cosmetic": _items("G")}, "completed"),
    ],
)
def test_categorize_vehicle_mixed_sections(sections, expected):
    active = {"isSold": False, "isPending": False}
    keys = ["emissions", "cosmetic"]
    assert categorize_vehicle(active, sections, keys) == expected


def test_category_agrees_with_badge_on_needs_attention():
    data = {"emissions": _items("N"), "cosmetic": _items("G")}
    assert overall_badge(section_statuses(data)) == "needs-attention"
    assert categorize_vehicle({}, data) == "needs-attention"
