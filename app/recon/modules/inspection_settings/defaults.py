"""
Default inspection settings for a dealership that has not customised anything.

``DEFAULT_INSPECTION_SETTINGS`` is a template: always hand out ``copy.deepcopy`` of it.
"""
from __future__ import annotations

RATING_LABEL_KEYS = ("great", "fair", "needs-attention", "not-checked")

# Storage-side rating codes, in rating-label order.
RATING_CODES = ("G", "F", "N", "not-checked")

# Sections every dealership starts with; progress and badges are computed over these.
CANONICAL_SECTION_KEYS = ("emissions", "cosmetic", "mechanical", "cleaning", "photos")

# Keys inside inspection data that are not sections.
RESERVED_DATA_KEYS = ("customSections", "sectionNotes")


def _items(section_key: str, labels: list[str]) -> list[dict]:
    return [
        {
            "id": f"{section_key}-{i}",
            "label": label,
            "description": "",
            "isRequired": True,
            "isActive": True,
            "order": i,
        }
        for i, label in enumerate(labels, start=1)
    ]


def _section(key: str, label: str, description: str, icon: str, color: str, order: int, items: list[str]) -> dict:
    return {
        "id": f"section-{key}",
        "key": key,
        "label": label,
        "description": description,
        "icon": icon,
        "color": color,
        "isActive": True,
        "isCustomerVisible": True,
        "order": order,
        "items": _items(key, items),
    }


DEFAULT_SECTIONS: list[dict] = [
    _section(
        "emissions",
        "Emissions",
        "State emissions and safety inspection",
        "🌿",
        "bg-green-100 text-green-800 border-green-200",
        1,
        ["Emissions test", "Safety inspection", "Check engine light"],
    ),
    _section(
        "cosmetic",
        "Cosmetic",
        "Body, paint, glass and interior condition",
        "🎨",
        "bg-purple-100 text-purple-800 border-purple-200",
        2,
        ["Paint and body", "Windshield and glass", "Interior condition", "Wheels and tires appearance"],
    ),
    _section(
        "mechanical",
        "Mechanical",
        "Engine, drivetrain, brakes and suspension",
        "🔧",
        "bg-blue-100 text-blue-800 border-blue-200",
        3,
        ["Engine", "Transmission", "Brakes", "Suspension", "Tires"],
    ),
    _section(
        "cleaning",
        "Cleaning",
        "Detail and reconditioning",
        "🧽",
        "bg-cyan-100 text-cyan-800 border-cyan-200",
        4,
        ["Exterior wash", "Interior detail", "Engine bay"],
    ),
    _section(
        "photos",
        "Photos",
        "Listing photography",
        "📷",
        "bg-orange-100 text-orange-800 border-orange-200",
        5,
        ["Exterior photos", "Interior photos"],
    ),
]

DEFAULT_RATING_LABELS: list[dict] = [
    {
        "key": "great",
        "label": "Great",
        "description": "Meets or exceeds dealership standards",
        "color": "bg-emerald-100 text-emerald-800 border-emerald-200",
    },
    {
        "key": "fair",
        "label": "Fair",
        "description": "Acceptable, minor work recommended",
        "color": "bg-yellow-100 text-yellow-800 border-yellow-200",
    },
    {
        "key": "needs-attention",
        "label": "Needs Attention",
        "description": "Must be addressed before sale",
        "color": "bg-red-100 text-red-800 border-red-200",
    },
    {
        "key": "not-checked",
        "label": "Not Checked",
        "description": "Not yet inspected",
        "color": "bg-gray-100 text-gray-800 border-gray-200",
    },
]

DEFAULT_GLOBAL_SETTINGS: dict = {
    "requireUserInitials": True,
    "allowSkipItems": False,
    "autoSaveProgress": True,
    "showProgressPercentage": True,
    "enableTeamNotes": True,
}

DEFAULT_CUSTOMER_PDF_SETTINGS: dict = {
    "includeVehiclePhotos": True,
    "includeCustomerComments": True,
    "showDetailedRatings": True,
    "footerText": "Thank you for choosing our dealership. Every vehicle is inspected by our certified team.",
}

DEFAULT_INSPECTION_SETTINGS: dict = {
    "id": "default",
    "dealershipId": "",
    "sections": DEFAULT_SECTIONS,
    "ratingLabels": DEFAULT_RATING_LABELS,
    "globalSettings": DEFAULT_GLOBAL_SETTINGS,
    "customerPdfSettings": DEFAULT_CUSTOMER_PDF_SETTINGS,
    "createdAt": "",
    "updatedAt": "",
}
