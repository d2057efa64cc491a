# petship/services/documents_scaffold.py
from __future__ import annotations

from copy import deepcopy

SHIPPING_DOMESTIC = "domestic"
SHIPPING_INTERNATIONAL = "international"

SHIPPING_TYPE_OPTIONS = [
    (SHIPPING_DOMESTIC, "Domestic"),
    (SHIPPING_INTERNATIONAL, "International"),
]

_HEALTH_CERT = {
    "name": "Health Certificate",
    "description": "Veterinary health certificate issued within 10 days of travel.",
    "required": True,
    "category": "health_certificate",
}
_RABIES = {
    "name": "Rabies Vaccination Record",
    "description": "Current rabies vaccination certificate signed by a licensed veterinarian.",
    "required": True,
    "category": "vaccination_record",
}
_PHOTO = {
    "name": "Pet Photo",
    "description": "Recent clear photo of the pet for identification at handover.",
    "required": False,
    "category": "photo",
}

DEFAULT_SCAFFOLDS = {
    SHIPPING_DOMESTIC: {
        "title": "Domestic Pet Travel",
        "description": "Baseline paperwork for shipments within the country.",
        "requirements": [_HEALTH_CERT, _RABIES, _PHOTO],
    },
    SHIPPING_INTERNATIONAL: {
        "title": "International Pet Travel",
        "description": "Baseline paperwork for shipments crossing a border.",
        "requirements": [
            _HEALTH_CERT,
            _RABIES,
            {
                "name": "Import Permit",
                "description": "Import permit from the destination country's agriculture authority.",
                "required": True,
                "category": "import_permit",
            },
            {
                "name": "Export Permit",
                "description": "Export endorsement from the origin country, where required.",
                "required": False,
                "category": "export_permit",
            },
            _PHOTO,
        ],
    },
}

# Extra lines by pet type; appended to the scaffold.
PET_TYPE_EXTRAS = {
    "dog": [],
    "cat": [],
    "other": [
        {
            "name": "Species Handling Notes",
            "description": "Care and handling notes for non-dog/cat animals.",
            "required": False,
            "category": "other",
        }
    ],
}


def make_requirements_scaffold(shipping_type: str, pet_type: str | None = None) -> dict:
    base = DEFAULT_SCAFFOLDS.get(shipping_type)
    if not base:
        return {}
    scaffold = deepcopy(base)
    if pet_type:
        scaffold["requirements"].extend(deepcopy(PET_TYPE_EXTRAS.get(pet_type, [])))
    return scaffold
