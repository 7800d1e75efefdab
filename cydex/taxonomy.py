"""
Static lookup tables for sector and priority inference.

Unknown agencies and role types fall through to explicit defaults.
"""

from types import MappingProxyType
from typing import Iterable, List, Optional, Tuple

DEFAULT_SECTORS: Tuple[str, ...] = ("Government Facilities",)
DEFAULT_PRIORITY = 5
DEFAULT_ROLE_TYPE = "field"

AGENCY_SECTORS = MappingProxyType({
    "CISA": ("Government Facilities", "Critical Manufacturing", "Information Technology"),
    "FBI": ("Government Facilities", "Critical Manufacturing"),
    "USSS": ("Government Facilities", "Financial Services"),
    "FEMA": ("Emergency Services", "Government Facilities"),
    "EPA": ("Water Systems", "Chemical Sector"),
    "DOE": ("Energy", "Nuclear Reactors"),
    "TSA": ("Transportation Systems",),
    "USCG": ("Transportation Systems", "Maritime"),
    "NRC": ("Nuclear Reactors", "Energy"),
    "HHS-ASPR": ("Healthcare", "Emergency Services"),
})

ROLE_PRIORITY = MappingProxyType({
    "regional": 1,
    "lab": 1,
    "field": 2,
    "sector": 3,
    "resident": 4,
})

# Checked in order; first keyword found in the office name wins
ROLE_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("region", "regional"),
    ("field", "field"),
    ("resident", "resident"),
    ("sector", "sector"),
    ("lab", "lab"),
)


def infer_sectors(agency: Optional[str], functions: Iterable[str] = ()) -> List[str]:
    """Sectors for an agency. The lookup is keyed on agency alone; functions are ignored."""
    key = (agency or "").strip().upper()
    return list(AGENCY_SECTORS.get(key, DEFAULT_SECTORS))


def assign_priority(role_type: Optional[str]) -> int:
    return ROLE_PRIORITY.get((role_type or "").strip().lower(), DEFAULT_PRIORITY)


def infer_role_type(office_name: str) -> str:
    name = office_name.lower()
    for keyword, role in ROLE_KEYWORDS:
        if keyword in name:
            return role
    return DEFAULT_ROLE_TYPE
