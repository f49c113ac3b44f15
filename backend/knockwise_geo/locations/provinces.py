"""Canadian provinces and territories"""
from typing import List

from ..models import LocationSearchResult

PROVINCES = [
    ("ON", "Ontario"),
    ("QC", "Quebec"),
    ("BC", "British Columbia"),
    ("AB", "Alberta"),
    ("MB", "Manitoba"),
    ("SK", "Saskatchewan"),
    ("NS", "Nova Scotia"),
    ("NB", "New Brunswick"),
    ("NL", "Newfoundland and Labrador"),
    ("PE", "Prince Edward Island"),
    ("NT", "Northwest Territories"),
    ("YT", "Yukon"),
    ("NU", "Nunavut"),
]


def get_provinces() -> List[LocationSearchResult]:
    # The id is the two-letter code read as a base-36 number
    return [
        LocationSearchResult(name=name, type="province", id=int(code, 36))
        for code, name in PROVINCES
    ]
