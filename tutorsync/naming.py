# tutorsync/naming.py

from __future__ import annotations

from typing import Any, Mapping, Optional

INQUIRIES = "inquiries"
BOOKINGS = "bookings"
MANUAL_MATCHES = "manual matches"
GENERIC = "generic"

# store collection -> canonical module
COLLECTION_MODULES: dict[str, str] = {
    "contacts": INQUIRIES,
    "bookings": BOOKINGS,
    "manualMatches": MANUAL_MATCHES,
}


def normalize_module(name: Optional[str]) -> str:
    """Collapses the many spellings of a module name onto one canonical form.

    Unknown names pass through lower-cased and trimmed.
    """
    if not name:
        return GENERIC
    if name in COLLECTION_MODULES:
        return COLLECTION_MODULES[name]

    m = name.lower().strip()
    if "match" in m:
        return MANUAL_MATCHES
    if "inquir" in m or "inquires" in m or "contact" in m:
        return INQUIRIES
    if "booking" in m or "consultation" in m:
        return BOOKINGS
    return m


def _known_collection(text: str) -> Optional[str]:
    if "inquir" in text or "contact" in text:
        return "contacts"
    if "booking" in text or "consultation" in text:
        return "bookings"
    if "match" in text:
        return "manualMatches"
    return None


def collection_for(entry: Mapping[str, Any]) -> Optional[str]:
    """Store collection a repository entry mirrors, or None if it names nothing."""
    category = str(entry.get("category") or "").lower().strip()
    name = str(entry.get("name") or "").lower().strip()

    for text in (category, name):
        if text:
            hit = _known_collection(text)
            if hit:
                return hit

    return category or name or None
