"""
Maps the visitor's free-text "meet with" value to at most one staff member.

Matchers run in the order of STAFF_MATCHERS. Each matcher is tried against the
whole directory snapshot before the next one, so an exact full-name match on
any staff member beats a first-name match on an earlier one. Comparison is
case-insensitive and ignores surrounding whitespace; empty name parts never match.
"""

from typing import Callable, Iterable, Optional

from app.services.staff_directory import StaffDirectoryEntry


def _norm(value: Optional[str]) -> str:
    return " ".join((value or "").split()).casefold()


def _full_name(query: str, staff: StaffDirectoryEntry) -> bool:
    return _norm(staff.full_name) == query


def _email(query: str, staff: StaffDirectoryEntry) -> bool:
    return bool(staff.email) and _norm(staff.email) == query


def _first_name(query: str, staff: StaffDirectoryEntry) -> bool:
    return bool(_norm(staff.first_name)) and _norm(staff.first_name) == query


def _last_name(query: str, staff: StaffDirectoryEntry) -> bool:
    return bool(_norm(staff.last_name)) and _norm(staff.last_name) == query


def _substring(query: str, staff: StaffDirectoryEntry) -> bool:
    full = _norm(staff.full_name)
    if full and (full in query or query in full):
        return True
    for part in (_norm(staff.first_name), _norm(staff.last_name)):
        if part and part in query:
            return True
    return False


# First matcher with a hit wins.
STAFF_MATCHERS: list[tuple[str, Callable[[str, StaffDirectoryEntry], bool]]] = [
    ("full_name", _full_name),
    ("email", _email),
    ("first_name", _first_name),
    ("last_name", _last_name),
    ("substring", _substring),
]


def match_staff(meet_with: Optional[str],
                staff: Iterable[StaffDirectoryEntry]) -> Optional[tuple[str, StaffDirectoryEntry]]:
    """Return (matcher_name, entry) for the first match, or None."""
    query = _norm(meet_with)
    if not query:
        return None
    candidates = [s for s in staff if s.is_active]
    for name, matcher in STAFF_MATCHERS:
        for entry in candidates:
            if matcher(query, entry):
                return name, entry
    return None
