"""Normalization helpers for names, emails and rosters."""
from typing import Iterable, List

from matchmaking.models import Attendee


def _fold(value: str) -> str:
    return value.lower().strip()


def normalize_email(value: str) -> str:
    """Lowercase and trim an email address."""
    return _fold(value)


def capitalize_name(name: str) -> str:
    """Trim a name and upper-case its first character."""
    trimmed = name.strip()
    if not trimmed:
        return trimmed
    return trimmed[0].upper() + trimmed[1:]


def dedupe_by_email(attendees: Iterable[Attendee]) -> List[Attendee]:
    """Drop attendees whose email was already seen, keeping the first one."""
    seen = set()
    unique = []
    for attendee in attendees:
        if attendee.email in seen:
            continue
        seen.add(attendee.email)
        unique.append(attendee)
    return unique


def sort_attendees(attendees: Iterable[Attendee]) -> List[Attendee]:
    """Sort by first name, then last name (case-sensitive)."""
    return sorted(attendees, key=lambda att: (att.first_name, att.last_name))


def is_attendee_present(
    first_name: str,
    last_name: str,
    email: str,
    attendees: Iterable[Attendee]
) -> bool:
    """
    Check whether an identity matches an attendee of the roster.

    The email must match exactly; names are compared case-insensitively.
    """
    first = _fold(first_name)
    last = _fold(last_name)
    return any(
        att.email == email and
        _fold(att.first_name) == first and
        _fold(att.last_name) == last
        for att in attendees
    )
