"""Redacted attendee names shown to other attendees."""
from typing import List, Optional

from matchmaking.models import OPPOSITE_GENDER, Attendee, Gender, PublicAttendee


def public_attendee_name(attendee: Attendee, pool: List[Attendee]) -> str:
    """
    Build the display name of an attendee within the pool being shown.

    The first name alone is used unless someone else in the pool has the
    same first name. Then one letter of the last name is added, or two when
    a namesake also shares the last-name initial.
    """
    namesakes = [
        att for att in pool
        if att.first_name == attendee.first_name and att.last_name != attendee.last_name
    ]
    if not namesakes:
        return attendee.first_name

    initial = attendee.last_name[:1]
    if any(att.last_name[:1] == initial for att in namesakes):
        return f"{attendee.first_name} {attendee.last_name[:2]}"
    return f"{attendee.first_name} {initial}"


def opposite_pool(roster: List[Attendee], viewer_gender: Optional[Gender]) -> List[Attendee]:
    """Attendees a viewer of the given gender can select."""
    opposite = OPPOSITE_GENDER.get(viewer_gender)
    if opposite is None:
        return []
    return [att for att in roster if att.gender == opposite]


def make_public_attendees(
    roster: List[Attendee],
    viewer_gender: Optional[Gender]
) -> List[PublicAttendee]:
    """Redacted view of the pool a viewer of the given gender can select from."""
    pool = opposite_pool(roster, viewer_gender)
    return [
        PublicAttendee(id=att.id, name=public_attendee_name(att, pool))
        for att in pool
    ]
