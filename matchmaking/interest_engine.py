"""Mutual-match and revisit resolution over an event roster."""
import logging
from enum import Enum
from typing import Dict, List, Tuple

from matchmaking.models import OPPOSITE_GENDER, Attendee, InterestResolution
from matchmaking.result import ErrorKind, Failure, Result, Success

logger = logging.getLogger(__name__)

MAX_INTEREST_SELECTIONS = 50


class RevisitPolicy(str, Enum):
    """Whether revisits are shared when the selector opted out of it."""
    RESPECT_OPT_OUT = 'respect_opt_out'
    SHARE_ALL = 'share_all'


def _parse_selection(value) -> int:
    if isinstance(value, bool):
        raise ValueError(f"not an attendee id: {value!r}")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
    else:
        raise ValueError(f"not an attendee id: {value!r}")
    if number <= 0:
        raise ValueError(f"not a positive attendee id: {value!r}")
    return number


def validate_interest_selections(selections) -> Result[List[int]]:
    """
    Validate the attendee IDs selected on a match form.

    Args:
        selections: Raw list from the form; entries may be ints or digit strings

    Returns:
        Success with the de-duplicated IDs in ascending order, or an
        INVALID failure
    """
    invalid = Failure(ErrorKind.INVALID, 'Invalid interest selections.')

    if not isinstance(selections, list) or len(selections) > MAX_INTEREST_SELECTIONS:
        logger.warning(f"Rejected interest selections: {selections!r}")
        return invalid

    try:
        ids = {_parse_selection(value) for value in selections}
    except ValueError as e:
        logger.warning(f"Rejected interest selections: {e}")
        return invalid

    return Success(sorted(ids))


def resolve_interests(roster: List[Attendee]) -> Dict[str, InterestResolution]:
    """
    Compute mutual matches and revisits for every matchable attendee.

    B is a match of A when each selected the other; B is a revisit of A
    when B selected A but A did not select B. Only attendees of the
    opposite gender are considered, and attendees outside the two matching
    genders get no entry.

    Args:
        roster: Full roster of one event

    Returns:
        Mapping of attendee key (e.g. ``Male3``) to its InterestResolution
    """
    results = {}
    for attendee in roster:
        opposite = OPPOSITE_GENDER.get(attendee.gender)
        if opposite is None:
            continue

        own_interests = set(attendee.interests or [])
        resolution = InterestResolution()
        for other in roster:
            if other.gender != opposite:
                continue
            if attendee.id not in (other.interests or []):
                continue
            if other.id in own_interests:
                resolution.matches.append(other)
            else:
                resolution.revisits.append(other)

        results[attendee.key] = resolution

    return results


def shareable_revisits(
    revisits: List[Attendee],
    policy: RevisitPolicy
) -> Tuple[List[Attendee], int]:
    """
    Split revisits into those whose contact may be shared and a withheld count.
    """
    if policy == RevisitPolicy.SHARE_ALL:
        return list(revisits), 0
    shared = [att for att in revisits if att.send_contact_to_non_mutual]
    return shared, len(revisits) - len(shared)
