"""Reconciliation of the ticketing roster with the persisted roster."""
import logging
from collections import Counter
from dataclasses import replace
from typing import List, Optional

import requests

from matchmaking.models import Attendee, Gender, RosterDelta
from matchmaking.normalize import dedupe_by_email, sort_attendees
from matchmaking.result import Result, Success, query_failed
from storage.attendee_store import STORE_ERRORS

logger = logging.getLogger(__name__)


def assign_ids(attendees: List[Attendee], starting_index: int = 0) -> List[Attendee]:
    """
    Number attendees sequentially in their current order.

    Args:
        attendees: Attendees of a single gender, already sorted
        starting_index: Number of IDs already taken in this gender

    Returns:
        Copies of the attendees with ``id`` set to starting_index + 1, + 2, ...
    """
    return [
        replace(attendee, id=starting_index + index + 1)
        for index, attendee in enumerate(attendees)
    ]


def _assign_by_gender(attendees: List[Attendee], taken: Counter) -> List[Attendee]:
    ordered = sort_attendees(attendees)
    assigned = []
    for gender in Gender:
        partition = [att for att in ordered if att.gender == gender]
        assigned.extend(assign_ids(partition, taken[gender]))
    return assigned


def reconcile_roster(
    external: List[Attendee],
    persisted: List[Attendee]
) -> RosterDelta:
    """
    Merge the ticketing roster into the persisted roster.

    Persisted attendees keep their IDs. Attendees whose email is not yet
    persisted are sorted by (first name, last name) and numbered per gender,
    continuing after the attendees of that gender already persisted.

    Args:
        external: Current roster from the ticketing platform
        persisted: Roster currently stored for the event

    Returns:
        RosterDelta with the full roster and the attendees to persist
    """
    external = dedupe_by_email(external)

    if not persisted:
        new_arrivals = _assign_by_gender(external, Counter())
        return RosterDelta(roster=new_arrivals, new_arrivals=new_arrivals)

    known_emails = {att.email for att in persisted}
    arrivals = [att for att in external if att.email not in known_emails]
    if not arrivals:
        return RosterDelta(roster=list(persisted), new_arrivals=[])

    taken = Counter(att.gender for att in persisted)
    new_arrivals = _assign_by_gender(arrivals, taken)
    return RosterDelta(roster=list(persisted) + new_arrivals, new_arrivals=new_arrivals)


class RosterReconciler:
    """Keeps the persisted roster of an event in step with the ticketing platform."""

    def __init__(self, ticketing, store):
        """
        Args:
            ticketing: Client exposing ``list_attendees(event_id)``
            store: Store exposing ``get_attendees`` and ``add_attendees``
        """
        self.ticketing = ticketing
        self.store = store

    def fetch_external(self, event_id: str) -> Result[List[Attendee]]:
        """Fetch the ticketing roster, reporting failures as a result."""
        try:
            return Success(self.ticketing.list_attendees(event_id))
        except requests.RequestException as e:
            logger.error(
                f"Error fetching participants for event {event_id}: {e}",
                exc_info=True
            )
            return query_failed('Error fetching participants from Eventbrite.')

    def reconcile(
        self,
        event_id: str,
        external: Optional[List[Attendee]] = None
    ) -> Result[List[Attendee]]:
        """
        Reconcile and return the complete ID-assigned roster of an event.

        Args:
            event_id: Ticketing event ID
            external: Ticketing roster if already fetched by the caller

        Returns:
            Success with the roster, or a QUERY_FAILED failure
        """
        if external is None:
            fetched = self.fetch_external(event_id)
            if not fetched.ok:
                return fetched
            external = fetched.value

        try:
            persisted = self.store.get_attendees(event_id)
        except STORE_ERRORS as e:
            logger.error(f"Error loading roster for event {event_id}: {e}", exc_info=True)
            return query_failed('Error fetching participants from database.')

        delta = reconcile_roster(external, persisted)
        if not delta.new_arrivals:
            logger.info(f"Roster for event {event_id} is up to date ({len(delta.roster)} attendees)")
            return Success(delta.roster)

        logger.info(
            f"Persisting {len(delta.new_arrivals)} new attendees for event {event_id}",
            extra={'event_id': event_id, 'initial': not persisted}
        )
        try:
            self.store.add_attendees(event_id, delta.new_arrivals)
        except STORE_ERRORS as e:
            logger.error(f"Error adding participants for event {event_id}: {e}", exc_info=True)
            return query_failed('Error adding participants to database.')

        return Success(delta.roster)
