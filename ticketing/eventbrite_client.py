"""Eventbrite API client for events and attendee rosters."""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List

import requests

from matchmaking.models import Attendee, Gender, TicketingEvent
from matchmaking.normalize import capitalize_name, dedupe_by_email, normalize_email

logger = logging.getLogger(__name__)


class EventbriteClient:
    """Client for the Eventbrite v3 REST API."""

    BASE_URL = "https://www.eventbriteapi.com/v3"
    MAX_RETRIES = 3

    TICKET_CLASS_TO_GENDER = {
        'Male Ticket': Gender.MALE,
        'Female Ticket': Gender.FEMALE,
    }

    def __init__(
        self,
        token: str,
        organization_id: str,
        timeout: int = 30,
        retry_delay: float = 1
    ):
        """
        Initialize the Eventbrite client.

        Args:
            token: Private OAuth token
            organization_id: Organization whose events are listed
            timeout: HTTP request timeout in seconds (default: 30)
            retry_delay: Base delay in seconds for exponential backoff
        """
        self.token = token
        self.organization_id = organization_id
        self.timeout = timeout
        self.retry_delay = retry_delay

    def list_events(self) -> List[TicketingEvent]:
        """
        Fetch every event of the organization.

        Returns:
            List of TicketingEvent objects
        """
        url = f"{self.BASE_URL}/organizations/{self.organization_id}/events/"
        raw_events = self._get_paginated(url, 'events')

        events = []
        for raw in raw_events:
            try:
                events.append(self._parse_event(raw))
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed event {raw.get('id')}: {e}")

        logger.info(f"Fetched {len(events)} events from Eventbrite")
        return events

    def list_attendees(self, event_id: str) -> List[Attendee]:
        """
        Fetch the attending registrants of an event.

        Names are capitalized, emails normalized and duplicates by email
        dropped, keeping the first registration.

        Args:
            event_id: Eventbrite event ID

        Returns:
            List of Attendee objects without IDs assigned
        """
        url = f"{self.BASE_URL}/events/{event_id}/attendees/"
        raw_attendees = self._get_paginated(url, 'attendees')

        attendees = [
            self._parse_attendee(raw)
            for raw in raw_attendees
            if raw.get('status') == 'Attending'
        ]
        attendees = dedupe_by_email(attendees)

        logger.info(f"Fetched {len(attendees)} attendees for event {event_id}")
        return attendees

    def _get_paginated(self, url: str, key: str) -> List[Dict[str, Any]]:
        """
        Collect ``key`` items from every page of a list endpoint.

        Args:
            url: Endpoint URL
            key: Name of the list in each page body

        Returns:
            Items of all pages in order
        """
        items = []
        page = 1
        while True:
            data = self._get_json(url, params={'page': page})
            items.extend(data.get(key, []))
            if not data.get('pagination', {}).get('has_more_items'):
                return items
            page += 1

    def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        GET a JSON document with retry logic.

        Raises:
            requests.RequestException: If all retry attempts fail
        """
        headers = {'Authorization': f"Bearer {self.token}"}

        for attempt in range(self.MAX_RETRIES):
            try:
                logger.debug(f"GET {url} {params} (attempt {attempt + 1}/{self.MAX_RETRIES})")
                response = requests.get(
                    url,
                    params=params,
                    headers=headers,
                    timeout=self.timeout
                )
                response.raise_for_status()
                return response.json()

            except requests.RequestException as e:
                if attempt < self.MAX_RETRIES - 1:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.MAX_RETRIES}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.MAX_RETRIES} retry attempts failed. Last error: {e}"
                    )
                    raise

    def _parse_event(self, raw: Dict[str, Any]) -> TicketingEvent:
        return TicketingEvent(
            event_id=str(raw['id']),
            name=raw['name']['text'],
            start_utc=_parse_utc(raw['start']['utc']),
            end_utc=_parse_utc(raw['end']['utc']),
            start_local=raw['start'].get('local', '')
        )

    def _parse_attendee(self, raw: Dict[str, Any]) -> Attendee:
        profile = raw.get('profile', {})
        return Attendee(
            first_name=capitalize_name(profile.get('first_name', '')),
            last_name=capitalize_name(profile.get('last_name', '')),
            email=normalize_email(profile.get('email', '')),
            gender=self.TICKET_CLASS_TO_GENDER.get(
                raw.get('ticket_class_name'), Gender.OTHER
            )
        )


def _parse_utc(value: str) -> datetime:
    """Parse an Eventbrite UTC timestamp such as ``2024-01-15T02:00:00Z``."""
    return datetime.strptime(value, '%Y-%m-%dT%H:%M:%SZ').replace(tzinfo=timezone.utc)
