"""Data models for roster reconciliation and interest matching."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class Gender(str, Enum):
    """Ticket categories an attendee can register under."""
    MALE = 'Male'
    FEMALE = 'Female'
    OTHER = 'Other'


# Only these two categories take part in matching.
OPPOSITE_GENDER: Dict[Gender, Gender] = {
    Gender.MALE: Gender.FEMALE,
    Gender.FEMALE: Gender.MALE,
}


@dataclass
class Attendee:
    """One registrant of one event."""
    first_name: str
    last_name: str
    email: str
    gender: Gender
    id: int = 0
    in_attendance: bool = False
    # None: form not submitted yet. []: submitted without selections.
    interests: Optional[List[int]] = None
    notes: Optional[str] = None
    feedback: Optional[str] = None
    referral_info: Optional[str] = None
    website_feedback: Optional[str] = None
    cell_phone: Optional[str] = None
    send_contact_to_non_mutual: bool = False

    @property
    def key(self) -> str:
        """Identifier unique within an event, e.g. ``Female3``."""
        return f"{self.gender.value}{self.id}"

    @property
    def has_submitted(self) -> bool:
        return self.interests is not None


@dataclass
class PublicAttendee:
    """Attendee as shown to other attendees."""
    id: int
    name: str


@dataclass
class TicketingEvent:
    """Event as listed by the ticketing platform."""
    event_id: str
    name: str
    start_utc: datetime
    end_utc: datetime
    start_local: str


@dataclass
class MatchFormSubmission:
    """Post-event form as submitted by an attendee."""
    event_id: str
    first_name: str
    last_name: str
    email: str
    selections: list
    notes: str = ''
    feedback: str = ''
    referral_info: str = ''
    cell_phone: str = ''
    website_feedback: str = ''
    send_contact_to_non_mutual: bool = False


@dataclass
class RosterDelta:
    """Outcome of reconciling an external roster with the persisted one."""
    roster: List[Attendee]
    new_arrivals: List[Attendee]


@dataclass
class InterestResolution:
    """Mutual matches and one-sided revisits of a single attendee."""
    matches: List[Attendee] = field(default_factory=list)
    revisits: List[Attendee] = field(default_factory=list)


@dataclass
class DispatchResult:
    """Result of sending a batch of emails."""
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
