"""Operations exposed to the API and to scheduled invocations."""
import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import requests

from matchmaking.interest_engine import (
    resolve_interests,
    shareable_revisits,
    validate_interest_selections,
)
from matchmaking.models import (
    Attendee,
    DispatchResult,
    Gender,
    MatchFormSubmission,
    PublicAttendee,
    TicketingEvent,
)
from matchmaking.normalize import capitalize_name, is_attendee_present, normalize_email
from matchmaking.public_names import make_public_attendees, opposite_pool, public_attendee_name
from matchmaking.result import ErrorKind, Failure, Result, Success, query_failed
from matchmaking.roster_reconciler import RosterReconciler
from notifications import messages
from notifications.mailer import EmailMessage
from storage.attendee_store import STORE_ERRORS
from storage.schedule_store import JobKind, NotificationKind

logger = logging.getLogger(__name__)

# Form opens this long before the event starts.
FORM_OPENS_BEFORE = timedelta(hours=8)
# Form closes at this UTC time on the day after the event starts.
FORM_CLOSES_AT_UTC = (12, 55)
RECENT_EVENT_WINDOW = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_open_for_submissions(event: TicketingEvent, now: datetime) -> bool:
    """Whether attendees of the event may currently use the match form."""
    if now < event.start_utc - FORM_OPENS_BEFORE:
        return False
    hour, minute = FORM_CLOSES_AT_UTC
    deadline = (event.start_utc + timedelta(days=1)).replace(
        hour=hour, minute=minute, second=0, microsecond=0
    )
    return now < deadline


def ended_within(
    event: TicketingEvent,
    now: datetime,
    window: timedelta = RECENT_EVENT_WINDOW,
    include_end: bool = True
) -> bool:
    """Whether the event ended no more than ``window`` before ``now``."""
    elapsed = now - event.end_utc
    if elapsed < timedelta(0) or (elapsed == timedelta(0) and not include_end):
        return False
    return elapsed <= window


def event_label(event: TicketingEvent) -> str:
    """Short ``month/day`` label of the event end date (UTC) used in subjects."""
    return f"{event.end_utc.month}/{event.end_utc.day}"


def _merge(total: DispatchResult, part: DispatchResult) -> None:
    total.sent += part.sent
    total.failed += part.failed
    total.skipped += part.skipped
    total.errors.extend(part.errors)


@dataclass
class ParticipantView:
    """Roster as returned to someone opening the match form."""
    is_admin: bool
    attendees: list
    previous_submission: Optional[Attendee] = None


@dataclass
class AdminParticipantView:
    """Roster as returned to an authenticated administrator."""
    public_attendees: List[PublicAttendee] = field(default_factory=list)
    admin_attendees: List[Attendee] = field(default_factory=list)


class EventService:
    """Coordinates ticketing, storage and email for event operations."""

    def __init__(self, settings, ticketing, store, schedule, mailer):
        """
        Args:
            settings: Settings instance
            ticketing: EventbriteClient
            store: AttendeeStore
            schedule: ScheduleStore
            mailer: Mailer
        """
        self.settings = settings
        self.ticketing = ticketing
        self.store = store
        self.schedule = schedule
        self.mailer = mailer
        self.reconciler = RosterReconciler(ticketing, store)

    # Events

    def list_all_events(self) -> Result[List[TicketingEvent]]:
        try:
            return Success(self.ticketing.list_events())
        except requests.RequestException as e:
            logger.error(f"Error fetching events from Eventbrite: {e}", exc_info=True)
            return query_failed('Error fetching events from Eventbrite.')

    def list_open_events(self, now: Optional[datetime] = None) -> Result[List[TicketingEvent]]:
        """Events whose match form currently accepts submissions."""
        now = now or _utcnow()
        events = self.list_all_events()
        if not events.ok:
            return events
        return Success([event for event in events.value if is_open_for_submissions(event, now)])

    # Rosters

    def is_admin_identity(self, first_name: str, last_name: str, email: str) -> bool:
        settings = self.settings
        return bool(settings.admin_email) and (
            first_name == settings.admin_first_name and
            last_name == settings.admin_last_name and
            email == settings.admin_email
        )

    def authenticate_admin(self, username: str, password: str) -> bool:
        """Check admin credentials sent by the admin pages."""
        settings = self.settings
        if not settings.admin_email or not settings.admin_password:
            return False
        return (
            normalize_email(username or '') == settings.admin_email and
            hmac.compare_digest((password or '').encode(), settings.admin_password.encode())
        )

    def get_event_participants(
        self,
        event_id: str,
        first_name: str,
        last_name: str,
        email: str
    ) -> Result[ParticipantView]:
        """
        Resolve an identity against an event and return what it may see.

        Attendees get the redacted roster of the opposite pool and their
        previous submission; they are marked as in attendance. The admin
        identity gets the full roster.
        """
        first_name = capitalize_name(first_name)
        last_name = capitalize_name(last_name)
        email = normalize_email(email)

        external = self.reconciler.fetch_external(event_id)
        if not external.ok:
            return external

        is_admin = self.is_admin_identity(first_name, last_name, email)
        if not is_admin and not is_attendee_present(first_name, last_name, email, external.value):
            return Failure(ErrorKind.NOT_FOUND, 'Participant is not present in Eventbrite.')

        reconciled = self.reconciler.reconcile(event_id, external=external.value)
        if not reconciled.ok:
            return reconciled
        roster = reconciled.value

        if is_admin:
            return Success(ParticipantView(is_admin=True, attendees=roster))

        attendee = next((att for att in roster if att.email == email), None)
        if attendee is not None and not attendee.in_attendance:
            self._mark_attendance(event_id, email)

        view = ParticipantView(
            is_admin=False,
            attendees=make_public_attendees(roster, attendee.gender if attendee else None)
        )
        if attendee is not None and attendee.has_submitted:
            view.previous_submission = attendee
        return Success(view)

    def get_admin_event_participants(self, event_id: str) -> Result[AdminParticipantView]:
        reconciled = self.reconciler.reconcile(event_id)
        if not reconciled.ok:
            return reconciled
        roster = reconciled.value
        # The admin pages preview the roster as a male attendee sees it.
        return Success(AdminParticipantView(
            public_attendees=make_public_attendees(roster, Gender.MALE),
            admin_attendees=roster
        ))

    def _mark_attendance(self, event_id: str, email: str) -> None:
        try:
            self.store.mark_in_attendance(event_id, email)
        except STORE_ERRORS as e:
            logger.error(f"Error updating attendance of {email} for event {event_id}: {e}")

    # Match form

    def submit_match_form(
        self,
        submission: MatchFormSubmission,
        now: Optional[datetime] = None
    ) -> Result[None]:
        """
        Validate and store a match form, then confirm it by email.

        A resubmission replaces the previous one.
        """
        validated = validate_interest_selections(submission.selections)
        if not validated.ok:
            return validated
        interests = validated.value

        open_events = self.list_open_events(now)
        if not open_events.ok:
            return open_events
        if not any(event.event_id == submission.event_id for event in open_events.value):
            return Failure(ErrorKind.CLOSED, 'Submissions for this event are now closed.')

        first_name = capitalize_name(submission.first_name)
        last_name = capitalize_name(submission.last_name)
        email = normalize_email(submission.email)

        try:
            roster = self.store.get_attendees(submission.event_id)
        except STORE_ERRORS as e:
            logger.error(f"Error loading roster for event {submission.event_id}: {e}", exc_info=True)
            return query_failed('Error fetching participants from database.')

        attendee = next((att for att in roster if att.email == email), None)
        if attendee is None or not is_attendee_present(first_name, last_name, email, roster):
            return Failure(ErrorKind.NOT_FOUND, 'Participant not found in the database.')

        pool = opposite_pool(roster, attendee.gender)
        pool_ids = {att.id for att in pool}
        if not pool_ids.issuperset(interests):
            logger.warning(
                f"Rejected selections of {attendee.key} outside their pool: "
                f"{sorted(set(interests) - pool_ids)}"
            )
            return Failure(ErrorKind.INVALID, 'Invalid interest selections.')

        try:
            self.store.save_match_form(submission.event_id, email, submission, interests)
        except STORE_ERRORS as e:
            logger.error(f"Error saving match form of {email}: {e}", exc_info=True)
            return query_failed('Error adding match form submission to database.')

        logger.info(
            f"Stored match form of {attendee.key} for event {submission.event_id}",
            extra={'event_id': submission.event_id, 'interests': len(interests)}
        )

        selected = set(interests)
        interest_people = [
            PublicAttendee(id=att.id, name=public_attendee_name(att, pool))
            for att in pool if att.id in selected
        ]
        self.mailer.send(EmailMessage(
            sender=self.settings.matches_email,
            recipient=attendee.email,
            subject=messages.confirmation_subject(),
            text=messages.confirmation_text(attendee, submission.notes or '', interest_people)
        ))
        return Success(None)

    # Results

    def send_event_results(self, event: TicketingEvent) -> Result[DispatchResult]:
        """
        Email every attendee of the event their matches and revisits.

        The dispatch is recorded in the notification ledger first, so an
        event is only processed once.
        """
        try:
            roster = self.store.get_attendees(event.event_id)
        except STORE_ERRORS as e:
            logger.error(f"Error loading roster for event {event.event_id}: {e}", exc_info=True)
            return query_failed('Error fetching participants from database.')

        try:
            first_dispatch = self.schedule.check_and_mark(event.event_id, NotificationKind.MATCH_RESULTS)
        except STORE_ERRORS as e:
            logger.error(f"Error updating notification ledger: {e}", exc_info=True)
            return query_failed('Error updating notification ledger.')
        if not first_dispatch:
            return Success(DispatchResult(skipped=len(roster)))

        label = event_label(event)
        resolutions = resolve_interests(roster)
        outgoing = []
        skipped = 0
        for attendee in roster:
            resolution = resolutions.get(attendee.key)
            if resolution is None or not attendee.in_attendance:
                logger.info(f"Not sending results to {attendee.key}: not matchable or not in attendance")
                skipped += 1
                continue
            shared, withheld = shareable_revisits(resolution.revisits, self.settings.revisit_policy)
            outgoing.append(EmailMessage(
                sender=self.settings.matches_email,
                recipient=attendee.email,
                subject=messages.match_results_subject(label),
                html=messages.match_results_html(attendee, resolution.matches, shared, withheld)
            ))

        logger.info(f"Starting emailer for event {event.event_id} ({len(outgoing)} recipients)")
        result = self.mailer.send_batch(outgoing)
        result.skipped += skipped

        self._send_feedback_summary(event, label, roster)
        return Success(result)

    def _send_feedback_summary(self, event: TicketingEvent, label: str, roster: List[Attendee]) -> None:
        try:
            if not self.schedule.check_and_mark(event.event_id, NotificationKind.FEEDBACK_SUMMARY):
                return
        except STORE_ERRORS as e:
            logger.error(f"Error updating notification ledger: {e}")
            return
        self.mailer.send(EmailMessage(
            sender=self.settings.matches_email,
            recipient=self.settings.contact_email,
            subject=messages.feedback_subject(label),
            html=messages.feedback_html(roster)
        ))

    def send_results_for_recent_events(self, now: Optional[datetime] = None) -> Result[DispatchResult]:
        """Send results for every event that ended during the last 24 hours."""
        now = now or _utcnow()
        events = self.list_all_events()
        if not events.ok:
            return events

        total = DispatchResult()
        for event in events.value:
            if not ended_within(event, now):
                continue
            try:
                if self.schedule.is_marked(event.event_id, NotificationKind.MATCH_RESULTS):
                    logger.info(f"Results for event {event.event_id} were already sent")
                    continue
            except STORE_ERRORS as e:
                logger.error(f"Error reading notification ledger for event {event.event_id}: {e}")
                total.errors.append(f"{event.event_id}: Error reading notification ledger.")
                continue
            result = self.send_event_results(event)
            if result.ok:
                _merge(total, result.value)
            else:
                total.errors.append(f"{event.event_id}: {result.message}")
        return Success(total)

    def send_results_for_event(self, event_id: str) -> Result[DispatchResult]:
        events = self.list_all_events()
        if not events.ok:
            return events
        event = next((event for event in events.value if event.event_id == event_id), None)
        if event is None:
            return Failure(ErrorKind.NOT_FOUND, 'Event not found.')
        return self.send_event_results(event)

    # Reminders

    def schedule_reminders(self, now: Optional[datetime] = None) -> Result[int]:
        """
        Persist a reminder job for each event that ended in the last 24 hours.

        Returns:
            Success with the number of newly scheduled jobs
        """
        now = now or _utcnow()
        events = self.list_all_events()
        if not events.ok:
            return events

        delay = timedelta(hours=self.settings.reminder_delay_hours)
        scheduled = 0
        for event in events.value:
            if not ended_within(event, now, include_end=False):
                continue
            due_at = event.end_utc + delay
            if due_at <= now:
                logger.info(f"Event {event.event_id} is past its reminder time, reminders will not be sent")
                continue
            try:
                if self.schedule.schedule_job(JobKind.SEND_REMINDERS, event.event_id, due_at):
                    scheduled += 1
            except STORE_ERRORS as e:
                logger.error(f"Error scheduling reminders for event {event.event_id}: {e}")
                return query_failed('Error scheduling reminder emails.')
        return Success(scheduled)

    def run_due_jobs(self, now: Optional[datetime] = None) -> Result[DispatchResult]:
        """Execute every pending job that is due; failed jobs stay pending."""
        now = now or _utcnow()
        try:
            jobs = self.schedule.get_due_jobs(now)
        except STORE_ERRORS as e:
            logger.error(f"Error loading due jobs: {e}", exc_info=True)
            return query_failed('Error loading scheduled jobs.')

        total = DispatchResult()
        for job in jobs:
            logger.info(f"Running job {job.job_key}")
            if job.kind == JobKind.SEND_REMINDERS:
                result = self.send_reminders(job.event_id)
            else:
                logger.warning(f"Unknown job kind {job.kind}")
                continue

            if not result.ok:
                total.errors.append(f"{job.job_key}: {result.message}")
                continue
            _merge(total, result.value)

            try:
                self.schedule.complete_job(job)
            except STORE_ERRORS as e:
                logger.error(f"Error completing job {job.job_key}: {e}")
        return Success(total)

    def send_reminders(self, event_id: str) -> Result[DispatchResult]:
        """Remind attendees who were present but did not submit the form."""
        try:
            attendees = self.store.get_attendees_to_remind(event_id)
        except STORE_ERRORS as e:
            logger.error(f"Error fetching attendees to remind for event {event_id}: {e}")
            return query_failed('Error fetching participants from database.')

        logger.info(f"Sending reminders for event id: {event_id} ({len(attendees)} recipients)")
        return Success(self.mailer.send_batch([
            EmailMessage(
                sender=self.settings.matches_email,
                recipient=att.email,
                subject=messages.reminder_subject(),
                html=messages.reminder_html(att.first_name, self.settings.match_form_url)
            )
            for att in attendees
        ]))

    # Contact

    def send_contact_query(self, name: str, email: str, message: str) -> Result[None]:
        if not name or not email or not message:
            return Failure(ErrorKind.INVALID, 'Name, email and message are required.')
        sent = self.mailer.send(EmailMessage(
            sender=self.settings.contact_email,
            recipient=self.settings.contact_email,
            subject=messages.contact_subject(name),
            text=messages.contact_text(name, normalize_email(email), message)
        ))
        if not sent:
            return query_failed('Error submitting contact query.')
        return Success(None)
