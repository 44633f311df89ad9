"""Runtime configuration read from environment variables."""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from matchmaking.interest_engine import RevisitPolicy


@dataclass
class Settings:
    """Configuration of the Lambda function."""
    eventbrite_token: str = ''
    eventbrite_org: str = ''
    attendees_table: str = 'event-attendees'
    schedule_table: str = 'event-schedule'
    matches_email: str = 'matches@sipsandsparks.org'
    contact_email: str = 'contact@sipsandsparks.org'
    admin_first_name: str = ''
    admin_last_name: str = ''
    admin_email: str = ''
    admin_password: str = ''
    log_level: str = 'INFO'
    timeout_seconds: int = 30
    email_send_delay_seconds: float = 5
    reminder_delay_hours: int = 1
    revisit_policy: RevisitPolicy = RevisitPolicy.RESPECT_OPT_OUT
    allowed_origin: str = 'https://sipsandsparks.org'
    match_form_url: str = 'https://sipsandsparks.org/match'
    aws_region: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read instead of os.environ

        Raises:
            ValueError: If a numeric variable or REVISIT_POLICY is malformed
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            eventbrite_token=env.get('EVENTBRITE_TOKEN', defaults.eventbrite_token),
            eventbrite_org=env.get('EVENTBRITE_ORG', defaults.eventbrite_org),
            attendees_table=env.get('ATTENDEES_TABLE', defaults.attendees_table),
            schedule_table=env.get('SCHEDULE_TABLE', defaults.schedule_table),
            matches_email=env.get('MATCHES_EMAIL', defaults.matches_email),
            contact_email=env.get('CONTACT_EMAIL', defaults.contact_email),
            admin_first_name=env.get('ADMIN_FIRST_NAME', defaults.admin_first_name),
            admin_last_name=env.get('ADMIN_LAST_NAME', defaults.admin_last_name),
            admin_email=env.get('ADMIN_EMAIL', defaults.admin_email).lower().strip(),
            admin_password=env.get('ADMIN_PASSWORD', defaults.admin_password),
            log_level=env.get('LOG_LEVEL', defaults.log_level),
            timeout_seconds=int(env.get('TIMEOUT_SECONDS', defaults.timeout_seconds)),
            email_send_delay_seconds=float(
                env.get('EMAIL_SEND_DELAY_SECONDS', defaults.email_send_delay_seconds)
            ),
            reminder_delay_hours=int(env.get('REMINDER_DELAY_HOURS', defaults.reminder_delay_hours)),
            revisit_policy=RevisitPolicy(env.get('REVISIT_POLICY', defaults.revisit_policy.value)),
            allowed_origin=env.get('ALLOWED_ORIGIN', defaults.allowed_origin),
            match_form_url=env.get('MATCH_FORM_URL', defaults.match_form_url),
            aws_region=env.get('AWS_REGION', defaults.aws_region)
        )
