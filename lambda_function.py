"""AWS Lambda handler for the speed-dating event operations backend."""
import json
import logging
import time
from typing import Any, Dict

from config import Settings
from gateway.routes import Router
from notifications.mailer import Mailer
from operations.event_service import EventService
from storage.attendee_store import AttendeeStore
from storage.schedule_store import ScheduleStore
from ticketing.eventbrite_client import EventbriteClient

TASK_SCHEDULE_REMINDERS = 'schedule-reminders'
TASK_RUN_DUE_JOBS = 'run-due-jobs'
TASK_SEND_MATCH_RESULTS = 'send-match-results'


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def build_service(settings: Settings) -> EventService:
    """Wire the service to its ticketing, storage and email collaborators."""
    return EventService(
        settings=settings,
        ticketing=EventbriteClient(
            token=settings.eventbrite_token,
            organization_id=settings.eventbrite_org,
            timeout=settings.timeout_seconds
        ),
        store=AttendeeStore(settings.attendees_table, region_name=settings.aws_region),
        schedule=ScheduleStore(settings.schedule_table, region_name=settings.aws_region),
        mailer=Mailer(
            send_delay_seconds=settings.email_send_delay_seconds,
            region_name=settings.aws_region
        )
    )


def is_http_event(event: Dict[str, Any]) -> bool:
    return 'httpMethod' in event or 'http' in event.get('requestContext', {})


def run_task(service: EventService, task: str) -> Dict[str, Any]:
    """
    Run a scheduled task.

    Returns:
        Statistics of the task

    Raises:
        ValueError: If the task is unknown
    """
    if task == TASK_SCHEDULE_REMINDERS:
        result = service.schedule_reminders()
        if not result.ok:
            return {'error': result.message}
        return {'jobs_scheduled': result.value}

    if task in (TASK_RUN_DUE_JOBS, TASK_SEND_MATCH_RESULTS):
        if task == TASK_RUN_DUE_JOBS:
            result = service.run_due_jobs()
        else:
            result = service.send_results_for_recent_events()
        if not result.ok:
            return {'error': result.message}
        return {
            'emails_sent': result.value.sent,
            'emails_failed': result.value.failed,
            'recipients_skipped': result.value.skipped,
            'errors': result.value.errors,
        }

    raise ValueError(f"Unknown task: {task}")


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function.

    API Gateway proxy events are routed to the HTTP endpoints; EventBridge
    schedule events carry ``{"task": ...}`` naming a scheduled task.

    Args:
        event: API Gateway or EventBridge event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and body
    """
    settings = Settings.from_env()

    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    service = build_service(settings)

    if is_http_event(event):
        return Router(service, allowed_origin=settings.allowed_origin).handle(event)

    task = event.get('task', '')
    logger.info(f"Lambda execution started", extra={'task': task})

    try:
        statistics = run_task(service, task)
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': f"Task {task} failed",
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }

    duration = time.time() - start_time
    statistics['duration_seconds'] = round(duration, 2)

    if 'error' in statistics:
        logger.error(f"Task {task} failed: {statistics['error']}")
        return {
            'statusCode': 502,
            'body': json.dumps({'message': f"Task {task} failed", **statistics})
        }

    logger.info(f"Lambda execution completed successfully", extra=statistics)
    return {
        'statusCode': 200,
        'body': json.dumps({'message': f"Task {task} completed", 'statistics': statistics})
    }
