"""DynamoDB store for the notification ledger and scheduled jobs."""
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    MATCH_RESULTS = 'match_results'
    FEEDBACK_SUMMARY = 'feedback_summary'


class JobKind(str, Enum):
    SEND_REMINDERS = 'send_reminders'


@dataclass
class ScheduledJob:
    """A pending action persisted with its due time."""
    job_key: str
    kind: JobKind
    event_id: str
    due_at: int
    status: str = 'pending'


def _is_conditional_failure(error: ClientError) -> bool:
    return error.response['Error']['Code'] == 'ConditionalCheckFailedException'


class ScheduleStore:
    """
    Table keyed by ``job_key`` holding two kinds of items.

    Ledger entries (``notified#<event_id>#<kind>``) record notifications
    that were dispatched. Jobs (``job#<kind>#<event_id>``) record actions
    due at a later time.
    """

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized ScheduleStore for table: {table_name}")

    @staticmethod
    def ledger_key(event_id: str, kind: NotificationKind) -> str:
        return f"notified#{event_id}#{kind.value}"

    @staticmethod
    def job_key(kind: JobKind, event_id: str) -> str:
        return f"job#{kind.value}#{event_id}"

    def check_and_mark(self, event_id: str, kind: NotificationKind) -> bool:
        """
        Record that a notification is being dispatched.

        Returns:
            True for the first caller, False if it was already recorded
        """
        try:
            self.table.put_item(
                Item={
                    'job_key': self.ledger_key(event_id, kind),
                    'event_id': event_id,
                    'kind': kind.value,
                    'marked_at': int(time.time()),
                },
                ConditionExpression='attribute_not_exists(job_key)'
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                logger.info(f"{kind.value} already dispatched for event {event_id}")
                return False
            raise
        return True

    def is_marked(self, event_id: str, kind: NotificationKind) -> bool:
        response = self.table.get_item(Key={'job_key': self.ledger_key(event_id, kind)})
        return 'Item' in response

    def schedule_job(self, kind: JobKind, event_id: str, due_at: datetime) -> bool:
        """
        Persist a job unless one with the same key already exists.

        Returns:
            True if the job was created
        """
        key = self.job_key(kind, event_id)
        try:
            self.table.put_item(
                Item={
                    'job_key': key,
                    'kind': kind.value,
                    'event_id': event_id,
                    'due_at': int(due_at.timestamp()),
                    'status': 'pending',
                },
                ConditionExpression='attribute_not_exists(job_key)'
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                logger.info(f"Job {key} already scheduled")
                return False
            raise
        logger.info(f"Scheduled job {key} for {due_at.isoformat()}")
        return True

    def get_due_jobs(self, now: datetime) -> List[ScheduledJob]:
        """Pending jobs whose due time is at or before ``now``."""
        scan = {
            'FilterExpression': (
                Attr('job_key').begins_with('job#') &
                Attr('status').eq('pending') &
                Attr('due_at').lte(int(now.timestamp()))
            )
        }
        response = self.table.scan(**scan)
        items = response.get('Items', [])

        while 'LastEvaluatedKey' in response:
            response = self.table.scan(
                ExclusiveStartKey=response['LastEvaluatedKey'],
                **scan
            )
            items.extend(response.get('Items', []))

        jobs = []
        for item in items:
            try:
                jobs.append(ScheduledJob(
                    job_key=item['job_key'],
                    kind=JobKind(item['kind']),
                    event_id=item['event_id'],
                    due_at=int(item['due_at']),
                    status=item['status']
                ))
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed job {item.get('job_key')}: {e}")

        return sorted(jobs, key=lambda job: job.due_at)

    def complete_job(self, job: ScheduledJob) -> None:
        self.table.update_item(
            Key={'job_key': job.job_key},
            UpdateExpression='SET #status = :done, completed_at = :now',
            ExpressionAttributeNames={'#status': 'status'},
            ExpressionAttributeValues={':done': 'done', ':now': int(time.time())}
        )
        job.status = 'done'
