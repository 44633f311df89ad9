"""DynamoDB store for event rosters and match form submissions."""
import logging
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from matchmaking.models import Attendee, Gender, MatchFormSubmission

logger = logging.getLogger(__name__)

# Stored in place of the interest list when a form was submitted without selections.
NO_INTERESTS_SENTINEL = '--'


class MalformedItemError(ValueError):
    """A stored row cannot be read back as an Attendee."""


# Failures of a store call that callers report as a result.
STORE_ERRORS = (ClientError, BotoCoreError, MalformedItemError)


class AttendeeStore:
    """Roster table keyed by (event_id, email)."""

    TRANSACTION_SIZE = 100  # DynamoDB TransactWriteItems limit

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
            region_name: AWS region, defaults to the environment's
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        self.client = boto3.client('dynamodb', region_name=region_name)
        self._serializer = TypeSerializer()
        logger.info(f"Initialized AttendeeStore for table: {table_name}")

    def get_attendees(self, event_id: str) -> List[Attendee]:
        """
        Retrieve the roster of an event.

        Args:
            event_id: Ticketing event ID

        Returns:
            Attendees ordered by ID

        Raises:
            MalformedItemError: If a stored row cannot be converted
        """
        query = {'KeyConditionExpression': Key('event_id').eq(event_id)}
        response = self.table.query(**query)
        items = response.get('Items', [])

        while 'LastEvaluatedKey' in response:
            response = self.table.query(
                ExclusiveStartKey=response['LastEvaluatedKey'],
                **query
            )
            items.extend(response.get('Items', []))

        attendees = [self._item_to_attendee(item) for item in items]

        logger.info(f"Retrieved {len(attendees)} attendees for event {event_id}")
        return sorted(attendees, key=lambda att: att.id)

    def get_attendees_to_remind(self, event_id: str) -> List[Attendee]:
        """Attendees who were at the event but have not submitted a form."""
        return [
            att for att in self.get_attendees(event_id)
            if att.in_attendance and not att.has_submitted
        ]

    def add_attendees(self, event_id: str, attendees: List[Attendee]) -> int:
        """
        Upsert roster rows as one unit.

        Name, gender and ID are written; submission fields of an existing
        row are left untouched. Rows are written in transactions of 100. If
        a transaction fails, rows written by earlier transactions of the
        same call are deleted again and the error is re-raised.

        Args:
            event_id: Ticketing event ID
            attendees: Attendees with IDs assigned

        Returns:
            Count of rows written

        Raises:
            ClientError: If any transaction fails
        """
        if not attendees:
            return 0

        logger.info(f"Writing {len(attendees)} attendees for event {event_id}")
        written: List[Attendee] = []

        for i in range(0, len(attendees), self.TRANSACTION_SIZE):
            chunk = attendees[i:i + self.TRANSACTION_SIZE]
            try:
                self.client.transact_write_items(
                    TransactItems=[self._upsert_action(event_id, att) for att in chunk]
                )
            except ClientError as e:
                logger.error(
                    f"Error writing transaction {i // self.TRANSACTION_SIZE + 1} "
                    f"for event {event_id}: {e}"
                )
                self._rollback(event_id, written)
                raise
            written.extend(chunk)

        logger.info(f"Successfully wrote {len(written)} attendees")
        return len(written)

    def mark_in_attendance(self, event_id: str, email: str) -> bool:
        """
        Flag an attendee as present at the event.

        Returns:
            False if the attendee is not on the roster
        """
        try:
            self.table.update_item(
                Key={'event_id': event_id, 'email': email},
                UpdateExpression='SET in_attendance = :present',
                ConditionExpression='attribute_exists(email)',
                ExpressionAttributeValues={':present': True}
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                logger.warning(f"Cannot mark attendance, {email} not on roster of {event_id}")
                return False
            raise
        return True

    def save_match_form(
        self,
        event_id: str,
        email: str,
        submission: MatchFormSubmission,
        interests: List[int]
    ) -> None:
        """
        Store a match form submission, replacing any earlier one.

        Args:
            event_id: Ticketing event ID
            email: Normalized email of the submitting attendee
            submission: Free-form fields of the form
            interests: Validated attendee IDs
        """
        self.table.update_item(
            Key={'event_id': event_id, 'email': email},
            UpdateExpression=(
                'SET interests = :interests, feedback = :feedback, '
                'referral_info = :referral_info, cell_phone = :cell_phone, '
                'notes = :notes, website_feedback = :website_feedback, '
                'send_contact_to_non_mutual = :send_contact'
            ),
            ConditionExpression='attribute_exists(email)',
            ExpressionAttributeValues={
                ':interests': encode_interests(interests),
                ':feedback': submission.feedback or '',
                ':referral_info': submission.referral_info or '',
                ':cell_phone': submission.cell_phone or '',
                ':notes': submission.notes or '',
                ':website_feedback': submission.website_feedback or '',
                ':send_contact': bool(submission.send_contact_to_non_mutual),
            }
        )

    def _upsert_action(self, event_id: str, attendee: Attendee) -> Dict[str, Any]:
        values = {
            ':first_name': attendee.first_name,
            ':last_name': attendee.last_name,
            ':gender': attendee.gender.value,
            ':attendee_id': attendee.id,
        }
        return {
            'Update': {
                'TableName': self.table_name,
                'Key': {
                    'event_id': {'S': event_id},
                    'email': {'S': attendee.email},
                },
                'UpdateExpression': (
                    'SET first_name = :first_name, last_name = :last_name, '
                    'gender = :gender, attendee_id = :attendee_id'
                ),
                'ExpressionAttributeValues': {
                    name: self._serializer.serialize(value)
                    for name, value in values.items()
                },
            }
        }

    def _rollback(self, event_id: str, attendees: List[Attendee]) -> None:
        if not attendees:
            return
        logger.warning(f"Rolling back {len(attendees)} attendees for event {event_id}")
        with self.table.batch_writer() as writer:
            for attendee in attendees:
                writer.delete_item(Key={'event_id': event_id, 'email': attendee.email})

    def _item_to_attendee(self, item: dict) -> Attendee:
        """
        Convert DynamoDB item to Attendee object.

        Returns:
            Attendee object

        Raises:
            MalformedItemError: If a required attribute is missing or invalid
        """
        try:
            return Attendee(
                first_name=item['first_name'],
                last_name=item['last_name'],
                email=item['email'],
                gender=Gender(item['gender']),
                id=int(item['attendee_id']),
                in_attendance=bool(item.get('in_attendance', False)),
                interests=decode_interests(item.get('interests')),
                notes=item.get('notes'),
                feedback=item.get('feedback'),
                referral_info=item.get('referral_info'),
                website_feedback=item.get('website_feedback'),
                cell_phone=item.get('cell_phone'),
                send_contact_to_non_mutual=bool(item.get('send_contact_to_non_mutual', False))
            )
        except (KeyError, ValueError) as e:
            logger.error(f"Failed to convert item {item.get('email')} to Attendee: {e}")
            raise MalformedItemError(f"Malformed roster item {item.get('email')}: {e}") from e


def encode_interests(interests: List[int]) -> str:
    """Serialize validated interests, using the sentinel for an empty list."""
    if not interests:
        return NO_INTERESTS_SENTINEL
    return ','.join(str(attendee_id) for attendee_id in interests)


def decode_interests(value: Optional[str]) -> Optional[List[int]]:
    """Inverse of encode_interests; None means the form was never submitted."""
    if value is None:
        return None
    if value == NO_INTERESTS_SENTINEL:
        return []
    return [int(part) for part in value.split(',') if part]
