"""Email delivery through Amazon SES."""
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

import boto3
from bs4 import BeautifulSoup
from botocore.exceptions import BotoCoreError, ClientError

from matchmaking.models import DispatchResult

logger = logging.getLogger(__name__)


@dataclass
class EmailMessage:
    """A single outgoing email; at least one of html or text is set."""
    sender: str
    recipient: str
    subject: str
    html: Optional[str] = None
    text: Optional[str] = None


def html_to_text(html: str) -> str:
    """Render the plain-text alternative of an HTML body."""
    soup = BeautifulSoup(html, 'html.parser')
    for br in soup.find_all('br'):
        br.replace_with('\n')
    return soup.get_text().strip()


class Mailer:
    """Sends emails one at a time, pausing between sends in a batch."""

    CHARSET = 'UTF-8'

    def __init__(self, send_delay_seconds: float = 5, region_name: Optional[str] = None):
        """
        Args:
            send_delay_seconds: Pause between two sends of a batch
            region_name: AWS region of the SES endpoint
        """
        self.send_delay_seconds = send_delay_seconds
        self.ses = boto3.client('ses', region_name=region_name)

    def send(self, message: EmailMessage) -> bool:
        """
        Send one email.

        Returns:
            True if SES accepted the message; failures are logged
        """
        body = {}
        if message.html is not None:
            body['Html'] = {'Charset': self.CHARSET, 'Data': message.html}
        text = message.text if message.text is not None else html_to_text(message.html or '')
        body['Text'] = {'Charset': self.CHARSET, 'Data': text}

        try:
            response = self.ses.send_email(
                Source=message.sender,
                Destination={'ToAddresses': [message.recipient]},
                Message={
                    'Subject': {'Charset': self.CHARSET, 'Data': message.subject},
                    'Body': body,
                }
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                f"Error sending '{message.subject}' to {message.recipient}: {e}",
                extra={'error_type': type(e).__name__}
            )
            return False

        logger.info(f"Sent '{message.subject}' to {message.recipient} ({response.get('MessageId')})")
        return True

    def send_batch(self, messages: List[EmailMessage]) -> DispatchResult:
        """
        Send emails serially with a fixed delay between them.

        A failed send is recorded and the batch continues.
        """
        result = DispatchResult()
        for index, message in enumerate(messages):
            if index > 0 and self.send_delay_seconds > 0:
                time.sleep(self.send_delay_seconds)
            if self.send(message):
                result.sent += 1
            else:
                result.failed += 1
                result.errors.append(f"Failed to send '{message.subject}' to {message.recipient}")
        return result
