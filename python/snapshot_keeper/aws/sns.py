"""
SNS publisher for run reports.

Delivery is best-effort: publishing is retried with exponential backoff
and a NotificationError is raised once attempts are exhausted.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from snapshot_keeper.exceptions import NotificationError
from snapshot_keeper.logging import get_logger

if TYPE_CHECKING:
    from snapshot_keeper.config import Config

logger = get_logger(__name__)

# SNS rejects subjects longer than 100 characters
MAX_SUBJECT_LENGTH = 100


class SNSNotifier:
    """Notifier that publishes plain-text reports to an SNS topic."""

    def __init__(
        self,
        sns_client: Any,
        topic_arn: str,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the notifier.

        Args:
            sns_client: boto3 SNS client.
            topic_arn: Topic to publish to.
            max_retries: Maximum publish attempts.
            retry_delay_seconds: Delay before the first retry; doubles each attempt.
            sleep: Sleep function, replaceable in tests.
        """
        self._sns = sns_client
        self._topic_arn = topic_arn
        self._max_retries = max_retries
        self._retry_delay_seconds = retry_delay_seconds
        self._sleep = sleep
        self._logger = logger.bind(topic_arn=topic_arn)
        self._sent_count = 0
        self._failed_count = 0

    @classmethod
    def from_config(cls, config: Config) -> SNSNotifier | None:
        """Build a notifier, or None when no topic is configured."""
        if not config.notification.topic_arn:
            return None

        session = boto3.Session(
            profile_name=config.aws.profile,
            region_name=config.aws.region,
        )
        return cls(
            session.client("sns"),
            config.notification.topic_arn,
            max_retries=config.notification.max_retries,
            retry_delay_seconds=config.notification.retry_delay_seconds,
        )

    @property
    def topic_arn(self) -> str:
        return self._topic_arn

    @property
    def stats(self) -> dict[str, int]:
        """Get delivery statistics."""
        return {
            "sent": self._sent_count,
            "failed": self._failed_count,
            "total": self._sent_count + self._failed_count,
        }

    def notify(self, subject: str, text: str) -> None:
        """
        Publish a report.

        Raises:
            NotificationError: If every attempt fails.
        """
        attempts = 0
        last_error: str | None = None

        while attempts < self._max_retries:
            attempts += 1
            try:
                response = self._sns.publish(
                    TopicArn=self._topic_arn,
                    Subject=subject[:MAX_SUBJECT_LENGTH],
                    Message=text,
                )
                self._sent_count += 1
                self._logger.info(
                    "notification_sent",
                    message_id=response.get("MessageId"),
                    attempts=attempts,
                )
                return

            except (ClientError, BotoCoreError) as e:
                last_error = str(e)
                self._logger.warning(
                    "notification_send_failed",
                    attempt=attempts,
                    error=last_error,
                )

                if attempts < self._max_retries:
                    self._sleep(self._retry_delay_seconds * (2 ** (attempts - 1)))

        self._failed_count += 1
        self._logger.error(
            "notification_delivery_exhausted",
            attempts=attempts,
            error=last_error,
        )
        raise NotificationError.publish_failed(self._topic_arn, last_error or "no attempts made")
