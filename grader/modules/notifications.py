"""
Notification channel: pushes submission progress to subscribers.

Events are JSON messages on the Redis pub/sub channel
"submissions:<submission_id>". Publishing is fire-and-forget; a
broken channel never affects grading.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "submissions"


def channel_name(submission_id: str) -> str:
    """Pub/sub channel carrying events for one submission."""
    return f"{CHANNEL_PREFIX}:{submission_id}"


class RedisNotificationChannel:
    """
    Publishes submission events over Redis pub/sub.

    Args:
        redis_client: Connected Redis client
    """

    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisNotificationChannel":
        return cls(Redis.from_url(redis_url, decode_responses=True))

    def publish(self, submission_id: str, event: dict[str, Any]) -> bool:
        """
        Publish an event for a submission.

        Args:
            submission_id: Submission identifier
            event: JSON-serializable payload

        Returns:
            bool: True if the message was handed to Redis
        """
        message = {
            "submission_id": submission_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **event,
        }
        try:
            self.redis.publish(
                channel_name(submission_id),
                json.dumps(message, default=str)
            )
        except RedisError as e:
            logger.warning(
                f"Could not publish event for {submission_id}: {e}"
            )
            return False

        logger.debug(
            f"Published {event.get('type', 'event')} for {submission_id}"
        )
        return True

    def publish_status(
        self,
        submission_id: str,
        status: str,
        error: Optional[str] = None
    ) -> bool:
        """Publish a status change."""
        event: dict[str, Any] = {"type": "status", "status": status}
        if error:
            event["error"] = error
        return self.publish(submission_id, event)

    def close(self) -> None:
        self.redis.close()
