"""Message router — decides which channels receive each message.

Learn: the failure policy is deliberately asymmetric.

Concrete topic (e.g. "general"):
    1. publish to topic:general — authoritative. Failure fails the send.
    2. publish to topic:all — best-effort mirror. Failure is only logged.

Aggregate topic ("all"):
    publish to every channel in the catalog, "all" included, concurrently.
    No destination is authoritative, so every failure is only logged and
    the send always succeeds once the Message exists.

Nothing is retried. Resilience of the broadcast comes from its branches
being independent, not from retries.
"""

import asyncio
from typing import Iterable, Optional

import structlog

from topicrelay.realtime.publisher import ChannelPublisher, PublishError, PublishResult
from topicrelay.schemas.message import Message
from topicrelay.topics import (
    AGGREGATE_CHANNEL,
    DEFAULT_CATALOG,
    channel_for,
    is_aggregate,
)

logger = structlog.get_logger()


class MessageValidationError(Exception):
    """Raised for empty topic, content, or author."""


class MessageRouter:
    """Builds messages and fans them out to broker channels."""

    def __init__(
        self,
        publisher: ChannelPublisher,
        catalog: Optional[Iterable[str]] = None,
    ):
        self.publisher = publisher
        self.catalog = tuple(catalog) if catalog is not None else DEFAULT_CATALOG

    async def route(self, topic: str, content: str, author: str) -> Message:
        """Validate, build, and publish one message.

        Raises MessageValidationError before any publish is attempted, and
        PublishError only when the authoritative concrete-topic send fails.
        """
        if not topic or not content or not author:
            raise MessageValidationError("Topic, content, and author are required")

        message = Message(topic=topic, content=content, author=author)

        if is_aggregate(topic):
            await self._broadcast(message)
        else:
            await self._send_and_mirror(message)

        return message

    async def _send_and_mirror(self, message: Message) -> None:
        result = await self.publisher.publish(channel_for(message.topic), message)
        if not result.ok:
            logger.error(
                "relay.publish_failed",
                channel=result.channel,
                topic=message.topic,
                message_id=message.id,
                error=result.error.cause,
            )
            raise result.error

        mirror = await self.publisher.publish(AGGREGATE_CHANNEL, message)
        if not mirror.ok:
            logger.warning(
                "relay.mirror_failed",
                channel=mirror.channel,
                topic=message.topic,
                message_id=message.id,
                error=mirror.error.cause,
            )

    async def _broadcast(self, message: Message) -> list[PublishResult]:
        channels = [channel_for(t) for t in self.catalog]
        outcomes = await asyncio.gather(
            *(self.publisher.publish(ch, message) for ch in channels),
            return_exceptions=True,
        )

        results = []
        for channel, outcome in zip(channels, outcomes):
            if isinstance(outcome, BaseException):
                # A publisher that raises is treated like a failed publish
                outcome = PublishResult(
                    channel=channel, error=PublishError(channel, repr(outcome))
                )
            if not outcome.ok:
                logger.warning(
                    "relay.broadcast_failed",
                    channel=channel,
                    topic=message.topic,
                    message_id=message.id,
                    error=outcome.error.cause,
                )
            results.append(outcome)

        failed = sum(1 for r in results if not r.ok)
        logger.info(
            "relay.broadcast",
            message_id=message.id,
            channels=len(results),
            failed=failed,
        )
        return results
