"""Subscription multiplexer — one handle per topic channel, one active topic.

Learn: the multiplexer owns the client's view of a single connection.

- switch_topic() unsubscribes the previously active handle, clears the
  visible log, makes the new topic active, and (only when connected)
  subscribes the new topic's handle, creating it on first use.
- Handles are never destroyed while their connection lives. Coming back
  to a topic reuses the same handle object.
- Every handle has an inbox queue. The connection delivers into it and
  one pump task per handle moves deliveries into the visible log, but
  only if the handle's topic is still the active topic at that moment.
  Deliveries for a topic the user already left are dropped, and leaving
  a topic empties its handle's inbox. A failing on_message callback is
  logged and the pump keeps running.
- attach() moves the multiplexer to a new connection. Handles of the
  previous connection generation are invalidated and never reused.
"""

import asyncio
from collections import deque
from enum import Enum
from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError

from topicrelay.client.connection import ConnectionState, RealtimeConnection
from topicrelay.schemas.message import Message
from topicrelay.topics import channel_for, topic_from_channel

logger = structlog.get_logger()

RECENT_IDS = 256


class HandleState(str, Enum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBED = "subscribed"


class SubscriptionHandle:
    """Client-side membership in one channel of one connection generation."""

    def __init__(self, channel: str, connection: RealtimeConnection):
        self.channel = channel
        self.topic = topic_from_channel(channel)
        self.connection = connection
        self.generation = connection.generation
        self.state = HandleState.UNSUBSCRIBED
        self.valid = True
        self.inbox: asyncio.Queue = asyncio.Queue()
        self._recent: deque[str] = deque(maxlen=RECENT_IDS)

    @property
    def subscribed(self) -> bool:
        return self.state is HandleState.SUBSCRIBED

    async def subscribe(self) -> None:
        if not self.valid or self.generation != self.connection.generation:
            raise RuntimeError(f"stale handle for {self.channel}")
        if self.subscribed:
            return
        await self.connection.subscribe(self.channel, self.deliver)
        self.state = HandleState.SUBSCRIBED

    async def unsubscribe(self) -> None:
        if not self.subscribed:
            return
        self.state = HandleState.UNSUBSCRIBED
        self._drain()
        if self.valid and self.connection.connected:
            await self.connection.unsubscribe(self.channel)

    def _drain(self) -> None:
        """Discard deliveries queued before the handle left its topic."""
        while not self.inbox.empty():
            self.inbox.get_nowait()
            self.inbox.task_done()

    def deliver(self, data: Any) -> None:
        """Connection callback: one call per broker publication."""
        if not self.valid or not self.subscribed:
            return
        self.inbox.put_nowait(data)

    def invalidate(self) -> None:
        self.valid = False
        self.state = HandleState.UNSUBSCRIBED

    def seen(self, message_id: str) -> bool:
        """Record ``message_id``; True if it was already applied."""
        if message_id in self._recent:
            return True
        self._recent.append(message_id)
        return False


class SubscriptionMultiplexer:
    """Registry of topic handles plus the visible message log."""

    def __init__(self, on_message: Optional[Callable[[Message], None]] = None):
        self.on_message = on_message
        self.connection: Optional[RealtimeConnection] = None
        self.active_topic: Optional[str] = None
        self.messages: list[Message] = []
        self._handles: dict[str, SubscriptionHandle] = {}
        self._pumps: dict[str, asyncio.Task] = {}

    @property
    def handles(self) -> dict[str, SubscriptionHandle]:
        return dict(self._handles)

    def handle_for(self, topic: str) -> Optional[SubscriptionHandle]:
        return self._handles.get(channel_for(topic))

    # ─── Connection binding ─────────────────────────────

    def attach(self, connection: RealtimeConnection) -> None:
        """Bind to ``connection``, dropping every handle of the old one."""
        self._invalidate_handles()
        self.connection = connection
        connection.on_state_change(self._on_connection_state)

    def _on_connection_state(
        self, connection: RealtimeConnection, state: ConnectionState
    ) -> None:
        if connection is self.connection and state is ConnectionState.DISCONNECTED:
            self._invalidate_handles()

    def _invalidate_handles(self) -> None:
        for handle in self._handles.values():
            handle.invalidate()
        for task in self._pumps.values():
            task.cancel()
        self._handles.clear()
        self._pumps.clear()

    async def close(self) -> None:
        pumps = list(self._pumps.values())
        self._invalidate_handles()
        await asyncio.gather(*pumps, return_exceptions=True)

    # ─── Topic switching ────────────────────────────────

    async def switch_topic(self, topic: str) -> None:
        if self.active_topic is not None:
            previous = self.handle_for(self.active_topic)
            if previous is not None and previous.subscribed:
                await previous.unsubscribe()

        self.messages.clear()
        self.active_topic = topic
        logger.debug("relay.client.topic_switched", topic=topic)

        if self.connection is not None and self.connection.connected:
            handle = self._ensure_handle(channel_for(topic))
            await handle.subscribe()

    def _ensure_handle(self, channel: str) -> SubscriptionHandle:
        handle = self._handles.get(channel)
        if handle is None:
            handle = SubscriptionHandle(channel, self.connection)
            self._handles[channel] = handle
            self._pumps[channel] = asyncio.create_task(self._pump(handle))
        return handle

    # ─── Delivery ───────────────────────────────────────

    async def _pump(self, handle: SubscriptionHandle) -> None:
        while True:
            data = await handle.inbox.get()
            try:
                self._apply(handle, data)
            finally:
                handle.inbox.task_done()

    def _apply(self, handle: SubscriptionHandle, data: Any) -> None:
        if handle.topic != self.active_topic:
            logger.debug(
                "relay.client.stale_delivery_dropped",
                channel=handle.channel,
                active_topic=self.active_topic,
            )
            return

        try:
            message = Message.model_validate(data)
        except ValidationError as e:
            logger.warning(
                "relay.client.bad_publication",
                channel=handle.channel,
                errors=len(e.errors()),
            )
            return

        if handle.seen(message.id):
            return

        self.messages.append(message)
        if self.on_message is not None:
            try:
                self.on_message(message)
            except Exception:
                logger.exception(
                    "relay.client.on_message_failed",
                    channel=handle.channel,
                    message_id=message.id,
                )
