"""Real-time connection — state machine shared by every transport.

Learn: a connection moves Disconnected → Connecting → Connected →
Disconnected, and may be reused for another loop. Each successful
connect stamps a new generation number so anything bound to an older
generation (subscription handles, in practice) can tell it is stale.

Subclasses provide the transport primitives. Inbound publications are
handed to the sink registered for their channel via _dispatch(); a
transport that loses its link calls _lost().
"""

import itertools
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger()

Sink = Callable[[Any], None]
StateListener = Callable[["RealtimeConnection", "ConnectionState"], None]

_generations = itertools.count(1)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class BrokerConnectionError(Exception):
    """Client-side transport failure (connect, command, or lost link)."""


class RealtimeConnection(ABC):
    """One multiplexed real-time connection to the broker."""

    def __init__(self, token: Optional[str] = None):
        self.token = token
        self.state = ConnectionState.DISCONNECTED
        self.generation = 0
        self._sinks: dict[str, Sink] = {}
        self._listeners: list[StateListener] = []

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def on_state_change(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self.state:
            return
        self.state = state
        for listener in list(self._listeners):
            listener(self, state)

    # ─── Lifecycle ──────────────────────────────────────

    async def connect(self) -> None:
        if self.state is not ConnectionState.DISCONNECTED:
            return
        self._set_state(ConnectionState.CONNECTING)
        try:
            await self._open()
        except BrokerConnectionError:
            self._set_state(ConnectionState.DISCONNECTED)
            raise
        except Exception as e:
            self._set_state(ConnectionState.DISCONNECTED)
            raise BrokerConnectionError(f"connect failed: {e}") from e

        self.generation = next(_generations)
        self._set_state(ConnectionState.CONNECTED)
        logger.info(
            "relay.client.connected",
            generation=self.generation,
            authenticated=self.authenticated,
        )

    async def disconnect(self) -> None:
        """Close the connection. Safe to call when already disconnected."""
        if self.state is ConnectionState.DISCONNECTED:
            return
        # State flips first so deliveries racing the close are dropped
        self._sinks.clear()
        self._set_state(ConnectionState.DISCONNECTED)
        await self._close()
        logger.info("relay.client.disconnected", generation=self.generation)

    def _lost(self, reason: str) -> None:
        """Called by transports when the link drops underneath us."""
        if self.state is ConnectionState.DISCONNECTED:
            return
        self._sinks.clear()
        self._set_state(ConnectionState.DISCONNECTED)
        logger.warning(
            "relay.client.connection_lost", generation=self.generation, reason=reason
        )

    # ─── Channel primitives ─────────────────────────────

    async def subscribe(self, channel: str, sink: Sink) -> None:
        self._require_connected("subscribe")
        self._sinks[channel] = sink
        try:
            await self._send_subscribe(channel)
        except BaseException:
            self._sinks.pop(channel, None)
            raise

    async def unsubscribe(self, channel: str) -> None:
        self._sinks.pop(channel, None)
        if self.connected:
            await self._send_unsubscribe(channel)

    async def publish(self, channel: str, data: Any) -> None:
        self._require_connected("publish")
        await self._send_publish(channel, data)

    def _dispatch(self, channel: str, data: Any) -> None:
        sink = self._sinks.get(channel)
        if sink is None:
            logger.debug("relay.client.unrouted_publication", channel=channel)
            return
        sink(data)

    def _require_connected(self, action: str) -> None:
        if not self.connected:
            raise BrokerConnectionError(f"cannot {action}: connection is {self.state.value}")

    # ─── Transport ──────────────────────────────────────

    @abstractmethod
    async def _open(self) -> None:
        """Establish the link and authenticate with self.token (if any)."""

    @abstractmethod
    async def _close(self) -> None:
        """Tear the link down."""

    @abstractmethod
    async def _send_subscribe(self, channel: str) -> None: ...

    @abstractmethod
    async def _send_unsubscribe(self, channel: str) -> None: ...

    @abstractmethod
    async def _send_publish(self, channel: str, data: Any) -> None: ...
