"""Session controller — rebuild the connection when the user changes.

Learn: a credential names exactly one user, so switching users means a
new connection. The cycle is:

    disconnect → wait settle_delay → fetch credential → connect
    → re-run switch_topic(active topic) under the new identity

The settle delay gives the broker time to observe the disconnect before
the same client shows up again. If the credential cannot be fetched, or
the broker refuses it, the controller connects unauthenticated rather
than leaving the client offline.

The first identity a client gets is not a change (start() is already
connecting under it), so on_identity_change() only records it.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

from topicrelay.auth.credentials import CredentialError
from topicrelay.client.connection import BrokerConnectionError, RealtimeConnection
from topicrelay.client.multiplexer import SubscriptionMultiplexer

logger = structlog.get_logger()

SETTLE_DELAY_SECONDS = 0.5

CredentialFetcher = Callable[[str], Awaitable[str]]
ConnectionFactory = Callable[[Optional[str]], RealtimeConnection]


class SessionController:
    def __init__(
        self,
        multiplexer: SubscriptionMultiplexer,
        fetch_credential: CredentialFetcher,
        connection_factory: ConnectionFactory,
        *,
        settle_delay: float = SETTLE_DELAY_SECONDS,
    ):
        self.multiplexer = multiplexer
        self.fetch_credential = fetch_credential
        self.connection_factory = connection_factory
        self.settle_delay = settle_delay
        self.connection: Optional[RealtimeConnection] = None
        self.identity: Optional[str] = None
        self.reconnects = 0
        self._lock = asyncio.Lock()

    async def start(self, user: str) -> None:
        """Initial connect under ``user``."""
        async with self._lock:
            if self.connection is not None:
                await self.connection.disconnect()
            await self._open(user)
            self.identity = user

    async def on_identity_change(self, user: str) -> bool:
        """Reconnect under ``user`` if it differs from the applied identity.

        Returns True when a reconnect cycle ran.
        """
        async with self._lock:
            if self.identity is None:
                self.identity = user
                return False
            if user == self.identity:
                return False

            logger.info("relay.client.identity_changed", user=user)
            await self._reconnect(user)
            # Only an identity the client is actually connected under counts as applied
            self.identity = user
            self.reconnects += 1
            return True

    async def close(self) -> None:
        async with self._lock:
            if self.connection is not None:
                await self.connection.disconnect()
            await self.multiplexer.close()

    async def _reconnect(self, user: str) -> None:
        if self.connection is not None:
            await self.connection.disconnect()
        await asyncio.sleep(self.settle_delay)
        await self._open(user)

    async def _open(self, user: str) -> None:
        token: Optional[str] = None
        try:
            token = await self.fetch_credential(user)
        except CredentialError as e:
            logger.warning("relay.client.credential_failed", user=user, error=str(e))

        connection = await self._connect(token)
        self.connection = connection
        self.multiplexer.attach(connection)

        if self.multiplexer.active_topic is not None:
            await self.multiplexer.switch_topic(self.multiplexer.active_topic)

    async def _connect(self, token: Optional[str]) -> RealtimeConnection:
        connection = self.connection_factory(token)
        try:
            await connection.connect()
            return connection
        except BrokerConnectionError as e:
            if token is None:
                raise
            logger.warning("relay.client.authenticated_connect_failed", error=str(e))

        connection = self.connection_factory(None)
        await connection.connect()
        return connection
