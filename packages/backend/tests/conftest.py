"""Test fixtures — app client, mocked broker, in-memory connections.

Learn: nothing here talks to a real broker.

1. HTTP-level tests drive the app through httpx's ASGITransport.
2. The broker publish API is mocked with respx, so the real
   ChannelPublisher (and its httpx calls) runs end to end.
3. Client-side tests use FakeConnection, a RealtimeConnection whose
   transport primitives just record what they were asked to do.
"""

import json
from typing import Any, Optional

import httpx
import pytest
import pytest_asyncio
import respx
from httpx import ASGITransport, AsyncClient

from topicrelay.client.connection import BrokerConnectionError, RealtimeConnection
from topicrelay.config import Settings
from topicrelay.main import create_app
from topicrelay.realtime.publisher import PublishError, PublishResult
from topicrelay.schemas.message import Message

BROKER_URL = "http://broker.test"


@pytest.fixture()
def relay_settings() -> Settings:
    return Settings(
        broker_url=BROKER_URL,
        broker_api_key="test-api-key",
        token_secret="test-signing-secret-0123456789abcdef",
    )


@pytest.fixture()
def app(relay_settings):
    return create_app(relay_settings)


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client bound to the app (no lifespan — the default publisher is used)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    await app.state.publisher.aclose()


@pytest.fixture()
def broker():
    """Mocked broker HTTP API. Tests add routes to it."""
    with respx.mock(base_url=BROKER_URL, assert_all_called=False) as mock:
        yield mock


def published_channels(route) -> list[str]:
    """Channel names from every request a respx route received."""
    return [json.loads(call.request.content)["channel"] for call in route.calls]


# ─── Server-side fakes ─────────────────────────────────────


class FakePublisher:
    """Records publish calls; channels in ``failing`` return a PublishError."""

    def __init__(self, failing: Optional[set[str]] = None, raising: Optional[set[str]] = None):
        self.failing = failing or set()
        self.raising = raising or set()
        self.calls: list[tuple[str, Message]] = []

    @property
    def channels(self) -> list[str]:
        return [channel for channel, _ in self.calls]

    async def publish(self, channel: str, message: Message) -> PublishResult:
        self.calls.append((channel, message))
        if channel in self.raising:
            raise httpx.ConnectError("boom")
        if channel in self.failing:
            return PublishResult(channel=channel, error=PublishError(channel, "503 - down"))
        return PublishResult(channel=channel)


# ─── Client-side fakes ─────────────────────────────────────


class FakeConnection(RealtimeConnection):
    """In-memory RealtimeConnection recording every transport command."""

    def __init__(self, token: Optional[str] = None, *, fail_connect: bool = False,
                 reject_tokens: bool = False):
        super().__init__(token)
        self.fail_connect = fail_connect
        self.reject_tokens = reject_tokens
        self.commands: list[tuple[str, Any]] = []

    async def _open(self) -> None:
        self.commands.append(("open", self.token))
        if self.fail_connect:
            raise BrokerConnectionError("broker unreachable")
        if self.token is not None and self.reject_tokens:
            raise BrokerConnectionError("connect rejected: 109 token expired")

    async def _close(self) -> None:
        self.commands.append(("close", None))

    async def _send_subscribe(self, channel: str) -> None:
        self.commands.append(("subscribe", channel))

    async def _send_unsubscribe(self, channel: str) -> None:
        self.commands.append(("unsubscribe", channel))

    async def _send_publish(self, channel: str, data: Any) -> None:
        self.commands.append(("publish", channel))

    def push(self, channel: str, message: Message) -> None:
        """Simulate the broker delivering a publication on ``channel``."""
        self._dispatch(channel, message.model_dump(mode="json"))

    def count(self, command: str) -> int:
        return sum(1 for name, _ in self.commands if name == command)


@pytest.fixture()
def make_message():
    def _make(topic: str = "general", content: str = "hi", author: str = "alice") -> Message:
        return Message(topic=topic, content=content, author=author)

    return _make
