"""Broker publish API — one HTTP call per channel.

Learn: the broker accepts ``POST {broker_url}/api/publish`` with body
``{"channel": ..., "data": ...}`` and an ``Authorization: apikey <key>``
header. Anything other than 200 is a failure.

publish() never raises for broker problems. It returns a PublishResult
carrying a PublishError, so the router decides per call whether a
failure is fatal (authoritative send) or just a warning (mirror and
broadcast sends). Each call is bounded by its own timeout and there are
no retries.

Channel naming: topic:{topic} (see topicrelay.topics).
"""

from dataclasses import dataclass
from typing import Optional

import httpx
import structlog

from topicrelay.config import Settings
from topicrelay.schemas.message import Message

logger = structlog.get_logger()


class PublishError(Exception):
    """A single channel publish failed."""

    def __init__(self, channel: str, cause: str):
        super().__init__(f"publish to {channel} failed: {cause}")
        self.channel = channel
        self.cause = cause


@dataclass
class PublishResult:
    """Outcome of one channel publish."""

    channel: str
    error: Optional[PublishError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ChannelPublisher:
    """Pushes message payloads to named broker channels."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self._url = f"{settings.broker_url.rstrip('/')}/api/publish"
        self._headers = {
            "Content-Type": "application/json",
            "Authorization": f"apikey {settings.broker_api_key}",
        }
        self._timeout = settings.publish_timeout_seconds
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def publish(self, channel: str, message: Message) -> PublishResult:
        body = {"channel": channel, "data": message.model_dump(mode="json")}
        try:
            resp = await self._get_client().post(
                self._url,
                json=body,
                headers=self._headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException:
            return self._failed(channel, f"timed out after {self._timeout}s")
        except httpx.HTTPError as e:
            return self._failed(channel, f"failed to send request to broker: {e}")

        if resp.status_code != 200:
            return self._failed(
                channel, f"broker API error: {resp.status_code} - {resp.text}"
            )

        logger.debug("relay.published", channel=channel, message_id=message.id)
        return PublishResult(channel=channel)

    def _failed(self, channel: str, cause: str) -> PublishResult:
        return PublishResult(channel=channel, error=PublishError(channel, cause))
