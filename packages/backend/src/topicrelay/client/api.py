"""Async HTTP client for the relay API."""

from typing import Optional

import httpx

from topicrelay.auth.credentials import CredentialError
from topicrelay.schemas.message import Message

DEFAULT_API_URL = "http://localhost:8080"


class RelayRequestError(Exception):
    """The relay rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _error_text(resp: httpx.Response) -> str:
    try:
        return resp.json().get("error") or resp.text
    except ValueError:
        return resp.text


class RelayClient:
    """Talks to /api/token, /api/messages, and /api/topics."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        *,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=timeout
        )

    async def __aenter__(self) -> "RelayClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_token(self, user: str) -> str:
        """Fetch a fresh connection credential for ``user``.

        Raises CredentialError for any failure so callers can fall back
        to an unauthenticated connection.
        """
        try:
            resp = await self._client.post("/api/token", json={"user": user})
        except httpx.HTTPError as e:
            raise CredentialError(f"token request failed: {e}") from e
        if resp.status_code != 200:
            raise CredentialError(
                f"token request rejected: {resp.status_code} - {_error_text(resp)}"
            )
        return resp.json()["token"]

    async def send_message(self, topic: str, content: str, author: str) -> Message:
        resp = await self._request(
            "POST",
            "/api/messages",
            json={"topic": topic, "content": content, "author": author},
        )
        return Message.model_validate(resp.json()["message"])

    async def list_topics(self) -> list[str]:
        resp = await self._request("GET", "/api/topics")
        return list(resp.json()["topics"])

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise RelayRequestError(f"relay unreachable: {e}") from e
        if resp.status_code != 200:
            raise RelayRequestError(_error_text(resp), status_code=resp.status_code)
        return resp
