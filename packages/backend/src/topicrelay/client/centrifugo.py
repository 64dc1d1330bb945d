"""Broker connection over websockets (Centrifugo JSON client protocol).

Learn: every command is a JSON object ``{"id": N, "<method>": {...}}``
and the broker answers with the same id, carrying either a result under
the method name or an ``error``. Frames without an id are pushes; a
publication arrives as ``{"push": {"channel": ..., "pub": {"data": ...}}}``.
An empty object ``{}`` is a server ping and must be answered with ``{}``.
Several frames may share one websocket message, newline-separated.

One reader task owns the socket's receive side for the lifetime of the
link and resolves pending command futures as replies come in.
"""

import asyncio
import json
from typing import Any, Optional

import structlog
import websockets

from topicrelay.client.connection import BrokerConnectionError, RealtimeConnection

logger = structlog.get_logger()

DEFAULT_WS_URL = "ws://localhost:8000/connection/websocket"


class CentrifugoConnection(RealtimeConnection):
    """RealtimeConnection speaking the broker's JSON protocol."""

    def __init__(
        self,
        url: str = DEFAULT_WS_URL,
        token: Optional[str] = None,
        *,
        name: str = "topic-relay-py",
        command_timeout: float = 10.0,
    ):
        super().__init__(token)
        self.url = url
        self.name = name
        self.command_timeout = command_timeout
        self.client_id: Optional[str] = None
        self._ws = None
        self._reader: Optional[asyncio.Task] = None
        self._pending: dict[int, asyncio.Future] = {}
        self._next_id = 0

    # ─── Transport ──────────────────────────────────────

    async def _open(self) -> None:
        try:
            self._ws = await asyncio.wait_for(
                websockets.connect(self.url), timeout=self.command_timeout
            )
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            raise BrokerConnectionError(f"cannot reach broker at {self.url}: {e}") from e

        self._reader = asyncio.create_task(self._read_loop())

        params: dict[str, Any] = {"name": self.name}
        if self.token:
            params["token"] = self.token
        try:
            reply = await self._command("connect", params)
        except BaseException:
            await self._close()
            raise
        self.client_id = reply.get("client")

    async def _close(self) -> None:
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        self._fail_pending("connection closed")

    async def _send_subscribe(self, channel: str) -> None:
        await self._command("subscribe", {"channel": channel})

    async def _send_unsubscribe(self, channel: str) -> None:
        await self._command("unsubscribe", {"channel": channel})

    async def _send_publish(self, channel: str, data: Any) -> None:
        await self._command("publish", {"channel": channel, "data": data})

    # ─── Commands ───────────────────────────────────────

    async def _command(self, method: str, params: dict) -> dict:
        if self._ws is None:
            raise BrokerConnectionError(f"{method}: no open link")

        self._next_id += 1
        command_id = self._next_id
        future = asyncio.get_running_loop().create_future()
        self._pending[command_id] = future
        try:
            await self._ws.send(json.dumps({"id": command_id, method: params}))
            reply = await asyncio.wait_for(future, timeout=self.command_timeout)
        except asyncio.TimeoutError:
            raise BrokerConnectionError(f"{method}: no reply within {self.command_timeout}s")
        except websockets.exceptions.ConnectionClosed as e:
            raise BrokerConnectionError(f"{method}: connection closed ({e})") from e
        finally:
            self._pending.pop(command_id, None)

        error = reply.get("error")
        if error:
            raise BrokerConnectionError(
                f"{method} rejected: {error.get('code')} {error.get('message', '')}".strip()
            )
        return reply.get(method) or {}

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(BrokerConnectionError(reason))
        self._pending.clear()

    # ─── Inbound ────────────────────────────────────────

    async def _read_loop(self) -> None:
        reason = "closed by broker"
        cancelled = False
        try:
            async for raw in self._ws:
                if isinstance(raw, bytes):
                    raw = raw.decode()
                for line in raw.splitlines() or [raw]:
                    await self._handle_line(line)
        except websockets.exceptions.ConnectionClosed as e:
            reason = f"closed by broker ({e})"
        except asyncio.CancelledError:
            # _close() owns the shutdown; the link was not lost
            cancelled = True
            raise
        finally:
            self._fail_pending(reason)
            if not cancelled:
                self._lost(reason)

    async def _handle_line(self, line: str) -> None:
        line = line.strip()
        if not line:
            return
        try:
            frame = json.loads(line)
        except json.JSONDecodeError:
            logger.warning("relay.client.bad_frame", frame=line[:200])
            return
        if not isinstance(frame, dict):
            logger.warning("relay.client.bad_frame", frame=line[:200])
            return

        if not frame:
            await self._ws.send("{}")
            return

        command_id = frame.get("id")
        if command_id:
            future = self._pending.get(command_id)
            if future is not None and not future.done():
                future.set_result(frame)
            return

        push = frame.get("push")
        if isinstance(push, dict):
            pub = push.get("pub")
            if isinstance(pub, dict):
                self._dispatch(push.get("channel", ""), pub.get("data"))
            elif "disconnect" in push:
                self._lost(f"disconnected by broker: {push['disconnect']}")
