"""Topic Relay CLI — run the relay, send messages, watch topics.

Usage:
    topic-relay serve                                # Run the HTTP relay
    topic-relay topics                               # List the topic catalog
    topic-relay token alice                          # Print a connection credential
    topic-relay send general "hello" -a alice        # Send a message
    topic-relay watch general -u alice               # Stream a topic live
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import os
import sys

import click

from topicrelay import __version__
from topicrelay.auth.credentials import CredentialError
from topicrelay.client.api import DEFAULT_API_URL, RelayClient, RelayRequestError
from topicrelay.client.centrifugo import DEFAULT_WS_URL, CentrifugoConnection
from topicrelay.client.connection import BrokerConnectionError
from topicrelay.client.multiplexer import SubscriptionMultiplexer
from topicrelay.client.session import SessionController
from topicrelay.schemas.message import Message
from topicrelay.topics import AGGREGATE_TOPIC

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when a loop is already running (e.g. CliRunner
    inside an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _fail(message: str) -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


def _format_message(message: Message) -> str:
    stamp = message.timestamp.strftime("%H:%M:%S")
    topic = click.style(f"#{message.topic}", fg="cyan")
    author = click.style(message.author, bold=True)
    return f"[{stamp}] {topic} {author}: {message.content}"


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="topic-relay")
@click.option(
    "--api-url",
    default=lambda: os.environ.get("RELAY_API_URL", DEFAULT_API_URL),
    show_default=DEFAULT_API_URL,
    help="Relay HTTP base URL (or set RELAY_API_URL)",
)
@click.pass_context
def main(ctx: click.Context, api_url: str):
    """Topic Relay — topic-scoped real-time messaging."""
    ctx.obj = {"api_url": api_url}


# ---------------------------------------------------------------------------
# topic-relay serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default from RELAY_HOST)")
@click.option("--port", type=int, default=None, help="Port (default from RELAY_PORT / PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the relay HTTP server."""
    import uvicorn

    from topicrelay.config import settings

    uvicorn.run(
        "topicrelay.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# topic-relay topics / token / send
# ---------------------------------------------------------------------------


@main.command()
@click.pass_obj
def topics(obj: dict):
    """List the topic catalog."""
    _run(_topics_impl(obj["api_url"]))


async def _topics_impl(api_url: str):
    async with RelayClient(api_url) as client:
        try:
            names = await client.list_topics()
        except RelayRequestError as e:
            _fail(str(e))
    for name in names:
        suffix = click.style("  (aggregate)", dim=True) if name == AGGREGATE_TOPIC else ""
        click.echo(f"  {name}{suffix}")


@main.command()
@click.argument("user")
@click.pass_obj
def token(obj: dict, user: str):
    """Print a connection credential for USER."""
    _run(_token_impl(obj["api_url"], user))


async def _token_impl(api_url: str, user: str):
    async with RelayClient(api_url) as client:
        try:
            click.echo(await client.fetch_token(user))
        except CredentialError as e:
            _fail(str(e))


@main.command()
@click.argument("topic")
@click.argument("content")
@click.option("--author", "-a", required=True, help="Author name")
@click.pass_obj
def send(obj: dict, topic: str, content: str, author: str):
    """Send CONTENT to TOPIC. Sending to "all" broadcasts to every topic."""
    _run(_send_impl(obj["api_url"], topic, content, author))


async def _send_impl(api_url: str, topic: str, content: str, author: str):
    async with RelayClient(api_url) as client:
        try:
            message = await client.send_message(topic, content, author)
        except RelayRequestError as e:
            _fail(str(e))
    click.secho(f"Sent {message.id}", fg="green")


# ---------------------------------------------------------------------------
# topic-relay watch
# ---------------------------------------------------------------------------


@main.command()
@click.argument("topic")
@click.option("--user", "-u", required=True, help="User name for the credential")
@click.option(
    "--ws-url",
    default=lambda: os.environ.get("RELAY_WS_URL", DEFAULT_WS_URL),
    show_default=DEFAULT_WS_URL,
    help="Broker websocket URL (or set RELAY_WS_URL)",
)
@click.pass_obj
def watch(obj: dict, topic: str, user: str, ws_url: str):
    """Stream messages for TOPIC until interrupted."""
    try:
        _run(_watch_impl(obj["api_url"], ws_url, topic, user))
    except KeyboardInterrupt:
        click.echo()


async def _watch_impl(api_url: str, ws_url: str, topic: str, user: str):
    mux = SubscriptionMultiplexer(on_message=lambda m: click.echo(_format_message(m)))

    async with RelayClient(api_url) as client:
        controller = SessionController(
            mux,
            client.fetch_token,
            lambda tok: CentrifugoConnection(ws_url, tok),
        )
        await mux.switch_topic(topic)
        try:
            await controller.start(user)
        except BrokerConnectionError as e:
            _fail(str(e))

        mode = "authenticated" if controller.connection.authenticated else "anonymous"
        click.secho(f"Watching #{topic} as {user} ({mode}). Ctrl-C to stop.", dim=True)
        try:
            while controller.connection.connected:
                await asyncio.sleep(1)
            click.secho("Connection lost.", fg="yellow", err=True)
        finally:
            await controller.close()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
