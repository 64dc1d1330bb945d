#!/usr/bin/env python3
"""
Topic Relay Quickstart — send, mirror, and broadcast in one script.

Watches #general and #all as two users, sends a message to #general
(it shows up in both), then broadcasts to "all" (it shows up
everywhere), then switches the first watcher to a new user.

Run with: python examples/quickstart.py

Requires: pip install -e .
Relay must be running: http://localhost:8080
Broker must be running: ws://localhost:8000/connection/websocket
"""

import asyncio
import sys

import httpx

from topicrelay.client import RelayClient, SessionController, SubscriptionMultiplexer
from topicrelay.client.centrifugo import CentrifugoConnection

API = "http://localhost:8080"
WS = "ws://localhost:8000/connection/websocket"


def check_relay() -> None:
    try:
        resp = httpx.get(f"{API}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Relay not reachable at {API}")
        print("Start it with:  topic-relay serve")
        sys.exit(1)
    health = resp.json()
    print(f"Relay:  {health['status']} (broker {health['broker_url']})")


async def watcher(client: RelayClient, user: str, topic: str):
    mux = SubscriptionMultiplexer(
        on_message=lambda m: print(f"  [{user} @ #{topic}] {m.author}: {m.content} (from #{m.topic})")
    )
    controller = SessionController(mux, client.fetch_token, lambda tok: CentrifugoConnection(WS, tok))
    await mux.switch_topic(topic)
    await controller.start(user)
    return controller


async def main():
    check_relay()

    async with RelayClient(API) as client:
        print(f"Topics: {', '.join(await client.list_topics())}")

        alice = await watcher(client, "alice", "general")
        bob = await watcher(client, "bob", "all")
        await asyncio.sleep(0.5)

        print("\n1. alice → #general (mirrored into #all)")
        await client.send_message("general", "hello general", "alice")
        await asyncio.sleep(0.5)

        print("\n2. bob → #all (broadcast to every topic)")
        await client.send_message("all", "hello everyone", "bob")
        await asyncio.sleep(0.5)

        print("\n3. alice's watcher switches identity to carol")
        await alice.on_identity_change("carol")
        await client.send_message("general", "still here?", "carol")
        await asyncio.sleep(0.5)

        await alice.close()
        await bob.close()


if __name__ == "__main__":
    asyncio.run(main())
