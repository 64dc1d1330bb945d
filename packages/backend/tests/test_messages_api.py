"""POST /api/messages and GET /api/topics tests, end to end through the publisher."""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from conftest import published_channels


def _fail_channels(*channels):
    def handler(request: httpx.Request) -> httpx.Response:
        if json.loads(request.content)["channel"] in channels:
            return httpx.Response(500, text="broker error")
        return httpx.Response(200, json={})

    return handler


@pytest.mark.asyncio
async def test_send_to_concrete_topic(client, broker):
    route = broker.post("/api/publish").respond(200, json={})

    r = await client.post(
        "/api/messages",
        json={"topic": "general", "content": "hi", "author": "alice"},
    )

    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    message = data["message"]
    assert (message["topic"], message["content"], message["author"]) == ("general", "hi", "alice")
    assert message["id"]
    sent_at = datetime.fromisoformat(message["timestamp"].replace("Z", "+00:00"))
    assert abs(datetime.now(timezone.utc) - sent_at) < timedelta(seconds=30)

    assert published_channels(route) == ["topic:general", "topic:all"]
    for call in route.calls:
        assert json.loads(call.request.content)["data"] == message


@pytest.mark.asyncio
async def test_send_to_aggregate_topic(client, broker):
    route = broker.post("/api/publish").respond(200, json={})

    r = await client.post(
        "/api/messages",
        json={"topic": "all", "content": "hi", "author": "bob"},
    )

    assert r.status_code == 200
    assert route.call_count == 5
    assert sorted(published_channels(route)) == sorted(
        ["topic:all", "topic:general", "topic:tech", "topic:random", "topic:announcements"]
    )
    bodies = {json.dumps(json.loads(c.request.content)["data"], sort_keys=True) for c in route.calls}
    assert len(bodies) == 1


@pytest.mark.asyncio
async def test_aggregate_send_succeeds_when_broker_is_down(client, broker):
    broker.post("/api/publish").respond(503)

    r = await client.post(
        "/api/messages",
        json={"topic": "all", "content": "hi", "author": "bob"},
    )

    assert r.status_code == 200
    assert r.json()["success"] is True


@pytest.mark.asyncio
async def test_authoritative_failure_is_500(client, broker):
    route = broker.post("/api/publish").mock(side_effect=_fail_channels("topic:tech"))

    r = await client.post(
        "/api/messages",
        json={"topic": "tech", "content": "hi", "author": "alice"},
    )

    assert r.status_code == 500
    assert r.json() == {"error": "Failed to send message"}
    assert published_channels(route) == ["topic:tech"]


@pytest.mark.asyncio
async def test_mirror_failure_is_still_200(client, broker):
    route = broker.post("/api/publish").mock(side_effect=_fail_channels("topic:all"))

    r = await client.post(
        "/api/messages",
        json={"topic": "tech", "content": "hi", "author": "alice"},
    )

    assert r.status_code == 200
    assert published_channels(route) == ["topic:tech", "topic:all"]


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["topic", "content", "author"])
async def test_missing_field_is_400_without_publishing(client, broker, missing):
    route = broker.post("/api/publish").respond(200, json={})
    body = {"topic": "general", "content": "hi", "author": "alice"}
    body[missing] = ""

    r = await client.post("/api/messages", json=body)

    assert r.status_code == 400
    assert r.json() == {"error": "Topic, content, and author are required"}
    assert route.call_count == 0


@pytest.mark.asyncio
async def test_wrong_field_type_is_400(client, broker):
    route = broker.post("/api/publish").respond(200, json={})

    r = await client.post("/api/messages", json={"topic": ["general"], "content": "hi", "author": "a"})

    assert r.status_code == 400
    assert r.json() == {"error": "Invalid request format"}
    assert route.call_count == 0


@pytest.mark.asyncio
async def test_topics_catalog(client):
    r = await client.get("/api/topics")
    assert r.status_code == 200
    assert r.json() == {"topics": ["all", "general", "tech", "random", "announcements"]}
