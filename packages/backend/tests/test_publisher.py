"""ChannelPublisher tests against a mocked broker API."""

import json

import httpx
import pytest

from topicrelay.realtime.publisher import ChannelPublisher, PublishError


@pytest.fixture()
def publisher(relay_settings):
    return ChannelPublisher(relay_settings)


@pytest.mark.asyncio
async def test_publish_success(broker, publisher, make_message):
    route = broker.post("/api/publish").respond(200, json={"result": {}})
    message = make_message()

    result = await publisher.publish("topic:general", message)
    await publisher.aclose()

    assert result.ok
    assert result.channel == "topic:general"
    request = route.calls[0].request
    assert request.headers["Authorization"] == "apikey test-api-key"
    body = json.loads(request.content)
    assert body["channel"] == "topic:general"
    assert body["data"]["id"] == message.id
    assert body["data"]["content"] == "hi"


@pytest.mark.asyncio
async def test_non_200_is_a_per_channel_error(broker, publisher, make_message):
    broker.post("/api/publish").respond(503, text="unavailable")

    result = await publisher.publish("topic:tech", make_message("tech"))
    await publisher.aclose()

    assert not result.ok
    assert isinstance(result.error, PublishError)
    assert result.error.channel == "topic:tech"
    assert "503" in result.error.cause
    assert "unavailable" in result.error.cause


@pytest.mark.asyncio
async def test_transport_failure_is_returned_not_raised(broker, publisher, make_message):
    broker.post("/api/publish").mock(side_effect=httpx.ConnectError("refused"))

    result = await publisher.publish("topic:general", make_message())
    await publisher.aclose()

    assert not result.ok
    assert "refused" in result.error.cause


@pytest.mark.asyncio
async def test_timeout_is_returned_not_raised(broker, publisher, make_message):
    broker.post("/api/publish").mock(side_effect=httpx.ReadTimeout("slow"))

    result = await publisher.publish("topic:general", make_message())
    await publisher.aclose()

    assert not result.ok
    assert "timed out after 10.0s" in result.error.cause


@pytest.mark.asyncio
async def test_calls_are_independent(broker, publisher, make_message):
    """A failed publish does not affect the next one."""
    route = broker.post("/api/publish")
    route.side_effect = [httpx.Response(500), httpx.Response(200, json={})]

    first = await publisher.publish("topic:general", make_message())
    second = await publisher.publish("topic:all", make_message())
    await publisher.aclose()

    assert not first.ok
    assert second.ok


@pytest.mark.asyncio
async def test_shared_client_is_not_closed(relay_settings, broker, make_message):
    broker.post("/api/publish").respond(200, json={})
    async with httpx.AsyncClient() as shared:
        publisher = ChannelPublisher(relay_settings, shared)
        assert (await publisher.publish("topic:general", make_message())).ok
        await publisher.aclose()
        assert not shared.is_closed
