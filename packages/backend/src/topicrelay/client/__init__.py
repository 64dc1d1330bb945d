"""Relay client — HTTP API, real-time connection, topic multiplexing.

Learn: a client holds one real-time connection at a time. The
SubscriptionMultiplexer keeps one subscription handle per topic channel
on that connection and filters deliveries against the active topic.
The SessionController rebuilds the connection when the user changes.

    controller = SessionController(mux, api.fetch_token, make_connection)
    await controller.start("alice")
    await mux.switch_topic("general")
"""

from topicrelay.client.api import RelayClient, RelayRequestError
from topicrelay.client.connection import (
    BrokerConnectionError,
    ConnectionState,
    RealtimeConnection,
)
from topicrelay.client.multiplexer import HandleState, SubscriptionHandle, SubscriptionMultiplexer
from topicrelay.client.session import SessionController

__all__ = [
    "BrokerConnectionError",
    "ConnectionState",
    "HandleState",
    "RealtimeConnection",
    "RelayClient",
    "RelayRequestError",
    "SessionController",
    "SubscriptionHandle",
    "SubscriptionMultiplexer",
]
