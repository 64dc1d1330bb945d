"""Topic Relay — topic-scoped real-time messaging.

The relay issues connection credentials, routes chat messages to broker
channels (with the "all" topic mirroring every other topic), and ships a
client that multiplexes topic subscriptions over one real-time connection.
"""

__version__ = "0.1.0"
