"""Topic and channel naming.

Every topic maps 1:1 to a broker channel named ``topic:<name>``.
The literal topic "all" is reserved for the aggregate channel.
"""

AGGREGATE_TOPIC = "all"
CHANNEL_PREFIX = "topic:"

DEFAULT_CATALOG = ("all", "general", "tech", "random", "announcements")


def channel_for(topic: str) -> str:
    return f"{CHANNEL_PREFIX}{topic}"


def topic_from_channel(channel: str) -> str:
    """Inverse of channel_for. Raises ValueError for foreign channels."""
    if not channel.startswith(CHANNEL_PREFIX):
        raise ValueError(f"Not a topic channel: {channel!r}")
    return channel[len(CHANNEL_PREFIX):]


def is_aggregate(topic: str) -> bool:
    return topic == AGGREGATE_TOPIC


AGGREGATE_CHANNEL = channel_for(AGGREGATE_TOPIC)
