"""Real-time infrastructure — broker publish API.

Learn: messages flow one way through the relay:
1. API route → MessageRouter picks channels
2. ChannelPublisher → broker HTTP publish endpoint
3. Broker → every connected client subscribed to the channel

The relay keeps no connection state of its own; fan-out durability is
the broker's job.
"""
