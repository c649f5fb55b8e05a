"""
Bus subscriber: consumer group channel and consumer lifecycle.
"""

from ws_gateway.core.subscriber.channel import BusChannel, BusMessage
from ws_gateway.core.subscriber.stream_consumer import ConsumerHandle

__all__ = [
    "BusChannel",
    "BusMessage",
    "ConsumerHandle",
]
