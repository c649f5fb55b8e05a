"""
Redis constants for the notification bus.
Centralizes stream keys and consumer group naming.
"""

# =============================================================================
# Stream Keys & Consumer Groups
# =============================================================================

# Field holding the JSON body of a broadcast entry
STREAM_DATA_FIELD = "data"

# Suffix of the dead-letter stream next to the broadcast stream
DEAD_LETTER_SUFFIX = ":dlq"
DEAD_LETTER_MAXLEN = 1000  # Keep last 1000 dead-lettered entries


def get_consumer_group(exchange: str, instance_id: str) -> str:
    """
    Consumer group owned by one process.

    One group per instance gives every instance its own copy of each
    broadcast (fanout), instead of splitting entries between them.
    """
    return f"{exchange}:{instance_id}"


def get_dead_letter_stream(exchange: str) -> str:
    """Dead-letter stream for entries that exhausted their deliveries."""
    return f"{exchange}{DEAD_LETTER_SUFFIX}"
