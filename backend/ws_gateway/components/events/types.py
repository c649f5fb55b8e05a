"""
Outbound realtime event types.

The payload pushed to a subscriber's session when a publisher they follow
releases a feed item.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class NotificationPayload:
    """
    Payload of a "new_notification" event.

    Wire format:
        {"feedId": 42, "influencerId": 7, "influencerName": "alice",
         "message": "Post 42 by alice"}
    """

    content_id: int
    publisher_id: int
    publisher_display_name: str
    message: str

    @classmethod
    def for_content(
        cls,
        content_id: int,
        publisher_id: int,
        publisher_display_name: str,
    ) -> NotificationPayload:
        """Build the payload with the standard "Post <id> by <name>" message."""
        return cls(
            content_id=content_id,
            publisher_id=publisher_id,
            publisher_display_name=publisher_display_name,
            message=f"Post {content_id} by {publisher_display_name}",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "feedId": self.content_id,
            "influencerId": self.publisher_id,
            "influencerName": self.publisher_display_name,
            "message": self.message,
        }
