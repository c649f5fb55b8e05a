"""
Event Schema.

Defines the broadcast event carried on the notifications bus.

Wire format (UTF-8 JSON):
    {"feedId": 42, "influencerId": 7, "message": "hi"}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from shared.utils.exceptions import EventDecodeError


def _require_int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    # bool is an int subclass; "true" is never a valid id
    if isinstance(value, bool) or not isinstance(value, int):
        raise EventDecodeError(
            f"Field '{key}' must be an integer, got {type(value).__name__}",
            field=key,
        )
    return value


@dataclass(frozen=True, slots=True)
class BroadcastEvent:
    """
    "A publisher released a content item", as received from the bus.

    Immutable once decoded; lives for one message-processing cycle.

    Attributes:
        publisher_id: Influencer who published the content (wire: influencerId).
        content_id: Feed item that was published (wire: feedId).
        text: Free text sent along with the broadcast (wire: message).
    """

    publisher_id: int
    content_id: int
    text: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> BroadcastEvent:
        """
        Build an event from a decoded JSON object.

        Raises:
            EventDecodeError: If the object is not a dict or a field is
                missing or has the wrong type.
        """
        if not isinstance(data, dict):
            raise EventDecodeError(
                f"Event must be a JSON object, got {type(data).__name__}"
            )

        text = data.get("message", "")
        if text is None:
            text = ""
        if not isinstance(text, str):
            raise EventDecodeError(
                f"Field 'message' must be a string, got {type(text).__name__}",
                field="message",
            )

        return cls(
            publisher_id=_require_int(data, "influencerId"),
            content_id=_require_int(data, "feedId"),
            text=text,
        )

    @classmethod
    def decode(cls, raw: str | bytes) -> BroadcastEvent:
        """
        Decode a bus message body.

        Raises:
            EventDecodeError: If the body is not UTF-8 JSON or does not
                describe a broadcast event.
        """
        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise EventDecodeError("Body is not valid UTF-8") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise EventDecodeError(
                f"Body is not valid JSON: {e.msg}", body=raw[:200]
            ) from e

        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Wire representation."""
        return {
            "feedId": self.content_id,
            "influencerId": self.publisher_id,
            "message": self.text,
        }

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps(self.to_dict(), ensure_ascii=False)
