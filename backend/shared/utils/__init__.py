"""
Utilities module: Exceptions.
"""

from shared.utils.exceptions import (
    NotifierError,
    EventDecodeError,
    ResolutionError,
    BusConnectionError,
)

__all__ = [
    "NotifierError",
    "EventDecodeError",
    "ResolutionError",
    "BusConnectionError",
]
