"""
Bus message correlation for logging.

The consumer sets the id of the message it is processing in a context
variable; each pipeline task gets its own copy, so concurrent messages never
see each other's id.
"""

import logging
from contextvars import ContextVar

# Context variable for the bus message id (task-local)
message_id_var: ContextVar[str] = ContextVar("message_id", default="")


class MessageIdFilter(logging.Filter):
    """
    Logging filter that adds message_id to log records.

    Usage:
        handler = logging.StreamHandler()
        handler.addFilter(MessageIdFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.message_id = message_id_var.get() or "-"
        return True
