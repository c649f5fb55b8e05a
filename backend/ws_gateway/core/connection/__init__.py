"""
Connection lifecycle: the session registry writer.
"""

from ws_gateway.core.connection.lifecycle import ConnectionLifecycle

__all__ = ["ConnectionLifecycle"]
