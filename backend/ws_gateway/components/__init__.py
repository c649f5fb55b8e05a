"""
WebSocket Gateway components.

- core: constants
- connection: session registry, transport contract
- events: outbound payload types
"""
