"""
WebSocket gateway: consumes feed broadcasts and pushes notifications to
connected subscribers.
"""
