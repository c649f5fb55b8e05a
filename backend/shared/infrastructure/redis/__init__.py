"""
Redis key and consumer group naming for the notification bus.
"""
