"""
Gateway core: connection lifecycle, notification pipeline, bus consumer.
"""
