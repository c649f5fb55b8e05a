"""
SQLAlchemy models.
"""

from .base import Base
from .user import User, Influencer, Follow
from .notification import Notification

__all__ = [
    "Base",
    "User",
    "Influencer",
    "Follow",
    "Notification",
]
