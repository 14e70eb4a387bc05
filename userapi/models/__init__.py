"""SQLAlchemy models."""

from userapi.models.subscription import Subscription
from userapi.models.user import User

__all__ = [
    "User",
    "Subscription",
]
