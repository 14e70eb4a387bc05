"""Pydantic schemas for API requests and responses."""

from userapi.schemas.auth import (
    LoginResponse,
    SecretResponse,
    UserCredentials,
    UserResponse,
    UserUpdate,
)
from userapi.schemas.subscription import SubscriptionCreate

__all__ = [
    "UserCredentials",
    "UserUpdate",
    "UserResponse",
    "LoginResponse",
    "SecretResponse",
    "SubscriptionCreate",
]
