"""Subscription schemas."""

from pydantic import BaseModel


class SubscriptionCreate(BaseModel):
    """Subscribe the caller to a trading pair."""

    pair: str = ""
