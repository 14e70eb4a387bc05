"""Subscription model."""

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint

from userapi.database import Base
from userapi.models.mixins import TimestampMixin


class Subscription(Base, TimestampMixin):
    """A user's subscription to one trading pair."""

    __tablename__ = "subscriptions"
    __table_args__ = (UniqueConstraint("user_id", "pair", name="uq_subscriptions_user_pair"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    pair = Column(String(64), nullable=False)
