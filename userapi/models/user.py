"""User model."""

from sqlalchemy import Column, DateTime, Integer, String

from userapi.database import Base
from userapi.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    """Account with a server-hashed password and at most one active token."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    # crypt() output, hashed and compared by the database
    password = Column(String(255), nullable=False)
    token = Column(String(64), nullable=True, index=True)
    token_creation_time = Column(DateTime(timezone=True), nullable=True)

    @property
    def secret(self) -> str:
        """Account-bound secret handed to authenticated callers."""
        return self.password
