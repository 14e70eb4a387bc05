"""Authentication and account schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class UserCredentials(BaseModel):
    """Email and password pair sent to signup and login."""

    email: str = ""
    password: str = ""


class UserUpdate(BaseModel):
    """Credential change; omitted or empty fields are left untouched."""

    email: str | None = None
    password: str | None = None


class UserResponse(BaseModel):
    """Public projection of an account."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    created_at: datetime | None
    updated_at: datetime | None


class LoginResponse(BaseModel):
    """Token issued by a successful login."""

    token: str


class SecretResponse(BaseModel):
    """Account-bound secret for the token's owner."""

    user_id: int
    secret: str
