"""FastAPI dependencies for authentication and services."""

from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from userapi.database import get_db
from userapi.services.pairs import PairsClient, get_pairs_client
from userapi.services.user_service import UserService
from userapi.stores.user_store import SqlUserStore


def get_bearer_token(authorization: Annotated[str | None, Header()] = None) -> str | None:
    """Token following the literal ``"Bearer "`` in the Authorization header, if any."""
    parts = (authorization or "").split("Bearer ")
    if len(parts) < 2:
        return None
    return parts[1]


def get_user_service(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    pairs_client: Annotated[PairsClient, Depends(get_pairs_client)],
) -> UserService:
    """Get user service with dependencies."""
    return UserService(
        SqlUserStore(db),
        pairs_client,
        token_validity=request.app.state.settings.access_token_validity_duration,
    )
