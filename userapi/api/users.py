"""User account and subscription API endpoints."""

import logging
from typing import Annotated, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

from userapi.api.dependencies import get_bearer_token, get_user_service
from userapi.schemas.auth import (
    LoginResponse,
    SecretResponse,
    UserCredentials,
    UserResponse,
    UserUpdate,
)
from userapi.schemas.subscription import SubscriptionCreate
from userapi.services.errors import (
    AccessDeniedError,
    ExpiredTokenError,
    InvalidCredentialsError,
    InvalidPairError,
    InvalidTokenError,
    UserServiceError,
)
from userapi.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def _require_token(token: str | None, missing_status: int) -> str:
    if token is None:
        raise HTTPException(status_code=missing_status, detail=InvalidTokenError.message)
    return token


async def _read_body(request: Request, schema: type[SchemaT]) -> SchemaT:
    """Parse the JSON body once the caller has been checked; bad bodies are 500s."""
    try:
        return schema.model_validate_json(await request.body())
    except ValidationError as e:
        message = "; ".join(error["msg"] for error in e.errors())
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message or "invalid request"
        ) from e


async def _authenticate(service: UserService, token: str | None) -> SecretResponse:
    """Resolve the bearer token: 401 when absent, 403 when unknown or expired."""
    token = _require_token(token, status.HTTP_401_UNAUTHORIZED)
    try:
        return await run_in_threadpool(service.get_secret, token)
    except (InvalidTokenError, ExpiredTokenError) as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from e
    except UserServiceError as e:
        logger.error(f"Error in user authentication: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e


@router.post("/signup", response_model=UserResponse)
def sign_up(
    credentials: UserCredentials,
    service: Annotated[UserService, Depends(get_user_service)],
):
    """Register a new account."""
    try:
        return service.sign_up(credentials.email, credentials.password)
    except UserServiceError as e:
        logger.error(f"Error in user signup: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e


@router.post("/login", response_model=LoginResponse)
def login(
    credentials: UserCredentials,
    service: Annotated[UserService, Depends(get_user_service)],
):
    """Login with email and password, issuing a new token."""
    try:
        return service.login(credentials.email, credentials.password)
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e)) from e
    except UserServiceError as e:
        logger.error(f"Error in user login: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e


@router.get("/secret", response_model=SecretResponse)
async def get_secret(
    service: Annotated[UserService, Depends(get_user_service)],
    token: Annotated[str | None, Depends(get_bearer_token)],
):
    """Get the caller's account secret."""
    return await _authenticate(service, token)


@router.get("/subscriptions/validpairs", response_model=list[str])
async def get_valid_pairs(
    service: Annotated[UserService, Depends(get_user_service)],
    token: Annotated[str | None, Depends(get_bearer_token)],
):
    """List the pairs that can currently be subscribed to."""
    await _authenticate(service, token)

    try:
        return await service.get_all_valid_pairs()
    except UserServiceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e


@router.post("/subscriptions")
async def create_subscription(
    request: Request,
    service: Annotated[UserService, Depends(get_user_service)],
    token: Annotated[str | None, Depends(get_bearer_token)],
):
    """Subscribe the caller to a valid pair."""
    user = await _authenticate(service, token)
    subscription = await _read_body(request, SubscriptionCreate)

    try:
        await service.create_subscription(user.user_id, subscription.pair)
    except InvalidPairError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    except UserServiceError as e:
        logger.error(f"Error in subscription creation: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e

    return None


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_credentials(
    user_id: str,
    request: Request,
    service: Annotated[UserService, Depends(get_user_service)],
    token: Annotated[str | None, Depends(get_bearer_token)],
):
    """Change the email and/or password of the caller's own account."""
    token = _require_token(token, status.HTTP_403_FORBIDDEN)
    try:
        account_id = int(user_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid user id") from e
    changes = await _read_body(request, UserUpdate)

    try:
        return await run_in_threadpool(
            service.update, token, account_id, email=changes.email, password=changes.password
        )
    except (AccessDeniedError, InvalidCredentialsError) as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from e
    except UserServiceError as e:
        logger.error(f"Error in credential update: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e
