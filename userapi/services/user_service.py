"""User account service: signup, login, tokens, credentials and subscriptions."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import NoResultFound
from starlette.concurrency import run_in_threadpool

from userapi.schemas.auth import LoginResponse, SecretResponse, UserResponse
from userapi.services.errors import (
    AccessDeniedError,
    AccountExistsError,
    ExpiredTokenError,
    InvalidCredentialsError,
    InvalidEmailError,
    InvalidPairError,
    InvalidPasswordError,
    InvalidTokenError,
)
from userapi.services.pairs import PairsClient
from userapi.stores.user_store import UserStore
from userapi.utils.email import is_email_valid

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
DEFAULT_TOKEN_VALIDITY = timedelta(minutes=60)


def validate_email(email: str) -> None:
    if not is_email_valid(email):
        raise InvalidEmailError()


def validate_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidPasswordError()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive timestamps; they are stored in UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class UserService:
    """Validates input and orchestrates store calls for user accounts."""

    def __init__(
        self,
        store: UserStore,
        pairs_client: PairsClient | None = None,
        token_validity: timedelta = DEFAULT_TOKEN_VALIDITY,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.pairs_client = pairs_client or PairsClient()
        self.token_validity = token_validity
        self.clock = clock or (lambda: datetime.now(UTC))

    def sign_up(self, email: str, password: str) -> UserResponse:
        """Create an account for an email that is not yet registered.

        The existence check and the insert are separate statements, so two
        concurrent signups for one email can both pass the check; the
        upsert then returns the same row to both.
        """
        validate_email(email)
        validate_password(password)

        try:
            self.store.by_email(email)
        except NoResultFound:
            pass
        else:
            raise AccountExistsError()

        user = self.store.create(email, password)
        logger.info(f"Signed up user {user.id}")
        return UserResponse.model_validate(user)

    def login(self, email: str, password: str) -> LoginResponse:
        validate_email(email)
        validate_password(password)

        try:
            user = self.store.login(email, password)
        except NoResultFound as e:
            raise InvalidCredentialsError() from e

        return LoginResponse(token=user.token)

    def get_secret(self, token: str) -> SecretResponse:
        """Resolve a bearer token to its owner, rejecting unknown or stale tokens.

        A token stays valid while ``now - issued_at <= token_validity``.
        """
        try:
            user = self.store.get_by_token(token)
        except NoResultFound as e:
            raise InvalidTokenError() from e

        issued_at = user.token_creation_time
        if issued_at is None or _as_utc(issued_at) < self.clock() - self.token_validity:
            raise ExpiredTokenError()

        return SecretResponse(user_id=user.id, secret=user.secret)

    def update(
        self,
        token: str,
        user_id: int,
        email: str | None = None,
        password: str | None = None,
    ) -> UserResponse:
        """Change the email and/or password of the account owning the token."""
        if email:
            validate_email(email)
        if password:
            validate_password(password)

        self.get_secret(token)

        try:
            user = self.store.change_credentials(email, password, token, user_id)
        except NoResultFound as e:
            raise AccessDeniedError() from e

        return UserResponse.model_validate(user)

    async def get_all_valid_pairs(self) -> list[str]:
        return await self.pairs_client.fetch_valid_pairs()

    async def create_subscription(self, user_id: int, pair: str) -> None:
        """Subscribe the user to a pair listed by the valid-pairs API."""
        pairs = await self.get_all_valid_pairs()
        if pair not in pairs:
            raise InvalidPairError()

        await run_in_threadpool(self.store.create_subscription, user_id, pair)
        logger.info(f"User {user_id} subscribed to {pair}")
