"""Storage gateway for user and subscription rows."""

import hashlib
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import Insert as PgInsert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import Insert as SQliteInsert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from userapi.models.subscription import Subscription
from userapi.models.user import User

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when a write did not touch exactly the rows it should have."""


def generate_token() -> str:
    """Opaque access token: hex digest of a fresh random UUID."""
    return hashlib.md5(str(uuid.uuid4()).encode()).hexdigest()  # noqa: S324


def hash_password(password: str) -> Any:
    """SQL expression hashing the password with a new bcrypt salt."""
    return func.crypt(password, func.gen_salt("bf"))


def credential_changes(email: str | None, password: str | None) -> dict[str, Any]:
    """Update values for the credential fields actually supplied."""
    values: dict[str, Any] = {}
    if email:
        values["email"] = email
    if password:
        values["password"] = hash_password(password)
    return values


class UserStore(ABC):
    """Create/read/update access to users and subscriptions.

    Lookups that match no row raise ``sqlalchemy.exc.NoResultFound``.
    """

    @abstractmethod
    def create(self, email: str, password: str) -> User: ...

    @abstractmethod
    def login(self, email: str, password: str) -> User: ...

    @abstractmethod
    def by_email(self, email: str) -> User: ...

    @abstractmethod
    def get_by_token(self, token: str) -> User: ...

    @abstractmethod
    def change_credentials(
        self, email: str | None, password: str | None, token: str, user_id: int
    ) -> User: ...

    @abstractmethod
    def create_subscription(self, user_id: int, pair: str) -> None: ...

    @abstractmethod
    def list_subscriptions(self, user_id: int) -> list[str]: ...


class SqlUserStore(UserStore):
    """UserStore over a SQLAlchemy session (PostgreSQL, or SQLite in tests)."""

    def __init__(self, db: Session):
        self.db = db

    def _insert(self, model: type) -> PgInsert | SQliteInsert:
        dialect_name = self.db.get_bind().dialect.name
        if dialect_name == "postgresql":
            return pg_insert(model)
        if dialect_name == "sqlite":
            return sqlite_insert(model)
        # other backends: no ON CONFLICT support
        raise NotImplementedError(f"Unsupported database dialect: {dialect_name}")

    def _load(self, user_id: int) -> User:
        return self.db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        ).scalar_one()

    def _id_where(self, *criteria: Any) -> int:
        return self.db.execute(select(User.id).where(*criteria)).scalar_one()

    def by_email(self, email: str) -> User:
        return self._load(self._id_where(User.email == email))

    def get_by_token(self, token: str) -> User:
        return self._load(self._id_where(User.token == token))

    def create(self, email: str, password: str) -> User:
        """Insert the user, or return the existing row id for a known email."""
        ins = self._insert(User)
        stmt = (
            ins.values(email=email, password=hash_password(password))
            .on_conflict_do_update(index_elements=["email"], set_={"email": ins.excluded.email})
            .returning(User.id)
        )
        user_id = self.db.execute(stmt).scalar_one()
        self.db.commit()
        return self._load(user_id)

    def login(self, email: str, password: str) -> User:
        """Check the password and store a freshly generated token."""
        user_id = self._id_where(
            User.email == email,
            User.password == func.crypt(password, User.password),
        )

        result = self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(token=generate_token(), token_creation_time=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise StoreError(f"error in generating login credentials: {result.rowcount} rows")
        self.db.commit()

        logger.info(f"Issued new token for user {user_id}")
        return self._load(user_id)

    def change_credentials(
        self, email: str | None, password: str | None, token: str, user_id: int
    ) -> User:
        """Update whichever of email/password were supplied for the token's owner."""
        user_id = self._id_where(User.token == token, User.id == user_id)

        values = credential_changes(email, password)
        if not values:
            return self._load(user_id)

        result = self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise StoreError(f"error in changing login credentials: {result.rowcount} rows")
        self.db.commit()

        logger.info(f"Changed {', '.join(sorted(values))} for user {user_id}")
        return self._load(user_id)

    def create_subscription(self, user_id: int, pair: str) -> None:
        stmt = (
            self._insert(Subscription)
            .values(user_id=user_id, pair=pair)
            .on_conflict_do_nothing(index_elements=["user_id", "pair"])
        )
        self.db.execute(stmt)
        self.db.commit()

    def list_subscriptions(self, user_id: int) -> list[str]:
        return list(
            self.db.execute(
                select(Subscription.pair)
                .where(Subscription.user_id == user_id)
                .order_by(Subscription.pair)
            ).scalars()
        )
