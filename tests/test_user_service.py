"""Tests for the user service."""

import threading
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import update

from userapi.models import User
from userapi.services.errors import (
    AccessDeniedError,
    AccountExistsError,
    ExpiredTokenError,
    InvalidCredentialsError,
    InvalidEmailError,
    InvalidPairError,
    InvalidPasswordError,
    InvalidTokenError,
    TransportError,
)
from userapi.services.user_service import UserService

ISSUED_AT = datetime(2026, 10, 19, 9, 0, 0, tzinfo=UTC)


class Clock:
    """Controllable replacement for datetime.now(UTC)."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return Clock(ISSUED_AT)


@pytest.fixture
def service(store, pairs_client, clock):
    return UserService(store, pairs_client, token_validity=timedelta(minutes=60), clock=clock)


@pytest.fixture
def token(service, db):
    """Sign up and log in, pinning the token's issue time to ISSUED_AT."""
    service.sign_up("a@example.com", "longpass1")
    token = service.login("a@example.com", "longpass1").token
    db.execute(update(User).where(User.token == token).values(token_creation_time=ISSUED_AT))
    db.commit()
    return token


class TestSignUp:
    """Tests for UserService.sign_up."""

    def test_returns_projection(self, service):
        user = service.sign_up("a@example.com", "longpass1")
        assert user.id > 0
        assert user.email == "a@example.com"
        assert user.created_at is not None

    def test_duplicate_email_keeps_password(self, service):
        service.sign_up("a@example.com", "longpass1")

        with pytest.raises(AccountExistsError):
            service.sign_up("a@example.com", "differentpass")

        assert service.login("a@example.com", "longpass1").token
        with pytest.raises(InvalidCredentialsError):
            service.login("a@example.com", "differentpass")

    def test_invalid_email(self, service):
        with pytest.raises(InvalidEmailError):
            service.sign_up("a@@example.com", "longpass1")

    def test_email_domain_without_mx(self, service, mx_records):
        mx_records.add("example.org")
        with pytest.raises(InvalidEmailError):
            service.sign_up("a@example.org", "longpass1")


class TestPasswordRules:
    """Short passwords are rejected the same way by every operation."""

    @pytest.mark.parametrize("password", ["", "a", "1234567"])
    def test_short_password_rejected_everywhere(self, service, token, password):
        with pytest.raises(InvalidPasswordError) as signup_error:
            service.sign_up("b@example.com", password)
        with pytest.raises(InvalidPasswordError) as login_error:
            service.login("a@example.com", password or "x")
        with pytest.raises(InvalidPasswordError) as update_error:
            service.update(token, 1, password=password or "x")

        assert str(signup_error.value) == str(login_error.value) == str(update_error.value)

    def test_eight_characters_accepted(self, service):
        assert service.sign_up("a@example.com", "12345678").email == "a@example.com"


class TestLogin:
    """Tests for UserService.login."""

    def test_issues_token(self, service):
        service.sign_up("a@example.com", "longpass1")
        token = service.login("a@example.com", "longpass1").token
        assert len(token) == 32

    def test_wrong_password(self, service):
        service.sign_up("a@example.com", "longpass1")
        with pytest.raises(InvalidCredentialsError):
            service.login("a@example.com", "wrongpass1")

    def test_unknown_email(self, service):
        with pytest.raises(InvalidCredentialsError):
            service.login("nobody@example.com", "longpass1")


class TestGetSecret:
    """Token validation and the freshness window."""

    def test_valid_token(self, service, token):
        secret = service.get_secret(token)
        assert secret.user_id > 0
        assert secret.secret

    def test_unknown_token(self, service):
        with pytest.raises(InvalidTokenError):
            service.get_secret("nope")

    def test_valid_just_inside_window(self, service, token, clock):
        clock.now = ISSUED_AT + timedelta(minutes=59, seconds=59)
        assert service.get_secret(token).secret

    def test_valid_at_window_boundary(self, service, token, clock):
        clock.now = ISSUED_AT + timedelta(minutes=60)
        assert service.get_secret(token).secret

    def test_expired_just_past_window(self, service, token, clock):
        clock.now = ISSUED_AT + timedelta(minutes=60, seconds=1)
        with pytest.raises(ExpiredTokenError):
            service.get_secret(token)

    def test_configured_validity_governs(self, store, pairs_client, token, clock):
        service = UserService(store, pairs_client, token_validity=timedelta(seconds=3), clock=clock)
        clock.now = ISSUED_AT + timedelta(seconds=4)
        with pytest.raises(ExpiredTokenError):
            service.get_secret(token)


class TestUpdate:
    """Tests for UserService.update."""

    def test_changes_email(self, service, token):
        user_id = service.get_secret(token).user_id
        user = service.update(token, user_id, email="new@example.com")
        assert user.email == "new@example.com"

    def test_nothing_to_change(self, service, token):
        user_id = service.get_secret(token).user_id
        assert service.update(token, user_id).email == "a@example.com"

    def test_expired_token(self, service, token, clock):
        user_id = service.get_secret(token).user_id
        clock.now = ISSUED_AT + timedelta(hours=2)
        with pytest.raises(ExpiredTokenError):
            service.update(token, user_id, email="new@example.com")

    def test_other_users_id(self, service, token):
        other = service.sign_up("other@example.com", "otherpass1")
        with pytest.raises(AccessDeniedError):
            service.update(token, other.id, email="new@example.com")

    def test_invalid_new_email(self, service, token):
        with pytest.raises(InvalidEmailError):
            service.update(token, 1, email="broken")


class TestSubscriptions:
    """Pair validation against the valid-pairs API."""

    @pytest.mark.asyncio
    async def test_valid_pairs(self, service):
        assert await service.get_all_valid_pairs() == ["btc_eth", "btc_ltc", "eth_ltc"]

    @pytest.mark.asyncio
    async def test_subscribe(self, service, store, token):
        user_id = service.get_secret(token).user_id
        await service.create_subscription(user_id, "eth_ltc")
        assert store.list_subscriptions(user_id) == ["eth_ltc"]

    @pytest.mark.asyncio
    async def test_invalid_pair_not_stored(self, service, store, token):
        user_id = service.get_secret(token).user_id
        with pytest.raises(InvalidPairError):
            await service.create_subscription(user_id, "xrp_btc")
        assert store.list_subscriptions(user_id) == []

    @pytest.mark.asyncio
    async def test_upstream_failure_propagates(self, service, store, pairs_client, token):
        user_id = service.get_secret(token).user_id
        pairs_client.error = TransportError()
        with pytest.raises(TransportError):
            await service.create_subscription(user_id, "btc_eth")
        assert store.list_subscriptions(user_id) == []

    @pytest.mark.asyncio
    async def test_subscription_insert_runs_off_the_event_loop(self, service, store, token, monkeypatch):
        user_id = service.get_secret(token).user_id
        insert = store.create_subscription
        threads = []

        def recording_insert(*args):
            threads.append(threading.get_ident())
            return insert(*args)

        monkeypatch.setattr(store, "create_subscription", recording_insert)
        await service.create_subscription(user_id, "btc_eth")

        assert threads and threads[0] != threading.get_ident()
        assert store.list_subscriptions(user_id) == ["btc_eth"]
