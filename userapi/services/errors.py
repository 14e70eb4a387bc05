"""Errors raised by the user service."""


class UserServiceError(Exception):
    """Base class for domain errors; the message is safe to show to clients."""

    message = "user service error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class ValidationError(UserServiceError):
    message = "validation error"


class InvalidEmailError(ValidationError):
    message = "validation error: email"


class InvalidPasswordError(ValidationError):
    message = "validation error: password"


class AccountExistsError(UserServiceError):
    message = "validation error: account with given email already exists"


class InvalidTokenError(UserServiceError):
    message = "token invalid"


class ExpiredTokenError(UserServiceError):
    message = "token expired"


class AccessDeniedError(UserServiceError):
    message = "access denied"


class InvalidCredentialsError(UserServiceError):
    message = "invalid credentials"


class InvalidPairError(UserServiceError):
    message = "invalid pair"


class TransportError(UserServiceError):
    message = "unable to reach external service"
