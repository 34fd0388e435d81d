"""Authentication error types.

Every error carries the HTTP status and the message a caller is allowed to
see. Causes that must stay indistinguishable to the caller (an unknown token
versus an expired or consumed one, a missing account versus an unverified
one) share a single type and message.
"""

from fastapi import status


class AuthError(Exception):
    """Base class for errors surfaced at the API boundary."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Authentication failed"
    code: str = "auth_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class InvalidInput(AuthError):
    """Malformed request data, such as an unusable email address."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Valid email is required"
    code = "invalid_input"


class AlreadyVerified(AuthError):
    """The account has already completed verification."""

    status_code = status.HTTP_409_CONFLICT
    message = "Account is already verified"
    code = "already_verified"


class AccountNotFound(AuthError):
    """No account to act on, or the account is not verified yet."""

    status_code = status.HTTP_404_NOT_FOUND
    message = "No verified account found with this email"
    code = "not_found"


class InvalidOrExpiredToken(AuthError):
    """The magic link token is unknown, expired, or already used."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid or expired verification link"
    code = "invalid_or_expired_token"


class NotifierFailure(AuthError):
    """The magic link could not be delivered."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Failed to send magic link. Please try again."
    code = "notifier_failure"


class StoreConflict(AuthError):
    """A freshly generated token collided with another account's token."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Failed to issue magic link. Please try again."
    code = "store_conflict"


class Unauthenticated(AuthError):
    """Missing, malformed, expired or forged session credential."""

    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Authentication required"
    code = "unauthenticated"
