"""Session cookie helpers."""

from fastapi import Response

from linkauth.config import settings


def set_session_cookie(response: Response, token: str) -> None:
    """Store the session token in an HttpOnly, same-site cookie."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.jwt_expiration_days * 24 * 60 * 60,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )


def clear_session_cookie(response: Response) -> None:
    """Remove the session cookie using the same security options."""
    response.delete_cookie(
        key=settings.session_cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
