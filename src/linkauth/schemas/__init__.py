"""Pydantic schemas for API requests/responses."""

from linkauth.schemas.common import ErrorResponse, SuccessResponse

__all__ = [
    "ErrorResponse",
    "SuccessResponse",
]
