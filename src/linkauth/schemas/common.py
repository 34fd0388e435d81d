"""Common schemas used across the API."""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response."""

    success: bool = False
    detail: str
    code: str | None = None


class SuccessResponse(BaseModel):
    """Standard success response."""

    success: bool = True
    message: str
