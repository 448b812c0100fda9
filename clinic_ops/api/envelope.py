"""Response envelope shared by every JSON route.

Success and failure are separate models discriminated by ``success``; the
HTTP status always mirrors the envelope.
"""

from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiSuccess(BaseModel, Generic[T]):
    success: Literal[True] = True
    data: T


class ErrorBody(BaseModel):
    message: str
    code: Optional[str] = None
    details: Optional[Any] = None


class ApiError(BaseModel):
    success: Literal[False] = False
    error: ErrorBody


def error_content(message: str, code: Optional[str] = None, details: Any = None) -> dict:
    return ApiError(error=ErrorBody(message=message, code=code, details=details)).model_dump(mode="json")
