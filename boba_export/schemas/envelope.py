from typing import Any

from pydantic import BaseModel


class ErrorLocation(BaseModel):
    field: str | None = None
    clip_id: str | None = None
    track: str | None = None
    index: int | None = None


class ErrorInfo(BaseModel):
    code: str
    message: str
    location: ErrorLocation | None = None
    retryable: bool = False
    suggested_fix: str | None = None  # Human-readable fix suggestion
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    error: ErrorInfo
