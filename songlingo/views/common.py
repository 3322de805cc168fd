"""Common response schemas."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: int
