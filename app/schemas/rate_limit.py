"""Pydantic schemas for rate limit endpoints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RateLimitStatusResponse(BaseModel):
    """Outcome of an allowed consume call."""

    allowed: bool = Field(..., description="Always true; denials are returned as 429.")
    limit: int = Field(..., description="Maximum actions per window.")
    remaining: int = Field(..., description="Actions left in the current window.")
    reset: str = Field(..., description="ISO-8601 time at which the window resets.")


class RateLimitExceededResponse(BaseModel):
    """Body of a 429 response."""

    model_config = ConfigDict(populate_by_name=True)

    error: str = Field(..., description="Human-readable denial message.")
    limit: int = Field(..., description="Maximum actions per window.")
    remaining: int = Field(0, description="Always 0.")
    reset: str = Field(..., description="ISO-8601 time at which a new action is admitted.")
    retry_after: int = Field(
        ..., alias="retryAfter", description="Seconds until a new action is admitted."
    )


class CleanupResponse(BaseModel):
    """Outcome of an expired-record sweep."""

    deleted: int = Field(..., ge=0, description="Number of deleted records.")
