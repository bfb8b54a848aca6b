"""Pydantic schemas for scraping target validation."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from app.utils.url_validator import UrlRejectionReason


class ValidateUrlsRequest(BaseModel):
    """URLs a caller intends to fetch server-side."""

    urls: List[str] = Field(
        ...,
        max_length=100,
        description="Candidate URLs, e.g. a contact's company site and LinkedIn profile.",
    )
    enforce_allowlist: bool | None = Field(
        default=None,
        description=(
            "Only accept allow-listed domains. Defaults to SCRAPING_ENFORCE_ALLOWLIST."
        ),
    )


class UrlRejection(BaseModel):
    """Why a single URL was rejected."""

    url: str = Field(..., description="The rejected input, verbatim.")
    hostname: str | None = Field(
        default=None, description="Parsed hostname, absent when the URL is malformed."
    )
    reason: UrlRejectionReason = Field(..., description="First rule that rejected the URL.")


class ValidateUrlsResponse(BaseModel):
    """Partition of the submitted URLs, input order preserved per bucket."""

    valid: List[str] = Field(default_factory=list, description="URLs safe to fetch.")
    invalid: List[str] = Field(default_factory=list, description="URLs that must not be fetched.")
    rejections: List[UrlRejection] = Field(
        default_factory=list,
        description="One entry per invalid URL, in the same order as `invalid`.",
    )
