# models/request.py
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ScrapePayload(BaseModel):
    """
    Raw ``POST /scrape`` body, before validation.

    ``url`` is untyped; missing, blank and non-string values are left for
    ``validate_url`` to reject.
    """

    url: Any = Field(default=None, description="Absolute http(s) URL to scrape")

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={"example": {"url": "https://example.com"}},
    )


class ScrapeRequest(BaseModel):
    """
    A validated scrape request. Only ``validate_url`` builds these, so any
    instance holds an absolute http/https URL.
    """

    url: str

    model_config = ConfigDict(frozen=True)
