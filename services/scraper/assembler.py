# services/scraper/assembler.py
"""Response Assembler: pipeline outcome → ``ScrapeResult`` → HTTP response."""

from fastapi.responses import JSONResponse

from core.exceptions import ErrorKind, ScraperException
from models.record import ScrapedRecord
from models.result import ScrapeFailure, ScrapeResult, ScrapeSuccess

SCRAPE_FAILED = "Failed to scrape the website"


def success(record: ScrapedRecord, content_ready: bool = True) -> ScrapeSuccess:
    return ScrapeSuccess(data=record, content_ready=content_ready)


def failure(exc: ScraperException) -> ScrapeFailure:
    """Only the exception's short message is exposed, never its cause chain."""
    if exc.kind is ErrorKind.INVALID_INPUT:
        return ScrapeFailure(kind=exc.kind, error=exc.message)
    return ScrapeFailure(kind=exc.kind, error=SCRAPE_FAILED, message=exc.message, url=exc.url)


def to_response(result: ScrapeResult) -> JSONResponse:
    response = JSONResponse(status_code=result.status_code, content=result.to_dict())
    if isinstance(result, ScrapeSuccess):
        response.headers["X-Content-Ready"] = "true" if result.content_ready else "false"
    return response
