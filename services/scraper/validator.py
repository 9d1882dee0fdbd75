from typing import Any

from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from core.exceptions import InvalidInputError
from models.request import ScrapeRequest

# WHATWG-style parsing: rejects forbidden host characters, bad ports and
# anything that is not an absolute http(s) URL with a host.
_HTTP_URL = TypeAdapter(AnyHttpUrl)


def validate_url(raw: Any) -> ScrapeRequest:
    """
    Fail fast on input that can never be scraped, before a browser is touched.

    Returns a ``ScrapeRequest`` for an absolute http(s) URL with a host;
    raises ``InvalidInputError`` otherwise.
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise InvalidInputError("URL is required")
    if not isinstance(raw, str):
        raise InvalidInputError("Invalid URL format")

    url = raw.strip()
    try:
        parsed = _HTTP_URL.validate_python(url)
    except ValidationError as exc:
        raise InvalidInputError("Invalid URL format") from exc

    if not parsed.host:
        raise InvalidInputError("Invalid URL format")
    return ScrapeRequest(url=url)
