# models/result.py
"""
``ScrapeResult`` – the single outcome of one pipeline run.

It is either a ``ScrapeSuccess`` wrapping a ``ScrapedRecord`` or a
``ScrapeFailure`` carrying an ``ErrorKind`` and a short, non-leaking message.
``success`` is the discriminator, matching the public JSON envelope.
"""

from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from core.exceptions import ErrorKind
from models.record import ScrapedRecord

EXAMPLE_REQUEST = {"url": "https://example.com"}


class ScrapeSuccess(BaseModel):
    success: Literal[True] = True
    data: ScrapedRecord
    # Whether a "content ready" selector was seen before extraction.
    content_ready: bool = True

    model_config = ConfigDict(frozen=True)

    @property
    def status_code(self) -> int:
        return 200

    def to_dict(self) -> Dict[str, Any]:
        return {"success": True, "data": self.data.to_dict()}


class ScrapeFailure(BaseModel):
    success: Literal[False] = False
    kind: ErrorKind
    error: str
    message: Optional[str] = None
    url: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def status_code(self) -> int:
        return 400 if self.kind is ErrorKind.INVALID_INPUT else 500

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "error": self.error}
        if self.kind is ErrorKind.INVALID_INPUT:
            body["example"] = EXAMPLE_REQUEST
            return body
        body["message"] = self.message
        if self.url:
            body["url"] = self.url
        return body


ScrapeResult = Union[ScrapeSuccess, ScrapeFailure]
