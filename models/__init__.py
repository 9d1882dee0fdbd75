from .request import ScrapePayload, ScrapeRequest
from .record import ScrapedRecord, TableRow
from .result import ScrapeFailure, ScrapeResult, ScrapeSuccess

__all__ = [
    'ScrapePayload', 'ScrapeRequest', 'ScrapedRecord', 'TableRow',
    'ScrapeFailure', 'ScrapeResult', 'ScrapeSuccess',
]
