# --------------------------------------------------------------
# scraper.py – scrape orchestration pipeline
# --------------------------------------------------------------
#
#   validate → acquire session → navigate → wait → extract → assemble
#
# The browser session brackets everything after validation and is released
# on every exit path. ``scrape`` never raises for a failed scrape; it returns
# a ``ScrapeFailure`` instead.

# ---------- Standard library ----------
import asyncio
from typing import Any, Optional

# ---------- Logging ----------
from loguru import logger

# ---------- Metrics ----------
from prometheus_client import Counter, Histogram

# ---------- Project-specific imports ----------
from core.config import Settings, get_settings
from core.exceptions import (
    ExtractionFailedError,
    NavigationError,
    NavigationTimeoutError,
    ResourceUnavailableError,
    ScraperException,
)
from models.request import ScrapeRequest
from models.result import ScrapeResult
from services.scraper import assembler
from services.scraper.browser import BrowserManager
from services.scraper.extractor import ExtractionEngine
from services.scraper.rules import RuleSet, get_rule_set
from services.scraper.validator import validate_url
from services.scraper.wait_strategy import WaitStrategy

SCRAPE_REQUESTS = Counter('scraper_requests_total', 'Total number of scrape requests')
SCRAPE_ERRORS = Counter('scraper_errors_total', 'Total number of scrape errors', ['kind'])
SCRAPE_DURATION = Histogram('scraper_duration_seconds', 'Time spent scraping URLs')

# Stage names, used to classify unexpected exceptions.
STAGE_ACQUIRE = "acquire"
STAGE_NAVIGATE = "navigate"
STAGE_WAIT = "wait"
STAGE_EXTRACT = "extract"


def _wrap_unexpected(stage: str, url: str) -> ScraperException:
    """Map a non-taxonomy exception onto the error kind of the stage it escaped from."""
    if stage == STAGE_ACQUIRE:
        return ResourceUnavailableError("Browser could not be started")
    if stage == STAGE_NAVIGATE:
        return NavigationError("Could not load page", url=url)
    return ExtractionFailedError("Page could not be processed", url=url)


class WebScraper:
    """
    High-level scrape API used by the HTTP layer and the CLI scripts.

    Owns nothing process-wide except through ``BrowserManager``; the rule set
    is read-only and shared across concurrent calls.
    """

    def __init__(
        self,
        browser_manager: Optional[BrowserManager] = None,
        rule_set: Optional[RuleSet] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.browser_manager = browser_manager or BrowserManager(self.settings)
        self.rule_set = rule_set or get_rule_set(self.settings.RULE_SET)

        self.wait_strategy = WaitStrategy(
            self.rule_set.ready_selectors,
            timeout=self.settings.CONTENT_WAIT_TIMEOUT,
            settle_delay=self.settings.SETTLE_DELAY,
        )
        self.extractor = ExtractionEngine(
            self.rule_set, evaluate_timeout=self.settings.EVALUATE_TIMEOUT
        )
        self.semaphore = asyncio.Semaphore(self.settings.CONCURRENT_SCRAPES)

    # ------------------------------------------------------------------
    # Public scrape entry point
    # ------------------------------------------------------------------
    async def scrape(self, raw_url: Any) -> ScrapeResult:
        """Run the whole pipeline for ``raw_url`` and return its result."""
        SCRAPE_REQUESTS.inc()

        try:
            request = validate_url(raw_url)
        except ScraperException as exc:
            SCRAPE_ERRORS.labels(kind=exc.kind.value).inc()
            logger.info(f"Rejected scrape request: {exc.message}")
            return assembler.failure(exc)

        logger.info(f"Processing scrape request for URL: {request.url}")
        try:
            with SCRAPE_DURATION.time():
                async with self.semaphore:
                    result = await asyncio.wait_for(
                        self._run(request), timeout=self.settings.SCRAPE_TIMEOUT
                    )
        except asyncio.TimeoutError:
            exc = NavigationTimeoutError(
                f"Scrape did not finish within {self.settings.SCRAPE_TIMEOUT:g}s",
                url=request.url,
            )
            SCRAPE_ERRORS.labels(kind=exc.kind.value).inc()
            logger.error(f"Scrape failure for {request.url}: {exc.message}")
            return assembler.failure(exc)
        except ScraperException as exc:
            SCRAPE_ERRORS.labels(kind=exc.kind.value).inc()
            logger.error(f"Scrape failure for {request.url}: {exc.message}")
            return assembler.failure(exc)

        logger.info("Scraping completed successfully")
        return result

    # ------------------------------------------------------------------
    # Pipeline body – runs inside the overall deadline
    # ------------------------------------------------------------------
    async def _run(self, request: ScrapeRequest) -> ScrapeResult:
        stage = STAGE_ACQUIRE
        try:
            async with self.browser_manager.session() as session:
                stage = STAGE_NAVIGATE
                await self.browser_manager.navigate(session, request.url)

                stage = STAGE_WAIT
                outcome = await self.wait_strategy.wait(session)

                stage = STAGE_EXTRACT
                record = await self.extractor.extract(session)
        except ScraperException:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception(f"Unexpected error during {stage} for {request.url}")
            raise _wrap_unexpected(stage, request.url) from exc

        return assembler.success(record, content_ready=outcome.content_ready)

    # ------------------------------------------------------------------
    # Graceful shutdown
    # ------------------------------------------------------------------
    async def cleanup(self) -> None:
        await self.browser_manager.shutdown()
