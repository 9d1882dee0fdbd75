# services/scraper/wait_strategy.py
"""
Bridges "DOM constructed" and "content present" for pages that render
asynchronously after load.

The content wait is a soft timeout: not seeing any ready selector is logged
and reported in ``WaitOutcome`` but never fails the scrape, since a page can
legitimately have nothing to extract. Only an unusable page is fatal here.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Sequence

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from prometheus_client import Counter, Histogram

from core.exceptions import ExtractionFailedError
from services.scraper.browser import BrowserSession

CONTENT_WAIT_DURATION = Histogram('content_wait_seconds', 'Time spent waiting for ready content')
CONTENT_WAIT_TIMEOUTS = Counter('content_wait_timeouts_total', 'Content waits that expired without a match')


@dataclass(frozen=True)
class WaitOutcome:
    content_ready: bool
    waited_seconds: float


class WaitStrategy:
    def __init__(self, ready_selectors: Sequence[str], timeout: float, settle_delay: float = 0.0):
        self.ready_selectors = tuple(ready_selectors)
        self.timeout = timeout
        self.settle_delay = settle_delay

    @property
    def selector(self) -> str:
        return ", ".join(self.ready_selectors)

    async def wait(self, session: BrowserSession) -> WaitOutcome:
        """Wait for the first ready selector, or for the timeout to expire."""
        start = time.perf_counter()

        if self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)

        if not self.ready_selectors:
            return WaitOutcome(content_ready=True, waited_seconds=time.perf_counter() - start)

        logger.debug(f"Waiting up to {self.timeout:g}s for '{self.selector}'")
        try:
            await session.page.wait_for_selector(
                self.selector, state="attached", timeout=self.timeout * 1000
            )
        except PlaywrightTimeoutError:
            waited = time.perf_counter() - start
            CONTENT_WAIT_TIMEOUTS.inc()
            CONTENT_WAIT_DURATION.observe(waited)
            logger.warning(
                f"Expected elements not found within {self.timeout:g}s, continuing anyway"
            )
            return WaitOutcome(content_ready=False, waited_seconds=waited)
        except PlaywrightError as exc:
            if not session.is_usable():
                raise ExtractionFailedError("Page became unusable while waiting for content") from exc
            waited = time.perf_counter() - start
            CONTENT_WAIT_DURATION.observe(waited)
            logger.warning(f"Content wait failed ({exc}), continuing anyway")
            return WaitOutcome(content_ready=False, waited_seconds=waited)

        waited = time.perf_counter() - start
        CONTENT_WAIT_DURATION.observe(waited)
        logger.info(f"Page content found after {waited:.2f}s")
        return WaitOutcome(content_ready=True, waited_seconds=waited)
