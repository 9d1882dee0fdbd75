# services/scraper/browser.py
"""
Browser Session Manager.

Owns every Playwright resource the scrape pipeline touches:

* the Chromium process – either one shared process launched lazily on first
  use (``REUSE_BROWSER=true``) or one process per session;
* one isolated ``BrowserContext`` + ``Page`` per request, with a fixed
  identity (user agent, viewport).

Callers never pair acquire/release by hand; they use ``session()``::

    async with manager.session() as session:
        await manager.navigate(session, url)
        ...

The context manager releases the session exactly once on every exit path –
success, a pipeline error, a timeout, or task cancellation.
"""

import asyncio
import re
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright
from prometheus_client import Counter, Gauge, Histogram

from core.config import Settings, get_settings
from core.exceptions import NavigationError, NavigationTimeoutError, ResourceUnavailableError

# Browser metrics
BROWSER_LAUNCH_TOTAL = Counter('browser_launch_total', 'Total number of Chromium processes launched')
BROWSER_LAUNCH_FAILURES = Counter('browser_launch_failures_total', 'Total number of failed browser launches')
BROWSER_SESSIONS_OPENED = Counter('browser_sessions_opened_total', 'Browser sessions acquired')
BROWSER_SESSIONS_RELEASED = Counter('browser_sessions_released_total', 'Browser sessions released')
BROWSER_SESSIONS_ACTIVE = Gauge('browser_sessions_active', 'Browser sessions currently held')
PAGE_LOAD_DURATION = Histogram('page_load_duration_seconds', 'Time taken for page loads')

_NET_ERROR = re.compile(r"net::ERR_[A-Z_]+")


def _navigation_reason(exc: Exception) -> str:
    """Short, caller-safe description of a Playwright navigation error."""
    match = _NET_ERROR.search(str(exc))
    if match:
        return f"Could not load page ({match.group(0)})"
    return "Could not load page"


CLOSE_TIMEOUT = 10.0


async def _close_quietly(what: str, closer: Callable[[], Any], timeout: float = CLOSE_TIMEOUT) -> None:
    """Run ``closer`` bounded by ``timeout``; failures are logged, never raised."""
    try:
        await asyncio.wait_for(closer(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Closing {what} did not finish within {timeout:g}s")
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning(f"Error closing {what}: {exc}")


class BrowserSession:
    """
    One exclusively-owned browsing context. Never shared between requests.

    ``browser``/``playwright`` are only set when this session owns its own
    Chromium process and must shut it down on release.
    """

    def __init__(
        self,
        context: Any,
        page: Any,
        browser: Any = None,
        playwright: Any = None,
        close_timeout: float = CLOSE_TIMEOUT,
    ):
        self.context = context
        self.page = page
        self._browser = browser
        self._playwright = playwright
        self.close_timeout = close_timeout
        self.crashed = False
        self.released = False
        page.on("crash", self._on_crash)

    @property
    def owns_browser(self) -> bool:
        return self._browser is not None

    def _on_crash(self, *_args: Any) -> None:
        self.crashed = True
        logger.error("Page crashed – session is no longer usable")

    def is_usable(self) -> bool:
        return not (self.released or self.crashed or self.page.is_closed())

    async def close(self) -> None:
        """Close the context and, when owned, the browser process."""
        await _close_quietly("browser context", self.context.close, self.close_timeout)
        if self._browser is not None:
            await _close_quietly("browser", self._browser.close, self.close_timeout)
        if self._playwright is not None:
            await _close_quietly("playwright driver", self._playwright.stop, self.close_timeout)


class BrowserManager:
    """
    Hands out ``BrowserSession`` objects and guarantees their release.

    The shared Chromium process is the only mutable process-wide state. Its
    launch and shutdown happen under ``self._lock`` so concurrent first
    requests launch it once and shutdown never races an in-flight launch.
    Contexts themselves are opened outside the lock.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        playwright_factory: Callable[[], Any] = async_playwright,
    ):
        self.settings = settings or get_settings()
        self._playwright_factory = playwright_factory
        self._playwright: Any = None
        self._browser: Any = None

        self._lock = asyncio.Lock()
        self._active = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._closing = False

    @property
    def active_sessions(self) -> int:
        return self._active

    @property
    def _close_timeout(self) -> float:
        return self.settings.SHUTDOWN_GRACE

    # ------------------------------------------------------------------
    # Process lifecycle
    # ------------------------------------------------------------------
    async def _launch(self):
        """Start a Playwright driver and a Chromium process."""
        logger.info("Launching headless Chromium")
        try:
            playwright = await self._playwright_factory().start()
        except Exception as exc:
            BROWSER_LAUNCH_FAILURES.inc()
            logger.error(f"Playwright driver failed to start: {exc}")
            raise ResourceUnavailableError("Browser engine could not be started") from exc

        try:
            browser = await playwright.chromium.launch(
                headless=self.settings.HEADLESS,
                args=list(self.settings.BROWSER_ARGS),
            )
        except BaseException as exc:
            # Cancellation included: the driver must not outlive a failed launch.
            await _close_quietly("playwright driver", playwright.stop, self._close_timeout)
            if isinstance(exc, Exception):
                BROWSER_LAUNCH_FAILURES.inc()
                logger.error(f"Chromium launch failed: {exc}")
                raise ResourceUnavailableError("Browser could not be launched") from exc
            logger.warning("Chromium launch interrupted; driver stopped")
            raise

        BROWSER_LAUNCH_TOTAL.inc()
        return playwright, browser

    async def _shared_browser(self) -> Any:
        async with self._lock:
            if self._browser is not None and not self._browser.is_connected():
                logger.warning("Shared browser disconnected – relaunching")
                await self._close_shared_unlocked()
            if self._browser is None:
                self._playwright, self._browser = await self._launch()
            return self._browser

    async def _close_shared_unlocked(self) -> None:
        if self._browser is not None:
            await _close_quietly("shared browser", self._browser.close, self._close_timeout)
        if self._playwright is not None:
            await _close_quietly("playwright driver", self._playwright.stop, self._close_timeout)
        self._browser = None
        self._playwright = None

    async def shutdown(self) -> None:
        """
        Refuse new sessions, give in-flight ones ``SHUTDOWN_GRACE`` seconds
        to finish, then close the shared browser.
        """
        async with self._lock:
            self._closing = True

        if self._active:
            logger.info(f"Waiting for {self._active} in-flight browser session(s)")
            try:
                await asyncio.wait_for(self._idle.wait(), timeout=self.settings.SHUTDOWN_GRACE)
            except asyncio.TimeoutError:
                logger.warning(f"{self._active} browser session(s) still active – closing anyway")

        async with self._lock:
            await self._close_shared_unlocked()
        logger.info("Browser manager shut down")

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def _reserve(self) -> None:
        self._active += 1
        self._idle.clear()
        BROWSER_SESSIONS_ACTIVE.set(self._active)

    def _unreserve(self) -> None:
        self._active -= 1
        if self._active == 0:
            self._idle.set()
        BROWSER_SESSIONS_ACTIVE.set(self._active)

    async def acquire(self) -> BrowserSession:
        """
        Open a fresh isolated context. Raises ``ResourceUnavailableError``
        when the engine cannot provide one.
        """
        async with self._lock:
            if self._closing:
                raise ResourceUnavailableError("Browser manager is shutting down")
            self._reserve()

        try:
            session = await self._open_session()
        except BaseException:
            self._unreserve()
            raise

        BROWSER_SESSIONS_OPENED.inc()
        logger.debug(f"Acquired browser session {id(session)}")
        return session

    async def _open_session(self) -> BrowserSession:
        if self.settings.REUSE_BROWSER:
            browser = await self._shared_browser()
            owned_playwright = None
        else:
            owned_playwright, browser = await self._launch()

        owned_browser = None if self.settings.REUSE_BROWSER else browser
        context = None
        try:
            context = await browser.new_context(
                user_agent=self.settings.DEFAULT_USER_AGENT,
                viewport={
                    "width": self.settings.VIEWPORT_WIDTH,
                    "height": self.settings.VIEWPORT_HEIGHT,
                },
            )
            page = await context.new_page()
        except BaseException as exc:
            if context is not None:
                await _close_quietly("browser context", context.close, self._close_timeout)
            if owned_browser is not None:
                await _close_quietly("browser", owned_browser.close, self._close_timeout)
                await _close_quietly("playwright driver", owned_playwright.stop, self._close_timeout)
            if isinstance(exc, Exception):
                logger.error(f"Could not open a browser context: {exc}")
                raise ResourceUnavailableError("Could not open a browser context") from exc
            raise

        page.set_default_timeout(self.settings.NAVIGATION_TIMEOUT * 1000)
        return BrowserSession(
            context,
            page,
            browser=owned_browser,
            playwright=owned_playwright,
            close_timeout=self._close_timeout,
        )

    async def release(self, session: BrowserSession) -> None:
        """Close ``session``. Only the first call per session does anything."""
        if session.released:
            return
        session.released = True
        try:
            await session.close()
        finally:
            self._unreserve()
            BROWSER_SESSIONS_RELEASED.inc()
            logger.debug(f"Released browser session {id(session)}")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[BrowserSession]:
        """Scoped acquire/release – the only way the pipeline obtains a session."""
        session = await self.acquire()
        try:
            yield session
        finally:
            # Shielded so a second cancellation cannot interrupt the cleanup.
            await asyncio.shield(self.release(session))

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    async def navigate(self, session: BrowserSession, url: str, timeout: Optional[float] = None):
        """
        Load ``url`` and return once the DOM is constructed. Network idle is
        not awaited.
        """
        timeout = timeout if timeout is not None else self.settings.NAVIGATION_TIMEOUT
        logger.info(f"Navigating to {url}")
        start = time.perf_counter()
        try:
            response = await session.page.goto(
                url, wait_until="domcontentloaded", timeout=timeout * 1000
            )
        except PlaywrightTimeoutError as exc:
            logger.warning(f"Navigation to {url} timed out after {timeout:g}s")
            raise NavigationTimeoutError(
                f"Navigation timed out after {timeout:g}s", url=url
            ) from exc
        except PlaywrightError as exc:
            logger.warning(f"Navigation to {url} failed: {exc}")
            raise NavigationError(_navigation_reason(exc), url=url) from exc

        elapsed = time.perf_counter() - start
        PAGE_LOAD_DURATION.observe(elapsed)
        logger.info(f"DOM loaded for {url} in {elapsed:.2f}s")
        return response
