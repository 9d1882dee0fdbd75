# tests/fakes.py
"""
In-memory stand-in for ``playwright.async_api.async_playwright``.

It serves canned HTML per URL and counts every launch / open / close so the
tests can check that each acquired session is released exactly once. Faults
can be injected at each stage of the pipeline.
"""

import asyncio

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError


ZONE_URL = "https://www.fflogs.com/zone/statistics/68?dataset=50&class=Any"
BLANK_PAGE = (
    "<html><head><title>Example Domain</title></head>"
    "<body><div><h1>Example Domain</h1><p>For use in examples.</p></div></body></html>"
)


class FakeEngine:
    """Callable like ``async_playwright``; holds counters and fault switches."""

    def __init__(
        self,
        pages=None,
        *,
        start_error=None,
        launch_error=None,
        launch_delay=0.0,
        context_error=None,
        close_delay=0.0,
        goto_errors=None,
        goto_delay=0.0,
        wait_error=None,
        content_error=None,
        content_delay=0.0,
        crash_at=None,
    ):
        self.pages = dict(pages or {})
        self.start_error = start_error
        self.launch_error = launch_error
        self.launch_delay = launch_delay
        self.context_error = context_error
        self.close_delay = close_delay
        self.goto_errors = dict(goto_errors or {})
        self.goto_delay = goto_delay
        self.wait_error = wait_error
        self.content_error = content_error
        self.content_delay = content_delay
        self.crash_at = crash_at

        self.starts = 0
        self.stops = 0
        self.launches = 0
        self.launch_kwargs = []
        self.browsers_closed = 0
        self.contexts_opened = 0
        self.contexts_closed = 0
        self.context_options = []

    def __call__(self):
        return _Starter(self)

    @property
    def open_contexts(self) -> int:
        return self.contexts_opened - self.contexts_closed


class _Starter:
    def __init__(self, engine):
        self._engine = engine

    async def start(self):
        engine = self._engine
        engine.starts += 1
        if engine.start_error is not None:
            raise engine.start_error
        return FakePlaywright(engine)


class FakePlaywright:
    def __init__(self, engine):
        self._engine = engine
        self.chromium = FakeChromium(engine)

    async def stop(self):
        self._engine.stops += 1


class FakeChromium:
    def __init__(self, engine):
        self._engine = engine

    async def launch(self, **kwargs):
        engine = self._engine
        await asyncio.sleep(engine.launch_delay)
        if engine.launch_error is not None:
            raise engine.launch_error
        engine.launches += 1
        engine.launch_kwargs.append(kwargs)
        return FakeBrowser(engine)


class FakeBrowser:
    def __init__(self, engine):
        self._engine = engine
        self.connected = True

    def is_connected(self) -> bool:
        return self.connected

    async def new_context(self, **options):
        engine = self._engine
        if engine.context_error is not None:
            raise engine.context_error
        engine.contexts_opened += 1
        engine.context_options.append(options)
        return FakeContext(engine)

    async def close(self):
        self._engine.browsers_closed += 1
        self.connected = False


class FakeContext:
    def __init__(self, engine):
        self._engine = engine

    async def new_page(self):
        return FakePage(self._engine)

    async def close(self):
        if self._engine.close_delay:
            await asyncio.sleep(self._engine.close_delay)
        self._engine.contexts_closed += 1


class FakePage:
    def __init__(self, engine):
        self._engine = engine
        self._handlers = {}
        self.closed = False
        self.html = None
        self.default_timeout = None
        self.goto_calls = []

    def on(self, event, callback):
        self._handlers.setdefault(event, []).append(callback)

    def set_default_timeout(self, timeout):
        self.default_timeout = timeout

    def is_closed(self) -> bool:
        return self.closed

    def _crash(self):
        for callback in self._handlers.get("crash", []):
            callback(self)
        self.closed = True
        raise PlaywrightError("Target crashed")

    async def goto(self, url, wait_until=None, timeout=None):
        engine = self._engine
        self.goto_calls.append({"url": url, "wait_until": wait_until, "timeout": timeout})
        if engine.goto_delay:
            await asyncio.sleep(engine.goto_delay)
        if engine.crash_at == "goto":
            self._crash()
        if url in engine.goto_errors:
            raise engine.goto_errors[url]
        self.html = engine.pages.get(url, BLANK_PAGE)
        return None

    async def wait_for_selector(self, selector, state=None, timeout=None):
        await asyncio.sleep(0)
        engine = self._engine
        if engine.crash_at == "wait":
            self._crash()
        if engine.wait_error is not None:
            raise engine.wait_error
        soup = BeautifulSoup(self.html or "", "html.parser")
        if soup.select_one(selector) is not None:
            return object()
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")

    async def content(self):
        engine = self._engine
        if engine.content_delay:
            await asyncio.sleep(engine.content_delay)
        if engine.crash_at == "content":
            self._crash()
        if engine.content_error is not None:
            raise engine.content_error
        return self.html or ""
