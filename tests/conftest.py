# tests/conftest.py
from pathlib import Path

import pytest

from core.config import Settings
from services.scraper.browser import BrowserManager
from services.scraper.rules import get_rule_set
from services.scraper.scraper import WebScraper
from tests.fakes import ZONE_URL, FakeEngine

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def zone_html() -> str:
    return (FIXTURES / "zone_statistics.html").read_text(encoding="utf-8")

@pytest.fixture
def settings() -> Settings:
    """Short timeouts so the fault-injection tests stay fast."""
    return Settings(
        NAVIGATION_TIMEOUT=2.0,
        SETTLE_DELAY=0.0,
        CONTENT_WAIT_TIMEOUT=0.05,
        EVALUATE_TIMEOUT=1.0,
        SCRAPE_TIMEOUT=5.0,
        SHUTDOWN_GRACE=0.5,
        REUSE_BROWSER=True,
        CONCURRENT_SCRAPES=5,
    )

@pytest.fixture
def rule_set():
    return get_rule_set("fflogs")

@pytest.fixture
def engine(zone_html) -> FakeEngine:
    return FakeEngine(pages={ZONE_URL: zone_html})

@pytest.fixture
def manager(settings, engine) -> BrowserManager:
    return BrowserManager(settings, playwright_factory=engine)

@pytest.fixture
def scraper(settings, manager, rule_set) -> WebScraper:
    return WebScraper(browser_manager=manager, rule_set=rule_set, settings=settings)
