# core/config.py
"""
Application settings, read from the environment (and an optional ``.env``).

Everything the scrape pipeline tunes at runtime lives here so tests can build
a ``Settings`` instance with overrides instead of patching module globals.
"""

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Service
    # ------------------------------------------------------------------
    PROJECT_NAME: str = "Zone Stats Scraper API"
    VERSION: str = "1.0.0"
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    DEBUG: bool = False
    WORKERS: int = 1
    LOG_LEVEL: str = "INFO"
    ALLOWED_HOSTS: List[str] = ["*"]
    CORS_ORIGINS: List[str] = ["*"]

    # ------------------------------------------------------------------
    # Browser identity & launch
    # ------------------------------------------------------------------
    DEFAULT_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )
    VIEWPORT_WIDTH: int = 1280
    VIEWPORT_HEIGHT: int = 1024
    HEADLESS: bool = True
    BROWSER_ARGS: List[str] = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-dev-shm-usage",
        "--disable-accelerated-2d-canvas",
        "--no-first-run",
        "--no-zygote",
        "--disable-gpu",
    ]
    # One Chromium process shared by all requests (each still gets its own
    # context) vs. one process per request.
    REUSE_BROWSER: bool = True
    CONCURRENT_SCRAPES: int = 5

    # ------------------------------------------------------------------
    # Timeouts (seconds)
    # ------------------------------------------------------------------
    NAVIGATION_TIMEOUT: float = 60.0
    SETTLE_DELAY: float = 0.0
    CONTENT_WAIT_TIMEOUT: float = 30.0
    EVALUATE_TIMEOUT: float = 15.0
    SCRAPE_TIMEOUT: float = 120.0
    SHUTDOWN_GRACE: float = 10.0

    # ------------------------------------------------------------------
    # Extraction rules
    # ------------------------------------------------------------------
    RULES_PATH: Path = PROJECT_ROOT / "configs" / "extraction_rules.yaml"
    RULE_SET: str = "fflogs"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
