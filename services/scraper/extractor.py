# services/scraper/extractor.py
"""
Extraction Engine.

Takes one DOM snapshot of the rendered page and applies every
``ExtractionRule`` to it independently with BeautifulSoup CSS selectors.

A rule that blows up (malformed selector, unexpected markup) is logged and
degrades to its empty value; it never aborts the other rules. The only
error that leaves the engine is ``ExtractionFailedError``, raised when the
page itself can no longer be read.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup
from loguru import logger
from playwright.async_api import Error as PlaywrightError
from prometheus_client import Counter

from core.exceptions import ExtractionFailedError
from models.record import ScrapedRecord
from services.scraper.browser import BrowserSession
from services.scraper.rules import Cardinality, ExtractionRule, RuleSet

RULE_FAILURES = Counter('extraction_rule_failures_total', 'Extraction rules that raised', ['field'])

SNAPSHOT_ATTEMPTS = 3
SNAPSHOT_RETRY_DELAY = 0.5


def _text(element) -> str:
    return element.get_text().strip()


def _empty(rule: ExtractionRule) -> Any:
    return [] if rule.cardinality is Cardinality.REPEATED else ""


class ExtractionEngine:
    def __init__(self, rule_set: RuleSet, evaluate_timeout: float = 15.0):
        self.rule_set = rule_set
        self.evaluate_timeout = evaluate_timeout

    async def extract(self, session: BrowserSession) -> ScrapedRecord:
        """Snapshot the live page and build a ``ScrapedRecord`` from it."""
        captured_at = datetime.now(timezone.utc)
        html = await self._snapshot(session)
        return self.extract_from_html(html, captured_at)

    async def _snapshot(self, session: BrowserSession) -> str:
        """Return the serialised DOM, retrying while the page is mid-update."""
        last_exc: Optional[Exception] = None
        for attempt in range(SNAPSHOT_ATTEMPTS):
            if not session.is_usable():
                raise ExtractionFailedError("Page became unusable before extraction") from last_exc
            try:
                return await asyncio.wait_for(session.page.content(), timeout=self.evaluate_timeout)
            except asyncio.TimeoutError as exc:
                raise ExtractionFailedError(
                    f"Reading the page took longer than {self.evaluate_timeout:g}s"
                ) from exc
            except PlaywrightError as exc:
                last_exc = exc
                logger.warning(f"Page snapshot failed on attempt {attempt + 1}: {exc}")
                await asyncio.sleep(SNAPSHOT_RETRY_DELAY)
        raise ExtractionFailedError("Unable to read the page content") from last_exc

    def extract_from_html(self, html: str, captured_at: Optional[datetime] = None) -> ScrapedRecord:
        """Apply every rule to ``html``. Never raises for content problems."""
        captured_at = captured_at or datetime.now(timezone.utc)
        soup = BeautifulSoup(html, "html.parser")

        values: Dict[str, Any] = {}
        for rule in self.rule_set.rules:
            values[rule.field] = self._apply(soup, rule)

        record = ScrapedRecord(timestamp=captured_at, **values)
        logger.info(
            f"Extracted zone={record.zone_name!r} boss={record.boss_name!r} "
            f"rows={len(record.table_rows)}"
        )
        return record

    def _apply(self, soup: BeautifulSoup, rule: ExtractionRule) -> Any:
        try:
            if rule.cardinality is Cardinality.REPEATED:
                return self._extract_rows(soup, rule)
            return self._extract_single(soup, rule)
        except Exception as exc:  # pylint: disable=broad-except
            RULE_FAILURES.labels(field=rule.field).inc()
            logger.warning(f"Error extracting {rule.field}: {exc}")
            return _empty(rule)

    @staticmethod
    def _extract_single(soup: BeautifulSoup, rule: ExtractionRule) -> str:
        element = soup.select_one(rule.selector)
        if element is None:
            logger.debug(f"No element for {rule.field} ({rule.selector})")
            return ""
        return _text(element)

    @staticmethod
    def _extract_rows(soup: BeautifulSoup, rule: ExtractionRule) -> List[Dict[str, str]]:
        rows: List[Dict[str, str]] = []
        matches = soup.select(rule.selector)
        logger.debug(f"Found {len(matches)} candidate rows for {rule.field}")

        for position, element in enumerate(matches):
            try:
                cells = element.select(rule.cell_selector)
                if len(cells) < rule.min_cells:
                    continue
                rows.append({
                    sub.name: _text(cells[sub.index]) if sub.index < len(cells) else ""
                    for sub in rule.sub_fields
                })
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning(f"Skipping row {position + 1} of {rule.field}: {exc}")
        return rows
