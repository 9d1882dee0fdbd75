import asyncio
import json
import sys
from pathlib import Path

# -------------------------------------------------------------------------
# Make the repository root importable when run as `python scripts/...`.
# -------------------------------------------------------------------------
repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from core.config import get_settings
from core.logging import configure_logging
from services.scraper.scraper import WebScraper


async def main(url: str) -> int:
    scraper = WebScraper()
    try:
        result = await scraper.scrape(url)
    finally:
        # Closes the shared Chromium process.
        await scraper.cleanup()

    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: python scripts/scrape_once.py <url>", file=sys.stderr)
        sys.exit(2)

    configure_logging(get_settings().LOG_LEVEL)
    sys.exit(asyncio.run(main(sys.argv[1])))
