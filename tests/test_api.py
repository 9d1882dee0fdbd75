# tests/test_api.py
import re

import pytest
from fastapi.testclient import TestClient
from playwright.async_api import Error as PlaywrightError

from main import AVAILABLE_ENDPOINTS, create_app
from services.scraper.browser import BrowserManager
from services.scraper.scraper import WebScraper
from tests.fakes import ZONE_URL, FakeEngine

TIMESTAMP = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")
UNREACHABLE_URL = "https://unreachable.invalid/"


@pytest.fixture
def client(settings, scraper):
    with TestClient(create_app(settings, scraper=scraper)) as test_client:
        yield test_client


# -------------------------------------------------------------------
# POST /scrape
# -------------------------------------------------------------------
def test_scrape_zone_page(client, engine):
    response = client.post("/scrape", json={"url": ZONE_URL})

    assert response.status_code == 200
    assert response.headers["X-Content-Ready"] == "true"
    body = response.json()
    assert body["success"] is True
    assert body["data"]["zoneName"] == "Anabaseios (Savage)"
    assert body["data"]["bossName"] == "Kokytos"
    assert body["data"]["tableRows"][0] == {
        "jobName": "Black Mage",
        "score": "12,345.6",
        "count": "1,204",
    }
    assert TIMESTAMP.match(body["data"]["timestamp"])
    assert engine.contexts_opened == engine.contexts_closed == 1


def test_scrape_rejects_malformed_url(client, engine):
    response = client.post("/scrape", json={"url": "not-a-url"})

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Invalid URL format",
        "example": {"url": "https://example.com"},
    }
    assert engine.starts == 0


@pytest.mark.parametrize("payload", [{}, {"url": ""}, {"url": None}])
def test_scrape_requires_url(client, payload):
    response = client.post("/scrape", json=payload)

    assert response.status_code == 400
    assert response.json()["error"] == "URL is required"
    assert response.json()["example"] == {"url": "https://example.com"}


def test_scrape_without_body_requires_url(client):
    response = client.post("/scrape")
    assert response.status_code == 400
    assert response.json()["error"] == "URL is required"


def test_scrape_with_unparseable_body_is_rejected(client, engine):
    response = client.post(
        "/scrape", content="{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert engine.starts == 0


def test_scrape_page_without_content_is_empty_success(client, engine):
    response = client.post("/scrape", json={"url": "https://example.com"})

    assert response.status_code == 200
    assert response.headers["X-Content-Ready"] == "false"
    data = response.json()["data"]
    assert data["zoneName"] == ""
    assert data["bossName"] == ""
    assert data["tableRows"] == []
    assert TIMESTAMP.match(data["timestamp"])
    assert engine.contexts_opened == engine.contexts_closed == 1


def test_scrape_unreachable_host_is_server_error(settings, rule_set):
    engine = FakeEngine(
        goto_errors={UNREACHABLE_URL: PlaywrightError(f"net::ERR_NAME_NOT_RESOLVED at {UNREACHABLE_URL}")}
    )
    manager = BrowserManager(settings, playwright_factory=engine)
    scraper = WebScraper(browser_manager=manager, rule_set=rule_set, settings=settings)

    with TestClient(create_app(settings, scraper=scraper)) as client:
        response = client.post("/scrape", json={"url": UNREACHABLE_URL})

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Failed to scrape the website"
    assert body["message"] == "Could not load page (net::ERR_NAME_NOT_RESOLVED)"
    assert body["url"] == UNREACHABLE_URL
    assert engine.contexts_opened == engine.contexts_closed == 1


def test_app_shutdown_closes_the_browser(settings, scraper, engine):
    with TestClient(create_app(settings, scraper=scraper)) as client:
        client.post("/scrape", json={"url": ZONE_URL})
    assert engine.browsers_closed == 1
    assert engine.stops == 1


# -------------------------------------------------------------------
# Auxiliary endpoints
# -------------------------------------------------------------------
def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert TIMESTAMP.match(body["timestamp"])


def test_root_lists_endpoints(client, settings):
    body = client.get("/").json()
    assert body["name"] == settings.PROJECT_NAME
    assert body["version"] == settings.VERSION
    assert body["endpoints"] == AVAILABLE_ENDPOINTS
    assert body["health_check"] == "/health"


def test_get_scrape_points_to_post(client, engine):
    response = client.get("/scrape", params={"url": "https://example.com"})
    assert response.status_code == 200
    assert response.json()["example"]["body"] == {"url": "https://example.com"}
    assert engine.starts == 0


def test_get_scrape_without_url(client):
    response = client.get("/scrape")
    assert response.status_code == 400
    assert response.json()["error"] == "URL parameter is required"


def test_unknown_endpoint_is_json_404(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error": "Endpoint not found",
        "availableEndpoints": AVAILABLE_ENDPOINTS,
    }


def test_responses_carry_security_and_timing_headers(client):
    response = client.get("/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
    assert float(response.headers["X-Process-Time"]) >= 0


@pytest.mark.parametrize("url", ["https://exa mple.com", "http://exa<mple.com/"])
def test_scrape_rejects_forbidden_host_characters_before_launch(client, engine, url):
    response = client.post("/scrape", json={"url": url})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid URL format"
    assert engine.starts == 0


def test_wrong_method_lists_available_endpoints(client):
    response = client.post("/health")
    assert response.status_code == 405
    assert response.json() == {
        "success": False,
        "error": "Method Not Allowed",
        "availableEndpoints": AVAILABLE_ENDPOINTS,
    }
    assert "GET" in response.headers["Allow"]
