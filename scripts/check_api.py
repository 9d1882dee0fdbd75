"""
Smoke test for a running API instance.

    python scripts/check_api.py [base_url] [target_url]
"""

import sys

import httpx

BASE_URL = "http://localhost:3000"
TARGET_URL = "https://example.com"


def main(base_url: str, target_url: str) -> int:
    with httpx.Client(base_url=base_url, timeout=180.0) as client:
        health = client.get("/health")
        print(f"GET /health        -> {health.status_code} {health.json()}")

        info = client.get("/")
        print(f"GET /              -> {info.status_code} {info.json()['endpoints']}")

        invalid = client.post("/scrape", json={"url": "not-a-url"})
        print(f"POST /scrape (bad) -> {invalid.status_code} {invalid.json()['error']}")

        scrape = client.post("/scrape", json={"url": target_url})
        body = scrape.json()
        print(f"POST /scrape       -> {scrape.status_code} success={body.get('success')}")
        if body.get("success"):
            data = body["data"]
            print(f"  zone={data['zoneName']!r} boss={data['bossName']!r} rows={len(data['tableRows'])}")
        else:
            print(f"  {body.get('message')}")

    ok = health.status_code == 200 and invalid.status_code == 400 and scrape.status_code in (200, 500)
    print("✅ API looks healthy" if ok else "❌ Unexpected responses")
    return 0 if ok else 1


if __name__ == "__main__":
    args = sys.argv[1:]
    sys.exit(main(
        args[0] if len(args) > 0 else BASE_URL,
        args[1] if len(args) > 1 else TARGET_URL,
    ))
