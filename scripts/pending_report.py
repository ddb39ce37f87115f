"""Fetch and print orders still stuck in `pending` from the ledger service."""

import argparse
import json
import os

import httpx


def main() -> None:
    """CLI entrypoint for the stale pending-order report."""

    parser = argparse.ArgumentParser(description="List ledger entries still pending past a cutoff.")
    parser.add_argument("--ledger-url", default="http://localhost:8004")
    parser.add_argument("--older-than-minutes", type=int, default=60)
    parser.add_argument("--limit", type=int, default=1000)
    parser.add_argument("--api-key", default=os.getenv("API_KEY", ""))
    args = parser.parse_args()

    resp = httpx.get(
        f"{args.ledger_url}/reconciliation/pending",
        params={"older_than_minutes": args.older_than_minutes, "limit": args.limit},
        headers={"x-api-key": args.api_key},
        timeout=10.0,
    )
    resp.raise_for_status()
    print(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    main()
