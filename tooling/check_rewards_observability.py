#!/usr/bin/env python3
"""Quick health check for the PegPlug reward pipeline.

Usage:
    python tooling/check_rewards_observability.py \
        --base-url https://staging-api.example.com \
        --api-key "$SESSION_API_KEY"

Fails when the database readiness probe is down, when geofence entry handling
failures exceed the threshold, or when the share of failed notification
deliveries is too high.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any, Dict, Optional

import httpx


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="PegPlug reward observability checker")
    parser.add_argument("--base-url", default="http://localhost:8000", help="Base URL of the PegPlug API.")
    parser.add_argument("--api-key", default=None, help="Service API key for the observability endpoint.")
    parser.add_argument(
        "--max-geofence-failures",
        type=int,
        default=0,
        help="Maximum geofence entry events that failed to stage redemptions (default: 0).",
    )
    parser.add_argument(
        "--max-notification-failure-rate",
        type=float,
        default=0.05,
        help="Maximum ratio (0-1) of failed notification deliveries (default: 0.05).",
    )
    parser.add_argument(
        "--notification-min-sample-size",
        type=int,
        default=20,
        help="Notifications required before the failure rate is enforced (default: 20).",
    )
    parser.add_argument("--timeout", type=float, default=10.0, help="HTTP request timeout in seconds.")
    return parser.parse_args()


async def _get_json(
    client: httpx.AsyncClient,
    path: str,
    *,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    response = await client.get(path, headers=headers)
    response.raise_for_status()
    return response.json()


def _fail(message: str) -> None:
    print(f"[check-rewards] FAIL {message}")
    sys.exit(1)


def _log_ok(message: str) -> None:
    print(f"[check-rewards] OK {message}")


async def validate_readiness(client: httpx.AsyncClient) -> None:
    payload = await _get_json(client, "/api/v1/readyz")
    if payload.get("status") != "ready":
        _fail(f"Readiness probe reported {payload.get('status')}: {payload.get('components')}")
    _log_ok("Database reachable")


def validate_snapshot(snapshot: Dict[str, Any], args: argparse.Namespace) -> None:
    geofence = snapshot.get("geofence", {})
    failures = int(geofence.get("failed", 0))
    if failures > args.max_geofence_failures:
        _fail(f"Geofence entry failures {failures} exceed threshold {args.max_geofence_failures}")
    _log_ok(f"Geofence entries={geofence.get('entered', 0)} staged={geofence.get('staged_redemptions', 0)}")

    statuses = snapshot.get("notifications", {}).get("by_status", {})
    total = sum(int(value) for value in statuses.values())
    failed = int(statuses.get("failed", 0))
    if total >= args.notification_min_sample_size:
        rate = failed / total
        if rate > args.max_notification_failure_rate:
            _fail(f"Notification failure rate {rate:.2%} exceeds {args.max_notification_failure_rate:.2%}")
        _log_ok(f"Notification failure rate {rate:.2%} over {total} notifications")
    else:
        _log_ok(f"Only {total} notifications recorded; failure rate not enforced")

    spins = snapshot.get("spins", {})
    _log_ok(f"Spins total={spins.get('total', 0)} wins={spins.get('wins', 0)}")


async def main() -> None:
    args = parse_args()
    headers = {"X-API-Key": args.api_key} if args.api_key else None
    async with httpx.AsyncClient(base_url=args.base_url, timeout=args.timeout) as client:
        await validate_readiness(client)
        snapshot = await _get_json(client, "/api/v1/observability/rewards", headers=headers)
    validate_snapshot(snapshot, args)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except httpx.HTTPError as exc:
        _fail(f"Request failed: {exc}")
