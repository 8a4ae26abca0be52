#!/usr/bin/env python3
"""Chaos scenario: fire concurrent withdrawals at one item to check for oversell.

The stock check and the ledger write are separate statements, so two requests
can read the same balance before either commits. This script creates a fresh
item, tops it up, then sends a burst of concurrent withdrawals (or orders) and
reports whether the final balance went negative. Run it against a service with
``SERVICE_SERIALIZE_STOCK_MUTATIONS`` toggled to compare both modes.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

import httpx


@dataclass(slots=True)
class AttemptResult:
    status_code: int
    body: str
    duration_ms: float


@dataclass(slots=True)
class RaceOutcome:
    item_id: int
    top_up: int
    attempts: List[AttemptResult] = field(default_factory=list)
    remaining_stock: int = 0

    @property
    def accepted(self) -> int:
        return sum(1 for attempt in self.attempts if attempt.status_code == 201)

    @property
    def rejected(self) -> int:
        return sum(1 for attempt in self.attempts if attempt.status_code == 400)


class RaceError(RuntimeError):
    def __init__(self, message: str, *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context: Dict[str, Any] = dict(context or {})


def _env_default(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value else default


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Concurrent withdrawals against one item to detect oversell")
    parser.add_argument(
        "--base-url",
        default=_env_default("STOCK_RACE_BASE_URL", "http://127.0.0.1:8000"),
        help="Base URL for the stock service (default: %(default)s or STOCK_RACE_BASE_URL)",
    )
    parser.add_argument(
        "--top-up",
        type=int,
        default=int(_env_default("STOCK_RACE_TOP_UP", "10")),
        help="Quantity topped up before the burst (default: %(default)s or STOCK_RACE_TOP_UP)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=int(_env_default("STOCK_RACE_CONCURRENCY", "20")),
        help="Number of concurrent withdrawals (default: %(default)s or STOCK_RACE_CONCURRENCY)",
    )
    parser.add_argument(
        "--qty",
        type=int,
        default=1,
        help="Quantity per withdrawal (default: %(default)s)",
    )
    parser.add_argument(
        "--mode",
        choices=("inventory", "order"),
        default="inventory",
        help="Withdraw through raw inventory movements or through orders (default: %(default)s)",
    )
    parser.add_argument(
        "--actor",
        default="chaos-race",
        help="Identity sent in the X-Actor header (default: %(default)s)",
    )
    parser.add_argument(
        "--request-timeout",
        type=float,
        default=10.0,
        help="HTTP client timeout in seconds (default: %(default)s)",
    )

    args = parser.parse_args()
    if args.top_up < 0:
        parser.error("--top-up must be zero or positive")
    if args.concurrency <= 0:
        parser.error("--concurrency must be positive")
    if args.qty <= 0:
        parser.error("--qty must be positive")
    return args


def _expect(response: httpx.Response, status_code: int, message: str) -> Dict[str, Any]:
    if response.status_code != status_code:
        raise RaceError(message, context={"status_code": response.status_code, "body": response.text})
    return response.json()


async def _prepare_item(client: httpx.AsyncClient, top_up: int) -> int:
    name = f"race-{uuid.uuid4().hex[:8]}"
    item = _expect(
        await client.post("/api/item/save", json={"name": name, "price": "1.00"}),
        201,
        "Failed to create item",
    )
    item_id = int(item["id"])
    _expect(
        await client.post("/api/inventory/save", json={"itemId": item_id, "qty": top_up, "type": "T"}),
        201,
        "Failed to top up item",
    )
    return item_id


async def _withdraw(client: httpx.AsyncClient, args: argparse.Namespace, item_id: int) -> AttemptResult:
    if args.mode == "order":
        path = "/api/orders/save"
        payload: Dict[str, Any] = {"orderNo": uuid.uuid4().hex[:10], "itemId": item_id, "qty": args.qty}
    else:
        path = "/api/inventory/save"
        payload = {"itemId": item_id, "qty": args.qty, "type": "W"}
    start = time.monotonic()
    response = await client.post(path, json=payload)
    return AttemptResult(
        status_code=response.status_code,
        body=response.text[:200],
        duration_ms=(time.monotonic() - start) * 1000.0,
    )


async def run_race(args: argparse.Namespace) -> RaceOutcome:
    timeout = httpx.Timeout(args.request_timeout)
    headers = {"X-Actor": args.actor}
    async with httpx.AsyncClient(base_url=args.base_url, timeout=timeout, headers=headers) as client:
        item_id = await _prepare_item(client, args.top_up)
        outcome = RaceOutcome(item_id=item_id, top_up=args.top_up)
        outcome.attempts = list(
            await asyncio.gather(*(_withdraw(client, args, item_id) for _ in range(args.concurrency)))
        )
        item = _expect(await client.get(f"/api/item/{item_id}"), 200, "Failed to read item after burst")
        outcome.remaining_stock = int(item["remainingStock"])
        return outcome


def _outcome_to_dict(outcome: RaceOutcome, args: argparse.Namespace) -> Dict[str, Any]:
    unexpected = [
        {"statusCode": attempt.status_code, "body": attempt.body}
        for attempt in outcome.attempts
        if attempt.status_code not in (201, 400)
    ]
    durations = sorted(attempt.duration_ms for attempt in outcome.attempts)
    return {
        "status": "ok" if outcome.remaining_stock >= 0 else "oversold",
        "mode": args.mode,
        "itemId": outcome.item_id,
        "topUp": outcome.top_up,
        "concurrency": args.concurrency,
        "qty": args.qty,
        "accepted": outcome.accepted,
        "rejected": outcome.rejected,
        "expectedAccepted": min(args.concurrency, outcome.top_up // args.qty),
        "remainingStock": outcome.remaining_stock,
        "unexpected": unexpected,
        "durationsMs": {
            "min": round(durations[0], 2),
            "max": round(durations[-1], 2),
        },
    }


def main() -> int:
    args = parse_args()
    try:
        outcome = asyncio.run(run_race(args))
    except RaceError as exc:
        payload = {
            "status": "error",
            "message": str(exc),
            "context": exc.context,
        }
        json.dump(payload, sys.stdout, indent=2)
        sys.stdout.write("\n")
        return 2
    except httpx.HTTPError as exc:
        payload = {
            "status": "error",
            "message": str(exc),
        }
        json.dump(payload, sys.stdout, indent=2)
        sys.stdout.write("\n")
        return 3

    result = _outcome_to_dict(outcome, args)
    json.dump(result, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0 if outcome.remaining_stock >= 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
