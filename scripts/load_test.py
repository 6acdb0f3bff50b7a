"""Async load generator for the order intake endpoint.

`--duplicate-burst N` sends every key N times concurrently, which exercises
replay handling and the lookup-then-insert race window.
"""

import argparse
import asyncio
import random
import statistics
import time
from collections import Counter
from uuid import uuid4

import httpx


async def send_one(client: httpx.AsyncClient, base_url: str, idempotency_key: str):
    """Send one create request and return (status_code, latency_ms, order_id)."""

    started = time.perf_counter()
    payload = {
        "customerName": f"customer-{random.randint(1, 500)}",
        "totalAmount": round(random.uniform(1, 2500), 2),
    }
    try:
        resp = await client.post(
            f"{base_url}/orders",
            json=payload,
            headers={"Idempotency-Key": idempotency_key, "X-Correlation-Id": str(uuid4())},
        )
        latency = (time.perf_counter() - started) * 1000
        order_id = resp.json().get("orderId") if resp.status_code < 300 else None
        return resp.status_code, latency, order_id
    except Exception:
        latency = (time.perf_counter() - started) * 1000
        return 599, latency, None


async def run(total: int, concurrency: int, base_url: str, duplicate_burst: int):
    """Execute a bounded-concurrency load run and print summary stats."""

    sem = asyncio.Semaphore(concurrency)
    keys = [str(uuid4()) for _ in range(total)]
    results = []

    async with httpx.AsyncClient(timeout=10.0) as client:
        async def worker(key: str):
            async with sem:
                return key, await send_one(client, base_url, key)

        tasks = [asyncio.create_task(worker(key)) for key in keys for _ in range(duplicate_burst)]
        for task in asyncio.as_completed(tasks):
            results.append(await task)

    codes = Counter(code for _, (code, _, _) in results)
    lats = [latency for _, (_, latency, _) in results]
    orders_per_key: dict[str, set[str]] = {}
    for key, (_, _, order_id) in results:
        if order_id:
            orders_per_key.setdefault(key, set()).add(order_id)
    split_keys = sum(1 for ids in orders_per_key.values() if len(ids) > 1)

    def pct(values, p):
        """Simple percentile helper for sorted latency values."""

        if not values:
            return 0.0
        idx = min(len(values) - 1, max(0, int((p / 100.0) * len(values)) - 1))
        return sorted(values)[idx]

    print(f"requests={len(results)}")
    print(f"created={codes.get(201, 0)}")
    print(f"replayed={codes.get(200, 0)}")
    print(f"client_errors={sum(n for c, n in codes.items() if 400 <= c < 500)}")
    print(f"server_errors={sum(n for c, n in codes.items() if c >= 500)}")
    print(f"keys_with_duplicate_orders={split_keys}")
    print(f"p50_ms={pct(lats, 50):.2f}")
    print(f"p95_ms={pct(lats, 95):.2f}")
    print(f"p99_ms={pct(lats, 99):.2f}")
    print(f"avg_ms={statistics.mean(lats):.2f}")


if __name__ == "__main__":
    # CLI entrypoint used in README load-test examples.
    parser = argparse.ArgumentParser()
    parser.add_argument("--total", type=int, default=1000, help="Distinct idempotency keys")
    parser.add_argument("--concurrency", type=int, default=100)
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--duplicate-burst", type=int, default=1)
    args = parser.parse_args()
    asyncio.run(run(args.total, args.concurrency, args.base_url, max(1, args.duplicate_burst)))
