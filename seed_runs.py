#!/usr/bin/env python3
"""
Utility script to generate sample plan runs and exercise the pipeline.

Quick usage:
    python seed_runs.py --mode api --count 50             # Send to the local API
    python seed_runs.py --mode redis --count 50 --redis-url redis://localhost:6379/0

Runs alternate between the bundled ``calculates`` and ``power_to_weight``
functions with random values for their leaf inputs.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import random
from typing import Iterable

import httpx

try:
    from redis.asyncio import Redis
except ModuleNotFoundError:  # pragma: no cover - Redis mode is optional
    Redis = None  # type: ignore[assignment]

CYLINDERS = (4, 6, 8)


def build_run(run_id: int) -> dict:
    if run_id % 2:
        return {"id": run_id, "function": "calculates", "bindings": {"c": random.randint(-10, 10)}}
    return {
        "id": run_id,
        "function": "power_to_weight",
        "bindings": {"cyls": random.choice(CYLINDERS)},
    }


async def publish_api(
    base_url: str,
    runs: Iterable[dict],
    *,
    concurrency: int = 10,
) -> None:
    semaphore = asyncio.Semaphore(concurrency)

    async def _send(client: httpx.AsyncClient, run: dict) -> None:
        async with semaphore:
            resp = await client.post("/api/v1/runs", json=run)
            resp.raise_for_status()

    async with httpx.AsyncClient(base_url=base_url, timeout=10) as client:
        await asyncio.gather(*[_send(client, run) for run in runs])


async def publish_redis(
    redis_url: str,
    queue: str,
    runs: Iterable[dict],
) -> None:
    if Redis is None:
        raise RuntimeError(
            "Install the 'redis' package to enable Redis mode (pip install redis)."
        )
    redis = Redis.from_url(redis_url)
    try:
        await redis.ping()
        for run in runs:
            await redis.rpush(queue, json.dumps(run))
    finally:
        await redis.aclose()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sample run generator.")
    parser.add_argument(
        "--mode",
        choices=("api", "redis"),
        default="api",
        help="Destination for the runs.",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=20,
        help="Number of runs to generate.",
    )
    parser.add_argument(
        "--start-id",
        type=int,
        default=1,
        help="First run id; ids already processed are ignored by the server.",
    )
    parser.add_argument(
        "--base-url",
        default="http://localhost:8000",
        help="API base URL (api mode).",
    )
    parser.add_argument(
        "--redis-url",
        default="redis://localhost:6379/0",
        help="Redis URL (redis mode).",
    )
    parser.add_argument(
        "--redis-queue",
        default="flowplan:runs",
        help="Redis list name (redis mode).",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Optional seed to generate reproducible data.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    if args.seed is not None:
        random.seed(args.seed)

    runs = [build_run(run_id) for run_id in range(args.start_id, args.start_id + args.count)]

    if args.mode == "api":
        print(f"Sending {args.count} runs to {args.base_url} ...")
        asyncio.run(publish_api(args.base_url, runs))
    else:
        print(f"Pushing {args.count} runs to Redis {args.redis_url}/{args.redis_queue} ...")
        asyncio.run(publish_redis(args.redis_url, args.redis_queue, runs))
    print("Done.")


if __name__ == "__main__":
    main()
