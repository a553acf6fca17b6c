from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from pydantic import ValidationError
from redis.asyncio import Redis

from flowplan.functions.registry import FunctionSource
from flowplan.schemas.plan import RunCreate
from flowplan.services.run_processor import RunProcessor

logger = logging.getLogger("flowplan.redis_consumer")


class RejectedPayload(ValueError):
    """A queued run request that can never be evaluated."""


class RedisRunConsumer:
    """
    Pop run requests from a Redis list and hand them to a :class:`RunProcessor`.

    Payloads are checked before they reach the processor: they must decode to a
    JSON object, carry their leaf ``bindings`` as an object, and name a function
    registered in the processor's registry. Rejected payloads are pushed, with
    the reason, onto ``rejected_queue`` when one is configured.
    """

    def __init__(
        self,
        redis: Redis,
        queue_name: str,
        *,
        rejected_queue: str | None = None,
        poll_timeout: int = 1,
    ) -> None:
        self._redis = redis
        self._queue_name = queue_name
        self._rejected_queue = rejected_queue
        self._poll_timeout = max(1, poll_timeout)
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self.accepted = 0
        self.rejected = 0

    async def start(self, processor: RunProcessor) -> None:
        if self._task:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(processor), name="redis-run-consumer")
        logger.info("RedisRunConsumer listening on '%s'.", self._queue_name)

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info(
            "RedisRunConsumer stopped (%s accepted, %s rejected).",
            self.accepted,
            self.rejected,
        )

    async def close(self) -> None:
        await self._redis.aclose()

    def decode(self, payload: bytes | str, registry: FunctionSource) -> RunCreate:
        try:
            raw: Any = json.loads(payload)
        except ValueError as exc:
            raise RejectedPayload(f"payload is not JSON ({exc})") from exc
        if not isinstance(raw, dict):
            raise RejectedPayload("payload must be a JSON object")
        if not isinstance(raw.get("bindings", {}), dict):
            raise RejectedPayload("'bindings' must map leaf names to values")

        try:
            run = RunCreate.model_validate(raw)
        except ValidationError as exc:
            errors = "; ".join(
                f"{'.'.join(map(str, error['loc']))}: {error['msg']}" for error in exc.errors()
            )
            raise RejectedPayload(f"invalid run request ({errors})") from exc

        if not registry.has_function(run.function):
            raise RejectedPayload(f"run {run.id}: '{run.function}' is not a registered function")
        return run

    async def _next_payload(self) -> bytes | str | None:
        try:
            data = await self._redis.blpop(self._queue_name, timeout=self._poll_timeout)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error reading from Redis: %s", exc)
            await asyncio.sleep(1)
            return None
        return data[1] if data else None

    async def _reject(self, payload: bytes | str, reason: str) -> None:
        self.rejected += 1
        logger.warning("Rejected run payload from '%s': %s", self._queue_name, reason)
        if self._rejected_queue is None:
            return
        text = payload.decode("utf-8", "replace") if isinstance(payload, bytes) else payload
        await self._redis.rpush(
            self._rejected_queue, json.dumps({"payload": text, "reason": reason})
        )

    async def _run(self, processor: RunProcessor) -> None:
        while not self._stop_event.is_set():
            try:
                payload = await self._next_payload()
            except asyncio.CancelledError:
                break
            if payload is None:
                continue

            try:
                run = self.decode(payload, processor.registry)
            except RejectedPayload as exc:
                await self._reject(payload, str(exc))
                continue

            self.accepted += 1
            logger.info("Run %s of '%s' read from Redis.", run.id, run.function)
            await processor.enqueue(run)
