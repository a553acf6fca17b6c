from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from flowplan.db.models import PlanRun
from flowplan.functions.registry import FunctionNotFoundError, Registry, default_registry
from flowplan.plan.nodes import Plan
from flowplan.schemas.plan import RunCreate, RunRead
from flowplan.services.evaluator import UnboundLeafError, evaluate
from flowplan.services.resolver import CyclicDependencyError, solve

logger = logging.getLogger("flowplan.run_processor")

PERMANENT_ERRORS = (CyclicDependencyError, UnboundLeafError, FunctionNotFoundError)


@dataclass(slots=True)
class QueueJob:
    payload: RunCreate
    attempt: int = 0
    plan: Plan | None = None


class RunProcessor:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        registry: Registry | None = None,
        concurrency: int = 2,
        max_retries: int = 1,
    ) -> None:
        self._session_factory = session_factory
        self._registry = registry if registry is not None else default_registry
        self._concurrency = max(1, concurrency)
        self._max_retries = max(0, max_retries)

        self._queue: asyncio.Queue[QueueJob] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self._shutdown_event = asyncio.Event()

    @property
    def registry(self) -> Registry:
        return self._registry

    async def start(self) -> None:
        if self._workers:
            return
        self._shutdown_event.clear()
        for index in range(self._concurrency):
            task = asyncio.create_task(
                self._worker_loop(index), name=f"run-worker-{index}"
            )
            self._workers.append(task)
        logger.info("RunProcessor started with %s workers.", self._concurrency)

    async def stop(self) -> None:
        self._shutdown_event.set()
        await self._queue.join()
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        logger.info("RunProcessor stopped.")

    async def enqueue(self, run: RunCreate | dict[str, Any]) -> None:
        payload = run if isinstance(run, RunCreate) else RunCreate.model_validate(run)
        if await self._is_already_processed(payload.id):
            logger.info("Run %s already processed; ignoring new request.", payload.id)
            return
        await self._queue.put(QueueJob(payload=payload))
        logger.info("Run %s of '%s' queued.", payload.id, payload.function)

    async def wait_for_all(self) -> None:
        """Wait for the queue to finish processing all pending runs."""
        await self._queue.join()

    async def _worker_loop(self, worker_id: int) -> None:
        logger.debug("Worker %s started.", worker_id)
        while True:
            if self._shutdown_event.is_set() and self._queue.empty():
                break
            try:
                job = await asyncio.wait_for(self._queue.get(), timeout=0.5)
            except asyncio.TimeoutError:
                continue

            try:
                await self._process_job(job, worker_id)
            except Exception:  # noqa: BLE001
                logger.exception("Worker %s could not record run %s", worker_id, job.payload.id)
            finally:
                self._queue.task_done()
        logger.debug("Worker %s finished.", worker_id)

    async def _process_job(self, job: QueueJob, worker_id: int) -> None:
        run = job.payload
        if await self._is_already_processed(run.id):
            logger.info("Run %s was already processed; skipping.", run.id)
            return

        try:
            if job.plan is None:
                job.plan = solve(run.function, self._registry)
            result = await asyncio.to_thread(
                evaluate, job.plan, run.function, run.bindings
            )
            if await self._persist(job, status="succeeded", result=result):
                logger.info("Run %s evaluated by worker %s.", run.id, worker_id)
        except PERMANENT_ERRORS as exc:
            logger.error("Run %s of '%s' cannot be evaluated: %s", run.id, run.function, exc)
            await self._persist(job, status="failed", error=str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error evaluating run %s", run.id)
            await self._handle_failure(job, exc)

    async def _handle_failure(self, job: QueueJob, exc: Exception) -> None:
        if self._shutdown_event.is_set():
            logger.warning(
                "Failed evaluating run %s during shutdown: %s",
                job.payload.id,
                exc,
            )
            await self._persist(job, status="failed", error=str(exc))
            return
        if job.attempt < self._max_retries:
            job.attempt += 1
            await self._queue.put(job)
            logger.warning(
                "Failed evaluating run %s (attempt %s/%s): %s. Retrying.",
                job.payload.id,
                job.attempt,
                self._max_retries,
                exc,
            )
        else:
            logger.error(
                "Failed evaluating run %s after %s attempts: %s",
                job.payload.id,
                job.attempt + 1,
                exc,
            )
            await self._persist(job, status="failed", error=str(exc))

    async def _persist(
        self,
        job: QueueJob,
        *,
        status: str,
        result: Any = None,
        error: str | None = None,
    ) -> bool:
        """Store the outcome of ``job``; ``False`` if its run id is already stored."""
        run = job.payload
        async with self._session_factory() as session:
            session.add(
                PlanRun(
                    run_id=run.id,
                    function=run.function,
                    status=status,
                    bindings=to_jsonable_python(run.bindings, fallback=repr),
                    plan=job.plan.to_dict() if job.plan is not None else None,
                    result=to_jsonable_python(result, fallback=repr),
                    error=error,
                    attempts=job.attempt + 1,
                )
            )
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info("Run %s was recorded by another worker; skipping.", run.id)
                return False
        return True

    async def _is_already_processed(self, run_id: int) -> bool:
        async with self._session_factory() as session:
            exists = await session.scalar(
                select(PlanRun.run_id).where(PlanRun.run_id == run_id)
            )
            return exists is not None

    @staticmethod
    def _to_read(row: PlanRun) -> RunRead:
        return RunRead(
            run_id=row.run_id,
            function=row.function,
            status=row.status,
            bindings=row.bindings or {},
            plan=row.plan,
            result=row.result,
            error=row.error,
            attempts=row.attempts,
            created_at=row.created_at,
        )

    async def list_runs(self, limit: int = 50) -> list[RunRead]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PlanRun).order_by(PlanRun.created_at.desc(), PlanRun.id.desc()).limit(limit)
            )
            return [self._to_read(row) for row in result.scalars().all()]

    async def get_run(self, run_id: int) -> RunRead | None:
        async with self._session_factory() as session:
            row = await session.scalar(select(PlanRun).where(PlanRun.run_id == run_id))
            if row is None:
                return None
            return self._to_read(row)
