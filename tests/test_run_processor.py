from __future__ import annotations

import asyncio
import time

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from flowplan.db.base import Base
from flowplan.db import models  # noqa: F401
from flowplan.functions.registry import Registry
from flowplan.schemas.plan import RunCreate
from flowplan.services.run_processor import RunProcessor


pytestmark = pytest.mark.anyio


@pytest.fixture
def anyio_backend():
    return "asyncio"


class Flaky:
    def __init__(self, fail_times: int) -> None:
        self.fail_times = fail_times
        self.calls = 0

    def __call__(self, seed):
        self.calls += 1
        if self.calls <= self.fail_times:
            raise ConnectionError("simulated failure")
        return seed * 10


def make_registry(flaky: Flaky | None = None) -> Registry:
    registry = Registry()

    @registry.register()
    def returns_1():
        return 1

    @registry.register()
    def returns_2():
        return 2

    @registry.register()
    def calculates(returns_1, returns_2, c):
        return returns_1 + returns_2 + c

    @registry.register()
    def a(b):
        return b

    @registry.register()
    def b(a):
        return a

    if flaky is not None:
        registry.define("remote", flaky)

    return registry


async def create_session_factory() -> async_sessionmaker[AsyncSession]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        future=True,
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def test_run_is_evaluated_and_persisted():
    session_factory = await create_session_factory()
    processor = RunProcessor(
        session_factory,
        registry=make_registry(),
        concurrency=1,
        max_retries=1,
    )

    await processor.start()
    await processor.enqueue({"id": 42, "function": "calculates", "bindings": {"c": 3}})
    await asyncio.wait_for(processor.wait_for_all(), timeout=2)

    stored = await processor.get_run(42)
    assert stored is not None
    assert stored.status == "succeeded"
    assert stored.result == 6
    assert stored.bindings == {"c": 3}
    assert list(stored.plan) == ["returns_1", "returns_2", "c", "calculates"]
    assert stored.plan["c"] == {"kind": "leaf"}
    assert stored.attempts == 1

    await processor.stop()


async def test_run_retries_on_failure():
    session_factory = await create_session_factory()
    flaky = Flaky(fail_times=1)
    processor = RunProcessor(
        session_factory,
        registry=make_registry(flaky),
        concurrency=1,
        max_retries=2,
    )

    await processor.start()
    await processor.enqueue(RunCreate(id=7, function="remote", bindings={"seed": 4}))
    await asyncio.wait_for(processor.wait_for_all(), timeout=2)

    stored = await processor.get_run(7)
    assert stored is not None
    assert stored.status == "succeeded"
    assert stored.result == 40
    assert stored.attempts == 2
    assert flaky.calls == 2  # first failure + successful retry

    await processor.stop()


async def test_run_fails_after_retries():
    session_factory = await create_session_factory()
    flaky = Flaky(fail_times=5)
    processor = RunProcessor(
        session_factory,
        registry=make_registry(flaky),
        concurrency=1,
        max_retries=1,
    )

    await processor.start()
    await processor.enqueue(RunCreate(id=8, function="remote", bindings={"seed": 1}))
    await asyncio.wait_for(processor.wait_for_all(), timeout=2)

    stored = await processor.get_run(8)
    assert stored is not None
    assert stored.status == "failed"
    assert stored.error == "simulated failure"
    assert flaky.calls == 2

    await processor.stop()


@pytest.mark.parametrize(
    ("function", "bindings", "message"),
    [
        ("calculates", {}, "No value bound for input 'c'"),
        ("a", {}, "Cyclic dependency: a -> b -> a"),
    ],
)
async def test_unresolvable_runs_fail_without_retry(function, bindings, message):
    session_factory = await create_session_factory()
    processor = RunProcessor(
        session_factory,
        registry=make_registry(),
        concurrency=1,
        max_retries=3,
    )

    await processor.start()
    await processor.enqueue(RunCreate(id=3, function=function, bindings=bindings))
    await asyncio.wait_for(processor.wait_for_all(), timeout=2)

    stored = await processor.get_run(3)
    assert stored is not None
    assert stored.status == "failed"
    assert stored.attempts == 1
    assert message in stored.error

    await processor.stop()


async def test_duplicate_runs_are_ignored():
    session_factory = await create_session_factory()
    flaky = Flaky(fail_times=0)
    processor = RunProcessor(
        session_factory,
        registry=make_registry(flaky),
        concurrency=1,
        max_retries=1,
    )

    await processor.start()
    run = RunCreate(id=99, function="remote", bindings={"seed": 2})
    await processor.enqueue(run)
    await asyncio.wait_for(processor.wait_for_all(), timeout=2)
    assert flaky.calls == 1

    await processor.enqueue(run)
    await asyncio.sleep(0.1)
    assert flaky.calls == 1  # no additional calls

    runs = await processor.list_runs()
    assert [stored.run_id for stored in runs] == [99]

    await processor.stop()


class Slow:
    def __init__(self, delay: float) -> None:
        self.delay = delay
        self.calls = 0

    def __call__(self, seed):
        self.calls += 1
        time.sleep(self.delay)
        return seed


async def test_duplicate_run_on_two_workers_keeps_workers_alive():
    session_factory = await create_session_factory()
    registry = make_registry()
    slow = Slow(delay=0.2)
    registry.define("slow", slow)
    processor = RunProcessor(
        session_factory,
        registry=registry,
        concurrency=2,
        max_retries=0,
    )

    await processor.start()
    run = RunCreate(id=5, function="slow", bindings={"seed": 1})
    await processor.enqueue(run)
    await processor.enqueue(run)
    await asyncio.wait_for(processor.wait_for_all(), timeout=3)

    assert slow.calls == 2  # both workers evaluated before either stored the run
    assert all(not task.done() for task in processor._workers)
    runs = await processor.list_runs()
    assert [(stored.run_id, stored.status) for stored in runs] == [(5, "succeeded")]

    await processor.enqueue(RunCreate(id=6, function="calculates", bindings={"c": 1}))
    await asyncio.wait_for(processor.wait_for_all(), timeout=2)
    stored = await processor.get_run(6)
    assert stored is not None
    assert stored.result == 4

    await processor.stop()


async def test_storage_failure_is_retried(monkeypatch: pytest.MonkeyPatch):
    session_factory = await create_session_factory()
    processor = RunProcessor(
        session_factory,
        registry=make_registry(),
        concurrency=1,
        max_retries=1,
    )
    original = processor._persist
    failures = [RuntimeError("database is locked")]

    async def flaky_persist(job, **kwargs):
        if failures:
            raise failures.pop()
        return await original(job, **kwargs)

    monkeypatch.setattr(processor, "_persist", flaky_persist)

    await processor.start()
    await processor.enqueue(RunCreate(id=11, function="calculates", bindings={"c": 3}))
    await asyncio.wait_for(processor.wait_for_all(), timeout=2)

    stored = await processor.get_run(11)
    assert stored is not None
    assert stored.status == "succeeded"
    assert stored.attempts == 2
    assert all(not task.done() for task in processor._workers)

    await processor.stop()


async def test_worker_survives_failure_to_record_a_failure(monkeypatch: pytest.MonkeyPatch):
    session_factory = await create_session_factory()
    processor = RunProcessor(
        session_factory,
        registry=make_registry(),
        concurrency=1,
        max_retries=0,
    )

    async def broken_persist(job, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(processor, "_persist", broken_persist)

    await processor.start()
    await processor.enqueue(RunCreate(id=12, function="a"))
    await asyncio.wait_for(processor.wait_for_all(), timeout=2)

    assert all(not task.done() for task in processor._workers)
    assert await processor.get_run(12) is None

    await processor.stop()
