from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from redis.asyncio import Redis

from flowplan.api.v1.routes import router as api_router
from flowplan.core.config import settings
from flowplan.db.session import async_session, init_models
from flowplan.services.redis_consumer import RedisRunConsumer
from flowplan.services.run_processor import RunProcessor

logger = logging.getLogger("flowplan.app")


async def _connect_consumer(url: str) -> RedisRunConsumer | None:
    """Return a consumer for the configured run queue, or ``None`` if Redis is down."""
    client = Redis.from_url(url)
    try:
        await client.ping()
    except Exception as exc:  # noqa: BLE001
        await client.aclose()
        logger.warning("Redis at %s unreachable (%s); runs only arrive over HTTP.", url, exc)
        return None
    return RedisRunConsumer(
        client,
        settings.RUN_REDIS_QUEUE,
        rejected_queue=settings.RUN_REDIS_REJECTED_QUEUE,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    processor = RunProcessor(
        async_session,
        concurrency=settings.RUN_WORKERS,
        max_retries=settings.RUN_MAX_RETRIES,
    )
    await processor.start()
    app.state.run_processor = processor

    consumer = await _connect_consumer(settings.RUN_REDIS_URL) if settings.RUN_REDIS_URL else None
    if consumer is not None:
        await consumer.start(processor)
    app.state.redis_consumer = consumer

    try:
        yield
    finally:
        if consumer is not None:
            await consumer.stop()
            await consumer.close()
        await processor.stop()


app = FastAPI(title="flowplan API", version="0.1.0", lifespan=lifespan)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(api_router, prefix=settings.API_PREFIX)
