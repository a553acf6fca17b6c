from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from flowplan.core.config import settings

engine = create_async_engine(settings.DB_URL, echo=False, future=True)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Create tables when using SQLite (optional, handy in development)
async def init_models():
    from flowplan.db import models  # noqa: F401
    from flowplan.db.base import Base
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
