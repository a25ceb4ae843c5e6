from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from alumnilink.config import settings
import redis.asyncio as redis

async_engine = create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG)
AsyncSessionLocal = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)

_redis_client = None


async def get_redis():
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_tables(engine=async_engine):
    from alumnilink.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
