from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from blog_api.cache import cache
from blog_api.config import settings
from blog_api.middleware import install_query_counter

# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def commit(session: AsyncSession) -> None:
    """Commit *session*, then purge the cache entries its writes made stale."""
    await session.commit()
    await cache.invalidate_committed(session)


async def rollback(session: AsyncSession) -> None:
    await session.rollback()
    cache.discard_pending(session)


async def get_db():
    """
    Yield one session per request.

    The session is committed only when the endpoint returns normally; any
    exception (domain errors included) rolls back every statement issued
    during the request, so multi-step writes never leave partial state.
    """
    async with async_session() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            await rollback(session)
            raise
