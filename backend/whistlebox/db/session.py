from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from sqlalchemy.pool import NullPool, StaticPool

from whistlebox.db.base import Base


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the process-wide async engine.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url:
            # One shared connection, otherwise every session sees an empty DB
            kwargs["poolclass"] = StaticPool
    else:
        # For Supabase/PostgreSQL with asyncpg, SSL is specified in the URL
        if "supabase" in database_url and "ssl=" not in database_url:
            database_url = database_url + ("&" if "?" in database_url else "?") + "ssl=require"
        kwargs = {"poolclass": NullPool}

    return create_async_engine(database_url, echo=echo, future=True, **kwargs)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """
    Create tables if missing.
    """
    # Trigger model registration
    from whistlebox.models.complaint import Complaint  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
