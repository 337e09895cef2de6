'''
Engine and session plumbing for the billing database.
- build_engine / build_session_factory: shared by the app, the tests and scripts/.
- create_db_engine_and_session_factory / dispose_db_engine: driven by the app lifespan.
- get_db_session: one session per request, committed when the route returns.
- atomic: wraps a multi-step write in a SAVEPOINT so it lands as one unit.
'''
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from ..common.config import settings
from ..common.exceptions import BillingError, PartialWriteError
from ..common.logger import log

# Set by the app lifespan; scripts and tests build their own.
engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def build_engine(database_url: str) -> AsyncEngine:
    """
    Creates an async engine for the given URL.
    SQLite (tests and local runs) gets a single shared connection and explicit
    BEGIN emission, otherwise the driver swallows SAVEPOINT semantics.
    """
    if database_url.startswith("sqlite"):
        new_engine = create_async_engine(
            database_url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

        @event.listens_for(new_engine.sync_engine, "connect")
        def _disable_driver_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(new_engine.sync_engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return new_engine

    return create_async_engine(
        database_url,
        echo=False,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=30,
        pool_recycle=-1,
        pool_pre_ping=True
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def create_db_engine_and_session_factory():
    """
    Builds the module-level engine and session factory from settings.
    Called once from the app lifespan.
    """
    global engine, AsyncSessionLocal

    log.info(f"Creating billing database engine (test mode: {settings.TEST_MODE})...")
    try:
        engine = build_engine(settings.database_url)
        AsyncSessionLocal = build_session_factory(engine)
        log.info("Async database engine and session factory created successfully.")
    except Exception as e:
        log.critical(f"Failed to create async database engine: {e}", exc_info=True)
        raise


async def create_schema():
    """Creates all tables on the current engine. Used for TEST_MODE and local SQLite runs."""
    from .models import Base

    if engine is None:
        raise RuntimeError("Database engine is not available.")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("Database schema created.")


async def dispose_db_engine():
    """Disposes of the engine. Called by the app's lifespan."""
    global engine, AsyncSessionLocal
    if engine:
        await engine.dispose()
        log.info("Database engine disposed.")
    engine = None
    AsyncSessionLocal = None


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding the request's session.
    Commits when the route returns normally, rolls back on any error
    (domain errors included) and always closes the session.
    """
    if AsyncSessionLocal is None:
        log.error("AsyncSessionLocal is not initialized. App lifespan may not have run.")
        raise RuntimeError("Database session factory is not available.")

    session = AsyncSessionLocal()
    try:
        yield session
        await session.commit()
    except Exception as e:
        await session.rollback()
        log.error(f"Database session rolled back due to error: {e}")
        raise
    finally:
        await session.close()


@asynccontextmanager
async def atomic(db: AsyncSession, operation: str) -> AsyncIterator[None]:
    """
    Runs the enclosed writes inside a SAVEPOINT.
    Domain errors roll the savepoint back and propagate unchanged; database
    errors roll it back and surface as PartialWriteError.
    """
    try:
        async with db.begin_nested():
            yield
    except BillingError:
        raise
    except SQLAlchemyError as e:
        log.error(f"'{operation}' failed and was rolled back: {e}", exc_info=True)
        raise PartialWriteError(f"'{operation}' failed; none of its writes were applied.") from e
