"""
Database configuration and session management.
Uses async SQLAlchemy for non-blocking database operations.

로깅:
- SQL echo 비활성화 (운영 노이즈 방지)
- 느린 쿼리 로깅 (1초 이상)
- 세션 에러 로깅
"""
import logging
import time
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from photovault.config import get_settings
from photovault.exceptions import AlbumServiceError, ConflictError
from photovault.utils.prometheus_metrics import (
    db_errors_total,
    db_pool_active_connections,
    db_pool_waiting_requests,
)

_logger = logging.getLogger("photovault.db")

settings = get_settings()

# 느린 쿼리 임계값 (초)
SLOW_QUERY_THRESHOLD = 1.0


def _install_sqlite_listeners(engine: AsyncEngine) -> None:
    """
    Let SQLAlchemy own transaction boundaries on SQLite.

    The sqlite3 driver defers BEGIN until the first DML statement, which breaks
    SAVEPOINT based conditional inserts. Disable its implicit handling, emit
    BEGIN IMMEDIATE ourselves and turn on foreign key enforcement.

    IMMEDIATE takes the write lock up front, so concurrent sessions queue on
    the busy timeout instead of deadlocking on a SHARED -> RESERVED upgrade.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _install_metric_listeners(engine: AsyncEngine, is_sqlite: bool) -> None:
    def _update_pool_metrics():
        if is_sqlite:
            # SQLite는 연결 풀 없음
            db_pool_active_connections.set(0)
            db_pool_waiting_requests.set(0)
            return
        try:
            pool = engine.pool
            active = pool.checkedout() if hasattr(pool, "checkedout") else 0
            db_pool_active_connections.set(active)
            db_pool_waiting_requests.set(0)
        except Exception as e:
            _logger.debug(f"Failed to update pool metrics: {e}")

    @event.listens_for(engine.sync_engine, "checkout")
    def _on_checkout(dbapi_conn, connection_record, connection_proxy):
        _update_pool_metrics()

    @event.listens_for(engine.sync_engine, "checkin")
    def _on_checkin(dbapi_conn, connection_record):
        _update_pool_metrics()

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(engine.sync_engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start_times = conn.info.get("query_start_time")
        if start_times:
            elapsed = time.perf_counter() - start_times.pop()
            if elapsed >= SLOW_QUERY_THRESHOLD:
                # 쿼리 앞 100자만 로깅 (보안/가독성)
                short_stmt = statement[:100] + "..." if len(statement) > 100 else statement
                _logger.warning(
                    "Slow query",
                    extra={"event": "db", "ms": round(elapsed * 1000), "query": short_stmt},
                )


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine with the listeners this application relies on."""
    is_sqlite = "sqlite" in database_url
    if is_sqlite:
        new_engine = create_async_engine(database_url, echo=False, poolclass=NullPool)
        _install_sqlite_listeners(new_engine)
    else:
        new_engine = create_async_engine(
            database_url,
            echo=False,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=settings.db_pool_recycle,
            pool_pre_ping=True,
        )
    _install_metric_listeners(new_engine, is_sqlite)
    return new_engine


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.database_url.strip())
async_session_maker = build_session_maker(engine)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


async def init_db() -> None:
    """Initialize database by creating all tables."""
    import photovault.models  # noqa: F401  (register mappers)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections properly."""
    await engine.dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.
    Commits when the request handler returns, rolls back on any error.

    Usage:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except AlbumServiceError:
            # 도메인 에러는 DB 장애가 아님 (롤백만)
            await session.rollback()
            raise
        except OperationalError as e:
            # lock / serialization 실패 -> 409 (재시도 가능)
            _logger.warning(
                "DB write conflict",
                extra={"event": "db", "error_type": type(e).__name__},
            )
            await session.rollback()
            raise ConflictError() from e
        except Exception as e:
            db_errors_total.inc()
            _logger.error(
                "DB error",
                extra={
                    "event": "db",
                    "error_type": type(e).__name__,
                    "error": str(e)[:200],
                },
            )
            await session.rollback()
            raise
