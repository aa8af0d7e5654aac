"""
Database engine, session management, and base model.

This module is the foundation for all database operations.
Every model inherits from Base. Every request gets a session
from get_db().
"""

from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from freight_core.config import get_settings

settings = get_settings()


def configure_sqlite(engine: Engine) -> Engine:
    """
    Make every SQLite transaction take the write lock up front.

    pysqlite normally opens a transaction lazily, right before the
    first INSERT/UPDATE, so a SELECT that checks for a busy driver
    runs outside any lock. Emitting BEGIN IMMEDIATE ourselves means
    two transactions can never both read "free" and both claim.
    SQLite has no SELECT ... FOR UPDATE; this is its equivalent.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(url: str) -> Engine:
    """
    Create an engine for the given URL.

    pool_pre_ping=True tests connections before using them,
    which handles cases where the database restarted or a
    connection went stale.
    """
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.SQLITE_BUSY_TIMEOUT_S,
            },
        )
        return configure_sqlite(engine)

    return create_engine(url, pool_pre_ping=True)


# --- Engine ---
engine = build_engine(settings.DATABASE_URL)

# --- Session Factory ---
# autocommit=False means we explicitly control when changes
# are saved; a trip status change and its load card must land
# together or not at all.
# autoflush=False means SQLAlchemy won't send SQL to the
# database until we explicitly flush or commit.
# expire_on_commit=False keeps committed objects readable after
# the coordinator has closed the session.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


# --- Dependency for FastAPI ---
def get_db():
    """
    Provide a database session for a single read-only request.

    Writes go through the Coordinator, which owns its own
    sessions. The try/finally pattern ensures the session is
    always closed, preventing connection leaks.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
