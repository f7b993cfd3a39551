"""Database configuration and connection setup"""
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from booking_core.config.settings import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def build_engine(database_url: str) -> Engine:
    """Create an engine with pooling suited to the backend"""
    if database_url.startswith("sqlite"):
        if ":memory:" in database_url or database_url == "sqlite://":
            # One shared connection, otherwise every checkout sees an empty db
            return create_engine(
                database_url,
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )

        sqlite_engine = create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        _serialize_sqlite_writes(sqlite_engine)
        return sqlite_engine

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        echo=False,
    )


def _serialize_sqlite_writes(sqlite_engine: Engine):
    """
    Start every SQLite transaction with BEGIN IMMEDIATE.

    SQLite ignores FOR UPDATE, so without the write lock two bookings could
    both pass the conflict check before either inserts.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        # pysqlite would otherwise emit its own deferred BEGIN
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


# Create database engine with connection pooling
engine = build_engine(settings.DATABASE_URL)

SessionLocal = build_session_factory(engine)


def get_db():
    """Database dependency for FastAPI"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind: Engine = None):
    """Create all tables that do not exist yet"""
    from booking_core.models import Base

    bind = bind or engine
    logger.info("Creating booking tables...")
    Base.metadata.create_all(bind=bind)
    logger.info("Database tables created successfully")


if __name__ == "__main__":
    create_tables()
