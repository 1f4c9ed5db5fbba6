"""
Local durable store: SQLAlchemy engine and session management for MedDrop
"""

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from contextlib import contextmanager
from typing import Generator, Optional

from config import settings


def build_engine(database_url: str, echo: bool = False):
    """Create an engine for the device-local database"""
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        database_url,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True
    )


engine = build_engine(settings.DATABASE_URL, settings.DATABASE_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Base class for ORM models
Base = declarative_base()


@contextmanager
def get_db_context(session_factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    Context manager for a database session.
    Commits on success, rolls back on any error.

    Usage:
        with get_db_context() as db:
            db.get(Medicine, medicine_id)
    """
    db = (session_factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind=None) -> None:
    """Create all tables defined in models"""
    import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def drop_db(bind=None) -> None:
    """
    Drop all database tables.
    WARNING: This will delete all local data, including unsynced queue items!
    """
    Base.metadata.drop_all(bind=bind or engine)


class DatabaseHealthCheck:
    """Database health check utilities"""

    @staticmethod
    def is_connected() -> bool:
        """Check if the local database answers"""
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False


__all__ = [
    "engine",
    "build_engine",
    "SessionLocal",
    "Base",
    "get_db_context",
    "init_db",
    "drop_db",
    "DatabaseHealthCheck"
]
