"""
Database connection management and ORM session factory.
Debt records, payments and saved strategies share one engine; SQLite and PostgreSQL are supported.
"""
from typing import Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.core.config import settings
from app.core.logger import logger

_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

engine = create_engine(
    settings.DATABASE_URL,
    # SQLite: FastAPI runs sync handlers in a threadpool
    connect_args={"check_same_thread": False} if _is_sqlite else {}
)

if _is_sqlite:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Iterator[Session]:
    """Yields a request-scoped session and always closes it."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Idempotent creation of every registered table."""
    # Model modules must be imported so their tables are registered on Base.metadata
    from app.auth import models as auth_models  # noqa: F401
    from app.debts import models as debt_models  # noqa: F401

    logger.info("Creating database tables")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")
