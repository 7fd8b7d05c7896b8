from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from school_roster.core.config import settings

def _normalize(url: str) -> str:
    if url and url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url and url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url

def build_engine(url: str, timeout: int | None = None) -> Engine:
    """Engine whose connects, lock waits and statements are all bounded by ``timeout`` seconds."""
    url = _normalize(url)
    timeout = timeout or settings.DB_TIMEOUT_SECONDS
    kwargs: dict = {"pool_pre_ping": True}

    if url.startswith("sqlite"):
        # sqlite busy timeout covers waiting on another writer's lock
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": timeout}
    elif url.startswith("postgresql"):
        kwargs["pool_timeout"] = timeout
        kwargs["connect_args"] = {
            "connect_timeout": timeout,
            "options": f"-c statement_timeout={timeout * 1000} -c lock_timeout={timeout * 1000}",
        }

    engine = create_engine(url, **kwargs)

    if url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine

SQLALCHEMY_DATABASE_URL = _normalize(settings.DATABASE_URL)

engine = build_engine(SQLALCHEMY_DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
