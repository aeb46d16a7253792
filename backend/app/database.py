from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Generator
from app.config import settings


def make_engine(url: str) -> Engine:
    """Build an engine with pool limits and I/O timeouts for the given URL."""
    engine_kwargs: dict = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": settings.STORE_IO_TIMEOUT,
        }
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session gets its own empty DB
            engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["pool_size"] = settings.DB_POOL_SIZE
        engine_kwargs["max_overflow"] = settings.DB_MAX_OVERFLOW
        engine_kwargs["pool_timeout"] = settings.DB_POOL_TIMEOUT
        if url.startswith("postgresql"):
            engine_kwargs["connect_args"] = {
                "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}",
            }
    new_engine = create_engine(url, **engine_kwargs)

    if url.startswith("sqlite"):
        @event.listens_for(new_engine, "connect")
        def _set_sqlite_pragmas(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


def max_concurrent_writers(bind: Engine) -> int:
    """SQLite serializes writers; everything else gets the configured pool."""
    if bind.dialect.name == "sqlite":
        return 1
    return max(1, min(settings.SIMULATION_WRITE_WORKERS, settings.DB_POOL_SIZE))


engine = make_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create all tables. Called on first run; schema evolution is handled outside the app."""
    from app.models import Base  # noqa: F401 ensure all models are registered
    Base.metadata.create_all(bind=bind or engine)
