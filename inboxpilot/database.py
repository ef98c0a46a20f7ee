from datetime import datetime, timezone
from typing import Iterator, Optional

from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from inboxpilot.config import settings
from inboxpilot.errors import ConfigurationError

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(postgresql.JSONB(), "postgresql")


def build_engine(database_url: str, **kwargs):
    """Create an engine with settings that suit the target backend."""
    if database_url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        return create_engine(database_url, connect_args=connect_args, **kwargs)
    return create_engine(database_url, pool_pre_ping=True, **kwargs)


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def dialect_insert(db: Session, model):
    """Return an INSERT construct that supports ON CONFLICT for the bound dialect."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise ConfigurationError(f"Atomic upsert is not supported on dialect {dialect}")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
