"""Engine, session factory and the request-scoped session dependency."""
import os
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from app.core.config import settings
from app.models.base import Base
# Register every mapped table on Base.metadata
from app.models import user as _user_models  # noqa: F401
from app.models import writing as _writing_models  # noqa: F401


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # Session deletes cascade to messages and mistakes only with this pragma on
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    """
    SQLite: one shared connection for in-memory URLs (tables live in it), NullPool for files.
    PostgreSQL: pooled, with pre-ping so dropped connections are replaced.
    """
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(
            database_url,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
        )

    database_path = url.database
    in_memory = not database_path or database_path == ":memory:"
    if not in_memory:
        parent = os.path.dirname(database_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
    sqlite_engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool if in_memory else NullPool,
    )
    event.listen(sqlite_engine, "connect", _enable_sqlite_foreign_keys)
    return sqlite_engine


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Optional[Engine] = None) -> None:
    """Create missing tables. Existing tables are left untouched."""
    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Iterator[Session]:
    """One session per request, closed when the response is sent."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
