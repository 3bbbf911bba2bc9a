"""Process-scoped database handle: engine + session factory, created once and disposed on shutdown."""

import logging
from typing import Any, Generator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from chess_sync.core.config import Settings
from chess_sync.db.schema import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine. In-memory SQLite shares a single connection so every session sees the same tables."""
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in database_url:
        kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, echo=echo, **kwargs)
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


class Database:
    """Owns the engine. Create one per process; call dispose() on shutdown."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        engine = build_engine(settings.database_url, echo=settings.database_echo)
        database = cls(engine)
        # Ensure all tables are created
        Base.metadata.create_all(bind=engine)
        logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))
        return database

    def session(self) -> Session:
        return self.session_factory()

    def get_db(self) -> Generator[Session, None, None]:
        db = self.session()
        try:
            yield db
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database engine disposed")
