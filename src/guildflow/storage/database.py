"""Database connection and session management for GuildFlow."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

if TYPE_CHECKING:
    from collections.abc import Generator

    from sqlalchemy.engine import Engine


def _resolve_url(target: Path | str) -> str:
    """Turn a database URL, file path, or ":memory:" into a SQLAlchemy URL."""
    if isinstance(target, str) and "://" in target:
        return target
    if str(target) == ":memory:":
        return "sqlite:///:memory:"

    path = Path(target)
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


class Database:
    """Database connection manager for the trigger store.

    Accepts a full SQLAlchemy URL, a SQLite file path, or ":memory:".
    """

    def __init__(self, target: Path | str | None = None) -> None:
        """Initialize the database connection.

        Args:
            target: Database URL or SQLite path.
                    If None, uses ~/.guildflow/guildflow.db
        """
        if target is None:
            target = Path.home() / ".guildflow" / "guildflow.db"

        self._url = _resolve_url(target)

        if self._url == "sqlite:///:memory:":
            # One shared connection, otherwise every thread sees an empty database
            self._engine: Engine = create_engine(
                self._url,
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self._engine = create_engine(self._url, echo=False)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)

    @property
    def url(self) -> str:
        """Get the database URL."""
        return self._url

    def create_tables(self) -> None:
        """Create all database tables if they don't exist."""
        Base.metadata.create_all(self._engine)

    def dispose(self) -> None:
        """Close pooled connections."""
        self._engine.dispose()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope for database operations.

        Usage:
            with db.session_scope() as session:
                repo = TriggerRepository(session)
                repo.create(trigger)

        Yields:
            A SQLAlchemy Session that will be committed on success
            or rolled back on exception.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def init_database(target: Path | str | None = None) -> Database:
    """Create a Database with its tables.

    Args:
        target: Database URL or SQLite path.

    Returns:
        The initialized Database instance.
    """
    db = Database(target)
    db.create_tables()
    return db
