"""
Key-value stores backing guardrail persistence.

Any backend offering get / set / delete / scan-by-prefix works. Values are
plain strings (JSON blobs or integer counters).
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
import structlog

from data_guardrails.database.models import Base, KeyValueEntry
from data_guardrails.models.config import GuardrailSettings

logger = structlog.get_logger(__name__)


class StorageError(Exception):
    """Key-value store read or write failure."""
    pass


class KeyValueStore(ABC):
    """Minimal key-value interface."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value or None."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Insert or replace a value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """List keys starting with prefix."""


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store, lives as long as the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        return [k for k in self._data if k.startswith(prefix)]


class SQLKeyValueStore(KeyValueStore):
    """Store backed by a single SQLAlchemy table."""

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.logger = logger.bind(component="sql_store")

        try:
            self.engine = create_engine(database_url, echo=echo)
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to open store {database_url}: {e}") from e

        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine
        )

        self.logger.info("SQL key-value store initialized", url=self.engine.url.render_as_string())

    def get(self, key: str) -> Optional[str]:
        try:
            with self.SessionLocal() as session:
                entry = session.get(KeyValueEntry, key)
                return entry.value if entry else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read '{key}': {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            with self.SessionLocal() as session:
                entry = session.get(KeyValueEntry, key)
                if entry is None:
                    session.add(KeyValueEntry(key=key, value=value))
                else:
                    entry.value = value
                session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write '{key}': {e}") from e

    def delete(self, key: str) -> None:
        try:
            with self.SessionLocal() as session:
                session.query(KeyValueEntry).filter(KeyValueEntry.key == key).delete()
                session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete '{key}': {e}") from e

    def keys(self, prefix: str = "") -> List[str]:
        try:
            with self.SessionLocal() as session:
                query = session.query(KeyValueEntry.key)
                if prefix:
                    # autoescape: '_' in prefixes like 'stale_count_' is a LIKE wildcard
                    query = query.filter(KeyValueEntry.key.startswith(prefix, autoescape=True))
                return [row[0] for row in query.order_by(KeyValueEntry.key).all()]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list keys with prefix '{prefix}': {e}") from e

    def close(self):
        """Dispose of the engine's connections."""
        self.engine.dispose()
        self.logger.info("SQL key-value store closed")


def create_store(settings: GuardrailSettings) -> KeyValueStore:
    """Build the store selected by settings."""
    if settings.uses_sql_storage:
        return SQLKeyValueStore(settings.database_url, echo=settings.database_echo)
    return MemoryKeyValueStore()
