"""
Snapshot Persistence - Key/value store for cache snapshots.

============================================================
RESPONSIBILITY
============================================================
Persists the latest CacheEntry per provider so a restarted
service can serve last-known quotes (tagged stale when past
expiry) before its first refresh completes.

- One row per provider, overwritten on every save
- SQLAlchemy ORM, SQLite by default
- Explicit transactions, rollback on any failure

============================================================
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator, Optional

from sqlalchemy import Column, DateTime, JSON, String, create_engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from polypath_dal.exceptions import PersistenceError
from polypath_dal.models import CacheEntry, NormalizedQuote


logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_DATABASE_URL = "sqlite:///polypath_dal.db"
_IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QuoteSnapshot(Base):
    """
    Latest cached quote per provider.

    payload holds CacheEntry.to_dict(); the timestamp columns are for
    inspection and are not read back.
    """
    __tablename__ = "quote_snapshots"

    provider = Column(String(100), primary_key=True)
    payload = Column(JSON, nullable=False)
    observed_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)


class QuoteSnapshotStore:
    """
    SQLAlchemy-backed snapshot store.

    Usage:
        store = QuoteSnapshotStore("sqlite:///polypath_dal.db")
        store.save(cache.get_all())

        for provider, entry in store.load().items():
            ...
    """

    def __init__(
        self,
        database_url: str = DEFAULT_DATABASE_URL,
        echo: bool = False,
    ) -> None:
        engine_kwargs = {"echo": echo, "future": True}
        if database_url in _IN_MEMORY_URLS:
            # One shared connection so worker threads see the same in-memory database
            engine_kwargs.update(
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )

        self._database_url = database_url
        self._engine = create_engine(database_url, **engine_kwargs)
        self._session_factory = sessionmaker(
            bind=self._engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise PersistenceError(
                message=f"Cannot initialize snapshot store: {e}",
                original_error=e,
            ) from e

        logger.info(f"Snapshot store ready at {database_url.split('@')[-1]}")

    @contextmanager
    def transaction_scope(self) -> Generator[Session, None, None]:
        """Commit on success, roll back and raise PersistenceError on failure."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Snapshot transaction failed, rolling back: {e}")
            session.rollback()
            raise PersistenceError(
                message=f"Snapshot transaction failed: {e}",
                original_error=e,
            ) from e
        finally:
            session.close()

    def save(self, entries: dict[str, CacheEntry]) -> int:
        """
        Upsert one row per provider.

        Returns:
            Number of rows written
        """
        with self.transaction_scope() as session:
            for provider, entry in entries.items():
                session.merge(QuoteSnapshot(
                    provider=provider,
                    payload=entry.to_dict(),
                    observed_at=entry.quote.observed_at,
                    expires_at=entry.expires_at,
                    updated_at=utc_now(),
                ))

        logger.debug(f"Saved {len(entries)} quote snapshots")
        return len(entries)

    def load(self) -> dict[str, CacheEntry]:
        """Read every stored entry. Rows that no longer parse are skipped."""
        with self.transaction_scope() as session:
            rows = session.execute(select(QuoteSnapshot)).scalars().all()
            payloads = [(row.provider, row.payload) for row in rows]

        entries = {}
        for provider, payload in payloads:
            try:
                entries[provider] = CacheEntry(
                    quote=NormalizedQuote.from_dict(payload["quote"]),
                    expires_at=datetime.fromisoformat(payload["expires_at"]),
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[{provider}] Skipping unreadable snapshot: {e}")
        return entries

    def delete(self, provider: str) -> bool:
        with self.transaction_scope() as session:
            result = session.execute(delete(QuoteSnapshot).where(QuoteSnapshot.provider == provider))
            return result.rowcount > 0

    def clear(self) -> None:
        with self.transaction_scope() as session:
            session.execute(delete(QuoteSnapshot))

    def close(self) -> None:
        self._engine.dispose()


def open_snapshot_store(database_url: Optional[str]) -> Optional[QuoteSnapshotStore]:
    """Create a store when a database URL is configured."""
    if not database_url:
        return None
    return QuoteSnapshotStore(database_url)
