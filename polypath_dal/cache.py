"""
Quote Cache - Latest known-good quote per provider.

Entry lifecycle:
    absent -> put() -> fresh -> (ttl elapses) -> stale -> put() -> fresh

Stale entries are never erased by time alone; they stay readable for
degraded-mode consumers and are tagged is_stale=True. Overwrite on refresh
is the only removal path apart from an explicit clear().
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Optional

from polypath_dal.clock import ClockProtocol, get_clock
from polypath_dal.exceptions import QuoteNotFoundError, StaleQuoteError
from polypath_dal.models import CacheEntry, NormalizedQuote


logger = logging.getLogger(__name__)


class QuoteCache:
    """
    Thread-safe single-entry-per-provider quote cache.

    Usage:
        cache = QuoteCache(default_ttl=120)
        cache.put("stargate", quote)

        entry = cache.get("stargate")
        if entry.is_stale:
            ...
    """

    DEFAULT_TTL = 120.0  # seconds

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self._default_ttl = default_ttl
        self._clock = clock or get_clock()
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def put(
        self,
        provider_id: str,
        quote: NormalizedQuote,
        ttl: Optional[float] = None,
    ) -> CacheEntry:
        """
        Store a quote, unconditionally replacing any existing entry.

        Args:
            provider_id: Provider identity
            quote: Normalized quote
            ttl: Seconds after quote.observed_at before the entry is stale

        Returns:
            The stored entry
        """
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        entry = CacheEntry(
            quote=quote,
            expires_at=quote.observed_at + timedelta(seconds=ttl),
        )
        with self._lock:
            replaced = provider_id in self._entries
            self._entries[provider_id] = entry

        logger.debug(
            f"[{provider_id}] Cached quote (fee={quote.fee}, expires_at={entry.expires_at.isoformat()}"
            f"{', replaced' if replaced else ''})"
        )
        return entry

    def get(self, provider_id: str, allow_stale: bool = True) -> CacheEntry:
        """
        Read the cached entry for a provider.

        Args:
            provider_id: Provider identity
            allow_stale: Serve entries past expiry (tagged is_stale)

        Returns:
            CacheEntry with is_stale computed against the current time

        Raises:
            QuoteNotFoundError: No quote was ever cached for the provider
            StaleQuoteError: Entry is stale and allow_stale is False
        """
        with self._lock:
            entry = self._entries.get(provider_id)

        if entry is None:
            raise QuoteNotFoundError(
                message="No cached quote",
                provider=provider_id,
            )

        entry = self._tag(entry, self._clock.now())
        if entry.is_stale and not allow_stale:
            raise StaleQuoteError(
                message=f"Cached quote expired at {entry.expires_at.isoformat()}",
                provider=provider_id,
                expires_at=entry.expires_at,
            )
        return entry

    def get_all(self, allow_stale: bool = True) -> dict[str, CacheEntry]:
        """
        Read every cached entry.

        Stale entries are tagged, or omitted when allow_stale is False.
        """
        now = self._clock.now()
        with self._lock:
            entries = dict(self._entries)

        result = {}
        for provider_id, entry in entries.items():
            entry = self._tag(entry, now)
            if entry.is_stale and not allow_stale:
                continue
            result[provider_id] = entry
        return result

    def restore(self, entries: dict[str, CacheEntry]) -> int:
        """
        Load persisted entries for providers that have no entry yet.

        Existing entries are newer than any snapshot and are kept.

        Returns:
            Number of entries restored
        """
        restored = 0
        with self._lock:
            for provider_id, entry in entries.items():
                if provider_id in self._entries:
                    continue
                self._entries[provider_id] = CacheEntry(quote=entry.quote, expires_at=entry.expires_at)
                restored += 1
        return restored

    def providers(self) -> list[str]:
        """List provider identities with a cached entry."""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, provider_id: object) -> bool:
        with self._lock:
            return provider_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @staticmethod
    def _tag(entry: CacheEntry, now: datetime) -> CacheEntry:
        is_stale = entry.is_expired_at(now)
        if is_stale == entry.is_stale:
            return entry
        return CacheEntry(quote=entry.quote, expires_at=entry.expires_at, is_stale=is_stale)

    def __repr__(self) -> str:
        return f"<QuoteCache(entries={len(self)}, default_ttl={self._default_ttl})>"
