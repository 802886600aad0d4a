"""
Data Acquisition Service - Periodic refresh loop around the cache.

Owns the shared HTTP session, the quote cache, the orchestrator, provider
health and the optional snapshot store. Downstream consumers read through
get_quote() / get_all_quotes() and never trigger a fetch.

Usage:
    settings = load_settings("config/config.yaml")

    async with DataAcquisitionService(settings) as service:
        await service.start()
        ...
        entry = service.get_quote("stargate")
"""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from polypath_dal.cache import QuoteCache
from polypath_dal.clock import ClockProtocol, get_clock
from polypath_dal.config import DALSettings
from polypath_dal.exceptions import PersistenceError
from polypath_dal.health import ProviderHealthTracker
from polypath_dal.models import CacheEntry, ProviderHealth
from polypath_dal.orchestrator import FetchOrchestrator, RefreshOutcome
from polypath_dal.persistence import QuoteSnapshotStore


logger = logging.getLogger(__name__)


class DataAcquisitionService:
    """
    Drives refresh cycles every settings.update_interval seconds.

    Features:
    - Warm start from the snapshot store (entries tagged stale when expired)
    - Snapshot saved after every cycle
    - A failed cycle is logged and the loop keeps running
    """

    def __init__(
        self,
        settings: DALSettings,
        cache: Optional[QuoteCache] = None,
        orchestrator: Optional[FetchOrchestrator] = None,
        health_tracker: Optional[ProviderHealthTracker] = None,
        snapshot_store: Optional[QuoteSnapshotStore] = None,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._settings = settings
        self._clock = clock or get_clock()
        self._cache = cache if cache is not None else QuoteCache(default_ttl=settings.cache_ttl, clock=self._clock)
        self._health_tracker = health_tracker if health_tracker is not None else ProviderHealthTracker(
            alert_threshold=settings.failure_alert_threshold,
            unavailable_threshold=max(
                ProviderHealthTracker.DEFAULT_UNAVAILABLE_THRESHOLD,
                settings.failure_alert_threshold,
            ),
            clock=self._clock,
        )
        self._snapshot_store = snapshot_store
        self._session = session
        self._owns_session = session is None
        self._orchestrator = orchestrator

        self._opened = False
        self._running = False
        self._refresh_task: Optional[asyncio.Task] = None
        self._cycles = 0
        self._last_results: dict[str, RefreshOutcome] = {}

    @property
    def cache(self) -> QuoteCache:
        return self._cache

    @property
    def settings(self) -> DALSettings:
        return self._settings

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_results(self) -> dict[str, RefreshOutcome]:
        return dict(self._last_results)

    async def start(self) -> None:
        """Open resources and start the refresh loop."""
        if self._running:
            return

        await self._open()
        self._running = True
        self._refresh_task = asyncio.create_task(self._refresh_loop())
        logger.info(
            f"Started refresh loop for {len(self._settings.providers)} providers "
            f"(interval={self._settings.update_interval}s, ttl={self._settings.cache_ttl}s)"
        )

    async def stop(self) -> None:
        """Stop the refresh loop and release resources."""
        self._running = False
        if self._refresh_task:
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
            self._refresh_task = None

        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        if self._snapshot_store:
            self._snapshot_store.close()
        self._opened = False
        logger.info("Stopped refresh loop")

    async def run_once(self) -> dict[str, RefreshOutcome]:
        """Run one refresh cycle across all providers and persist the cache."""
        await self._open()

        results = await self._orchestrator.refresh_all(
            self._settings.providers,
            timeout=self._settings.request_timeout,
        )
        self._last_results = results
        self._cycles += 1

        await self._persist()
        return results

    def get_quote(self, provider: str, allow_stale: bool = True) -> CacheEntry:
        """Read one provider's cached entry (see QuoteCache.get)."""
        return self._cache.get(provider, allow_stale=allow_stale)

    def get_all_quotes(self, allow_stale: bool = True) -> dict[str, CacheEntry]:
        return self._cache.get_all(allow_stale=allow_stale)

    def get_health(self) -> dict[str, ProviderHealth]:
        return {
            name: self._health_tracker.get(name)
            for name in self._settings.provider_names()
        }

    def get_stats(self) -> dict[str, Any]:
        """Get service statistics."""
        entries = self._cache.get_all()
        return {
            "running": self._running,
            "cycles": self._cycles,
            "providers": self._settings.provider_names(),
            "cached": len(entries),
            "stale": sorted(name for name, entry in entries.items() if entry.is_stale),
            "health": {name: health.status.value for name, health in self.get_health().items()},
        }

    async def _open(self) -> None:
        if self._opened:
            return

        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._settings.request_timeout),
                headers={"Accept": "application/json", "User-Agent": "polypath-dal/0.1"},
            )
            self._owns_session = True

        if self._orchestrator is None:
            self._orchestrator = FetchOrchestrator(
                cache=self._cache,
                session=self._session,
                health_tracker=self._health_tracker,
                clock=self._clock,
                max_retries=self._settings.max_retries,
            )

        await self._restore()
        self._opened = True

    async def _restore(self) -> None:
        if not self._snapshot_store:
            return
        try:
            entries = await asyncio.to_thread(self._snapshot_store.load)
        except PersistenceError as e:
            logger.warning(f"Snapshot restore failed, starting cold: {e}")
            return

        restored = self._cache.restore(entries)
        if restored:
            logger.info(f"Restored {restored} cached quotes from snapshot")

    async def _persist(self) -> None:
        if not self._snapshot_store:
            return
        try:
            await asyncio.to_thread(self._snapshot_store.save, self._cache.get_all())
        except PersistenceError as e:
            logger.warning(f"Snapshot save failed: {e}")

    async def _refresh_loop(self) -> None:
        while self._running:
            start = self._clock.monotonic()
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Refresh cycle error: {e}")

            elapsed = self._clock.monotonic() - start
            await asyncio.sleep(max(self._settings.update_interval - elapsed, 0.0))

    async def __aenter__(self) -> "DataAcquisitionService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def __repr__(self) -> str:
        return f"<DataAcquisitionService(providers={len(self._settings.providers)}, running={self._running})>"
