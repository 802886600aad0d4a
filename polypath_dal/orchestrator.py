"""
Fetch Orchestrator - Concurrent refresh across all configured providers.

Every provider call runs concurrently and is bounded by its own deadline.
A slow or failing provider contributes an error for itself only; the batch
always completes with one result per configured provider.

Usage:
    orchestrator = FetchOrchestrator(cache, session=session)
    results = await orchestrator.refresh_all(settings.providers, timeout=10)

    for provider, outcome in results.items():
        if isinstance(outcome, DataAcquisitionError):
            ...
"""

import asyncio
import logging
from typing import Callable, Iterable, Optional, Union

import aiohttp

from polypath_dal.adapters import BaseBridgeAdapter, create_adapter
from polypath_dal.cache import QuoteCache
from polypath_dal.clock import ClockProtocol, get_clock
from polypath_dal.exceptions import (
    ConfigurationError,
    DataAcquisitionError,
    ProviderTimeout,
    ProviderUnreachable,
)
from polypath_dal.health import ProviderHealthTracker
from polypath_dal.models import NormalizedQuote, ProviderConfig


logger = logging.getLogger(__name__)

RefreshOutcome = Union[NormalizedQuote, DataAcquisitionError]
AdapterFactoryFn = Callable[[ProviderConfig], BaseBridgeAdapter]


class FetchOrchestrator:
    """
    Runs adapter fetches concurrently and writes successes to the cache.

    Holds no per-batch state; the health tracker, when given, is the only
    thing that remembers outcomes across invocations.
    """

    RETRY_BACKOFF_BASE = 0.5  # seconds

    def __init__(
        self,
        cache: QuoteCache,
        session: Optional[aiohttp.ClientSession] = None,
        adapter_factory: Optional[AdapterFactoryFn] = None,
        health_tracker: Optional[ProviderHealthTracker] = None,
        clock: Optional[ClockProtocol] = None,
        max_retries: int = 0,
        retry_backoff_base: float = RETRY_BACKOFF_BASE,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        self._cache = cache
        self._session = session
        self._clock = clock or get_clock()
        self._adapter_factory = adapter_factory or self._default_adapter_factory
        self._health_tracker = health_tracker
        self._max_retries = max_retries
        self._retry_backoff_base = retry_backoff_base

    async def refresh_all(
        self,
        configs: Iterable[ProviderConfig],
        timeout: float,
    ) -> dict[str, RefreshOutcome]:
        """
        Refresh every provider concurrently.

        Args:
            configs: Provider configurations (unique names)
            timeout: Per-provider deadline in seconds

        Returns:
            Mapping of provider name to NormalizedQuote or the error it produced

        Raises:
            ConfigurationError: Duplicate provider names or non-positive timeout
        """
        configs = list(configs)
        if timeout <= 0:
            raise ConfigurationError(
                message="Refresh timeout must be positive",
                config_key="request_timeout",
            )

        names = [config.name for config in configs]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(
                message=f"Duplicate provider names in batch: {duplicates}",
                config_key="bridges",
            )

        if not configs:
            return {}

        start = self._clock.monotonic()
        tasks = {
            config.name: asyncio.create_task(self._refresh_one(config, timeout))
            for config in configs
        }
        await asyncio.gather(*tasks.values())

        results = {name: task.result() for name, task in tasks.items()}

        succeeded = sum(1 for outcome in results.values() if isinstance(outcome, NormalizedQuote))
        elapsed = self._clock.monotonic() - start
        logger.info(f"Refresh complete: {succeeded}/{len(results)} providers succeeded in {elapsed:.2f}s")
        return results

    async def _refresh_one(
        self,
        config: ProviderConfig,
        timeout: float,
    ) -> RefreshOutcome:
        """Fetch one provider; never raises except on cancellation."""
        adapter: Optional[BaseBridgeAdapter] = None
        try:
            adapter = self._adapter_factory(config)
            quote = await asyncio.wait_for(self._fetch_with_retry(adapter, config), timeout=timeout)

        except asyncio.TimeoutError as e:
            error: DataAcquisitionError = ProviderTimeout(
                message=f"No response within {timeout}s",
                provider=config.name,
                timeout_seconds=timeout,
                original_error=e,
            )
        except DataAcquisitionError as e:
            error = e
        except Exception as e:
            logger.debug(f"[{config.name}] Unexpected adapter failure", exc_info=True)
            error = DataAcquisitionError(
                message=f"Unexpected error: {e}",
                provider=config.name,
                original_error=e,
            )
        else:
            self._cache.put(config.name, quote, ttl=config.cache_ttl)
            if self._health_tracker is not None:
                self._health_tracker.record_success(config.name)
            return quote
        finally:
            if adapter is not None:
                await adapter.close()

        if self._health_tracker is not None:
            self._health_tracker.record_failure(config.name, error)
        else:
            logger.debug(f"[{config.name}] Refresh failed: {error}")
        return error

    async def _fetch_with_retry(
        self,
        adapter: BaseBridgeAdapter,
        config: ProviderConfig,
    ) -> NormalizedQuote:
        """Retry ProviderUnreachable with exponential backoff; other errors propagate."""
        last_error: Optional[ProviderUnreachable] = None

        for attempt in range(self._max_retries + 1):
            try:
                return await adapter.fetch(config)
            except ProviderUnreachable as e:
                last_error = e
                if attempt < self._max_retries:
                    wait_time = self._retry_backoff_base * (2 ** attempt)
                    logger.debug(
                        f"[{config.name}] {e}, retrying in {wait_time}s "
                        f"(attempt {attempt + 1}/{self._max_retries + 1})"
                    )
                    await asyncio.sleep(wait_time)

        raise last_error

    def _default_adapter_factory(self, config: ProviderConfig) -> BaseBridgeAdapter:
        return create_adapter(config, session=self._session, clock=self._clock)


def successful_quotes(results: dict[str, RefreshOutcome]) -> dict[str, NormalizedQuote]:
    """Select the providers that returned a quote."""
    return {
        name: outcome
        for name, outcome in results.items()
        if isinstance(outcome, NormalizedQuote)
    }


def failed_providers(results: dict[str, RefreshOutcome]) -> dict[str, DataAcquisitionError]:
    """Select the providers that returned an error."""
    return {
        name: outcome
        for name, outcome in results.items()
        if isinstance(outcome, DataAcquisitionError)
    }
