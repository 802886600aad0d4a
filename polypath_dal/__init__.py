"""
Polypath Data Acquisition Layer - Bridge/DEX quote acquisition.

Fetches pricing, liquidity and latency data from cross-chain bridge and DEX
provider APIs, normalizes it, and caches the latest quote per provider.

Features:
- One adapter per provider, normalized NormalizedQuote output
- Concurrent refresh with per-provider timeouts and partial results
- TTL cache serving stale quotes (tagged) until the next successful refresh
- Persistent-failure tracking and snapshot persistence

Quick Start:
    from polypath_dal import DataAcquisitionService, load_settings

    async def main():
        settings = load_settings("config/config.yaml")
        async with DataAcquisitionService(settings) as service:
            results = await service.run_once()

            entry = service.get_quote("stargate")
            print(entry.quote.fee, entry.is_stale)

Adding New Providers:
    1. Create class extending BaseBridgeAdapter
    2. Implement: name, build_request(), normalize()
    3. AdapterFactory.register("provider", ProviderAdapter)
"""

from polypath_dal.adapters import (
    AdapterFactory,
    BaseBridgeAdapter,
    JsonQuoteAdapter,
    StargateAdapter,
    WormholeAdapter,
    create_adapter,
)
from polypath_dal.cache import QuoteCache
from polypath_dal.clock import MockClock, SystemClock
from polypath_dal.config import DALSettings, load_settings
from polypath_dal.exceptions import (
    ConfigurationError,
    DataAcquisitionError,
    PersistenceError,
    ProviderResponseInvalid,
    ProviderTimeout,
    ProviderUnreachable,
    QuoteNotFoundError,
    StaleQuoteError,
)
from polypath_dal.health import ProviderHealthTracker
from polypath_dal.models import (
    CacheEntry,
    NormalizedQuote,
    ProviderConfig,
    ProviderHealth,
    ProviderStatus,
    QuotePair,
)
from polypath_dal.orchestrator import (
    FetchOrchestrator,
    RefreshOutcome,
    failed_providers,
    successful_quotes,
)
from polypath_dal.persistence import QuoteSnapshotStore
from polypath_dal.service import DataAcquisitionService


__version__ = "0.1.0"

__all__ = [
    # Models
    "CacheEntry",
    "NormalizedQuote",
    "ProviderConfig",
    "ProviderHealth",
    "ProviderStatus",
    "QuotePair",

    # Exceptions
    "DataAcquisitionError",
    "ProviderUnreachable",
    "ProviderTimeout",
    "ProviderResponseInvalid",
    "QuoteNotFoundError",
    "StaleQuoteError",
    "ConfigurationError",
    "PersistenceError",

    # Adapters
    "BaseBridgeAdapter",
    "StargateAdapter",
    "WormholeAdapter",
    "JsonQuoteAdapter",
    "AdapterFactory",
    "create_adapter",

    # Core
    "QuoteCache",
    "FetchOrchestrator",
    "RefreshOutcome",
    "successful_quotes",
    "failed_providers",
    "ProviderHealthTracker",
    "QuoteSnapshotStore",
    "DataAcquisitionService",

    # Config / time
    "DALSettings",
    "load_settings",
    "SystemClock",
    "MockClock",
]
