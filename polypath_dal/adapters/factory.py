"""
Bridge Adapter Factory.

============================================================
PURPOSE
============================================================
Maps a ProviderConfig to the adapter that understands its API.

- Lookup by provider name (case-insensitive)
- Unknown providers with a quote_endpoint use JsonQuoteAdapter
- Registry open for extension

============================================================
USAGE
============================================================
```python
adapter = AdapterFactory.create(config, session=session)

AdapterFactory.register("across", AcrossAdapter)
```

============================================================
"""

import logging
from typing import Optional, Type

import aiohttp

from polypath_dal.adapters.base import BaseBridgeAdapter
from polypath_dal.adapters.generic import JsonQuoteAdapter
from polypath_dal.adapters.stargate import StargateAdapter
from polypath_dal.adapters.wormhole import WormholeAdapter
from polypath_dal.clock import ClockProtocol
from polypath_dal.exceptions import ConfigurationError
from polypath_dal.models import ProviderConfig


logger = logging.getLogger(__name__)


class AdapterFactory:
    """Factory for creating bridge adapters from provider configs."""

    _registry: dict[str, Type[BaseBridgeAdapter]] = {
        "stargate": StargateAdapter,
        "wormhole": WormholeAdapter,
    }

    @classmethod
    def register(cls, provider: str, adapter_class: Type[BaseBridgeAdapter]) -> None:
        """Register an adapter class for a provider name."""
        provider = provider.lower()
        if provider in cls._registry:
            logger.warning(f"Adapter for '{provider}' already registered, replacing")
        cls._registry[provider] = adapter_class

    @classmethod
    def unregister(cls, provider: str) -> None:
        cls._registry.pop(provider.lower(), None)

    @classmethod
    def list_supported(cls) -> list[str]:
        return sorted(cls._registry)

    @classmethod
    def create(
        cls,
        config: ProviderConfig,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> BaseBridgeAdapter:
        """
        Create the adapter for a provider.

        Args:
            config: Provider configuration
            session: Shared HTTP session (borrowed, not closed by the adapter)
            clock: Clock for observation timestamps

        Returns:
            Adapter instance

        Raises:
            ConfigurationError: No adapter registered and no quote_endpoint configured
        """
        adapter_class = cls._registry.get(config.name.lower())
        if adapter_class is not None:
            return adapter_class(session=session, clock=clock)

        if config.quote_endpoint:
            logger.debug(f"[{config.name}] No dedicated adapter, using generic JSON adapter")
            return JsonQuoteAdapter(session=session, clock=clock, provider_name=config.name)

        raise ConfigurationError(
            message=f"Unsupported provider '{config.name}' (no adapter and no quote_endpoint)",
            provider=config.name,
            config_key="quote_endpoint",
        )


def create_adapter(
    config: ProviderConfig,
    session: Optional[aiohttp.ClientSession] = None,
    clock: Optional[ClockProtocol] = None,
) -> BaseBridgeAdapter:
    """Convenience wrapper around AdapterFactory.create."""
    return AdapterFactory.create(config, session=session, clock=clock)
