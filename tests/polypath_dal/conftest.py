"""
Shared fixtures for the acquisition layer tests.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from polypath_dal.adapters import AdapterRequest, BaseBridgeAdapter
from polypath_dal.cache import QuoteCache
from polypath_dal.clock import MockClock
from polypath_dal.models import NormalizedQuote, ProviderConfig, QuotePair


T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================
# HELPERS
# ============================================================

def make_session(
    payload: Any = None,
    status: int = 200,
    json_error: Optional[Exception] = None,
    request_error: Optional[Exception] = None,
) -> MagicMock:
    """Mock aiohttp.ClientSession whose request() yields one canned response."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload, side_effect=json_error)
    response.text = AsyncMock(return_value=json.dumps(payload) if payload is not None else "")

    session = MagicMock()
    session.closed = False
    if request_error is not None:
        session.request.side_effect = request_error
    else:
        session.request.return_value.__aenter__.return_value = response
    return session


def make_quote(provider: str, fee: float = 0.0006, observed_at: datetime = T0, **kwargs) -> NormalizedQuote:
    return NormalizedQuote(
        provider=provider,
        fee=fee,
        liquidity=kwargs.pop("liquidity", 1_000_000.0),
        latency_ms=kwargs.pop("latency_ms", 120.0),
        uptime=kwargs.pop("uptime", 1.0),
        observed_at=observed_at,
        **kwargs,
    )


class FakeAdapter(BaseBridgeAdapter):
    """
    Scripted adapter for orchestrator tests.

    Each fetch pops the next behavior: an exception instance is raised,
    a float sleeps that many seconds first, anything else returns a quote.
    """

    def __init__(self, provider: str, clock: MockClock, behaviors: list, fee: float = 0.0006) -> None:
        super().__init__(session=MagicMock(closed=False), clock=clock)
        self._provider = provider
        self._behaviors = behaviors
        self._fee = fee
        self.calls = 0
        self.cancelled = False

    @property
    def name(self) -> str:
        return self._provider

    def build_request(self, config: ProviderConfig) -> AdapterRequest:
        return AdapterRequest(url=config.base_url)

    def normalize(self, payload: Any, config: ProviderConfig, latency_ms: float) -> NormalizedQuote:
        return make_quote(config.name, fee=self._fee, observed_at=self._clock.now())

    async def fetch(self, config: ProviderConfig) -> NormalizedQuote:
        self.calls += 1
        behavior = self._behaviors.pop(0) if self._behaviors else None
        if isinstance(behavior, Exception):
            raise behavior
        if isinstance(behavior, float):
            try:
                await asyncio.sleep(behavior)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        return self.normalize(None, config, latency_ms=5.0)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    return MockClock(initial_time=T0)


@pytest.fixture
def cache(clock):
    return QuoteCache(default_ttl=120, clock=clock)


@pytest.fixture
def stargate_config():
    return ProviderConfig(
        name="stargate",
        base_url="https://stargate.finance",
        chains=frozenset({"ethereum", "polygon", "base", "arbitrum"}),
        fee_rate=0.0006,
        pairs=(
            QuotePair(
                source_chain="base",
                destination_chain="arbitrum",
                source_token="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
                destination_token="0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
                amount="1000000",
                min_amount="990000",
                source_wallet="0xca699201b15ccef3b8c4012e28570cc5500d9f9a",
                destination_wallet="0xca699201b15ccef3b8c4012e28570cc5500d9f9a",
            ),
        ),
    )


@pytest.fixture
def wormhole_config():
    return ProviderConfig(
        name="wormhole",
        base_url="https://api.wormholescan.io",
        chains=frozenset({"ethereum", "solana"}),
        fee_rate=0.0,
        guardian_count=19,
    )
