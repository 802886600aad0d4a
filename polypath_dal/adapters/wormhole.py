"""
Wormhole Adapter - Guardian network availability via Wormholescan.

Endpoint used:
- GET /api/v1/heartbeats - Latest heartbeat per guardian

Wormhole exposes no fee quote; the fee is the configured rate and uptime is
the share of guardians currently heartbeating.
"""

import logging
from typing import Any

from polypath_dal.adapters.base import AdapterRequest, BaseBridgeAdapter
from polypath_dal.exceptions import ConfigurationError, ProviderResponseInvalid
from polypath_dal.models import NormalizedQuote, ProviderConfig


logger = logging.getLogger(__name__)


class WormholeAdapter(BaseBridgeAdapter):
    """Wormholescan heartbeats adapter. Requires guardian_count in config."""

    HEARTBEATS_PATH = "/api/v1/heartbeats"

    @property
    def name(self) -> str:
        return "wormhole"

    def build_request(self, config: ProviderConfig) -> AdapterRequest:
        if not config.guardian_count or config.guardian_count <= 0:
            raise ConfigurationError(
                message="Wormhole needs a positive guardian_count",
                provider=config.name,
                config_key="guardian_count",
            )
        return AdapterRequest(url=config.endpoint_url(self.HEARTBEATS_PATH))

    def normalize(
        self,
        payload: Any,
        config: ProviderConfig,
        latency_ms: float,
    ) -> NormalizedQuote:
        entries = payload.get("entries") if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            raise ProviderResponseInvalid(
                message="Response has no entries array",
                provider=config.name,
                raw_data=payload,
                field_name="entries",
            )

        live = {
            entry["guardianAddr"]
            for entry in entries
            if isinstance(entry, dict) and entry.get("guardianAddr")
        }
        uptime = min(len(live) / config.guardian_count, 1.0)

        if uptime == 0.0:
            logger.debug(f"[{config.name}] No guardian heartbeats in response")

        return NormalizedQuote(
            provider=config.name,
            fee=config.fee_rate if config.fee_rate is not None else 0.0,
            liquidity=None,
            latency_ms=latency_ms,
            uptime=uptime,
            observed_at=self._clock.now(),
        )
