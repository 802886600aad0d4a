"""
Generic JSON Quote Adapter.

For providers that expose a quote_endpoint returning an already-flat quote:

    {"fee": 0.0004, "liquidity": 2500000, "uptime": 0.999}

Only fee is required. Missing fee falls back to the configured fee rate.
"""

from typing import Any

from polypath_dal.adapters.base import AdapterRequest, BaseBridgeAdapter
from polypath_dal.exceptions import ConfigurationError, ProviderResponseInvalid
from polypath_dal.models import NormalizedQuote, ProviderConfig


class JsonQuoteAdapter(BaseBridgeAdapter):

    def __init__(self, *args, provider_name: str = "json", **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._provider_name = provider_name

    @property
    def name(self) -> str:
        return self._provider_name

    def build_request(self, config: ProviderConfig) -> AdapterRequest:
        if not config.quote_endpoint:
            raise ConfigurationError(
                message="Generic adapter needs a quote_endpoint",
                provider=config.name,
                config_key="quote_endpoint",
            )
        return AdapterRequest(url=config.endpoint_url(config.quote_endpoint))

    def normalize(
        self,
        payload: Any,
        config: ProviderConfig,
        latency_ms: float,
    ) -> NormalizedQuote:
        if not isinstance(payload, dict):
            raise ProviderResponseInvalid(
                message="Expected a JSON object",
                provider=config.name,
                raw_data=payload,
            )

        fee = payload.get("fee", config.fee_rate)
        if fee is None:
            raise ProviderResponseInvalid(
                message="Response has no fee and no fee rate is configured",
                provider=config.name,
                raw_data=payload,
                field_name="fee",
            )
        if isinstance(fee, bool) or not isinstance(fee, (int, float)) or not 0.0 <= fee < 1.0:
            raise ProviderResponseInvalid(
                message=f"fee must be a fraction in [0, 1), got {fee!r}",
                provider=config.name,
                raw_data=payload,
                field_name="fee",
            )

        liquidity = payload.get("liquidity")
        uptime = float(payload.get("uptime", 1.0))
        if not 0.0 <= uptime <= 1.0:
            raise ProviderResponseInvalid(
                message=f"uptime out of range: {uptime}",
                provider=config.name,
                raw_data=payload,
                field_name="uptime",
            )

        return NormalizedQuote(
            provider=config.name,
            fee=float(fee),
            liquidity=float(liquidity) if liquidity is not None else None,
            latency_ms=latency_ms,
            uptime=uptime,
            observed_at=self._clock.now(),
            source_chain=payload.get("source_chain"),
            destination_chain=payload.get("destination_chain"),
        )
