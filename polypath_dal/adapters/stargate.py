"""
Stargate Adapter - Public quotes API.

Endpoint used:
- GET /api/v1/quotes - Route quotes for a token transfer between two chains

The first configured pair is quoted; the first returned quote is used.
"""

import logging
from typing import Any, Optional

from polypath_dal.adapters.base import AdapterRequest, BaseBridgeAdapter
from polypath_dal.exceptions import ConfigurationError, ProviderResponseInvalid
from polypath_dal.models import NormalizedQuote, ProviderConfig


logger = logging.getLogger(__name__)


class StargateAdapter(BaseBridgeAdapter):
    """
    Stargate public quotes API adapter.

    Normalization:
    - fee: (srcAmount - dstAmount) / srcAmount, else the configured fee rate
    - liquidity: dstAmount, falling back to srcAmount
    - estimated_duration_s: duration.estimated
    """

    QUOTES_PATH = "/api/v1/quotes"

    @property
    def name(self) -> str:
        return "stargate"

    def build_request(self, config: ProviderConfig) -> AdapterRequest:
        if not config.pairs:
            raise ConfigurationError(
                message="Stargate needs at least one pair to quote",
                provider=config.name,
                config_key="pairs",
            )

        pair = config.pairs[0]
        unsupported = [
            chain for chain in (pair.source_chain, pair.destination_chain)
            if not config.supports_chain(chain)
        ]
        if unsupported:
            raise ConfigurationError(
                message=f"Pair uses chains not listed for {config.name}: {unsupported}",
                provider=config.name,
                config_key="chains",
            )

        params = {
            "srcChainKey": pair.source_chain,
            "dstChainKey": pair.destination_chain,
            "srcToken": pair.source_token,
            "dstToken": pair.destination_token,
            "srcAmount": pair.amount,
            "dstAmountMin": pair.min_amount or "0",
        }
        if pair.source_wallet:
            params["srcAddress"] = pair.source_wallet
        if pair.destination_wallet:
            params["dstAddress"] = pair.destination_wallet

        return AdapterRequest(url=config.endpoint_url(self.QUOTES_PATH), params=params)

    def normalize(
        self,
        payload: Any,
        config: ProviderConfig,
        latency_ms: float,
    ) -> NormalizedQuote:
        quotes = payload.get("quotes") if isinstance(payload, dict) else None
        if not isinstance(quotes, list):
            raise ProviderResponseInvalid(
                message="Response has no quotes array",
                provider=config.name,
                raw_data=payload,
                field_name="quotes",
            )
        if not quotes:
            raise ProviderResponseInvalid(
                message="No quotes found in the response",
                provider=config.name,
                raw_data=payload,
                field_name="quotes",
            )

        quote = quotes[0]
        if quote.get("error"):
            raise ProviderResponseInvalid(
                message=f"Quote returned an error: {quote['error']}",
                provider=config.name,
                raw_data=quote,
                field_name="error",
            )

        src_amount = _as_float(quote.get("srcAmount"))
        dst_amount = _as_float(quote.get("dstAmount"))

        if src_amount and dst_amount is not None:
            fee = max((src_amount - dst_amount) / src_amount, 0.0)
        elif config.fee_rate is not None:
            fee = config.fee_rate
        else:
            raise ProviderResponseInvalid(
                message="Quote has no amounts and no fee rate is configured",
                provider=config.name,
                raw_data=quote,
                field_name="dstAmount",
            )

        liquidity = dst_amount if dst_amount is not None else src_amount

        duration = quote.get("duration") or {}
        estimated = _as_float(duration.get("estimated")) if isinstance(duration, dict) else None

        return NormalizedQuote(
            provider=config.name,
            fee=fee,
            liquidity=liquidity,
            latency_ms=latency_ms,
            uptime=1.0,
            observed_at=self._clock.now(),
            source_chain=quote.get("srcChainKey"),
            destination_chain=quote.get("dstChainKey"),
            estimated_duration_s=estimated,
        )


def _as_float(value: Any) -> Optional[float]:
    """Parse numeric strings; None stays None."""
    if value is None:
        return None
    return float(value)
