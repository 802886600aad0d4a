"""
Bridge Adapter Tests.

Tests for:
- Stargate quote normalization
- Wormhole heartbeat normalization
- Generic JSON adapter
- HTTP/transport error mapping
- Adapter factory
"""

import asyncio
import logging
from dataclasses import replace

import aiohttp
import pytest

from conftest import T0, make_session
from polypath_dal.adapters import (
    AdapterFactory,
    JsonQuoteAdapter,
    StargateAdapter,
    WormholeAdapter,
    create_adapter,
)
from polypath_dal.exceptions import (
    ConfigurationError,
    ProviderResponseInvalid,
    ProviderUnreachable,
)
from polypath_dal.models import NormalizedQuote, ProviderConfig


STARGATE_RESPONSE = {
    "quotes": [
        {
            "route": "stargate/v2/taxi",
            "error": None,
            "srcAmount": "1000000",
            "dstAmount": "999400",
            "srcChainKey": "base",
            "dstChainKey": "arbitrum",
            "duration": {"estimated": 38.5},
            "fees": [{"token": "0x0", "chainKey": "base", "amount": "41000000000000", "type": "message"}],
        }
    ]
}

HEARTBEATS_RESPONSE = {
    "entries": [
        {"guardianAddr": f"0x{i:040x}", "rawHeartbeat": {"nodeName": f"guardian-{i}"}}
        for i in range(17)
    ]
}


# ============================================================
# STARGATE
# ============================================================

class TestStargateAdapter:
    """Tests for the Stargate quotes adapter."""

    def test_build_request_uses_first_pair(self, stargate_config):
        adapter = StargateAdapter(session=make_session())

        request = adapter.build_request(stargate_config)

        assert request.url == "https://stargate.finance/api/v1/quotes"
        assert request.params["srcChainKey"] == "base"
        assert request.params["dstChainKey"] == "arbitrum"
        assert request.params["srcAmount"] == "1000000"
        assert request.params["dstAmountMin"] == "990000"
        assert request.params["srcAddress"] == "0xca699201b15ccef3b8c4012e28570cc5500d9f9a"

    def test_build_request_requires_pair(self):
        config = ProviderConfig(name="stargate", base_url="https://stargate.finance", chains=frozenset({"base"}))
        adapter = StargateAdapter(session=make_session())

        with pytest.raises(ConfigurationError):
            adapter.build_request(config)

    def test_build_request_rejects_unlisted_chain(self, stargate_config):
        config = replace(stargate_config, chains=frozenset({"BASE", "ethereum"}))
        adapter = StargateAdapter(session=make_session())

        with pytest.raises(ConfigurationError) as exc_info:
            adapter.build_request(config)

        assert exc_info.value.config_key == "chains"
        assert "arbitrum" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_fetch_normalizes_quote(self, stargate_config, clock):
        session = make_session(STARGATE_RESPONSE)
        adapter = StargateAdapter(session=session, clock=clock)

        quote = await adapter.fetch(stargate_config)

        assert isinstance(quote, NormalizedQuote)
        assert quote.provider == "stargate"
        assert quote.fee == pytest.approx(0.0006)
        assert quote.liquidity == 999400.0
        assert quote.uptime == 1.0
        assert quote.observed_at == T0
        assert quote.estimated_duration_s == 38.5
        assert quote.source_chain == "base"
        assert session.request.call_count == 1

    @pytest.mark.asyncio
    async def test_missing_amounts_falls_back_to_fee_rate(self, stargate_config, clock):
        payload = {"quotes": [{"srcChainKey": "base", "dstChainKey": "arbitrum"}]}
        adapter = StargateAdapter(session=make_session(payload), clock=clock)

        quote = await adapter.fetch(stargate_config)

        assert quote.fee == 0.0006
        assert quote.liquidity is None

    @pytest.mark.asyncio
    async def test_empty_quotes_invalid(self, stargate_config):
        adapter = StargateAdapter(session=make_session({"quotes": []}))

        with pytest.raises(ProviderResponseInvalid) as exc_info:
            await adapter.fetch(stargate_config)

        assert exc_info.value.field_name == "quotes"

    @pytest.mark.asyncio
    async def test_quote_error_invalid(self, stargate_config):
        payload = {"quotes": [{"error": {"message": "Route not found"}}]}
        adapter = StargateAdapter(session=make_session(payload))

        with pytest.raises(ProviderResponseInvalid):
            await adapter.fetch(stargate_config)

    @pytest.mark.asyncio
    async def test_non_numeric_amount_invalid(self, stargate_config):
        payload = {"quotes": [{"srcAmount": "lots", "dstAmount": "1"}]}
        adapter = StargateAdapter(session=make_session(payload))

        with pytest.raises(ProviderResponseInvalid) as exc_info:
            await adapter.fetch(stargate_config)

        assert isinstance(exc_info.value.original_error, ValueError)


# ============================================================
# WORMHOLE
# ============================================================

class TestWormholeAdapter:
    """Tests for the Wormholescan heartbeat adapter."""

    @pytest.mark.asyncio
    async def test_uptime_from_guardian_heartbeats(self, wormhole_config, clock):
        adapter = WormholeAdapter(session=make_session(HEARTBEATS_RESPONSE), clock=clock)

        quote = await adapter.fetch(wormhole_config)

        assert quote.provider == "wormhole"
        assert quote.uptime == pytest.approx(17 / 19)
        assert quote.fee == 0.0
        assert quote.liquidity is None

    @pytest.mark.asyncio
    async def test_duplicate_guardians_counted_once(self, wormhole_config, clock):
        entries = [{"guardianAddr": "0xabc"}] * 25
        adapter = WormholeAdapter(session=make_session({"entries": entries}), clock=clock)

        quote = await adapter.fetch(wormhole_config)

        assert quote.uptime == pytest.approx(1 / 19)

    @pytest.mark.asyncio
    async def test_no_heartbeats_zero_uptime_without_warning(self, wormhole_config, clock, caplog):
        adapter = WormholeAdapter(session=make_session({"entries": []}), clock=clock)

        with caplog.at_level(logging.DEBUG, logger="polypath_dal"):
            quote = await adapter.fetch(wormhole_config)

        assert quote.uptime == 0.0
        assert not any(r.levelno >= logging.WARNING for r in caplog.records)

    @pytest.mark.asyncio
    async def test_missing_entries_invalid(self, wormhole_config):
        adapter = WormholeAdapter(session=make_session({"heartbeats": []}))

        with pytest.raises(ProviderResponseInvalid):
            await adapter.fetch(wormhole_config)

    def test_requires_guardian_count(self):
        config = ProviderConfig(name="wormhole", base_url="https://api.wormholescan.io", chains=frozenset({"solana"}))
        adapter = WormholeAdapter(session=make_session())

        with pytest.raises(ConfigurationError):
            adapter.build_request(config)


# ============================================================
# GENERIC JSON
# ============================================================

class TestJsonQuoteAdapter:
    """Tests for the generic flat-quote adapter."""

    @pytest.fixture
    def across_config(self):
        return ProviderConfig(
            name="across",
            base_url="https://api.across.example",
            chains=frozenset({"ethereum", "optimism"}),
            quote_endpoint="/quote",
            fee_rate=0.0005,
        )

    @pytest.mark.asyncio
    async def test_normalizes_flat_quote(self, across_config, clock):
        payload = {"fee": 0.0004, "liquidity": 2500000, "uptime": 0.99}
        adapter = JsonQuoteAdapter(session=make_session(payload), clock=clock, provider_name="across")

        quote = await adapter.fetch(across_config)

        assert quote.fee == 0.0004
        assert quote.liquidity == 2500000.0
        assert quote.uptime == 0.99

    @pytest.mark.asyncio
    async def test_fee_defaults_to_config(self, across_config, clock):
        adapter = JsonQuoteAdapter(session=make_session({"liquidity": 10}), clock=clock)

        quote = await adapter.fetch(across_config)

        assert quote.fee == 0.0005
        assert quote.uptime == 1.0

    @pytest.mark.asyncio
    async def test_uptime_out_of_range_invalid(self, across_config):
        adapter = JsonQuoteAdapter(session=make_session({"fee": 0.001, "uptime": 3}))

        with pytest.raises(ProviderResponseInvalid) as exc_info:
            await adapter.fetch(across_config)

        assert exc_info.value.field_name == "uptime"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fee", [-0.5, 7.0, 1.0, True, "0.001"])
    async def test_fee_outside_fraction_range_invalid(self, across_config, fee):
        adapter = JsonQuoteAdapter(session=make_session({"fee": fee}))

        with pytest.raises(ProviderResponseInvalid) as exc_info:
            await adapter.fetch(across_config)

        assert exc_info.value.field_name == "fee"

    @pytest.mark.asyncio
    async def test_zero_fee_accepted(self, across_config, clock):
        adapter = JsonQuoteAdapter(session=make_session({"fee": 0}), clock=clock)

        quote = await adapter.fetch(across_config)

        assert quote.fee == 0.0

    def test_requires_quote_endpoint(self, stargate_config):
        adapter = JsonQuoteAdapter(session=make_session())

        with pytest.raises(ConfigurationError):
            adapter.build_request(stargate_config)


# ============================================================
# ERROR MAPPING
# ============================================================

class TestErrorMapping:
    """Transport and HTTP failures map onto the error taxonomy."""

    @pytest.mark.asyncio
    async def test_connection_error_unreachable(self, stargate_config):
        session = make_session(request_error=aiohttp.ClientConnectionError("refused"))
        adapter = StargateAdapter(session=session)

        with pytest.raises(ProviderUnreachable) as exc_info:
            await adapter.fetch(stargate_config)

        assert exc_info.value.provider == "stargate"

    @pytest.mark.asyncio
    async def test_client_timeout_unreachable(self, stargate_config):
        adapter = StargateAdapter(session=make_session(request_error=asyncio.TimeoutError()))

        with pytest.raises(ProviderUnreachable):
            await adapter.fetch(stargate_config)

    @pytest.mark.asyncio
    async def test_server_error_unreachable(self, stargate_config):
        adapter = StargateAdapter(session=make_session({"error": "down"}, status=503))

        with pytest.raises(ProviderUnreachable) as exc_info:
            await adapter.fetch(stargate_config)

        assert exc_info.value.status_code == 503
        assert exc_info.value.is_server_error()

    @pytest.mark.asyncio
    async def test_rate_limit_unreachable(self, stargate_config):
        adapter = StargateAdapter(session=make_session({}, status=429))

        with pytest.raises(ProviderUnreachable) as exc_info:
            await adapter.fetch(stargate_config)

        assert exc_info.value.is_rate_limited()

    @pytest.mark.asyncio
    async def test_client_error_invalid(self, stargate_config):
        adapter = StargateAdapter(session=make_session({"message": "bad token"}, status=404))

        with pytest.raises(ProviderResponseInvalid) as exc_info:
            await adapter.fetch(stargate_config)

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_malformed_json_invalid(self, stargate_config):
        adapter = StargateAdapter(session=make_session(json_error=ValueError("Expecting value")))

        with pytest.raises(ProviderResponseInvalid):
            await adapter.fetch(stargate_config)

    @pytest.mark.asyncio
    async def test_null_body_invalid(self, stargate_config):
        adapter = StargateAdapter(session=make_session(None))

        with pytest.raises(ProviderResponseInvalid):
            await adapter.fetch(stargate_config)

    @pytest.mark.asyncio
    async def test_borrowed_session_not_closed(self, stargate_config):
        session = make_session(STARGATE_RESPONSE)

        async with StargateAdapter(session=session) as adapter:
            await adapter.fetch(stargate_config)

        session.close.assert_not_called()


# ============================================================
# FACTORY
# ============================================================

class TestAdapterFactory:
    """Tests for adapter selection."""

    def test_known_providers(self, stargate_config, wormhole_config):
        assert isinstance(AdapterFactory.create(stargate_config), StargateAdapter)
        assert isinstance(create_adapter(wormhole_config), WormholeAdapter)

    def test_lookup_is_case_insensitive(self):
        config = ProviderConfig(name="Stargate", base_url="https://stargate.finance", chains=frozenset({"base"}))

        assert isinstance(AdapterFactory.create(config), StargateAdapter)

    def test_unknown_provider_with_endpoint_uses_generic(self):
        config = ProviderConfig(
            name="across",
            base_url="https://api.across.example",
            chains=frozenset({"ethereum"}),
            quote_endpoint="/quote",
        )

        adapter = AdapterFactory.create(config)

        assert isinstance(adapter, JsonQuoteAdapter)
        assert adapter.name == "across"

    def test_unknown_provider_without_endpoint_rejected(self):
        config = ProviderConfig(name="hop", base_url="https://hop.example", chains=frozenset({"ethereum"}))

        with pytest.raises(ConfigurationError):
            AdapterFactory.create(config)

    def test_register_and_unregister(self):
        AdapterFactory.register("portal", WormholeAdapter)
        try:
            assert "portal" in AdapterFactory.list_supported()
        finally:
            AdapterFactory.unregister("portal")

        assert "portal" not in AdapterFactory.list_supported()
