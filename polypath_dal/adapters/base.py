"""
Base Bridge Adapter - Abstract interface for all bridge/DEX provider adapters.

Each adapter maps one provider's request/response shape to NormalizedQuote.

All adapters MUST:
- Issue exactly one outbound request per fetch()
- Never retry internally (retries belong to the orchestrator)
- Raise ProviderUnreachable / ProviderResponseInvalid, nothing else
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import aiohttp

from polypath_dal.clock import ClockProtocol, get_clock
from polypath_dal.exceptions import (
    DataAcquisitionError,
    ProviderResponseInvalid,
    ProviderUnreachable,
)
from polypath_dal.models import NormalizedQuote, ProviderConfig


logger = logging.getLogger(__name__)


@dataclass
class AdapterRequest:
    """One outbound HTTP request built from a ProviderConfig."""
    url: str
    method: str = "GET"
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)


class BaseBridgeAdapter(ABC):
    """
    Abstract base class for bridge/DEX adapters.

    Each adapter must:
    1. Implement name - provider identity it handles
    2. Implement build_request() - describe the single HTTP call
    3. Implement normalize() - convert the JSON payload to NormalizedQuote

    The session is borrowed when passed in and owned (and closed) otherwise.
    """

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout
        self._clock = clock or get_clock()

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identity handled by this adapter."""
        pass

    @abstractmethod
    def build_request(self, config: ProviderConfig) -> AdapterRequest:
        """
        Describe the request for a provider.

        Raises:
            ConfigurationError: Provider config lacks a field the adapter needs
        """
        pass

    @abstractmethod
    def normalize(
        self,
        payload: Any,
        config: ProviderConfig,
        latency_ms: float,
    ) -> NormalizedQuote:
        """
        Normalize a decoded JSON payload.

        Args:
            payload: Decoded JSON body
            config: Provider configuration
            latency_ms: Observed round trip of the request

        Raises:
            ProviderResponseInvalid: Payload does not match the expected schema
        """
        pass

    async def fetch(self, config: ProviderConfig) -> NormalizedQuote:
        """
        Fetch and normalize one quote (main entry point).

        Raises:
            ProviderUnreachable: Connection failure, client timeout, HTTP 5xx/429
            ProviderResponseInvalid: Unparseable or schema-mismatched response
        """
        request = self.build_request(config)
        payload, latency_ms = await self._make_request(config.name, request)

        try:
            quote = self.normalize(payload, config, latency_ms)
        except DataAcquisitionError:
            raise
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise ProviderResponseInvalid(
                message=f"Failed to normalize response: {e}",
                provider=config.name,
                raw_data=payload,
                original_error=e,
            )

        logger.debug(f"[{config.name}] Normalized quote in {latency_ms:.1f}ms (fee={quote.fee})")
        return quote

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": "polypath-dal/0.1",
        }

    async def _make_request(
        self,
        provider: str,
        request: AdapterRequest,
    ) -> tuple[Any, float]:
        """Make HTTP request and return (decoded JSON, latency in ms)."""
        session = await self._get_session()

        start = self._clock.monotonic()
        try:
            async with session.request(
                request.method,
                request.url,
                params=request.params or None,
                headers=request.headers or None,
            ) as response:
                latency_ms = (self._clock.monotonic() - start) * 1000

                if response.status == 429 or response.status >= 500:
                    raise ProviderUnreachable(
                        message=f"HTTP {response.status}",
                        provider=provider,
                        status_code=response.status,
                        request_url=request.url,
                    )

                if response.status >= 400:
                    body = await response.text()
                    raise ProviderResponseInvalid(
                        message=f"HTTP {response.status}",
                        provider=provider,
                        raw_data=body[:1000],
                        status_code=response.status,
                    )

                try:
                    payload = await response.json(content_type=None)
                except (ValueError, aiohttp.ContentTypeError) as e:
                    raise ProviderResponseInvalid(
                        message=f"Response is not valid JSON: {e}",
                        provider=provider,
                        original_error=e,
                    )

        except asyncio.TimeoutError as e:
            raise ProviderUnreachable(
                message=f"Request timed out after {self._timeout}s",
                provider=provider,
                request_url=request.url,
                original_error=e,
            )
        except aiohttp.ClientError as e:
            raise ProviderUnreachable(
                message=f"Connection error: {e}",
                provider=provider,
                request_url=request.url,
                original_error=e,
            )

        if payload is None:
            raise ProviderResponseInvalid(
                message="Empty response body",
                provider=provider,
            )
        return payload, latency_ms

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BaseBridgeAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"
