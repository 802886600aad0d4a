"""
Data Acquisition Models - Provider configuration and normalized quote structures.

Every adapter normalizes its provider's response into NormalizedQuote.
Nothing downstream depends on provider-specific fields.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class ProviderStatus(Enum):
    """Health status of a provider across refresh cycles."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class QuotePair:
    """Route a provider is asked to quote."""
    source_chain: str
    destination_chain: str
    source_token: str
    destination_token: str
    amount: str
    min_amount: Optional[str] = None
    source_wallet: Optional[str] = None
    destination_wallet: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuotePair":
        """Create from a config mapping."""
        return cls(
            source_chain=str(data["source_chain"]),
            destination_chain=str(data["destination_chain"]),
            source_token=str(data["source_token"]),
            destination_token=str(data["destination_token"]),
            amount=str(data["amount"]),
            min_amount=str(data["min_amount"]) if data.get("min_amount") is not None else None,
            source_wallet=data.get("source_wallet"),
            destination_wallet=data.get("destination_wallet"),
        )


@dataclass(frozen=True)
class ProviderConfig:
    """
    Static configuration of one bridge/DEX provider.

    Loaded once at startup and immutable thereafter.
    A cache_ttl of None means the global TTL is inherited.
    """
    name: str
    base_url: str
    chains: frozenset[str]
    fee_rate: Optional[float] = None
    quote_endpoint: Optional[str] = None
    guardian_count: Optional[int] = None
    cache_ttl: Optional[float] = None
    pairs: tuple[QuotePair, ...] = ()
    extra: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "chains", frozenset(c.lower() for c in self.chains))
        object.__setattr__(self, "pairs", tuple(self.pairs))
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    def supports_chain(self, chain: str) -> bool:
        """Check if chain is supported (case-insensitive)."""
        return chain.lower() in self.chains

    def endpoint_url(self, default_path: str) -> str:
        """Join base_url with the configured quote endpoint or a default path."""
        path = self.quote_endpoint or default_path
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"


@dataclass(frozen=True)
class NormalizedQuote:
    """
    Normalized quote output - STRICT schema.

    fee is a fractional rate (0.0006 == 6 bps). uptime is an indicator in [0, 1].
    """
    provider: str
    fee: float
    liquidity: Optional[float]
    latency_ms: float
    uptime: float
    observed_at: datetime

    # Optional route details
    source_chain: Optional[str] = None
    destination_chain: Optional[str] = None
    estimated_duration_s: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "provider": self.provider,
            "fee": self.fee,
            "liquidity": self.liquidity,
            "latency_ms": self.latency_ms,
            "uptime": self.uptime,
            "observed_at": self.observed_at.isoformat(),
            "source_chain": self.source_chain,
            "destination_chain": self.destination_chain,
            "estimated_duration_s": self.estimated_duration_s,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NormalizedQuote":
        """Create from dictionary."""
        return cls(
            provider=data["provider"],
            fee=float(data["fee"]),
            liquidity=float(data["liquidity"]) if data.get("liquidity") is not None else None,
            latency_ms=float(data["latency_ms"]),
            uptime=float(data["uptime"]),
            observed_at=datetime.fromisoformat(data["observed_at"]),
            source_chain=data.get("source_chain"),
            destination_chain=data.get("destination_chain"),
            estimated_duration_s=(
                float(data["estimated_duration_s"])
                if data.get("estimated_duration_s") is not None else None
            ),
        )


@dataclass(frozen=True)
class CacheEntry:
    """
    Cached quote with its expiry.

    is_stale is computed by the cache at read time; a stale entry is still
    served in allow-stale reads until a successful refresh overwrites it.
    """
    quote: NormalizedQuote
    expires_at: datetime
    is_stale: bool = False

    @property
    def provider(self) -> str:
        return self.quote.provider

    @property
    def ttl(self) -> timedelta:
        return self.expires_at - self.quote.observed_at

    def is_expired_at(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "quote": self.quote.to_dict(),
            "expires_at": self.expires_at.isoformat(),
            "is_stale": self.is_stale,
        }


@dataclass
class ProviderHealth:
    """Health state of a provider, updated once per refresh outcome."""
    provider: str
    status: ProviderStatus = ProviderStatus.UNKNOWN
    consecutive_failures: int = 0
    total_successes: int = 0
    total_failures: int = 0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None
    last_success_time: Optional[datetime] = None

    def is_usable(self) -> bool:
        """Check if provider can still be used (healthy, degraded or not yet seen)."""
        return self.status != ProviderStatus.UNAVAILABLE

    @property
    def uptime_percentage(self) -> float:
        total = self.total_successes + self.total_failures
        if total == 0:
            return 100.0
        return self.total_successes / total * 100

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "provider": self.provider,
            "status": self.status.value,
            "consecutive_failures": self.consecutive_failures,
            "total_successes": self.total_successes,
            "total_failures": self.total_failures,
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
            "last_success_time": self.last_success_time.isoformat() if self.last_success_time else None,
            "uptime_percentage": self.uptime_percentage,
        }
