"""
Data Acquisition Exceptions - Error hierarchy for the acquisition layer.

Adapter failures are captured per provider and never abort a refresh batch.
Cache misses surface as QuoteNotFoundError; stale reads are annotated, not raised,
unless the caller asks for fresh data only.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class DataAcquisitionError(Exception):
    """Base exception for all data acquisition errors."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "provider": self.provider,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.provider:
            parts.append(f"[provider={self.provider}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class ProviderUnreachable(DataAcquisitionError):
    """Connection failure, client timeout, or a server-side HTTP error."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, original_error, context)
        self.status_code = status_code
        self.request_url = request_url

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "request_url": self.request_url,
        })
        return data

    def is_rate_limited(self) -> bool:
        """Check if error is due to rate limiting."""
        return self.status_code == 429

    def is_server_error(self) -> bool:
        """Check if error is server-side."""
        return self.status_code is not None and 500 <= self.status_code < 600


class ProviderTimeout(DataAcquisitionError):
    """Provider exceeded the per-call deadline of a refresh batch."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, original_error, context)
        self.timeout_seconds = timeout_seconds

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["timeout_seconds"] = self.timeout_seconds
        return data


class ProviderResponseInvalid(DataAcquisitionError):
    """Response was unparseable or did not match the expected schema."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        raw_data: Optional[Any] = None,
        field_name: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, original_error, context)
        self.raw_data = raw_data
        self.field_name = field_name
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "raw_data": str(self.raw_data)[:500] if self.raw_data else None,  # Truncate
            "field_name": self.field_name,
            "status_code": self.status_code,
        })
        return data


class QuoteNotFoundError(DataAcquisitionError):
    """No cached quote exists for the provider."""


class StaleQuoteError(QuoteNotFoundError):
    """Cached quote exists but is past its expiry and fresh data was required."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, original_error, context)
        self.expires_at = expires_at

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["expires_at"] = self.expires_at.isoformat() if self.expires_at else None
        return data


class ConfigurationError(DataAcquisitionError):
    """Invalid or incomplete configuration."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        config_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, original_error, context)
        self.config_key = config_key

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["config_key"] = self.config_key
        return data


class PersistenceError(DataAcquisitionError):
    """Snapshot store read or write failed."""
