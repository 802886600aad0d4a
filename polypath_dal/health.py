"""
Provider Health - Consecutive-failure tracking across refresh cycles.

A single failed cycle is expected and only logged at DEBUG. A provider that
keeps failing is escalated: WARNING at the alert threshold, ERROR once it is
marked UNAVAILABLE, INFO when it recovers.
"""

import logging
import threading
from dataclasses import replace
from typing import Callable, Optional

from polypath_dal.clock import ClockProtocol, get_clock
from polypath_dal.exceptions import DataAcquisitionError
from polypath_dal.models import ProviderHealth, ProviderStatus


logger = logging.getLogger(__name__)


class ProviderHealthTracker:
    """
    Tracks refresh outcomes per provider.

    Features:
    - DEGRADED after `alert_threshold` consecutive failed cycles
    - UNAVAILABLE after `unavailable_threshold` consecutive failed cycles
    - Callbacks on persistent failure and recovery
    """

    DEFAULT_ALERT_THRESHOLD = 3
    DEFAULT_UNAVAILABLE_THRESHOLD = 5

    def __init__(
        self,
        alert_threshold: int = DEFAULT_ALERT_THRESHOLD,
        unavailable_threshold: int = DEFAULT_UNAVAILABLE_THRESHOLD,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        if alert_threshold < 1:
            raise ValueError("alert_threshold must be at least 1")
        if unavailable_threshold < alert_threshold:
            raise ValueError("unavailable_threshold must be >= alert_threshold")

        self._alert_threshold = alert_threshold
        self._unavailable_threshold = unavailable_threshold
        self._clock = clock or get_clock()
        self._health: dict[str, ProviderHealth] = {}
        self._lock = threading.Lock()

        self._on_persistent_failure_callbacks: list[Callable[[ProviderHealth], None]] = []
        self._on_recovery_callbacks: list[Callable[[ProviderHealth], None]] = []

    def record_success(self, provider: str) -> ProviderHealth:
        """Record a successful refresh for a provider."""
        with self._lock:
            health = self._health.setdefault(provider, ProviderHealth(provider=provider))
            previous = health.status
            health.total_successes += 1
            health.consecutive_failures = 0
            health.last_success_time = self._clock.now()
            health.status = ProviderStatus.HEALTHY
            health = replace(health)

        if previous in (ProviderStatus.DEGRADED, ProviderStatus.UNAVAILABLE):
            logger.info(f"[{provider}] Recovered to HEALTHY status")
            self._notify(self._on_recovery_callbacks, health)
        return health

    def record_failure(self, provider: str, error: DataAcquisitionError) -> ProviderHealth:
        """Record a failed refresh for a provider."""
        with self._lock:
            health = self._health.setdefault(provider, ProviderHealth(provider=provider))
            previous = health.status
            health.total_failures += 1
            health.consecutive_failures += 1
            health.last_error = str(error)
            health.last_error_time = self._clock.now()

            if health.consecutive_failures >= self._unavailable_threshold:
                health.status = ProviderStatus.UNAVAILABLE
            elif health.consecutive_failures >= self._alert_threshold:
                health.status = ProviderStatus.DEGRADED
            health = replace(health)

        if health.status == ProviderStatus.UNAVAILABLE and previous != ProviderStatus.UNAVAILABLE:
            logger.error(
                f"[{provider}] Marked UNAVAILABLE after {health.consecutive_failures} failed cycles: {error}"
            )
        elif health.status == ProviderStatus.DEGRADED and previous != ProviderStatus.DEGRADED:
            logger.warning(
                f"[{provider}] Marked DEGRADED after {health.consecutive_failures} failed cycles: {error}"
            )
        else:
            logger.debug(f"[{provider}] Refresh failed ({health.consecutive_failures} in a row): {error}")

        if health.consecutive_failures == self._alert_threshold:
            self._notify(self._on_persistent_failure_callbacks, health)
        return health

    def get(self, provider: str) -> ProviderHealth:
        """Get health for a provider (UNKNOWN if never seen)."""
        with self._lock:
            health = self._health.get(provider)
            return replace(health) if health is not None else ProviderHealth(provider=provider)

    def get_all(self) -> dict[str, ProviderHealth]:
        with self._lock:
            return {provider: replace(health) for provider, health in self._health.items()}

    def is_persistently_failing(self, provider: str) -> bool:
        return self.get(provider).consecutive_failures >= self._alert_threshold

    def on_persistent_failure(self, callback: Callable[[ProviderHealth], None]) -> None:
        """Register callback fired when a provider first reaches the alert threshold."""
        self._on_persistent_failure_callbacks.append(callback)

    def on_recovery(self, callback: Callable[[ProviderHealth], None]) -> None:
        """Register callback for provider recovery."""
        self._on_recovery_callbacks.append(callback)

    def _notify(
        self,
        callbacks: list[Callable[[ProviderHealth], None]],
        health: ProviderHealth,
    ) -> None:
        for callback in callbacks:
            try:
                callback(health)
            except Exception as e:
                logger.error(f"Health callback error: {e}")
