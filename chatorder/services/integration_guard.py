from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from threading import Lock
from typing import Callable, TypeVar

from chatorder.core.config import INTEGRATION_COOLDOWN_SECONDS, INTEGRATION_FAILURE_THRESHOLD
from chatorder.errors import IntegrationError, IntegrationUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class GuardDecision:
    allowed: bool
    consecutive_failures: int
    retry_in_seconds: float = 0.0


class IntegrationGuard(ABC):
    @abstractmethod
    def before_call(self, *, tenant_id: int, integration: str) -> GuardDecision:
        """Whether the external call may run now."""

    @abstractmethod
    def register_success(self, *, tenant_id: int, integration: str) -> None:
        """Resets consecutive failures."""

    @abstractmethod
    def register_failure(self, *, tenant_id: int, integration: str) -> int:
        """Counts one more consecutive failure and returns the total."""

    def call(self, *, tenant_id: int, integration: str, fn: Callable[[], T]) -> T:
        decision = self.before_call(tenant_id=tenant_id, integration=integration)
        if not decision.allowed:
            logger.warning(
                "[GUARD] skipping %s tenant=%s failures=%s retry_in=%.1fs",
                integration,
                tenant_id,
                decision.consecutive_failures,
                decision.retry_in_seconds,
            )
            raise IntegrationUnavailable(integration)
        try:
            result = fn()
        except IntegrationError:
            failures = self.register_failure(tenant_id=tenant_id, integration=integration)
            logger.warning("[GUARD] %s failed tenant=%s failures=%s", integration, tenant_id, failures)
            raise
        self.register_success(tenant_id=tenant_id, integration=integration)
        return result


class InMemoryIntegrationGuard(IntegrationGuard):
    def __init__(
        self,
        *,
        threshold: int = INTEGRATION_FAILURE_THRESHOLD,
        cooldown_seconds: float = INTEGRATION_COOLDOWN_SECONDS,
    ) -> None:
        self.threshold = threshold
        self.cooldown_seconds = cooldown_seconds
        self._failures: dict[tuple[int, str], int] = {}
        self._last_failure_at: dict[tuple[int, str], float] = {}
        self._lock = Lock()

    def before_call(self, *, tenant_id: int, integration: str) -> GuardDecision:
        key = (tenant_id, integration)
        with self._lock:
            failures = self._failures.get(key, 0)
            if failures < self.threshold:
                return GuardDecision(allowed=True, consecutive_failures=failures)

            elapsed = time.monotonic() - self._last_failure_at.get(key, 0.0)
            if elapsed >= self.cooldown_seconds:
                # half-open: let one call through
                return GuardDecision(allowed=True, consecutive_failures=failures)
            return GuardDecision(
                allowed=False,
                consecutive_failures=failures,
                retry_in_seconds=self.cooldown_seconds - elapsed,
            )

    def register_success(self, *, tenant_id: int, integration: str) -> None:
        key = (tenant_id, integration)
        with self._lock:
            self._failures.pop(key, None)
            self._last_failure_at.pop(key, None)

    def register_failure(self, *, tenant_id: int, integration: str) -> int:
        key = (tenant_id, integration)
        with self._lock:
            failures = self._failures.get(key, 0) + 1
            self._failures[key] = failures
            self._last_failure_at[key] = time.monotonic()
            return failures

    def reset(self) -> None:
        with self._lock:
            self._failures.clear()
            self._last_failure_at.clear()


integration_guard = InMemoryIntegrationGuard()
