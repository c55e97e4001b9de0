"""
Billing fallback policy - circuit breaker around the Lago backend

Every real Lago call goes through ``BillingFallbackPolicy.execute``. A
failure (or an open circuit) runs the supplied fallback instead, so
checkout never fails because billing is down. Fallbacks are counted and
logged; the breaker state is exposed for health reporting.

A missing API key is configuration, not an outage: callers detect it before
entering the breaker and use ``fall_back`` directly, so it never changes
the breaker state or its failure count.
"""

import logging
from typing import Any, Callable, Optional, TypeVar

import pybreaker

from ...config import BILLING_BREAKER_FAIL_MAX, BILLING_BREAKER_RESET_TIMEOUT

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BillingBreakerListener(pybreaker.CircuitBreakerListener):
    """Logs breaker state transitions"""

    def state_change(self, cb: pybreaker.CircuitBreaker, old_state, new_state) -> None:
        old_name = old_state.name if old_state else "none"
        if new_state.name == pybreaker.STATE_OPEN:
            logger.error(
                f"❌ Billing circuit '{cb.name}' OPEN after {cb.fail_counter} failures; "
                f"using test-mode fallback for {cb.reset_timeout}s"
            )
        elif new_state.name == pybreaker.STATE_CLOSED:
            logger.info(f"✅ Billing circuit '{cb.name}' closed (was {old_name})")
        else:
            logger.warning(f"⚠️ Billing circuit '{cb.name}': {old_name} -> {new_state.name}")

    def failure(self, cb: pybreaker.CircuitBreaker, exc: BaseException) -> None:
        logger.warning(
            f"⚠️ Billing backend failure {cb.fail_counter}/{cb.fail_max} on '{cb.name}': {exc}"
        )


class BillingFallbackPolicy:
    """
    Circuit breaker plus fallback accounting for billing calls.

    One instance lives for the whole process (see main.py lifespan) so
    consecutive failures across requests open the circuit.
    """

    def __init__(
        self,
        name: str = "lago",
        fail_max: int = BILLING_BREAKER_FAIL_MAX,
        reset_timeout: int = BILLING_BREAKER_RESET_TIMEOUT,
    ):
        self.breaker = pybreaker.CircuitBreaker(
            name=name,
            fail_max=fail_max,
            reset_timeout=reset_timeout,
            listeners=[BillingBreakerListener()],
        )
        self.fallback_count = 0
        self.last_fallback_reason: Optional[str] = None

    def execute(self, label: str, operation: Callable[[], T], fallback: Callable[[], T]) -> T:
        """Run ``operation`` through the breaker, or ``fallback`` if it fails"""
        try:
            return self.breaker.call(operation)
        except pybreaker.CircuitBreakerError:
            reason = f"circuit '{self.breaker.name}' is open"
        except Exception as e:
            reason = str(e) or e.__class__.__name__
        return self.fall_back(label, reason, fallback)

    def fall_back(self, label: str, reason: str, fallback: Callable[[], T]) -> T:
        """Run ``fallback`` without touching the breaker"""
        self.fallback_count += 1
        self.last_fallback_reason = reason
        logger.warning(f"⚠️ Billing {label} fell back to test mode: {reason}")
        return fallback()

    def status(self) -> dict[str, Any]:
        return {
            "name": self.breaker.name,
            "state": self.breaker.current_state,
            "fail_counter": self.breaker.fail_counter,
            "fallback_count": self.fallback_count,
            "last_fallback_reason": self.last_fallback_reason,
        }
