"""
Newsboard - Circuit Breaker Pattern
===================================
Implements circuit breaker for external API calls to prevent cascading failures.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Circuit tripped, requests fail fast
- HALF_OPEN: Testing if service has recovered

Usage:
    breaker = CircuitBreaker(failure_threshold=3, timeout=60, name="openai_images")

    try:
        result = breaker.call(api_function, arg1, arg2)
    except CircuitBreakerOpenError:
        # Handle fast-fail when circuit is open
        pass
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any, ParamSpec

from newsboard.exceptions import CircuitBreakerOpenError

P = ParamSpec("P")

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """
    Circuit breaker for protecting external API calls.

    State transitions:
        CLOSED --(failures >= threshold)--> OPEN
        OPEN --(timeout elapsed)--> HALF_OPEN
        HALF_OPEN --(success)--> CLOSED
        HALF_OPEN --(failure)--> OPEN
    """

    _STATE_CLOSED = "closed"
    _STATE_OPEN = "open"
    _STATE_HALF_OPEN = "half_open"

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: int = 60,
        *,
        name: str = "default",
        half_open_max_calls: int = 1,
        expected_exceptions: tuple[type[Exception], ...] = (Exception,),
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Number of consecutive failures before opening circuit.
            timeout: Seconds to wait before transitioning from OPEN to HALF_OPEN.
            name: Service name reported in errors and logs (e.g., "openai_images").
            half_open_max_calls: Successful calls needed in HALF_OPEN before closing.
            expected_exceptions: Exception types that count as failures.
            clock: Time source, replaceable in tests.
        """
        self._failure_threshold = failure_threshold
        self._timeout = timeout
        self._name = name
        self._half_open_max_calls = half_open_max_calls
        self._expected_exceptions = expected_exceptions
        self._clock = clock

        self._state = self._STATE_CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: float | None = None

        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        return self._name

    def call(self, func: Callable[P, Any], *args: P.args, **kwargs: P.kwargs) -> Any:
        """
        Execute function through circuit breaker.

        Raises:
            CircuitBreakerOpenError: If circuit is OPEN (fast fail).
            Exception: Propagates exception from func if in CLOSED/HALF_OPEN state.
        """
        with self._lock:
            if self._state == self._STATE_OPEN:
                if self._should_attempt_reset():
                    self._transition_to_half_open()
                else:
                    retry_after = max(1, int(self._timeout - self._seconds_since_opened()))
                    logger.warning(
                        f"[CircuitBreaker:{self._name}] "
                        f"OPEN - rejecting request (opened {self._seconds_since_opened():.1f}s ago)"
                    )
                    raise CircuitBreakerOpenError(
                        self._name,
                        retry_after_seconds=retry_after,
                        failure_count=self._failure_count,
                    )

        try:
            result = func(*args, **kwargs)
        except self._expected_exceptions:
            self._on_failure()
            raise
        self._on_success()
        return result

    def reset(self) -> None:
        """Manually reset circuit breaker to CLOSED state."""
        with self._lock:
            was_state = self._state
            self._state = self._STATE_CLOSED
            self._failure_count = 0
            self._success_count = 0
            self._opened_at = None
            logger.info(f"[CircuitBreaker:{self._name}] Manually reset from {was_state} to CLOSED")

    @property
    def state(self) -> str:
        """Current state: 'closed', 'open', or 'half_open'."""
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    @property
    def is_open(self) -> bool:
        return self.state == self._STATE_OPEN

    def _should_attempt_reset(self) -> bool:
        if self._opened_at is None:
            return True
        return self._clock() - self._opened_at >= self._timeout

    def _seconds_since_opened(self) -> float:
        if self._opened_at is None:
            return 0.0
        return self._clock() - self._opened_at

    def _on_success(self) -> None:
        with self._lock:
            self._failure_count = 0
            if self._state == self._STATE_HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self._half_open_max_calls:
                    self._transition_to_closed()

    def _on_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            if self._state == self._STATE_HALF_OPEN or self._failure_count >= self._failure_threshold:
                self._transition_to_open()
            else:
                logger.warning(
                    f"[CircuitBreaker:{self._name}] "
                    f"Failure {self._failure_count}/{self._failure_threshold} (state: {self._state})"
                )

    def _transition_to_open(self) -> None:
        was_state = self._state
        self._state = self._STATE_OPEN
        self._opened_at = self._clock()
        self._success_count = 0
        logger.error(
            f"[CircuitBreaker:{self._name}] "
            f"Transitioned from {was_state} to OPEN "
            f"(failures: {self._failure_count}, threshold: {self._failure_threshold})"
        )

    def _transition_to_half_open(self) -> None:
        was_state = self._state
        self._state = self._STATE_HALF_OPEN
        self._success_count = 0
        logger.info(f"[CircuitBreaker:{self._name}] Transitioned from {was_state} to HALF_OPEN")

    def _transition_to_closed(self) -> None:
        was_state = self._state
        self._state = self._STATE_CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = None
        logger.info(f"[CircuitBreaker:{self._name}] Transitioned from {was_state} to CLOSED (service recovered)")

    def __repr__(self) -> str:
        return (
            f"CircuitBreaker(name={self._name!r}, state={self.state}, "
            f"failures={self._failure_count}/{self._failure_threshold})"
        )


_image_service_breaker: CircuitBreaker | None = None


def get_image_service_breaker() -> CircuitBreaker:
    """Get or create circuit breaker for the generative image API."""
    global _image_service_breaker
    if _image_service_breaker is None:
        from newsboard.config import settings
        from newsboard.exceptions import ExternalAPIError

        _image_service_breaker = CircuitBreaker(
            name="openai_images",
            failure_threshold=settings.circuit_breaker_image_failure_threshold,
            timeout=settings.circuit_breaker_image_timeout_seconds,
            expected_exceptions=(
                ExternalAPIError,
                TimeoutError,
                ConnectionError,
                OSError,
            ),
        )
    return _image_service_breaker


def reset_all_breakers() -> None:
    if _image_service_breaker:
        _image_service_breaker.reset()
