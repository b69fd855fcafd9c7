# backend/fxrates/services/circuit_breaker.py
"""
Circuit breaker guarding a single upstream rate source.

The aggregator asks every source whether it is available before calling it.
For HTTP sources that answer comes from this breaker: after enough consecutive
failures the source is reported unavailable and skipped (never called) until
the recovery timeout has passed, at which point one probe call is let through.

There is no retry here. A failed call fails that source for that call only;
the breaker just remembers it.

States:
    CLOSED    - Normal operation, calls pass through
    OPEN      - Too many failures, the source is skipped
    HALF_OPEN - Recovery timeout elapsed, a single probe call is allowed

State Transitions:
    CLOSED -> OPEN: failure_threshold consecutive failures
    OPEN -> HALF_OPEN: recovery_timeout elapsed
    HALF_OPEN -> CLOSED: probe call succeeds
    HALF_OPEN -> OPEN: probe call fails

Usage:
    breaker = CircuitBreaker(name="fixer.io", failure_threshold=3)

    if breaker.allows_request():
        with breaker:
            rates = call_upstream()
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """
    Raised when a call is attempted while the circuit is open.

    Attributes:
        breaker_name: Name of the circuit breaker (the source name)
        time_remaining: Seconds until a probe call will be allowed
    """

    def __init__(self, breaker_name: str, time_remaining: float) -> None:
        self.breaker_name = breaker_name
        self.time_remaining = time_remaining
        super().__init__(
            f"Circuit breaker '{breaker_name}' is open. "
            f"Retry in {time_remaining:.1f} seconds."
        )


@dataclass
class CircuitBreaker:
    """
    Thread-safe circuit breaker for one rate source.

    Sources are called from the aggregator's worker pool, so every state
    read and write happens under a lock.

    Attributes:
        name: Identifier for this breaker (used in logs/errors)
        failure_threshold: Consecutive failures before opening
        recovery_timeout: Seconds to wait before allowing a probe call
        clock: Monotonic time function (injectable for tests)
    """

    name: str
    failure_threshold: int = 3
    recovery_timeout: float = 60.0
    clock: Callable[[], float] = time.monotonic

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failure_count: int = field(default=0, init=False)
    _opened_at: float = field(default=0.0, init=False)
    _probe_in_flight: bool = field(default=False, init=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False)

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if self.recovery_timeout < 0:
            raise ValueError("recovery_timeout cannot be negative")

    @property
    def state(self) -> CircuitState:
        """Current state, after applying any due OPEN -> HALF_OPEN transition."""
        with self._lock:
            self._check_state_transition()
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    def allows_request(self) -> bool:
        """
        Side-effect-free availability check.

        True when closed, or half-open with no probe currently running.
        """
        with self._lock:
            self._check_state_transition()
            if self._state == CircuitState.CLOSED:
                return True
            if self._state == CircuitState.HALF_OPEN:
                return not self._probe_in_flight
            return False

    def record_success(self) -> None:
        with self._lock:
            self._probe_in_flight = False
            self._failure_count = 0
            if self._state != CircuitState.CLOSED:
                self._transition_to(CircuitState.CLOSED)

    def record_failure(self) -> None:
        with self._lock:
            self._probe_in_flight = False
            if self._state == CircuitState.HALF_OPEN:
                self._open()
                return

            self._failure_count += 1
            if self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
                self._open()

    def reset(self) -> None:
        """Manually close the circuit."""
        with self._lock:
            self._failure_count = 0
            self._probe_in_flight = False
            self._transition_to(CircuitState.CLOSED)

    def _open(self) -> None:
        """Must be called while holding the lock."""
        self._opened_at = self.clock()
        self._transition_to(CircuitState.OPEN)

    def _check_state_transition(self) -> None:
        """Must be called while holding the lock."""
        if self._state == CircuitState.OPEN:
            if self.clock() - self._opened_at >= self.recovery_timeout:
                self._transition_to(CircuitState.HALF_OPEN)

    def _transition_to(self, new_state: CircuitState) -> None:
        """Must be called while holding the lock."""
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        logger.info(
            f"CircuitBreaker '{self.name}' state change: "
            f"{old_state.value} -> {new_state.value}"
        )

    def _time_until_recovery(self) -> float:
        remaining = self.recovery_timeout - (self.clock() - self._opened_at)
        return max(0.0, remaining)

    def __enter__(self) -> "CircuitBreaker":
        """
        Admit a call or reject it.

        Raises:
            CircuitBreakerOpen: If the circuit is open or a probe is running
        """
        with self._lock:
            self._check_state_transition()
            if self._state == CircuitState.OPEN or (
                    self._state == CircuitState.HALF_OPEN and self._probe_in_flight
            ):
                raise CircuitBreakerOpen(self.name, self._time_until_recovery())
            if self._state == CircuitState.HALF_OPEN:
                self._probe_in_flight = True
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: Any) -> bool:
        if exc_val is None:
            self.record_success()
        else:
            self.record_failure()
        return False
