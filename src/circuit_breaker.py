"""
Circuit breaker for the remote automation service.

The renewal pipeline never raises: every stage failure becomes an empty
result. The breaker is therefore driven by explicit outcome reports
instead of by wrapping a call and watching for exceptions.
"""

import logging
import threading
import time
from enum import Enum

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Blocking requests
    HALF_OPEN = "half_open"  # Testing recovery


class CircuitBreaker:
    """
    Outcome-driven circuit breaker.

    Transitions:
    - CLOSED -> OPEN: after failure_threshold consecutive failed runs
    - OPEN -> HALF_OPEN: first allow_request() once timeout seconds passed
    - HALF_OPEN -> CLOSED: the trial run succeeds
    - HALF_OPEN -> OPEN: the trial run fails

    Only one trial run is let through while HALF_OPEN.
    """

    def __init__(self, failure_threshold: int = 5, timeout: int = 60, name: str = "CircuitBreaker"):
        """
        Args:
            failure_threshold: Consecutive failures before opening the circuit
            timeout: Seconds to stay open before allowing a trial run
            name: Name for logging
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.name = name

        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.last_failure_time: float | None = None
        self._trial_in_flight = False
        self._lock = threading.Lock()

        logger.info(
            f"CircuitBreaker '{name}' initialized: "
            f"threshold={failure_threshold}, timeout={timeout}s"
        )

    def allow_request(self) -> bool:
        """Return True when a pipeline run may reach the remote service."""
        with self._lock:
            if self.state == CircuitState.CLOSED:
                return True

            if self.state == CircuitState.OPEN:
                if not self._timeout_elapsed():
                    return False
                logger.info(f"CircuitBreaker '{self.name}': OPEN -> HALF_OPEN")
                self.state = CircuitState.HALF_OPEN
                self._trial_in_flight = False

            if self._trial_in_flight:
                return False
            self._trial_in_flight = True
            return True

    def record_success(self) -> None:
        with self._lock:
            if self.state == CircuitState.HALF_OPEN:
                logger.info(f"CircuitBreaker '{self.name}': HALF_OPEN -> CLOSED")
            self.failure_count = 0
            self.state = CircuitState.CLOSED
            self.last_failure_time = None
            self._trial_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = time.monotonic()
            self._trial_in_flight = False

            if self.state == CircuitState.HALF_OPEN:
                logger.warning(f"CircuitBreaker '{self.name}': trial failed. HALF_OPEN -> OPEN")
                self.state = CircuitState.OPEN
            elif self.failure_count >= self.failure_threshold:
                logger.warning(f"CircuitBreaker '{self.name}': threshold exceeded. CLOSED -> OPEN")
                self.state = CircuitState.OPEN
            else:
                logger.info(
                    f"CircuitBreaker '{self.name}' failure "
                    f"({self.failure_count}/{self.failure_threshold})"
                )

    def _timeout_elapsed(self) -> bool:
        if self.last_failure_time is None:
            return True
        return time.monotonic() - self.last_failure_time >= self.timeout

    def get_state(self) -> dict:
        """Get current circuit breaker state for monitoring."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "last_failure_time": self.last_failure_time,
        }
