"""Circuit breaker guarding access to the node.

Only transport failures count against the node. A JSON-RPC ``error`` reply
(a revert, a bad nonce) means the node is up and answering, so it resets
the failure count like any other reply. After ``reset_timeout`` the breaker
goes half-open and lets exactly one trial call through.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from flasharb.common import metrics
from flasharb.common.errors import RpcError, RpcReplyError

log = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


_STATE_CODES = {CircuitState.CLOSED: 0, CircuitState.HALF_OPEN: 1, CircuitState.OPEN: 2}


class CircuitOpen(RpcError):
    """Raised instead of calling while the breaker is open."""

    def __init__(self, component: str, retry_after: float) -> None:
        self.retry_after = retry_after
        super().__init__(f"{component} circuit open, retry in {retry_after:.1f}s")


class CircuitBreaker:
    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        component: str = "rpc",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.component = component
        self.failures = 0
        self.trips = 0
        self.state = CircuitState.CLOSED
        self.last_failure = 0.0
        self._clock = clock
        self._trial_running = False

    def retry_after(self) -> float:
        if self.state != CircuitState.OPEN:
            return 0.0
        return max(0.0, self.reset_timeout - (self._clock() - self.last_failure))

    async def call(self, fn: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        self._admit()
        try:
            result = await fn(*args, **kwargs)
        except RpcReplyError:
            self._on_success()
            raise
        except Exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def _admit(self) -> None:
        if self.state == CircuitState.OPEN:
            if self._clock() - self.last_failure < self.reset_timeout:
                raise CircuitOpen(self.component, self.retry_after())
            self._set_state(CircuitState.HALF_OPEN)
        if self.state == CircuitState.HALF_OPEN:
            if self._trial_running:
                raise CircuitOpen(self.component, 0.0)
            self._trial_running = True

    def _on_success(self) -> None:
        self._trial_running = False
        self.failures = 0
        if self.state != CircuitState.CLOSED:
            log.info("CIRCUIT_CLOSED component=%s", self.component)
        self._set_state(CircuitState.CLOSED)

    def _on_failure(self) -> None:
        was_trial = self._trial_running
        self._trial_running = False
        self.failures += 1
        self.last_failure = self._clock()
        if was_trial or self.failures >= self.failure_threshold:
            if self.state != CircuitState.OPEN:
                self.trips += 1
                log.warning("CIRCUIT_OPEN component=%s failures=%d", self.component, self.failures)
            self._set_state(CircuitState.OPEN)

    def _set_state(self, state: CircuitState) -> None:
        self.state = state
        metrics.CIRCUIT_STATE.labels(component=self.component).set(_STATE_CODES[state])


__all__ = ["CircuitBreaker", "CircuitState", "CircuitOpen"]
