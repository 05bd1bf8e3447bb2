"""
SpecDate Backend — Outbound Gateway Base and Circuit Breaker
==============================================================

What:  Shared pieces for services that call third-party HTTP APIs
       (Expo push, Pusher broadcast).
How:   Each gateway owns a CircuitBreaker; its HTTP call is wrapped in a
       tenacity retry, and the breaker sits outside the retry so one logical
       call counts as one success or failure.
Who:   ExpoPushService, PusherBroadcastService; the health route reads
       `circuit_breaker.state`.

State machine:
    CLOSED ──(failures >= threshold)──> OPEN ──(recovery timeout)──> HALF_OPEN
       ^                                  ^                              │
       └──────────(trial succeeds)────────┼──────────────────────────────┤
                                          └────────(trial fails)─────────┘
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from app.config import settings
from app.exceptions import CircuitBreakerOpenError

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """
    Rejects calls to an upstream that keeps failing.

    Not shared across processes; every uvicorn worker keeps its own state.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60, name: str = "upstream"):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True when a call may proceed.

        Raises:
            CircuitBreakerOpenError while OPEN and the recovery timeout has not elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker '%s' transitioning to HALF_OPEN after %.1fs",
                    self.name,
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining, service=self.name)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker '%s' transitioning to CLOSED (service recovered)", self.name)
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker '%s' returning to OPEN (trial call failed)", self.name)
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker '%s' OPENING after %d consecutive failures",
                self.name,
                self.failure_count,
            )
            self.state = self.OPEN


def is_retryable_http_error(exc: BaseException) -> bool:
    """Transport errors, 429 and 5xx are worth another attempt; other 4xx are not."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


class OutboundGateway(ABC):
    """
    Contract for third-party delivery gateways.

    Implementations:
        - ExpoPushService: mobile push notifications
        - PusherBroadcastService: realtime channel events
    """

    name: str = "gateway"

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        # transport lets tests plug in httpx.MockTransport
        self._transport = transport
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
            name=self.name,
        )

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """False when credentials are missing; callers then skip delivery."""
        ...

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def status(self) -> str:
        """Health summary: disabled, circuit_open or available."""
        if not self.is_configured:
            return "disabled"
        if self.circuit_breaker.state == CircuitBreaker.OPEN:
            return "circuit_open"
        return "available"
