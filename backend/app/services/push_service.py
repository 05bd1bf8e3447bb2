"""
SpecDate Backend — Expo Push Notification Gateway
===================================================

What:  Sends mobile push notifications through Expo's push API.
Why:   The mobile app registers an Expo push token; every in-app notification
       is mirrored as a device push when the user has one.
How:   POST {to, title, body, data, sound} to EXPO_PUSH_URL, wrapped in a
       tenacity retry (transport errors, 429, 5xx) and a circuit breaker.
Who:   NotificationService.notify().

Failure semantics:
    Expo answers 200 with a ticket; a ticket with status "error" (for
    example DeviceNotRegistered) is a delivery failure but not an outage,
    so it raises PushDeliveryError without tripping the circuit breaker.
"""

import logging
import time
import uuid
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from app.config import settings
from app.exceptions import PushDeliveryError
from app.services.gateway_base import OutboundGateway, is_retryable_http_error

logger = logging.getLogger(__name__)


class ExpoPushService(OutboundGateway):
    name = "expo_push"

    def __init__(self, url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(transport=transport)
        self.url = url or settings.expo_push_url
        logger.info(
            "ExpoPushService initialized with url=%s, circuit_breaker(threshold=%d, recovery=%ds)",
            self.url,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    async def send(
        self,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Deliver one push message and return Expo's ticket.

        Raises:
            CircuitBreakerOpenError: too many recent failures
            PushDeliveryError: Expo unreachable after retries, or ticket error
        """
        request_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        message = {
            "to": token,
            "title": title,
            "body": body,
            "data": data or {},
            "sound": "default",
        }

        try:
            payload = await self._post_with_retry(message, request_id)
        except httpx.HTTPError as e:
            self.circuit_breaker.record_failure()
            logger.error("[%s] Expo push failed after retries: %s", request_id, str(e))
            raise PushDeliveryError(
                context={"request_id": request_id, "error_type": type(e).__name__},
            )

        self.circuit_breaker.record_success()

        ticket = payload.get("data") or {}
        if isinstance(ticket, list):
            ticket = ticket[0] if ticket else {}
        if ticket.get("status") == "error":
            details = ticket.get("details") or {}
            logger.warning(
                "[%s] Expo rejected push: %s (%s)",
                request_id,
                ticket.get("message"),
                details.get("error"),
            )
            raise PushDeliveryError(
                message=ticket.get("message") or "Push notification was rejected",
                context={"request_id": request_id, "error": details.get("error")},
            )
        return ticket

    @retry(
        retry=retry_if_exception(is_retryable_http_error),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=settings.retry_jitter,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _post_with_retry(self, message: Dict[str, Any], request_id: str) -> Dict[str, Any]:
        """The retried unit is the HTTP call only; the breaker check stays outside."""
        start_time = time.time()
        async with self._client(settings.push_timeout_seconds) as client:
            response = await client.post(
                self.url,
                json=message,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
        logger.debug(
            "[%s] Expo push accepted in %.0fms",
            request_id,
            (time.time() - start_time) * 1000,
        )
        return response.json()


push_service = ExpoPushService()
