"""
SpecDate Backend — Realtime Broadcast Gateway (Pusher Channels)
=================================================================

What:  Publishes realtime events and signs private-channel subscriptions.
How:   Pusher HTTP API, `POST /apps/{app_id}/events`, authenticated with
       auth_key / auth_timestamp / auth_version / body_md5 query params and an
       HMAC-SHA256 `auth_signature` over "METHOD\\nPATH\\nSORTED_QUERY".

Channels and events:
    private-App.Models.User.{id}   NotificationCreated   (owner only)
    spec.{id}                      RoundStarted, RoundAnswered (public)

When PUSHER_* settings are missing the gateway is disabled and events are
only logged at DEBUG.
"""

import hashlib
import hmac
import json
import logging
import re
import time
from typing import Any, Dict, List, Optional, Union

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from app.config import settings
from app.exceptions import GatewayError, PermissionDeniedError
from app.services.gateway_base import OutboundGateway, is_retryable_http_error

logger = logging.getLogger(__name__)

USER_CHANNEL_RE = re.compile(r"^private-App\.Models\.User\.(\d+)$")
SPEC_CHANNEL_RE = re.compile(r"^private-spec\.(\d+)$")


def user_channel(user_id: int) -> str:
    return f"private-App.Models.User.{user_id}"


def spec_channel(spec_id: int) -> str:
    return f"spec.{spec_id}"


class PusherBroadcastService(OutboundGateway):
    name = "pusher"

    def __init__(
        self,
        app_id: Optional[str] = None,
        key: Optional[str] = None,
        secret: Optional[str] = None,
        host: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(transport=transport)
        self.app_id = app_id if app_id is not None else settings.pusher_app_id
        self.key = key if key is not None else settings.pusher_key
        self.secret = secret if secret is not None else settings.pusher_secret
        self.host = (host or settings.pusher_host).rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.app_id and self.key and self.secret)

    # ── Signing ───────────────────────────────────────────────────────────

    def _hmac(self, message: str) -> str:
        return hmac.new(
            self.secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
        ).hexdigest()

    def sign_request(self, method: str, path: str, body: str, timestamp: Optional[int] = None) -> Dict[str, str]:
        """Returns the query parameters for an authenticated Pusher HTTP call."""
        params = {
            "auth_key": self.key,
            "auth_timestamp": str(timestamp if timestamp is not None else int(time.time())),
            "auth_version": "1.0",
            "body_md5": hashlib.md5(body.encode("utf-8")).hexdigest(),
        }
        query = "&".join(f"{k}={params[k]}" for k in sorted(params))
        params["auth_signature"] = self._hmac(f"{method.upper()}\n{path}\n{query}")
        return params

    def authorize_channel(self, user_id: int, socket_id: str, channel_name: str) -> str:
        """
        Signs a private-channel subscription for the Pusher client.

        Raises:
            PermissionDeniedError when the user may not listen on that channel.
        """
        match = USER_CHANNEL_RE.match(channel_name)
        if match:
            if int(match.group(1)) != user_id:
                raise PermissionDeniedError("You may not subscribe to this channel.")
        elif not SPEC_CHANNEL_RE.match(channel_name):
            raise PermissionDeniedError("Unknown channel.")

        if not self.is_configured:
            raise GatewayError("Realtime broadcasting is not configured.")
        return f"{self.key}:{self._hmac(f'{socket_id}:{channel_name}')}"

    # ── Publishing ────────────────────────────────────────────────────────

    async def trigger(
        self,
        channels: Union[str, List[str]],
        event: str,
        data: Dict[str, Any],
    ) -> bool:
        """
        Publish one event; returns False when broadcasting is disabled.

        Raises:
            CircuitBreakerOpenError, GatewayError
        """
        if isinstance(channels, str):
            channels = [channels]
        if not self.is_configured:
            logger.debug("Broadcasting disabled; dropping %s on %s", event, channels)
            return False

        self.circuit_breaker.can_execute()

        path = f"/apps/{self.app_id}/events"
        body = json.dumps(
            {"name": event, "channels": channels, "data": json.dumps(data, default=str)},
            separators=(",", ":"),
        )
        try:
            await self._post_with_retry(path, body)
        except httpx.HTTPError as e:
            self.circuit_breaker.record_failure()
            logger.error("Broadcast of %s failed after retries: %s", event, str(e))
            raise GatewayError(
                message="Realtime broadcast failed",
                context={"event": event, "error_type": type(e).__name__},
            )

        self.circuit_breaker.record_success()
        logger.debug("Broadcast %s on %s", event, channels)
        return True

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
    async def _post_with_retry(self, path: str, body: str) -> None:
        # Signed per attempt: auth_timestamp must be fresh
        params = self.sign_request("POST", path, body)
        async with self._client(settings.push_timeout_seconds) as client:
            response = await client.post(
                f"{self.host}{path}",
                params=params,
                content=body,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()


broadcast_service = PusherBroadcastService()
