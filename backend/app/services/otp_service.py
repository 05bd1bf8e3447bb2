"""
SpecDate Backend — One-Time Passcodes
=======================================

What:  Six-digit verification codes for the email / mobile a user signs up with.
How:   Codes live in a process-local TTL store keyed by channel + normalized
       target. Delivery goes through OneSignal (email or SMS) when
       ONESIGNAL_APP_ID / ONESIGNAL_API_KEY are set; otherwise the code is
       logged so local development works without a provider.
Who:   Auth routes (request / verify) and AuthService.register (consume).

Limitations:
    - The store is per-process, like the rate limiter; with several uvicorn
      workers a code is only valid on the worker that issued it.
"""

import hmac
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Dict, Optional

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from app.config import settings
from app.exceptions import CircuitBreakerOpenError, GatewayError
from app.services.gateway_base import OutboundGateway, is_retryable_http_error

logger = logging.getLogger(__name__)


def normalize_target(channel: str, target: str) -> str:
    target = target.strip()
    return target.lower() if channel == "email" else target


@dataclass
class _StoredCode:
    code: str
    expires_at: float


class OtpStore:
    """In-memory code store; expiry is checked on read and swept on every issue."""

    def __init__(self, ttl_seconds: Optional[int] = None):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.otp_ttl_seconds
        self._codes: Dict[str, _StoredCode] = {}

    @staticmethod
    def _key(channel: str, target: str) -> str:
        return f"otp:{channel}:{normalize_target(channel, target)}"

    def issue(self, channel: str, target: str) -> str:
        self._sweep_expired()
        code = f"{secrets.randbelow(900000) + 100000}"
        self._codes[self._key(channel, target)] = _StoredCode(code, time.time() + self.ttl_seconds)
        return code

    def verify(self, channel: str, target: str, code: str, consume: bool = False) -> bool:
        key = self._key(channel, target)
        stored = self._codes.get(key)
        if stored is None:
            return False
        if stored.expires_at <= time.time():
            del self._codes[key]
            return False
        valid = hmac.compare_digest(stored.code, code.strip())
        if valid and consume:
            del self._codes[key]
        return valid

    def _sweep_expired(self) -> None:
        """Drops codes for targets that never came back to verify."""
        now = time.time()
        expired = [key for key, stored in self._codes.items() if stored.expires_at <= now]
        for key in expired:
            del self._codes[key]
        if expired:
            logger.debug("Swept %d expired OTP codes", len(expired))

    def __len__(self) -> int:
        return len(self._codes)

    def clear(self) -> None:
        self._codes.clear()


class OneSignalOtpSender(OutboundGateway):
    """Delivers codes through OneSignal's notifications API (email or SMS)."""

    name = "onesignal"

    def __init__(
        self,
        app_id: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(transport=transport)
        self.app_id = app_id if app_id is not None else settings.onesignal_app_id
        self.api_key = api_key if api_key is not None else settings.onesignal_api_key
        self.url = settings.onesignal_api_url

    @property
    def is_configured(self) -> bool:
        return bool(self.app_id and self.api_key)

    def build_message(self, channel: str, target: str, code: str) -> Dict:
        text = f"Your SpecDate verification code is: {code}. It expires in 10 minutes."
        if channel == "email":
            return {
                "app_id": self.app_id,
                "email_to": [target.strip()],
                "email_subject": "Your SpecDate verification code",
                "email_body": f"<p>{text}</p>",
            }
        return {
            "app_id": self.app_id,
            "contents": {"en": text},
            "include_phone_numbers": [target.strip()],
        }

    async def send(self, channel: str, target: str, code: str) -> bool:
        """
        Returns True when OneSignal accepted the message.

        Raises:
            CircuitBreakerOpenError, GatewayError
        """
        self.circuit_breaker.can_execute()
        try:
            payload = await self._post_with_retry(
                {"c": "email" if channel == "email" else "sms"},
                self.build_message(channel, target, code),
            )
        except httpx.HTTPError as e:
            self.circuit_breaker.record_failure()
            logger.error("OneSignal OTP delivery failed: %s", str(e))
            raise GatewayError(
                message="Verification code could not be delivered",
                context={"channel": channel, "error_type": type(e).__name__},
            )
        self.circuit_breaker.record_success()
        return bool(payload.get("id"))

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
    async def _post_with_retry(self, params: Dict[str, str], message: Dict) -> Dict:
        async with self._client(settings.push_timeout_seconds) as client:
            response = await client.post(
                self.url,
                params=params,
                json=message,
                headers={"Authorization": f"Key {self.api_key}"},
            )
            response.raise_for_status()
        return response.json()


class OtpService:

    def __init__(self, store: Optional[OtpStore] = None, sender: Optional[OneSignalOtpSender] = None):
        self.store = store if store is not None else OtpStore()
        self.sender = sender or OneSignalOtpSender()

    async def request(self, channel: str, target: str) -> str:
        """Issues a code and delivers it; returns the user-facing message."""
        code = self.store.issue(channel, target)
        sent_message = (
            "Verification code sent to your email."
            if channel == "email"
            else "Verification code sent to your phone."
        )

        if self.sender.is_configured:
            try:
                if await self.sender.send(channel, target, code):
                    return sent_message
                logger.warning("OneSignal did not accept the %s OTP message", channel)
            except (GatewayError, CircuitBreakerOpenError) as e:
                logger.warning("OTP delivery via OneSignal failed: %s", e.message)

        # No provider: local development reads the code from the log
        logger.info("OTP for %s %s: %s", channel, normalize_target(channel, target), code)
        return f"{channel.capitalize()} delivery not configured; check server logs for the code."

    def verify(self, channel: str, target: str, code: str) -> bool:
        return self.store.verify(channel, target, code)

    def consume(self, channel: str, target: str, code: str) -> bool:
        return self.store.verify(channel, target, code, consume=True)


otp_service = OtpService()
