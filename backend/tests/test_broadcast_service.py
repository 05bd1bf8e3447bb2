"""Pusher channel signing, subscription auth and event publishing."""

import hashlib
import hmac
import json

import httpx
import pytest

from app.exceptions import GatewayError, PermissionDeniedError
from app.services.broadcast_service import PusherBroadcastService, spec_channel, user_channel


def configured(transport=None):
    return PusherBroadcastService(
        app_id="1001",
        key="app-key",
        secret="app-secret",
        host="https://pusher.test",
        transport=transport,
    )


def expected_hmac(message):
    return hmac.new(b"app-secret", message.encode("utf-8"), hashlib.sha256).hexdigest()


def test_channel_names():
    assert user_channel(7) == "private-App.Models.User.7"
    assert spec_channel(3) == "spec.3"


def test_sign_request():
    body = '{"name":"x"}'
    params = configured().sign_request("post", "/apps/1001/events", body, timestamp=1700000000)

    assert params["auth_key"] == "app-key"
    assert params["auth_timestamp"] == "1700000000"
    assert params["body_md5"] == hashlib.md5(body.encode("utf-8")).hexdigest()
    query = (
        f"auth_key=app-key&auth_timestamp=1700000000&auth_version=1.0"
        f"&body_md5={params['body_md5']}"
    )
    assert params["auth_signature"] == expected_hmac(f"POST\n/apps/1001/events\n{query}")


class TestAuthorizeChannel:

    def test_own_user_channel(self):
        auth = configured().authorize_channel(7, "123.456", "private-App.Models.User.7")
        assert auth == f"app-key:{expected_hmac('123.456:private-App.Models.User.7')}"

    def test_other_user_channel(self):
        with pytest.raises(PermissionDeniedError):
            configured().authorize_channel(7, "123.456", "private-App.Models.User.8")

    def test_private_spec_channel(self):
        assert configured().authorize_channel(7, "1.2", "private-spec.3").startswith("app-key:")

    def test_unknown_channel(self):
        with pytest.raises(PermissionDeniedError, match="Unknown channel"):
            configured().authorize_channel(7, "1.2", "presence-lobby")

    def test_unconfigured(self):
        service = PusherBroadcastService(app_id="", key="", secret="")
        with pytest.raises(GatewayError):
            service.authorize_channel(7, "1.2", "private-App.Models.User.7")


class TestTrigger:

    @pytest.mark.asyncio
    async def test_disabled_gateway_drops_events(self):
        service = PusherBroadcastService(app_id="", key="", secret="")
        assert await service.trigger("spec.1", "RoundStarted", {"round_id": 1}) is False
        assert service.status() == "disabled"

    @pytest.mark.asyncio
    async def test_publishes_signed_event(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={})

        service = configured(httpx.MockTransport(handler))
        assert await service.trigger("spec.1", "RoundStarted", {"round_id": 9}) is True

        request = seen[0]
        assert request.url.path == "/apps/1001/events"
        assert "auth_signature" in request.url.params
        body = json.loads(request.content)
        assert body["name"] == "RoundStarted"
        assert body["channels"] == ["spec.1"]
        assert json.loads(body["data"]) == {"round_id": 9}

    @pytest.mark.asyncio
    async def test_failure_raises_gateway_error(self):
        service = configured(httpx.MockTransport(lambda request: httpx.Response(401)))
        with pytest.raises(GatewayError):
            await service.trigger(["spec.1"], "RoundAnswered", {})
        assert service.circuit_breaker.failure_count == 1
