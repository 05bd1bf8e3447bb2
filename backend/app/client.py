"""
SpecDate Backend — Async API Client
=====================================

What:  Typed-ish async wrapper over the SpecDate HTTP API.
How:   One httpx.AsyncClient; every call unwraps the success envelope and
       returns its `data` (or the message for data-less endpoints).
Who:   Integration scripts, admin tooling and the test suite.

Usage:
    async with SpecDateClient("http://localhost:8000") as api:
        auth = await api.login("ada@example.com", "secret123")
        feed = await api.list_specs(filter="POPULAR")

Errors:
    Any non-2xx response raises SpecDateAPIError carrying the status code,
    the server's message and the decoded error body.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class SpecDateAPIError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, message: str, payload: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.message = message
        self.payload = payload or {}
        super().__init__(f"{status_code}: {message}")

    @property
    def code(self) -> Optional[str]:
        """Machine code from 403 bodies, e.g. INSUFFICIENT_FUNDS."""
        return (self.payload.get("details") or {}).get("code")

    @property
    def errors(self) -> Dict[str, List[str]]:
        return (self.payload.get("details") or {}).get("errors") or {}


class SpecDateClient:
    """
    Async client for the SpecDate API.

    `transport` lets callers route requests somewhere other than the
    network, e.g. httpx.ASGITransport(app=app) in tests.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "SpecDateClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── Transport ─────────────────────────────────────────────────────────

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if "params" in kwargs:
            kwargs["params"] = {k: v for k, v in kwargs["params"].items() if v is not None}

        response = await self._http.request(method, path, headers=headers, **kwargs)

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        if response.is_error:
            message = body.get("message") or response.reason_phrase or "Request failed"
            logger.debug("%s %s failed: %d %s", method, path, response.status_code, message)
            raise SpecDateAPIError(response.status_code, message, body)
        return body

    async def _data(self, method: str, path: str, **kwargs) -> Any:
        return (await self._request(method, path, **kwargs)).get("data")

    async def _message(self, method: str, path: str, **kwargs) -> str:
        return (await self._request(method, path, **kwargs)).get("message") or ""

    # ── Auth ──────────────────────────────────────────────────────────────

    async def register(self, **fields) -> Dict[str, Any]:
        """Creates an account and keeps the returned token."""
        data = await self._data("POST", "/api/register", json=fields)
        self.token = data["token"]
        return data

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        data = await self._data("POST", "/api/login", json={"email": email, "password": password})
        self.token = data["token"]
        return data

    async def logout(self) -> str:
        message = await self._message("POST", "/api/logout")
        self.token = None
        return message

    async def request_otp(self, channel: str, target: str) -> str:
        return await self._message("POST", "/api/request-otp", json={"channel": channel, "target": target})

    async def verify_otp(self, channel: str, target: str, code: str) -> bool:
        data = await self._data(
            "POST", "/api/verify-otp", json={"channel": channel, "target": target, "code": code}
        )
        return bool(data and data.get("verified"))

    # ── Profile & account ─────────────────────────────────────────────────

    async def me(self) -> Dict[str, Any]:
        return await self._data("GET", "/api/user")

    async def update_profile(self, **fields) -> Dict[str, Any]:
        return await self._data("PUT", "/api/profile", json=fields)

    async def get_user(self, user_id: int) -> Dict[str, Any]:
        return await self._data("GET", f"/api/users/{user_id}")

    async def search_users(
        self,
        sex: Optional[str] = None,
        city: Optional[str] = None,
        query: Optional[str] = None,
        page: int = 1,
    ) -> Dict[str, Any]:
        params = {"sex": sex, "city": city, "query": query, "page": page}
        return await self._data("GET", "/api/users", params=params)

    async def pause_account(self) -> Dict[str, Any]:
        return await self._data("POST", "/api/account/pause")

    async def unpause_account(self) -> Dict[str, Any]:
        return await self._data("POST", "/api/account/unpause")

    async def delete_account(self) -> str:
        message = await self._message("DELETE", "/api/account")
        self.token = None
        return message

    # ── Specs ─────────────────────────────────────────────────────────────

    async def list_specs(self, filter: str = "LIVE", exclude_own: bool = False, page: int = 1) -> Dict[str, Any]:
        params = {"filter": filter, "exclude_own": str(exclude_own).lower(), "page": page}
        return await self._data("GET", "/api/specs", params=params)

    async def my_specs(self, type: str = "all", page: int = 1) -> Dict[str, Any]:
        return await self._data("GET", "/api/my-specs", params={"type": type, "page": page})

    async def get_spec(self, spec_id: int) -> Dict[str, Any]:
        return await self._data("GET", f"/api/specs/{spec_id}")

    async def create_spec(self, **fields) -> Dict[str, Any]:
        return await self._data("POST", "/api/specs", json=fields)

    async def update_spec(self, spec_id: int, **fields) -> Dict[str, Any]:
        return await self._data("PUT", f"/api/specs/{spec_id}", json=fields)

    async def delete_spec(self, spec_id: int) -> str:
        return await self._message("DELETE", f"/api/specs/{spec_id}")

    async def join_spec(self, spec_id: int) -> Dict[str, Any]:
        return await self._data("POST", f"/api/specs/{spec_id}/join")

    async def like_spec(self, spec_id: int) -> Dict[str, Any]:
        return await self._data("POST", f"/api/specs/{spec_id}/like")

    async def pending_requests(self) -> List[Dict[str, Any]]:
        return await self._data("GET", "/api/requests/pending")

    # ── Applications ──────────────────────────────────────────────────────

    async def _application_action(self, spec_id: int, application_id: int, action: str) -> Dict[str, Any]:
        return await self._data("POST", f"/api/specs/{spec_id}/applications/{application_id}/{action}")

    async def approve_application(self, spec_id: int, application_id: int) -> Dict[str, Any]:
        return await self._application_action(spec_id, application_id, "approve")

    async def reject_application(self, spec_id: int, application_id: int) -> Dict[str, Any]:
        return await self._application_action(spec_id, application_id, "reject")

    async def eliminate_application(self, spec_id: int, application_id: int) -> Dict[str, Any]:
        return await self._application_action(spec_id, application_id, "eliminate")

    async def select_winner(self, spec_id: int, application_id: int) -> Dict[str, Any]:
        return await self._application_action(spec_id, application_id, "winner")

    # ── Rounds ────────────────────────────────────────────────────────────

    async def start_round(
        self,
        spec_id: int,
        question: str,
        duration_minutes: Optional[int] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"question": question}
        if duration_minutes is not None:
            payload["duration_minutes"] = duration_minutes
        return await self._data("POST", f"/api/specs/{spec_id}/rounds", json=payload)

    async def submit_answer(
        self,
        round_id: int,
        answer: str,
        media_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"answer": answer}
        if media_id is not None:
            payload["media_id"] = media_id
        return await self._data("POST", f"/api/rounds/{round_id}/answer", json=payload)

    async def close_round(self, round_id: int) -> Dict[str, Any]:
        return await self._data("POST", f"/api/rounds/{round_id}/close")

    async def eliminate_user(self, round_id: int, user_id: int) -> str:
        return await self._message("POST", f"/api/rounds/{round_id}/eliminate", json={"user_id": user_id})

    async def eliminate_users(self, round_id: int, user_ids: Iterable[int]) -> Dict[str, Any]:
        return await self._data(
            "POST", f"/api/rounds/{round_id}/eliminations", json={"user_ids": list(user_ids)}
        )

    async def nudge(self, round_id: int) -> int:
        data = await self._data("POST", f"/api/rounds/{round_id}/nudge")
        return int(data["nudged"])

    # ── Media ─────────────────────────────────────────────────────────────

    async def upload_media(
        self,
        media_type: str,
        filename: str,
        content: bytes,
        content_type: str,
        media_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        form: Dict[str, Any] = {"type": media_type}
        if media_id is not None:
            form["media_id"] = str(media_id)
        files = {"file": (filename, content, content_type)}
        return await self._data("POST", "/api/media/upload", data=form, files=files)

    async def delete_media(self, media_id: int) -> str:
        return await self._message("DELETE", f"/api/media/{media_id}")

    # ── Notifications ─────────────────────────────────────────────────────

    async def notifications(self, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        return await self._data("GET", "/api/notifications", params={"page": page, "limit": limit})

    async def mark_notification_read(self, notification_id: int) -> Dict[str, Any]:
        return await self._data("POST", f"/api/notifications/{notification_id}/read")

    async def mark_all_notifications_read(self) -> int:
        data = await self._data("POST", "/api/notifications/read-all")
        return int(data["updated"])

    async def update_push_token(self, token: str) -> str:
        return await self._message("POST", "/api/notifications/push-token", json={"token": token})
