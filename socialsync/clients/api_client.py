"""Async HTTP client for the social backend's REST endpoints."""
from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from ..config import get_settings
from ..schemas import MessageSendRequest

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class ApiClientError(RuntimeError):
    """Raised when a backend call fails or reports ``success: false``."""

    def __init__(self, message: str, *, status_code: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail or message


class ApiClient:
    """Thin wrapper over ``httpx.AsyncClient`` that speaks the backend's JSON envelope.

    Every response is expected to be a JSON object. Non-2xx responses and
    bodies carrying ``"success": false`` raise :class:`ApiClientError`.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        token: str | None = None,
        timeout: float | None = _UNSET,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        if timeout is _UNSET:
            timeout = settings.http_timeout
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    @property
    def token(self) -> str | None:
        return self._token

    def set_token(self, token: str | None) -> None:
        self._token = token

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _headers(self, auth: bool) -> dict[str, str]:
        if auth and self._token:
            return {"Authorization": f"Bearer {self._token}"}
        return {}

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        auth: bool = True,
    ) -> dict[str, Any]:
        logger.debug("%s %s", method, path)
        try:
            response = await self._client.request(method, path, json=json, params=params, headers=self._headers(auth))
        except httpx.HTTPError as exc:
            logger.warning("Request %s %s failed: %s", method, path, exc)
            raise ApiClientError(f"Network error calling {path}") from exc

        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {"message": response.text}

        if response.is_error:
            detail = data.get("message") if isinstance(data, dict) else None
            logger.warning("Request %s %s returned HTTP %s", method, path, response.status_code)
            raise ApiClientError(
                f"HTTP {response.status_code} from {path}",
                status_code=response.status_code,
                detail=detail or response.reason_phrase,
            )

        if not isinstance(data, dict):
            return {"data": data}
        if data.get("success") is False:
            detail = data.get("message") or "Request failed"
            raise ApiClientError(detail, status_code=response.status_code, detail=detail)
        return data

    # Auth -------------------------------------------------------------

    async def signin(self, email: str, password: str) -> dict[str, Any]:
        return await self.request("POST", "/signin", json={"email": email, "password": password}, auth=False)

    async def signup(self, name: str, email: str, password: str) -> dict[str, Any]:
        payload = {"name": name, "email": email, "password": password}
        return await self.request("POST", "/signup", json=payload, auth=False)

    async def logout(self) -> dict[str, Any]:
        return await self.request("POST", "/logout")

    async def get_profile(self) -> dict[str, Any]:
        return await self.request("GET", "/profile")

    # Conversations ----------------------------------------------------

    async def list_conversations(self, page: int = 1) -> dict[str, Any]:
        return await self.request("GET", "/conversations", params={"page": page})

    async def create_conversation(self, participant_id: str) -> dict[str, Any]:
        return await self.request("POST", "/conversations", json={"participantId": participant_id})

    async def get_conversation_with(self, participant_id: str) -> dict[str, Any]:
        return await self.request("GET", f"/conversations/participant/{quote(participant_id, safe='')}")

    async def mark_conversation_read(self, conversation_id: str) -> dict[str, Any]:
        return await self.request("PUT", f"/conversations/{quote(conversation_id, safe='')}/read")

    async def list_messages(self, conversation_id: str) -> dict[str, Any]:
        return await self.request("GET", f"/conversations/{quote(conversation_id, safe='')}/messages")

    async def send_message(self, payload: MessageSendRequest) -> dict[str, Any]:
        return await self.request("POST", "/messages", json=payload.to_wire())

    # Users ------------------------------------------------------------

    async def get_user(self, user_id: str) -> dict[str, Any]:
        return await self.request("GET", f"/users/{quote(user_id, safe='')}")

    async def get_online_status(self, user_id: str) -> dict[str, Any]:
        return await self.request("GET", f"/users/online-status/{quote(user_id, safe='')}")

    async def search_users(self, query: str) -> dict[str, Any]:
        return await self.request("GET", f"/users/search/{quote(query.strip(), safe='')}")

    # Notifications and friends ---------------------------------------

    async def list_notifications(self) -> dict[str, Any]:
        return await self.request("GET", "/notifications")

    async def notification_unread_count(self) -> dict[str, Any]:
        return await self.request("GET", "/notifications/unread-count")

    async def list_friend_requests(self) -> dict[str, Any]:
        return await self.request("GET", "/friends/requests")

    async def respond_to_friend_request(self, request_id: str, action: str) -> dict[str, Any]:
        return await self.request("PUT", f"/friends/{quote(request_id, safe='')}", json={"action": action})


__all__ = ["ApiClient", "ApiClientError"]
