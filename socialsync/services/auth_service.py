"""Authentication session: sign-in, sign-up, sign-out and the stored bearer token."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from ..clients import ApiClient, ApiClientError
from ..config import get_settings
from ..schemas import AccountUser, AuthResponse, LoginRequest, SignupRequest, StoredSession

logger = logging.getLogger(__name__)


class AuthError(ApiClientError):
    """Raised when no usable token exists or the backend rejects credentials."""


class TokenStore:
    """Persists the bearer token and cached account summary as a small JSON file."""

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else get_settings().token_path

    def load(self) -> StoredSession | None:
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return StoredSession.model_validate(raw)
        except (OSError, ValueError, ValidationError):
            logger.warning("Ignoring unreadable session file at %s", self.path)
            return None

    def save(self, session: StoredSession) -> None:
        """Write the session readable by the owner only; it carries a bearer token."""

        self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            # O_CREAT leaves the mode of an existing file untouched
            self.path.chmod(0o600)
            handle.write(session.model_dump_json())

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class AuthSession:
    """Tracks the signed-in account and keeps the API client's token in step."""

    def __init__(self, api: ApiClient, store: TokenStore | None = None) -> None:
        self._api = api
        self._store = store or TokenStore()
        self._token: str | None = None
        self._user: AccountUser | None = None

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def user(self) -> AccountUser | None:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token and self._user)

    def auth_headers(self) -> dict[str, str]:
        if not self._token:
            raise AuthError("Authentication failed - please log in again")
        return {"Authorization": f"Bearer {self._token}", "Content-Type": "application/json"}

    async def login(self, email: str, password: str) -> AccountUser:
        request = LoginRequest(email=email, password=password)
        try:
            data = await self._api.signin(request.email, request.password)
        except ApiClientError as exc:
            logger.error("Login failed for %s: %s", request.email, exc.detail)
            raise AuthError(exc.detail or "Login failed", status_code=exc.status_code) from exc
        return self._adopt(data)

    async def signup(self, name: str, email: str, password: str) -> AccountUser:
        request = SignupRequest(name=name, email=email, password=password)
        try:
            data = await self._api.signup(request.name, request.email, request.password)
        except ApiClientError as exc:
            logger.error("Signup failed for %s: %s", request.email, exc.detail)
            raise AuthError(exc.detail or "Signup failed", status_code=exc.status_code) from exc
        return self._adopt(data)

    async def restore(self) -> AccountUser | None:
        """Re-validate a stored token against ``/profile``; clears storage when rejected."""

        stored = self._store.load()
        if stored is None:
            logger.info("No stored session found")
            return None

        self._api.set_token(stored.token)
        try:
            data = await self._api.get_profile()
            user = AccountUser.model_validate(data.get("user") or {})
        except (ApiClientError, ValidationError) as exc:
            logger.warning("Stored session rejected: %s", exc)
            self._reset()
            return None

        self._token = stored.token
        self._user = user
        self._store.save(StoredSession(token=stored.token, user=user))
        return user

    async def logout(self) -> None:
        if self._token:
            try:
                await self._api.logout()
            except ApiClientError as exc:
                logger.warning("Backend logout failed, continuing with client logout: %s", exc)
        self._reset()
        logger.info("Signed out")

    def update_user(self, **changes: object) -> AccountUser:
        if self._user is None or self._token is None:
            raise AuthError("Not signed in")
        self._user = AccountUser.model_validate({**self._user.model_dump(), **changes})
        self._store.save(StoredSession(token=self._token, user=self._user))
        return self._user

    def _adopt(self, data: dict) -> AccountUser:
        try:
            response = AuthResponse.model_validate(data)
        except ValidationError as exc:
            raise AuthError("Malformed authentication response") from exc
        self._token = response.token
        self._user = response.user
        self._api.set_token(response.token)
        self._store.save(StoredSession(token=response.token, user=response.user))
        logger.info("Signed in as %s", response.user.email)
        return response.user

    def _reset(self) -> None:
        self._token = None
        self._user = None
        self._api.set_token(None)
        self._store.clear()


__all__ = ["AuthError", "AuthSession", "TokenStore"]
