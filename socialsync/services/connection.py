"""Single realtime Socket.IO connection per authenticated session."""
from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from enum import StrEnum
from typing import Any, Awaitable, Callable

import socketio
from socketio import exceptions as socketio_exceptions

from ..config import get_settings
from ..constants import (
    EMIT_GET_UNREAD_COUNT,
    EMIT_SUBSCRIBE_NOTIFICATIONS,
    EVENT_CONNECT,
    EVENT_CONNECT_ERROR,
    EVENT_DISCONNECT,
)

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], Awaitable[None] | None]
ClientFactory = Callable[[], Any]

_LIFECYCLE_EVENTS = (EVENT_CONNECT, EVENT_DISCONNECT, EVENT_CONNECT_ERROR)


class ConnectionState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    CLOSED = "closed"


def _default_client_factory() -> socketio.AsyncClient:
    # Token changes require a fresh manager, so the library's own reconnect stays off.
    return socketio.AsyncClient(reconnection=False)


class ConnectionManager:
    """Owns one transport-multiplexed socket and fans events out to handlers.

    The bearer token is fixed for the lifetime of the manager. Callers that
    obtain a new token must ``disconnect()`` and build a new manager. Connection
    failures are logged and reflected in :attr:`state`; they never raise.
    """

    def __init__(
        self,
        token: str,
        *,
        url: str | None = None,
        transports: list[str] | None = None,
        connect_timeout: float | None = None,
        subscribe_on_connect: bool = True,
        client_factory: ClientFactory | None = None,
    ) -> None:
        if not token:
            raise ValueError("A bearer token is required to open the realtime connection")
        settings = get_settings()
        self._token = token
        self.url = (url or settings.resolved_socket_url).rstrip("/")
        self.transports = transports or settings.transports
        self.connect_timeout = connect_timeout if connect_timeout is not None else settings.socket_connect_timeout
        self.subscribe_on_connect = subscribe_on_connect
        self._client_factory = client_factory or _default_client_factory
        self._client: Any = None
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._bound: set[str] = set()
        self.state = ConnectionState.IDLE

    @property
    def token(self) -> str:
        return self._token

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def on(self, event: str, handler: EventHandler) -> None:
        self._handlers[event].append(handler)
        if self._client is not None:
            self._bind(event)

    def off(self, event: str, handler: EventHandler) -> None:
        try:
            self._handlers[event].remove(handler)
        except ValueError:
            pass

    async def connect(self) -> bool:
        """Open the socket; returns False (after logging) when it cannot."""

        if self.is_connected:
            return True

        self._client = self._client_factory()
        self._bound = set()
        self._client.on(EVENT_CONNECT, self._handle_connect)
        self._client.on(EVENT_DISCONNECT, self._handle_disconnect)
        self._client.on(EVENT_CONNECT_ERROR, self._handle_connect_error)
        for event in list(self._handlers):
            self._bind(event)

        self.state = ConnectionState.CONNECTING
        logger.info("Connecting realtime socket to %s", self.url)
        try:
            await self._client.connect(
                self.url,
                auth={"token": self._token},
                transports=self.transports,
                wait_timeout=self.connect_timeout,
            )
        except (socketio_exceptions.ConnectionError, OSError) as exc:
            logger.error("Realtime connection to %s failed: %s", self.url, exc)
            self.state = ConnectionState.ERROR
            return False

        if self.state is ConnectionState.CONNECTING:
            self.state = ConnectionState.CONNECTED
        return self.is_connected

    async def disconnect(self) -> None:
        client, self._client = self._client, None
        if client is not None and self.state is not ConnectionState.CLOSED:
            logger.info("Closing realtime socket")
            try:
                await client.disconnect()
            except socketio_exceptions.SocketIOError:
                logger.warning("Socket disconnect raised", exc_info=True)
        self.state = ConnectionState.CLOSED

    async def emit(self, event: str, data: Any = None) -> bool:
        """Send ``event`` without waiting for any acknowledgement."""

        if not self.is_connected or self._client is None:
            logger.warning("Dropping %s: realtime socket is %s", event, self.state)
            return False
        try:
            if data is None:
                await self._client.emit(event)
            else:
                await self._client.emit(event, data)
        except socketio_exceptions.SocketIOError as exc:
            logger.warning("Emit %s failed: %s", event, exc)
            return False
        return True

    async def wait(self) -> None:
        if self._client is not None:
            await self._client.wait()

    def _bind(self, event: str) -> None:
        if event in self._bound or event in _LIFECYCLE_EVENTS:
            return

        async def _relay(*args: Any) -> None:
            await self._dispatch(event, args)

        self._client.on(event, _relay)
        self._bound.add(event)

    async def _dispatch(self, event: str, args: tuple[Any, ...]) -> None:
        payload = args[0] if args else {}
        for handler in list(self._handlers.get(event, ())):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Handler for %s failed", event)

    async def _handle_connect(self) -> None:
        self.state = ConnectionState.CONNECTED
        logger.info("Realtime socket connected")
        if self.subscribe_on_connect:
            await self.emit(EMIT_SUBSCRIBE_NOTIFICATIONS)
            await self.emit(EMIT_GET_UNREAD_COUNT)
        await self._dispatch(EVENT_CONNECT, ())

    async def _handle_disconnect(self, *args: Any) -> None:
        if self.state is not ConnectionState.CLOSED:
            self.state = ConnectionState.DISCONNECTED
        logger.info("Realtime socket disconnected%s", f" ({args[0]})" if args else "")
        await self._dispatch(EVENT_DISCONNECT, args)

    async def _handle_connect_error(self, data: Any = None) -> None:
        self.state = ConnectionState.ERROR
        logger.error("Realtime connection error: %s", data)
        await self._dispatch(EVENT_CONNECT_ERROR, (data,))


__all__ = ["ConnectionManager", "ConnectionState", "EventHandler"]
