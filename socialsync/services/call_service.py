"""Call signalling state machine over the realtime socket."""
from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any

from pydantic import ValidationError

from ..constants import (
    EMIT_CALL_ACCEPT,
    EMIT_CALL_END,
    EMIT_CALL_INITIATE,
    EMIT_CALL_REJECT,
    EVENT_CALL_ACCEPTED,
    EVENT_CALL_ENDED,
    EVENT_CALL_FAILED,
    EVENT_CALL_INITIATED,
    EVENT_CALL_REJECTED,
    EVENT_INCOMING_CALL,
)
from ..schemas import CallEvent, CallType, UserSummary
from .connection import ConnectionManager

logger = logging.getLogger(__name__)


class CallStateError(RuntimeError):
    """Raised when a call action does not fit the current call state."""


class CallStatus(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    RINGING = "ringing"
    ACTIVE = "active"


class CallSession:
    """Tracks at most one call at a time; media negotiation happens elsewhere."""

    def __init__(self, connection: ConnectionManager, current_user_id: str) -> None:
        self._connection = connection
        self.current_user_id = current_user_id
        self.status = CallStatus.IDLE
        self.call_id: str | None = None
        self.call_type: CallType = "audio"
        self.peer_id: str | None = None
        self.peer: UserSummary | None = None
        self.conversation_id: str | None = None
        self.is_incoming = False
        self.last_reason: str | None = None
        self._attached = False

    @property
    def in_call(self) -> bool:
        return self.status is not CallStatus.IDLE

    async def initiate(self, recipient_id: str, conversation_id: str | None = None, call_type: CallType = "audio") -> None:
        if self.in_call:
            raise CallStateError(f"Cannot start a call while {self.status}")
        self.status = CallStatus.CONNECTING
        self.is_incoming = False
        self.peer_id = recipient_id
        self.conversation_id = conversation_id
        self.call_type = call_type
        self.last_reason = None
        sent = await self._connection.emit(
            EMIT_CALL_INITIATE,
            {"recipientId": recipient_id, "callType": call_type, "conversationId": conversation_id},
        )
        if not sent:
            self._reset("Realtime connection unavailable")
            raise CallStateError("Realtime connection unavailable")

    async def accept(self) -> None:
        if not (self.is_incoming and self.status is CallStatus.RINGING and self.call_id):
            raise CallStateError("No incoming call to accept")
        await self._connection.emit(EMIT_CALL_ACCEPT, {"callId": self.call_id})
        self.status = CallStatus.ACTIVE

    async def reject(self, reason: str = "Declined") -> None:
        if not (self.is_incoming and self.call_id):
            raise CallStateError("No incoming call to reject")
        await self._connection.emit(EMIT_CALL_REJECT, {"callId": self.call_id, "reason": reason})
        self._reset(reason)

    async def end(self) -> None:
        if self.call_id:
            await self._connection.emit(EMIT_CALL_END, {"callId": self.call_id})
        self._reset("ended")

    def attach(self) -> None:
        if self._attached:
            return
        self._connection.on(EVENT_INCOMING_CALL, self._on_incoming_call)
        self._connection.on(EVENT_CALL_INITIATED, self._on_call_initiated)
        self._connection.on(EVENT_CALL_ACCEPTED, self._on_call_accepted)
        self._connection.on(EVENT_CALL_REJECTED, self._on_call_closed)
        self._connection.on(EVENT_CALL_ENDED, self._on_call_closed)
        self._connection.on(EVENT_CALL_FAILED, self._on_call_closed)
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        self._connection.off(EVENT_INCOMING_CALL, self._on_incoming_call)
        self._connection.off(EVENT_CALL_INITIATED, self._on_call_initiated)
        self._connection.off(EVENT_CALL_ACCEPTED, self._on_call_accepted)
        self._connection.off(EVENT_CALL_REJECTED, self._on_call_closed)
        self._connection.off(EVENT_CALL_ENDED, self._on_call_closed)
        self._connection.off(EVENT_CALL_FAILED, self._on_call_closed)
        self._attached = False

    def _parse(self, payload: Any) -> CallEvent | None:
        try:
            return CallEvent.model_validate(payload or {})
        except ValidationError:
            logger.warning("Ignoring malformed call payload", exc_info=True)
            return None

    async def _on_incoming_call(self, payload: dict[str, Any]) -> None:
        event = self._parse(payload)
        if event is None:
            return
        if self.in_call:
            logger.info("Busy; rejecting incoming call %s", event.call_id)
            await self._connection.emit(EMIT_CALL_REJECT, {"callId": event.call_id, "reason": "busy"})
            return
        self.status = CallStatus.RINGING
        self.is_incoming = True
        self.call_id = event.call_id
        self.call_type = event.call_type
        self.peer_id = event.caller_id
        self.peer = event.caller_info
        self.conversation_id = event.conversation_id
        self.last_reason = None

    async def _on_call_initiated(self, payload: dict[str, Any]) -> None:
        event = self._parse(payload)
        if event is None or self.status is not CallStatus.CONNECTING:
            return
        self.call_id = event.call_id
        self.peer = event.recipient_info or self.peer
        self.status = CallStatus.RINGING

    async def _on_call_accepted(self, payload: dict[str, Any]) -> None:
        event = self._parse(payload)
        if event is None or event.call_id != self.call_id:
            return
        self.status = CallStatus.ACTIVE

    async def _on_call_closed(self, payload: dict[str, Any]) -> None:
        event = self._parse(payload)
        if event is None:
            return
        if self.call_id and event.call_id and event.call_id != self.call_id:
            return
        self._reset(event.reason or event.message or event.status)

    def _reset(self, reason: str | None = None) -> None:
        if self.in_call:
            logger.info("Call %s closed (%s)", self.call_id, reason)
        self.status = CallStatus.IDLE
        self.call_id = None
        self.peer_id = None
        self.peer = None
        self.conversation_id = None
        self.is_incoming = False
        self.last_reason = reason


__all__ = ["CallSession", "CallStateError", "CallStatus"]
