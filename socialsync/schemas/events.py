"""Payloads pushed by the backend over the realtime socket."""
from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator

from .common import UtcDatetime, WireModel, extract_id
from .messages import Message
from .notifications import Notification
from .users import UserSummary

CallType = Literal["audio", "video"]


class NewMessageEvent(WireModel):
    conversation_id: str
    message: Message


class MessagesReadEvent(WireModel):
    conversation_id: str
    read_by: str

    @field_validator("read_by", mode="before")
    @classmethod
    def _flatten_reader(cls, value):
        return extract_id(value)


class NewNotificationEvent(WireModel):
    notification: Notification


class UnreadCountEvent(WireModel):
    unread_count: int = Field(default=0, ge=0)


class TypingEvent(WireModel):
    conversation_id: str
    user_id: str
    is_typing: bool = False


class UserStatusEvent(WireModel):
    user_id: str
    is_online: bool = False
    last_seen: UtcDatetime | None = None


class CallEvent(WireModel):
    call_id: str = ""
    caller_id: str | None = None
    recipient_id: str | None = None
    call_type: CallType = "audio"
    conversation_id: str | None = None
    status: str | None = None
    reason: str | None = None
    message: str | None = None
    caller_info: UserSummary | None = None
    recipient_info: UserSummary | None = None


__all__ = [
    "CallEvent",
    "CallType",
    "MessagesReadEvent",
    "NewMessageEvent",
    "NewNotificationEvent",
    "TypingEvent",
    "UnreadCountEvent",
    "UserStatusEvent",
]
