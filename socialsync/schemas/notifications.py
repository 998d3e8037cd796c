"""Schemas for notifications."""
from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import Field, field_validator

from .common import UtcDatetime, WireModel, extract_id, utcnow
from .users import UserSummary


class NotificationType(StrEnum):
    FRIEND_REQUEST = "friend_request"
    POST_LIKE = "post_like"
    POST_COMMENT = "post_comment"
    FRIEND_REQUEST_ACCEPTED = "friend_request_accepted"
    POST_SHARE = "post_share"
    MENTION = "mention"
    UNKNOWN = "unknown"


class Notification(WireModel):
    id: str = Field(..., alias="_id")
    type: NotificationType = NotificationType.UNKNOWN
    sender: UserSummary | None = None
    sender_id: str | None = None
    recipient_id: str | None = None
    message: str = ""
    post_id: str | None = None
    is_read: bool = False
    created_at: UtcDatetime = Field(default_factory=utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value):
        try:
            return NotificationType(value)
        except ValueError:
            return NotificationType.UNKNOWN

    @field_validator("sender_id", "recipient_id", mode="before")
    @classmethod
    def _flatten_reference(cls, value):
        return extract_id(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def _default_metadata(cls, value):
        return value or {}

    @property
    def friend_request_id(self) -> str | None:
        request_id = self.metadata.get("requestId")
        return str(request_id) if request_id else None


__all__ = ["Notification", "NotificationType"]
