"""Schemas used by the chat transcript."""
from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator

from ..constants import TEMP_ID_PREFIX
from .common import UtcDatetime, WireModel, extract_id, utcnow

MessageStatus = Literal["sending", "sent", "delivered", "read", "failed"]


class Message(WireModel):
    id: str = Field(..., alias="_id")
    conversation_id: str | None = None
    sender_id: str
    content: str = ""
    type: str = "text"
    created_at: UtcDatetime = Field(default_factory=utcnow)
    status: MessageStatus = "delivered"
    read_by: list[str] = Field(default_factory=list)

    @field_validator("sender_id", "conversation_id", mode="before")
    @classmethod
    def _flatten_reference(cls, value):
        return extract_id(value)

    @field_validator("read_by", mode="before")
    @classmethod
    def _flatten_readers(cls, value):
        if value is None:
            return []
        return [extract_id(item) for item in value]

    @property
    def is_temporary(self) -> bool:
        return self.id.startswith(TEMP_ID_PREFIX)


class MessageSendRequest(WireModel):
    conversation_id: str
    content: str = Field(..., min_length=1, max_length=5000)
    type: str = "text"


__all__ = ["Message", "MessageSendRequest", "MessageStatus"]
