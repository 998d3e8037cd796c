"""Schemas for the conversation list."""
from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from .common import UtcDatetime, WireModel, extract_id, utcnow
from .users import UserSummary


class LastMessage(WireModel):
    id: str = Field(..., alias="_id")
    content: str = ""
    sender_id: str = ""
    created_at: UtcDatetime = Field(default_factory=utcnow)
    type: str = "text"

    @field_validator("sender_id", mode="before")
    @classmethod
    def _flatten_sender(cls, value):
        return extract_id(value) or ""


class Conversation(WireModel):
    id: str = Field(..., alias="_id")
    participant: UserSummary
    last_message: LastMessage | None = None
    unread_count: int = Field(default=0, ge=0)
    updated_at: UtcDatetime = Field(default_factory=utcnow)
    created_at: UtcDatetime = Field(default_factory=utcnow)


class Pagination(WireModel):
    current_page: int = 1
    total_pages: int = 1
    total_count: int = 0
    has_more: bool = False


class ConversationPage(WireModel):
    """One page of the conversation list; items stay raw until normalized."""

    items: list[dict[str, Any]] = Field(default_factory=list, alias="conversations")
    pagination: Pagination | None = None

    @field_validator("items", mode="before")
    @classmethod
    def _default_items(cls, value):
        return value or []

    @field_validator("pagination", mode="before")
    @classmethod
    def _ignore_bad_pagination(cls, value):
        return value if isinstance(value, dict) else None


__all__ = ["Conversation", "ConversationPage", "LastMessage", "Pagination"]
