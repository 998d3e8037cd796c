"""Schemas for user summaries and the signed-in account."""
from __future__ import annotations

import re

from pydantic import Field, model_validator

from .common import UtcDatetime, WireModel, utcnow


def derive_username(name: str | None) -> str:
    """Build a handle from a display name (lowercase, whitespace to ``_``)."""

    return re.sub(r"\s+", "_", (name or "").strip().lower())


class UserSummary(WireModel):
    id: str = Field(..., alias="_id")
    name: str = "Unknown User"
    username: str = "unknown"
    profile_picture: str | None = None
    is_online: bool = False
    last_seen: UtcDatetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_plain_id(cls, data):
        if isinstance(data, dict) and "_id" not in data and "id" in data:
            data = {**data, "_id": data["id"]}
        return data


class AccountUser(WireModel):
    id: str
    email: str
    username: str = ""
    full_name: str = Field(default="", alias="name")
    profile_picture: str | None = None
    bio: str | None = None
    created_at: UtcDatetime = Field(default_factory=utcnow)

    @model_validator(mode="before")
    @classmethod
    def _normalize_identity(cls, data):
        if not isinstance(data, dict):
            return data
        payload = dict(data)
        if "id" not in payload and "_id" in payload:
            payload["id"] = payload["_id"]
        if "name" not in payload and "fullName" in payload:
            payload["name"] = payload["fullName"]
        if not payload.get("username"):
            payload["username"] = derive_username(payload.get("name"))
        return payload


__all__ = ["AccountUser", "UserSummary", "derive_username"]
