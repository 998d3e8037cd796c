"""Shared schema helpers for parsing the backend's camelCase JSON."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_ensure_aware)]


def extract_id(value: Any) -> Any:
    """Flatten an embedded ``{"_id": ...}`` reference to its id string."""

    if isinstance(value, dict):
        return value.get("_id") or value.get("id")
    return value


class WireModel(BaseModel):
    """Base for payloads exchanged with the backend."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


__all__ = ["UtcDatetime", "WireModel", "extract_id", "utcnow"]
