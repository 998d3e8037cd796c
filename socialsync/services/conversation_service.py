"""Conversation list: merges fetched pages with live ``new_message`` events."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable

from pydantic import ValidationError

from ..clients import ApiClient, ApiClientError
from ..config import get_settings
from ..constants import EVENT_MESSAGES_READ, EVENT_NEW_MESSAGE
from ..schemas import (
    Conversation,
    ConversationPage,
    LastMessage,
    MessagesReadEvent,
    NewMessageEvent,
    Pagination,
    utcnow,
)
from .connection import ConnectionManager
from .retry import RetryPolicy, retry_async

logger = logging.getLogger(__name__)


def dedupe_conversations(conversations: Iterable[Conversation]) -> list[Conversation]:
    """Keep only the first occurrence of each conversation id."""

    seen: set[str] = set()
    unique: list[Conversation] = []
    for conversation in conversations:
        if conversation.id in seen:
            logger.warning("Duplicate conversation found: %s", conversation.id)
            continue
        seen.add(conversation.id)
        unique.append(conversation)
    return unique


class ConversationListReconciler:
    """In-memory conversation list, most recently active first."""

    def __init__(self, current_user_id: str) -> None:
        self.current_user_id = current_user_id
        self.conversations: list[Conversation] = []
        self.pagination = Pagination()

    def normalize(self, raw: dict[str, Any]) -> Conversation | None:
        participant = raw.get("participant")
        if not isinstance(participant, dict) or not (participant.get("_id") or participant.get("id")):
            logger.warning("Skipping conversation without participant: %s", raw.get("_id"))
            return None

        payload = dict(raw)
        payload["unreadCount"] = self._unread_for_current_user(raw)

        last = raw.get("lastMessage")
        if isinstance(last, str):
            payload["lastMessage"] = {"_id": f"{raw.get('_id')}_msg", "content": last}
        elif isinstance(last, dict):
            preview = dict(last)
            preview.setdefault("_id", f"{raw.get('_id')}_msg")
            preview.setdefault("createdAt", raw.get("updatedAt") or raw.get("createdAt"))
            if preview.get("createdAt") is None:
                preview.pop("createdAt")
            payload["lastMessage"] = preview
        else:
            payload["lastMessage"] = None

        if not payload.get("updatedAt"):
            payload["updatedAt"] = raw.get("createdAt") or utcnow()

        try:
            return Conversation.model_validate(payload)
        except ValidationError:
            logger.warning("Skipping malformed conversation %s", raw.get("_id"), exc_info=True)
            return None

    def _unread_for_current_user(self, raw: dict[str, Any]) -> int:
        counts = raw.get("unreadCounts")
        if isinstance(counts, list):
            for entry in counts:
                if isinstance(entry, dict) and entry.get("userId") == self.current_user_id:
                    return int(entry.get("count") or 0)
            return 0
        return int(raw.get("unreadCount") or 0)

    def _prepare(self, records: Iterable[dict[str, Any]]) -> list[Conversation]:
        normalized = [item for item in (self.normalize(raw) for raw in records) if item is not None]
        unique = dedupe_conversations(normalized)
        return sorted(unique, key=lambda conversation: conversation.updated_at, reverse=True)

    def replace(self, records: Iterable[dict[str, Any]], pagination: Pagination | None = None) -> list[Conversation]:
        """Replace the list with a first page (initial load or refresh)."""

        self.conversations = self._prepare(records)
        self.pagination = pagination or Pagination(current_page=1, total_count=len(self.conversations))
        return self.conversations

    def extend(self, records: Iterable[dict[str, Any]], pagination: Pagination | None = None) -> list[Conversation]:
        """Append a later page, skipping conversations already in the list."""

        existing = {conversation.id for conversation in self.conversations}
        fresh = [conversation for conversation in self._prepare(records) if conversation.id not in existing]
        self.conversations = self.conversations + fresh
        self.pagination = pagination or Pagination(
            current_page=self.pagination.current_page + 1,
            total_count=len(self.conversations),
        )
        return fresh

    def index_of(self, conversation_id: str) -> int:
        for index, conversation in enumerate(self.conversations):
            if conversation.id == conversation_id:
                return index
        return -1

    def get(self, conversation_id: str) -> Conversation | None:
        index = self.index_of(conversation_id)
        return self.conversations[index] if index >= 0 else None

    def apply_new_message(self, event: NewMessageEvent) -> Conversation | None:
        """Update preview and unread count, then move the conversation to the head.

        Messages for conversations not in the list are dropped and ``None``
        is returned.
        """

        index = self.index_of(event.conversation_id)
        if index < 0:
            return None

        message = event.message
        current = self.conversations[index]
        updated = current.model_copy(
            update={
                "last_message": LastMessage(
                    id=message.id,
                    content=message.content,
                    sender_id=message.sender_id,
                    created_at=message.created_at,
                    type=message.type,
                ),
                "updated_at": utcnow(),
                "unread_count": current.unread_count + 1,
            }
        )
        del self.conversations[index]
        self.conversations.insert(0, updated)
        return updated

    def apply_read(self, conversation_id: str) -> Conversation | None:
        index = self.index_of(conversation_id)
        if index < 0:
            return None
        updated = self.conversations[index].model_copy(update={"unread_count": 0})
        self.conversations[index] = updated
        return updated

    def filter(self, query: str) -> list[Conversation]:
        needle = (query or "").strip().lower()
        if not needle:
            return list(self.conversations)
        matches: list[Conversation] = []
        for conversation in self.conversations:
            haystacks = (
                conversation.participant.name,
                conversation.participant.username,
                conversation.last_message.content if conversation.last_message else "",
            )
            if any(needle in (value or "").lower() for value in haystacks):
                matches.append(conversation)
        return matches

    @property
    def total_unread(self) -> int:
        return sum(conversation.unread_count for conversation in self.conversations)


class ConversationSync:
    """Keeps a :class:`ConversationListReconciler` in step with the backend."""

    def __init__(
        self,
        api: ApiClient,
        connection: ConnectionManager | None,
        reconciler: ConversationListReconciler,
        *,
        retry_policy: RetryPolicy | None = None,
        poll_interval: float | None = None,
    ) -> None:
        self._api = api
        self._connection = connection
        self.reconciler = reconciler
        self._retry_policy = retry_policy or RetryPolicy.from_settings()
        self._poll_interval = poll_interval if poll_interval is not None else get_settings().poll_interval
        self._loading_more = False
        self._pending: set[asyncio.Task[Any]] = set()
        self.error: str | None = None
        self.retry_count = 0

    async def _fetch_page(self, page: int) -> ConversationPage:
        data = await self._api.list_conversations(page=page)
        return ConversationPage.model_validate(data)

    async def refresh(self) -> list[Conversation]:
        try:
            page = await self._fetch_page(1)
        except (ApiClientError, ValidationError) as exc:
            self.error = str(exc)
            self.retry_count += 1
            logger.error("Error fetching conversations: %s", exc)
            raise
        self.error = None
        return self.reconciler.replace(page.items, page.pagination)

    async def refresh_with_retry(self) -> list[Conversation]:
        result = await retry_async(self.refresh, policy=self._retry_policy)
        self.retry_count = 0
        return result

    async def load_more(self) -> list[Conversation]:
        if not self.reconciler.pagination.has_more or self._loading_more:
            return []
        self._loading_more = True
        try:
            page = await self._fetch_page(self.reconciler.pagination.current_page + 1)
            return self.reconciler.extend(page.items, page.pagination)
        finally:
            self._loading_more = False

    async def start_conversation(self, participant_id: str) -> Conversation | None:
        data = await self._api.create_conversation(participant_id)
        raw = data.get("conversation") or {}
        return self.reconciler.normalize(raw)

    def attach(self) -> None:
        if self._connection is None:
            return
        self._connection.on(EVENT_NEW_MESSAGE, self._on_new_message)
        self._connection.on(EVENT_MESSAGES_READ, self._on_messages_read)

    def detach(self) -> None:
        if self._connection is None:
            return
        self._connection.off(EVENT_NEW_MESSAGE, self._on_new_message)
        self._connection.off(EVENT_MESSAGES_READ, self._on_messages_read)

    async def _on_new_message(self, payload: dict[str, Any]) -> None:
        try:
            event = NewMessageEvent.model_validate(payload)
        except ValidationError:
            logger.warning("Ignoring malformed new_message payload", exc_info=True)
            return
        if self.reconciler.apply_new_message(event) is None:
            if self._pending:
                logger.debug("Refresh already pending; skipping for %s", event.conversation_id)
                return
            logger.info("Message for unknown conversation %s; refreshing list", event.conversation_id)
            task = asyncio.create_task(self._refresh_quietly())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _on_messages_read(self, payload: dict[str, Any]) -> None:
        try:
            event = MessagesReadEvent.model_validate(payload)
        except ValidationError:
            logger.warning("Ignoring malformed messages_read payload", exc_info=True)
            return
        if event.read_by == self.reconciler.current_user_id:
            self.reconciler.apply_read(event.conversation_id)

    async def _refresh_quietly(self) -> None:
        try:
            await self.refresh()
        except (ApiClientError, ValidationError):
            # refresh() already logged and recorded the error
            pass

    async def run_polling(self, stop: asyncio.Event) -> None:
        """Refresh every poll interval while the realtime socket is down."""

        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass
            else:
                break
            if self._connection is not None and self._connection.is_connected:
                continue
            await self._refresh_quietly()


__all__ = ["ConversationListReconciler", "ConversationSync", "dedupe_conversations"]
