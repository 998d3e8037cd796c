"""Chat transcript: fetched history, live events and optimistic sends."""
from __future__ import annotations

import logging
from typing import Any, Iterable
from uuid import uuid4

from pydantic import ValidationError

from ..clients import ApiClient, ApiClientError
from ..constants import (
    EMIT_MARK_MESSAGES_READ,
    EMIT_TYPING_START,
    EMIT_TYPING_STOP,
    EVENT_MESSAGES_READ,
    EVENT_NEW_MESSAGE,
    EVENT_USER_STATUS_CHANGE,
    EVENT_USER_TYPING,
    TEMP_ID_PREFIX,
)
from ..schemas import (
    Message,
    MessageSendRequest,
    MessagesReadEvent,
    NewMessageEvent,
    TypingEvent,
    UserStatusEvent,
    UserSummary,
    utcnow,
)
from .connection import ConnectionManager

logger = logging.getLogger(__name__)


class MessageSendError(RuntimeError):
    """Raised after a failed send; the optimistic record has already been removed."""


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid4().hex}"


class ChatTranscriptReconciler:
    """Ordered message list for a single conversation."""

    def __init__(self, conversation_id: str, current_user_id: str) -> None:
        self.conversation_id = conversation_id
        self.current_user_id = current_user_id
        self.messages: list[Message] = []

    def _index_of(self, message_id: str) -> int:
        for index, message in enumerate(self.messages):
            if message.id == message_id:
                return index
        return -1

    def contains(self, message_id: str) -> bool:
        return self._index_of(message_id) >= 0

    def load(self, records: Iterable[dict[str, Any]]) -> list[Message]:
        loaded: list[Message] = []
        seen: set[str] = set()
        for raw in records:
            try:
                message = Message.model_validate(raw)
            except ValidationError:
                logger.warning("Skipping malformed message %s", raw.get("_id"), exc_info=True)
                continue
            if message.id in seen:
                continue
            seen.add(message.id)
            loaded.append(message.model_copy(update={"status": self._status_for(message)}))
        loaded.sort(key=lambda message: message.created_at)
        self.messages = loaded
        return self.messages

    def _status_for(self, message: Message) -> str:
        if message.sender_id == self.current_user_id:
            readers = [reader for reader in message.read_by if reader != self.current_user_id]
        else:
            readers = [reader for reader in message.read_by if reader == self.current_user_id]
        return "read" if readers else "delivered"

    def add_optimistic(self, content: str, type_: str = "text") -> Message:
        temp = Message(
            id=new_temp_id(),
            conversation_id=self.conversation_id,
            sender_id=self.current_user_id,
            content=content,
            type=type_,
            created_at=utcnow(),
            status="sending",
        )
        self.messages.append(temp)
        return temp

    def confirm(self, temp_id: str, server_record: dict[str, Any]) -> Message | None:
        """Swap the temporary record for the server-confirmed one, in place.

        When the live echo already delivered the server id, the temporary
        record is dropped so each server id appears once.
        """

        index = self._index_of(temp_id)
        confirmed = Message.model_validate(server_record).model_copy(update={"status": "delivered"})
        if self.contains(confirmed.id):
            if index >= 0:
                del self.messages[index]
            return self.messages[self._index_of(confirmed.id)]
        if index < 0:
            return None
        self.messages[index] = confirmed
        return confirmed

    def reject(self, temp_id: str) -> bool:
        index = self._index_of(temp_id)
        if index < 0:
            return False
        del self.messages[index]
        return True

    def apply_incoming(self, event: NewMessageEvent) -> bool:
        if event.conversation_id != self.conversation_id:
            return False
        if self.contains(event.message.id):
            return False
        self.messages.append(event.message.model_copy(update={"status": "delivered"}))
        return True

    def apply_read_receipt(self, reader_id: str) -> int:
        """Mark own messages as read by ``reader_id``; returns how many changed."""

        if reader_id == self.current_user_id:
            return 0
        changed = 0
        for index, message in enumerate(self.messages):
            if message.sender_id != self.current_user_id or message.is_temporary:
                continue
            if reader_id in message.read_by:
                continue
            self.messages[index] = message.model_copy(
                update={"read_by": [*message.read_by, reader_id], "status": "read"}
            )
            changed += 1
        return changed

    def mark_all_read_locally(self) -> int:
        changed = 0
        for index, message in enumerate(self.messages):
            if message.sender_id == self.current_user_id or self.current_user_id in message.read_by:
                continue
            self.messages[index] = message.model_copy(
                update={"read_by": [*message.read_by, self.current_user_id], "status": "read"}
            )
            changed += 1
        return changed

    def unread_incoming(self) -> list[Message]:
        return [
            message
            for message in self.messages
            if message.sender_id != self.current_user_id and self.current_user_id not in message.read_by
        ]


class ChatSession:
    """One open one-to-one chat: resolves the conversation and keeps its transcript live."""

    def __init__(
        self,
        api: ApiClient,
        connection: ConnectionManager | None,
        current_user_id: str,
        *,
        conversation_id: str | None = None,
    ) -> None:
        self._api = api
        self._connection = connection
        self.current_user_id = current_user_id
        self.conversation_id = conversation_id
        self.participant: UserSummary | None = None
        self.transcript: ChatTranscriptReconciler | None = (
            ChatTranscriptReconciler(conversation_id, current_user_id) if conversation_id else None
        )
        self.participant_typing = False
        self._attached = False

    @property
    def messages(self) -> list[Message]:
        return self.transcript.messages if self.transcript else []

    async def open(self, participant_id: str) -> list[Message]:
        conversation_id = await self._resolve_conversation(participant_id)
        self.conversation_id = conversation_id
        self.transcript = ChatTranscriptReconciler(conversation_id, self.current_user_id)

        if self.participant is None:
            await self._load_participant(participant_id)
        await self._load_online_status(participant_id)
        await self.fetch_messages()
        self.attach()
        return self.messages

    async def _resolve_conversation(self, participant_id: str) -> str:
        try:
            data = await self._api.get_conversation_with(participant_id)
            conversation = data.get("conversation")
            if conversation and conversation.get("_id"):
                self._adopt_participant(conversation.get("participant"))
                return str(conversation["_id"])
        except ApiClientError as exc:
            logger.info("No existing conversation with %s (%s); creating one", participant_id, exc.detail)

        data = await self._api.create_conversation(participant_id)
        conversation = data.get("conversation") or {}
        if not conversation.get("_id"):
            raise ApiClientError("Failed to create conversation")
        self._adopt_participant(conversation.get("participant"))
        return str(conversation["_id"])

    def _adopt_participant(self, raw: Any) -> None:
        if not isinstance(raw, dict):
            return
        try:
            self.participant = UserSummary.model_validate(raw)
        except ValidationError:
            logger.warning("Ignoring malformed participant payload", exc_info=True)

    async def _load_participant(self, participant_id: str) -> None:
        try:
            data = await self._api.get_user(participant_id)
        except ApiClientError as exc:
            logger.error("Error loading participant details: %s", exc)
            return
        raw = data.get("user") or data.get("data")
        if raw is None and (data.get("name") or data.get("username")):
            raw = data
        self._adopt_participant(raw)

    async def _load_online_status(self, participant_id: str) -> None:
        if self.participant is None:
            return
        try:
            data = await self._api.get_online_status(participant_id)
        except ApiClientError as exc:
            logger.warning("Error getting online status: %s", exc)
            return
        try:
            self.participant = UserSummary.model_validate(
                {**self.participant.model_dump(), "is_online": bool(data.get("isOnline")), "last_seen": data.get("lastSeen")}
            )
        except ValidationError:
            logger.warning("Ignoring malformed online status for %s", participant_id, exc_info=True)

    async def fetch_messages(self) -> list[Message]:
        transcript = self._require_transcript()
        try:
            data = await self._api.list_messages(transcript.conversation_id)
        except ApiClientError as exc:
            if exc.status_code == 404:
                logger.info("No messages found, starting fresh conversation")
            else:
                logger.error("Error fetching messages: %s", exc)
            return transcript.load([])
        return transcript.load(data.get("messages") or [])

    async def send(self, content: str, type_: str = "text") -> Message:
        transcript = self._require_transcript()
        text = (content or "").strip()
        if not text:
            raise ValueError("Message content cannot be empty")

        temp = transcript.add_optimistic(text, type_)
        try:
            await self.stop_typing()
            data = await self._api.send_message(
                MessageSendRequest(conversation_id=transcript.conversation_id, content=text, type=type_)
            )
            confirmed = transcript.confirm(temp.id, data.get("message") or {})
        except (ApiClientError, ValidationError) as exc:
            transcript.reject(temp.id)
            logger.error("Error sending message: %s", exc)
            raise MessageSendError("Failed to send message") from exc
        except BaseException:
            # cancelled mid-request; the record must not stay "sending"
            transcript.reject(temp.id)
            raise
        if confirmed is None:
            raise MessageSendError("Sent message vanished from the transcript")
        return confirmed

    async def mark_read(self) -> None:
        transcript = self._require_transcript()
        if self._connection is not None:
            await self._connection.emit(EMIT_MARK_MESSAGES_READ, {"conversationId": transcript.conversation_id})
        try:
            await self._api.mark_conversation_read(transcript.conversation_id)
        except ApiClientError as exc:
            logger.error("Error marking messages as read: %s", exc)
            return
        transcript.mark_all_read_locally()

    async def start_typing(self) -> None:
        if self._connection is not None and self.conversation_id:
            await self._connection.emit(EMIT_TYPING_START, {"conversationId": self.conversation_id})

    async def stop_typing(self) -> None:
        if self._connection is not None and self.conversation_id:
            await self._connection.emit(EMIT_TYPING_STOP, {"conversationId": self.conversation_id})

    def attach(self) -> None:
        if self._connection is None or self._attached:
            return
        self._connection.on(EVENT_NEW_MESSAGE, self._on_new_message)
        self._connection.on(EVENT_MESSAGES_READ, self._on_messages_read)
        self._connection.on(EVENT_USER_TYPING, self._on_user_typing)
        self._connection.on(EVENT_USER_STATUS_CHANGE, self._on_user_status)
        self._attached = True

    def close(self) -> None:
        if self._connection is None or not self._attached:
            return
        self._connection.off(EVENT_NEW_MESSAGE, self._on_new_message)
        self._connection.off(EVENT_MESSAGES_READ, self._on_messages_read)
        self._connection.off(EVENT_USER_TYPING, self._on_user_typing)
        self._connection.off(EVENT_USER_STATUS_CHANGE, self._on_user_status)
        self._attached = False

    async def _on_new_message(self, payload: dict[str, Any]) -> None:
        if self.transcript is None:
            return
        try:
            event = NewMessageEvent.model_validate(payload)
        except ValidationError:
            logger.warning("Ignoring malformed new_message payload", exc_info=True)
            return
        if self.transcript.apply_incoming(event) and event.message.sender_id != self.current_user_id:
            await self.mark_read()

    async def _on_messages_read(self, payload: dict[str, Any]) -> None:
        if self.transcript is None:
            return
        try:
            event = MessagesReadEvent.model_validate(payload)
        except ValidationError:
            logger.warning("Ignoring malformed messages_read payload", exc_info=True)
            return
        if event.conversation_id == self.transcript.conversation_id:
            self.transcript.apply_read_receipt(event.read_by)

    async def _on_user_typing(self, payload: dict[str, Any]) -> None:
        try:
            event = TypingEvent.model_validate(payload)
        except ValidationError:
            return
        if event.conversation_id == self.conversation_id and event.user_id != self.current_user_id:
            self.participant_typing = event.is_typing

    async def _on_user_status(self, payload: dict[str, Any]) -> None:
        try:
            event = UserStatusEvent.model_validate(payload)
        except ValidationError:
            return
        if self.participant is not None and event.user_id == self.participant.id:
            self.participant = self.participant.model_copy(
                update={"is_online": event.is_online, "last_seen": event.last_seen}
            )

    def _require_transcript(self) -> ChatTranscriptReconciler:
        if self.transcript is None:
            raise RuntimeError("Chat session has no conversation; call open() first")
        return self.transcript


__all__ = ["ChatSession", "ChatTranscriptReconciler", "MessageSendError", "new_temp_id"]
