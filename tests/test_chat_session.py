import asyncio
import logging
from datetime import datetime

import httpx
import pytest

from fake_backend import FakeBackend, stamp
from fake_socket import StubSocketClient
from socialsync.clients import ApiClient
from socialsync.services import ChatSession, ConnectionManager, MessageSendError


@pytest.fixture
def chat_backend(backend: FakeBackend) -> FakeBackend:
    backend.add_conversation("c1", "u2", minutes=10)
    backend.add_message("c1", "u2", "hello", minutes=1)
    backend.add_message("c1", "u1", "hi Bob", minutes=2, read_by=["u2"])
    backend.add_message("c1", "u2", "how are you?", minutes=3)
    return backend


@pytest.fixture
def opened(chat_backend: FakeBackend, api: ApiClient, connection: ConnectionManager) -> ChatSession:
    session = ChatSession(api, connection, "u1")
    asyncio.run(session.open("u2"))
    return session


def test_open_resolves_existing_conversation(opened: ChatSession) -> None:
    assert opened.conversation_id == "c1"
    assert [message.content for message in opened.messages] == ["hello", "hi Bob", "how are you?"]
    assert opened.messages[1].status == "read"
    assert opened.participant.name == "Bob"
    assert opened.participant.is_online is True


def test_open_creates_conversation_when_missing(backend: FakeBackend, api: ApiClient) -> None:
    session = ChatSession(api, None, "u1")

    messages = asyncio.run(session.open("u3"))

    assert messages == []
    assert session.conversation_id == backend.conversations[0]["_id"]
    assert ("GET", "conversation_with") in backend.calls
    assert ("POST", "create_conversation") in backend.calls
    assert session.participant.name == "Carol"


def test_missing_history_is_treated_as_empty(api: ApiClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    session = ChatSession(api, None, "u1", conversation_id="nope")

    assert asyncio.run(session.fetch_messages()) == []
    assert "No messages found" in caplog.text


def test_send_confirms_optimistic_message(
    opened: ChatSession, chat_backend: FakeBackend, socket_client: StubSocketClient
) -> None:
    socket_client.emitted.clear()

    confirmed = asyncio.run(opened.send("  see you soon  "))

    assert confirmed.content == "see you soon"
    assert not confirmed.is_temporary
    assert opened.messages[-1].id == confirmed.id
    assert chat_backend.messages["c1"][-1]["_id"] == confirmed.id
    assert ("typing_stop", {"conversationId": "c1"}) in socket_client.emitted


def test_send_failure_removes_optimistic_message(opened: ChatSession, chat_backend: FakeBackend) -> None:
    chat_backend.fail("send_message")

    with pytest.raises(MessageSendError):
        asyncio.run(opened.send("will fail"))

    assert len(opened.messages) == 3
    assert not any(message.is_temporary for message in opened.messages)


def test_send_rejects_blank_content(opened: ChatSession) -> None:
    with pytest.raises(ValueError):
        asyncio.run(opened.send("   "))


def test_incoming_message_is_appended_and_marked_read(
    opened: ChatSession, chat_backend: FakeBackend, socket_client: StubSocketClient
) -> None:
    socket_client.emitted.clear()
    payload = {
        "conversationId": "c1",
        "message": {"_id": "m100", "conversationId": "c1", "senderId": "u2", "content": "ping", "createdAt": stamp(30)},
    }

    async def scenario() -> None:
        await socket_client.push("new_message", payload)
        await socket_client.push("new_message", payload)

    asyncio.run(scenario())

    assert [message.id for message in opened.messages].count("m100") == 1
    assert socket_client.emitted_names().count("mark_messages_read") == 1
    assert ("PUT", "mark_read") in chat_backend.calls
    assert opened.transcript.unread_incoming() == []


def test_read_receipt_updates_own_messages(opened: ChatSession, socket_client: StubSocketClient) -> None:
    asyncio.run(opened.send("did you read this?"))

    asyncio.run(socket_client.push("messages_read", {"conversationId": "c1", "readBy": "u2"}))

    assert opened.messages[-1].status == "read"


def test_typing_and_presence_events(opened: ChatSession, socket_client: StubSocketClient) -> None:
    async def scenario() -> None:
        await socket_client.push("user_typing", {"conversationId": "c1", "userId": "u2", "isTyping": True})
        assert opened.participant_typing is True
        await socket_client.push("user_typing", {"conversationId": "c1", "userId": "u1", "isTyping": False})
        assert opened.participant_typing is True
        await socket_client.push("user_status_change", {"userId": "u2", "isOnline": False, "lastSeen": stamp(40)})

    asyncio.run(scenario())

    assert opened.participant.is_online is False
    assert opened.participant.last_seen is not None


def test_typing_indicators_are_emitted(opened: ChatSession, socket_client: StubSocketClient) -> None:
    socket_client.emitted.clear()

    asyncio.run(opened.start_typing())
    asyncio.run(opened.stop_typing())

    assert socket_client.emitted_names() == ["typing_start", "typing_stop"]


def test_mark_read_failure_is_logged(opened: ChatSession, chat_backend: FakeBackend, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR)
    chat_backend.fail("mark_read")

    asyncio.run(opened.mark_read())

    assert "Error marking messages as read" in caplog.text
    assert len(opened.transcript.unread_incoming()) == 2


def test_close_detaches_handlers(opened: ChatSession, socket_client: StubSocketClient) -> None:
    opened.close()

    asyncio.run(
        socket_client.push(
            "new_message",
            {"conversationId": "c1", "message": {"_id": "m200", "senderId": "u2", "content": "gone"}},
        )
    )

    assert "m200" not in [message.id for message in opened.messages]


def test_open_parses_participant_last_seen(opened: ChatSession) -> None:
    assert isinstance(opened.participant.last_seen, datetime)
    assert opened.participant.last_seen.isoformat() == stamp(-5)


def test_cancelled_send_removes_optimistic_message() -> None:
    async def scenario() -> ChatSession:
        started = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            started.set()
            await asyncio.Event().wait()
            return httpx.Response(200, json={"success": True})

        api = ApiClient("http://testserver", token="t", transport=httpx.MockTransport(handler))
        session = ChatSession(api, None, "u1", conversation_id="c1")
        task = asyncio.create_task(session.send("never arrives"))
        await started.wait()
        assert session.messages[-1].status == "sending"

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await api.aclose()
        return session

    session = asyncio.run(scenario())

    assert session.messages == []
