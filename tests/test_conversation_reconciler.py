import logging

import pytest

from fake_backend import stamp, user_record
from socialsync.schemas import NewMessageEvent, Pagination
from socialsync.services import ConversationListReconciler, dedupe_conversations


def _conversation(conversation_id: str, participant_id: str, name: str, minutes: int, **extra):
    return {
        "_id": conversation_id,
        "participant": user_record(participant_id, name),
        "updatedAt": stamp(minutes),
        "createdAt": stamp(0),
        **extra,
    }


def _event(conversation_id: str, message_id: str = "m-new", sender: str = "u2", content: str = "hey"):
    return NewMessageEvent.model_validate(
        {
            "conversationId": conversation_id,
            "message": {"_id": message_id, "senderId": {"_id": sender}, "content": content, "createdAt": stamp(90)},
        }
    )


@pytest.fixture
def reconciler() -> ConversationListReconciler:
    state = ConversationListReconciler("u1")
    state.replace(
        [
            _conversation("c1", "u2", "Bob", 30, unreadCount=2),
            _conversation("c2", "u3", "Carol", 20),
            _conversation("c3", "u4", "Dave", 10),
        ]
    )
    return state


def test_replace_sorts_most_recent_first() -> None:
    state = ConversationListReconciler("u1")
    state.replace([_conversation("old", "u2", "Bob", 1), _conversation("new", "u3", "Carol", 50)])

    assert [item.id for item in state.conversations] == ["new", "old"]
    assert state.pagination.current_page == 1


def test_duplicate_conversation_ids_keep_first_occurrence(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)
    state = ConversationListReconciler("u1")

    state.replace(
        [
            _conversation("c1", "u2", "Bob", 10, lastMessage="first"),
            _conversation("c1", "u2", "Bob", 5, lastMessage="second"),
            _conversation("c2", "u3", "Carol", 1),
        ]
    )

    assert [item.id for item in state.conversations] == ["c1", "c2"]
    assert state.get("c1").last_message.content == "first"
    assert "Duplicate conversation found: c1" in caplog.text


def test_new_message_moves_conversation_to_head_and_counts_once(reconciler: ConversationListReconciler) -> None:
    updated = reconciler.apply_new_message(_event("c3", content="ping"))

    assert reconciler.conversations[0].id == "c3"
    assert updated.unread_count == 1
    assert updated.last_message.content == "ping"
    assert updated.last_message.sender_id == "u2"
    assert [item.id for item in reconciler.conversations] == ["c3", "c1", "c2"]

    reconciler.apply_new_message(_event("c1", message_id="m-2"))
    assert reconciler.conversations[0].id == "c1"
    assert reconciler.conversations[0].unread_count == 3


def test_message_for_unknown_conversation_is_dropped(reconciler: ConversationListReconciler) -> None:
    before = list(reconciler.conversations)

    assert reconciler.apply_new_message(_event("missing")) is None
    assert reconciler.conversations == before


def test_unread_counts_are_read_for_the_current_user() -> None:
    state = ConversationListReconciler("u1")
    state.replace(
        [
            _conversation(
                "c1",
                "u2",
                "Bob",
                5,
                unreadCounts=[{"userId": "u2", "count": 9}, {"userId": "u1", "count": 4}],
            )
        ]
    )

    assert state.get("c1").unread_count == 4


def test_conversations_without_participant_are_skipped() -> None:
    state = ConversationListReconciler("u1")
    state.replace([{"_id": "broken", "updatedAt": stamp(1)}, _conversation("c1", "u2", "Bob", 1)])

    assert [item.id for item in state.conversations] == ["c1"]


def test_missing_updated_at_falls_back_to_created_at() -> None:
    state = ConversationListReconciler("u1")
    record = _conversation("c1", "u2", "Bob", 0)
    record.pop("updatedAt")

    conversation = state.normalize(record)

    assert conversation.updated_at == conversation.created_at


def test_extend_appends_only_unseen_conversations(reconciler: ConversationListReconciler) -> None:
    fresh = reconciler.extend(
        [_conversation("c2", "u3", "Carol", 20), _conversation("c9", "u9", "Zed", 2)],
        Pagination(current_page=2, total_pages=2, total_count=4, has_more=False),
    )

    assert [item.id for item in fresh] == ["c9"]
    assert [item.id for item in reconciler.conversations] == ["c1", "c2", "c3", "c9"]
    assert reconciler.pagination.current_page == 2


def test_apply_read_resets_unread(reconciler: ConversationListReconciler) -> None:
    reconciler.apply_read("c1")

    assert reconciler.get("c1").unread_count == 0
    assert reconciler.total_unread == 0


def test_filter_matches_name_username_and_preview(reconciler: ConversationListReconciler) -> None:
    reconciler.apply_new_message(_event("c2", content="Lunch tomorrow?"))

    assert [item.id for item in reconciler.filter("bob")] == ["c1"]
    assert [item.id for item in reconciler.filter("LUNCH")] == ["c2"]
    assert len(reconciler.filter("  ")) == 3


def test_dedupe_conversations_preserves_order(reconciler: ConversationListReconciler) -> None:
    doubled = reconciler.conversations + reconciler.conversations[:1]

    assert [item.id for item in dedupe_conversations(doubled)] == ["c1", "c2", "c3"]
