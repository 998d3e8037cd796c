import pytest

from fake_backend import stamp
from socialsync.schemas import Notification, NotificationType
from socialsync.services import NotificationFeedReconciler


def _notification(notification_id: str, type_: str = "post_like", *, read: bool = False, **extra) -> dict:
    return {
        "_id": notification_id,
        "type": type_,
        "sender": {"_id": "u2", "name": "Bob"},
        "recipientId": "u1",
        "message": f"{type_} from Bob",
        "isRead": read,
        "createdAt": stamp(1),
        **extra,
    }


@pytest.fixture
def feed() -> NotificationFeedReconciler:
    state = NotificationFeedReconciler()
    state.load(
        [
            _notification("n1"),
            _notification("n2", "post_comment", read=True),
            _notification("n3", "friend_request", metadata={"requestId": "fr1"}),
        ],
        unread_count=2,
    )
    return state


def test_load_parses_and_counts(feed: NotificationFeedReconciler) -> None:
    assert [item.id for item in feed.notifications] == ["n1", "n2", "n3"]
    assert feed.unread_count == 2
    assert feed.notifications[2].friend_request_id == "fr1"


def test_unknown_type_falls_back() -> None:
    notification = Notification.model_validate(_notification("n9", "story_reaction"))

    assert notification.type is NotificationType.UNKNOWN


def test_new_notification_is_prepended_once(feed: NotificationFeedReconciler) -> None:
    fresh = Notification.model_validate(_notification("n4", "friend_request"))

    assert feed.apply_new(fresh) is True
    assert feed.apply_new(fresh) is False

    assert feed.notifications[0].id == "n4"
    assert feed.unread_count == 3
    assert feed.friend_requests_pending == 1


def test_mark_read_only_decrements_unread_items(feed: NotificationFeedReconciler) -> None:
    assert feed.mark_read("n1") is True
    assert feed.mark_read("n1") is False
    assert feed.mark_read("n2") is False
    assert feed.mark_read("missing") is False

    assert feed.unread_count == 1


def test_counter_never_goes_negative(feed: NotificationFeedReconciler) -> None:
    feed.apply_unread_count(0)

    feed.mark_read("n1")
    feed.remove("n3")

    assert feed.unread_count == 0


def test_mark_all_read_clears_everything(feed: NotificationFeedReconciler) -> None:
    feed.mark_all_read()

    assert all(item.is_read for item in feed.notifications)
    assert feed.unread_count == 0
    assert feed.filtered("unread") == []


def test_remove_adjusts_counter_for_unread_items(feed: NotificationFeedReconciler) -> None:
    assert feed.remove("n2").id == "n2"
    assert feed.unread_count == 2

    feed.remove("n1")
    assert feed.unread_count == 1
    assert feed.remove("n1") is None


def test_filtered_tabs(feed: NotificationFeedReconciler) -> None:
    assert len(feed.filtered("all")) == 3
    assert [item.id for item in feed.filtered("unread")] == ["n1", "n3"]


def test_server_count_overrides_local_counter(feed: NotificationFeedReconciler) -> None:
    feed.apply_unread_count(7)
    assert feed.unread_count == 7

    feed.apply_unread_count(-3)
    assert feed.unread_count == 0
