"""Notification feed state and its live/REST synchronisation."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Literal

from pydantic import ValidationError

from ..clients import ApiClient, ApiClientError
from ..constants import (
    EMIT_DELETE_NOTIFICATION,
    EMIT_MARK_ALL_NOTIFICATIONS_READ,
    EMIT_MARK_NOTIFICATION_READ,
    EVENT_ALL_NOTIFICATIONS_MARKED_READ,
    EVENT_FRIEND_REQUEST_RECEIVED,
    EVENT_NEW_NOTIFICATION,
    EVENT_NOTIFICATION_DELETED,
    EVENT_NOTIFICATION_MARKED_READ,
    EVENT_UNREAD_COUNT,
    EVENT_UNREAD_COUNT_UPDATED,
)
from ..schemas import NewNotificationEvent, Notification, NotificationType, UnreadCountEvent
from .connection import ConnectionManager

logger = logging.getLogger(__name__)

FeedTab = Literal["all", "unread"]
FriendRequestAction = Literal["accept", "reject"]


class NotificationActionError(RuntimeError):
    """Raised when a notification action cannot be completed."""


class NotificationFeedReconciler:
    """Newest-first notification list plus the unread badge counter."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []
        self.unread_count = 0
        self.friend_requests_pending = 0

    def _index_of(self, notification_id: str) -> int:
        for index, notification in enumerate(self.notifications):
            if notification.id == notification_id:
                return index
        return -1

    def get(self, notification_id: str) -> Notification | None:
        index = self._index_of(notification_id)
        return self.notifications[index] if index >= 0 else None

    def load(self, records: Iterable[dict[str, Any]], unread_count: int | None = None) -> list[Notification]:
        loaded: list[Notification] = []
        seen: set[str] = set()
        for raw in records:
            try:
                notification = Notification.model_validate(raw)
            except ValidationError:
                logger.warning("Skipping malformed notification %s", raw.get("_id"), exc_info=True)
                continue
            if notification.id in seen:
                continue
            seen.add(notification.id)
            loaded.append(notification)
        self.notifications = loaded
        if unread_count is None:
            unread_count = sum(1 for notification in loaded if not notification.is_read)
        self.unread_count = max(0, int(unread_count))
        return self.notifications

    def apply_new(self, notification: Notification) -> bool:
        if self._index_of(notification.id) >= 0:
            return False
        self.notifications.insert(0, notification)
        if not notification.is_read:
            self.unread_count += 1
        if notification.type is NotificationType.FRIEND_REQUEST:
            self.friend_requests_pending += 1
        return True

    def apply_unread_count(self, count: int) -> None:
        self.unread_count = max(0, int(count))

    def apply_friend_request_received(self) -> None:
        self.friend_requests_pending += 1

    def mark_read(self, notification_id: str) -> bool:
        index = self._index_of(notification_id)
        if index < 0:
            return False
        notification = self.notifications[index]
        if notification.is_read:
            return False
        self.notifications[index] = notification.model_copy(update={"is_read": True})
        self.unread_count = max(0, self.unread_count - 1)
        return True

    def mark_all_read(self) -> None:
        self.notifications = [
            notification if notification.is_read else notification.model_copy(update={"is_read": True})
            for notification in self.notifications
        ]
        self.unread_count = 0

    def remove(self, notification_id: str) -> Notification | None:
        index = self._index_of(notification_id)
        if index < 0:
            return None
        removed = self.notifications.pop(index)
        if not removed.is_read:
            self.unread_count = max(0, self.unread_count - 1)
        return removed

    def filtered(self, tab: FeedTab = "all") -> list[Notification]:
        if tab == "unread":
            return [notification for notification in self.notifications if not notification.is_read]
        return list(self.notifications)


class NotificationFeed:
    """Applies notification actions locally, then mirrors them to the server."""

    def __init__(
        self,
        api: ApiClient,
        connection: ConnectionManager | None,
        reconciler: NotificationFeedReconciler | None = None,
    ) -> None:
        self._api = api
        self._connection = connection
        self.reconciler = reconciler or NotificationFeedReconciler()
        self._acks = {
            event: self._log_ack(event)
            for event in (EVENT_NOTIFICATION_MARKED_READ, EVENT_ALL_NOTIFICATIONS_MARKED_READ, EVENT_NOTIFICATION_DELETED)
        }
        self._attached = False

    async def refresh(self) -> list[Notification]:
        data = await self._api.list_notifications()
        return self.reconciler.load(data.get("notifications") or [], data.get("unreadCount"))

    async def refresh_counts(self) -> tuple[int, int]:
        """Reload the unread badge and the pending friend-request total."""

        try:
            data = await self._api.notification_unread_count()
            self.reconciler.apply_unread_count(data.get("unreadCount") or 0)
        except ApiClientError as exc:
            logger.error("Error fetching notification count: %s", exc)
        try:
            data = await self._api.list_friend_requests()
            self.reconciler.friend_requests_pending = len(data.get("requests") or [])
        except ApiClientError as exc:
            logger.error("Error fetching friend requests: %s", exc)
        return self.reconciler.unread_count, self.reconciler.friend_requests_pending

    async def mark_read(self, notification_id: str) -> None:
        self.reconciler.mark_read(notification_id)
        await self._emit(EMIT_MARK_NOTIFICATION_READ, {"notificationId": notification_id})

    async def mark_all_read(self) -> None:
        self.reconciler.mark_all_read()
        await self._emit(EMIT_MARK_ALL_NOTIFICATIONS_READ)

    async def delete(self, notification_id: str) -> None:
        self.reconciler.remove(notification_id)
        await self._emit(EMIT_DELETE_NOTIFICATION, {"notificationId": notification_id})

    async def respond_to_friend_request(self, notification_id: str, action: FriendRequestAction) -> None:
        if action not in ("accept", "reject"):
            raise ValueError(f"Unsupported friend request action: {action}")
        notification = self.reconciler.get(notification_id)
        request_id = notification.friend_request_id if notification else None
        if not request_id:
            raise NotificationActionError("Friend request ID not found")

        try:
            await self._api.respond_to_friend_request(request_id, action)
        except ApiClientError as exc:
            logger.error("Failed to %s friend request %s: %s", action, request_id, exc)
            raise NotificationActionError(f"Failed to {action} friend request") from exc

        self.reconciler.remove(notification_id)
        self.reconciler.friend_requests_pending = max(0, self.reconciler.friend_requests_pending - 1)
        logger.info("Friend request %s %sed", request_id, action)

    async def _emit(self, event: str, data: dict[str, Any] | None = None) -> None:
        if self._connection is not None:
            await self._connection.emit(event, data)

    def attach(self) -> None:
        if self._connection is None or self._attached:
            return
        self._connection.on(EVENT_NEW_NOTIFICATION, self._on_new_notification)
        self._connection.on(EVENT_UNREAD_COUNT_UPDATED, self._on_unread_count)
        self._connection.on(EVENT_UNREAD_COUNT, self._on_unread_count)
        self._connection.on(EVENT_FRIEND_REQUEST_RECEIVED, self._on_friend_request)
        for event, handler in self._acks.items():
            self._connection.on(event, handler)
        self._attached = True

    def detach(self) -> None:
        if self._connection is None or not self._attached:
            return
        self._connection.off(EVENT_NEW_NOTIFICATION, self._on_new_notification)
        self._connection.off(EVENT_UNREAD_COUNT_UPDATED, self._on_unread_count)
        self._connection.off(EVENT_UNREAD_COUNT, self._on_unread_count)
        self._connection.off(EVENT_FRIEND_REQUEST_RECEIVED, self._on_friend_request)
        for event, handler in self._acks.items():
            self._connection.off(event, handler)
        self._attached = False

    async def _on_new_notification(self, payload: dict[str, Any]) -> None:
        try:
            event = NewNotificationEvent.model_validate(payload)
        except ValidationError:
            logger.warning("Ignoring malformed new_notification payload", exc_info=True)
            return
        self.reconciler.apply_new(event.notification)

    async def _on_unread_count(self, payload: dict[str, Any]) -> None:
        try:
            event = UnreadCountEvent.model_validate(payload)
        except ValidationError:
            logger.warning("Ignoring malformed unread count payload", exc_info=True)
            return
        self.reconciler.apply_unread_count(event.unread_count)

    async def _on_friend_request(self, payload: dict[str, Any]) -> None:
        self.reconciler.apply_friend_request_received()

    @staticmethod
    def _log_ack(event: str):
        def _handler(payload: Any) -> None:
            logger.debug("Server acknowledged %s: %s", event, payload)

        return _handler


__all__ = [
    "FeedTab",
    "NotificationActionError",
    "NotificationFeed",
    "NotificationFeedReconciler",
]
