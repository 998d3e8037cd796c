"""Socket event names and other shared constant values."""
from __future__ import annotations

TEMP_ID_PREFIX = "temp-"

# Inbound (server -> client)
EVENT_CONNECT = "connect"
EVENT_DISCONNECT = "disconnect"
EVENT_CONNECT_ERROR = "connect_error"
EVENT_NEW_MESSAGE = "new_message"
EVENT_MESSAGES_READ = "messages_read"
EVENT_USER_TYPING = "user_typing"
EVENT_USER_STATUS_CHANGE = "user_status_change"
EVENT_NEW_NOTIFICATION = "new_notification"
EVENT_UNREAD_COUNT_UPDATED = "unread_count_updated"
EVENT_UNREAD_COUNT = "unread_count"
EVENT_NOTIFICATION_MARKED_READ = "notification_marked_read"
EVENT_ALL_NOTIFICATIONS_MARKED_READ = "all_notifications_marked_read"
EVENT_NOTIFICATION_DELETED = "notification_deleted"
EVENT_FRIEND_REQUEST_RECEIVED = "friend_request_received"
EVENT_INCOMING_CALL = "incoming_call"
EVENT_CALL_INITIATED = "call_initiated"
EVENT_CALL_ACCEPTED = "call_accepted"
EVENT_CALL_REJECTED = "call_rejected"
EVENT_CALL_ENDED = "call_ended"
EVENT_CALL_FAILED = "call_failed"

# Outbound (client -> server)
EMIT_SUBSCRIBE_NOTIFICATIONS = "subscribe_notifications"
EMIT_GET_UNREAD_COUNT = "get_unread_count"
EMIT_MARK_NOTIFICATION_READ = "mark_notification_read"
EMIT_MARK_ALL_NOTIFICATIONS_READ = "mark_all_notifications_read"
EMIT_DELETE_NOTIFICATION = "delete_notification"
EMIT_MARK_MESSAGES_READ = "mark_messages_read"
EMIT_TYPING_START = "typing_start"
EMIT_TYPING_STOP = "typing_stop"
EMIT_CALL_INITIATE = "call_initiate"
EMIT_CALL_ACCEPT = "call_accept"
EMIT_CALL_REJECT = "call_reject"
EMIT_CALL_END = "call_end"

__all__ = [name for name in dir() if name.isupper()]
