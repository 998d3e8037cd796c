"""Convenience exports for schema layer."""
from .auth import AuthResponse, LoginRequest, SignupRequest, StoredSession
from .common import UtcDatetime, WireModel, utcnow
from .conversations import Conversation, ConversationPage, LastMessage, Pagination
from .events import (
    CallEvent,
    CallType,
    MessagesReadEvent,
    NewMessageEvent,
    NewNotificationEvent,
    TypingEvent,
    UnreadCountEvent,
    UserStatusEvent,
)
from .messages import Message, MessageSendRequest, MessageStatus
from .notifications import Notification, NotificationType
from .users import AccountUser, UserSummary, derive_username

__all__ = [
    "AuthResponse",
    "LoginRequest",
    "SignupRequest",
    "StoredSession",
    "UtcDatetime",
    "WireModel",
    "utcnow",
    "Conversation",
    "ConversationPage",
    "LastMessage",
    "Pagination",
    "CallEvent",
    "CallType",
    "MessagesReadEvent",
    "NewMessageEvent",
    "NewNotificationEvent",
    "TypingEvent",
    "UnreadCountEvent",
    "UserStatusEvent",
    "Message",
    "MessageSendRequest",
    "MessageStatus",
    "Notification",
    "NotificationType",
    "AccountUser",
    "UserSummary",
    "derive_username",
]
