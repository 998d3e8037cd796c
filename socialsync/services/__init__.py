"""Convenience exports for service layer."""
from .auth_service import AuthError, AuthSession, TokenStore
from .call_service import CallSession, CallStateError, CallStatus
from .connection import ConnectionManager, ConnectionState
from .conversation_service import ConversationListReconciler, ConversationSync, dedupe_conversations
from .notification_service import NotificationActionError, NotificationFeed, NotificationFeedReconciler
from .retry import RetryPolicy, retry_async
from .transcript_service import ChatSession, ChatTranscriptReconciler, MessageSendError

__all__ = [
    "AuthError",
    "AuthSession",
    "TokenStore",
    "CallSession",
    "CallStateError",
    "CallStatus",
    "ConnectionManager",
    "ConnectionState",
    "ConversationListReconciler",
    "ConversationSync",
    "dedupe_conversations",
    "NotificationActionError",
    "NotificationFeed",
    "NotificationFeedReconciler",
    "RetryPolicy",
    "retry_async",
    "ChatSession",
    "ChatTranscriptReconciler",
    "MessageSendError",
]
