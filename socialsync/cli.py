"""Command-line harness for exercising the sync layer against a live backend."""
from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from typing import Iterable

from .clients import ApiClient, ApiClientError
from .config import get_settings
from .constants import (
    EVENT_INCOMING_CALL,
    EVENT_NEW_MESSAGE,
    EVENT_NEW_NOTIFICATION,
    EVENT_USER_STATUS_CHANGE,
)
from .schemas import Conversation, Notification, UserSummary
from .services import (
    AuthError,
    AuthSession,
    ConnectionManager,
    ConversationListReconciler,
    ConversationSync,
    NotificationFeed,
    TokenStore,
)

logger = logging.getLogger(__name__)


def _configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _restore(api: ApiClient, store: TokenStore) -> AuthSession:
    session = AuthSession(api, store)
    if await session.restore() is None:
        raise SystemExit("Not signed in. Run 'socialsync login' first.")
    return session


def _print_conversations(conversations: Iterable[Conversation]) -> None:
    for conversation in conversations:
        preview = conversation.last_message.content if conversation.last_message else "(no messages)"
        badge = f" [{conversation.unread_count}]" if conversation.unread_count else ""
        print(
            f"{conversation.id} | {conversation.participant.name}{badge} | "
            f"updated={conversation.updated_at:%Y-%m-%d %H:%M:%S} | {preview}"
        )


def _print_notifications(notifications: Iterable[Notification]) -> None:
    for notification in notifications:
        marker = " " if notification.is_read else "*"
        print(f"{marker} {notification.created_at:%Y-%m-%d %H:%M} | {notification.type} | {notification.message}")


async def _login(args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    async with ApiClient(args.api_url) as api:
        session = AuthSession(api, TokenStore(args.token_path))
        try:
            user = await session.login(args.email, password)
        except AuthError as exc:
            print(f"Login failed: {exc.detail}", file=sys.stderr)
            return 2
    print(f"Signed in as {user.username} <{user.email}>")
    return 0


async def _logout(args: argparse.Namespace) -> int:
    async with ApiClient(args.api_url) as api:
        session = AuthSession(api, TokenStore(args.token_path))
        await session.restore()
        await session.logout()
    print("Signed out")
    return 0


async def _conversations(args: argparse.Namespace) -> int:
    async with ApiClient(args.api_url) as api:
        session = await _restore(api, TokenStore(args.token_path))
        sync = ConversationSync(api, None, ConversationListReconciler(session.user.id))
        try:
            await sync.refresh_with_retry()
            for _ in range(args.pages - 1):
                if not await sync.load_more():
                    break
        except ApiClientError as exc:
            print(f"Could not load conversations: {exc.detail}", file=sys.stderr)
            return 2
        conversations = sync.reconciler.filter(args.query or "")
    if not conversations:
        print("No conversations found.")
        return 0
    _print_conversations(conversations)
    print(f"Total unread: {sync.reconciler.total_unread}")
    return 0


async def _notifications(args: argparse.Namespace) -> int:
    async with ApiClient(args.api_url) as api:
        await _restore(api, TokenStore(args.token_path))
        feed = NotificationFeed(api, None)
        try:
            await feed.refresh()
        except ApiClientError as exc:
            print(f"Could not load notifications: {exc.detail}", file=sys.stderr)
            return 2
        await feed.refresh_counts()
    items = feed.reconciler.filtered("unread" if args.unread else "all")
    if not items:
        print("No notifications.")
        return 0
    _print_notifications(items)
    print(f"Unread: {feed.reconciler.unread_count} | pending friend requests: {feed.reconciler.friend_requests_pending}")
    return 0


async def _users(args: argparse.Namespace) -> int:
    async with ApiClient(args.api_url) as api:
        await _restore(api, TokenStore(args.token_path))
        try:
            data = await api.search_users(args.query)
        except ApiClientError as exc:
            print(f"Search failed: {exc.detail}", file=sys.stderr)
            return 2
    users = [UserSummary.model_validate(raw) for raw in data.get("users") or []]
    if not users:
        print("No users found.")
        return 0
    for user in users:
        print(f"{user.id} | {user.name} (@{user.username})")
    return 0


async def _watch(args: argparse.Namespace) -> int:
    async with ApiClient(args.api_url) as api:
        session = await _restore(api, TokenStore(args.token_path))
        connection = ConnectionManager(session.token, url=args.socket_url)
        sync = ConversationSync(api, connection, ConversationListReconciler(session.user.id))
        feed = NotificationFeed(api, connection)
        sync.attach()
        feed.attach()

        def _log_event(name: str):
            def _handler(payload) -> None:
                logger.info("%s: %s", name, payload)

            return _handler

        for event in (EVENT_NEW_MESSAGE, EVENT_NEW_NOTIFICATION, EVENT_USER_STATUS_CHANGE, EVENT_INCOMING_CALL):
            connection.on(event, _log_event(event))

        try:
            await sync.refresh_with_retry()
            await feed.refresh()
        except ApiClientError as exc:
            logger.warning("Initial load failed: %s", exc)

        stop = asyncio.Event()
        poller = asyncio.create_task(sync.run_polling(stop))
        try:
            if await connection.connect():
                await connection.wait()
                logger.warning("Realtime connection lost; polling every %.0fs", get_settings().poll_interval)
            else:
                logger.warning("Realtime unavailable; polling every %.0fs", get_settings().poll_interval)
            await stop.wait()
        finally:
            stop.set()
            await poller
            sync.detach()
            feed.detach()
            await connection.disconnect()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="socialsync", description="Developer harness for the realtime sync layer.")
    parser.add_argument("--api-url", help="Backend base URL (default: SOCIALSYNC_API_BASE_URL).")
    parser.add_argument("--token-path", help="Session file location (default: SOCIALSYNC_TOKEN_PATH).")
    parser.add_argument("--log-level", help="Logging level (default: SOCIALSYNC_LOG_LEVEL).")
    subcommands = parser.add_subparsers(dest="command", required=True)

    login = subcommands.add_parser("login", help="Sign in and store the session token.")
    login.add_argument("email", help="Account email address.")
    login.add_argument("--password", help="Account password (prompted when omitted).")
    login.set_defaults(func=_login)

    logout = subcommands.add_parser("logout", help="Sign out and forget the stored session.")
    logout.set_defaults(func=_logout)

    conversations = subcommands.add_parser("conversations", help="List conversations, most recent first.")
    conversations.add_argument("--query", help="Filter by participant name, username or last message.")
    conversations.add_argument("--pages", type=int, default=1, help="Number of pages to load (default: %(default)s).")
    conversations.set_defaults(func=_conversations)

    notifications = subcommands.add_parser("notifications", help="List notifications and counters.")
    notifications.add_argument("--unread", action="store_true", help="Only show unread notifications.")
    notifications.set_defaults(func=_notifications)

    users = subcommands.add_parser("users", help="Search users by name.")
    users.add_argument("query", help="Name or part of a name.")
    users.set_defaults(func=_users)

    watch = subcommands.add_parser("watch", help="Connect the realtime socket and log live events until Ctrl-C.")
    watch.add_argument("--socket-url", help="Socket.IO endpoint (default: SOCIALSYNC_SOCKET_URL or the API URL).")
    watch.set_defaults(func=_watch)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, "func", None)
    if handler is None:
        parser.error("Please supply a sub-command")
    _configure_logging(args.log_level)
    try:
        return asyncio.run(handler(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
