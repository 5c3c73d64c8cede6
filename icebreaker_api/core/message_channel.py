"""Append-only chat log of a session."""

import logging
from collections.abc import Callable

from ..config import settings
from ..errors import InvalidDocument
from ..models import Message
from ..storage import (
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    Query,
    Subscription,
    document_path,
)
from ..telemetry import TelemetryEvents, track_event
from .session_repository import SessionRepository

logger = logging.getLogger(__name__)

MessagesCallback = Callable[[list[Message]], None]


def messages_collection(channel_id: str, session_id: str) -> str:
    return document_path("channels", channel_id, "sessions", session_id, "messages")


def parse_messages(snapshots: list[DocumentSnapshot]) -> list[Message]:
    """Convert snapshots to messages, dropping blank or malformed ones."""
    messages = []
    for snapshot in snapshots:
        try:
            messages.append(Message.from_document(snapshot.id, snapshot.data))
        except InvalidDocument as e:
            logger.warning(f"Skipping malformed message: {e}")
    return messages


class MessageChannel:
    """Sends and observes the messages of a session."""

    def __init__(
        self,
        store: DocumentStore,
        sessions: SessionRepository | None = None,
        fetch_limit: int | None = None,
    ):
        self.store = store
        self.sessions = sessions or SessionRepository(store)
        self.fetch_limit = fetch_limit or settings.message_fetch_limit

    def _window(self, channel_id: str, session_id: str, limit: int | None) -> Query:
        # Most recent N, delivered oldest first
        return Query(
            collection=messages_collection(channel_id, session_id),
            order_by="createdAt",
            limit=limit or self.fetch_limit,
            limit_to_last=True,
        )

    async def send(
        self,
        channel_id: str,
        session_id: str,
        author_id: str | None,
        author_name: str | None,
        text: str | None,
    ) -> Message | None:
        """Append a message to a live session.

        Returns:
            The stored message, or None when nothing was written because the
            text is blank, the author is unset or the session is not active.

        Raises:
            StoreError: If the session read or the write fails
        """
        trimmed = (text or "").strip()
        if not trimmed or not author_id:
            reason = "blank_text" if not trimmed else "anonymous"
            logger.debug(f"Ignoring message for session {session_id}: {reason}")
            self._track_rejected(channel_id, session_id, reason)
            return None

        session = await self.sessions.get_session(channel_id, session_id)
        if session is None or not session.is_live:
            logger.debug(f"Ignoring message for session {session_id}: session not live")
            self._track_rejected(channel_id, session_id, "not_live")
            return None

        collection = messages_collection(channel_id, session_id)
        message_id = await self.store.add(
            collection,
            {
                "text": trimmed,
                "authorId": author_id,
                "authorDisplayName": author_name or "Anon",
                "createdAt": SERVER_TIMESTAMP,
            },
        )

        track_event(
            TelemetryEvents.MESSAGE_SENT,
            {"channel_id": channel_id, "session_id": session_id, "length": len(trimmed)},
        )
        snapshot = await self.store.get(f"{collection}/{message_id}")
        return Message.from_document(snapshot.id, snapshot.data)

    async def list_messages(
        self, channel_id: str, session_id: str, limit: int | None = None
    ) -> list[Message]:
        """One-shot read of the most recent messages, oldest first."""
        snapshots = await self.store.query(self._window(channel_id, session_id, limit))
        return parse_messages(snapshots)

    async def observe_messages(
        self,
        channel_id: str,
        session_id: str,
        callback: MessagesCallback,
        limit: int | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ) -> Subscription:
        """Push the ordered message window now and on every change."""
        return await self.store.watch_query(
            self._window(channel_id, session_id, limit),
            lambda snapshots: callback(parse_messages(snapshots)),
            on_error,
        )

    @staticmethod
    def _track_rejected(channel_id: str, session_id: str, reason: str) -> None:
        track_event(
            TelemetryEvents.MESSAGE_REJECTED,
            {"channel_id": channel_id, "session_id": session_id, "reason": reason},
        )
