"""Canonical shape and transitions of session documents."""

import logging
from collections.abc import Callable

from ..config import settings
from ..errors import InvalidArgument, InvalidDocument, InvalidTransition, NotFound
from ..models import ActivityPrompt, Session, SessionStatus
from ..storage import (
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    Query,
    Subscription,
    document_path,
)
from ..telemetry import TelemetryEvents, track_event

logger = logging.getLogger(__name__)

SessionCallback = Callable[[Session | None], None]
ErrorCallback = Callable[[Exception], None]


def sessions_collection(channel_id: str) -> str:
    return document_path("channels", channel_id, "sessions")


def session_path(channel_id: str, session_id: str) -> str:
    return document_path("channels", channel_id, "sessions", session_id)


class SessionRepository:
    """Creates, ends and observes sessions of a channel.

    Status only moves forward (pending -> active -> end). Ending is
    idempotent: ending an ended session writes nothing.
    """

    def __init__(self, store: DocumentStore, initial_status: SessionStatus | str | None = None):
        """Initialize repository.

        Args:
            store: Document store
            initial_status: Status written on creation (defaults to settings)
        """
        self.store = store
        self.initial_status = SessionStatus(initial_status or settings.session_initial_status)
        if self.initial_status == SessionStatus.END:
            raise InvalidArgument("Sessions cannot be created in the end state")

    @staticmethod
    def _parse(channel_id: str, snapshot: DocumentSnapshot) -> Session | None:
        if not snapshot.exists:
            return None
        return Session.from_document(snapshot.id, snapshot.data, channel_id=channel_id)

    def _latest_query(self, channel_id: str) -> Query:
        return Query(
            collection=sessions_collection(channel_id),
            order_by="createdAt",
            descending=True,
            limit=1,
        )

    async def create_session(self, channel_id: str, owner_id: str) -> str:
        """Create a session and return its id.

        The caller is responsible for checking that ``owner_id`` owns the channel.
        """
        if not owner_id:
            raise InvalidArgument("Session owner is required")

        session_id = await self.store.add(
            sessions_collection(channel_id),
            {
                "ownerId": owner_id,
                "status": self.initial_status.value,
                "createdAt": SERVER_TIMESTAMP,
                "endedAt": None,
                "tags": [],
            },
        )

        logger.info(
            f"Created session {session_id} in channel {channel_id} "
            f"({self.initial_status.value})"
        )
        track_event(
            TelemetryEvents.SESSION_CREATED,
            {
                "channel_id": channel_id,
                "session_id": session_id,
                "status": self.initial_status.value,
            },
        )
        return session_id

    async def get_session(self, channel_id: str, session_id: str) -> Session | None:
        snapshot = await self.store.get(session_path(channel_id, session_id))
        return self._parse(channel_id, snapshot)

    async def require_session(self, channel_id: str, session_id: str) -> Session:
        session = await self.get_session(channel_id, session_id)
        if session is None:
            raise NotFound(f"Session not found: {channel_id}/{session_id}")
        return session

    async def get_latest_session(self, channel_id: str) -> Session | None:
        """Return the session with the greatest ``createdAt``, if any."""
        snapshots = await self.store.query(self._latest_query(channel_id))
        if not snapshots:
            return None
        return self._parse(channel_id, snapshots[0])

    async def start_session(self, channel_id: str, session_id: str) -> Session:
        """Move a pending session to active.

        Raises:
            NotFound: If the session does not exist
            InvalidTransition: If the session is not pending
        """
        session = await self.require_session(channel_id, session_id)
        if session.status != SessionStatus.PENDING:
            raise InvalidTransition(
                f"Cannot start session {session_id}: status is {session.status.value}"
            )

        await self.store.update(
            session_path(channel_id, session_id), {"status": SessionStatus.ACTIVE.value}
        )
        logger.info(f"Started session {session_id} in channel {channel_id}")
        track_event(
            TelemetryEvents.SESSION_STARTED, {"channel_id": channel_id, "session_id": session_id}
        )
        return await self.require_session(channel_id, session_id)

    async def end_session(self, channel_id: str, session_id: str) -> Session:
        """End a session.

        Returns:
            The ended session. Calling this on an ended session writes
            nothing and returns it unchanged.

        Raises:
            NotFound: If the session does not exist
        """
        session = await self.require_session(channel_id, session_id)
        if session.status == SessionStatus.END:
            logger.debug(f"Session {session_id} already ended, nothing to write")
            return session

        await self.store.update(
            session_path(channel_id, session_id),
            {"status": SessionStatus.END.value, "endedAt": SERVER_TIMESTAMP},
        )

        logger.info(f"Ended session {session_id} in channel {channel_id}")
        track_event(
            TelemetryEvents.SESSION_ENDED, {"channel_id": channel_id, "session_id": session_id}
        )
        return await self.require_session(channel_id, session_id)

    async def set_tags_if_empty(self, channel_id: str, session_id: str, tags: list[str]) -> bool:
        """Write ``tags`` unless the session already has tags.

        First writer wins; the read and the write are not atomic.

        Returns:
            True if the tags were written
        """
        session = await self.get_session(channel_id, session_id)
        if session is None or session.tags or not tags:
            return False

        await self.store.update(session_path(channel_id, session_id), {"tags": list(tags)})
        logger.debug(f"Set tags {tags} on session {session_id}")
        return True

    async def set_activity(
        self, channel_id: str, session_id: str, activity: ActivityPrompt
    ) -> None:
        """Merge the chosen catalog prompt into the session."""
        await self.store.update(
            session_path(channel_id, session_id),
            {
                "activityId": activity.id,
                "activityCategory": activity.category,
                "activityTitle": activity.title,
                "activityPrompt": activity.prompt,
            },
        )

    async def observe_session(
        self,
        channel_id: str,
        session_id: str,
        callback: SessionCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Push the session (or None while missing) now and on every change."""

        def on_next(snapshot: DocumentSnapshot) -> None:
            try:
                session = self._parse(channel_id, snapshot)
            except InvalidDocument as e:
                logger.warning(f"Ignoring malformed session document: {e}")
                if on_error is not None:
                    on_error(e)
                return
            callback(session)

        return await self.store.watch_document(
            session_path(channel_id, session_id), on_next, on_error
        )

    async def observe_latest_session(
        self,
        channel_id: str,
        callback: SessionCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Push the latest session of a channel now and on every change."""

        def on_next(snapshots: list[DocumentSnapshot]) -> None:
            try:
                session = self._parse(channel_id, snapshots[0]) if snapshots else None
            except InvalidDocument as e:
                logger.warning(f"Ignoring malformed session document: {e}")
                if on_error is not None:
                    on_error(e)
                return
            callback(session)

        return await self.store.watch_query(self._latest_query(channel_id), on_next, on_error)
