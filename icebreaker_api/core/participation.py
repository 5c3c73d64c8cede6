"""Participation ledger, session history and user stats."""

import asyncio
import logging

from ..errors import AlreadyExists, InvalidDocument, StoreError
from ..models import HistoryEntry, ParticipationRecord, SessionStatus, UserStats
from ..storage import SERVER_TIMESTAMP, DocumentStore, Query, document_path
from ..telemetry import TelemetryEvents, track_event
from .channels import ChannelRegistry
from .session_repository import SessionRepository

logger = logging.getLogger(__name__)


def joined_sessions_collection(user_id: str) -> str:
    return document_path("users", user_id, "joinedSessions")


class ParticipationLedger:
    """Records that a user joined a session, at most once per pair."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def record(self, user_id: str | None, channel_id: str, session_id: str) -> bool:
        """Record participation if not already recorded.

        Best-effort: store failures are logged and reported as False.

        Returns:
            True if a record exists for (user, session) after the call
        """
        if not user_id:
            return False

        path = document_path("users", user_id, "joinedSessions", session_id)
        try:
            existing = await self.store.get(path)
            if existing.exists:
                logger.debug(f"Participation already recorded: {user_id} in {session_id}")
                return True

            await self.store.create(
                path,
                {"channelId": channel_id, "sessionId": session_id, "joinedAt": SERVER_TIMESTAMP},
            )
        except AlreadyExists:
            # Lost the race to a concurrent call for the same pair
            logger.debug(f"Participation recorded concurrently: {user_id} in {session_id}")
            return True
        except StoreError as e:
            logger.warning(f"Failed to record participation for {user_id} in {session_id}: {e}")
            return False

        logger.info(f"Recorded participation: {user_id} in {channel_id}/{session_id}")
        track_event(
            TelemetryEvents.PARTICIPATION_RECORDED,
            {"channel_id": channel_id, "session_id": session_id, "user_id": user_id},
        )
        return True

    async def list_for_user(self, user_id: str) -> list[ParticipationRecord]:
        """Records of a user, most recent first. Malformed records are skipped."""
        snapshots = await self.store.query(
            Query(
                collection=joined_sessions_collection(user_id),
                order_by="joinedAt",
                descending=True,
            )
        )
        records = []
        for snapshot in snapshots:
            try:
                records.append(
                    ParticipationRecord.from_document(snapshot.id, snapshot.data, user_id=user_id)
                )
            except InvalidDocument as e:
                logger.warning(f"Skipping malformed participation record: {e}")
        return records

    async def remember_last_session(
        self, user_id: str | None, channel_id: str, session_id: str
    ) -> bool:
        """Bookmark the session on the user's profile. Best-effort."""
        if not user_id:
            return False

        try:
            await self.store.set(
                document_path("users", user_id),
                {
                    "lastSession": {
                        "channelId": channel_id,
                        "sessionId": session_id,
                        "updatedAt": SERVER_TIMESTAMP,
                    }
                },
                merge=True,
            )
        except StoreError as e:
            logger.warning(f"Failed to save last session for {user_id}: {e}")
            return False

        logger.debug(f"Saved last session for {user_id}: {channel_id}/{session_id}")
        return True


class SessionHistory:
    """Resolves participation records into browsable history."""

    def __init__(
        self,
        ledger: ParticipationLedger,
        sessions: SessionRepository,
        channels: ChannelRegistry,
    ):
        self.ledger = ledger
        self.sessions = sessions
        self.channels = channels

    async def _resolve(self, user_id: str, record: ParticipationRecord) -> HistoryEntry | None:
        try:
            session, channel = await asyncio.gather(
                self.sessions.get_session(record.channel_id, record.session_id),
                self.channels.find_channel(record.channel_id),
            )
        except StoreError as e:
            logger.warning(f"Skipping unresolved history row {record.session_id}: {e}")
            return None

        if session is None or channel is None:
            return None
        # Hosted sessions are listed elsewhere
        if channel.owner_id == user_id:
            return None

        return HistoryEntry(
            channel_id=channel.id,
            channel_name=channel.name,
            session_id=session.id,
            status=session.status,
            joined_at=record.joined_at,
            ended_at=session.ended_at,
            tags=session.tags[:3],
            view="summary" if session.status == SessionStatus.END else "session",
        )

    async def list_history(self, user_id: str) -> list[HistoryEntry]:
        """Sessions the user joined in channels they do not own, most recent first."""
        records = await self.ledger.list_for_user(user_id)
        entries = await asyncio.gather(*(self._resolve(user_id, r) for r in records))
        return [entry for entry in entries if entry is not None]

    async def stats(self, user_id: str) -> UserStats:
        """Count joined sessions (excluding own channels) and hosted channels."""
        records, hosted = await asyncio.gather(
            self.ledger.list_for_user(user_id), self.channels.list_owned(user_id)
        )

        owners: dict[str, str | None] = {}
        for channel_id in {r.channel_id for r in records}:
            try:
                channel = await self.channels.find_channel(channel_id)
            except StoreError as e:
                logger.warning(f"Failed to load channel {channel_id} for stats: {e}")
                channel = None
            owners[channel_id] = channel.owner_id if channel else None

        joined = sum(1 for r in records if owners.get(r.channel_id) != user_id)
        return UserStats(sessions_joined=joined, channels_hosted=len(hosted))
