"""Channel registry: create, rename and list channels."""

import asyncio
import logging

from ..errors import InvalidArgument, NotFound, PermissionDenied
from ..models import Channel, SessionStatus
from ..storage import SERVER_TIMESTAMP, DocumentStore, Query, document_path
from ..telemetry import TelemetryEvents, track_event
from .session_repository import SessionRepository

logger = logging.getLogger(__name__)

CHANNELS = "channels"


class ChannelRegistry:
    """Manages channels. Channels are never hard-deleted."""

    def __init__(self, store: DocumentStore, sessions: SessionRepository | None = None):
        self.store = store
        self.sessions = sessions or SessionRepository(store)

    async def create_channel(self, name: str, owner_id: str) -> Channel:
        """Create a channel owned by ``owner_id``.

        Raises:
            InvalidArgument: If the name is blank or the owner is unset
        """
        name = (name or "").strip()
        if not name:
            raise InvalidArgument("Channel name must not be blank")
        if not owner_id:
            raise InvalidArgument("Channel owner is required")

        channel_id = await self.store.add(
            CHANNELS, {"name": name, "ownerId": owner_id, "createdAt": SERVER_TIMESTAMP}
        )
        logger.info(f"Created channel {channel_id} for owner {owner_id}")
        track_event(TelemetryEvents.CHANNEL_CREATED, {"channel_id": channel_id})

        return await self.get_channel(channel_id)

    async def find_channel(self, channel_id: str) -> Channel | None:
        snapshot = await self.store.get(document_path(CHANNELS, channel_id))
        if not snapshot.exists:
            return None
        return Channel.from_document(snapshot.id, snapshot.data)

    async def get_channel(self, channel_id: str) -> Channel:
        channel = await self.find_channel(channel_id)
        if channel is None:
            raise NotFound(f"Channel not found: {channel_id}")
        return channel

    async def require_owner(self, channel_id: str, user_id: str | None) -> Channel:
        """Return the channel if ``user_id`` owns it.

        Raises:
            NotFound: If the channel does not exist
            PermissionDenied: If the caller is not the owner
        """
        channel = await self.get_channel(channel_id)
        if not user_id or channel.owner_id != user_id:
            track_event(
                TelemetryEvents.PERMISSION_DENIED, {"channel_id": channel_id, "user_id": user_id}
            )
            raise PermissionDenied(f"Only the channel owner can do this: {channel_id}")
        return channel

    async def rename_channel(self, channel_id: str, user_id: str, name: str) -> Channel:
        """Rename a channel (owner only)."""
        name = (name or "").strip()
        if not name:
            raise InvalidArgument("Channel name must not be blank")

        await self.require_owner(channel_id, user_id)
        await self.store.update(document_path(CHANNELS, channel_id), {"name": name})

        logger.info(f"Renamed channel {channel_id}")
        track_event(TelemetryEvents.CHANNEL_RENAMED, {"channel_id": channel_id})
        return await self.get_channel(channel_id)

    async def list_owned(self, owner_id: str) -> list[Channel]:
        """Channels created by ``owner_id``, newest first."""
        snapshots = await self.store.query(
            Query(collection=CHANNELS, order_by="createdAt", descending=True).where(
                "ownerId", owner_id
            )
        )
        return [Channel.from_document(s.id, s.data) for s in snapshots]

    async def list_available_hosted(self, owner_id: str) -> list[Channel]:
        """Owned channels that have no session yet or whose latest session has not ended."""
        channels = await self.list_owned(owner_id)
        latest = await asyncio.gather(
            *(self.sessions.get_latest_session(channel.id) for channel in channels)
        )
        return [
            channel
            for channel, session in zip(channels, latest, strict=True)
            if session is None or session.status != SessionStatus.END
        ]
