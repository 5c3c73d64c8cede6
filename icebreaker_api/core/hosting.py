"""Owner controls for starting and ending a channel's sessions."""

import logging
from collections.abc import Callable

from ..errors import NotFound, SessionAlreadyLive
from ..models import HostState, HostView, Session, SessionStatus
from ..storage import DocumentStore, Subscription
from ..telemetry import TelemetryEvents, track_event
from .channels import ChannelRegistry
from .session_repository import SessionRepository

logger = logging.getLogger(__name__)


def host_view(channel_id: str, session: Session | None) -> HostView:
    """Map the latest session of a channel to the owner console state."""
    if session is None:
        return HostView(channel_id=channel_id, state=HostState.IDLE)
    if session.status == SessionStatus.END:
        return HostView(channel_id=channel_id, state=HostState.ENDED, session_id=session.id)
    return HostView(
        channel_id=channel_id, state=HostState.ACTIVE, session_id=session.id, can_start=False
    )


class SessionHost:
    """Starts and ends sessions on behalf of a channel owner.

    Starting is gated: a channel whose latest session is pending or active
    cannot start another one. The check and the create are separate store
    calls, so two concurrent starts can still both succeed.
    """

    def __init__(
        self,
        store: DocumentStore,
        sessions: SessionRepository | None = None,
        channels: ChannelRegistry | None = None,
    ):
        self.store = store
        self.sessions = sessions or SessionRepository(store)
        self.channels = channels or ChannelRegistry(store, self.sessions)

    async def host_state(self, channel_id: str) -> HostView:
        await self.channels.get_channel(channel_id)
        latest = await self.sessions.get_latest_session(channel_id)
        return host_view(channel_id, latest)

    async def start(self, channel_id: str, user_id: str | None) -> Session:
        """Start a new session in an owned channel.

        Raises:
            NotFound: If the channel does not exist
            PermissionDenied: If the caller is not the owner
            SessionAlreadyLive: If the latest session has not ended
        """
        await self.channels.require_owner(channel_id, user_id)

        latest = await self.sessions.get_latest_session(channel_id)
        if latest is not None and latest.status != SessionStatus.END:
            logger.info(
                f"Rejected start in channel {channel_id}: {latest.id} is {latest.status.value}"
            )
            track_event(
                TelemetryEvents.SESSION_START_REJECTED,
                {"channel_id": channel_id, "session_id": latest.id},
            )
            raise SessionAlreadyLive(channel_id, latest.id)

        session_id = await self.sessions.create_session(channel_id, user_id)
        return await self.sessions.require_session(channel_id, session_id)

    async def end(
        self, channel_id: str, user_id: str | None, session_id: str | None = None
    ) -> Session:
        """End the given session, or the latest one (owner only).

        Raises:
            NotFound: If the channel or the session does not exist
            PermissionDenied: If the caller is not the owner
        """
        await self.channels.require_owner(channel_id, user_id)

        if session_id is None:
            latest = await self.sessions.get_latest_session(channel_id)
            if latest is None:
                raise NotFound(f"Channel {channel_id} has no session to end")
            session_id = latest.id

        return await self.sessions.end_session(channel_id, session_id)

    async def watch(
        self,
        channel_id: str,
        callback: Callable[[HostView], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> Subscription:
        """Push the owner console state now and on every change."""
        return await self.sessions.observe_latest_session(
            channel_id, lambda session: callback(host_view(channel_id, session)), on_error
        )
