"""Session lifecycle and live view endpoints."""

import asyncio
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request

from ..core import ActivityPromptSelector, SessionHost, SessionOrchestrator, SessionRepository
from ..core.hosting import host_view
from ..errors import IcebreakerError
from ..models import ActivitySelection, Identity, Session
from ..storage import DocumentStore, get_store
from .dependencies import (
    get_identity,
    get_selector,
    get_session_host,
    get_session_repository,
    require_identity,
    to_http_exception,
)
from .streaming import drain_queue, sse_event, sse_response, subscription_events

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/channels/{channel_id}/sessions", tags=["sessions"])


@router.post(
    "",
    response_model=Session,
    status_code=201,
    summary="Start a new session in a channel",
    description="""
Start a new ice-breaker session. Only the channel owner can start sessions.

A channel has at most one open session: starting is rejected with 409 while
the latest session is pending or active. Once it has ended, a new session
can be started.

Members following the channel see the new session through
`GET /channels/{channel_id}/sessions/latest/stream`.
""",
)
async def start_session(
    channel_id: str,
    identity: Identity = Depends(require_identity),
    host: SessionHost = Depends(get_session_host),
) -> Session:
    """Start a session as the channel owner."""
    try:
        return await host.start(channel_id, identity.user_id)
    except IcebreakerError as e:
        raise to_http_exception(e) from e


@router.get("/latest", response_model=Session)
async def get_latest_session(
    channel_id: str,
    sessions: SessionRepository = Depends(get_session_repository),
) -> Session:
    """Get the most recently created session of a channel."""
    try:
        session = await sessions.get_latest_session(channel_id)
    except IcebreakerError as e:
        raise to_http_exception(e) from e

    if session is None:
        raise HTTPException(status_code=404, detail=f"Channel {channel_id} has no sessions")
    return session


@router.get("/latest/stream")
async def stream_latest_session(
    channel_id: str,
    request: Request,
    sessions: SessionRepository = Depends(get_session_repository),
):
    """Stream the latest session and owner console state using Server-Sent Events (SSE)."""

    def subscribe(on_next, on_error):
        return sessions.observe_latest_session(
            channel_id,
            lambda session: on_next({"session": session, "host": host_view(channel_id, session)}),
            on_error,
        )

    return sse_response(subscription_events(request, subscribe, "latest"))


@router.get("/{session_id}", response_model=Session)
async def get_session(
    channel_id: str,
    session_id: str,
    sessions: SessionRepository = Depends(get_session_repository),
) -> Session:
    """Get a session by id."""
    try:
        return await sessions.require_session(channel_id, session_id)
    except IcebreakerError as e:
        raise to_http_exception(e) from e


@router.post("/{session_id}/end", response_model=Session)
async def end_session(
    channel_id: str,
    session_id: str,
    identity: Identity = Depends(require_identity),
    host: SessionHost = Depends(get_session_host),
) -> Session:
    """End a session (owner only). Ending an ended session changes nothing."""
    try:
        return await host.end(channel_id, identity.user_id, session_id)
    except IcebreakerError as e:
        raise to_http_exception(e) from e


@router.get("/{session_id}/activity", response_model=ActivitySelection)
async def get_session_activity(
    channel_id: str,
    session_id: str,
    identity: Identity | None = Depends(get_identity),
    selector: ActivityPromptSelector = Depends(get_selector),
) -> ActivitySelection:
    """Get the session's ice-breaker prompt, choosing one from the caller's interests if unset.

    The first call for a session writes the chosen prompt and, when the
    session has none yet, its interest tags onto the session document. Later
    calls return the stored prompt, so every participant gets the same one.
    Selection problems return a generic prompt with ``fallback=true`` instead
    of an error.
    """
    return await selector.select(
        channel_id, session_id, identity.user_id if identity else None
    )


async def view_events(
    request: Request,
    store: DocumentStore,
    channel_id: str,
    session_id: str,
    history: bool,
    identity: Identity | None,
) -> AsyncIterator[str]:
    """Run one orchestrator for the lifetime of the stream."""
    queue: asyncio.Queue = asyncio.Queue()
    orchestrator = SessionOrchestrator.for_store(
        store,
        channel_id,
        session_id,
        history=history,
        identity=identity,
        on_view=queue.put_nowait,
    )
    await orchestrator.start()

    try:
        yield sse_event("connected", channel_id=channel_id, session_id=session_id)
        async for frame in drain_queue(request, queue, lambda view: sse_event("view", view=view)):
            yield frame
    finally:
        await orchestrator.stop()


@router.get(
    "/{session_id}/view",
    summary="Stream the live view of a session",
    description="""
Server-Sent Events stream of view snapshots for the caller.

Each `view` event carries the display mode (`waiting`, `live`,
`ended_redirect`, `ended_history`), status text, whether the composer is
enabled, the ordered message window, the activity prompt and, once the
session ends, a `redirect` to the summary view.

Pass `mode=history` to browse an ended session read-only instead of being
redirected. Joining a live session records participation once per user.
""",
)
async def stream_session_view(
    channel_id: str,
    session_id: str,
    request: Request,
    mode: str | None = None,
    identity: Identity | None = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
):
    """Stream orchestrator views using Server-Sent Events (SSE)."""
    return sse_response(
        view_events(request, store, channel_id, session_id, mode == "history", identity)
    )
