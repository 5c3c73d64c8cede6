"""Shared FastAPI dependencies and error mapping."""

import logging

from fastapi import Depends, HTTPException, Request

from ..core import (
    ActivityPromptSelector,
    ChannelRegistry,
    MembershipRegistry,
    MessageChannel,
    ParticipationLedger,
    SessionHistory,
    SessionHost,
    SessionRepository,
)
from ..errors import (
    AlreadyExists,
    IcebreakerError,
    InvalidArgument,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    SessionAlreadyLive,
    TransientNetworkError,
)
from ..models import Identity
from ..storage import DocumentStore, get_store

logger = logging.getLogger(__name__)


def to_http_exception(error: IcebreakerError) -> HTTPException:
    """Map a service error to the HTTP status the API reports."""
    if isinstance(error, NotFound):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, PermissionDenied):
        return HTTPException(status_code=403, detail=str(error))
    if isinstance(error, InvalidArgument):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, (InvalidTransition, SessionAlreadyLive, AlreadyExists)):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, TransientNetworkError):
        logger.warning(f"Document store unavailable: {error}")
        return HTTPException(status_code=503, detail="Document store unavailable, try again")

    logger.error(f"Unexpected service error: {error}", exc_info=error)
    return HTTPException(status_code=500, detail=str(error))


def get_identity(request: Request) -> Identity | None:
    """Identity set by the auth middleware (None when anonymous)."""
    return getattr(request.state, "identity", None)


def require_identity(identity: Identity | None = Depends(get_identity)) -> Identity:
    """Dependency for endpoints that write on behalf of the caller."""
    if identity is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return identity


async def get_session_repository(store: DocumentStore = Depends(get_store)) -> SessionRepository:
    return SessionRepository(store)


async def get_channel_registry(
    store: DocumentStore = Depends(get_store),
    sessions: SessionRepository = Depends(get_session_repository),
) -> ChannelRegistry:
    return ChannelRegistry(store, sessions)


async def get_membership(store: DocumentStore = Depends(get_store)) -> MembershipRegistry:
    return MembershipRegistry(store)


async def get_message_channel(
    store: DocumentStore = Depends(get_store),
    sessions: SessionRepository = Depends(get_session_repository),
) -> MessageChannel:
    return MessageChannel(store, sessions)


async def get_selector(
    store: DocumentStore = Depends(get_store),
    sessions: SessionRepository = Depends(get_session_repository),
    membership: MembershipRegistry = Depends(get_membership),
) -> ActivityPromptSelector:
    return ActivityPromptSelector(store, sessions, membership)


async def get_ledger(store: DocumentStore = Depends(get_store)) -> ParticipationLedger:
    return ParticipationLedger(store)


async def get_history(
    ledger: ParticipationLedger = Depends(get_ledger),
    sessions: SessionRepository = Depends(get_session_repository),
    channels: ChannelRegistry = Depends(get_channel_registry),
) -> SessionHistory:
    return SessionHistory(ledger, sessions, channels)


async def get_session_host(
    store: DocumentStore = Depends(get_store),
    sessions: SessionRepository = Depends(get_session_repository),
    channels: ChannelRegistry = Depends(get_channel_registry),
) -> SessionHost:
    return SessionHost(store, sessions, channels)
