"""Endpoints about the calling user: session history and stats."""

import logging

from fastapi import APIRouter, Depends

from ..core import SessionHistory
from ..errors import IcebreakerError
from ..models import HistoryResponse, Identity, UserStats
from .dependencies import get_history, require_identity, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users/me", tags=["users"])


@router.get("/sessions", response_model=HistoryResponse)
async def list_my_sessions(
    identity: Identity = Depends(require_identity),
    history: SessionHistory = Depends(get_history),
) -> HistoryResponse:
    """Sessions the caller joined in channels they do not own, most recent first.

    Each entry links to the summary view when the session has ended and to
    the live session view otherwise.
    """
    try:
        entries = await history.list_history(identity.user_id)
    except IcebreakerError as e:
        raise to_http_exception(e) from e

    return HistoryResponse(entries=entries, total=len(entries))


@router.get("/stats", response_model=UserStats)
async def get_my_stats(
    identity: Identity = Depends(require_identity),
    history: SessionHistory = Depends(get_history),
) -> UserStats:
    """Number of sessions joined and channels hosted by the caller."""
    try:
        return await history.stats(identity.user_id)
    except IcebreakerError as e:
        raise to_http_exception(e) from e
