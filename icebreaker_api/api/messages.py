"""Chat message endpoints."""

import logging

from fastapi import APIRouter, Depends, Query, Request

from ..core import MessageChannel
from ..errors import IcebreakerError
from ..models import (
    Identity,
    MessageListResponse,
    MessageRequest,
    MessageSendResponse,
)
from .dependencies import get_message_channel, require_identity, to_http_exception
from .streaming import sse_response, subscription_events

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/channels/{channel_id}/sessions/{session_id}/messages", tags=["messages"]
)


@router.post("", response_model=MessageSendResponse)
async def send_message(
    channel_id: str,
    session_id: str,
    message_request: MessageRequest,
    identity: Identity = Depends(require_identity),
    messages: MessageChannel = Depends(get_message_channel),
) -> MessageSendResponse:
    """Send a message to a live session.

    Blank messages and messages to sessions that are not active are ignored
    and reported with ``sent=false``.
    """
    try:
        message = await messages.send(
            channel_id, session_id, identity.user_id, identity.name, message_request.text
        )
    except IcebreakerError as e:
        raise to_http_exception(e) from e

    return MessageSendResponse(sent=message is not None, message=message)


@router.get("", response_model=MessageListResponse)
async def list_messages(
    channel_id: str,
    session_id: str,
    limit: int | None = Query(default=None, ge=1, le=1000),
    messages: MessageChannel = Depends(get_message_channel),
) -> MessageListResponse:
    """List the most recent messages of a session, oldest first.

    Args:
        limit: Window size (defaults to the configured fetch limit)
    """
    try:
        window = await messages.list_messages(channel_id, session_id, limit)
    except IcebreakerError as e:
        raise to_http_exception(e) from e

    return MessageListResponse(messages=window, total=len(window))


@router.get("/stream")
async def stream_messages(
    channel_id: str,
    session_id: str,
    request: Request,
    limit: int | None = Query(default=None, ge=1, le=1000),
    messages: MessageChannel = Depends(get_message_channel),
):
    """Stream message snapshots using Server-Sent Events (SSE)."""
    return sse_response(
        subscription_events(
            request,
            lambda on_next, on_error: messages.observe_messages(
                channel_id, session_id, on_next, limit=limit, on_error=on_error
            ),
            "messages",
        )
    )
