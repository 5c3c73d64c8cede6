"""Channel, membership and owner console endpoints."""

import logging

from fastapi import APIRouter, Depends, Request

from ..core import ChannelRegistry, MembershipRegistry, SessionHost
from ..errors import IcebreakerError
from ..models import (
    Channel,
    ChannelCreateRequest,
    ChannelListResponse,
    ChannelRenameRequest,
    HostView,
    Identity,
    InterestsUpdateRequest,
    Member,
    MemberJoinRequest,
    MemberListResponse,
)
from .dependencies import (
    get_channel_registry,
    get_membership,
    get_session_host,
    require_identity,
    to_http_exception,
)
from .streaming import sse_response, subscription_events

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/channels", tags=["channels"])


@router.post("", response_model=Channel, status_code=201, summary="Create a channel")
async def create_channel(
    channel_request: ChannelCreateRequest,
    identity: Identity = Depends(require_identity),
    channels: ChannelRegistry = Depends(get_channel_registry),
) -> Channel:
    """Create a channel owned by the caller."""
    try:
        return await channels.create_channel(channel_request.name, identity.user_id)
    except IcebreakerError as e:
        raise to_http_exception(e) from e


@router.get("", response_model=ChannelListResponse)
async def list_channels(
    available: bool = False,
    identity: Identity = Depends(require_identity),
    channels: ChannelRegistry = Depends(get_channel_registry),
) -> ChannelListResponse:
    """List channels owned by the caller.

    Args:
        available: Only channels with no session yet or whose latest session is still open

    Returns:
        ChannelListResponse: Owned channels, newest first
    """
    try:
        if available:
            owned = await channels.list_available_hosted(identity.user_id)
        else:
            owned = await channels.list_owned(identity.user_id)
    except IcebreakerError as e:
        raise to_http_exception(e) from e

    return ChannelListResponse(channels=owned, total=len(owned))


@router.get("/{channel_id}", response_model=Channel)
async def get_channel(
    channel_id: str,
    channels: ChannelRegistry = Depends(get_channel_registry),
) -> Channel:
    """Get a channel by id."""
    try:
        return await channels.get_channel(channel_id)
    except IcebreakerError as e:
        raise to_http_exception(e) from e


@router.patch("/{channel_id}", response_model=Channel)
async def rename_channel(
    channel_id: str,
    rename_request: ChannelRenameRequest,
    identity: Identity = Depends(require_identity),
    channels: ChannelRegistry = Depends(get_channel_registry),
) -> Channel:
    """Rename a channel (owner only)."""
    try:
        return await channels.rename_channel(channel_id, identity.user_id, rename_request.name)
    except IcebreakerError as e:
        raise to_http_exception(e) from e


@router.get("/{channel_id}/host", response_model=HostView)
async def get_host_state(
    channel_id: str,
    identity: Identity = Depends(require_identity),
    channels: ChannelRegistry = Depends(get_channel_registry),
    host: SessionHost = Depends(get_session_host),
) -> HostView:
    """Owner console state: idle, active or ended."""
    try:
        await channels.require_owner(channel_id, identity.user_id)
        return await host.host_state(channel_id)
    except IcebreakerError as e:
        raise to_http_exception(e) from e


# Membership
@router.post("/{channel_id}/members", response_model=Member)
async def join_channel(
    channel_id: str,
    join_request: MemberJoinRequest,
    identity: Identity = Depends(require_identity),
    channels: ChannelRegistry = Depends(get_channel_registry),
    membership: MembershipRegistry = Depends(get_membership),
) -> Member:
    """Join a channel as the caller. Joining again updates the member card."""
    try:
        await channels.get_channel(channel_id)
        return await membership.join(
            channel_id,
            identity.user_id,
            join_request.display_name or identity.name,
            join_request.bio,
        )
    except IcebreakerError as e:
        raise to_http_exception(e) from e


@router.get("/{channel_id}/members", response_model=MemberListResponse)
async def list_members(
    channel_id: str,
    membership: MembershipRegistry = Depends(get_membership),
) -> MemberListResponse:
    """List the members of a channel."""
    try:
        members = await membership.list_members(channel_id)
    except IcebreakerError as e:
        raise to_http_exception(e) from e

    return MemberListResponse(members=members, total=len(members))


@router.get("/{channel_id}/members/stream")
async def stream_members(
    channel_id: str,
    request: Request,
    membership: MembershipRegistry = Depends(get_membership),
):
    """Stream the member roster using Server-Sent Events (SSE)."""
    return sse_response(
        subscription_events(
            request,
            lambda on_next, on_error: membership.observe_members(channel_id, on_next, on_error),
            "members",
        )
    )


@router.put("/{channel_id}/members/me/interests", response_model=Member)
async def set_interests(
    channel_id: str,
    interests_request: InterestsUpdateRequest,
    identity: Identity = Depends(require_identity),
    membership: MembershipRegistry = Depends(get_membership),
) -> Member:
    """Replace the caller's interests in a channel."""
    try:
        await membership.set_interests(channel_id, identity.user_id, interests_request.tags)
        return await membership.get_member(channel_id, identity.user_id)
    except IcebreakerError as e:
        raise to_http_exception(e) from e
