"""Interest catalog endpoint."""

from fastapi import APIRouter, Depends

from ..core import MembershipRegistry
from ..errors import IcebreakerError
from ..models import InterestTagsResponse
from .dependencies import get_membership, to_http_exception

router = APIRouter(tags=["catalog"])


@router.get("/interest-tags", response_model=InterestTagsResponse)
async def list_interest_tags(
    membership: MembershipRegistry = Depends(get_membership),
) -> InterestTagsResponse:
    """Interest tags grouped into Popular, Outdoors, Technology, Other and the rest."""
    try:
        groups = await membership.list_interest_tags()
    except IcebreakerError as e:
        raise to_http_exception(e) from e

    return InterestTagsResponse(groups=groups)
