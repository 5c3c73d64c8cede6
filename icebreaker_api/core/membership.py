"""Channel membership registry and interest catalog."""

import asyncio
import logging
from collections.abc import Callable

from ..config import settings
from ..errors import InvalidArgument, InvalidDocument, StoreError
from ..models import InterestTag, InterestTagGroup, Member
from ..storage import (
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    Query,
    Subscription,
    document_path,
)
from ..telemetry import TelemetryEvents, track_event
from .local_cache import InterestCache, interest_cache

logger = logging.getLogger(__name__)

INTEREST_TAGS = "interestTags"

# Catalog sections rendered first, in this order
SECTION_ORDER = ("Popular", "Outdoors", "Technology", "Other")

MembersCallback = Callable[[list[Member]], None]


def members_collection(channel_id: str) -> str:
    return document_path("channels", channel_id, "members")


def member_path(channel_id: str, user_id: str) -> str:
    return document_path("channels", channel_id, "members", user_id)


def clean_tags(tags: list[str]) -> list[str]:
    """Strip tags, drop blanks and duplicates, keep first-seen order."""
    cleaned: list[str] = []
    for tag in tags:
        tag = str(tag).strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


def group_interest_tags(tags: list[InterestTag]) -> list[InterestTagGroup]:
    """Group tags by category: known sections first, then the rest by name."""
    by_category: dict[str, list[InterestTag]] = {}
    for tag in tags:
        by_category.setdefault(tag.category, []).append(tag)

    categories = [c for c in SECTION_ORDER if c in by_category]
    categories += sorted(c for c in by_category if c not in SECTION_ORDER)

    return [
        InterestTagGroup(
            category=category,
            tags=sorted(by_category[category], key=lambda t: (t.order, t.name)),
        )
        for category in categories
    ]


class MembershipRegistry:
    """Joins users to channels and records their interests."""

    def __init__(
        self,
        store: DocumentStore,
        cache: InterestCache | None = None,
        max_tags: int | None = None,
    ):
        self.store = store
        self.cache = cache if cache is not None else interest_cache
        self.max_tags = max_tags if max_tags is not None else settings.max_interest_tags

    @staticmethod
    def _parse_members(channel_id: str, snapshots: list[DocumentSnapshot]) -> list[Member]:
        members = []
        for snapshot in snapshots:
            try:
                members.append(
                    Member.from_document(snapshot.id, snapshot.data, channel_id=channel_id)
                )
            except InvalidDocument as e:
                logger.warning(f"Skipping malformed member document: {e}")
        return members

    async def join(
        self, channel_id: str, user_id: str, display_name: str, bio: str = ""
    ) -> Member:
        """Upsert the caller's member record. Joining twice keeps one record."""
        if not user_id:
            raise InvalidArgument("User id is required to join a channel")

        path = member_path(channel_id, user_id)
        existing = await self.store.get(path)

        data = {"displayName": display_name or "Anon", "bio": bio or ""}
        if not existing.exists:
            data["joinedAt"] = SERVER_TIMESTAMP
            data["interests"] = []

        await self.store.set(path, data, merge=True)

        if not existing.exists:
            logger.info(f"User {user_id} joined channel {channel_id}")
            track_event(
                TelemetryEvents.MEMBER_JOINED, {"channel_id": channel_id, "user_id": user_id}
            )

        return await self.get_member(channel_id, user_id)

    async def get_member(self, channel_id: str, user_id: str) -> Member | None:
        snapshot = await self.store.get(member_path(channel_id, user_id))
        if not snapshot.exists:
            return None
        return Member.from_document(snapshot.id, snapshot.data, channel_id=channel_id)

    async def list_members(self, channel_id: str) -> list[Member]:
        snapshots = await self.store.query(Query(collection=members_collection(channel_id)))
        return self._parse_members(channel_id, snapshots)

    async def set_interests(
        self,
        channel_id: str,
        user_id: str,
        tags: list[str],
        max_tags: int | None = None,
    ) -> list[str]:
        """Replace a member's interests and mirror them onto the user profile.

        The member and profile writes run concurrently; if one fails the
        other may still land.

        Args:
            channel_id: Channel identifier
            user_id: Member user id
            tags: Interest tag names
            max_tags: Override of the configured maximum

        Returns:
            The stored interests

        Raises:
            InvalidArgument: If more than ``max_tags`` tags are given
        """
        limit = max_tags if max_tags is not None else self.max_tags
        interests = clean_tags(tags)
        if len(interests) > limit:
            raise InvalidArgument(
                f"At most {limit} interests can be selected, got {len(interests)}"
            )

        self.cache.set(user_id, interests)
        await asyncio.gather(
            self.store.set(member_path(channel_id, user_id), {"interests": interests}, merge=True),
            self.store.set(document_path("users", user_id), {"interests": interests}, merge=True),
        )

        logger.info(f"Updated {len(interests)} interests for {user_id} in channel {channel_id}")
        track_event(
            TelemetryEvents.MEMBER_INTERESTS_UPDATED,
            {"channel_id": channel_id, "user_id": user_id, "count": len(interests)},
        )
        return interests

    async def interests_for(self, channel_id: str, user_id: str) -> list[str]:
        """Declared interests of a member, falling back to the local cache."""
        try:
            member = await self.get_member(channel_id, user_id)
        except StoreError as e:
            logger.warning(f"Member read failed for {user_id}, using cached interests: {e}")
            return self.cache.get(user_id)
        return list(member.interests) if member else []

    async def observe_members(
        self,
        channel_id: str,
        callback: MembersCallback,
        on_error: Callable[[Exception], None] | None = None,
    ) -> Subscription:
        """Push the full member list now and on every change."""
        return await self.store.watch_query(
            Query(collection=members_collection(channel_id)),
            lambda snapshots: callback(self._parse_members(channel_id, snapshots)),
            on_error,
        )

    async def list_interest_tags(self) -> list[InterestTagGroup]:
        """Interest catalog grouped into sections."""
        snapshots = await self.store.query(Query(collection=INTEREST_TAGS))
        tags = []
        for snapshot in snapshots:
            try:
                tags.append(InterestTag.from_document(snapshot.id, snapshot.data))
            except InvalidDocument as e:
                logger.warning(f"Skipping malformed interest tag: {e}")
        return group_interest_tags(tags)
