"""Deterministic per-session activity prompt assignment."""

import hashlib
import logging
import random

from ..config import settings
from ..errors import InvalidDocument, StoreError
from ..models import ActivityPrompt, ActivitySelection, Session
from ..models.activity import FALLBACK_PROMPT, FALLBACK_TITLE
from ..storage import DocumentStore, Query
from ..telemetry import TelemetryEvents, track_event
from .membership import MembershipRegistry
from .session_repository import SessionRepository

logger = logging.getLogger(__name__)

ACTIVITIES = "activities"

# category -> case-insensitive substrings of an interest label
CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "gaming": ("gaming",),
    "tech": ("tech", "code"),
    "traveling": ("travel",),
}

NO_CATEGORY_PROMPT = "Feel free to chat about your interests!"
NO_CANDIDATES_PROMPT = (
    "No prompt found for this category. Feel free to chat about your interests!"
)
FAILED_PROMPT = "Failed to load the prompt. Please try refreshing the page."


def match_categories(labels: list[str]) -> list[tuple[str, str]]:
    """Map interest labels to (category, label) pairs.

    One label can match several categories.
    """
    pairs = []
    for label in labels:
        lowered = str(label).lower()
        for category, keywords in CATEGORY_KEYWORDS.items():
            if any(keyword in lowered for keyword in keywords):
                pairs.append((category, label))
    return pairs


def stable_hash(value: str) -> int:
    """Process-independent hash: first 8 bytes of SHA-256, big-endian."""
    return int.from_bytes(hashlib.sha256(value.encode("utf-8")).digest()[:8], "big")


def selection_from_session(session: Session) -> ActivitySelection:
    """Prompt already stored on a session."""
    return ActivitySelection(
        title=session.activity_title or FALLBACK_TITLE,
        prompt=session.activity_prompt or FALLBACK_PROMPT,
        category=session.activity_category,
        activity_id=session.activity_id,
        label=session.tags[0] if session.tags else None,
    )


def choose_candidate(
    candidates: list[ActivityPrompt], session_id: str, category: str
) -> ActivityPrompt:
    """Pick the same catalog entry for every participant of a session."""
    ordered = sorted(candidates, key=lambda c: c.id)
    return ordered[stable_hash(f"{session_id}:{category}") % len(ordered)]


class ActivityPromptSelector:
    """Assigns one catalog prompt to a session, shared by all participants.

    Selection failures never propagate: they degrade to a generic prompt.
    """

    def __init__(
        self,
        store: DocumentStore,
        sessions: SessionRepository | None = None,
        membership: MembershipRegistry | None = None,
        rng: random.Random | None = None,
        candidate_limit: int | None = None,
    ):
        """Initialize selector.

        Args:
            store: Document store holding the ``activities`` catalog
            sessions: Session repository (built from ``store`` if omitted)
            membership: Membership registry used to read interests
            rng: Random source for choosing among matched interests
            candidate_limit: Number of catalog entries considered per category
        """
        self.store = store
        self.sessions = sessions or SessionRepository(store)
        self.membership = membership or MembershipRegistry(store)
        self.rng = rng or random.Random()
        self.candidate_limit = candidate_limit or settings.prompt_candidate_limit

    async def select(
        self, channel_id: str, session_id: str, user_id: str | None
    ) -> ActivitySelection:
        """Return the session's prompt, choosing and storing one if needed."""
        try:
            return await self._select(channel_id, session_id, user_id)
        except StoreError as e:
            logger.warning(f"Prompt selection failed for session {session_id}: {e}")
            self._track_fallback(channel_id, session_id, "store_error")
            return ActivitySelection.generic(FAILED_PROMPT)

    async def _select(
        self, channel_id: str, session_id: str, user_id: str | None
    ) -> ActivitySelection:
        session = await self.sessions.get_session(channel_id, session_id)
        if session is None:
            logger.warning(f"Session {channel_id}/{session_id} not found, using fallback prompt")
            return ActivitySelection.generic()

        if session.has_activity:
            return selection_from_session(session)

        if session.tags:
            pairs = match_categories(session.tags[:1])
        elif user_id:
            pairs = match_categories(await self.membership.interests_for(channel_id, user_id))
        else:
            pairs = []

        if not pairs:
            logger.info(f"No matching category for session {session_id}, using fallback prompt")
            self._track_fallback(channel_id, session_id, "no_category")
            return ActivitySelection.generic(
                NO_CATEGORY_PROMPT, label=session.tags[0] if session.tags else None
            )

        category, label = self.rng.choice(pairs)

        candidates = await self.catalog_candidates(category)
        if not candidates:
            logger.info(f"No activities for category {category}, using fallback prompt")
            await self.sessions.set_tags_if_empty(channel_id, session_id, [label])
            self._track_fallback(channel_id, session_id, "no_candidates")
            return ActivitySelection.generic(NO_CANDIDATES_PROMPT, label=label)

        chosen = choose_candidate(candidates, session_id, category)

        # Another participant may have stored a prompt in the meantime
        current = await self.sessions.get_session(channel_id, session_id)
        if current is not None and current.has_activity:
            return selection_from_session(current)

        await self.sessions.set_activity(channel_id, session_id, chosen)
        await self.sessions.set_tags_if_empty(channel_id, session_id, [label])

        logger.info(f"Selected activity {chosen.id} ({category}) for session {session_id}")
        track_event(
            TelemetryEvents.PROMPT_SELECTED,
            {
                "channel_id": channel_id,
                "session_id": session_id,
                "category": category,
                "activity_id": chosen.id,
            },
        )
        return ActivitySelection(
            title=chosen.title,
            prompt=chosen.prompt,
            category=category,
            activity_id=chosen.id,
            label=label,
        )

    async def catalog_candidates(self, category: str) -> list[ActivityPrompt]:
        """Catalog entries for a category, malformed entries skipped."""
        snapshots = await self.store.query(
            Query(collection=ACTIVITIES, limit=self.candidate_limit).where("category", category)
        )
        candidates = []
        for snapshot in snapshots:
            try:
                candidates.append(ActivityPrompt.from_document(snapshot.id, snapshot.data))
            except InvalidDocument as e:
                logger.warning(f"Skipping malformed activity: {e}")
        return candidates

    @staticmethod
    def _track_fallback(channel_id: str, session_id: str, reason: str) -> None:
        track_event(
            TelemetryEvents.PROMPT_FALLBACK,
            {"channel_id": channel_id, "session_id": session_id, "reason": reason},
        )
