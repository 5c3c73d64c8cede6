"""Process-local fallback cache for a user's chosen interests."""

from collections import OrderedDict

from ..config import settings


class InterestCache:
    """Advisory key-value cache, never the source of truth.

    Mirrors the last interest set each user saved so prompt selection can
    still pick a category when the member document cannot be read. Holds at
    most ``max_entries`` users and evicts the least recently used one.
    """

    KEY = "selectedInterests"

    def __init__(self, max_entries: int | None = None) -> None:
        self.max_entries = max_entries or settings.interest_cache_size
        self._values: OrderedDict[str, list[str]] = OrderedDict()

    def _key(self, user_id: str) -> str:
        return f"{user_id}:{self.KEY}"

    def __len__(self) -> int:
        return len(self._values)

    def set(self, user_id: str, interests: list[str]) -> None:
        key = self._key(user_id)
        self._values[key] = list(interests)
        self._values.move_to_end(key)
        while len(self._values) > self.max_entries:
            self._values.popitem(last=False)

    def get(self, user_id: str) -> list[str]:
        key = self._key(user_id)
        if key not in self._values:
            return []
        self._values.move_to_end(key)
        return list(self._values[key])

    def clear(self) -> None:
        self._values.clear()


# Global cache instance
interest_cache = InterestCache()
