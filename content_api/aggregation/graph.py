"""Social graph reads: follower/following counts and follow edges."""
from typing import Optional

from content_api.aggregation.fallback import or_default, required
from content_api.store import EntityStore


class GraphAccessor:
    def __init__(self, store: EntityStore) -> None:
        self._store = store

    async def follower_count(self, user_id: str) -> int:
        return await or_default("follower_count", self._store.count_followers(user_id), 0)

    async def following_count(self, user_id: str) -> int:
        return await or_default("following_count", self._store.count_following(user_id), 0)

    async def is_following(self, viewer_id: Optional[str], target_id: str) -> bool:
        if viewer_id is None or viewer_id == target_id:
            return False
        return await or_default(
            "is_following", self._store.exists_follow(viewer_id, target_id), False
        )

    async def followed_author_ids(self, user_id: str) -> set[str]:
        # The followed set is what a feed is built from, so it never degrades
        return await required("followed authors", self._store.list_followed_author_ids(user_id))
