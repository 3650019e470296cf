"""Per-post engagement aggregates, computed fresh on every read."""
from typing import Optional

from content_api.aggregation.fallback import or_default
from content_api.store import EntityStore


class CountAggregator:
    def __init__(self, store: EntityStore) -> None:
        self._store = store

    async def like_count(self, post_id: str) -> int:
        return await or_default("like_count", self._store.count_likes(post_id), 0)

    async def comment_count(self, post_id: str) -> int:
        return await or_default("comment_count", self._store.count_comments(post_id), 0)

    async def is_liked_by(self, post_id: str, viewer_id: Optional[str] = None) -> bool:
        """Anonymous viewers never see a post as liked."""
        if viewer_id is None:
            return False
        return await or_default("is_liked", self._store.exists_like(post_id, viewer_id), False)
