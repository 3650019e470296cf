"""Tag lookups in both directions, plus the idempotent tag upsert."""
import logging
from typing import Iterable

from content_api.aggregation.fallback import or_default, required
from content_api.aggregation.pagination import Pagination
from content_api.errors import InvalidRequestError
from content_api.models import Post, Tag
from content_api.store import EntityStore

logger = logging.getLogger(__name__)


class TagResolver:
    def __init__(self, store: EntityStore) -> None:
        self._store = store

    async def tags_for_post(self, post_id: str) -> list[str]:
        return await or_default("tags", self._store.list_tags_for_post(post_id), [])

    async def posts_for_tag(self, tag_name: str, page: Pagination) -> tuple[list[Post], int]:
        """Published posts carrying `tag_name`, newest publication first."""
        return await required(
            f"posts for tag {tag_name!r}",
            self._store.list_posts_by_tag(tag_name, page.offset, page.limit),
        )

    async def list_tags(self, page: Pagination) -> tuple[list[Tag], int]:
        return await required("tags", self._store.list_tags(page.offset, page.limit))

    async def ensure_tag(self, name: str) -> str:
        """
        Resolve `name` to a tag id, creating the tag on first use.

        Names are matched exactly (case-sensitive) after trimming surrounding
        whitespace. Calling this repeatedly, or concurrently, with the same
        name always yields the same id.
        """
        name = name.strip()
        if not name:
            raise InvalidRequestError("Tag name must not be blank")
        return await required(f"tag {name!r}", self._store.upsert_tag_by_name(name))

    async def ensure_tags(self, names: Iterable[str]) -> list[str]:
        """ensure_tag over `names`, skipping blanks and repeated names."""
        unique = [n for n in dict.fromkeys(n.strip() for n in names) if n]
        ids = [await self.ensure_tag(name) for name in unique]
        logger.debug("Resolved %d tag(s): %s", len(ids), unique)
        return ids
