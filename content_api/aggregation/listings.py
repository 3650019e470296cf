"""
Paged listings: public posts, drafts, feed, followers/following, comments,
posts-by-tag and tags.

Each listing fetches one page of primary rows (fatal on store failure), then
hands the rows to the view assembler. All post listings are newest first;
the comment listing is the one exception and reads oldest first.
"""
import logging
from typing import Optional

from opentelemetry import trace

from content_api.aggregation.comments import CommentTreeBuilder
from content_api.aggregation.fallback import required
from content_api.aggregation.graph import GraphAccessor
from content_api.aggregation.pagination import Pagination
from content_api.aggregation.tags import TagResolver
from content_api.aggregation.views import ViewAssembler
from content_api.errors import AuthenticationRequiredError, NotFoundError
from content_api.schemas import CommentView, PagedResult, PostView, TagView, UserView
from content_api.store import EntityStore
from content_api.telemetry import FEED_LATENCY, LISTING_REQUESTS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def _require_viewer(viewer_id: Optional[str]) -> str:
    if viewer_id is None:
        raise AuthenticationRequiredError("Authentication required")
    return viewer_id


class ListComposer:
    def __init__(
        self,
        store: EntityStore,
        assembler: ViewAssembler,
        graph: GraphAccessor,
        tags: TagResolver,
        comments: CommentTreeBuilder,
    ) -> None:
        self._store = store
        self._assembler = assembler
        self._graph = graph
        self._tags = tags
        self._comments = comments

    async def _post_page(
        self, listing: str, rows: tuple[list, int], page: Pagination, viewer_id: Optional[str]
    ) -> PagedResult[PostView]:
        posts, total = rows
        views = await self._assembler.assemble_post_views(posts, viewer_id)
        LISTING_REQUESTS_TOTAL.labels(listing=listing).inc()
        trace.get_current_span().set_attribute("listing.total", total)
        return page.result(views, total)

    # ─────────────────────── Posts ────────────────────────────────────────

    async def list_published_posts(
        self, page: Pagination, viewer_id: Optional[str] = None
    ) -> PagedResult[PostView]:
        with tracer.start_as_current_span("list_published_posts"):
            rows = await required(
                "published posts", self._store.list_published_posts(page.offset, page.limit)
            )
            return await self._post_page("posts", rows, page, viewer_id)

    async def list_drafts(self, page: Pagination, viewer_id: Optional[str]) -> PagedResult[PostView]:
        """The viewer's own unpublished posts, most recently created first."""
        viewer_id = _require_viewer(viewer_id)
        with tracer.start_as_current_span("list_drafts") as span:
            span.set_attribute("viewer.id", viewer_id)
            rows = await required(
                "drafts", self._store.list_drafts_by_author(viewer_id, page.offset, page.limit)
            )
            return await self._post_page("drafts", rows, page, viewer_id)

    async def feed(self, page: Pagination, viewer_id: Optional[str]) -> PagedResult[PostView]:
        """Published posts by the accounts the viewer follows, newest first."""
        viewer_id = _require_viewer(viewer_id)
        with tracer.start_as_current_span("feed") as span, FEED_LATENCY.time():
            span.set_attribute("viewer.id", viewer_id)
            followed = await self._graph.followed_author_ids(viewer_id)
            span.set_attribute("feed.followed_authors", len(followed))
            if not followed:
                LISTING_REQUESTS_TOTAL.labels(listing="feed").inc()
                return page.result([], 0)
            rows = await required(
                "feed",
                self._store.list_followed_author_posts(viewer_id, page.offset, page.limit),
            )
            return await self._post_page("feed", rows, page, viewer_id)

    async def posts_by_tag(
        self, tag_name: str, page: Pagination, viewer_id: Optional[str] = None
    ) -> PagedResult[PostView]:
        with tracer.start_as_current_span("posts_by_tag") as span:
            span.set_attribute("tag.name", tag_name)
            rows = await self._tags.posts_for_tag(tag_name, page)
            return await self._post_page("posts_by_tag", rows, page, viewer_id)

    # ─────────────────────── Social graph ─────────────────────────────────

    async def _ensure_user(self, user_id: str) -> None:
        if await required("user", self._store.get_user(user_id)) is None:
            raise NotFoundError("User not found")

    async def list_followers(self, user_id: str, page: Pagination) -> PagedResult[UserView]:
        await self._ensure_user(user_id)
        users, total = await required(
            "followers", self._store.list_follower_users(user_id, page.offset, page.limit)
        )
        LISTING_REQUESTS_TOTAL.labels(listing="followers").inc()
        return page.result(await self._assembler.assemble_user_views(users), total)

    async def list_following(self, user_id: str, page: Pagination) -> PagedResult[UserView]:
        await self._ensure_user(user_id)
        users, total = await required(
            "following", self._store.list_following_users(user_id, page.offset, page.limit)
        )
        LISTING_REQUESTS_TOTAL.labels(listing="following").inc()
        return page.result(await self._assembler.assemble_user_views(users), total)

    # ─────────────────────── Comments & tags ──────────────────────────────

    async def list_comments(self, post_id: str, viewer_id: Optional[str] = None) -> list[CommentView]:
        """Root comments oldest first, each carrying its direct replies."""
        with tracer.start_as_current_span("list_comments") as span:
            span.set_attribute("post.id", post_id)
            post = await required("post", self._store.get_post(post_id))
            if post is None or not (post.is_published or post.author_id == viewer_id):
                raise NotFoundError("Post not found")
            comments = await required("comments", self._store.list_comments_by_post(post_id))
            LISTING_REQUESTS_TOTAL.labels(listing="comments").inc()
            return await self._comments.build(comments)

    async def list_tags(self, page: Pagination) -> PagedResult[TagView]:
        tags, total = await self._tags.list_tags(page)
        LISTING_REQUESTS_TOTAL.labels(listing="tags").inc()
        return page.result([TagView.model_validate(t) for t in tags], total)
