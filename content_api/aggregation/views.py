"""
View assembly: raw rows in, denormalized views out.

Every view is built fresh from the store. The sub-lookups one view needs
(author, tags, counts, is-liked) do not depend on each other, so they are
awaited together; list forms assemble items concurrently under a semaphore
sized by `settings.assembly_concurrency`.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from opentelemetry import trace

from content_api.aggregation.counts import CountAggregator
from content_api.aggregation.fallback import required
from content_api.aggregation.graph import GraphAccessor
from content_api.aggregation.tags import TagResolver
from content_api.config import settings
from content_api.errors import NotFoundError
from content_api.models import Comment, Post, User
from content_api.schemas import CommentView, PostView, UserView
from content_api.store import EntityStore
from content_api.telemetry import VIEW_ASSEMBLY_LATENCY

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

In = TypeVar("In")
Out = TypeVar("Out")


class ViewAssembler:
    def __init__(
        self,
        store: EntityStore,
        graph: GraphAccessor,
        counts: CountAggregator,
        tags: TagResolver,
        concurrency: Optional[int] = None,
    ) -> None:
        self._store = store
        self._graph = graph
        self._counts = counts
        self._tags = tags
        self._concurrency = concurrency or settings.assembly_concurrency

    async def _bounded(
        self, items: Sequence[In], assemble: Callable[[In], Awaitable[Out]]
    ) -> list[Out]:
        """Assemble `items` concurrently, at most `_concurrency` at a time, keeping order."""
        limiter = asyncio.Semaphore(self._concurrency)

        async def one(item: In) -> Out:
            async with limiter:
                return await assemble(item)

        return list(await asyncio.gather(*(one(item) for item in items)))

    # ─────────────────────── Users ────────────────────────────────────────

    async def assemble_user_view(self, user: User, viewer_id: Optional[str] = None) -> UserView:
        """
        Profile fields plus live follower/following counts. The view carries
        nothing viewer-specific; `viewer_id` only tags the span.
        """
        with tracer.start_as_current_span("assemble_user_view") as span:
            span.set_attribute("user.id", user.id)
            if viewer_id:
                span.set_attribute("viewer.id", viewer_id)
            with VIEW_ASSEMBLY_LATENCY.labels(view="user").time():
                follower_count, following_count = await asyncio.gather(
                    self._graph.follower_count(user.id),
                    self._graph.following_count(user.id),
                )
        return UserView(
            id=user.id,
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            bio=user.bio,
            avatar_url=user.avatar_url,
            is_verified=bool(user.is_verified),
            follower_count=follower_count,
            following_count=following_count,
            created_at=user.created_at,
        )

    async def assemble_user_views(
        self, users: Sequence[User], viewer_id: Optional[str] = None
    ) -> list[UserView]:
        return await self._bounded(users, lambda user: self.assemble_user_view(user, viewer_id))

    async def get_user_view(self, user_id: str, viewer_id: Optional[str] = None) -> UserView:
        user = await required("user", self._store.get_user(user_id))
        if user is None:
            raise NotFoundError("User not found")
        return await self.assemble_user_view(user, viewer_id)

    async def _author_view(self, author_id: str) -> UserView:
        author = await required("author", self._store.get_user(author_id))
        if author is None:
            raise NotFoundError(f"Author {author_id} not found")
        return await self.assemble_user_view(author)

    # ─────────────────────── Posts ────────────────────────────────────────

    async def assemble_post_view(self, post: Post, viewer_id: Optional[str] = None) -> PostView:
        with tracer.start_as_current_span("assemble_post_view") as span:
            span.set_attribute("post.id", post.id)
            if viewer_id:
                span.set_attribute("viewer.id", viewer_id)

            with VIEW_ASSEMBLY_LATENCY.labels(view="post").time():
                author, tags, like_count, comment_count, is_liked = await asyncio.gather(
                    self._author_view(post.author_id),
                    self._tags.tags_for_post(post.id),
                    self._counts.like_count(post.id),
                    self._counts.comment_count(post.id),
                    self._counts.is_liked_by(post.id, viewer_id),
                )

            return PostView(
                id=post.id,
                title=post.title,
                slug=post.slug,
                content=post.content,
                excerpt=post.excerpt,
                cover_image=post.cover_image,
                author=author,
                tags=tags,
                like_count=like_count,
                comment_count=comment_count,
                is_liked=is_liked,
                is_published=bool(post.is_published),
                published_at=post.published_at,
                created_at=post.created_at,
                updated_at=post.updated_at,
            )

    async def assemble_post_views(
        self, posts: Sequence[Post], viewer_id: Optional[str] = None
    ) -> list[PostView]:
        return await self._bounded(posts, lambda post: self.assemble_post_view(post, viewer_id))

    async def get_post_view(self, post_id: str, viewer_id: Optional[str] = None) -> PostView:
        """Published posts are visible to everyone; drafts only to their author."""
        post = await required("post", self._store.get_post(post_id))
        if post is None or not (post.is_published or post.author_id == viewer_id):
            raise NotFoundError("Post not found")
        return await self.assemble_post_view(post, viewer_id)

    # ─────────────────────── Comments ─────────────────────────────────────

    async def assemble_comment_view(self, comment: Comment) -> CommentView:
        with VIEW_ASSEMBLY_LATENCY.labels(view="comment").time():
            author = await self._author_view(comment.author_id)
        return CommentView(
            id=comment.id,
            content=comment.content,
            author=author,
            parent_id=comment.parent_id,
            replies=[],
            created_at=comment.created_at,
            updated_at=comment.updated_at,
        )

    async def assemble_comment_views(self, comments: Sequence[Comment]) -> list[CommentView]:
        return await self._bounded(comments, self.assemble_comment_view)
