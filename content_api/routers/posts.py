"""
Post endpoints:
  GET    /posts                — published posts, newest publication first
  POST   /posts                — create a draft (slug derived, tags upserted)
  GET    /posts/drafts         — the viewer's drafts
  GET    /posts/feed           — posts by the accounts the viewer follows
  GET    /posts/{id}           — one post (drafts only for their author)
  PUT    /posts/{id}           — edit; slug follows the title, tags replaced if given
  DELETE /posts/{id}           — delete
  PATCH  /posts/{id}/publish   — publish a draft (published_at is set once)
  POST   /posts/{id}/like      — like a published post
  DELETE /posts/{id}/unlike    — remove a like
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
from opentelemetry import trace

from content_api.aggregation import ContentEngine, Pagination
from content_api.dependencies import (
    get_engine,
    get_store,
    optional_viewer,
    pagination,
    required_viewer,
)
from content_api.errors import ForbiddenError, InvalidRequestError, NotFoundError
from content_api.models import Post
from content_api.schemas import LikeStatus, PagedResult, PostCreate, PostUpdate, PostView
from content_api.slugs import slugify_title
from content_api.store import SqlEntityStore

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


async def _owned_post(store: SqlEntityStore, post_id: str, viewer_id: str, action: str) -> Post:
    post = await store.get_post(post_id)
    if post is None:
        raise NotFoundError("Post not found")
    if post.author_id != viewer_id:
        raise ForbiddenError(f"You don't have permission to {action} this post")
    return post


@router.get("/", response_model=PagedResult[PostView])
async def list_posts(
    page: Pagination = Depends(pagination),
    viewer_id: Optional[str] = Depends(optional_viewer),
    engine: ContentEngine = Depends(get_engine),
):
    return await engine.listings.list_published_posts(page, viewer_id)


@router.post("/", response_model=PostView, status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostCreate,
    viewer_id: str = Depends(required_viewer),
    store: SqlEntityStore = Depends(get_store),
    engine: ContentEngine = Depends(get_engine),
):
    """New posts start as drafts; PATCH /posts/{id}/publish makes them public."""
    with tracer.start_as_current_span("create_post") as span:
        post = await store.create_post(
            author_id=viewer_id,
            title=body.title,
            slug=slugify_title(body.title),
            content=body.content,
            excerpt=body.excerpt,
            cover_image=body.cover_image,
        )
        span.set_attribute("post.id", post.id)
        if body.tags:
            await store.replace_post_tags(post.id, await engine.tags.ensure_tags(body.tags))

        logger.info("Post created: %s by user %s", post.id, viewer_id)
        return await engine.views.assemble_post_view(post, viewer_id)


@router.get("/drafts", response_model=PagedResult[PostView])
async def list_drafts(
    page: Pagination = Depends(pagination),
    viewer_id: str = Depends(required_viewer),
    engine: ContentEngine = Depends(get_engine),
):
    return await engine.listings.list_drafts(page, viewer_id)


@router.get("/feed", response_model=PagedResult[PostView])
async def get_feed(
    page: Pagination = Depends(pagination),
    viewer_id: str = Depends(required_viewer),
    engine: ContentEngine = Depends(get_engine),
):
    return await engine.listings.feed(page, viewer_id)


@router.get("/{post_id}", response_model=PostView)
async def get_post(
    post_id: str,
    viewer_id: Optional[str] = Depends(optional_viewer),
    engine: ContentEngine = Depends(get_engine),
):
    return await engine.views.get_post_view(post_id, viewer_id)


@router.put("/{post_id}", response_model=PostView)
async def update_post(
    post_id: str,
    body: PostUpdate,
    viewer_id: str = Depends(required_viewer),
    store: SqlEntityStore = Depends(get_store),
    engine: ContentEngine = Depends(get_engine),
):
    # Only fields present in the body change; an explicit null clears an optional one
    fields = body.model_dump(exclude={"tags"}, exclude_unset=True)
    if not fields and body.tags is None:
        raise InvalidRequestError("No fields to update")
    if any(fields.get(name, "") is None for name in ("title", "content")):
        raise InvalidRequestError("Title and content cannot be cleared")

    with tracer.start_as_current_span("update_post") as span:
        span.set_attribute("post.id", post_id)
        await _owned_post(store, post_id, viewer_id, "update")
        if "title" in fields:
            fields["slug"] = slugify_title(fields["title"])
        if body.tags is not None:
            await store.replace_post_tags(post_id, await engine.tags.ensure_tags(body.tags))
        post = await store.update_post(post_id, **fields)
        return await engine.views.assemble_post_view(post, viewer_id)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: str,
    viewer_id: str = Depends(required_viewer),
    store: SqlEntityStore = Depends(get_store),
):
    await _owned_post(store, post_id, viewer_id, "delete")
    await store.delete_post(post_id)
    logger.info("Post deleted: %s by user %s", post_id, viewer_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{post_id}/publish", response_model=PostView)
async def publish_post(
    post_id: str,
    viewer_id: str = Depends(required_viewer),
    store: SqlEntityStore = Depends(get_store),
    engine: ContentEngine = Depends(get_engine),
):
    with tracer.start_as_current_span("publish_post") as span:
        span.set_attribute("post.id", post_id)
        await _owned_post(store, post_id, viewer_id, "publish")
        post = await store.publish_post(post_id)
        logger.info("Post published: %s at %s", post.id, post.published_at)
        return await engine.views.assemble_post_view(post, viewer_id)


@router.post("/{post_id}/like", response_model=LikeStatus, status_code=status.HTTP_201_CREATED)
async def like_post(
    post_id: str,
    viewer_id: str = Depends(required_viewer),
    store: SqlEntityStore = Depends(get_store),
    engine: ContentEngine = Depends(get_engine),
):
    """Like a published post. A second like by the same user is a conflict."""
    with tracer.start_as_current_span("like_post"):
        post = await store.get_post(post_id)
        if post is None or not post.is_published:
            raise NotFoundError("Post not found")
        await store.add_like(post_id, viewer_id)
        return LikeStatus(
            post_id=post_id,
            like_count=await engine.counts.like_count(post_id),
            is_liked=True,
        )


@router.delete("/{post_id}/unlike", response_model=LikeStatus)
async def unlike_post(
    post_id: str,
    viewer_id: str = Depends(required_viewer),
    store: SqlEntityStore = Depends(get_store),
    engine: ContentEngine = Depends(get_engine),
):
    with tracer.start_as_current_span("unlike_post"):
        if not await store.remove_like(post_id, viewer_id):
            raise NotFoundError("Like not found")
        return LikeStatus(
            post_id=post_id,
            like_count=await engine.counts.like_count(post_id),
            is_liked=False,
        )
