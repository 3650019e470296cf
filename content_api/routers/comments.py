"""
Comment endpoints, nested under a post:
  GET    /posts/{post_id}/comments               — one-level thread, oldest first
  POST   /posts/{post_id}/comments               — comment, or reply via parent_id
  PUT    /posts/{post_id}/comments/{comment_id}  — edit own comment
  DELETE /posts/{post_id}/comments/{comment_id}  — delete own comment and its replies
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
from opentelemetry import trace

from content_api.aggregation import ContentEngine
from content_api.dependencies import get_engine, get_store, optional_viewer, required_viewer
from content_api.errors import ForbiddenError, NotFoundError
from content_api.models import Comment
from content_api.schemas import CommentCreate, CommentUpdate, CommentView
from content_api.store import SqlEntityStore

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


async def _owned_comment(
    store: SqlEntityStore, post_id: str, comment_id: str, viewer_id: str
) -> Comment:
    comment = await store.get_comment(comment_id)
    if comment is None or comment.post_id != post_id:
        raise NotFoundError("Comment not found")
    if comment.author_id != viewer_id:
        raise ForbiddenError("You don't have permission to modify this comment")
    return comment


@router.get("/", response_model=list[CommentView])
async def list_comments(
    post_id: str,
    viewer_id: Optional[str] = Depends(optional_viewer),
    engine: ContentEngine = Depends(get_engine),
):
    return await engine.listings.list_comments(post_id, viewer_id)


@router.post("/", response_model=CommentView, status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: str,
    body: CommentCreate,
    viewer_id: str = Depends(required_viewer),
    store: SqlEntityStore = Depends(get_store),
    engine: ContentEngine = Depends(get_engine),
):
    """
    Add a comment. With parent_id it becomes a reply; the parent must belong
    to the same post. Replies to replies are stored but not shown in threads.
    """
    with tracer.start_as_current_span("create_comment") as span:
        span.set_attribute("post.id", post_id)
        post = await store.get_post(post_id)
        if post is None or not (post.is_published or post.author_id == viewer_id):
            raise NotFoundError("Post not found")
        comment = await store.create_comment(
            post_id=post_id,
            author_id=viewer_id,
            content=body.content,
            parent_id=body.parent_id,
        )
        logger.info("Comment %s added to post %s by %s", comment.id, post_id, viewer_id)
        return await engine.views.assemble_comment_view(comment)


@router.put("/{comment_id}", response_model=CommentView)
async def update_comment(
    post_id: str,
    comment_id: str,
    body: CommentUpdate,
    viewer_id: str = Depends(required_viewer),
    store: SqlEntityStore = Depends(get_store),
    engine: ContentEngine = Depends(get_engine),
):
    await _owned_comment(store, post_id, comment_id, viewer_id)
    comment = await store.update_comment(comment_id, body.content)
    return await engine.views.assemble_comment_view(comment)


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    post_id: str,
    comment_id: str,
    viewer_id: str = Depends(required_viewer),
    store: SqlEntityStore = Depends(get_store),
):
    await _owned_comment(store, post_id, comment_id, viewer_id)
    await store.delete_comment(comment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
