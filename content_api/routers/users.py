"""
User & social-graph endpoints:
  POST   /users                     — create a user profile (returns a bearer token)
  GET    /users/profile             — the authenticated viewer's profile
  PUT    /users/profile             — update the viewer's profile fields
  GET    /users/{id}                — fetch a user profile with live counts
  POST   /users/{id}/follow         — follow a user
  DELETE /users/{id}/unfollow       — unfollow
  GET    /users/{id}/follow-status  — does the viewer follow this user?
  GET    /users/{id}/followers      — paged followers, newest edge first
  GET    /users/{id}/following      — paged followed users, newest edge first
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
from opentelemetry import trace

from content_api.aggregation import ContentEngine, Pagination
from content_api.dependencies import (
    get_engine,
    get_identity,
    get_store,
    optional_viewer,
    pagination,
    required_viewer,
)
from content_api.errors import NotFoundError
from content_api.identity import IdentityResolver
from content_api.schemas import (
    FollowStatus,
    PagedResult,
    UserCreate,
    UserCreated,
    UserUpdate,
    UserView,
)
from content_api.store import SqlEntityStore

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post("/", response_model=UserCreated, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    store: SqlEntityStore = Depends(get_store),
    engine: ContentEngine = Depends(get_engine),
    identity: IdentityResolver = Depends(get_identity),
):
    with tracer.start_as_current_span("create_user"):
        user = await store.create_user(
            username=body.username,
            email=body.email,
            full_name=body.full_name,
            bio=body.bio,
        )
        logger.info("Created user %s (id=%s)", user.username, user.id)
        return UserCreated(
            user=await engine.views.assemble_user_view(user),
            access_token=identity.issue_token(user.id, user.username),
        )


@router.get("/profile", response_model=UserView)
async def get_profile(
    viewer_id: str = Depends(required_viewer),
    engine: ContentEngine = Depends(get_engine),
):
    return await engine.views.get_user_view(viewer_id)


@router.put("/profile", response_model=UserView)
async def update_profile(
    body: UserUpdate,
    viewer_id: str = Depends(required_viewer),
    store: SqlEntityStore = Depends(get_store),
    engine: ContentEngine = Depends(get_engine),
):
    user = await store.update_user(
        viewer_id,
        full_name=body.full_name,
        bio=body.bio,
        avatar_url=body.avatar_url,
    )
    return await engine.views.assemble_user_view(user)


@router.get("/{user_id}", response_model=UserView)
async def get_user(
    user_id: str,
    viewer_id: Optional[str] = Depends(optional_viewer),
    engine: ContentEngine = Depends(get_engine),
):
    return await engine.views.get_user_view(user_id, viewer_id)


@router.post(
    "/{user_id}/follow",
    response_model=FollowStatus,
    status_code=status.HTTP_201_CREATED,
)
async def follow_user(
    user_id: str,
    viewer_id: str = Depends(required_viewer),
    store: SqlEntityStore = Depends(get_store),
):
    """Create a viewer → user edge. Following twice is a conflict, not a no-op."""
    with tracer.start_as_current_span("follow_user") as span:
        span.set_attribute("viewer.id", viewer_id)
        span.set_attribute("user.id", user_id)
        if await store.get_user(user_id) is None:
            raise NotFoundError("User not found")
        await store.add_follow(viewer_id, user_id)
        logger.info("%s followed %s", viewer_id, user_id)
        return FollowStatus(follower_id=viewer_id, following_id=user_id, is_following=True)


@router.delete("/{user_id}/unfollow", status_code=status.HTTP_204_NO_CONTENT)
async def unfollow_user(
    user_id: str,
    viewer_id: str = Depends(required_viewer),
    store: SqlEntityStore = Depends(get_store),
):
    with tracer.start_as_current_span("unfollow_user"):
        if not await store.remove_follow(viewer_id, user_id):
            raise NotFoundError("You are not following this user")
        logger.info("%s unfollowed %s", viewer_id, user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{user_id}/follow-status", response_model=FollowStatus)
async def follow_status(
    user_id: str,
    viewer_id: Optional[str] = Depends(optional_viewer),
    engine: ContentEngine = Depends(get_engine),
):
    return FollowStatus(
        follower_id=viewer_id,
        following_id=user_id,
        is_following=await engine.graph.is_following(viewer_id, user_id),
    )


@router.get("/{user_id}/followers", response_model=PagedResult[UserView])
async def list_followers(
    user_id: str,
    page: Pagination = Depends(pagination),
    engine: ContentEngine = Depends(get_engine),
):
    return await engine.listings.list_followers(user_id, page)


@router.get("/{user_id}/following", response_model=PagedResult[UserView])
async def list_following(
    user_id: str,
    page: Pagination = Depends(pagination),
    engine: ContentEngine = Depends(get_engine),
):
    return await engine.listings.list_following(user_id, page)
