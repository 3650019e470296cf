"""FastAPI dependencies: services from app.state, viewer identity, paging."""
from typing import Optional

from fastapi import Depends, Header, Query, Request

from content_api.aggregation import ContentEngine, Pagination
from content_api.errors import AuthenticationRequiredError
from content_api.identity import IdentityResolver
from content_api.store import SqlEntityStore


def get_engine(request: Request) -> ContentEngine:
    return request.app.state.engine


def get_store(request: Request) -> SqlEntityStore:
    return request.app.state.store


def get_identity(request: Request) -> IdentityResolver:
    return request.app.state.identity


def optional_viewer(
    authorization: Optional[str] = Header(None),
    identity: IdentityResolver = Depends(get_identity),
) -> Optional[str]:
    return identity.resolve(authorization)


def required_viewer(viewer_id: Optional[str] = Depends(optional_viewer)) -> str:
    if viewer_id is None:
        raise AuthenticationRequiredError("Authentication required")
    return viewer_id


def pagination(
    page: int = Query(1, ge=1, description="1-based page number"),
    limit: Optional[int] = Query(None, ge=1, description="Page size (default 20, max 100)"),
) -> Pagination:
    return Pagination.from_params(page, limit)
