"""
Tag endpoints:
  GET /tags               — all tags, alphabetical
  GET /tags/{name}/posts  — published posts carrying the tag, newest first
"""
from typing import Optional

from fastapi import APIRouter, Depends

from content_api.aggregation import ContentEngine, Pagination
from content_api.dependencies import get_engine, optional_viewer, pagination
from content_api.schemas import PagedResult, PostView, TagView

router = APIRouter()


@router.get("/", response_model=PagedResult[TagView])
async def list_tags(
    page: Pagination = Depends(pagination),
    engine: ContentEngine = Depends(get_engine),
):
    return await engine.listings.list_tags(page)


@router.get("/{tag_name}/posts", response_model=PagedResult[PostView])
async def posts_by_tag(
    tag_name: str,
    page: Pagination = Depends(pagination),
    viewer_id: Optional[str] = Depends(optional_viewer),
    engine: ContentEngine = Depends(get_engine),
):
    return await engine.listings.posts_by_tag(tag_name, page, viewer_id)
