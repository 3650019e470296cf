import os

# Settings are read at import time; keep tests off the network and quiet
os.environ.setdefault("OTEL_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Iterable, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from content_api.aggregation import ContentEngine  # noqa: E402
from content_api.database import build_engine, build_session_factory, init_db  # noqa: E402
from content_api.identity import AuthConfig, IdentityResolver  # noqa: E402
from content_api.main import attach_services, create_app  # noqa: E402
from content_api.models import Comment, Post, User  # noqa: E402
from content_api.slugs import slugify_title  # noqa: E402
from content_api.store import SqlEntityStore  # noqa: E402


class Factory:
    """Creates rows through the store's own write paths."""

    def __init__(self, store: SqlEntityStore, engine: ContentEngine) -> None:
        self.store = store
        self.engine = engine

    async def user(self, username: str, **profile) -> User:
        return await self.store.create_user(
            username=username, email=f"{username}@example.com", **profile
        )

    async def post(
        self,
        author: User,
        title: str = "Untitled",
        content: str = "Body text",
        published: bool = True,
        tags: Iterable[str] = (),
    ) -> Post:
        post = await self.store.create_post(
            author_id=author.id, title=title, slug=slugify_title(title), content=content
        )
        if tags:
            await self.store.replace_post_tags(post.id, await self.engine.tags.ensure_tags(tags))
        if published:
            post = await self.store.publish_post(post.id)
        return post

    async def comment(
        self, post: Post, author: User, content: str = "Nice", parent: Optional[Comment] = None
    ) -> Comment:
        return await self.store.create_comment(
            post_id=post.id,
            author_id=author.id,
            content=content,
            parent_id=parent.id if parent else None,
        )


@pytest_asyncio.fixture
async def sessions(tmp_path):
    """Session factory over a fresh file-backed SQLite schema."""
    db_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'content.db'}")
    await init_db(db_engine)
    yield build_session_factory(db_engine)
    await db_engine.dispose()


@pytest.fixture
def store(sessions):
    return SqlEntityStore(sessions)


@pytest.fixture
def engine(store):
    return ContentEngine(store, concurrency=4)


@pytest.fixture
def factory(store, engine):
    return Factory(store, engine)


@pytest.fixture
def identity():
    return IdentityResolver(AuthConfig(secret="test-secret"))


@pytest.fixture
def app(sessions, identity):
    application = create_app()
    attach_services(application, sessions, identity)
    return application


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http


@pytest.fixture
def auth(identity):
    """Authorization header for a user row."""

    def header(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {identity.issue_token(user.id, user.username)}"}

    return header
