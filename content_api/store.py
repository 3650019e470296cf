"""
Entity store — the only module that talks SQL.

`EntityStore` is the read contract the aggregation engine is written
against. `SqlEntityStore` implements it on top of async SQLAlchemy and adds
the write operations used by the routers.

Every public method opens its own short-lived session, so independent reads
can be awaited concurrently (asyncio.gather) without sharing a connection.
Driver failures surface as StoreError; unique-constraint violations on
writes surface as ConflictError.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Protocol, Sequence

from sqlalchemy import delete, exists, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from content_api.errors import ConflictError, InvalidRequestError, NotFoundError, StoreError
from content_api.models import Comment, Follow, Like, Post, PostTag, Tag, User, utcnow

logger = logging.getLogger(__name__)


class EntityStore(Protocol):
    """Read side of the store, as consumed by the aggregation engine."""

    async def get_user(self, user_id: str) -> Optional[User]: ...

    async def get_post(self, post_id: str) -> Optional[Post]: ...

    async def get_comment(self, comment_id: str) -> Optional[Comment]: ...

    async def list_published_posts(self, offset: int, limit: int) -> tuple[list[Post], int]: ...

    async def list_drafts_by_author(
        self, author_id: str, offset: int, limit: int
    ) -> tuple[list[Post], int]: ...

    async def list_comments_by_post(self, post_id: str) -> list[Comment]: ...

    async def count_followers(self, user_id: str) -> int: ...

    async def count_following(self, user_id: str) -> int: ...

    async def exists_follow(self, follower_id: str, following_id: str) -> bool: ...

    async def list_follower_users(
        self, user_id: str, offset: int, limit: int
    ) -> tuple[list[User], int]: ...

    async def list_following_users(
        self, user_id: str, offset: int, limit: int
    ) -> tuple[list[User], int]: ...

    async def list_followed_author_ids(self, follower_id: str) -> set[str]: ...

    async def count_likes(self, post_id: str) -> int: ...

    async def exists_like(self, post_id: str, user_id: str) -> bool: ...

    async def count_comments(self, post_id: str) -> int: ...

    async def list_tags_for_post(self, post_id: str) -> list[str]: ...

    async def list_posts_by_tag(
        self, tag_name: str, offset: int, limit: int
    ) -> tuple[list[Post], int]: ...

    async def list_tags(self, offset: int, limit: int) -> tuple[list[Tag], int]: ...

    async def upsert_tag_by_name(self, name: str) -> str: ...

    async def list_followed_author_posts(
        self, follower_id: str, offset: int, limit: int
    ) -> tuple[list[Post], int]: ...


class SqlEntityStore:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    # ─────────────────────── Session helpers ──────────────────────────────

    @asynccontextmanager
    async def _read(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._sessions() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreError(f"Store read failed: {exc}") from exc

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[AsyncSession]:
        """Session inside a transaction; commits on exit, rolls back on error."""
        try:
            async with self._sessions.begin() as session:
                yield session
        except IntegrityError as exc:
            raise ConflictError(f"Conflicting write: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"Store write failed: {exc}") from exc

    async def _count(self, stmt) -> int:
        async with self._read() as session:
            return int(await session.scalar(stmt) or 0)

    async def _page(self, stmt, count_stmt, offset: int, limit: int) -> tuple[list, int]:
        async with self._read() as session:
            total = int(await session.scalar(count_stmt) or 0)
            if total == 0:
                return [], 0
            rows = await session.scalars(stmt.offset(offset).limit(limit))
            return list(rows.all()), total

    # ─────────────────────── Point lookups ────────────────────────────────

    async def get_user(self, user_id: str) -> Optional[User]:
        async with self._read() as session:
            return await session.get(User, user_id)

    async def get_post(self, post_id: str) -> Optional[Post]:
        async with self._read() as session:
            return await session.get(Post, post_id)

    async def get_comment(self, comment_id: str) -> Optional[Comment]:
        async with self._read() as session:
            return await session.get(Comment, comment_id)

    async def get_tag_by_name(self, name: str) -> Optional[Tag]:
        async with self._read() as session:
            return await session.scalar(select(Tag).where(Tag.name == name))

    # ─────────────────────── Post scans ───────────────────────────────────

    async def list_published_posts(self, offset: int, limit: int) -> tuple[list[Post], int]:
        stmt = (
            select(Post)
            .where(Post.is_published.is_(True))
            .order_by(Post.published_at.desc(), Post.id.desc())
        )
        count_stmt = select(func.count()).select_from(Post).where(Post.is_published.is_(True))
        return await self._page(stmt, count_stmt, offset, limit)

    async def list_drafts_by_author(
        self, author_id: str, offset: int, limit: int
    ) -> tuple[list[Post], int]:
        where = (Post.author_id == author_id, Post.is_published.is_(False))
        stmt = select(Post).where(*where).order_by(Post.created_at.desc(), Post.id.desc())
        count_stmt = select(func.count()).select_from(Post).where(*where)
        return await self._page(stmt, count_stmt, offset, limit)

    async def list_followed_author_posts(
        self, follower_id: str, offset: int, limit: int
    ) -> tuple[list[Post], int]:
        where = (Follow.follower_id == follower_id, Post.is_published.is_(True))
        stmt = (
            select(Post)
            .join(Follow, Follow.following_id == Post.author_id)
            .where(*where)
            .order_by(Post.published_at.desc(), Post.id.desc())
        )
        count_stmt = (
            select(func.count())
            .select_from(Post)
            .join(Follow, Follow.following_id == Post.author_id)
            .where(*where)
        )
        return await self._page(stmt, count_stmt, offset, limit)

    async def list_posts_by_tag(
        self, tag_name: str, offset: int, limit: int
    ) -> tuple[list[Post], int]:
        where = (Tag.name == tag_name, Post.is_published.is_(True))
        stmt = (
            select(Post)
            .join(PostTag, PostTag.post_id == Post.id)
            .join(Tag, Tag.id == PostTag.tag_id)
            .where(*where)
            .order_by(Post.published_at.desc(), Post.id.desc())
        )
        count_stmt = (
            select(func.count())
            .select_from(Post)
            .join(PostTag, PostTag.post_id == Post.id)
            .join(Tag, Tag.id == PostTag.tag_id)
            .where(*where)
        )
        return await self._page(stmt, count_stmt, offset, limit)

    # ─────────────────────── Comments ─────────────────────────────────────

    async def list_comments_by_post(self, post_id: str) -> list[Comment]:
        async with self._read() as session:
            rows = await session.scalars(
                select(Comment)
                .where(Comment.post_id == post_id)
                .order_by(Comment.created_at.asc(), Comment.id.asc())
            )
            return list(rows.all())

    async def count_comments(self, post_id: str) -> int:
        return await self._count(
            select(func.count()).select_from(Comment).where(Comment.post_id == post_id)
        )

    # ─────────────────────── Social graph ─────────────────────────────────

    async def count_followers(self, user_id: str) -> int:
        return await self._count(
            select(func.count()).select_from(Follow).where(Follow.following_id == user_id)
        )

    async def count_following(self, user_id: str) -> int:
        return await self._count(
            select(func.count()).select_from(Follow).where(Follow.follower_id == user_id)
        )

    async def exists_follow(self, follower_id: str, following_id: str) -> bool:
        async with self._read() as session:
            return bool(
                await session.scalar(
                    select(
                        exists().where(
                            Follow.follower_id == follower_id,
                            Follow.following_id == following_id,
                        )
                    )
                )
            )

    async def list_followed_author_ids(self, follower_id: str) -> set[str]:
        async with self._read() as session:
            rows = await session.scalars(
                select(Follow.following_id).where(Follow.follower_id == follower_id)
            )
            return set(rows.all())

    async def list_follower_users(
        self, user_id: str, offset: int, limit: int
    ) -> tuple[list[User], int]:
        stmt = (
            select(User)
            .join(Follow, Follow.follower_id == User.id)
            .where(Follow.following_id == user_id)
            .order_by(Follow.created_at.desc(), Follow.id.desc())
        )
        count_stmt = select(func.count()).select_from(Follow).where(Follow.following_id == user_id)
        return await self._page(stmt, count_stmt, offset, limit)

    async def list_following_users(
        self, user_id: str, offset: int, limit: int
    ) -> tuple[list[User], int]:
        stmt = (
            select(User)
            .join(Follow, Follow.following_id == User.id)
            .where(Follow.follower_id == user_id)
            .order_by(Follow.created_at.desc(), Follow.id.desc())
        )
        count_stmt = select(func.count()).select_from(Follow).where(Follow.follower_id == user_id)
        return await self._page(stmt, count_stmt, offset, limit)

    # ─────────────────────── Likes ────────────────────────────────────────

    async def count_likes(self, post_id: str) -> int:
        return await self._count(
            select(func.count()).select_from(Like).where(Like.post_id == post_id)
        )

    async def exists_like(self, post_id: str, user_id: str) -> bool:
        async with self._read() as session:
            return bool(
                await session.scalar(
                    select(exists().where(Like.post_id == post_id, Like.user_id == user_id))
                )
            )

    # ─────────────────────── Tags ─────────────────────────────────────────

    async def list_tags_for_post(self, post_id: str) -> list[str]:
        async with self._read() as session:
            rows = await session.scalars(
                select(Tag.name)
                .join(PostTag, PostTag.tag_id == Tag.id)
                .where(PostTag.post_id == post_id)
                .order_by(Tag.name.asc())
            )
            return list(rows.all())

    async def list_tags(self, offset: int, limit: int) -> tuple[list[Tag], int]:
        stmt = select(Tag).order_by(Tag.name.asc())
        count_stmt = select(func.count()).select_from(Tag)
        return await self._page(stmt, count_stmt, offset, limit)

    async def upsert_tag_by_name(self, name: str) -> str:
        """Get-or-create by unique name; a lost insert race re-reads the winner."""
        existing = await self.get_tag_by_name(name)
        if existing is not None:
            return existing.id
        try:
            async with self._write() as session:
                tag = Tag(name=name)
                session.add(tag)
                await session.flush()
                return tag.id
        except ConflictError:
            winner = await self.get_tag_by_name(name)
            if winner is None:
                raise
            logger.debug("Tag %r created concurrently, reusing %s", name, winner.id)
            return winner.id

    # ─────────────────────── Writes: users ────────────────────────────────

    async def create_user(
        self,
        username: str,
        email: str,
        full_name: Optional[str] = None,
        bio: Optional[str] = None,
    ) -> User:
        async with self._write() as session:
            taken = await session.scalar(
                select(User.id).where((User.username == username) | (User.email == email))
            )
            if taken:
                raise ConflictError("User with this email or username already exists")
            user = User(username=username, email=email, full_name=full_name, bio=bio)
            session.add(user)
            await session.flush()
            return user

    async def update_user(self, user_id: str, **fields) -> User:
        """Set the given profile fields; fields passed as None are left untouched."""
        async with self._write() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise NotFoundError("User not found")
            for name, value in fields.items():
                if value is not None:
                    setattr(user, name, value)
            user.updated_at = utcnow()
            return user

    # ─────────────────────── Writes: posts ────────────────────────────────

    async def create_post(
        self,
        author_id: str,
        title: str,
        slug: str,
        content: str,
        excerpt: Optional[str] = None,
        cover_image: Optional[str] = None,
    ) -> Post:
        async with self._write() as session:
            now = utcnow()
            post = Post(
                author_id=author_id,
                title=title,
                slug=slug,
                content=content,
                excerpt=excerpt,
                cover_image=cover_image,
                is_published=False,
                created_at=now,
                updated_at=now,
            )
            session.add(post)
            await session.flush()
            return post

    async def update_post(self, post_id: str, **fields) -> Post:
        """Set exactly the given fields (None clears) and bump updated_at."""
        async with self._write() as session:
            post = await session.get(Post, post_id)
            if post is None:
                raise NotFoundError("Post not found")
            for name, value in fields.items():
                setattr(post, name, value)
            post.updated_at = utcnow()
            return post

    async def publish_post(self, post_id: str) -> Post:
        """Publish a draft. Already-published posts are returned unchanged."""
        async with self._write() as session:
            post = await session.get(Post, post_id)
            if post is None:
                raise NotFoundError("Post not found")
            if post.is_published:
                return post
            now = utcnow()
            post.is_published = True
            post.published_at = now
            post.updated_at = now
            return post

    async def delete_post(self, post_id: str) -> bool:
        async with self._write() as session:
            post = await session.get(Post, post_id)
            if post is None:
                return False
            await session.execute(delete(Like).where(Like.post_id == post_id))
            await session.execute(delete(PostTag).where(PostTag.post_id == post_id))
            await session.execute(delete(Comment).where(Comment.post_id == post_id))
            await session.delete(post)
            return True

    async def replace_post_tags(self, post_id: str, tag_ids: Sequence[str]) -> None:
        async with self._write() as session:
            await session.execute(delete(PostTag).where(PostTag.post_id == post_id))
            for tag_id in dict.fromkeys(tag_ids):
                session.add(PostTag(post_id=post_id, tag_id=tag_id))

    # ─────────────────────── Writes: likes ────────────────────────────────

    async def add_like(self, post_id: str, user_id: str) -> None:
        async with self._write() as session:
            already = await session.scalar(
                select(Like.id).where(Like.post_id == post_id, Like.user_id == user_id)
            )
            if already:
                raise ConflictError("You have already liked this post")
            session.add(Like(post_id=post_id, user_id=user_id))

    async def remove_like(self, post_id: str, user_id: str) -> bool:
        async with self._write() as session:
            result = await session.execute(
                delete(Like).where(Like.post_id == post_id, Like.user_id == user_id)
            )
            return result.rowcount > 0

    # ─────────────────────── Writes: follows ──────────────────────────────

    async def add_follow(self, follower_id: str, following_id: str) -> None:
        if follower_id == following_id:
            raise InvalidRequestError("You cannot follow yourself")
        async with self._write() as session:
            already = await session.scalar(
                select(Follow.id).where(
                    Follow.follower_id == follower_id,
                    Follow.following_id == following_id,
                )
            )
            if already:
                raise ConflictError("You are already following this user")
            session.add(Follow(follower_id=follower_id, following_id=following_id))

    async def remove_follow(self, follower_id: str, following_id: str) -> bool:
        async with self._write() as session:
            result = await session.execute(
                delete(Follow).where(
                    Follow.follower_id == follower_id,
                    Follow.following_id == following_id,
                )
            )
            return result.rowcount > 0

    # ─────────────────────── Writes: comments ─────────────────────────────

    async def create_comment(
        self,
        post_id: str,
        author_id: str,
        content: str,
        parent_id: Optional[str] = None,
    ) -> Comment:
        async with self._write() as session:
            if parent_id is not None:
                parent = await session.scalar(
                    select(Comment.id).where(Comment.id == parent_id, Comment.post_id == post_id)
                )
                if parent is None:
                    raise InvalidRequestError("Parent comment not found")
            now = utcnow()
            comment = Comment(
                post_id=post_id,
                author_id=author_id,
                content=content,
                parent_id=parent_id,
                created_at=now,
                updated_at=now,
            )
            session.add(comment)
            await session.flush()
            return comment

    async def update_comment(self, comment_id: str, content: str) -> Comment:
        async with self._write() as session:
            comment = await session.get(Comment, comment_id)
            if comment is None:
                raise NotFoundError("Comment not found")
            comment.content = content
            comment.updated_at = utcnow()
            return comment

    async def delete_comment(self, comment_id: str) -> bool:
        """Delete a comment together with every comment that replies to it."""
        async with self._write() as session:
            if await session.get(Comment, comment_id) is None:
                return False
            doomed = [comment_id]
            frontier = [comment_id]
            while frontier:
                rows = await session.scalars(
                    select(Comment.id).where(Comment.parent_id.in_(frontier))
                )
                frontier = list(rows.all())
                doomed.extend(frontier)
            # Children first so the self-referencing FK is never violated
            for cid in reversed(doomed):
                await session.execute(delete(Comment).where(Comment.id == cid))
            return True
