from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest

from content_api.errors import StoreError


async def signup(client, username: str) -> tuple[str, dict[str, str]]:
    resp = await client.post(
        "/users/", json={"username": username, "email": f"{username}@example.com"}
    )
    assert resp.status_code == 201
    body = resp.json()
    return body["user"]["id"], {"Authorization": f"Bearer {body['access_token']}"}


async def publish(client, headers, title: str = "Hello World", tags=None) -> dict:
    created = await client.post(
        "/posts/", json={"title": title, "content": "Body", "tags": tags}, headers=headers
    )
    assert created.status_code == 201
    resp = await client.patch(f"/posts/{created.json()['id']}/publish", headers=headers)
    assert resp.status_code == 200
    return resp.json()


class TestUsers:
    @pytest.mark.asyncio
    async def test_signup_returns_profile_and_token(self, client):
        resp = await client.post(
            "/users/",
            json={"username": "alice", "email": "alice@example.com", "full_name": "Alice"},
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["full_name"] == "Alice"
        assert (body["user"]["follower_count"], body["user"]["following_count"]) == (0, 0)

    @pytest.mark.asyncio
    async def test_duplicate_username_is_a_conflict(self, client):
        await signup(client, "alice")
        resp = await client.post("/users/", json={"username": "alice", "email": "x@example.com"})
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_profile_needs_a_token(self, client):
        assert (await client.get("/users/profile")).status_code == 401
        bad = {"Authorization": "Bearer not-a-jwt"}
        assert (await client.get("/users/profile", headers=bad)).status_code == 401

    @pytest.mark.asyncio
    async def test_update_profile(self, client):
        _, headers = await signup(client, "alice")

        resp = await client.put("/users/profile", json={"bio": "hi"}, headers=headers)

        assert resp.status_code == 200
        assert resp.json()["bio"] == "hi"
        assert (await client.get("/users/profile", headers=headers)).json()["bio"] == "hi"

    @pytest.mark.asyncio
    async def test_unknown_user(self, client):
        assert (await client.get("/users/missing")).status_code == 404


class TestFollows:
    @pytest.mark.asyncio
    async def test_follow_lifecycle(self, client):
        alice_id, alice = await signup(client, "alice")
        bob_id, _ = await signup(client, "bob")

        followed = await client.post(f"/users/{bob_id}/follow", headers=alice)
        again = await client.post(f"/users/{bob_id}/follow", headers=alice)
        status = await client.get(f"/users/{bob_id}/follow-status", headers=alice)
        bob = await client.get(f"/users/{bob_id}")
        followers = await client.get(f"/users/{bob_id}/followers")

        assert followed.status_code == 201
        assert followed.json() == {
            "follower_id": alice_id,
            "following_id": bob_id,
            "is_following": True,
        }
        assert again.status_code == 409
        assert status.json()["is_following"] is True
        assert bob.json()["follower_count"] == 1
        assert [u["id"] for u in followers.json()["data"]] == [alice_id]

        assert (await client.delete(f"/users/{bob_id}/unfollow", headers=alice)).status_code == 204
        assert (await client.delete(f"/users/{bob_id}/unfollow", headers=alice)).status_code == 404
        assert (await client.get(f"/users/{bob_id}")).json()["follower_count"] == 0

    @pytest.mark.asyncio
    async def test_self_follow_is_a_bad_request(self, client):
        alice_id, alice = await signup(client, "alice")
        assert (await client.post(f"/users/{alice_id}/follow", headers=alice)).status_code == 400

    @pytest.mark.asyncio
    async def test_anonymous_follow_status(self, client):
        bob_id, _ = await signup(client, "bob")

        resp = await client.get(f"/users/{bob_id}/follow-status")

        assert resp.json() == {"follower_id": None, "following_id": bob_id, "is_following": False}


class TestPosts:
    @pytest.mark.asyncio
    async def test_draft_then_publish(self, client):
        _, alice = await signup(client, "alice")
        _, bob = await signup(client, "bob")

        created = await client.post(
            "/posts/",
            json={"title": "Hello, World!", "content": "Body", "tags": ["intro", "intro"]},
            headers=alice,
        )
        post = created.json()

        assert created.status_code == 201
        assert post["slug"] == "hello-world"
        assert post["tags"] == ["intro"]
        assert post["is_published"] is False
        assert (await client.get("/posts/")).json()["total"] == 0
        assert (await client.get(f"/posts/{post['id']}", headers=bob)).status_code == 404
        assert (await client.get("/posts/drafts", headers=alice)).json()["total"] == 1

        published = await client.patch(f"/posts/{post['id']}/publish", headers=alice)
        again = await client.patch(f"/posts/{post['id']}/publish", headers=alice)

        assert published.json()["is_published"] is True
        assert again.json()["published_at"] == published.json()["published_at"]
        assert (await client.get(f"/posts/{post['id']}")).status_code == 200
        assert (await client.get("/posts/")).json()["total"] == 1

    @pytest.mark.asyncio
    async def test_only_the_author_may_edit(self, client):
        _, alice = await signup(client, "alice")
        _, bob = await signup(client, "bob")
        post = await publish(client, alice)

        forbidden = await client.put(f"/posts/{post['id']}", json={"title": "Mine"}, headers=bob)
        edited = await client.put(
            f"/posts/{post['id']}", json={"title": "New Title", "tags": []}, headers=alice
        )
        empty = await client.put(f"/posts/{post['id']}", json={}, headers=alice)

        assert forbidden.status_code == 403
        assert edited.json()["slug"] == "new-title"
        assert edited.json()["tags"] == []
        assert empty.status_code == 400

    @pytest.mark.asyncio
    async def test_tags_only_edit_bumps_updated_at(self, client):
        _, alice = await signup(client, "alice")
        post = await publish(client, alice, tags=["old"])

        edited = await client.put(f"/posts/{post['id']}", json={"tags": ["new"]}, headers=alice)

        assert edited.status_code == 200
        assert edited.json()["tags"] == ["new"]
        assert datetime.fromisoformat(edited.json()["updated_at"]) > datetime.fromisoformat(
            post["updated_at"]
        )

    @pytest.mark.asyncio
    async def test_explicit_null_clears_optional_fields(self, client):
        _, alice = await signup(client, "alice")
        created = await client.post(
            "/posts/",
            json={"title": "T", "content": "B", "excerpt": "short", "cover_image": "c.png"},
            headers=alice,
        )
        post_id = created.json()["id"]

        untouched = await client.put(f"/posts/{post_id}", json={"content": "B2"}, headers=alice)
        cleared = await client.put(
            f"/posts/{post_id}", json={"excerpt": None, "cover_image": None}, headers=alice
        )
        no_title = await client.put(f"/posts/{post_id}", json={"title": None}, headers=alice)

        assert untouched.json()["excerpt"] == "short"
        assert (cleared.json()["excerpt"], cleared.json()["cover_image"]) == (None, None)
        assert cleared.json()["content"] == "B2"
        assert no_title.status_code == 400

    @pytest.mark.asyncio
    async def test_delete(self, client):
        _, alice = await signup(client, "alice")
        _, bob = await signup(client, "bob")
        post = await publish(client, alice)

        assert (await client.delete(f"/posts/{post['id']}", headers=bob)).status_code == 403
        assert (await client.delete(f"/posts/{post['id']}", headers=alice)).status_code == 204
        assert (await client.get(f"/posts/{post['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_like_and_unlike(self, client):
        _, alice = await signup(client, "alice")
        _, bob = await signup(client, "bob")
        post = await publish(client, alice)

        liked = await client.post(f"/posts/{post['id']}/like", headers=bob)
        twice = await client.post(f"/posts/{post['id']}/like", headers=bob)
        as_bob = await client.get(f"/posts/{post['id']}", headers=bob)
        anonymous = await client.get(f"/posts/{post['id']}")

        assert liked.status_code == 201
        assert liked.json() == {"post_id": post["id"], "like_count": 1, "is_liked": True}
        assert twice.status_code == 409
        assert as_bob.json()["is_liked"] is True
        assert anonymous.json()["is_liked"] is False
        assert anonymous.json()["like_count"] == 1

        unliked = await client.delete(f"/posts/{post['id']}/unlike", headers=bob)
        assert unliked.json() == {"post_id": post["id"], "like_count": 0, "is_liked": False}
        assert (await client.delete(f"/posts/{post['id']}/unlike", headers=bob)).status_code == 404

    @pytest.mark.asyncio
    async def test_drafts_cannot_be_liked(self, client):
        _, alice = await signup(client, "alice")
        draft = (
            await client.post("/posts/", json={"title": "T", "content": "B"}, headers=alice)
        ).json()

        assert (await client.post(f"/posts/{draft['id']}/like", headers=alice)).status_code == 404

    @pytest.mark.asyncio
    async def test_feed(self, client):
        _, alice = await signup(client, "alice")
        bob_id, bob = await signup(client, "bob")
        _, carol = await signup(client, "carol")
        await client.post(f"/users/{bob_id}/follow", headers=alice)
        from_bob = await publish(client, bob, "From Bob")
        await publish(client, carol, "From Carol")

        feed = await client.get("/posts/feed", headers=alice)

        assert [p["id"] for p in feed.json()["data"]] == [from_bob["id"]]
        assert (await client.get("/posts/feed")).status_code == 401

    @pytest.mark.asyncio
    async def test_paging_parameters(self, client):
        _, alice = await signup(client, "alice")
        for i in range(3):
            await publish(client, alice, f"Post {i}")

        page = (await client.get("/posts/", params={"page": 2, "limit": 2})).json()

        assert (page["page"], page["limit"], page["total"], page["total_pages"]) == (2, 2, 3, 2)
        assert len(page["data"]) == 1
        assert (await client.get("/posts/", params={"page": 0})).status_code == 422


class TestComments:
    @pytest.mark.asyncio
    async def test_thread(self, client):
        _, alice = await signup(client, "alice")
        _, bob = await signup(client, "bob")
        post = await publish(client, alice)
        url = f"/posts/{post['id']}/comments/"

        root = (await client.post(url, json={"content": "first"}, headers=bob)).json()
        reply = (
            await client.post(url, json={"content": "re", "parent_id": root["id"]}, headers=alice)
        ).json()
        await client.post(url, json={"content": "deep", "parent_id": reply["id"]}, headers=bob)

        thread = (await client.get(url)).json()

        assert [c["id"] for c in thread] == [root["id"]]
        assert [c["id"] for c in thread[0]["replies"]] == [reply["id"]]
        assert thread[0]["replies"][0]["replies"] == []
        assert (await client.get(f"/posts/{post['id']}")).json()["comment_count"] == 3

    @pytest.mark.asyncio
    async def test_parent_from_another_post_is_rejected(self, client):
        _, alice = await signup(client, "alice")
        first = await publish(client, alice, "First")
        second = await publish(client, alice, "Second")
        foreign = (
            await client.post(
                f"/posts/{first['id']}/comments/", json={"content": "x"}, headers=alice
            )
        ).json()

        resp = await client.post(
            f"/posts/{second['id']}/comments/",
            json={"content": "y", "parent_id": foreign["id"]},
            headers=alice,
        )

        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_edit_and_delete_own_comment(self, client):
        _, alice = await signup(client, "alice")
        _, bob = await signup(client, "bob")
        post = await publish(client, alice)
        url = f"/posts/{post['id']}/comments/"
        comment = (await client.post(url, json={"content": "typo"}, headers=bob)).json()

        assert (
            await client.put(f"{url}{comment['id']}", json={"content": "x"}, headers=alice)
        ).status_code == 403
        edited = await client.put(f"{url}{comment['id']}", json={"content": "fixed"}, headers=bob)
        assert edited.json()["content"] == "fixed"

        assert (await client.delete(f"{url}{comment['id']}", headers=bob)).status_code == 204
        assert (await client.get(url)).json() == []

    @pytest.mark.asyncio
    async def test_comments_of_unknown_post(self, client):
        assert (await client.get("/posts/missing/comments/")).status_code == 404


class TestTags:
    @pytest.mark.asyncio
    async def test_tag_listing_and_posts_by_tag(self, client):
        _, alice = await signup(client, "alice")
        tagged = await publish(client, alice, "Tagged", tags=["python", "web"])
        await publish(client, alice, "Untagged")

        tags = (await client.get("/tags/")).json()
        by_tag = (await client.get("/tags/python/posts")).json()

        assert [t["name"] for t in tags["data"]] == ["python", "web"]
        assert [p["id"] for p in by_tag["data"]] == [tagged["id"]]


class TestServiceHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    @pytest.mark.asyncio
    async def test_store_outage_on_primary_is_503(self, client, app):
        with patch.object(
            app.state.store, "list_published_posts", new=AsyncMock(side_effect=StoreError("down"))
        ):
            resp = await client.get("/posts/")

        assert resp.status_code == 503

    @pytest.mark.asyncio
    async def test_store_outage_on_aggregate_still_serves(self, client, app):
        _, alice = await signup(client, "alice")
        post = await publish(client, alice)

        with patch.object(
            app.state.store, "count_likes", new=AsyncMock(side_effect=StoreError("down"))
        ):
            resp = await client.get(f"/posts/{post['id']}")

        assert resp.status_code == 200
        assert resp.json()["like_count"] == 0
