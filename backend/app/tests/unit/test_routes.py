############################################################
#
# bloghut - Community Blogging Platform
#
# test_routes.py: HTTP-level tests for pages and the engagement API
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""HTTP tests: pages, forms, CSRF, admin guards and the JSON API."""

from backend.app.db import crud, engagement_crud
from backend.app.db.models import NEWCOMER_BADGE_ID, PostStatus, UserRole

POST_BODY = (
    "<p>The ridge trail opens in late June. Bring water, the springs run dry "
    "by August and the climb is longer than the map suggests.</p>"
)


class TestHealth:
    """Tests for the probes."""

    async def test_liveness(self, client):
        response = await client.get("/healthz")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    async def test_readiness(self, client, image_storage):
        await image_storage.initialize()
        response = await client.get("/readyz")
        assert response.status_code == 200
        assert response.json()["checks"] == {"database": True, "uploads": True}


class TestAuthPages:
    """Tests for registration, login and logout."""

    async def test_register_then_login_page(self, client, fetch_csrf, session_factory):
        """A new account gets the Newcomer badge and is not logged in."""
        token = await fetch_csrf("/auth/register")
        response = await client.post(
            "/auth/register",
            data={
                "username": "alice",
                "email": "alice@example.com",
                "password": "secret123",
                "confirm_password": "secret123",
                "csrf_token": token,
            },
        )
        assert response.status_code == 302
        assert response.headers["location"] == "/auth/login"

        async with session_factory() as session:
            user = await crud.get_user_by_username(session, "alice")
            assert user is not None
            assert await crud.user_has_badge(session, user.id, NEWCOMER_BADGE_ID)

        page = await client.get("/auth/login")
        assert "Registration successful! Please login with your credentials." in page.text
        assert (await client.get("/profile")).status_code == 302

    async def test_register_errors_rerender_form(self, client, fetch_csrf):
        token = await fetch_csrf("/auth/register")
        response = await client.post(
            "/auth/register",
            data={
                "username": "al",
                "email": "alice@example.com",
                "password": "secret123",
                "confirm_password": "secret999",
                "csrf_token": token,
            },
        )
        assert response.status_code == 200
        assert "Passwords do not match." in response.text

    async def test_login_and_logout(self, client, make_user, login):
        await make_user("bob")
        response = await login("bob")
        assert response.status_code == 302
        assert response.headers["location"] == "/posts"

        page = await client.get("/posts")
        assert "Welcome back, bob!" in page.text

        response = await client.get("/auth/logout")
        assert response.headers["location"] == "/auth/login"
        assert (await client.get("/profile")).status_code == 302

    async def test_bad_password(self, client, make_user, login):
        await make_user("bob")
        response = await login("bob", "wrong-password")
        assert response.status_code == 200
        assert "Invalid email/username or password." in response.text

    async def test_login_returns_to_requested_page(self, client, make_user, login):
        await make_user("bob")
        response = await client.get("/posts/create")
        assert response.headers["location"] == "/auth/login"
        response = await login("bob")
        assert response.headers["location"] == "/posts/create"


class TestPostPages:
    """Tests for authoring and viewing posts."""

    async def test_create_post(self, client, make_user, login, fetch_csrf, session_factory):
        user = await make_user("carol")
        await login("carol")
        token = await fetch_csrf("/posts/create")
        response = await client.post(
            "/posts/create",
            data={
                "title": "Ridge trail notes",
                "content": POST_BODY,
                "status": "published",
                "csrf_token": token,
            },
        )
        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith("/posts/")

        page = await client.get(location)
        assert page.status_code == 200
        assert "Ridge trail notes" in page.text
        assert "Blog post published successfully!" in page.text

        async with session_factory() as session:
            assert await crud.count_user_posts(session, user.id) == 1

    async def test_form_loads_editor(self, client, make_user, make_post, login):
        author = await make_user("carol")
        post = await make_post(author.id)
        await login("carol")

        page = await client.get("/posts/create")
        assert '<script src="/static/js/editor.js"></script>' in page.text
        assert 'data-draft-key="bloghut_draft_new"' in page.text

        page = await client.get(f"/posts/{post.id}/edit")
        assert f'data-draft-key="bloghut_draft_{post.id}"' in page.text
        assert (await client.get("/static/js/editor.js")).status_code == 200

    async def test_bad_csrf_token_is_a_no_op(self, client, make_user, login, session_factory):
        """A forged form post is refused with a flash, and nothing is saved."""
        user = await make_user("carol")
        await login("carol")
        response = await client.post(
            "/posts/create",
            data={"title": "Forged post", "content": POST_BODY, "csrf_token": "forged"},
        )
        assert response.status_code == 302
        assert response.headers["location"] == "/posts/create"

        page = await client.get("/posts/create")
        assert "Invalid security token. Please try again." in page.text
        async with session_factory() as session:
            assert await crud.count_user_posts(session, user.id) == 0

    async def test_draft_hidden_from_others(self, client, make_user, make_post):
        author = await make_user("carol")
        draft = await make_post(author.id, status=PostStatus.DRAFT)
        response = await client.get(f"/posts/{draft.id}")
        assert response.status_code == 302
        assert response.headers["location"] == "/posts"

    async def test_draft_visible_to_author(self, client, make_user, make_post, login):
        author = await make_user("carol")
        draft = await make_post(author.id, title="Unfinished thoughts", status=PostStatus.DRAFT)
        await login("carol")
        response = await client.get(f"/posts/{draft.id}")
        assert response.status_code == 200
        assert "Unfinished thoughts" in response.text

    async def test_view_counts_non_author_visits(self, client, make_user, make_post, session_factory):
        author = await make_user("carol")
        post = await make_post(author.id)
        await client.get(f"/posts/{post.id}")
        await client.get(f"/posts/{post.id}")
        async with session_factory() as session:
            assert (await crud.get_post(session, post.id)).views == 2

    async def test_page_shows_every_comment(self, client, make_user, make_post, session_factory):
        author = await make_user("carol")
        post = await make_post(author.id)
        async with session_factory() as session:
            for i in range(12):
                await engagement_crud.create_comment(session, post.id, author.id, f"Remark {i:02d}")
            await session.commit()

        page = await client.get(f"/posts/{post.id}")
        assert page.text.count('class="comment d-flex') == 12
        assert "Remark 00" in page.text
        assert "Remark 11" in page.text

    async def test_listing_and_search(self, client, make_user, make_post):
        author = await make_user("carol")
        await make_post(author.id, title="Granite peaks in winter")
        await make_post(author.id, title="Secret draft", status=PostStatus.DRAFT)

        listing = await client.get("/posts")
        assert "Granite peaks in winter" in listing.text
        assert "Secret draft" not in listing.text

        results = await client.get("/posts/search", params={"q": "granite"})
        assert results.status_code == 200
        assert "Granite peaks in winter" in results.text

    async def test_missing_post(self, client):
        response = await client.get("/posts/999")
        assert response.headers["location"] == "/posts"


class TestEngagementApi:
    """Tests for the JSON comment and reaction endpoints."""

    async def test_requires_ajax_header(self, client, make_user, make_post):
        author = await make_user("carol")
        post = await make_post(author.id)
        response = await client.get("/api/reactions", params={"post_id": post.id})
        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid request method"}

    async def test_malformed_ids_answer_in_json(self, client, make_user, login, fetch_csrf, ajax_headers):
        """Non-numeric ids get the usual reply shape instead of a schema error."""
        response = await client.get(
            "/api/comments", params={"post_id": "abc"}, headers=ajax_headers()
        )
        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid post ID"}

        response = await client.get("/api/reactions", params={"post_id": "abc"})
        assert response.json() == {"success": False, "message": "Invalid request method"}

        await make_user("dave")
        await login("dave")
        token = await fetch_csrf("/posts")
        response = await client.delete(
            "/api/comments", params={"comment_id": "1x"}, headers=ajax_headers(token)
        )
        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid comment ID"}

        response = await client.post(
            "/api/reactions", data={"post_id": "", "type": "like"}, headers=ajax_headers(token)
        )
        assert response.json()["success"] is False

    async def test_replies_do_not_keep_load_more_open(
        self, client, make_user, make_post, login, fetch_csrf, ajax_headers
    ):
        author = await make_user("carol")
        post = await make_post(author.id)
        await login("carol")
        token = await fetch_csrf("/posts")

        parent = await client.post(
            "/api/comments",
            data={"post_id": post.id, "comment": "First thoughts"},
            headers=ajax_headers(token),
        )
        parent_id = parent.json()["comment"]["id"]
        reply = await client.post(
            "/api/comments",
            data={"post_id": post.id, "comment": "A follow-up", "parent_comment_id": parent_id},
            headers=ajax_headers(token),
        )
        assert reply.json()["comment_count"] == 2

        listing = await client.get(
            "/api/comments", params={"post_id": post.id, "offset": 1}, headers=ajax_headers()
        )
        body = listing.json()
        assert body["comments"] == []
        assert body["comment_count"] == 2
        assert body["has_more"] is False

    async def test_anonymous_comment_rejected(self, client, make_user, make_post, ajax_headers):
        author = await make_user("carol")
        post = await make_post(author.id)
        response = await client.post(
            "/api/comments",
            data={"post_id": post.id, "comment": "Nice post"},
            headers=ajax_headers(),
        )
        assert response.status_code == 401
        assert response.json()["message"] == "You must be logged in to comment"

    async def test_short_comment(self, client, make_user, make_post, login, fetch_csrf, ajax_headers):
        author = await make_user("carol")
        post = await make_post(author.id)
        await login("carol")
        token = await fetch_csrf("/posts")
        response = await client.post(
            "/api/comments",
            data={"post_id": post.id, "comment": "x"},
            headers=ajax_headers(token),
        )
        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Comment is too short"}

    async def test_missing_csrf_header(self, client, make_user, make_post, login, ajax_headers):
        author = await make_user("carol")
        post = await make_post(author.id)
        await login("carol")
        response = await client.post(
            "/api/comments",
            data={"post_id": post.id, "comment": "Lovely writing"},
            headers=ajax_headers(),
        )
        assert response.status_code == 403

    async def test_comment_round_trip(self, client, make_user, make_post, login, fetch_csrf, ajax_headers):
        author = await make_user("carol")
        await make_user("dave")
        post = await make_post(author.id)
        await login("dave")
        token = await fetch_csrf("/posts")

        response = await client.post(
            "/api/comments",
            data={"post_id": post.id, "comment": "Lovely writing"},
            headers=ajax_headers(token),
        )
        body = response.json()
        assert body["success"] is True
        assert body["comment_count"] == 1
        assert body["comment"]["username"] == "dave"
        assert body["comment"]["can_delete"] is True

        listing = await client.get(
            "/api/comments", params={"post_id": post.id}, headers=ajax_headers()
        )
        assert listing.json()["comment_count"] == 1
        assert listing.json()["has_more"] is False

        deleted = await client.delete(
            "/api/comments",
            params={"comment_id": body["comment"]["id"]},
            headers=ajax_headers(token),
        )
        assert deleted.json()["comment_count"] == 0

    async def test_reaction_toggle(self, client, make_user, make_post, login, fetch_csrf, ajax_headers):
        author = await make_user("carol")
        await make_user("dave")
        post = await make_post(author.id)
        await login("dave")
        token = await fetch_csrf("/posts")

        first = await client.post(
            "/api/reactions", data={"post_id": post.id, "type": "like"}, headers=ajax_headers(token)
        )
        assert first.json()["message"] == "Reaction added"
        assert first.json()["counts"] == {"like": 1, "dislike": 0}

        second = await client.post(
            "/api/reactions", data={"post_id": post.id, "type": "like"}, headers=ajax_headers(token)
        )
        assert second.json()["message"] == "Reaction removed"
        assert second.json()["total"] == 0

    async def test_reactions_readable_anonymously(self, client, make_user, make_post, ajax_headers):
        author = await make_user("carol")
        post = await make_post(author.id)
        response = await client.get(
            "/api/reactions", params={"post_id": post.id}, headers=ajax_headers()
        )
        assert response.status_code == 200
        assert response.json()["user_reaction"] is None


class TestAdminPages:
    """Tests for the admin console guards."""

    async def test_anonymous_sent_to_login(self, client):
        response = await client.get("/admin")
        assert response.headers["location"] == "/auth/login"

    async def test_non_admin_refused(self, client, make_user, login):
        await make_user("dave")
        await login("dave")
        response = await client.get("/admin")
        assert response.status_code == 302
        assert response.headers["location"] == "/posts"

    async def test_dashboard_renders(self, client, make_user, login):
        await make_user("root", role=UserRole.ADMIN)
        await login("root")
        response = await client.get("/admin")
        assert response.status_code == 200
        assert "Admin Dashboard" in response.text

    async def test_admin_cannot_modify_self(self, client, make_user, login, fetch_csrf, session_factory):
        admin = await make_user("root", role=UserRole.ADMIN)
        await login("root")
        token = await fetch_csrf("/admin/users")
        response = await client.post(
            "/admin/users",
            data={"action": "toggle_role", "user_id": admin.id, "csrf_token": token},
        )
        assert response.headers["location"] == "/admin/users"

        page = await client.get("/admin/users")
        assert "You cannot modify your own account." in page.text
        async with session_factory() as session:
            assert (await crud.get_user_by_id(session, admin.id)).role == UserRole.ADMIN

    async def test_category_in_use_not_deleted(
        self, client, make_user, make_post, login, fetch_csrf, session_factory
    ):
        admin = await make_user("root", role=UserRole.ADMIN)
        async with session_factory() as session:
            category = await crud.create_category(session, "Travel", "travel", None)
            await session.commit()
        await make_post(admin.id, category_id=category.id)
        await login("root")
        token = await fetch_csrf("/admin/categories")

        response = await client.post(
            "/admin/categories",
            data={"action": "delete", "category_id": category.id, "csrf_token": token},
        )
        assert response.headers["location"] == "/admin/categories"
        async with session_factory() as session:
            assert await crud.get_category_by_id(session, category.id) is not None
