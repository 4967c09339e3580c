############################################################
#
# bloghut - Community Blogging Platform
#
# test_services.py: Service-layer tests against an in-memory database
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Service-layer tests: accounts, posts, engagement, categories, badges."""

from functools import lru_cache

import pytest
from sqlalchemy import func, select

from backend.app.core.exceptions import (
    CategoryInUse,
    InvalidCredentials,
    NotFound,
    PermissionDenied,
    ValidationFailed,
)
from backend.app.db import crud, engagement_crud
from backend.app.db.models import (
    FIRST_POST_BADGE_ID,
    NEWCOMER_BADGE_ID,
    PROLIFIC_WRITER_BADGE_ID,
    Comment,
    Reaction,
    ReactionType,
    UserRole,
)
from backend.app.security.password_hash import hash_password, verify_password
from backend.app.services import auth as auth_service
from backend.app.services import categories as category_service
from backend.app.services import engagement
from backend.app.services import posts as post_service
from backend.app.services import users as user_service
from backend.app.services.posts import PostForm
from backend.app.services.users import ProfileForm

PASSWORD = "secret123"
BODY = (
    "<p>Spring arrives late in the high country, and the first wildflowers "
    "show up along the creek beds in early June.</p>"
)


@lru_cache
def _password_hash() -> str:
    return hash_password(PASSWORD)


async def _user(db, username, role=UserRole.USER):
    user = await crud.create_user(db, username, f"{username}@example.com", _password_hash(), role=role)
    await db.commit()
    return user


async def _post(db, author, title="Notes from the trail", status="published", category_id=None):
    form = PostForm(title=title, content=BODY, category_id=category_id, status=status)
    return await post_service.create_post(db, author, form)


async def _count(db, model, *filters):
    result = await db.execute(select(func.count()).select_from(model).where(*filters))
    return result.scalar_one()


class TestRegistration:
    """Tests for account creation and login."""

    async def test_register_creates_user_with_newcomer_badge(self, db):
        user = await auth_service.register_user(db, "alice", "Alice@Example.com", PASSWORD, PASSWORD)
        assert user.role == UserRole.USER
        assert user.email == "alice@example.com"
        assert verify_password(PASSWORD, user.password_hash)
        assert await crud.user_has_badge(db, user.id, NEWCOMER_BADGE_ID)

    async def test_duplicate_username_and_email(self, db):
        await auth_service.register_user(db, "alice", "alice@example.com", PASSWORD, PASSWORD)
        with pytest.raises(ValidationFailed) as exc:
            await auth_service.register_user(db, "alice", "alice@example.com", PASSWORD, PASSWORD)
        assert auth_service.USERNAME_TAKEN in exc.value.errors
        assert auth_service.EMAIL_TAKEN in exc.value.errors

    async def test_invalid_fields_are_all_reported(self, db):
        with pytest.raises(ValidationFailed) as exc:
            await auth_service.register_user(db, "a!", "nope", "123", "321")
        assert len(exc.value.errors) == 4
        assert await crud.count_users(db) == 0

    async def test_login_by_username_or_email(self, db):
        await _user(db, "bob")
        assert (await auth_service.authenticate(db, "bob", PASSWORD)).username == "bob"
        assert (await auth_service.authenticate(db, "bob@example.com", PASSWORD)).username == "bob"

    async def test_wrong_password(self, db):
        await _user(db, "bob")
        with pytest.raises(InvalidCredentials):
            await auth_service.authenticate(db, "bob", "wrong-password")

    async def test_password_reset_is_single_use(self, db):
        await _user(db, "bob")
        token = await auth_service.request_password_reset(db, "bob@example.com")
        assert token
        await auth_service.reset_password(db, token, "newsecret", "newsecret")
        assert (await auth_service.authenticate(db, "bob", "newsecret")).username == "bob"
        with pytest.raises(ValidationFailed) as exc:
            await auth_service.reset_password(db, token, "another1", "another1")
        assert exc.value.errors == [auth_service.RESET_LINK_INVALID]

    async def test_reset_for_unknown_email_gives_no_token(self, db):
        assert await auth_service.request_password_reset(db, "ghost@example.com") is None


class TestPosts:
    """Tests for authoring and visibility."""

    async def test_first_post_badge(self, db):
        author = await _user(db, "carol")
        await _post(db, author)
        assert await crud.user_has_badge(db, author.id, FIRST_POST_BADGE_ID)
        assert not await crud.user_has_badge(db, author.id, PROLIFIC_WRITER_BADGE_ID)

    async def test_prolific_writer_badge_at_ten_posts(self, db):
        author = await _user(db, "carol")
        for i in range(10):
            await _post(db, author, title=f"Trail notes {i}")
        assert await crud.user_has_badge(db, author.id, PROLIFIC_WRITER_BADGE_ID)

    async def test_content_is_sanitized(self, db):
        author = await _user(db, "carol")
        form = PostForm(title="Unsafe post", content=BODY + "<script>alert(1)</script>")
        post = await post_service.create_post(db, author, form)
        assert "<script" not in post.content

    async def test_invalid_form_raises(self, db):
        author = await _user(db, "carol")
        with pytest.raises(ValidationFailed) as exc:
            await post_service.create_post(db, author, PostForm(title="Hi", content="short"))
        assert "Title must be at least 5 characters." in exc.value.errors
        assert await crud.count_posts(db) == 0

    async def test_draft_visibility(self, db):
        author = await _user(db, "carol")
        reader = await _user(db, "dave")
        admin = await _user(db, "root", UserRole.ADMIN)
        draft = await _post(db, author, status="draft")
        assert post_service.can_view(draft, author)
        assert post_service.can_view(draft, admin)
        assert not post_service.can_view(draft, reader)
        assert not post_service.can_view(draft, None)

    async def test_only_author_or_admin_may_edit(self, db):
        author = await _user(db, "carol")
        reader = await _user(db, "dave")
        post = await _post(db, author)
        with pytest.raises(PermissionDenied):
            await post_service.update_post(db, post, reader, PostForm(title="Taken over", content=BODY))

    async def test_delete_cascades_to_engagement(self, db):
        author = await _user(db, "carol")
        reader = await _user(db, "dave")
        post = await _post(db, author)
        post_id = post.id
        await engagement.add_comment(db, post_id, reader, "Lovely writing")
        await engagement.set_reaction(db, post_id, reader, "like")

        await post_service.delete_post(db, post, author)

        assert await crud.get_post(db, post_id) is None
        assert await _count(db, Comment, Comment.blog_id == post_id) == 0
        assert await _count(db, Reaction, Reaction.blog_id == post_id) == 0

    async def test_author_views_are_not_counted(self, db):
        author = await _user(db, "carol")
        reader = await _user(db, "dave")
        post = await _post(db, author)
        assert not await post_service.record_view(db, post, author)
        assert await post_service.record_view(db, post, reader)
        assert await post_service.record_view(db, post, None)
        assert (await crud.get_post(db, post.id, refresh=True)).views == 2


class TestReactions:
    """Tests for like/dislike toggling."""

    async def test_toggle_and_switch(self, db):
        author = await _user(db, "carol")
        reader = await _user(db, "dave")
        post = await _post(db, author)

        summary = await engagement.set_reaction(db, post.id, reader, "like")
        assert summary["action"] == "added"
        assert summary["counts"] == {"like": 1, "dislike": 0}
        assert summary["user_reaction"] == "like"

        summary = await engagement.set_reaction(db, post.id, reader, "dislike")
        assert summary["action"] == "changed"
        assert summary["counts"] == {"like": 0, "dislike": 1}

        summary = await engagement.set_reaction(db, post.id, reader, "dislike")
        assert summary["action"] == "removed"
        assert summary["total"] == 0
        assert summary["user_reaction"] is None

    async def test_one_reaction_per_user(self, db):
        author = await _user(db, "carol")
        reader = await _user(db, "dave")
        post = await _post(db, author)
        await engagement.set_reaction(db, post.id, reader, "like")
        await engagement.set_reaction(db, post.id, reader, "dislike")
        assert await _count(db, Reaction, Reaction.blog_id == post.id) == 1

    async def test_concurrent_insert_becomes_update(self, db, session_factory, monkeypatch):
        """A row stored by another request between lookup and insert is updated instead."""
        author = await _user(db, "carol")
        reader = await _user(db, "dave")
        post = await _post(db, author)
        post_id = post.id
        real_lookup = engagement_crud.get_user_reaction
        lookups = []

        async def lookup_then_lose_race(session, user_id, blog_id):
            lookups.append(blog_id)
            if len(lookups) == 1:
                async with session_factory() as other:
                    await engagement_crud.create_reaction(other, user_id, blog_id, ReactionType.DISLIKE)
                    await other.commit()
                return None
            return await real_lookup(session, user_id, blog_id)

        monkeypatch.setattr(engagement_crud, "get_user_reaction", lookup_then_lose_race)
        summary = await engagement.set_reaction(db, post_id, reader, "like")

        assert summary["action"] == "changed"
        assert summary["user_reaction"] == "like"
        assert summary["counts"] == {"like": 1, "dislike": 0}
        assert await _count(db, Reaction, Reaction.blog_id == post_id) == 1

    async def test_invalid_type(self, db):
        author = await _user(db, "carol")
        post = await _post(db, author)
        with pytest.raises(ValidationFailed):
            await engagement.set_reaction(db, post.id, author, "love")

    async def test_hidden_draft_cannot_be_reacted_to(self, db):
        author = await _user(db, "carol")
        reader = await _user(db, "dave")
        draft = await _post(db, author, status="draft")
        with pytest.raises(NotFound):
            await engagement.set_reaction(db, draft.id, reader, "like")

    async def test_remove_reaction(self, db):
        author = await _user(db, "carol")
        reader = await _user(db, "dave")
        post = await _post(db, author)
        await engagement.set_reaction(db, post.id, reader, "like")
        summary = await engagement.remove_reaction(db, post.id, reader)
        assert summary["total"] == 0


class TestComments:
    """Tests for comments."""

    async def test_add_returns_new_count(self, db):
        author = await _user(db, "carol")
        reader = await _user(db, "dave")
        post = await _post(db, author)
        comment, count = await engagement.add_comment(db, post.id, reader, "  Great read!  ")
        assert comment.comment == "Great read!"
        assert comment.author.username == "dave"
        assert count == 1

    async def test_too_short(self, db):
        author = await _user(db, "carol")
        post = await _post(db, author)
        with pytest.raises(ValidationFailed) as exc:
            await engagement.add_comment(db, post.id, author, "x")
        assert exc.value.message == "Comment is too short"

    async def test_batches_newest_first(self, db):
        author = await _user(db, "carol")
        post = await _post(db, author)
        for i in range(12):
            await engagement.add_comment(db, post.id, author, f"Comment number {i}")

        first, total, _ = await engagement.list_comments(db, post.id, author, offset=0, limit=10)
        rest, _, _ = await engagement.list_comments(db, post.id, author, offset=10, limit=10)
        assert total == 12
        assert len(first) == 10
        assert len(rest) == 2
        assert first[0].comment == "Comment number 11"

    async def test_replies_count_but_are_not_paged(self, db):
        """Replies add to the comment count but not to the top-level total."""
        author = await _user(db, "carol")
        reader = await _user(db, "dave")
        post = await _post(db, author)
        parent, _ = await engagement.add_comment(db, post.id, author, "Top level comment")
        reply, count = await engagement.add_comment(db, post.id, reader, "A reply", parent.id)
        assert reply.parent_comment_id == parent.id
        assert count == 2

        comments, total, top_level = await engagement.list_comments(db, post.id, author)
        assert [c.id for c in comments] == [parent.id]
        assert (total, top_level) == (2, 1)

    async def test_delete_permissions(self, db):
        author = await _user(db, "carol")
        reader = await _user(db, "dave")
        admin = await _user(db, "root", UserRole.ADMIN)
        post = await _post(db, author)
        comment, _ = await engagement.add_comment(db, post.id, reader, "First!")
        comment_id = comment.id

        with pytest.raises(PermissionDenied):
            await engagement.delete_comment(db, comment_id, author)
        post_id, remaining = await engagement.delete_comment(db, comment_id, admin)
        assert (post_id, remaining) == (post.id, 0)

    async def test_delete_missing(self, db):
        admin = await _user(db, "root", UserRole.ADMIN)
        with pytest.raises(NotFound):
            await engagement.delete_comment(db, 999, admin)


class TestCategories:
    """Tests for category management."""

    async def test_slug_generated(self, db):
        category = await category_service.create_category(db, "Web Development", "All things web")
        assert category.slug == "web-development"

    async def test_duplicate_name_rejected(self, db):
        await category_service.create_category(db, "Travel")
        with pytest.raises(ValidationFailed) as exc:
            await category_service.create_category(db, "travel")
        assert exc.value.errors == [category_service.DUPLICATE_CATEGORY]

    async def test_delete_in_use_is_refused(self, db):
        author = await _user(db, "carol")
        category = await category_service.create_category(db, "Travel")
        await _post(db, author, status="draft", category_id=category.id)
        with pytest.raises(CategoryInUse):
            await category_service.delete_category(db, category.id)
        assert await crud.get_category_by_id(db, category.id) is not None

    async def test_delete_unused(self, db):
        category = await category_service.create_category(db, "Travel")
        await category_service.delete_category(db, category.id)
        assert await crud.get_category_by_id(db, category.id) is None


class TestUsers:
    """Tests for profile updates and admin user management."""

    async def test_admin_cannot_modify_self(self, db):
        admin = await _user(db, "root", UserRole.ADMIN)
        with pytest.raises(PermissionDenied) as exc:
            await user_service.toggle_role(db, admin, admin.id)
        assert exc.value.message == user_service.SELF_MODIFICATION
        with pytest.raises(PermissionDenied):
            await user_service.delete_account(db, admin, admin.id)

    async def test_toggle_role(self, db):
        admin = await _user(db, "root", UserRole.ADMIN)
        member = await _user(db, "dave")
        assert (await user_service.toggle_role(db, admin, member.id)).role == UserRole.ADMIN
        assert (await user_service.toggle_role(db, admin, member.id)).role == UserRole.USER

    async def test_delete_account_cascades(self, db):
        admin = await _user(db, "root", UserRole.ADMIN)
        member = await _user(db, "dave")
        member_id = member.id
        await _post(db, member)
        await user_service.delete_account(db, admin, member_id)
        assert await crud.get_user_by_id(db, member_id) is None
        assert await crud.count_user_posts(db, member_id) == 0

    async def test_password_change_needs_current_password(self, db):
        member = await _user(db, "dave")
        form = ProfileForm(username="dave", email="dave@example.com", new_password="newsecret",
                           confirm_password="newsecret")
        with pytest.raises(ValidationFailed) as exc:
            await user_service.update_profile(db, member, form)
        assert exc.value.errors == ["Current password is required to change password."]

    async def test_profile_update(self, db):
        member = await _user(db, "dave")
        form = ProfileForm(username="david", email="david@example.com", bio="Hiker",
                           current_password=PASSWORD, new_password="newsecret",
                           confirm_password="newsecret")
        updated = await user_service.update_profile(db, member, form)
        assert updated.username == "david"
        assert updated.bio == "Hiker"
        assert verify_password("newsecret", updated.password_hash)

    async def test_username_taken_on_profile(self, db):
        await _user(db, "carol")
        member = await _user(db, "dave")
        form = ProfileForm(username="carol", email="dave@example.com")
        with pytest.raises(ValidationFailed) as exc:
            await user_service.update_profile(db, member, form)
        assert exc.value.errors == ["Username already taken."]
