############################################################
#
# bloghut - Community Blogging Platform
#
# posts.py: Blog post authoring, visibility and view counting
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Post repository services.

Create and edit validate the form, sanitise the HTML body, manage the
featured image file and commit. Authorisation is owner-or-admin for every
mutation; drafts are visible only to their owner and admins.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import InvalidUpload, PermissionDenied, ValidationFailed
from backend.app.core.text import sanitize_html
from backend.app.core.validators import validate_post
from backend.app.db import crud
from backend.app.db.models import BlogPost, PostStatus, User
from backend.app.logging_config import get_logger
from backend.app.services.badges import award_post_milestones
from backend.app.storage.uploads import POST_IMAGE, get_image_storage

logger = get_logger(__name__)


@dataclass
class PostForm:
    """Fields submitted on the create/edit post form."""

    title: str
    content: str
    summary: Optional[str] = None
    category_id: Optional[int] = None
    status: str = PostStatus.PUBLISHED.value

    def normalized(self) -> "PostForm":
        return PostForm(
            title=(self.title or "").strip(),
            content=(self.content or "").strip(),
            summary=(self.summary or "").strip() or None,
            category_id=self.category_id or None,
            status=(self.status or PostStatus.PUBLISHED.value).strip(),
        )


def can_view(post: BlogPost, user: Optional[User]) -> bool:
    """Published posts are public; drafts only for their author and admins."""
    if post.status == PostStatus.PUBLISHED:
        return True
    return user is not None and (user.id == post.user_id or user.is_admin)


def can_modify(post: BlogPost, user: Optional[User]) -> bool:
    return user is not None and (user.id == post.user_id or user.is_admin)


async def _validate(db: AsyncSession, form: PostForm) -> list:
    errors = validate_post(form.title, form.content, form.summary, form.status)
    if form.category_id and not await crud.get_category_by_id(db, form.category_id):
        errors.append("Please select a valid category.")
    return errors


async def _store_image(image: Optional[bytes], errors: list) -> Optional[str]:
    if not image:
        return None
    try:
        return await get_image_storage().store(image, POST_IMAGE)
    except InvalidUpload as e:
        errors.append(e.message)
        return None


async def create_post(
    db: AsyncSession,
    author: User,
    form: PostForm,
    image: Optional[bytes] = None,
) -> BlogPost:
    """
    Validate and insert a new post, then award post-count badges.

    Raises:
        ValidationFailed: rejected fields or image
    """
    form = form.normalized()
    errors = await _validate(db, form)
    if errors:
        raise ValidationFailed(errors)

    image_name = await _store_image(image, errors)
    if errors:
        raise ValidationFailed(errors)

    try:
        post = await crud.create_post(
            db,
            user_id=author.id,
            title=form.title,
            content=sanitize_html(form.content),
            summary=form.summary,
            category_id=form.category_id,
            featured_image=image_name,
            status=PostStatus(form.status),
        )
        await award_post_milestones(db, author.id)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        await get_image_storage().delete(image_name, POST_IMAGE)
        raise

    logger.info("post_created", post_id=post.id, user_id=author.id, status=form.status)
    return post


async def update_post(
    db: AsyncSession,
    post: BlogPost,
    actor: User,
    form: PostForm,
    image: Optional[bytes] = None,
    remove_image: bool = False,
) -> BlogPost:
    """
    Overwrite a post's editable fields (last write wins).

    A new upload replaces the current image; ``remove_image`` clears it.
    Old files are removed only after the row is committed.
    """
    if not can_modify(post, actor):
        raise PermissionDenied("You do not have permission to edit this post.")

    form = form.normalized()
    errors = await _validate(db, form)
    if errors:
        raise ValidationFailed(errors)

    new_image = await _store_image(image, errors)
    if errors:
        raise ValidationFailed(errors)

    old_image = post.featured_image
    featured_image = old_image
    if new_image:
        featured_image = new_image
    elif remove_image:
        featured_image = None

    try:
        await crud.update_post(
            db,
            post,
            title=form.title,
            content=sanitize_html(form.content),
            summary=form.summary,
            category_id=form.category_id,
            status=PostStatus(form.status),
            featured_image=featured_image,
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        await get_image_storage().delete(new_image, POST_IMAGE)
        raise

    if old_image and old_image != featured_image:
        await get_image_storage().delete(old_image, POST_IMAGE)

    logger.info("post_updated", post_id=post.id, user_id=actor.id)
    return post


async def delete_post(db: AsyncSession, post: BlogPost, actor: User) -> None:
    """Delete a post with its comments and reactions, then its image file."""
    if not can_modify(post, actor):
        raise PermissionDenied("You do not have permission to delete this post.")

    post_id, image = post.id, post.featured_image
    try:
        await crud.delete_post(db, post_id)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise

    await get_image_storage().delete(image, POST_IMAGE)
    logger.info("post_deleted", post_id=post_id, user_id=actor.id)


async def set_status(db: AsyncSession, post: BlogPost, status: PostStatus) -> BlogPost:
    await crud.update_post(db, post, status=status)
    await db.commit()
    logger.info("post_status_changed", post_id=post.id, status=status.value)
    return post


async def record_view(db: AsyncSession, post: BlogPost, viewer: Optional[User]) -> bool:
    """
    Count a page view unless the author is looking at their own post.

    Best effort: a failure is logged and the page still renders.
    """
    post_id = post.id
    if viewer is not None and viewer.id == post.user_id:
        return False
    try:
        await crud.increment_post_views(db, post_id)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning("view_count_failed", post_id=post_id, error=str(e))
        return False
    return True
