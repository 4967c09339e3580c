############################################################
#
# bloghut - Community Blogging Platform
#
# engagement.py: Comment and reaction services
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Comments and like/dislike reactions."""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import NotFound, PermissionDenied, ValidationFailed
from backend.app.core.text import time_ago
from backend.app.core.validators import is_valid_reaction_type, validate_comment
from backend.app.db import crud, engagement_crud
from backend.app.db.models import BlogPost, Comment, ReactionType, User
from backend.app.logging_config import get_logger
from backend.app.services.posts import can_view
from backend.app.storage.uploads import AVATAR, get_image_storage

logger = get_logger(__name__)


async def visible_post(db: AsyncSession, post_id: Optional[int], user: Optional[User]) -> BlogPost:
    if not post_id:
        raise ValidationFailed(["Invalid post ID"])
    post = await crud.get_post(db, post_id)
    if post is None or not can_view(post, user):
        raise NotFound("Post not found")
    return post


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

async def add_comment(
    db: AsyncSession,
    post_id: Optional[int],
    user: User,
    text: str,
    parent_comment_id: Optional[int] = None,
) -> Tuple[Comment, int]:
    """
    Store a comment and return it with the post's new comment count.

    Raises:
        ValidationFailed: empty, too short or too long
        NotFound: the post does not exist or is not visible to the user
    """
    if not post_id:
        raise ValidationFailed(["Invalid post ID"])
    error = validate_comment(text)
    if error:
        raise ValidationFailed([error])
    post = await visible_post(db, post_id, user)

    if parent_comment_id:
        parent = await engagement_crud.get_comment(db, parent_comment_id)
        if parent is None or parent.blog_id != post.id:
            parent_comment_id = None

    try:
        comment = await engagement_crud.create_comment(
            db, post.id, user.id, text.strip(), parent_comment_id
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise

    # Reload so the author relationship is populated for the response
    comment = await engagement_crud.get_comment(db, comment.id, refresh=True)

    count = await engagement_crud.count_comments(db, post.id)
    logger.info("comment_added", comment_id=comment.id, post_id=post.id, user_id=user.id)
    return comment, count


async def list_comments(
    db: AsyncSession,
    post_id: int,
    user: Optional[User] = None,
    offset: int = 0,
    limit: Optional[int] = None,
) -> Tuple[List[Comment], int, int]:
    """
    Top-level comments, newest first.

    Returns:
        (comments, comment count including replies, top-level count). Paging
        uses the top-level count since replies are never listed here.
    """
    post = await visible_post(db, post_id, user)
    comments = await engagement_crud.get_comments(db, post.id, offset=offset, limit=limit)
    total = await engagement_crud.count_comments(db, post.id)
    top_level = await engagement_crud.count_comments(db, post.id, top_level_only=True)
    return comments, total, top_level


async def delete_comment(
    db: AsyncSession, comment_id: Optional[int], user: User
) -> Tuple[int, int]:
    """
    Delete a comment as its author or an admin.

    Returns:
        (post id, remaining comment count on that post)
    """
    if not comment_id:
        raise ValidationFailed(["Invalid comment ID"])
    comment = await engagement_crud.get_comment(db, comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    if comment.user_id != user.id and not user.is_admin:
        raise PermissionDenied("You do not have permission to delete this comment")

    post_id = comment.blog_id
    try:
        await engagement_crud.delete_comment(db, comment_id)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise

    logger.info("comment_deleted", comment_id=comment_id, post_id=post_id, user_id=user.id)
    return post_id, await engagement_crud.count_comments(db, post_id)


def serialize_comment(comment: Comment, user: Optional[User] = None) -> Dict[str, Any]:
    """JSON shape used by the comments API."""
    return {
        "id": comment.id,
        "post_id": comment.blog_id,
        "user_id": comment.user_id,
        "username": comment.author.username,
        "profile_image": get_image_storage().url(comment.author.profile_image, AVATAR),
        "comment": comment.comment,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
        "time_ago": time_ago(comment.created_at),
        "can_delete": user is not None and (user.id == comment.user_id or user.is_admin),
    }


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------

async def reaction_summary(
    db: AsyncSession, post_id: int, user_id: Optional[int] = None
) -> Dict[str, Any]:
    """Counts per type, their total, and the viewer's own reaction (or None)."""
    counts = await engagement_crud.get_reaction_counts(db, post_id)
    user_reaction = None
    if user_id is not None:
        reaction = await engagement_crud.get_user_reaction(db, user_id, post_id)
        user_reaction = ReactionType(reaction.type).value if reaction else None
    return {
        "counts": counts,
        "total": sum(counts.values()),
        "user_reaction": user_reaction,
    }


async def set_reaction(
    db: AsyncSession, post_id: Optional[int], user: User, reaction_type: str
) -> Dict[str, Any]:
    """
    Apply a like/dislike with toggle semantics.

    Sending the type the user already has removes it; sending the other
    type replaces it; otherwise a new reaction is added.

    Returns:
        ``reaction_summary`` plus ``action`` ("added", "changed", "removed")
    """
    if not is_valid_reaction_type(reaction_type or ""):
        raise ValidationFailed(["Invalid reaction type"])
    post = await visible_post(db, post_id, user)
    wanted = ReactionType(reaction_type)

    user_id, post_id = user.id, post.id
    existing = await engagement_crud.get_user_reaction(db, user_id, post_id)
    try:
        if existing is None:
            await engagement_crud.create_reaction(db, user_id, post_id, wanted)
            action = "added"
        elif existing.type == wanted:
            await engagement_crud.delete_reaction(db, user_id, post_id)
            action = "removed"
        else:
            await engagement_crud.update_reaction(db, existing, wanted)
            action = "changed"
        await db.commit()
    except IntegrityError:
        # A concurrent request inserted the (user, post) row first
        await db.rollback()
        logger.warning("reaction_conflict", post_id=post_id, user_id=user_id)
        existing = await engagement_crud.get_user_reaction(db, user_id, post_id)
        if existing is None:
            raise
        try:
            await engagement_crud.update_reaction(db, existing, wanted)
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            raise
        action = "changed"
    except SQLAlchemyError:
        await db.rollback()
        raise

    logger.info("reaction_set", post_id=post_id, user_id=user_id, type=wanted.value, action=action)
    summary = await reaction_summary(db, post_id, user_id)
    summary["action"] = action
    return summary


async def remove_reaction(db: AsyncSession, post_id: Optional[int], user: User) -> Dict[str, Any]:
    post = await visible_post(db, post_id, user)
    try:
        removed = await engagement_crud.delete_reaction(db, user.id, post.id)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise
    if removed:
        logger.info("reaction_removed", post_id=post.id, user_id=user.id)
    summary = await reaction_summary(db, post.id, user.id)
    summary["action"] = "removed"
    return summary
