############################################################
#
# bloghut - Community Blogging Platform
#
# engagement_crud.py: CRUD operations for comments and reactions
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""CRUD operations for reader engagement (comments and reactions)."""

from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from backend.app.db.models import BlogPost, Comment, Reaction, ReactionType, User


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

async def create_comment(
    db: AsyncSession,
    blog_id: int,
    user_id: int,
    text: str,
    parent_comment_id: Optional[int] = None,
) -> Comment:
    comment = Comment(
        blog_id=blog_id,
        user_id=user_id,
        comment=text,
        parent_comment_id=parent_comment_id,
    )
    db.add(comment)
    await db.flush()
    return comment


async def get_comment(
    db: AsyncSession, comment_id: int, refresh: bool = False
) -> Optional[Comment]:
    query = select(Comment).where(Comment.id == comment_id)
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_comments(
    db: AsyncSession,
    blog_id: int,
    offset: int = 0,
    limit: Optional[int] = None,
) -> List[Comment]:
    """Top-level comments on a post, newest first."""
    query = (
        select(Comment)
        .where(Comment.blog_id == blog_id, Comment.parent_comment_id.is_(None))
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def count_comments(
    db: AsyncSession, blog_id: Optional[int] = None, top_level_only: bool = False
) -> int:
    """Comment count, optionally restricted to one post and to non-replies."""
    query = select(func.count(Comment.id))
    if blog_id is not None:
        query = query.where(Comment.blog_id == blog_id)
    if top_level_only:
        query = query.where(Comment.parent_comment_id.is_(None))
    result = await db.execute(query)
    return result.scalar_one()


async def delete_comment(db: AsyncSession, comment_id: int) -> bool:
    result = await db.execute(delete(Comment).where(Comment.id == comment_id))
    await db.flush()
    return result.rowcount > 0


async def get_recent_comments(db: AsyncSession, limit: int = 5) -> List[Comment]:
    result = await db.execute(
        select(Comment)
        .options(joinedload(Comment.post))
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_admin_comments(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 20,
    search: Optional[str] = None,
) -> Tuple[List[Comment], int]:
    """All comments with their post, searchable by text, author or post title."""
    filters = []
    if search:
        filters.append(
            or_(
                Comment.comment.icontains(search, autoescape=True),
                Comment.user_id.in_(
                    select(User.id).where(User.username.icontains(search, autoescape=True))
                ),
                Comment.blog_id.in_(
                    select(BlogPost.id).where(BlogPost.title.icontains(search, autoescape=True))
                ),
            )
        )

    total_result = await db.execute(select(func.count(Comment.id)).where(*filters))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Comment)
        .options(joinedload(Comment.post))
        .where(*filters)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), total


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------

async def get_user_reaction(
    db: AsyncSession, user_id: int, blog_id: int
) -> Optional[Reaction]:
    result = await db.execute(
        select(Reaction).where(Reaction.user_id == user_id, Reaction.blog_id == blog_id)
    )
    return result.scalar_one_or_none()


async def create_reaction(
    db: AsyncSession, user_id: int, blog_id: int, reaction_type: ReactionType
) -> Reaction:
    reaction = Reaction(user_id=user_id, blog_id=blog_id, type=reaction_type)
    db.add(reaction)
    await db.flush()
    return reaction


async def update_reaction(
    db: AsyncSession, reaction: Reaction, reaction_type: ReactionType
) -> Reaction:
    reaction.type = reaction_type
    await db.flush()
    return reaction


async def delete_reaction(db: AsyncSession, user_id: int, blog_id: int) -> bool:
    result = await db.execute(
        delete(Reaction).where(Reaction.user_id == user_id, Reaction.blog_id == blog_id)
    )
    await db.flush()
    return result.rowcount > 0


async def get_reaction_counts(db: AsyncSession, blog_id: int) -> Dict[str, int]:
    """Count of each reaction type on a post; missing types count as zero."""
    result = await db.execute(
        select(Reaction.type, func.count(Reaction.id))
        .where(Reaction.blog_id == blog_id)
        .group_by(Reaction.type)
    )
    counts = {reaction_type.value: 0 for reaction_type in ReactionType}
    for reaction_type, count in result.all():
        counts[ReactionType(reaction_type).value] = count
    return counts
