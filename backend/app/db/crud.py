############################################################
#
# bloghut - Community Blogging Platform
#
# crud.py: Database CRUD operations for users, categories, posts and badges
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Database CRUD operations for Blog Hut.

Functions here only ``flush()``; committing is left to the caller so that
multi-step operations (registration, profile update, post deletion) can run
inside one transaction.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.models import (
    BADGE_CATALOG,
    Badge,
    BlogPost,
    Category,
    Comment,
    PostStatus,
    Reaction,
    User,
    UserBadge,
    UserRole,
)


# ---------------------------------------------------------------------------
# Shared column expressions
# ---------------------------------------------------------------------------

def _reaction_count():
    return (
        select(func.count(Reaction.id))
        .where(Reaction.blog_id == BlogPost.id)
        .correlate(BlogPost)
        .scalar_subquery()
    )


def _comment_count():
    return (
        select(func.count(Comment.id))
        .where(Comment.blog_id == BlogPost.id)
        .correlate(BlogPost)
        .scalar_subquery()
    )


def _with_counts(query_filters, order_by, skip: int = 0, limit: Optional[int] = None):
    """Build a post query that also returns reaction and comment counts."""
    reactions = _reaction_count().label("reaction_count")
    comments = _comment_count().label("comment_count")
    query = select(BlogPost, reactions, comments).where(*query_filters)
    query = query.order_by(*order_by(reactions, comments))
    if skip:
        query = query.offset(skip)
    if limit is not None:
        query = query.limit(limit)
    return query


def _attach_counts(rows) -> List[BlogPost]:
    """Copy the aggregate columns onto the post objects for templating."""
    posts = []
    for post, reaction_count, comment_count in rows:
        post.reaction_count = reaction_count or 0
        post.comment_count = comment_count or 0
        posts.append(post)
    return posts


async def _count(db: AsyncSession, model, *filters) -> int:
    result = await db.execute(select(func.count(model.id)).where(*filters))
    return result.scalar_one()


def _post_search_filter(search: str):
    return or_(
        BlogPost.title.icontains(search, autoescape=True),
        BlogPost.content.icontains(search, autoescape=True),
        BlogPost.summary.icontains(search, autoescape=True),
    )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    """Get user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> Optional[User]:
    """Get user by username."""
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Get user by email."""
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user_by_identifier(db: AsyncSession, identifier: str) -> Optional[User]:
    """Get user whose email or username equals ``identifier``."""
    result = await db.execute(
        select(User).where(or_(User.email == identifier, User.username == identifier))
    )
    return result.scalars().first()


async def username_taken(
    db: AsyncSession, username: str, exclude_user_id: Optional[int] = None
) -> bool:
    query = select(User.id).where(User.username == username)
    if exclude_user_id is not None:
        query = query.where(User.id != exclude_user_id)
    result = await db.execute(query.limit(1))
    return result.first() is not None


async def email_taken(
    db: AsyncSession, email: str, exclude_user_id: Optional[int] = None
) -> bool:
    query = select(User.id).where(User.email == email)
    if exclude_user_id is not None:
        query = query.where(User.id != exclude_user_id)
    result = await db.execute(query.limit(1))
    return result.first() is not None


async def create_user(
    db: AsyncSession,
    username: str,
    email: str,
    password_hash: str,
    role: UserRole = UserRole.USER,
) -> User:
    """Create a new user."""
    user = User(
        username=username,
        email=email,
        password_hash=password_hash,
        role=role,
    )
    db.add(user)
    await db.flush()
    return user


async def update_user(db: AsyncSession, user: User, **fields) -> User:
    """Apply field updates to a user."""
    for key, value in fields.items():
        setattr(user, key, value)
    await db.flush()
    return user


async def delete_user(db: AsyncSession, user_id: int) -> bool:
    """Hard-delete a user; posts, comments, reactions and badges cascade."""
    result = await db.execute(delete(User).where(User.id == user_id))
    await db.flush()
    return result.rowcount > 0


async def get_users(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 20,
    role: Optional[UserRole] = None,
    search: Optional[str] = None,
) -> Tuple[List[User], int]:
    """Get users with post/comment counts, optional role filter and search."""
    filters = []
    if role:
        filters.append(User.role == role)
    if search:
        filters.append(
            or_(
                User.username.icontains(search, autoescape=True),
                User.email.icontains(search, autoescape=True),
            )
        )

    total = await _count(db, User, *filters)

    post_count = (
        select(func.count(BlogPost.id))
        .where(BlogPost.user_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    comment_count = (
        select(func.count(Comment.id))
        .where(Comment.user_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    result = await db.execute(
        select(User, post_count, comment_count)
        .where(*filters)
        .order_by(User.created_at.desc(), User.id.desc())
        .offset(skip)
        .limit(limit)
    )
    users = []
    for user, posts, comments in result.all():
        user.post_count = posts or 0
        user.comment_count = comments or 0
        users.append(user)
    return users, total


async def count_users(db: AsyncSession, role: Optional[UserRole] = None) -> int:
    filters = [User.role == role] if role else []
    return await _count(db, User, *filters)


async def get_recent_users(db: AsyncSession, limit: int = 5) -> List[User]:
    result = await db.execute(
        select(User).order_by(User.created_at.desc(), User.id.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def get_top_authors(db: AsyncSession, limit: int = 5) -> List[Tuple[User, int, int]]:
    """Authors ranked by published post count, with their total views."""
    post_count = func.count(BlogPost.id).label("post_count")
    total_views = func.coalesce(func.sum(BlogPost.views), 0).label("total_views")
    result = await db.execute(
        select(User, post_count, total_views)
        .join(BlogPost, BlogPost.user_id == User.id)
        .where(BlogPost.status == PostStatus.PUBLISHED)
        .group_by(User.id)
        .order_by(post_count.desc(), total_views.desc())
        .limit(limit)
    )
    return [(user, posts, views) for user, posts, views in result.all()]


async def get_user_stats(db: AsyncSession, user_id: int) -> Dict[str, int]:
    """Totals shown on a profile page (published posts only)."""
    published = [BlogPost.user_id == user_id, BlogPost.status == PostStatus.PUBLISHED]
    posts_result = await db.execute(
        select(func.count(BlogPost.id), func.coalesce(func.sum(BlogPost.views), 0)).where(
            *published
        )
    )
    total_posts, total_views = posts_result.one()

    own_posts = select(BlogPost.id).where(*published)
    total_reactions = await _count(db, Reaction, Reaction.blog_id.in_(own_posts))
    total_comments = await _count(db, Comment, Comment.blog_id.in_(own_posts))

    return {
        "total_posts": total_posts,
        "total_views": total_views,
        "total_reactions": total_reactions,
        "total_comments": total_comments,
    }


async def get_user_post_images(db: AsyncSession, user_id: int) -> List[str]:
    """Featured image filenames of every post owned by a user."""
    result = await db.execute(
        select(BlogPost.featured_image).where(
            BlogPost.user_id == user_id, BlogPost.featured_image.is_not(None)
        )
    )
    return [name for (name,) in result.all()]


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

async def get_categories(db: AsyncSession, published_only: bool = False) -> List[Category]:
    """All categories ordered by name, each with a ``post_count`` attribute."""
    count_filters = [BlogPost.category_id == Category.id]
    if published_only:
        count_filters.append(BlogPost.status == PostStatus.PUBLISHED)
    post_count = (
        select(func.count(BlogPost.id))
        .where(*count_filters)
        .correlate(Category)
        .scalar_subquery()
    )
    result = await db.execute(select(Category, post_count).order_by(Category.name))
    categories = []
    for category, count in result.all():
        category.post_count = count or 0
        categories.append(category)
    return categories


async def get_category_by_id(db: AsyncSession, category_id: int) -> Optional[Category]:
    result = await db.execute(select(Category).where(Category.id == category_id))
    return result.scalar_one_or_none()


async def get_category_by_slug(db: AsyncSession, slug: str) -> Optional[Category]:
    result = await db.execute(select(Category).where(Category.slug == slug))
    return result.scalar_one_or_none()


async def category_exists(
    db: AsyncSession, name: str, slug: str, exclude_category_id: Optional[int] = None
) -> bool:
    """True if another category already uses this name or slug."""
    query = select(Category.id).where(or_(Category.name == name, Category.slug == slug))
    if exclude_category_id is not None:
        query = query.where(Category.id != exclude_category_id)
    result = await db.execute(query.limit(1))
    return result.first() is not None


async def create_category(
    db: AsyncSession, name: str, slug: str, description: Optional[str] = None
) -> Category:
    category = Category(name=name, slug=slug, description=description)
    db.add(category)
    await db.flush()
    return category


async def update_category(
    db: AsyncSession, category: Category, name: str, slug: str, description: Optional[str]
) -> Category:
    category.name = name
    category.slug = slug
    category.description = description
    await db.flush()
    return category


async def count_category_posts(db: AsyncSession, category_id: int) -> int:
    return await _count(db, BlogPost, BlogPost.category_id == category_id)


async def delete_category(db: AsyncSession, category_id: int) -> bool:
    result = await db.execute(delete(Category).where(Category.id == category_id))
    await db.flush()
    return result.rowcount > 0


async def get_category_stats(db: AsyncSession) -> List[Tuple[Category, int, int]]:
    """Published post count and total views per category."""
    post_count = func.count(BlogPost.id).label("post_count")
    total_views = func.coalesce(func.sum(BlogPost.views), 0).label("total_views")
    result = await db.execute(
        select(Category, post_count, total_views)
        .outerjoin(
            BlogPost,
            (BlogPost.category_id == Category.id) & (BlogPost.status == PostStatus.PUBLISHED),
        )
        .group_by(Category.id)
        .order_by(post_count.desc(), Category.name)
    )
    return [(category, posts, views) for category, posts, views in result.all()]


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------

async def get_post(db: AsyncSession, post_id: int, refresh: bool = False) -> Optional[BlogPost]:
    """Get a post with its author and category."""
    query = select(BlogPost).where(BlogPost.id == post_id)
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def create_post(
    db: AsyncSession,
    user_id: int,
    title: str,
    content: str,
    summary: Optional[str] = None,
    category_id: Optional[int] = None,
    featured_image: Optional[str] = None,
    status: PostStatus = PostStatus.PUBLISHED,
) -> BlogPost:
    """Create a new blog post."""
    post = BlogPost(
        user_id=user_id,
        title=title,
        content=content,
        summary=summary,
        category_id=category_id,
        featured_image=featured_image,
        status=status,
        views=0,
    )
    db.add(post)
    await db.flush()
    return post


async def update_post(db: AsyncSession, post: BlogPost, **fields) -> BlogPost:
    """Overwrite the given fields on a post."""
    for key, value in fields.items():
        setattr(post, key, value)
    await db.flush()
    return post


async def delete_post(db: AsyncSession, post_id: int) -> bool:
    """Delete a post; comments and reactions cascade."""
    result = await db.execute(delete(BlogPost).where(BlogPost.id == post_id))
    await db.flush()
    return result.rowcount > 0


async def increment_post_views(db: AsyncSession, post_id: int) -> None:
    """Atomic ``views = views + 1``."""
    await db.execute(
        update(BlogPost)
        .where(BlogPost.id == post_id)
        .values(views=BlogPost.views + 1)
        .execution_options(synchronize_session=False)
    )


async def get_published_posts(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 9,
    category_id: Optional[int] = None,
    search: Optional[str] = None,
) -> Tuple[List[BlogPost], int]:
    """Published posts, newest first, with optional category and text filter."""
    filters = [BlogPost.status == PostStatus.PUBLISHED]
    if category_id:
        filters.append(BlogPost.category_id == category_id)
    if search:
        filters.append(_post_search_filter(search))

    total = await _count(db, BlogPost, *filters)
    result = await db.execute(
        _with_counts(
            filters,
            lambda r, c: (BlogPost.created_at.desc(), BlogPost.id.desc()),
            skip=skip,
            limit=limit,
        )
    )
    return _attach_counts(result.all()), total


async def search_posts(
    db: AsyncSession,
    query: Optional[str] = None,
    category_id: Optional[int] = None,
    author: Optional[str] = None,
    sort: str = "relevance",
    skip: int = 0,
    limit: int = 10,
) -> Tuple[List[BlogPost], int]:
    """Search published posts.

    ``sort`` is one of ``relevance`` (title hits, then summary hits, then
    newest), ``latest``, ``oldest`` or ``popular`` (views, then reactions).
    """
    filters = [BlogPost.status == PostStatus.PUBLISHED]
    if query:
        filters.append(_post_search_filter(query))
    if category_id:
        filters.append(BlogPost.category_id == category_id)
    if author:
        filters.append(
            BlogPost.user_id.in_(
                select(User.id).where(User.username.icontains(author, autoescape=True))
            )
        )

    def ordering(reactions, comments):
        if sort == "oldest":
            return (BlogPost.created_at.asc(), BlogPost.id.asc())
        if sort == "popular":
            return (BlogPost.views.desc(), reactions.desc(), BlogPost.id.desc())
        if sort == "relevance" and query:
            rank = case(
                (BlogPost.title.icontains(query, autoescape=True), 0),
                (BlogPost.summary.icontains(query, autoescape=True), 1),
                else_=2,
            )
            return (rank, BlogPost.created_at.desc(), BlogPost.id.desc())
        return (BlogPost.created_at.desc(), BlogPost.id.desc())

    total = await _count(db, BlogPost, *filters)
    result = await db.execute(_with_counts(filters, ordering, skip=skip, limit=limit))
    return _attach_counts(result.all()), total


async def get_user_posts(
    db: AsyncSession,
    user_id: int,
    status: Optional[PostStatus] = None,
    skip: int = 0,
    limit: int = 10,
) -> Tuple[List[BlogPost], int]:
    """A user's posts, newest first, optionally limited to one status."""
    filters = [BlogPost.user_id == user_id]
    if status:
        filters.append(BlogPost.status == status)
    total = await _count(db, BlogPost, *filters)
    result = await db.execute(
        _with_counts(
            filters,
            lambda r, c: (BlogPost.created_at.desc(), BlogPost.id.desc()),
            skip=skip,
            limit=limit,
        )
    )
    return _attach_counts(result.all()), total


async def count_user_posts(
    db: AsyncSession, user_id: int, status: Optional[PostStatus] = None
) -> int:
    filters = [BlogPost.user_id == user_id]
    if status:
        filters.append(BlogPost.status == status)
    return await _count(db, BlogPost, *filters)


async def get_top_post(db: AsyncSession, user_id: int) -> Optional[BlogPost]:
    """The user's most viewed published post."""
    result = await db.execute(
        select(BlogPost)
        .where(BlogPost.user_id == user_id, BlogPost.status == PostStatus.PUBLISHED)
        .order_by(BlogPost.views.desc(), BlogPost.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_trending_posts(
    db: AsyncSession, days: int = 7, limit: int = 3
) -> List[BlogPost]:
    """Recent published posts ranked by views + 2*reactions + 3*comments."""
    since = datetime.now(timezone.utc) - timedelta(days=days)
    filters = [BlogPost.status == PostStatus.PUBLISHED, BlogPost.created_at >= since]

    def ordering(reactions, comments):
        score = BlogPost.views + reactions * 2 + comments * 3
        return (score.desc(), BlogPost.created_at.desc())

    result = await db.execute(_with_counts(filters, ordering, limit=limit))
    return _attach_counts(result.all())


async def get_latest_posts(db: AsyncSession, limit: int = 6) -> List[BlogPost]:
    filters = [BlogPost.status == PostStatus.PUBLISHED]
    result = await db.execute(
        _with_counts(
            filters,
            lambda r, c: (BlogPost.created_at.desc(), BlogPost.id.desc()),
            limit=limit,
        )
    )
    return _attach_counts(result.all())


async def get_related_posts(db: AsyncSession, post: BlogPost, limit: int = 3) -> List[BlogPost]:
    """Random published posts from the same category."""
    if not post.category_id:
        return []
    result = await db.execute(
        select(BlogPost)
        .where(
            BlogPost.category_id == post.category_id,
            BlogPost.id != post.id,
            BlogPost.status == PostStatus.PUBLISHED,
        )
        .order_by(func.random())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_popular_posts(db: AsyncSession, days: int = 30, limit: int = 5) -> List[BlogPost]:
    """Most viewed published posts created in the last ``days`` days."""
    since = datetime.now(timezone.utc) - timedelta(days=days)
    filters = [BlogPost.status == PostStatus.PUBLISHED, BlogPost.created_at >= since]
    result = await db.execute(
        _with_counts(filters, lambda r, c: (BlogPost.views.desc(), r.desc()), limit=limit)
    )
    return _attach_counts(result.all())


async def get_admin_posts(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 20,
    status: Optional[PostStatus] = None,
    category_id: Optional[int] = None,
    search: Optional[str] = None,
) -> Tuple[List[BlogPost], int]:
    """Posts of any status for the admin console."""
    filters = []
    if status:
        filters.append(BlogPost.status == status)
    if category_id:
        filters.append(BlogPost.category_id == category_id)
    if search:
        filters.append(
            or_(
                BlogPost.title.icontains(search, autoescape=True),
                BlogPost.user_id.in_(
                    select(User.id).where(User.username.icontains(search, autoescape=True))
                ),
            )
        )
    total = await _count(db, BlogPost, *filters)
    result = await db.execute(
        _with_counts(
            filters,
            lambda r, c: (BlogPost.created_at.desc(), BlogPost.id.desc()),
            skip=skip,
            limit=limit,
        )
    )
    return _attach_counts(result.all()), total


async def get_recent_posts(db: AsyncSession, limit: int = 5) -> List[BlogPost]:
    result = await db.execute(
        select(BlogPost).order_by(BlogPost.created_at.desc(), BlogPost.id.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def count_posts(db: AsyncSession, status: Optional[PostStatus] = None) -> int:
    filters = [BlogPost.status == status] if status else []
    return await _count(db, BlogPost, *filters)


async def total_views(db: AsyncSession) -> int:
    result = await db.execute(select(func.coalesce(func.sum(BlogPost.views), 0)))
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------

async def seed_badges(db: AsyncSession) -> int:
    """Insert any missing catalog badges. Returns the number created."""
    result = await db.execute(select(Badge.id))
    existing = {badge_id for (badge_id,) in result.all()}
    created = 0
    for badge_id, name, description, icon in BADGE_CATALOG:
        if badge_id not in existing:
            db.add(Badge(id=badge_id, name=name, description=description, icon=icon))
            created += 1
    await db.flush()
    return created


async def get_user_badges(db: AsyncSession, user_id: int) -> List[UserBadge]:
    """Badges earned by a user, newest first."""
    result = await db.execute(
        select(UserBadge)
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at.desc(), UserBadge.id.desc())
    )
    return list(result.scalars().all())


async def user_has_badge(db: AsyncSession, user_id: int, badge_id: int) -> bool:
    result = await db.execute(
        select(UserBadge.id).where(UserBadge.user_id == user_id, UserBadge.badge_id == badge_id)
    )
    return result.first() is not None


async def award_badge(db: AsyncSession, user_id: int, badge_id: int) -> bool:
    """Grant a badge once. Returns False if the user already holds it."""
    if await user_has_badge(db, user_id, badge_id):
        return False
    db.add(UserBadge(user_id=user_id, badge_id=badge_id))
    await db.flush()
    return True


# ---------------------------------------------------------------------------
# Site statistics
# ---------------------------------------------------------------------------

async def get_site_stats(db: AsyncSession) -> Dict[str, int]:
    """Totals for the landing page and admin dashboard."""
    return {
        "total_users": await count_users(db),
        "total_admins": await count_users(db, UserRole.ADMIN),
        "total_posts": await count_posts(db),
        "published_posts": await count_posts(db, PostStatus.PUBLISHED),
        "draft_posts": await count_posts(db, PostStatus.DRAFT),
        "total_comments": await _count(db, Comment),
        "total_reactions": await _count(db, Reaction),
        "total_categories": await _count(db, Category),
        "total_views": await total_views(db),
    }
