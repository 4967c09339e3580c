############################################################
#
# bloghut - Community Blogging Platform
#
# models.py: SQLAlchemy ORM models for all database entities
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""SQLAlchemy database models for Blog Hut."""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.db.base import Base, CreatedAtMixin, TimestampMixin, utc_now

# Use enum values (lowercase) for database storage, not enum names (uppercase)
_enum_values = lambda obj: [e.value for e in obj]


# Enums
class UserRole(str, PyEnum):
    """User role types."""
    USER = "user"
    ADMIN = "admin"


class PostStatus(str, PyEnum):
    """Blog post publication state."""
    DRAFT = "draft"
    PUBLISHED = "published"


class ReactionType(str, PyEnum):
    """Reaction kinds a reader can leave on a post."""
    LIKE = "like"
    DISLIKE = "dislike"


# Fixed badge catalog; ids are referenced by the badge awarder
NEWCOMER_BADGE_ID = 1
FIRST_POST_BADGE_ID = 2
PROLIFIC_WRITER_BADGE_ID = 3
PROLIFIC_WRITER_POST_COUNT = 10

BADGE_CATALOG = (
    (NEWCOMER_BADGE_ID, "Newcomer", "Joined the Blog Hut community", "bi-person-plus"),
    (FIRST_POST_BADGE_ID, "First Post", "Published a first blog post", "bi-pencil"),
    (PROLIFIC_WRITER_BADGE_ID, "Prolific Writer", "Wrote 10 or more blog posts", "bi-journal-richtext"),
)


class User(Base, TimestampMixin):
    """Registered account."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, values_callable=_enum_values), nullable=False, default=UserRole.USER
    )
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    profile_image: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User {self.id} {self.username!r}>"


class Category(Base, CreatedAtMixin):
    """Post category."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class BlogPost(Base, TimestampMixin):
    """Blog post model."""

    __tablename__ = "blog_posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    featured_image: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[PostStatus] = mapped_column(
        Enum(PostStatus, values_callable=_enum_values), nullable=False, default=PostStatus.PUBLISHED
    )
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    # Relationships (many-to-one, always needed when rendering a post)
    author: Mapped["User"] = relationship("User", lazy="joined")
    category: Mapped[Optional["Category"]] = relationship("Category", lazy="joined")

    __table_args__ = (
        Index("ix_blog_posts_status_created", "status", "created_at"),
        Index("ix_blog_posts_user_status", "user_id", "status"),
        Index("ix_blog_posts_category", "category_id"),
    )

    @property
    def is_published(self) -> bool:
        return self.status == PostStatus.PUBLISHED


class Comment(Base, CreatedAtMixin):
    """Reader comment on a post."""

    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    blog_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("blog_posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # Threading is stored but not rendered; only top-level comments are listed
    parent_comment_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True
    )
    comment: Mapped[str] = mapped_column(Text, nullable=False)

    author: Mapped["User"] = relationship("User", lazy="joined")
    post: Mapped["BlogPost"] = relationship("BlogPost")

    __table_args__ = (
        Index("ix_comments_blog_created", "blog_id", "created_at"),
    )


class Reaction(Base, CreatedAtMixin):
    """One like or dislike per (user, post)."""

    __tablename__ = "reactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    blog_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("blog_posts.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[ReactionType] = mapped_column(
        Enum(ReactionType, values_callable=_enum_values), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "blog_id", name="uq_reactions_user_blog"),
        Index("ix_reactions_blog_type", "blog_id", "type"),
    )


class Badge(Base):
    """Achievement from the fixed catalog."""

    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    icon: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class UserBadge(Base):
    """Badge earned by a user."""

    __tablename__ = "user_badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    badge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("badges.id", ondelete="CASCADE"), nullable=False
    )
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False
    )

    badge: Mapped["Badge"] = relationship("Badge", lazy="joined")

    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="uq_user_badges_user_badge"),
    )
