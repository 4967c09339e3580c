############################################################
#
# bloghut - Community Blogging Platform
#
# 001_initial_schema.py: Initial database schema migration
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Initial database schema

Revision ID: 001
Revises:
Create Date: 2026-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users table
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', sa.Enum('user', 'admin', name='userrole'), nullable=False),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('profile_image', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('username', name='uq_users_username'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('ix_users_username', 'users', ['username'])
    op.create_index('ix_users_email', 'users', ['email'])

    # Categories table
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('slug', sa.String(120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_categories'),
        sa.UniqueConstraint('name', name='uq_categories_name'),
        sa.UniqueConstraint('slug', name='uq_categories_slug'),
    )
    op.create_index('ix_categories_slug', 'categories', ['slug'])

    # Blog posts table
    op.create_table(
        'blog_posts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('summary', sa.String(500), nullable=True),
        sa.Column('featured_image', sa.String(255), nullable=True),
        sa.Column('status', sa.Enum('draft', 'published', name='poststatus'), nullable=False),
        sa.Column('views', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_blog_posts_user_id_users', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], name='fk_blog_posts_category_id_categories', ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id', name='pk_blog_posts'),
    )
    op.create_index('ix_blog_posts_status_created', 'blog_posts', ['status', 'created_at'])
    op.create_index('ix_blog_posts_user_status', 'blog_posts', ['user_id', 'status'])
    op.create_index('ix_blog_posts_category', 'blog_posts', ['category_id'])

    # Comments table
    op.create_table(
        'comments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('blog_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('parent_comment_id', sa.Integer(), nullable=True),
        sa.Column('comment', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['blog_id'], ['blog_posts.id'], name='fk_comments_blog_id_blog_posts', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_comments_user_id_users', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['parent_comment_id'], ['comments.id'], name='fk_comments_parent_comment_id_comments', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_comments'),
    )
    op.create_index('ix_comments_blog_created', 'comments', ['blog_id', 'created_at'])

    # Reactions table
    op.create_table(
        'reactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('blog_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.Enum('like', 'dislike', name='reactiontype'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_reactions_user_id_users', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['blog_id'], ['blog_posts.id'], name='fk_reactions_blog_id_blog_posts', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_reactions'),
        sa.UniqueConstraint('user_id', 'blog_id', name='uq_reactions_user_blog'),
    )
    op.create_index('ix_reactions_blog_type', 'reactions', ['blog_id', 'type'])

    # Badges table
    badges = op.create_table(
        'badges',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.String(255), nullable=True),
        sa.Column('icon', sa.String(50), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_badges'),
        sa.UniqueConstraint('name', name='uq_badges_name'),
    )

    # User badges table
    op.create_table(
        'user_badges',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('badge_id', sa.Integer(), nullable=False),
        sa.Column('earned_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_user_badges_user_id_users', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['badge_id'], ['badges.id'], name='fk_user_badges_badge_id_badges', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_user_badges'),
        sa.UniqueConstraint('user_id', 'badge_id', name='uq_user_badges_user_badge'),
    )

    # Seed the badge catalog
    op.bulk_insert(
        badges,
        [
            {'id': 1, 'name': 'Newcomer', 'description': 'Joined the Blog Hut community', 'icon': 'bi-person-plus'},
            {'id': 2, 'name': 'First Post', 'description': 'Published a first blog post', 'icon': 'bi-pencil'},
            {'id': 3, 'name': 'Prolific Writer', 'description': 'Wrote 10 or more blog posts', 'icon': 'bi-journal-richtext'},
        ],
    )


def downgrade() -> None:
    op.drop_table('user_badges')
    op.drop_table('badges')
    op.drop_table('reactions')
    op.drop_table('comments')
    op.drop_table('blog_posts')
    op.drop_table('categories')
    op.drop_table('users')

    # Drop enums
    op.execute("DROP TYPE IF EXISTS userrole")
    op.execute("DROP TYPE IF EXISTS poststatus")
    op.execute("DROP TYPE IF EXISTS reactiontype")
