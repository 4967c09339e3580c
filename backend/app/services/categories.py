############################################################
#
# bloghut - Community Blogging Platform
#
# categories.py: Category management
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Category management for the admin console."""

from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import CategoryInUse, NotFound, ValidationFailed
from backend.app.core.text import slugify
from backend.app.core.validators import validate_category
from backend.app.db import crud
from backend.app.db.models import Category
from backend.app.logging_config import get_logger

logger = get_logger(__name__)

DUPLICATE_CATEGORY = "Category name or slug already exists."


async def _prepare(
    db: AsyncSession,
    name: str,
    description: Optional[str],
    exclude_category_id: Optional[int] = None,
):
    name = (name or "").strip()
    description = (description or "").strip() or None
    errors = validate_category(name, description)
    slug = slugify(name)
    if name and not slug:
        errors.append("Category name must contain letters or numbers.")
    if not errors and await crud.category_exists(db, name, slug, exclude_category_id):
        errors.append(DUPLICATE_CATEGORY)
    if errors:
        raise ValidationFailed(errors)
    return name, slug, description


async def create_category(db: AsyncSession, name: str, description: Optional[str] = None) -> Category:
    name, slug, description = await _prepare(db, name, description)
    try:
        category = await crud.create_category(db, name, slug, description)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationFailed([DUPLICATE_CATEGORY])
    logger.info("category_created", category_id=category.id, slug=slug)
    return category


async def update_category(
    db: AsyncSession, category_id: int, name: str, description: Optional[str] = None
) -> Category:
    category = await crud.get_category_by_id(db, category_id)
    if category is None:
        raise NotFound("Category not found.")
    name, slug, description = await _prepare(db, name, description, category_id)
    try:
        await crud.update_category(db, category, name, slug, description)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationFailed([DUPLICATE_CATEGORY])
    logger.info("category_updated", category_id=category_id, slug=slug)
    return category


async def delete_category(db: AsyncSession, category_id: int) -> None:
    """
    Delete a category that no post references.

    Raises:
        NotFound: no such category
        CategoryInUse: at least one post (any status) still uses it
    """
    category = await crud.get_category_by_id(db, category_id)
    if category is None:
        raise NotFound("Category not found.")
    post_count = await crud.count_category_posts(db, category_id)
    if post_count > 0:
        raise CategoryInUse(
            f"Cannot delete \"{category.name}\": {post_count} post(s) still use this category."
        )
    try:
        await crud.delete_category(db, category_id)
        await db.commit()
    except IntegrityError:
        # A post was assigned concurrently; the RESTRICT foreign key refused
        await db.rollback()
        raise CategoryInUse()
    logger.info("category_deleted", category_id=category_id)
