############################################################
#
# bloghut - Community Blogging Platform
#
# users.py: Profile updates and admin account actions
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""User account services."""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import InvalidUpload, NotFound, PermissionDenied, ValidationFailed
from backend.app.core.validators import validate_new_password, validate_profile
from backend.app.db import crud
from backend.app.db.models import User, UserRole
from backend.app.logging_config import get_logger
from backend.app.security.password_hash import hash_password, verify_password
from backend.app.storage.uploads import AVATAR, POST_IMAGE, get_image_storage

logger = get_logger(__name__)

SELF_MODIFICATION = "You cannot modify your own account."


@dataclass
class ProfileForm:
    """Fields submitted on the edit profile form."""

    username: str
    email: str
    bio: Optional[str] = None
    current_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None
    remove_avatar: bool = False


async def update_profile(
    db: AsyncSession,
    user: User,
    form: ProfileForm,
    avatar: Optional[bytes] = None,
) -> User:
    """
    Update a user's own profile in one transaction.

    Changing the password requires the current one. A new avatar replaces
    the old file, ``remove_avatar`` reverts to the default picture.

    Raises:
        ValidationFailed: any rejected field, taken username/email, bad image
    """
    username = (form.username or "").strip()
    email = (form.email or "").strip().lower()
    bio = (form.bio or "").strip() or None

    errors = validate_profile(username, email, bio)
    if not errors:
        if await crud.username_taken(db, username, exclude_user_id=user.id):
            errors.append("Username already taken.")
        if await crud.email_taken(db, email, exclude_user_id=user.id):
            errors.append("Email already registered.")

    new_hash = None
    if form.new_password:
        if not form.current_password:
            errors.append("Current password is required to change password.")
        elif not verify_password(form.current_password, user.password_hash):
            errors.append("Current password is incorrect.")
        else:
            password_errors = validate_new_password(
                form.new_password, form.confirm_password or "", changing=True
            )
            errors += password_errors
            if not password_errors:
                new_hash = hash_password(form.new_password)

    if errors:
        raise ValidationFailed(errors)

    storage = get_image_storage()
    new_avatar = None
    if avatar:
        try:
            new_avatar = await storage.store(avatar, AVATAR)
        except InvalidUpload as e:
            raise ValidationFailed([e.message])

    old_avatar = user.profile_image
    profile_image = old_avatar
    if new_avatar:
        profile_image = new_avatar
    elif form.remove_avatar:
        profile_image = None

    fields = {"username": username, "email": email, "bio": bio, "profile_image": profile_image}
    if new_hash:
        fields["password_hash"] = new_hash

    try:
        await crud.update_user(db, user, **fields)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        await db.refresh(user)
        await storage.delete(new_avatar, AVATAR)
        raise ValidationFailed(["Username or email already in use."])
    except SQLAlchemyError:
        await db.rollback()
        await storage.delete(new_avatar, AVATAR)
        raise

    if old_avatar and old_avatar != profile_image:
        await storage.delete(old_avatar, AVATAR)

    logger.info("profile_updated", user_id=user.id, password_changed=bool(new_hash))
    return user


async def _target(db: AsyncSession, actor: User, user_id: int) -> User:
    if actor.id == user_id:
        raise PermissionDenied(SELF_MODIFICATION)
    target = await crud.get_user_by_id(db, user_id)
    if target is None:
        raise NotFound("User not found.")
    return target


async def toggle_role(db: AsyncSession, actor: User, user_id: int) -> User:
    """Promote a user to admin or demote an admin to user."""
    target = await _target(db, actor, user_id)
    new_role = UserRole.USER if target.role == UserRole.ADMIN else UserRole.ADMIN
    await crud.update_user(db, target, role=new_role)
    await db.commit()
    logger.info("user_role_changed", user_id=user_id, role=new_role.value, by=actor.id)
    return target


async def delete_account(db: AsyncSession, actor: User, user_id: int) -> None:
    """
    Delete another user's account. Their posts, comments, reactions and
    badges cascade; uploaded images are removed after the commit.
    """
    target = await _target(db, actor, user_id)
    post_images = await crud.get_user_post_images(db, user_id)
    avatar = target.profile_image

    try:
        await crud.delete_user(db, user_id)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise

    storage = get_image_storage()
    for filename in post_images:
        await storage.delete(filename, POST_IMAGE)
    await storage.delete(avatar, AVATAR)
    logger.info("user_deleted", user_id=user_id, by=actor.id, images_removed=len(post_images))
