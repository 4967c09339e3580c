############################################################
#
# bloghut - Community Blogging Platform
#
# auth.py: Registration, login and password reset
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Account services: registration, credential checks and password reset."""

from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import InvalidCredentials, ValidationFailed
from backend.app.core.validators import validate_new_password, validate_registration
from backend.app.db import crud
from backend.app.db.models import User
from backend.app.logging_config import get_logger
from backend.app.security.password_hash import hash_password, needs_rehash, verify_password
from backend.app.security.tokens import make_reset_token, read_reset_token, token_matches_user
from backend.app.services.badges import award_registration_badge

logger = get_logger(__name__)

USERNAME_TAKEN = "Username already taken. Please choose another."
EMAIL_TAKEN = "Email already registered. Please login or use another email."
RESET_LINK_INVALID = "This password reset link is invalid or has expired."


async def register_user(
    db: AsyncSession,
    username: str,
    email: str,
    password: str,
    confirm_password: str,
) -> User:
    """
    Create an account with role ``user`` and the Newcomer badge.

    The user row and the badge are committed together. The caller is not
    logged in afterwards.

    Raises:
        ValidationFailed: invalid fields or username/email already in use
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()

    errors = validate_registration(username, email, password, confirm_password)
    if not errors:
        if await crud.username_taken(db, username):
            errors.append(USERNAME_TAKEN)
        if await crud.email_taken(db, email):
            errors.append(EMAIL_TAKEN)
    if errors:
        raise ValidationFailed(errors)

    try:
        user = await crud.create_user(db, username, email, hash_password(password))
        await award_registration_badge(db, user.id)
        await db.commit()
    except IntegrityError:
        # A concurrent registration took the name between check and insert
        await db.rollback()
        logger.warning("registration_conflict", username=username)
        errors = []
        if await crud.username_taken(db, username):
            errors.append(USERNAME_TAKEN)
        if await crud.email_taken(db, email):
            errors.append(EMAIL_TAKEN)
        raise ValidationFailed(errors or ["Registration failed. Please try again."])

    logger.info("user_registered", user_id=user.id, username=username)
    return user


async def authenticate(db: AsyncSession, identifier: str, password: str) -> User:
    """
    Check credentials given as email-or-username plus password.

    Raises:
        ValidationFailed: a field was left empty
        InvalidCredentials: unknown identifier or wrong password
    """
    identifier = (identifier or "").strip()
    errors = []
    if not identifier:
        errors.append("Email or username is required.")
    if not password:
        errors.append("Password is required.")
    if errors:
        raise ValidationFailed(errors)

    user = await crud.get_user_by_identifier(db, identifier)
    if user is None or not verify_password(password, user.password_hash):
        logger.info("login_failed", identifier=identifier)
        raise InvalidCredentials()

    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        await db.commit()
        logger.info("password_rehashed", user_id=user.id)

    logger.info("login_succeeded", user_id=user.id)
    return user


async def request_password_reset(db: AsyncSession, email: str) -> Optional[str]:
    """
    Issue a reset token for the account registered under ``email``.

    Returns None when no such account exists; callers show the same neutral
    message either way.
    """
    email = (email or "").strip().lower()
    if not email:
        raise ValidationFailed(["Email is required."])
    user = await crud.get_user_by_email(db, email)
    if user is None:
        logger.info("password_reset_unknown_email")
        return None
    token = make_reset_token(user)
    logger.info("password_reset_requested", user_id=user.id)
    return token


async def get_reset_user(db: AsyncSession, token: str) -> User:
    """Resolve a reset token to its user, or raise ValidationFailed."""
    user_id = read_reset_token(token or "")
    user = await crud.get_user_by_id(db, user_id) if user_id else None
    if user is None or not token_matches_user(token, user):
        raise ValidationFailed([RESET_LINK_INVALID])
    return user


async def reset_password(
    db: AsyncSession, token: str, password: str, confirm_password: str
) -> User:
    """Set a new password through a reset token; the token is spent afterwards."""
    user = await get_reset_user(db, token)
    errors = validate_new_password(password, confirm_password)
    if errors:
        raise ValidationFailed(errors)
    await crud.update_user(db, user, password_hash=hash_password(password))
    await db.commit()
    logger.info("password_reset_completed", user_id=user.id)
    return user
