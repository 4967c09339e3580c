############################################################
#
# bloghut - Community Blogging Platform
#
# engagement_api.py: JSON endpoints for comments and reactions
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""AJAX endpoints used by the post page.

Every response is ``{"success": bool, "message": str, ...}``. Requests must
carry ``X-Requested-With: XMLHttpRequest``; mutations additionally need a
logged-in session and the CSRF token in ``X-CSRF-Token``.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import BlogHutError, NotFound, PermissionDenied, ValidationFailed
from backend.app.core.validators import parse_int
from backend.app.db import crud
from backend.app.db.models import User
from backend.app.db.session import get_async_db
from backend.app.logging_config import get_logger
from backend.app.security.csrf import validate_csrf_header
from backend.app.security.sessions import get_session_user_id
from backend.app.services import engagement
from backend.app.settings import get_settings

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["engagement"])

GENERIC_ERROR = "An error occurred"


def _reply(success: bool, message: str = "", status_code: int = 200, **data: Any) -> JSONResponse:
    body = {"success": success, "message": message}
    body.update(data)
    return JSONResponse(body, status_code=status_code)


def _error_status(error: BlogHutError) -> int:
    if isinstance(error, NotFound):
        return 404
    if isinstance(error, PermissionDenied):
        return 403
    return 400


def _is_ajax(request: Request) -> bool:
    return request.headers.get("x-requested-with", "").lower() == "xmlhttprequest"


async def _current_user(request: Request, db: AsyncSession) -> Optional[User]:
    user_id = get_session_user_id(request)
    return await crud.get_user_by_id(db, user_id) if user_id else None


async def _guard(request: Request, db: AsyncSession, login_message: Optional[str] = None):
    """
    Common request checks.

    Returns (user, None) when the call may proceed, otherwise (None, error
    response). ``login_message`` marks a mutation: a user and a valid CSRF
    header are then required.
    """
    if not _is_ajax(request):
        return None, _reply(False, "Invalid request method", status_code=400)
    user = await _current_user(request, db)
    if login_message is None:
        return user, None
    if user is None:
        return None, _reply(False, login_message, status_code=401)
    if not validate_csrf_header(request):
        logger.warning("csrf_rejected", path=request.url.path, user_id=user.id)
        return None, _reply(False, "Invalid security token", status_code=403)
    return user, None


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

@router.get("/comments")
async def list_comments(
    request: Request,
    post_id: Optional[str] = Query(None),
    offset: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_db),
):
    """One batch of top-level comments, newest first."""
    user, error = await _guard(request, db)
    if error:
        return error

    start = max(parse_int(offset) or 0, 0)
    batch = get_settings().comments_batch_size
    try:
        comments, total, top_level = await engagement.list_comments(
            db, parse_int(post_id), user, offset=start, limit=batch
        )
    except BlogHutError as e:
        return _reply(False, e.message, status_code=_error_status(e))

    return _reply(
        True,
        comments=[engagement.serialize_comment(c, user) for c in comments],
        comment_count=total,
        has_more=start + len(comments) < top_level,
        next_offset=start + len(comments),
    )


@router.post("/comments")
async def add_comment(
    request: Request,
    post_id: Optional[str] = Form(None),
    comment: str = Form(""),
    parent_comment_id: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_async_db),
):
    user, error = await _guard(request, db, "You must be logged in to comment")
    if error:
        return error

    try:
        created, count = await engagement.add_comment(
            db, parse_int(post_id), user, comment, parse_int(parent_comment_id)
        )
    except BlogHutError as e:
        return _reply(False, e.message, status_code=_error_status(e))
    except SQLAlchemyError:
        logger.exception("comment_add_failed", post_id=post_id)
        return _reply(False, GENERIC_ERROR, status_code=500)

    return _reply(
        True,
        "Comment added successfully",
        comment=engagement.serialize_comment(created, user),
        comment_count=count,
    )


@router.delete("/comments")
async def delete_comment(
    request: Request,
    comment_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_db),
):
    user, error = await _guard(request, db, "You must be logged in to delete comments")
    if error:
        return error

    try:
        post_id, count = await engagement.delete_comment(db, parse_int(comment_id), user)
    except BlogHutError as e:
        return _reply(False, e.message, status_code=_error_status(e))
    except SQLAlchemyError:
        logger.exception("comment_delete_failed", comment_id=comment_id)
        return _reply(False, GENERIC_ERROR, status_code=500)

    return _reply(True, "Comment deleted successfully", post_id=post_id, comment_count=count)


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------

@router.get("/reactions")
async def get_reactions(
    request: Request,
    post_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_db),
):
    """Counts for a post and the viewer's own reaction (null when anonymous)."""
    user, error = await _guard(request, db)
    if error:
        return error

    try:
        post = await engagement.visible_post(db, parse_int(post_id), user)
    except BlogHutError as e:
        return _reply(False, e.message, status_code=_error_status(e))

    summary = await engagement.reaction_summary(db, post.id, user.id if user else None)
    return _reply(True, **summary)


@router.post("/reactions")
async def set_reaction(
    request: Request,
    post_id: Optional[str] = Form(None),
    type: str = Form(""),
    db: AsyncSession = Depends(get_async_db),
):
    user, error = await _guard(request, db, "You must be logged in to react")
    if error:
        return error

    try:
        summary = await engagement.set_reaction(db, parse_int(post_id), user, type)
    except ValidationFailed as e:
        return _reply(False, e.message, status_code=400)
    except BlogHutError as e:
        return _reply(False, e.message, status_code=_error_status(e))
    except SQLAlchemyError:
        logger.exception("reaction_failed", post_id=post_id)
        return _reply(False, GENERIC_ERROR, status_code=500)

    messages = {
        "added": "Reaction added",
        "changed": "Reaction updated",
        "removed": "Reaction removed",
    }
    return _reply(True, messages[summary["action"]], **summary)


@router.delete("/reactions")
async def remove_reaction(
    request: Request,
    post_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_db),
):
    user, error = await _guard(request, db, "You must be logged in to react")
    if error:
        return error

    try:
        summary = await engagement.remove_reaction(db, parse_int(post_id), user)
    except BlogHutError as e:
        return _reply(False, e.message, status_code=_error_status(e))
    except SQLAlchemyError:
        logger.exception("reaction_remove_failed", post_id=post_id)
        return _reply(False, GENERIC_ERROR, status_code=500)

    return _reply(True, "Reaction removed", **summary)
