############################################################
#
# bloghut - Community Blogging Platform
#
# common.py: Templates, page guards and form helpers shared by routers
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Helpers shared by the dashboard routers."""

import os
from typing import Any, Dict, Optional

from fastapi import Request, UploadFile
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.text import excerpt, format_date, reading_time, time_ago, truncate
from backend.app.db import crud
from backend.app.db.models import User
from backend.app.logging_config import get_logger
from backend.app.security.csrf import get_csrf_token, validate_csrf_token
from backend.app.security.sessions import (
    end_user_session,
    flash,
    get_session_user_id,
    pop_flashes,
    remember_redirect,
)
from backend.app.settings import get_settings
from backend.app.storage.uploads import AVATAR, POST_IMAGE, get_image_storage

logger = get_logger(__name__)

LOGIN_URL = "/auth/login"
HOME_URL = "/posts"


def _template_context(request: Request) -> Dict[str, Any]:
    """Values every page needs: CSRF token, pending flashes, site name."""
    settings = get_settings()
    context = {
        "app_name": settings.app_name,
        "app_tagline": settings.app_tagline,
        "current_path": request.url.path,
        "csrf_token": "",
        "flashes": [],
    }
    # Error pages can be rendered outside the session middleware
    if "session" in request.scope:
        context["csrf_token"] = get_csrf_token(request)
        context["flashes"] = pop_flashes(request)
    return context


# Setup templates
templates_path = os.path.join(os.path.dirname(__file__), "templates")
templates = Jinja2Templates(directory=templates_path, context_processors=[_template_context])
templates.env.filters["time_ago"] = time_ago
templates.env.filters["date"] = format_date
templates.env.filters["truncate_text"] = truncate
templates.env.filters["excerpt"] = lambda post, length=150: excerpt(post.content, post.summary, length)
templates.env.filters["reading_time"] = reading_time
templates.env.filters["avatar_url"] = lambda name: get_image_storage().url(name, AVATAR)
templates.env.filters["post_image_url"] = lambda name: get_image_storage().url(name, POST_IMAGE)


def render(request: Request, template: str, context: Optional[Dict[str, Any]] = None, status_code: int = 200):
    return templates.TemplateResponse(request, template, context or {}, status_code=status_code)


def redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=302)


async def get_current_user(request: Request, db: AsyncSession) -> Optional[User]:
    """Logged-in user, or None. A session for a deleted account is dropped."""
    user_id = get_session_user_id(request)
    if not user_id:
        return None
    user = await crud.get_user_by_id(db, user_id)
    if user is None:
        end_user_session(request)
    return user


async def require_login(request: Request, db: AsyncSession):
    """Return (user, None) or (None, redirect to the login page)."""
    user = await get_current_user(request, db)
    if user is None:
        if request.method == "GET":
            remember_redirect(request)
        flash(request, "Please login to continue.", "warning")
        return None, redirect(LOGIN_URL)
    return user, None


async def require_admin(request: Request, db: AsyncSession):
    """Return (admin, None) or (None, redirect) for anonymous and non-admin users."""
    user, response = await require_login(request, db)
    if response:
        return None, response
    if not user.is_admin:
        logger.warning("admin_access_denied", user_id=user.id, path=request.url.path)
        flash(request, "You do not have permission to access this page.", "error")
        return None, redirect(HOME_URL)
    return user, None


def check_csrf(request: Request, token: Optional[str]) -> bool:
    """Validate a form's CSRF token; on failure queue the standard flash."""
    if validate_csrf_token(request, token):
        return True
    logger.warning("csrf_rejected", path=request.url.path)
    flash(request, "Invalid security token. Please try again.", "error")
    return False


async def read_upload(upload: Optional[UploadFile]) -> Optional[bytes]:
    """Bytes of an uploaded file, or None when the field was left empty."""
    if upload is None or not upload.filename:
        return None
    data = await upload.read()
    return data or None


def pagination(page: int, per_page: int, total: int) -> Dict[str, int]:
    total_pages = max(1, (total + per_page - 1) // per_page)
    return {"page": page, "total_pages": total_pages, "total": total, "per_page": per_page}


def page_number(page: Optional[int]) -> int:
    return page if page and page > 0 else 1
