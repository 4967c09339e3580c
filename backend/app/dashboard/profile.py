############################################################
#
# bloghut - Community Blogging Platform
#
# profile.py: Own profile, profile editing, my blogs and public profiles
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Profile pages."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ValidationFailed
from backend.app.dashboard.common import (
    HOME_URL,
    check_csrf,
    get_current_user,
    page_number,
    pagination,
    read_upload,
    redirect,
    render,
    require_login,
)
from backend.app.db import crud
from backend.app.db.models import PostStatus
from backend.app.db.session import get_async_db
from backend.app.logging_config import get_logger
from backend.app.security.sessions import flash
from backend.app.services import users as user_service
from backend.app.services.users import ProfileForm
from backend.app.settings import get_settings

logger = get_logger(__name__)

router = APIRouter(tags=["profile"])

RECENT_POSTS_LIMIT = 5
BLOG_FILTERS = ("all", "published", "draft")


@router.get("/profile", response_class=HTMLResponse)
async def my_profile(request: Request, db: AsyncSession = Depends(get_async_db)):
    """The logged-in user's profile with stats, badges and recent posts (drafts included)."""
    user, response = await require_login(request, db)
    if response:
        return response

    stats = await crud.get_user_stats(db, user.id)
    badges = await crud.get_user_badges(db, user.id)
    recent_posts, _ = await crud.get_user_posts(db, user.id, limit=RECENT_POSTS_LIMIT)
    top_post = await crud.get_top_post(db, user.id)

    return render(
        request,
        "profile/view.html",
        {
            "user": user,
            "profile": user,
            "stats": stats,
            "badges": badges,
            "recent_posts": recent_posts,
            "top_post": top_post,
        },
    )


@router.get("/profile/edit", response_class=HTMLResponse)
async def edit_profile_form(request: Request, db: AsyncSession = Depends(get_async_db)):
    user, response = await require_login(request, db)
    if response:
        return response
    form = ProfileForm(username=user.username, email=user.email, bio=user.bio)
    return render(request, "profile/edit.html", {"user": user, "form": form, "errors": []})


@router.post("/profile/edit")
async def edit_profile(
    request: Request,
    username: str = Form(""),
    email: str = Form(""),
    bio: Optional[str] = Form(None),
    current_password: Optional[str] = Form(None),
    new_password: Optional[str] = Form(None),
    confirm_password: Optional[str] = Form(None),
    remove_avatar: Optional[str] = Form(None),
    csrf_token: Optional[str] = Form(None),
    profile_image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_async_db),
):
    """Save profile changes in one transaction and refresh the session username."""
    user, response = await require_login(request, db)
    if response:
        return response
    if not check_csrf(request, csrf_token):
        return redirect("/profile/edit")

    user_id = user.id
    form = ProfileForm(
        username=username,
        email=email,
        bio=bio,
        current_password=current_password,
        new_password=new_password,
        confirm_password=confirm_password,
        remove_avatar=bool(remove_avatar),
    )
    avatar = await read_upload(profile_image)
    try:
        user = await user_service.update_profile(db, user, form, avatar)
    except ValidationFailed as e:
        user = await crud.get_user_by_id(db, user_id)
        return render(request, "profile/edit.html", {"user": user, "form": form, "errors": e.errors})
    except SQLAlchemyError:
        logger.exception("profile_update_failed", user_id=user_id)
        flash(request, "An error occurred. Please try again.", "error")
        return redirect("/profile/edit")

    request.session["username"] = user.username
    flash(request, "Profile updated successfully!", "success")
    return redirect("/profile")


@router.get("/profile/blogs", response_class=HTMLResponse)
async def my_blogs(
    request: Request,
    status: str = "all",
    page: int = 1,
    db: AsyncSession = Depends(get_async_db),
):
    """The user's own posts with a status filter and per-status counts."""
    user, response = await require_login(request, db)
    if response:
        return response

    if status not in BLOG_FILTERS:
        status = "all"
    per_page = get_settings().user_posts_per_page
    page = page_number(page)
    status_filter = None if status == "all" else PostStatus(status)

    posts, total = await crud.get_user_posts(
        db, user.id, status=status_filter, skip=(page - 1) * per_page, limit=per_page
    )
    counts = {
        "all": await crud.count_user_posts(db, user.id),
        "published": await crud.count_user_posts(db, user.id, PostStatus.PUBLISHED),
        "draft": await crud.count_user_posts(db, user.id, PostStatus.DRAFT),
    }

    return render(
        request,
        "profile/blogs.html",
        {
            "user": user,
            "posts": posts,
            "status": status,
            "filters": BLOG_FILTERS,
            "counts": counts,
            **pagination(page, per_page, total),
        },
    )


@router.get("/users/{user_id}", response_class=HTMLResponse)
async def user_profile(
    request: Request,
    user_id: int,
    page: int = 1,
    db: AsyncSession = Depends(get_async_db),
):
    """Public profile: published posts only."""
    user = await get_current_user(request, db)
    if user is not None and user.id == user_id:
        return redirect("/profile")

    profile = await crud.get_user_by_id(db, user_id)
    if profile is None:
        flash(request, "User not found.", "error")
        return redirect(HOME_URL)

    per_page = get_settings().user_posts_per_page
    page = page_number(page)
    posts, total = await crud.get_user_posts(
        db, user_id, status=PostStatus.PUBLISHED, skip=(page - 1) * per_page, limit=per_page
    )

    return render(
        request,
        "profile/user.html",
        {
            "user": user,
            "profile": profile,
            "posts": posts,
            "stats": await crud.get_user_stats(db, user_id),
            "badges": await crud.get_user_badges(db, user_id),
            "top_post": await crud.get_top_post(db, user_id),
            **pagination(page, per_page, total),
        },
    )
