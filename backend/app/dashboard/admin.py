############################################################
#
# bloghut - Community Blogging Platform
#
# admin.py: Admin console pages and moderation actions
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Admin console.

Each listing page takes its filters as query parameters; moderation actions
are POSTed back to the same path with an ``action`` field and a CSRF token,
then redirect to the listing with a flash message.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import BlogHutError, ValidationFailed
from backend.app.core.validators import parse_int
from backend.app.dashboard.common import (
    check_csrf,
    page_number,
    pagination,
    redirect,
    render,
    require_admin,
)
from backend.app.db import crud, engagement_crud
from backend.app.db.models import PostStatus, UserRole
from backend.app.db.session import get_async_db
from backend.app.logging_config import get_logger
from backend.app.security.sessions import flash
from backend.app.services import categories as category_service
from backend.app.services import engagement
from backend.app.services import posts as post_service
from backend.app.services import users as user_service
from backend.app.settings import get_settings

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

GENERIC_ERROR = "An error occurred."
DASHBOARD_LIST_LIMIT = 5


def _flash_error(request: Request, error: BlogHutError) -> None:
    for message in getattr(error, "errors", None) or [error.message]:
        flash(request, message, "error")


# Dashboard
@router.get("", response_class=HTMLResponse)
async def admin_dashboard(request: Request, db: AsyncSession = Depends(get_async_db)):
    """Site totals, recent activity and top content."""
    admin, response = await require_admin(request, db)
    if response:
        return response

    return render(
        request,
        "admin/dashboard.html",
        {
            "user": admin,
            "stats": await crud.get_site_stats(db),
            "recent_posts": await crud.get_recent_posts(db, DASHBOARD_LIST_LIMIT),
            "recent_users": await crud.get_recent_users(db, DASHBOARD_LIST_LIMIT),
            "recent_comments": await engagement_crud.get_recent_comments(db, DASHBOARD_LIST_LIMIT),
            "top_authors": await crud.get_top_authors(db, DASHBOARD_LIST_LIMIT),
            "popular_posts": await crud.get_popular_posts(db, limit=DASHBOARD_LIST_LIMIT),
            "category_stats": await crud.get_category_stats(db),
        },
    )


# Users
@router.get("/users", response_class=HTMLResponse)
async def admin_users(
    request: Request,
    role: str = "all",
    search: Optional[str] = None,
    page: int = 1,
    db: AsyncSession = Depends(get_async_db),
):
    """Admin user management with role filter, search and pagination."""
    admin, response = await require_admin(request, db)
    if response:
        return response

    if role not in ("all", UserRole.USER.value, UserRole.ADMIN.value):
        role = "all"
    search = (search or "").strip()
    per_page = get_settings().admin_users_per_page
    page = page_number(page)
    users, total = await crud.get_users(
        db,
        skip=(page - 1) * per_page,
        limit=per_page,
        role=None if role == "all" else UserRole(role),
        search=search or None,
    )

    return render(
        request,
        "admin/users.html",
        {
            "user": admin,
            "users": users,
            "role": role,
            "search": search,
            **pagination(page, per_page, total),
        },
    )


@router.post("/users")
async def admin_user_action(
    request: Request,
    action: str = Form(""),
    user_id: Optional[str] = Form(None),
    csrf_token: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_async_db),
):
    admin, response = await require_admin(request, db)
    if response:
        return response
    if not check_csrf(request, csrf_token):
        return redirect("/admin/users")

    target_id = parse_int(user_id)
    if not target_id:
        flash(request, "Invalid user ID.", "error")
        return redirect("/admin/users")

    admin_id = admin.id
    try:
        if action == "toggle_role":
            await user_service.toggle_role(db, admin, target_id)
            flash(request, "User role updated successfully.", "success")
        elif action == "delete":
            await user_service.delete_account(db, admin, target_id)
            flash(request, "User deleted successfully.", "success")
        else:
            flash(request, GENERIC_ERROR, "error")
    except BlogHutError as e:
        _flash_error(request, e)
    except SQLAlchemyError:
        logger.exception("admin_user_action_failed", action=action, user_id=target_id, by=admin_id)
        flash(request, GENERIC_ERROR, "error")

    return redirect("/admin/users")


# Posts
@router.get("/posts", response_class=HTMLResponse)
async def admin_posts(
    request: Request,
    status: str = "all",
    category: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    db: AsyncSession = Depends(get_async_db),
):
    admin, response = await require_admin(request, db)
    if response:
        return response

    if status not in ("all", PostStatus.PUBLISHED.value, PostStatus.DRAFT.value):
        status = "all"
    category_id = parse_int(category)
    search = (search or "").strip()
    per_page = get_settings().admin_posts_per_page
    page = page_number(page)
    posts, total = await crud.get_admin_posts(
        db,
        skip=(page - 1) * per_page,
        limit=per_page,
        status=None if status == "all" else PostStatus(status),
        category_id=category_id,
        search=search or None,
    )

    return render(
        request,
        "admin/posts.html",
        {
            "user": admin,
            "posts": posts,
            "categories": await crud.get_categories(db),
            "status": status,
            "category_id": category_id,
            "search": search,
            **pagination(page, per_page, total),
        },
    )


@router.post("/posts")
async def admin_post_action(
    request: Request,
    action: str = Form(""),
    post_id: Optional[str] = Form(None),
    csrf_token: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_async_db),
):
    admin, response = await require_admin(request, db)
    if response:
        return response
    if not check_csrf(request, csrf_token):
        return redirect("/admin/posts")

    target_id = parse_int(post_id)
    post = await crud.get_post(db, target_id) if target_id else None
    if post is None:
        flash(request, "Post not found." if target_id else "Invalid post ID.", "error")
        return redirect("/admin/posts")

    admin_id = admin.id
    try:
        if action == "delete":
            await post_service.delete_post(db, post, admin)
            flash(request, "Post deleted successfully.", "success")
        elif action == "toggle_status":
            new_status = PostStatus.DRAFT if post.is_published else PostStatus.PUBLISHED
            await post_service.set_status(db, post, new_status)
            flash(request, "Post status updated.", "success")
        else:
            flash(request, GENERIC_ERROR, "error")
    except BlogHutError as e:
        _flash_error(request, e)
    except SQLAlchemyError:
        logger.exception("admin_post_action_failed", action=action, post_id=target_id, by=admin_id)
        flash(request, GENERIC_ERROR, "error")

    return redirect("/admin/posts")


# Categories
@router.get("/categories", response_class=HTMLResponse)
async def admin_categories(
    request: Request,
    edit: Optional[str] = None,
    db: AsyncSession = Depends(get_async_db),
):
    admin, response = await require_admin(request, db)
    if response:
        return response

    edit_id = parse_int(edit)
    editing = await crud.get_category_by_id(db, edit_id) if edit_id else None
    return render(
        request,
        "admin/categories.html",
        {
            "user": admin,
            "categories": await crud.get_categories(db),
            "editing": editing,
        },
    )


@router.post("/categories")
async def admin_category_action(
    request: Request,
    action: str = Form(""),
    category_id: Optional[str] = Form(None),
    name: str = Form(""),
    description: Optional[str] = Form(None),
    csrf_token: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_async_db),
):
    """Add, edit or delete a category."""
    admin, response = await require_admin(request, db)
    if response:
        return response
    if not check_csrf(request, csrf_token):
        return redirect("/admin/categories")

    target_id = parse_int(category_id)
    try:
        if action == "add":
            await category_service.create_category(db, name, description)
            flash(request, "Category added successfully!", "success")
        elif action == "edit" and target_id:
            await category_service.update_category(db, target_id, name, description)
            flash(request, "Category updated successfully!", "success")
        elif action == "delete" and target_id:
            await category_service.delete_category(db, target_id)
            flash(request, "Category deleted successfully!", "success")
        else:
            flash(request, GENERIC_ERROR, "error")
    except ValidationFailed as e:
        _flash_error(request, e)
        if action == "edit":
            return redirect(f"/admin/categories?edit={target_id}")
    except BlogHutError as e:
        _flash_error(request, e)
    except SQLAlchemyError:
        logger.exception("admin_category_action_failed", action=action, category_id=target_id)
        flash(request, GENERIC_ERROR, "error")

    return redirect("/admin/categories")


# Comments
@router.get("/comments", response_class=HTMLResponse)
async def admin_comments(
    request: Request,
    search: Optional[str] = None,
    page: int = 1,
    db: AsyncSession = Depends(get_async_db),
):
    admin, response = await require_admin(request, db)
    if response:
        return response

    search = (search or "").strip()
    per_page = get_settings().admin_comments_per_page
    page = page_number(page)
    comments, total = await engagement_crud.get_admin_comments(
        db, skip=(page - 1) * per_page, limit=per_page, search=search or None
    )

    return render(
        request,
        "admin/comments.html",
        {
            "user": admin,
            "comments": comments,
            "search": search,
            **pagination(page, per_page, total),
        },
    )


@router.post("/comments")
async def admin_comment_action(
    request: Request,
    action: str = Form(""),
    comment_id: Optional[str] = Form(None),
    csrf_token: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_async_db),
):
    admin, response = await require_admin(request, db)
    if response:
        return response
    if not check_csrf(request, csrf_token):
        return redirect("/admin/comments")

    target_id = parse_int(comment_id)
    try:
        if action == "delete":
            await engagement.delete_comment(db, target_id, admin)
            flash(request, "Comment deleted successfully!", "success")
        else:
            flash(request, GENERIC_ERROR, "error")
    except BlogHutError as e:
        _flash_error(request, e)
    except SQLAlchemyError:
        logger.exception("admin_comment_action_failed", comment_id=target_id)
        flash(request, GENERIC_ERROR, "error")

    return redirect("/admin/comments")
