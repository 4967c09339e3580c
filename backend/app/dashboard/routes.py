############################################################
#
# bloghut - Community Blogging Platform
#
# routes.py: Landing page and blog post web routes
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Dashboard routes for Blog Hut."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import PermissionDenied, ValidationFailed
from backend.app.core.validators import parse_int
from backend.app.dashboard.admin import router as admin_router
from backend.app.dashboard.auth_routes import router as auth_router
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
from backend.app.dashboard.profile import router as profile_router
from backend.app.db import crud
from backend.app.db.models import PostStatus
from backend.app.db.session import get_async_db
from backend.app.logging_config import get_logger
from backend.app.security.sessions import flash
from backend.app.services import engagement
from backend.app.services import posts as post_service
from backend.app.services.posts import PostForm
from backend.app.settings import get_settings

logger = get_logger(__name__)

dashboard_router = APIRouter(tags=["dashboard"])
dashboard_router.include_router(auth_router)
dashboard_router.include_router(profile_router)
dashboard_router.include_router(admin_router)

SORT_OPTIONS = ("relevance", "latest", "oldest", "popular")


# Landing page
@dashboard_router.get("/", response_class=HTMLResponse)
async def index(request: Request, db: AsyncSession = Depends(get_async_db)):
    """Landing page: trending and latest posts, categories, site totals."""
    settings = get_settings()
    user = await get_current_user(request, db)

    trending = await crud.get_trending_posts(
        db, days=settings.trending_days, limit=settings.trending_limit
    )
    latest = await crud.get_latest_posts(db, limit=settings.latest_limit)
    categories = await crud.get_categories(db, published_only=True)
    stats = await crud.get_site_stats(db)

    return render(
        request,
        "index.html",
        {
            "user": user,
            "trending": trending,
            "latest": latest,
            "categories": categories,
            "stats": stats,
        },
    )


# Post listing
@dashboard_router.get("/posts", response_class=HTMLResponse)
async def list_posts(
    request: Request,
    page: int = 1,
    category: Optional[str] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_async_db),
):
    """Published posts, newest first, filterable by category and text."""
    settings = get_settings()
    user = await get_current_user(request, db)
    page = page_number(page)
    per_page = settings.posts_per_page
    category_id = parse_int(category)
    search = (search or "").strip()

    posts, total = await crud.get_published_posts(
        db,
        skip=(page - 1) * per_page,
        limit=per_page,
        category_id=category_id,
        search=search or None,
    )
    categories = await crud.get_categories(db, published_only=True)

    return render(
        request,
        "posts/list.html",
        {
            "user": user,
            "posts": posts,
            "categories": categories,
            "category_id": category_id,
            "search": search,
            **pagination(page, per_page, total),
        },
    )


@dashboard_router.get("/posts/search", response_class=HTMLResponse)
async def search_posts(
    request: Request,
    q: Optional[str] = None,
    category: Optional[str] = None,
    author: Optional[str] = None,
    sort: str = "relevance",
    page: int = 1,
    db: AsyncSession = Depends(get_async_db),
):
    """Search published posts by text, category and author name."""
    settings = get_settings()
    user = await get_current_user(request, db)
    page = page_number(page)
    per_page = settings.search_results_per_page
    q = (q or "").strip()
    author = (author or "").strip()
    category_id = parse_int(category)
    if sort not in SORT_OPTIONS:
        sort = "relevance"

    posts, total = [], 0
    searched = bool(q or author or category_id)
    if searched:
        posts, total = await crud.search_posts(
            db,
            query=q or None,
            category_id=category_id,
            author=author or None,
            sort=sort,
            skip=(page - 1) * per_page,
            limit=per_page,
        )
    categories = await crud.get_categories(db, published_only=True)

    return render(
        request,
        "posts/search.html",
        {
            "user": user,
            "posts": posts,
            "categories": categories,
            "q": q,
            "author": author,
            "category_id": category_id,
            "sort": sort,
            "sort_options": SORT_OPTIONS,
            "searched": searched,
            **pagination(page, per_page, total),
        },
    )


# Authoring
def _form_context(form: PostForm, categories, errors=None, post=None):
    return {
        "form": form,
        "categories": categories,
        "errors": errors or [],
        "post": post,
        "statuses": [s.value for s in PostStatus],
    }


@dashboard_router.get("/posts/create", response_class=HTMLResponse)
async def create_post_form(request: Request, db: AsyncSession = Depends(get_async_db)):
    user, response = await require_login(request, db)
    if response:
        return response
    categories = await crud.get_categories(db)
    context = _form_context(PostForm(title="", content=""), categories)
    return render(request, "posts/form.html", {"user": user, **context})


@dashboard_router.post("/posts/create")
async def create_post(
    request: Request,
    title: str = Form(""),
    content: str = Form(""),
    summary: Optional[str] = Form(None),
    category_id: Optional[str] = Form(None),
    status: str = Form(PostStatus.PUBLISHED.value),
    csrf_token: Optional[str] = Form(None),
    featured_image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a post from the authoring form."""
    user, response = await require_login(request, db)
    if response:
        return response
    if not check_csrf(request, csrf_token):
        return redirect("/posts/create")
    author_id = user.id

    form = PostForm(
        title=title,
        content=content,
        summary=summary,
        category_id=parse_int(category_id),
        status=status,
    )
    image = await read_upload(featured_image)
    try:
        post = await post_service.create_post(db, user, form, image)
    except ValidationFailed as e:
        categories = await crud.get_categories(db)
        context = _form_context(form, categories, e.errors)
        return render(request, "posts/form.html", {"user": user, **context})
    except SQLAlchemyError:
        logger.exception("post_create_failed", user_id=author_id)
        flash(request, "An error occurred. Please try again.", "error")
        return redirect("/posts/create")

    if post.status == PostStatus.PUBLISHED:
        flash(request, "Blog post published successfully!", "success")
    else:
        flash(request, "Blog post saved as draft.", "success")
    return redirect(f"/posts/{post.id}")


@dashboard_router.get("/posts/{post_id}", response_class=HTMLResponse)
async def view_post(request: Request, post_id: int, db: AsyncSession = Depends(get_async_db)):
    """A single post with reactions, all of its comments and related posts."""
    settings = get_settings()
    user = await get_current_user(request, db)
    post = await crud.get_post(db, post_id)
    if post is None:
        flash(request, "Post not found.", "error")
        return redirect(HOME_URL)
    if not post_service.can_view(post, user):
        flash(request, "This post is not available.", "error")
        return redirect(HOME_URL)

    user_id = user.id if user else None
    await post_service.record_view(db, post, user)
    post = await crud.get_post(db, post_id, refresh=True)
    if user_id:
        user = await crud.get_user_by_id(db, user_id)

    reactions = await engagement.reaction_summary(db, post.id, user_id)
    comments, comment_count, _ = await engagement.list_comments(db, post.id, user)
    related = await crud.get_related_posts(db, post, limit=settings.related_posts_limit)

    return render(
        request,
        "posts/view.html",
        {
            "user": user,
            "post": post,
            "reactions": reactions,
            "comments": comments,
            "comment_count": comment_count,
            "related": related,
            "can_modify": post_service.can_modify(post, user),
        },
    )


@dashboard_router.get("/posts/{post_id}/edit", response_class=HTMLResponse)
async def edit_post_form(request: Request, post_id: int, db: AsyncSession = Depends(get_async_db)):
    user, response = await require_login(request, db)
    if response:
        return response
    post = await crud.get_post(db, post_id)
    if post is None:
        flash(request, "Post not found.", "error")
        return redirect(HOME_URL)
    if not post_service.can_modify(post, user):
        flash(request, "You do not have permission to edit this post.", "error")
        return redirect(HOME_URL)

    form = PostForm(
        title=post.title,
        content=post.content,
        summary=post.summary,
        category_id=post.category_id,
        status=post.status.value,
    )
    categories = await crud.get_categories(db)
    return render(request, "posts/form.html", {"user": user, **_form_context(form, categories, post=post)})


@dashboard_router.post("/posts/{post_id}/edit")
async def edit_post(
    request: Request,
    post_id: int,
    title: str = Form(""),
    content: str = Form(""),
    summary: Optional[str] = Form(None),
    category_id: Optional[str] = Form(None),
    status: str = Form(PostStatus.PUBLISHED.value),
    remove_image: Optional[str] = Form(None),
    csrf_token: Optional[str] = Form(None),
    featured_image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_async_db),
):
    user, response = await require_login(request, db)
    if response:
        return response
    post = await crud.get_post(db, post_id)
    if post is None:
        flash(request, "Post not found.", "error")
        return redirect(HOME_URL)
    if not check_csrf(request, csrf_token):
        return redirect(f"/posts/{post_id}/edit")

    form = PostForm(
        title=title,
        content=content,
        summary=summary,
        category_id=parse_int(category_id),
        status=status,
    )
    image = await read_upload(featured_image)
    try:
        await post_service.update_post(db, post, user, form, image, remove_image=bool(remove_image))
    except PermissionDenied as e:
        flash(request, e.message, "error")
        return redirect(HOME_URL)
    except ValidationFailed as e:
        categories = await crud.get_categories(db)
        context = _form_context(form, categories, e.errors, post=post)
        return render(request, "posts/form.html", {"user": user, **context})
    except SQLAlchemyError:
        logger.exception("post_update_failed", post_id=post_id)
        flash(request, "An error occurred. Please try again.", "error")
        return redirect(f"/posts/{post_id}/edit")

    flash(request, "Blog post updated successfully!", "success")
    return redirect(f"/posts/{post_id}")


@dashboard_router.post("/posts/{post_id}/delete")
async def delete_post(
    request: Request,
    post_id: int,
    csrf_token: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_async_db),
):
    user, response = await require_login(request, db)
    if response:
        return response
    if not check_csrf(request, csrf_token):
        return redirect(f"/posts/{post_id}")
    post = await crud.get_post(db, post_id)
    if post is None:
        flash(request, "Post not found.", "error")
        return redirect("/profile/blogs")

    try:
        await post_service.delete_post(db, post, user)
    except PermissionDenied as e:
        flash(request, e.message, "error")
        return redirect(HOME_URL)
    except SQLAlchemyError:
        logger.exception("post_delete_failed", post_id=post_id)
        flash(request, "An error occurred while deleting the post.", "error")
        return redirect(f"/posts/{post_id}")

    flash(request, "Blog post deleted successfully.", "success")
    return redirect("/profile/blogs")
