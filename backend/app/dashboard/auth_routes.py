############################################################
#
# bloghut - Community Blogging Platform
#
# auth_routes.py: Login, registration, logout and password reset pages
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Authentication pages."""

from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import InvalidCredentials, ValidationFailed
from backend.app.dashboard.common import HOME_URL, LOGIN_URL, check_csrf, get_current_user, redirect, render
from backend.app.db.session import get_async_db
from backend.app.logging_config import get_logger
from backend.app.security.csrf import rotate_csrf_token
from backend.app.security.sessions import end_user_session, flash, pop_redirect, start_user_session
from backend.app.services import auth as auth_service
from backend.app.settings import get_settings

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

RESET_REQUESTED = "If this email is registered, password reset instructions would be sent."


# Login
@router.get("/login", response_class=HTMLResponse)
async def login_form(request: Request, db: AsyncSession = Depends(get_async_db)):
    """Display login form."""
    if await get_current_user(request, db):
        return redirect(HOME_URL)
    return render(request, "auth/login.html", {"identifier": "", "errors": []})


@router.post("/login")
async def login(
    request: Request,
    identifier: str = Form(""),
    password: str = Form(""),
    remember_me: Optional[str] = Form(None),
    csrf_token: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_async_db),
):
    """Handle login with email or username."""
    if not check_csrf(request, csrf_token):
        return redirect(LOGIN_URL)

    try:
        user = await auth_service.authenticate(db, identifier, password)
    except (ValidationFailed, InvalidCredentials) as e:
        errors = getattr(e, "errors", [e.message])
        return render(request, "auth/login.html", {"identifier": identifier, "errors": errors})

    start_user_session(request, user, remember=bool(remember_me))
    rotate_csrf_token(request)
    flash(request, f"Welcome back, {user.username}!", "success")
    return redirect(pop_redirect(request, HOME_URL))


@router.get("/logout")
async def logout(request: Request, db: AsyncSession = Depends(get_async_db)):
    """Handle logout."""
    user = await get_current_user(request, db)
    if user is None:
        return redirect(LOGIN_URL)
    username = user.username
    end_user_session(request)
    logger.info("logout", user_id=user.id)
    flash(request, f"You have been logged out successfully. See you soon, {username}!", "success")
    return redirect(LOGIN_URL)


# Registration
@router.get("/register", response_class=HTMLResponse)
async def register_form(request: Request, db: AsyncSession = Depends(get_async_db)):
    if await get_current_user(request, db):
        return redirect(HOME_URL)
    return render(request, "auth/register.html", {"username": "", "email": "", "errors": []})


@router.post("/register")
async def register(
    request: Request,
    username: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form(""),
    csrf_token: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_async_db),
):
    """Create an account; the new user is sent to the login page, not logged in."""
    if not check_csrf(request, csrf_token):
        return redirect("/auth/register")

    try:
        await auth_service.register_user(db, username, email, password, confirm_password)
    except ValidationFailed as e:
        return render(
            request,
            "auth/register.html",
            {"username": username, "email": email, "errors": e.errors},
        )
    except SQLAlchemyError:
        logger.exception("registration_failed")
        flash(request, "An error occurred. Please try again.", "error")
        return redirect("/auth/register")

    flash(request, "Registration successful! Please login with your credentials.", "success")
    return redirect(LOGIN_URL)


# Password reset
@router.get("/forgot-password", response_class=HTMLResponse)
async def forgot_password_form(request: Request):
    return render(request, "auth/forgot.html", {"email": "", "errors": [], "sent": False})


@router.post("/forgot-password")
async def forgot_password(
    request: Request,
    email: str = Form(""),
    csrf_token: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Issue a reset link. No mail is sent: the link is written to the log,
    and the page shows the same message whether or not the email exists.
    """
    if not check_csrf(request, csrf_token):
        return redirect("/auth/forgot-password")

    try:
        token = await auth_service.request_password_reset(db, email)
    except ValidationFailed as e:
        return render(request, "auth/forgot.html", {"email": email, "errors": e.errors, "sent": False})

    if token:
        link = f"{get_settings().site_url.rstrip('/')}/auth/reset-password?token={token}"
        logger.info("password_reset_link", link=link)
    return render(
        request,
        "auth/forgot.html",
        {"email": "", "errors": [], "sent": True, "message": RESET_REQUESTED},
    )


@router.get("/reset-password", response_class=HTMLResponse)
async def reset_password_form(
    request: Request,
    token: str = "",
    db: AsyncSession = Depends(get_async_db),
):
    try:
        await auth_service.get_reset_user(db, token)
    except ValidationFailed as e:
        flash(request, e.message, "error")
        return redirect("/auth/forgot-password")
    return render(request, "auth/reset.html", {"token": token, "errors": []})


@router.post("/reset-password")
async def reset_password(
    request: Request,
    token: str = Form(""),
    new_password: str = Form(""),
    confirm_password: str = Form(""),
    csrf_token: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_async_db),
):
    if not check_csrf(request, csrf_token):
        return redirect(f"/auth/reset-password?token={token}")

    try:
        await auth_service.reset_password(db, token, new_password, confirm_password)
    except ValidationFailed as e:
        if auth_service.RESET_LINK_INVALID in e.errors:
            flash(request, e.message, "error")
            return redirect("/auth/forgot-password")
        return render(request, "auth/reset.html", {"token": token, "errors": e.errors})
    except SQLAlchemyError:
        logger.exception("password_reset_failed")
        flash(request, "An error occurred. Please try again.", "error")
        return redirect("/auth/forgot-password")

    flash(request, "Password reset successfully! You can now login with your new password.", "success")
    return redirect(LOGIN_URL)
