############################################################
#
# bloghut - Community Blogging Platform
#
# csrf.py: Per-session CSRF tokens
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""CSRF protection.

One random token is stored in the session and embedded in every mutating
form as ``csrf_token``; AJAX calls send it in the ``X-CSRF-Token`` header.
"""

import hmac
import secrets
from typing import Optional

from starlette.requests import Request

from backend.app.settings import get_settings

CSRF_SESSION_KEY = "csrf_token"
CSRF_FORM_FIELD = "csrf_token"
CSRF_HEADER = "x-csrf-token"


def get_csrf_token(request: Request) -> str:
    """Return the session's token, creating it on first use."""
    token = request.session.get(CSRF_SESSION_KEY)
    if not token:
        token = secrets.token_hex(get_settings().csrf_token_bytes)
        request.session[CSRF_SESSION_KEY] = token
    return token


def rotate_csrf_token(request: Request) -> str:
    """Issue a fresh token (after login, so a pre-login token cannot be reused)."""
    request.session.pop(CSRF_SESSION_KEY, None)
    return get_csrf_token(request)


def validate_csrf_token(request: Request, submitted: Optional[str]) -> bool:
    """Constant-time comparison of a submitted token with the session's."""
    expected = request.session.get(CSRF_SESSION_KEY)
    if not expected or not submitted:
        return False
    return hmac.compare_digest(expected.encode(), submitted.encode())


def validate_csrf_header(request: Request) -> bool:
    return validate_csrf_token(request, request.headers.get(CSRF_HEADER))
