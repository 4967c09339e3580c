############################################################
#
# bloghut - Community Blogging Platform
#
# sessions.py: Signed-cookie sessions and flash messages
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Signed-cookie session support.

The whole session dict lives in one cookie signed with itsdangerous; nothing
is stored server-side. A session carries ``user_id``, ``username``, ``role``,
``csrf_token``, pending ``flash`` messages and ``redirect_after_login``.

Normal sessions are browser-session cookies that the server also expires
after ``session_lifetime_hours`` of inactivity. When "remember me" is ticked
at login the cookie is persisted for ``remember_me_days`` instead; the
signature timestamp is what enforces both limits.
"""

import time
from typing import Any, Dict, List, Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer
from starlette.datastructures import MutableHeaders
from starlette.requests import HTTPConnection, Request

from backend.app.logging_config import bind_request_context, get_logger
from backend.app.settings import get_settings

logger = get_logger(__name__)

SESSION_SALT = "session"
FLASH_KEY = "flash"
REMEMBER_KEY = "remember"
REDIRECT_KEY = "redirect_after_login"


def _get_session_serializer() -> URLSafeTimedSerializer:
    """Get a timed serializer for session cookies."""
    settings = get_settings()
    return URLSafeTimedSerializer(settings.secret_key, salt=SESSION_SALT)


def load_session(cookie_value: Optional[str]) -> Dict[str, Any]:
    """Decode a session cookie; tampered or expired cookies give an empty session."""
    if not cookie_value:
        return {}
    settings = get_settings()
    serializer = _get_session_serializer()
    try:
        data, signed_at = serializer.loads(
            cookie_value, max_age=settings.remember_me_max_age, return_timestamp=True
        )
    except BadSignature:
        # Also covers SignatureExpired
        return {}
    if not isinstance(data, dict):
        return {}
    if not data.get(REMEMBER_KEY):
        age = time.time() - signed_at.timestamp()
        if age > settings.session_max_age:
            return {}
    return data


def dump_session(data: Dict[str, Any]) -> str:
    return _get_session_serializer().dumps(data)


class SessionMiddleware:
    """Raw ASGI middleware exposing ``request.session``.

    The cookie is re-signed on every response while the session is
    non-empty, which makes the inactivity timeout sliding.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        settings = get_settings()
        connection = HTTPConnection(scope)
        had_cookie = settings.session_cookie_name in connection.cookies
        scope["session"] = load_session(connection.cookies.get(settings.session_cookie_name))
        if scope["session"].get("user_id"):
            bind_request_context(user_id=scope["session"]["user_id"])

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                session = scope["session"]
                headers = MutableHeaders(scope=message)
                if session:
                    headers.append("set-cookie", self._cookie_header(session, settings))
                elif had_cookie:
                    headers.append("set-cookie", self._clear_header(settings))
            await send(message)

        await self.app(scope, receive, send_wrapper)

    @staticmethod
    def _cookie_header(session: Dict[str, Any], settings) -> str:
        parts = [
            f"{settings.session_cookie_name}={dump_session(session)}",
            "path=/",
            "httponly",
            f"samesite={settings.session_cookie_samesite}",
        ]
        if session.get(REMEMBER_KEY):
            parts.append(f"Max-Age={settings.remember_me_max_age}")
        if settings.session_cookie_secure:
            parts.append("secure")
        return "; ".join(parts)

    @staticmethod
    def _clear_header(settings) -> str:
        return (
            f"{settings.session_cookie_name}=null; path=/; "
            "expires=Thu, 01 Jan 1970 00:00:00 GMT; Max-Age=0; httponly; "
            f"samesite={settings.session_cookie_samesite}"
        )


# Session helpers
def get_session_user_id(request: Request) -> Optional[int]:
    """Get the logged-in user's id, or None."""
    user_id = request.session.get("user_id")
    try:
        return int(user_id) if user_id is not None else None
    except (TypeError, ValueError):
        return None


def start_user_session(request: Request, user, remember: bool = False) -> None:
    """Replace the session with a fresh one for ``user``.

    Pending flash messages and the post-login redirect survive so the next
    page can still use them.
    """
    carried = {
        key: request.session[key]
        for key in (FLASH_KEY, REDIRECT_KEY)
        if key in request.session
    }
    request.session.clear()
    request.session.update(carried)
    request.session.update(
        {
            "user_id": user.id,
            "username": user.username,
            "role": user.role.value,
            REMEMBER_KEY: bool(remember),
        }
    )


def end_user_session(request: Request) -> None:
    request.session.clear()


def flash(request: Request, message: str, category: str = "success") -> None:
    """Queue a one-shot message for the next rendered page."""
    messages = list(request.session.get(FLASH_KEY, []))
    messages.append({"message": message, "category": category})
    request.session[FLASH_KEY] = messages


def pop_flashes(request: Request) -> List[Dict[str, str]]:
    return request.session.pop(FLASH_KEY, [])


def remember_redirect(request: Request) -> None:
    """Store the current URL so login can send the user back to it."""
    target = request.url.path
    if request.url.query:
        target += "?" + request.url.query
    request.session[REDIRECT_KEY] = target


def pop_redirect(request: Request, default: str = "/posts") -> str:
    """Post-login destination; only same-site paths are honoured."""
    target = request.session.pop(REDIRECT_KEY, None)
    if not target or not target.startswith("/") or target.startswith("//"):
        return default
    return target
