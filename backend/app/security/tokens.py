############################################################
#
# bloghut - Community Blogging Platform
#
# tokens.py: Signed, time-limited password reset tokens
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Password reset tokens.

A token is the user id plus a fingerprint of the current password hash,
signed with itsdangerous. Once the password changes the fingerprint no
longer matches, so every token is single-use.
"""

import hashlib
from typing import Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from backend.app.settings import get_settings

RESET_SALT = "password-reset"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(get_settings().secret_key, salt=RESET_SALT)


def _fingerprint(password_hash: str) -> str:
    return hashlib.sha256(password_hash.encode()).hexdigest()[:16]


def make_reset_token(user) -> str:
    return _serializer().dumps({"uid": user.id, "fp": _fingerprint(user.password_hash)})


def read_reset_token(token: str) -> Optional[int]:
    """User id carried by a valid, unexpired token, else None."""
    try:
        data = _serializer().loads(token, max_age=get_settings().password_reset_max_age_seconds)
    except BadSignature:
        return None
    if not isinstance(data, dict) or "uid" not in data:
        return None
    return int(data["uid"])


def token_matches_user(token: str, user) -> bool:
    """True while the user's password is still the one the token was issued for."""
    try:
        data = _serializer().loads(token, max_age=get_settings().password_reset_max_age_seconds)
    except BadSignature:
        return False
    return data.get("uid") == user.id and data.get("fp") == _fingerprint(user.password_hash)
