############################################################
#
# bloghut - Community Blogging Platform
#
# __init__.py: Security utilities package exports
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Security utilities for Blog Hut."""

from backend.app.security.csrf import get_csrf_token, validate_csrf_header, validate_csrf_token
from backend.app.security.password_hash import hash_password, needs_rehash, verify_password
from backend.app.security.sessions import (
    SessionMiddleware,
    flash,
    get_session_user_id,
    pop_flashes,
)

__all__ = [
    "get_csrf_token",
    "validate_csrf_header",
    "validate_csrf_token",
    "hash_password",
    "needs_rehash",
    "verify_password",
    "SessionMiddleware",
    "flash",
    "get_session_user_id",
    "pop_flashes",
]
