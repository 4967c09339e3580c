############################################################
#
# bloghut - Community Blogging Platform
#
# validators.py: Form input validation rules
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Form input validation for Blog Hut.

Each ``validate_*`` function returns a list of human-readable error messages
(empty when the input is acceptable). Database-dependent checks such as
username uniqueness live in the service layer.
"""

import re
from typing import List, Optional

from backend.app.core.text import strip_tags
from backend.app.db.models import PostStatus, ReactionType
from backend.app.settings import Settings, get_settings

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _settings(settings: Optional[Settings]) -> Settings:
    return settings or get_settings()


def is_valid_username(username: str, settings: Optional[Settings] = None) -> bool:
    s = _settings(settings)
    return (
        s.username_min_length <= len(username) <= s.username_max_length
        and bool(USERNAME_PATTERN.match(username))
    )


def is_valid_email(email: str) -> bool:
    return len(email) <= 255 and bool(EMAIL_PATTERN.match(email))


def validate_username(username: str, settings: Optional[Settings] = None) -> List[str]:
    s = _settings(settings)
    if not username:
        return ["Username is required."]
    if not is_valid_username(username, s):
        return [
            f"Username must be {s.username_min_length}-{s.username_max_length} characters "
            "and contain only letters, numbers, and underscores."
        ]
    return []


def validate_email(email: str) -> List[str]:
    if not email:
        return ["Email is required."]
    if not is_valid_email(email):
        return ["Please enter a valid email address."]
    return []


def validate_new_password(
    password: str,
    confirm: str,
    settings: Optional[Settings] = None,
    changing: bool = False,
) -> List[str]:
    """Check length and confirmation of a password being set.

    With ``changing`` the messages refer to the "new" password, as on the
    profile form.
    """
    s = _settings(settings)
    label = "New password" if changing else "Password"
    if not password:
        return [f"{label} is required."]
    errors = []
    if len(password) < s.password_min_length:
        suffix = "" if changing else " long"
        errors.append(f"{label} must be at least {s.password_min_length} characters{suffix}.")
    if password != confirm:
        errors.append("New passwords do not match." if changing else "Passwords do not match.")
    return errors


def validate_registration(
    username: str,
    email: str,
    password: str,
    confirm_password: str,
    settings: Optional[Settings] = None,
) -> List[str]:
    errors = validate_username(username, settings)
    errors += validate_email(email)
    errors += validate_new_password(password, confirm_password, settings)
    return errors


def validate_post(
    title: str,
    content: str,
    summary: Optional[str],
    status: str,
    settings: Optional[Settings] = None,
) -> List[str]:
    """Validate the fields of the create/edit post form.

    Content length has two bounds: the minimum applies to the visible text
    (markup stripped) and the maximum to the raw HTML that is stored.
    """
    s = _settings(settings)
    errors = []

    if not title:
        errors.append("Title is required.")
    elif len(title) < s.title_min_length:
        errors.append(f"Title must be at least {s.title_min_length} characters.")
    elif len(title) > s.title_max_length:
        errors.append(f"Title must not exceed {s.title_max_length} characters.")

    visible = strip_tags(content or "").strip()
    if not visible:
        errors.append("Content is required.")
    elif len(visible) < s.content_min_length:
        errors.append(f"Content must be at least {s.content_min_length} characters.")
    elif len(content) > s.content_max_length:
        errors.append(f"Content is too long. Maximum {s.content_max_length} characters.")

    if summary and len(summary) > s.summary_max_length:
        errors.append(f"Summary must not exceed {s.summary_max_length} characters.")

    if status not in {st.value for st in PostStatus}:
        errors.append("Invalid post status.")

    return errors


def validate_comment(text: str, settings: Optional[Settings] = None) -> Optional[str]:
    """Return the first problem with a comment body, or None."""
    s = _settings(settings)
    text = (text or "").strip()
    if not text:
        return "Comment cannot be empty"
    if len(text) < s.comment_min_length:
        return "Comment is too short"
    if len(text) > s.comment_max_length:
        return f"Comment is too long (max {s.comment_max_length} characters)"
    return None


def is_valid_reaction_type(value: str) -> bool:
    return value in {rt.value for rt in ReactionType}


def validate_category(
    name: str, description: Optional[str], settings: Optional[Settings] = None
) -> List[str]:
    s = _settings(settings)
    errors = []
    if not name:
        errors.append("Category name is required.")
    elif not (s.category_name_min_length <= len(name) <= s.category_name_max_length):
        errors.append(
            f"Category name must be {s.category_name_min_length}-"
            f"{s.category_name_max_length} characters."
        )
    if description and len(description) > s.category_description_max_length:
        errors.append(
            f"Description must not exceed {s.category_description_max_length} characters."
        )
    return errors


def validate_profile(
    username: str, email: str, bio: Optional[str], settings: Optional[Settings] = None
) -> List[str]:
    s = _settings(settings)
    errors = validate_username(username, s)
    errors += validate_email(email)
    if bio and len(bio) > s.bio_max_length:
        errors.append(f"Bio must not exceed {s.bio_max_length} characters.")
    return errors


def parse_int(value: Optional[str]) -> Optional[int]:
    """Integer from an optional form/query string; blanks and junk become None."""
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None
