############################################################
#
# bloghut - Community Blogging Platform
#
# text.py: Slugs, HTML sanitising and display helpers
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Text helpers shared by services and templates."""

import html
import math
import re
import unicodedata
from datetime import datetime, timezone
from typing import Optional

import bleach

# Markup the rich-text editor produces; anything else is stripped on save
ALLOWED_TAGS = set(bleach.sanitizer.ALLOWED_TAGS) | {
    "p", "br", "hr", "span", "div",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "pre", "code", "blockquote",
    "u", "s", "strike", "sub", "sup",
    "img", "figure", "figcaption",
    "table", "thead", "tbody", "tr", "th", "td",
}
ALLOWED_ATTRIBUTES = {
    "*": ["class"],
    "a": ["href", "title", "target", "rel"],
    "img": ["src", "alt", "title", "width", "height"],
    "td": ["colspan", "rowspan"],
    "th": ["colspan", "rowspan"],
}

_SLUG_INVALID = re.compile(r"[\W_]+")
_WHITESPACE = re.compile(r"\s+")


def slugify(text: str) -> str:
    """
    Lowercase slug: accents are folded ("Café" -> "cafe"), letters from other
    scripts are kept, and runs of anything else collapse to one hyphen.
    """
    decomposed = unicodedata.normalize("NFKD", text.lower())
    folded = "".join(c for c in decomposed if not unicodedata.combining(c))
    return _SLUG_INVALID.sub("-", unicodedata.normalize("NFC", folded)).strip("-")


def sanitize_html(value: str) -> str:
    """Remove scripts, event handlers and unknown tags from post HTML."""
    return bleach.clean(
        value or "",
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        strip=True,
        strip_comments=True,
    )


def strip_tags(value: str) -> str:
    """Visible text of an HTML fragment."""
    return html.unescape(bleach.clean(value or "", tags=set(), strip=True))


def truncate(text: Optional[str], length: int, suffix: str = "...") -> str:
    text = text or ""
    if len(text) <= length:
        return text
    return text[:length] + suffix


def excerpt(post_content: str, summary: Optional[str] = None, length: int = 150) -> str:
    """Summary if the author wrote one, else the start of the body text."""
    if summary:
        return summary
    return truncate(_WHITESPACE.sub(" ", strip_tags(post_content)).strip(), length)


def word_count(value: str) -> int:
    return len(strip_tags(value).split())


def reading_time(value: str, words_per_minute: int = 200) -> int:
    """Minutes needed to read an HTML body; never less than one."""
    return max(1, math.ceil(word_count(value) / words_per_minute))


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware (SQLite returns naive datetimes)."""
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count > 1 else ''} ago"


def time_ago(dt: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Human friendly age of a timestamp ("just now", "3 hours ago", ...)."""
    if dt is None:
        return ""
    now = now or datetime.now(timezone.utc)
    diff = int((ensure_aware(now) - ensure_aware(dt)).total_seconds())

    if diff < 60:
        return "just now"
    if diff < 3600:
        return _plural(diff // 60, "minute")
    if diff < 86400:
        return _plural(diff // 3600, "hour")
    if diff < 604800:
        return _plural(diff // 86400, "day")
    if diff < 2592000:
        return _plural(diff // 604800, "week")
    if diff < 31536000:
        return _plural(diff // 2592000, "month")
    return _plural(diff // 31536000, "year")


def format_date(dt: Optional[datetime], fmt: str = "%b %d, %Y") -> str:
    if dt is None:
        return ""
    return ensure_aware(dt).strftime(fmt)
