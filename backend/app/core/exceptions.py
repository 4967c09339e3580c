############################################################
#
# bloghut - Community Blogging Platform
#
# exceptions.py: Domain exception hierarchy
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Exceptions raised by the service layer.

Routes translate these into flash messages and redirects (HTML pages) or
``{"success": false, "message": ...}`` bodies (JSON endpoints).
Infrastructure errors (SQLAlchemy, OS) are not wrapped; callers log them and
show a generic message.
"""

from typing import Iterable, List


class BlogHutError(Exception):
    """Base class for expected, user-facing failures."""

    default_message = "An error occurred"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(BlogHutError):
    """One or more form fields were rejected."""

    default_message = "Please correct the errors below."

    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__(self.errors[0] if self.errors else None)


class InvalidCredentials(BlogHutError):
    """Login failed; deliberately does not say which part was wrong."""

    default_message = "Invalid email/username or password."


class PermissionDenied(BlogHutError):
    default_message = "You do not have permission to access this page."


class NotFound(BlogHutError):
    default_message = "The requested item was not found."


class CategoryInUse(BlogHutError):
    default_message = "Cannot delete a category that still has posts."


class InvalidUpload(BlogHutError):
    """Uploaded file is not an accepted image or is too large."""

    default_message = "Invalid image upload."
