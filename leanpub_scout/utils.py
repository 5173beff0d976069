# File: leanpub_scout/utils.py
"""leanpub_scout.utils: endpoint paths, URL helpers and small collection utilities."""

from __future__ import annotations

import re
from typing import Collection, List, Sequence, TypeVar
from urllib.parse import quote, urlparse

from leanpub_scout.logger import logger
from leanpub_scout.models import BookStatus

__all__: Sequence[str] = (
    "LOGIN_PATH",
    "listing_path",
    "category_path",
    "is_valid_slug",
    "build_url",
    "url_path",
    "is_login_url",
    "remove_duplicates",
)

LOGIN_PATH = "/login"
_LISTING_PATH = "/author_dashboard/books/{status}"
_CATEGORY_PATH = "/{slug}/book_categories"

_SLUG_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._~-]*$")

T = TypeVar("T")


def listing_path(status: BookStatus) -> str:
    """Dashboard path listing the books with *status*."""
    return _LISTING_PATH.format(status=BookStatus(status).value)


def is_valid_slug(slug: str) -> bool:
    """A slug must be a single, non-empty URL path segment."""
    return bool(slug) and bool(_SLUG_RE.match(slug))


def category_path(slug: str) -> str:
    if not is_valid_slug(slug):
        raise ValueError(f"Invalid book slug: {slug!r}")
    return _CATEGORY_PATH.format(slug=quote(slug, safe=""))


def build_url(base_url: str, path: str) -> str:
    """Join *path* onto the site root."""
    return base_url.rstrip("/") + "/" + path.lstrip("/")


def url_path(url: str) -> str:
    """Path component of *url* without trailing slash ("/" for the root)."""
    path = urlparse(url).path.rstrip("/")
    return path or "/"


def is_login_url(url: str) -> bool:
    """Whether *url* (absolute or relative) points at the login page."""
    if not url:
        return False
    matched = url_path(url) == LOGIN_PATH
    if matched:
        logger.debug("Login URL detected: %s", url)
    return matched


def remove_duplicates(items: Collection[T]) -> List[T]:
    """Remove duplicates while keeping the first occurrence order."""
    unique = list(dict.fromkeys(items))
    removed = len(items) - len(unique)
    if removed:
        logger.debug("Removed %d duplicate entries", removed)
    return unique
