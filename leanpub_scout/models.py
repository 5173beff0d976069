"""
Data models shared by the LeanpubScout client and aggregator.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Tuple

__all__ = ["BookStatus", "BookSummary", "CategorySet", "Credentials", "HttpResponse", "Session"]

CategorySet = List[str]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookStatus(str, Enum):
    """Listing a book was discovered in; the value is the dashboard path segment."""

    PUBLISHED = "published"
    UNPUBLISHED = "unpublished"


@dataclass(frozen=True, slots=True)
class Credentials:
    """Username/password pair supplied once per run."""

    username: str
    password: str = field(repr=False)


@dataclass(slots=True)
class Session:
    """Authenticated session cookie plus the moment it was obtained."""

    cookie_value: str
    obtained_at: datetime = field(default_factory=utcnow)
    valid: bool = True
    cookie_name: str = "_leanpub_session"

    def age(self, now: datetime | None = None) -> timedelta:
        return (now or utcnow()) - self.obtained_at

    def is_fresh(self, max_age: float, now: datetime | None = None) -> bool:
        """True if the session is marked valid and younger than *max_age* seconds."""
        return self.valid and bool(self.cookie_value) and self.age(now).total_seconds() <= max_age


@dataclass(frozen=True, slots=True)
class BookSummary:
    """One book found on a dashboard listing."""

    slug: str
    title: str
    status: BookStatus


@dataclass(slots=True)
class HttpResponse:
    """Status, final URL and decoded body of a completed request.

    Header names are stored lower-cased.
    """

    url: str
    status: int
    text: str
    headers: Dict[str, str] = field(default_factory=dict)
    cookies: Dict[str, str] = field(default_factory=dict)
    history: Tuple[str, ...] = ()

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status < 400

    @property
    def location(self) -> str:
        return self.headers.get("location", "")
