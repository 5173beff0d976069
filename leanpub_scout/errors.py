# File: leanpub_scout/errors.py
"""Exception hierarchy for LeanpubScout.

Authentication problems (:class:`AuthError`) are fatal to a run.  Fetch
problems (:class:`FetchError`) concern a single listing or book and are
recorded on the report instead of aborting.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

__all__ = [
    "FetchErrorKind",
    "ScoutError",
    "CredentialsError",
    "AuthError",
    "InvalidCredentialsError",
    "UnexpectedAuthResponseError",
    "FetchError",
    "SessionExpiredError",
    "ParseError",
    "FetchTimeoutError",
    "NetworkError",
    "HttpStatusError",
]


class FetchErrorKind(str, Enum):
    """Kind of a per-request failure, as stored on a BookReport."""

    SESSION_EXPIRED = "session_expired"
    PARSE_ERROR = "parse_error"
    TIMEOUT = "timeout"
    NETWORK = "network"
    HTTP_STATUS = "http_status"
    CANCELLED = "cancelled"


class ScoutError(Exception):
    """Base exception for LeanpubScout errors."""


class CredentialsError(ScoutError):
    """Raised when username or password cannot be obtained."""


class AuthError(ScoutError):
    """Raised when the login flow fails."""


class InvalidCredentialsError(AuthError):
    """The site rejected the username/password pair."""


class UnexpectedAuthResponseError(AuthError):
    """The login endpoint answered in a way we cannot interpret."""


class FetchError(ScoutError):
    """Base class for failures of an authenticated page fetch."""

    kind: FetchErrorKind = FetchErrorKind.NETWORK

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class SessionExpiredError(FetchError):
    """The site answered with 401/403 or sent us back to the login page."""

    kind = FetchErrorKind.SESSION_EXPIRED


class ParseError(FetchError):
    """The page did not have the structure the parser expects."""

    kind = FetchErrorKind.PARSE_ERROR

    def __init__(self, message: str, *, fragment: str = "", url: Optional[str] = None) -> None:
        super().__init__(message, url=url)
        self.fragment = fragment


class FetchTimeoutError(FetchError):
    kind = FetchErrorKind.TIMEOUT


class NetworkError(FetchError):
    kind = FetchErrorKind.NETWORK


class HttpStatusError(FetchError):
    """Non-success HTTP status that is not a session expiry."""

    kind = FetchErrorKind.HTTP_STATUS

    def __init__(self, message: str, *, status: int, url: Optional[str] = None) -> None:
        super().__init__(message, url=url)
        self.status = status
