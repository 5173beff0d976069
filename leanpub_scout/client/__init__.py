# File: leanpub_scout/client/__init__.py
"""leanpub_scout.client: authenticated HTTP access to the author dashboard."""

from .books import BookListFetcher
from .categories import CategoryFetcher
from .session import SessionManager
from .transport import RequestState, Transport

__all__ = ["Transport", "RequestState", "SessionManager", "BookListFetcher", "CategoryFetcher"]
