# File: leanpub_scout/engine.py
"""leanpub_scout.engine: orchestration of login, listings and category aggregation."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from leanpub_scout.aggregator import Aggregator, Report
from leanpub_scout.client.books import BookListFetcher
from leanpub_scout.client.categories import CategoryFetcher
from leanpub_scout.client.session import SessionManager
from leanpub_scout.client.transport import Transport
from leanpub_scout.config import ScoutConfig
from leanpub_scout.errors import FetchError, FetchErrorKind, SessionExpiredError
from leanpub_scout.logger import logger
from leanpub_scout.models import BookStatus, BookSummary, Credentials, Session
from leanpub_scout.session_store import load_session, save_session

__all__ = ["Engine", "collect_report"]

LISTING_ORDER: Tuple[BookStatus, ...] = (BookStatus.PUBLISHED, BookStatus.UNPUBLISHED)


class Engine:
    """Facade for the CLI and tests: one authenticated run producing a Report."""

    def __init__(self, config: ScoutConfig, credentials: Credentials) -> None:
        self.config = config
        self.credentials = credentials

    async def run(self) -> Report:
        """Log in, list all books, fetch their categories and return the Report.

        AuthError propagates; listing and per-book failures end up in the Report.
        """
        logger.info("Starting run against %s", self.config.site_root)
        async with Transport(self.config) as transport:
            sessions = SessionManager(transport, self.config, self.credentials)
            session = await sessions.ensure_valid(self._stored_session())

            lister = BookListFetcher(transport)
            books: List[BookSummary] = []
            listing_errors: Dict[str, FetchErrorKind] = {}
            for status in LISTING_ORDER:
                session = await sessions.ensure_valid(session)
                try:
                    found, session = await self._fetch_listing(sessions, lister, session, status)
                except FetchError as exc:
                    logger.error("Listing %s failed: %s", status.value, exc)
                    listing_errors[status.value] = exc.kind
                    continue
                books.extend(found)

            aggregator = Aggregator(CategoryFetcher(transport), sessions, self.config)
            report = await aggregator.build_report(session, self._unique(books))
            report.listing_errors = listing_errors
            if aggregator.session is not None:
                session = aggregator.session
            self._store_session(session)
        return report

    async def _fetch_listing(
        self,
        sessions: SessionManager,
        lister: BookListFetcher,
        session: Session,
        status: BookStatus,
    ) -> Tuple[List[BookSummary], Session]:
        try:
            return await lister.fetch_books(session, status), session
        except SessionExpiredError:
            sessions.invalidate(session)
            session = await sessions.ensure_valid(session)
            logger.info("Retrying %s listing with a refreshed session", status.value)
            return await lister.fetch_books(session, status), session

    @staticmethod
    def _unique(books: List[BookSummary]) -> List[BookSummary]:
        seen: Dict[str, BookSummary] = {}
        for book in books:
            if book.slug in seen:
                logger.warning(
                    "Book %r listed as %s and %s, keeping the first",
                    book.slug, seen[book.slug].status.value, book.status.value,
                )
                continue
            seen[book.slug] = book
        return list(seen.values())

    def _stored_session(self) -> Optional[Session]:
        if self.config.cookie_file is None:
            return None
        return load_session(self.config.cookie_file, self.config.session_cookie)

    def _store_session(self, session: Session) -> None:
        if self.config.cookie_file is None or not session.valid:
            return
        try:
            save_session(self.config.cookie_file, session)
        except OSError as exc:
            logger.warning("Could not save session cookie to %s: %s", self.config.cookie_file, exc)


async def collect_report(config: ScoutConfig, credentials: Credentials) -> Report:
    """Run the whole pipeline and return the Report."""
    return await Engine(config, credentials).run()
