# File: leanpub_scout/aggregator.py
"""leanpub_scout.aggregator: per-book category fan-out and report assembly."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from leanpub_scout.client.categories import CategoryFetcher
from leanpub_scout.client.session import SessionManager
from leanpub_scout.config import ScoutConfig
from leanpub_scout.errors import FetchError, FetchErrorKind, SessionExpiredError
from leanpub_scout.logger import logger
from leanpub_scout.models import BookSummary, CategorySet, Session

__all__ = ["BookReport", "Report", "Aggregator"]


@dataclass(slots=True)
class BookReport:
    """Categories of one book, or the reason they could not be fetched."""

    book: BookSummary
    categories: CategorySet = field(default_factory=list)
    fetch_error: Optional[FetchErrorKind] = None
    error_detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.fetch_error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.book.slug,
            "title": self.book.title,
            "status": self.book.status.value,
            "categories": list(self.categories),
            "fetch_error": self.fetch_error.value if self.fetch_error else None,
            "error_detail": self.error_detail,
        }


@dataclass(slots=True)
class Report:
    """All books discovered in one run, in discovery order."""

    books: List[BookReport] = field(default_factory=list)
    listing_errors: Dict[str, FetchErrorKind] = field(default_factory=dict)
    complete: bool = True

    def __len__(self) -> int:
        return len(self.books)

    def __iter__(self) -> Iterator[BookReport]:
        return iter(self.books)

    def __getitem__(self, index: int) -> BookReport:
        return self.books[index]

    @property
    def failures(self) -> List[BookReport]:
        return [b for b in self.books if not b.ok]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "complete": self.complete,
            "listing_errors": {k: v.value for k, v in self.listing_errors.items()},
            "books": [b.to_dict() for b in self.books],
        }

    def json(self, *, pretty: bool = False) -> str:
        """JSON representation of the report."""
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2 if pretty else None)


class Aggregator:
    """Runs the Category Fetcher over all books with a bounded worker pool.

    While a re-authentication is in flight no new fetch is dispatched; fetches
    that saw the stale session wait for the refreshed one and are retried once.
    """

    def __init__(self, fetcher: CategoryFetcher, sessions: SessionManager, config: ScoutConfig) -> None:
        self.fetcher = fetcher
        self.sessions = sessions
        self.config = config
        self.session: Optional[Session] = None
        self.reauth_count = 0
        self._dispatch = asyncio.Event()
        self._reauth_lock = asyncio.Lock()

    async def build_report(self, session: Session, books: Sequence[BookSummary]) -> Report:
        """Fetch categories for every book and return them in *books* order.

        Per-book failures are recorded on the corresponding BookReport.  When
        the run is cancelled the partial report is returned with
        ``complete=False`` and unfinished books marked CANCELLED.
        """
        self.session = await self.sessions.ensure_valid(session)
        self.reauth_count = 0
        self._dispatch.set()

        slots: List[Optional[BookReport]] = [None] * len(books)
        queue: asyncio.Queue[Tuple[int, BookSummary]] = asyncio.Queue()
        for item in enumerate(books):
            queue.put_nowait(item)

        workers = [
            asyncio.create_task(self._worker(queue, slots))
            for _ in range(min(self.config.concurrency, len(books)))
        ]
        logger.info("Fetching categories for %d book(s) with %d worker(s)", len(books), len(workers))
        cancelled = False
        try:
            await asyncio.gather(*workers)
        except asyncio.CancelledError:
            cancelled = True
            task = asyncio.current_task()
            if task is not None:
                task.uncancel()
            logger.warning("Run cancelled, returning partial report")
        finally:
            for w in workers:
                w.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        report = Report(complete=not cancelled)
        for index, book in enumerate(books):
            entry = slots[index]
            if entry is None:
                entry = BookReport(book, fetch_error=FetchErrorKind.CANCELLED, error_detail="run cancelled")
            report.books.append(entry)
        logger.info("Report ready: %d book(s), %d failure(s)", len(report), len(report.failures))
        return report

    async def _worker(
        self, queue: asyncio.Queue[Tuple[int, BookSummary]], slots: List[Optional[BookReport]]
    ) -> None:
        while True:
            try:
                index, book = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            await self._dispatch.wait()
            slots[index] = await self._fetch_one(book)

    async def _fetch_one(self, book: BookSummary) -> BookReport:
        session = self.session
        if session is None:
            raise RuntimeError("Aggregator has no session, call build_report")
        try:
            try:
                categories = await self.fetcher.fetch_categories(session, book.slug)
            except SessionExpiredError:
                refreshed = await self._recover(session)
                if refreshed is None:
                    raise
                categories = await self.fetcher.fetch_categories(refreshed, book.slug)
        except FetchError as exc:
            logger.warning("%s: %s (%s)", book.slug, exc.kind.value, exc)
            return BookReport(book, fetch_error=exc.kind, error_detail=str(exc))
        return BookReport(book, categories=categories)

    async def _recover(self, stale: Session) -> Optional[Session]:
        """Replace *stale* with a refreshed session, or None if the budget is spent.

        AuthError from the login propagates and aborts the run.
        """
        async with self._reauth_lock:
            current = self.session
            if current is not None and current is not stale and current.valid:
                return current
            self.sessions.invalidate(stale)
            if self.reauth_count >= self.config.reauth_limit:
                logger.warning("Re-authentication budget (%d) spent", self.config.reauth_limit)
                return None
            self.reauth_count += 1
            self._dispatch.clear()
            try:
                logger.info("Session expired, re-authenticating (%d/%d)", self.reauth_count, self.config.reauth_limit)
                self.session = await self.sessions.ensure_valid(stale)
            finally:
                self._dispatch.set()
            return self.session
