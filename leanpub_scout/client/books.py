"""
Listing fetcher: published and unpublished books of the author dashboard.
"""
from __future__ import annotations

from typing import List

from leanpub_scout.client.transport import Transport
from leanpub_scout.errors import ParseError
from leanpub_scout.logger import logger
from leanpub_scout.models import BookStatus, BookSummary, Session
from leanpub_scout.parser.html_parser import parse_book_list
from leanpub_scout.utils import listing_path


class BookListFetcher:
    """Retrieves one dashboard listing and parses it into BookSummary values."""

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    async def fetch_books(self, session: Session, status: BookStatus) -> List[BookSummary]:
        """
        Fetch the listing for *status*.

        Raises SessionExpiredError, ParseError, FetchTimeoutError, NetworkError
        or HttpStatusError; an empty listing is returned as ``[]``.
        """
        path = listing_path(status)
        resp = await self.transport.fetch_page(path, session)
        try:
            books = parse_book_list(resp.text, status)
        except ParseError as exc:
            exc.url = resp.url
            logger.error("Could not parse %s listing: %s [%s]", status.value, exc, exc.fragment)
            raise
        logger.info("Found %d %s book(s)", len(books), status.value)
        return books
