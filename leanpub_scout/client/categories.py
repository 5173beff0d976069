"""
Category fetcher: the category list of a single book.
"""
from __future__ import annotations

from leanpub_scout.client.transport import Transport
from leanpub_scout.errors import ParseError
from leanpub_scout.logger import logger
from leanpub_scout.models import CategorySet, Session
from leanpub_scout.parser.html_parser import parse_categories
from leanpub_scout.utils import category_path, is_valid_slug


class CategoryFetcher:
    """Side-effect free GET of ``/{slug}/book_categories``."""

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    async def fetch_categories(self, session: Session, slug: str) -> CategorySet:
        if not is_valid_slug(slug):
            raise ParseError(f"Invalid book slug {slug!r}", fragment=slug)
        resp = await self.transport.fetch_page(category_path(slug), session)
        try:
            categories = parse_categories(resp.text)
        except ParseError as exc:
            exc.url = resp.url
            raise
        logger.debug("%s: %d categories", slug, len(categories))
        return categories
