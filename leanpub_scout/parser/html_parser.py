"""HTML parsing for the author dashboard pages.

Every assumption about the site's markup lives in this module.  When the site
changes its layout, this is the only file that should need touching.  The
public functions return plain structured values (``BookSummary`` lists,
category name lists, form field mappings) or raise
:class:`~leanpub_scout.errors.ParseError`.

Layout assumptions:

* listing pages carry the ``Your Books`` title and link every book to
  ``/{slug}/overview``; a book may be linked several times (cover image,
  title), the first non-empty link text is the title;
* the category page is a ``<form>`` whose checked checkboxes are the book's
  categories, named by their ``<label>`` (or the ``value`` attribute);
* the login form is the form holding the ``session[password]`` input.
"""
from __future__ import annotations

from collections.abc import Sequence
from typing import Dict, List, Optional

from bs4 import BeautifulSoup, Tag

from leanpub_scout.errors import ParseError
from leanpub_scout.logger import logger
from leanpub_scout.models import BookStatus, BookSummary, CategorySet
from leanpub_scout.utils import is_valid_slug, url_path

__all__: Sequence[str] = (
    "parse_book_list",
    "parse_categories",
    "parse_login_form",
    "is_login_page",
)

PASSWORD_FIELD = "session[password]"
EMAIL_FIELD = "session[email]"
_OVERVIEW_SUFFIX = "/overview"
_DASHBOARD_TITLE = "Your Books"
_FRAGMENT_LIMIT = 300


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def _fragment(html: str) -> str:
    text = html.strip()
    return text if len(text) <= _FRAGMENT_LIMIT else text[:_FRAGMENT_LIMIT] + "..."


def _text(tag: Tag) -> str:
    return " ".join(tag.get_text(" ", strip=True).split())


def _require_markup(soup: BeautifulSoup, html: str, what: str) -> None:
    if soup.find() is None:
        raise ParseError(f"{what} is not an HTML document", fragment=_fragment(html))


def _slug_from_href(href: str) -> Optional[str]:
    path = url_path(href.strip())
    if not path.endswith(_OVERVIEW_SUFFIX):
        return None
    slug = path[: -len(_OVERVIEW_SUFFIX)].lstrip("/")
    if "/" in slug or not is_valid_slug(slug):
        return None
    return slug


def parse_book_list(html: str, status: BookStatus) -> List[BookSummary]:
    """Extract the books linked from a dashboard listing.

    *status* is taken from the endpoint that produced *html*; it is never
    derived from the page content.  A dashboard without books yields ``[]``;
    a page that is not the dashboard raises ParseError.  Books linked only
    without text are skipped.
    """
    soup = _soup(html)
    _require_markup(soup, html, "Book listing")
    page_title = _text(soup.title) if soup.title is not None else ""
    if _DASHBOARD_TITLE not in page_title:
        raise ParseError(
            f"Not a book listing page (title {page_title!r})", fragment=_fragment(html)
        )

    titles: Dict[str, str] = {}
    anchors: Dict[str, Tag] = {}
    for a in soup.find_all("a", href=True):
        slug = _slug_from_href(a["href"])
        if slug is None:
            continue
        anchors.setdefault(slug, a)
        title = _text(a)
        if slug not in titles or not titles[slug]:
            titles[slug] = title

    books: List[BookSummary] = []
    for slug, title in titles.items():
        if not title:
            logger.warning(
                "Skipping book %r listed without a title: %s", slug, _fragment(str(anchors[slug]))
            )
            continue
        books.append(BookSummary(slug=slug, title=title, status=BookStatus(status)))
    if anchors and not books:
        first = next(iter(anchors.values()))
        raise ParseError("No book on the listing has a title", fragment=_fragment(str(first)))
    return books


def _label_for(soup: BeautifulSoup, box: Tag) -> str:
    box_id = box.get("id")
    if box_id:
        label = soup.find("label", attrs={"for": box_id})
        if label is not None:
            return _text(label)
    parent = box.find_parent("label")
    if parent is not None:
        return _text(parent)
    return str(box.get("value", "")).strip()


def parse_categories(html: str) -> CategorySet:
    """Return the names of the categories checked on a book's category form.

    Names are unique and keep page order.  A form with nothing checked yields
    ``[]``; a page without a form raises ParseError.
    """
    soup = _soup(html)
    _require_markup(soup, html, "Category page")
    form = soup.find("form")
    if form is None:
        raise ParseError("Category page has no form", fragment=_fragment(html))

    names: CategorySet = []
    for box in form.select("input[type=checkbox][checked]"):
        name = _label_for(soup, box)
        if not name:
            raise ParseError("Checked category without a name", fragment=_fragment(str(box)))
        if name not in names:
            names.append(name)
    return names


def _login_form(soup: BeautifulSoup) -> Optional[Tag]:
    field = soup.find("input", attrs={"name": PASSWORD_FIELD})
    if field is None:
        return None
    return field.find_parent("form")


def is_login_page(html: str) -> bool:
    """True if *html* renders the login form (the site does so when a session is gone)."""
    if not html or PASSWORD_FIELD not in html:
        return False
    return _soup(html).find("input", attrs={"name": PASSWORD_FIELD}) is not None


def parse_login_form(html: str) -> Dict[str, str]:
    """Hidden fields of the login form, e.g. the CSRF ``authenticity_token``.

    Returns an empty mapping when the page holds no login form.
    """
    form = _login_form(_soup(html)) if html else None
    if form is None:
        return {}
    fields: Dict[str, str] = {}
    for inp in form.find_all("input", attrs={"type": "hidden"}):
        name = inp.get("name")
        if name:
            fields[name] = inp.get("value", "")
    return fields
