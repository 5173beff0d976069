"""leanpub_scout.parser: site-specific HTML parsing."""

from .html_parser import is_login_page, parse_book_list, parse_categories, parse_login_form

__all__ = ["parse_book_list", "parse_categories", "parse_login_form", "is_login_page"]
