# File: tests/conftest.py
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from aiohttp import web

from leanpub_scout.config import ScoutConfig
from leanpub_scout.models import Credentials

COOKIE = "_leanpub_session"
CSRF = "csrf-token-123"

LOGIN_PAGE = f"""
<html><head><title>Leanpub - Log In</title></head><body>
<form action="/login" method="post">
  <input type="hidden" name="authenticity_token" value="{CSRF}">
  <input type="email" name="session[email]">
  <input type="password" name="session[password]">
  <input type="submit" value="Log In">
</form>
</body></html>
"""


@asynccontextmanager
async def _serve_app(app: web.Application) -> AsyncIterator[str]:
    """Start *app* on an ephemeral port, yield its base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = runner.addresses[0][1]
    try:
        yield f"http://127.0.0.1:{port}"
    finally:
        await runner.cleanup()


class FakeSite:
    """In-process stand-in for the publishing site's author dashboard."""

    def __init__(self) -> None:
        self.email = "author@example.com"
        self.password = "s3cret"
        self.base_url = ""
        self.published: List[Tuple[str, str]] = []
        self.unpublished: List[Tuple[str, str]] = []
        self.categories: Dict[str, List[str]] = {}
        self.raw_category_pages: Dict[str, str] = {}
        self.raw_listings: Dict[str, str] = {}
        self.category_delay: Dict[str, float] = {}
        self.login_status: Optional[int] = None
        self.revoke_on_category = 0
        self.revoke_on_listing = 0
        self.tokens: set[str] = set()
        self.pre_login_tokens: set[str] = set()
        self.login_cookies: List[Optional[str]] = []
        self.logins = 0
        self.login_forms: List[Dict[str, str]] = []
        self.requests: List[Tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def credentials(self) -> Credentials:
        return Credentials(self.email, self.password)

    def paths(self, method: str = "GET") -> List[str]:
        return [p for m, p in self.requests if m == method]

    # ------------------------------------------------------------------ #
    # Handlers                                                           #
    # ------------------------------------------------------------------ #

    def _authorized(self, request: web.Request) -> bool:
        return request.cookies.get(COOKIE) in self.tokens

    def _revoke(self) -> None:
        self.tokens.clear()
        raise web.HTTPFound("/login")

    async def login_page(self, request: web.Request) -> web.Response:
        token = f"pre-{len(self.pre_login_tokens) + 1}"
        self.pre_login_tokens.add(token)
        resp = web.Response(text=LOGIN_PAGE, content_type="text/html")
        resp.set_cookie(COOKIE, token)
        return resp

    async def login(self, request: web.Request) -> web.Response:
        self.logins += 1
        form = dict(await request.post())
        self.login_forms.append(form)
        if self.login_status is not None:
            return web.Response(status=self.login_status, text="")
        pre_login = request.cookies.get(COOKIE)
        self.login_cookies.append(pre_login)
        if pre_login not in self.pre_login_tokens or form.get("authenticity_token") != CSRF:
            return web.Response(status=422, text="Invalid authenticity token")
        if form.get("session[email]") == self.email and form.get("session[password]") == self.password:
            token = f"tok-{self.logins}"
            self.tokens.add(token)
            resp = web.Response(status=302, headers={"Location": "/author_dashboard/books/published"})
            resp.set_cookie(COOKIE, token)
            return resp
        return web.Response(status=302, headers={"Location": "/login"})

    async def listing(self, request: web.Request) -> web.Response:
        status = request.match_info["status"]
        if self.revoke_on_listing:
            self.revoke_on_listing -= 1
            self._revoke()
        if not self._authorized(request):
            raise web.HTTPFound("/login")
        if status in self.raw_listings:
            return web.Response(text=self.raw_listings[status], content_type="text/html")
        books = self.published if status == "published" else self.unpublished
        links = "".join(
            f'<li><a href="/{slug}/overview"><img src="/{slug}.png"></a>'
            f'<a href="/{slug}/overview">{title}</a>'
            f'<a href="/{slug}/preview">Preview</a></li>'
            for slug, title in books
        )
        html = f"<html><head><title>Leanpub - Your Books</title></head><body><ul>{links}</ul></body></html>"
        return web.Response(text=html, content_type="text/html")

    async def book_categories(self, request: web.Request) -> web.Response:
        slug = request.match_info["slug"]
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if slug in self.category_delay:
                await asyncio.sleep(self.category_delay[slug])
            if self.revoke_on_category:
                self.revoke_on_category -= 1
                self._revoke()
            if not self._authorized(request):
                raise web.HTTPFound("/login")
            if slug in self.raw_category_pages:
                return web.Response(text=self.raw_category_pages[slug], content_type="text/html")
            checked = self.categories.get(slug, [])
            options = "".join(
                f'<input type="checkbox" id="c{i}" name="book[category_ids][]" value="{i}"'
                f'{" checked" if name in checked else ""}><label for="c{i}">{name}</label>'
                for i, name in enumerate(["Fiction", "Tech", "Guide", "Poetry"])
            )
            html = f"<html><body><form method='post'>{options}</form></body></html>"
            return web.Response(text=html, content_type="text/html")
        finally:
            self.in_flight -= 1

    def app(self) -> web.Application:
        @web.middleware
        async def record(request: web.Request, handler):
            self.requests.append((request.method, request.path))
            return await handler(request)

        app = web.Application(middlewares=[record])
        app.router.add_get("/login", self.login_page)
        app.router.add_post("/login", self.login)
        app.router.add_get("/author_dashboard/books/{status}", self.listing)
        app.router.add_get("/{slug}/book_categories", self.book_categories)
        return app


# --------------------------------------------------------------------------- #
#                                  Fixtures                                   #
# --------------------------------------------------------------------------- #


@pytest.fixture()
def serve_app():
    """Async context manager factory serving an arbitrary aiohttp app."""
    return _serve_app


@pytest_asyncio.fixture
async def fake_site() -> AsyncIterator[FakeSite]:
    site = FakeSite()
    async with _serve_app(site.app()) as base_url:
        site.base_url = base_url
        yield site


def make_config(base_url: str, **overrides) -> ScoutConfig:
    """A fast config for tests: no backoff, high rate limit, short timeout."""
    values = dict(
        base_url=base_url,
        timeout=2.0,
        user_agent="TestAgent/1.0",
        rate_limit=1000.0,
        retry_times=1,
        backoff_base=0.0,
        backoff_max=0.0,
        concurrency=3,
    )
    values.update(overrides)
    return ScoutConfig(**values)

