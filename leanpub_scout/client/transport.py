"""
Transport module: HTTP requests with rate limiting, retry/backoff and timeout.

Every request runs through a small per-request state machine
(:class:`RequestState`).  Timeouts, connection errors and retryable statuses
move it to ``RETRYING`` until ``retry_times`` is exhausted; the last failure
is then raised as a :class:`~leanpub_scout.errors.FetchError` subclass (or, for
a retryable status, the last response is returned to the caller).
"""
from __future__ import annotations

import asyncio
import random
import time
from enum import Enum
from typing import Mapping, Optional, Sequence

from aiohttp import ClientError, ClientSession, ClientTimeout, DummyCookieJar

from leanpub_scout.config import ScoutConfig
from leanpub_scout.errors import (
    FetchError,
    FetchTimeoutError,
    HttpStatusError,
    NetworkError,
    SessionExpiredError,
)
from leanpub_scout.logger import logger
from leanpub_scout.models import HttpResponse, Session
from leanpub_scout.parser.html_parser import is_login_page
from leanpub_scout.utils import build_url, is_login_url

__all__ = ("RequestState", "Transport")


class RequestState(str, Enum):
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    FAILED = "failed"
    SUCCEEDED = "succeeded"


class Transport:
    """Async HTTP transport bound to one site, with rate limit and retries."""

    RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)
    EXPIRED_STATUS: Sequence[int] = (401, 403)

    def __init__(self, config: ScoutConfig) -> None:
        self.config = config
        self.base_url = config.site_root
        self.session: Optional[ClientSession] = None
        self._rate_lock = asyncio.Lock()
        self._last_request_ts = 0.0

    async def __aenter__(self) -> Transport:
        # cookies are attached explicitly from the Session, never from a jar
        self.session = ClientSession(
            timeout=ClientTimeout(total=self.config.timeout),
            headers={"User-Agent": self.config.user_agent},
            cookie_jar=DummyCookieJar(),
            raise_for_status=False,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self.session and not self.session.closed:
            await self.session.close()

    def backoff(self, attempt: int) -> float:
        """Delay before retry number *attempt* (1-based)."""
        base = self.config.backoff_base
        delay = min(self.config.backoff_max, base * 2 ** (attempt - 1))
        return delay + random.random() * base / 2

    async def request(
        self,
        method: str,
        path: str,
        *,
        session: Optional[Session] = None,
        data: Optional[Mapping[str, str]] = None,
        cookies: Optional[Mapping[str, str]] = None,
        allow_redirects: bool = True,
    ) -> HttpResponse:
        """Issue a request to *path* on the site and return the response.

        Raises FetchTimeoutError / NetworkError once retries are exhausted.
        A retryable status (5xx, 429) is retried too, but the last response is
        returned instead of raised so callers can map it themselves.
        *cookies* are sent alongside the *session* cookie, which wins on a
        name clash.
        """
        if not self.session:
            raise RuntimeError("Transport not initialized")
        url = build_url(self.base_url, path)
        headers = {}
        jar = dict(cookies or {})
        if session is not None:
            jar[session.cookie_name] = session.cookie_value
        if jar:
            headers["Cookie"] = "; ".join(f"{name}={value}" for name, value in jar.items())

        state = RequestState.ATTEMPTING
        attempts = 0
        while True:
            await self._wait_for_rate_limit()
            response: Optional[HttpResponse] = None
            cause: Optional[BaseException] = None
            error: Optional[FetchError] = None
            try:
                async with self.session.request(
                    method, url, headers=headers, data=data, allow_redirects=allow_redirects
                ) as resp:
                    response = HttpResponse(
                        url=str(resp.url),
                        status=resp.status,
                        text=await resp.text(errors="replace"),
                        headers={k.lower(): v for k, v in resp.headers.items()},
                        cookies={name: morsel.value for name, morsel in resp.cookies.items()},
                        history=tuple(r.headers.get("Location", str(r.url)) for r in resp.history),
                    )
            except asyncio.TimeoutError as exc:
                cause = exc
                error = FetchTimeoutError(f"{method} {url} timed out after {self.config.timeout}s", url=url)
            except ClientError as exc:
                cause = exc
                error = NetworkError(f"{method} {url} failed: {exc}", url=url)

            if response is not None and response.status not in self.RETRY_STATUS:
                state = RequestState.SUCCEEDED
                logger.debug("%s %s -> %d [%s]", method, url, response.status, state.value)
                return response

            attempts += 1
            if attempts > self.config.retry_times:
                state = RequestState.FAILED
                if error is None:
                    logger.warning(
                        "%s %s -> %d after %d attempt(s) [%s]",
                        method, url, response.status, attempts, state.value,
                    )
                    return response
                logger.warning(
                    "%s %s failed after %d attempt(s) [%s]: %s",
                    method, url, attempts, state.value, error,
                )
                raise error from cause

            state = RequestState.RETRYING
            delay = self.backoff(attempts)
            reason = str(error) if error is not None else f"status {response.status}"
            logger.debug(
                "Retry %d/%d for %s %s after %.2f s [%s]: %s",
                attempts, self.config.retry_times, method, url, delay, state.value, reason,
            )
            await asyncio.sleep(delay)

    async def fetch_page(self, path: str, session: Session) -> HttpResponse:
        """Authenticated GET of a dashboard page.

        Raises SessionExpiredError on 401/403, on a redirect to the login page
        or when the login form is served instead; HttpStatusError on any other
        non-200 status.
        """
        resp = await self.request("GET", path, session=session)
        if resp.status in self.EXPIRED_STATUS:
            raise SessionExpiredError(f"GET {path} -> HTTP {resp.status}", url=resp.url)
        if is_login_url(resp.url) or any(is_login_url(u) for u in resp.history):
            raise SessionExpiredError(f"GET {path} redirected to login", url=resp.url)
        if resp.status != 200:
            raise HttpStatusError(f"GET {path} -> HTTP {resp.status}", status=resp.status, url=resp.url)
        if is_login_page(resp.text):
            raise SessionExpiredError(f"GET {path} served the login form", url=resp.url)
        return resp

    async def _wait_for_rate_limit(self) -> None:
        interval = 1 / self.config.rate_limit
        async with self._rate_lock:
            now = time.monotonic()
            wait = interval - (now - self._last_request_ts)
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request_ts = time.monotonic()
