"""
Session management: login, cookie extraction and freshness checks.
"""
from __future__ import annotations

from typing import Dict, Optional, Tuple

from leanpub_scout.config import ScoutConfig
from leanpub_scout.errors import (
    FetchError,
    InvalidCredentialsError,
    UnexpectedAuthResponseError,
)
from leanpub_scout.logger import logger
from leanpub_scout.models import Credentials, HttpResponse, Session, utcnow
from leanpub_scout.parser.html_parser import (
    EMAIL_FIELD,
    PASSWORD_FIELD,
    is_login_page,
    parse_login_form,
)
from leanpub_scout.client.transport import Transport
from leanpub_scout.utils import LOGIN_PATH, is_login_url

__all__ = ["SessionManager"]


class SessionManager:
    """Owns the authenticated Session of a run.

    The manager only keeps the credentials; the Session itself is handed back
    to the caller and threaded explicitly through every fetch.
    """

    REJECTED_STATUS = (401, 403, 422)

    def __init__(self, transport: Transport, config: ScoutConfig, credentials: Credentials) -> None:
        self.transport = transport
        self.config = config
        self._credentials = credentials
        self.login_count = 0

    async def login(self, credentials: Credentials) -> Session:
        """Submit *credentials* and return a fresh, valid Session.

        Raises InvalidCredentialsError when the site rejects them and
        UnexpectedAuthResponseError when the answer cannot be interpreted or
        the transport gave up after its retries.
        """
        self.login_count += 1
        logger.info("Logging in as %s", credentials.username)
        form, pre_login = await self._login_form_fields()
        form[EMAIL_FIELD] = credentials.username
        form[PASSWORD_FIELD] = credentials.password
        try:
            resp = await self.transport.request(
                "POST", LOGIN_PATH, data=form, cookies=pre_login, allow_redirects=False
            )
        except FetchError as exc:
            raise UnexpectedAuthResponseError(f"Login request failed: {exc}") from exc

        self._check_login_response(resp)
        cookie = resp.cookies.get(self.config.session_cookie)
        if not cookie:
            raise UnexpectedAuthResponseError(
                f"Login answered HTTP {resp.status} without a {self.config.session_cookie} cookie"
            )
        logger.info("Login succeeded (HTTP %d)", resp.status)
        return Session(
            cookie_value=cookie,
            obtained_at=utcnow(),
            valid=True,
            cookie_name=self.config.session_cookie,
        )

    async def ensure_valid(self, session: Optional[Session]) -> Session:
        """Return *session* if it is still fresh, otherwise log in again."""
        if session is not None and session.is_fresh(self.config.session_max_age):
            return session
        if session is not None:
            logger.info(
                "Session is %s, re-authenticating",
                "stale" if session.valid else "invalid",
            )
        return await self.login(self._credentials)

    @staticmethod
    def invalidate(session: Session) -> None:
        """Mark *session* as rejected by the site."""
        if session.valid:
            logger.warning("Session cookie rejected by the site")
        session.valid = False

    async def _login_form_fields(self) -> Tuple[Dict[str, str], Dict[str, str]]:
        """Hidden form fields and the cookies the login page set.

        The CSRF token in the form is only accepted together with the
        pre-login cookie it was issued for.
        """
        try:
            resp = await self.transport.request("GET", LOGIN_PATH)
        except FetchError as exc:
            raise UnexpectedAuthResponseError(f"Login page unavailable: {exc}") from exc
        if resp.status != 200:
            logger.debug("Login page answered HTTP %d, posting credentials only", resp.status)
            return {}, resp.cookies
        return parse_login_form(resp.text), resp.cookies

    def _check_login_response(self, resp: HttpResponse) -> None:
        if resp.status in self.REJECTED_STATUS:
            raise InvalidCredentialsError(f"Login rejected with HTTP {resp.status}")
        if resp.status >= 400:
            raise UnexpectedAuthResponseError(f"Login answered HTTP {resp.status}")
        if resp.is_redirect and is_login_url(resp.location):
            raise InvalidCredentialsError("Login redirected back to the login page")
        if resp.status == 200 and is_login_page(resp.text):
            raise InvalidCredentialsError("Login form was served again")
