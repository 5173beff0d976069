# File: tests/test_aggregator.py
from __future__ import annotations

import asyncio
from typing import Sequence

import pytest

from conftest import make_config
from leanpub_scout.aggregator import Aggregator, Report
from leanpub_scout.client.categories import CategoryFetcher
from leanpub_scout.client.session import SessionManager
from leanpub_scout.client.transport import Transport
from leanpub_scout.errors import FetchErrorKind, InvalidCredentialsError
from leanpub_scout.models import BookStatus, BookSummary


def _books(*slugs: str) -> list[BookSummary]:
    return [BookSummary(slug, slug.upper(), BookStatus.PUBLISHED) for slug in slugs]


async def aggregate(site, books: Sequence[BookSummary], **overrides) -> tuple[Report, Aggregator]:
    cfg = make_config(site.base_url, **overrides)
    async with Transport(cfg) as transport:
        sessions = SessionManager(transport, cfg, site.credentials)
        session = await sessions.login(site.credentials)
        aggregator = Aggregator(CategoryFetcher(transport), sessions, cfg)
        report = await aggregator.build_report(session, books)
    return report, aggregator


@pytest.mark.asyncio()
async def test_report_matches_categories_in_order(fake_site):
    fake_site.categories = {"a": ["Fiction"], "b": [], "c": ["Tech", "Guide"]}
    report, _ = await aggregate(fake_site, _books("a", "b", "c"))

    assert [r.book.slug for r in report] == ["a", "b", "c"]
    assert [r.categories for r in report] == [["Fiction"], [], ["Tech", "Guide"]]
    assert all(r.fetch_error is None for r in report)
    assert report.complete


@pytest.mark.asyncio()
async def test_one_parse_failure_is_recorded_not_fatal(fake_site):
    fake_site.categories = {"a": ["Fiction"], "b": ["Poetry"], "c": ["Tech"], "d": ["Guide"]}
    fake_site.raw_category_pages["c"] = "<html><body>broken</body></html>"
    report, _ = await aggregate(fake_site, _books("a", "b", "c", "d"))

    assert len(report) == 4
    failed = [r for r in report if r.fetch_error is not None]
    assert [r.book.slug for r in failed] == ["c"]
    assert failed[0].fetch_error is FetchErrorKind.PARSE_ERROR
    assert failed[0].error_detail
    assert [r.categories for r in report if r.ok] == [["Fiction"], ["Poetry"], ["Guide"]]


@pytest.mark.slow
@pytest.mark.asyncio()
async def test_order_kept_when_completions_are_reversed(fake_site):
    slugs = ("a", "b", "c", "d")
    fake_site.category_delay = {"a": 0.3, "b": 0.2, "c": 0.1}
    report, _ = await aggregate(fake_site, _books(*slugs), concurrency=4)

    assert [r.book.slug for r in report] == list(slugs)


@pytest.mark.slow
@pytest.mark.asyncio()
async def test_in_flight_requests_are_bounded(fake_site):
    slugs = [f"book{i}" for i in range(8)]
    fake_site.category_delay = {slug: 0.05 for slug in slugs}
    report, _ = await aggregate(fake_site, _books(*slugs), concurrency=2)

    assert len(report) == 8
    assert fake_site.max_in_flight == 2


@pytest.mark.asyncio()
async def test_session_expiry_triggers_single_reauth(fake_site):
    fake_site.categories = {"a": ["Fiction"], "b": ["Tech"], "c": ["Guide"]}
    fake_site.revoke_on_category = 1
    report, aggregator = await aggregate(fake_site, _books("a", "b", "c"))

    assert fake_site.logins == 2
    assert aggregator.reauth_count == 1
    assert aggregator.session.cookie_value == "tok-2"
    assert [r.categories for r in report] == [["Fiction"], ["Tech"], ["Guide"]]
    assert not report.failures


@pytest.mark.asyncio()
async def test_recurring_expiry_is_recorded_after_budget(fake_site):
    fake_site.revoke_on_category = 100
    report, aggregator = await aggregate(fake_site, _books("a", "b", "c"), concurrency=1)

    assert fake_site.logins == 2
    assert aggregator.reauth_count == 1
    assert {r.fetch_error for r in report} == {FetchErrorKind.SESSION_EXPIRED}


@pytest.mark.asyncio()
async def test_no_reauth_when_budget_is_zero(fake_site):
    fake_site.revoke_on_category = 1
    report, _ = await aggregate(fake_site, _books("a"), reauth_limit=0)

    assert fake_site.logins == 1
    assert report[0].fetch_error is FetchErrorKind.SESSION_EXPIRED


@pytest.mark.asyncio()
async def test_reauth_with_revoked_password_aborts(fake_site):
    fake_site.revoke_on_category = 1
    cfg = make_config(fake_site.base_url)
    async with Transport(cfg) as transport:
        sessions = SessionManager(transport, cfg, fake_site.credentials)
        session = await sessions.login(fake_site.credentials)
        fake_site.password = "changed"
        aggregator = Aggregator(CategoryFetcher(transport), sessions, cfg)
        with pytest.raises(InvalidCredentialsError):
            await aggregator.build_report(session, _books("a", "b"))


@pytest.mark.slow
@pytest.mark.asyncio()
async def test_timeout_recorded_per_book(fake_site):
    fake_site.categories = {"b": ["Tech"]}
    fake_site.category_delay = {"a": 0.6}
    report, _ = await aggregate(fake_site, _books("a", "b"), timeout=0.2, retry_times=1)

    assert report[0].fetch_error is FetchErrorKind.TIMEOUT
    assert report[1].categories == ["Tech"]


@pytest.mark.slow
@pytest.mark.asyncio()
async def test_cancellation_returns_partial_report(fake_site):
    fake_site.categories = {"a": ["Fiction"]}
    fake_site.category_delay = {"b": 1.0, "c": 1.0}
    cfg = make_config(fake_site.base_url, concurrency=1)
    async with Transport(cfg) as transport:
        sessions = SessionManager(transport, cfg, fake_site.credentials)
        session = await sessions.login(fake_site.credentials)
        aggregator = Aggregator(CategoryFetcher(transport), sessions, cfg)
        task = asyncio.create_task(aggregator.build_report(session, _books("a", "b", "c")))
        await asyncio.sleep(0.4)
        task.cancel()
        report = await task

    assert task.cancelling() == 0
    assert not report.complete
    assert [r.book.slug for r in report] == ["a", "b", "c"]
    assert report[0].categories == ["Fiction"]
    assert [r.fetch_error for r in report][1:] == [FetchErrorKind.CANCELLED] * 2


@pytest.mark.asyncio()
async def test_empty_book_list(fake_site):
    report, _ = await aggregate(fake_site, [])
    assert len(report) == 0
    assert report.complete
    assert report.to_dict() == {"complete": True, "listing_errors": {}, "books": []}


@pytest.mark.asyncio()
async def test_fetch_without_session_is_runtime_error(fake_site):
    cfg = make_config(fake_site.base_url)
    async with Transport(cfg) as transport:
        sessions = SessionManager(transport, cfg, fake_site.credentials)
        aggregator = Aggregator(CategoryFetcher(transport), sessions, cfg)
        with pytest.raises(RuntimeError):
            await aggregator._fetch_one(_books("a")[0])
