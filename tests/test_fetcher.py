"""Tests for paging through a group's locations."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from retrieves.fetcher import RemoteLocationFetcher
from retrieves.integrates_client import AuthMissingError, GroupNotFoundError

from tests.integrates_fake import FakeIntegrates, connection, group_data, node, page


def _fetch(fake: FakeIntegrates, client_factory, group: str = "acme", **kwargs):
    async def run():
        async with client_factory(fake, **kwargs) as client:
            return await RemoteLocationFetcher(client, page_size=100).fetch_group(group)

    return asyncio.run(run())


def test_single_page_finding_issues_one_request(fake, client_factory):
    fake.pages["f-1"] = [page(vulns=connection([node("backend/app.py", 12)], end="v1"))]

    result = _fetch(fake, client_factory)

    assert len(fake.location_calls("f-1")) == 1
    assert result.reported["backend/app.py"]["001. SQL injection"].line_numbers == {12}
    assert result.organization == "acme-org"
    assert result.roots == {"backend": "root-1"}
    assert result.group == "acme"


def test_pagination_advances_to_next_finding_when_both_connections_end(client_factory):
    fake = FakeIntegrates(group_data([("f-1", "001. A"), ("f-2", "002. B")]))
    fake.pages["f-1"] = [
        page(vulns=connection([node("backend/a.py", 1)], end="v1", more=True)),
        page(vulns=connection([node("backend/a.py", 2)], end="v2", more=False)),
    ]
    fake.pages["f-2"] = [page(vulns=connection([node("backend/b.py", 9)], end="w1"))]

    result = _fetch(fake, client_factory)

    assert len(fake.location_calls("f-1")) == 2
    assert len(fake.location_calls("f-2")) == 1
    assert result.reported["backend/a.py"]["001. A"].line_numbers == {1, 2}
    assert result.reported["backend/b.py"]["002. B"].line_numbers == {9}
    # findings are processed in listing order, one at a time
    assert [call["uuid"] for call in fake.location_calls()] == ["f-1", "f-1", "f-2"]


def test_cursors_follow_each_connection(fake, client_factory):
    fake.pages["f-1"] = [
        page(
            vulns=connection([node("backend/app.py", 1)], end="v1", more=True),
            drafts=connection([node("backend/app.py", 5, state="CREATED")], end="d1", more=True),
        ),
        page(
            vulns=connection([], end="bnVsbA==", more=False),
            drafts=connection([node("backend/app.py", 6, state="CREATED")], end="d2", more=True),
        ),
        page(
            vulns=connection([node("backend/app.py", 1)], end="v1", more=False),
            drafts=connection([], end="d2", more=False),
        ),
    ]

    _fetch(fake, client_factory)

    cursors = [(c["vulnToken"], c["draftToken"]) for c in fake.location_calls("f-1")]
    # the null sentinel resets a connection to the start
    assert cursors == [("", ""), ("v1", "d1"), ("", "d2")]


def test_partitions_are_separated(fake, client_factory):
    fake.pages["f-1"] = [
        page(
            vulns=connection(
                [
                    node("backend/app.py (a1b2c3)", 10, state="VULNERABLE"),
                    node("backend/app.py", 11, state="SAFE"),
                    node("backend/app.py", 12, state="VULNERABLE", vtype="inputs"),
                ]
            ),
            drafts=connection(
                [
                    node("backend/app.py [main]", 20, state="SUBMITTED"),
                    node("backend/app.py", 21, state="REJECTED"),
                    node("https://acme.test", 22, state="SUBMITTED", vtype="inputs"),
                ]
            ),
        )
    ]

    result = _fetch(fake, client_factory)

    assert list(result.reported) == ["backend/app.py"]
    assert list(result.reported["backend/app.py"]) == ["001. SQL injection"]
    assert result.reported["backend/app.py"]["001. SQL injection"].line_numbers == {10}
    pending = result.pending["backend/app.py"]
    assert set(pending) == {"001. SQL injection - SUBMITTED", "001. SQL injection - REJECTED"}
    assert pending["001. SQL injection - SUBMITTED"].line_numbers == {20}
    assert pending["001. SQL injection - REJECTED"].line_numbers == {21}
    assert pending["001. SQL injection - SUBMITTED"].finding_id == "f-1"
    assert "https://acme.test" not in result.pending


def test_repeated_records_across_pages_are_merged(fake, client_factory):
    fake.pages["f-1"] = [
        page(vulns=connection([node("backend/app.py", 12)], end="v1", more=True)),
        page(vulns=connection([node("backend/app.py", 12), node("backend/app.py", 4)], end="v2")),
    ]

    result = _fetch(fake, client_factory)

    assert result.reported["backend/app.py"]["001. SQL injection"].line_numbers == {4, 12}


def test_non_numeric_specific_is_skipped(fake, client_factory):
    fake.pages["f-1"] = [
        page(vulns=connection([node("backend/app.py", "12-14"), node("backend/app.py", 7)]))
    ]

    result = _fetch(fake, client_factory)

    assert result.reported["backend/app.py"]["001. SQL injection"].line_numbers == {7}


def test_page_failure_keeps_partial_data_and_moves_on(client_factory):
    fake = FakeIntegrates(group_data([("f-1", "001. A"), ("f-2", "002. B")]))
    fake.pages["f-1"] = [
        page(vulns=connection([node("backend/a.py", 1)], end="v1", more=True)),
        httpx.Response(500, text="boom"),
    ]
    fake.pages["f-2"] = [page(vulns=connection([node("backend/b.py", 2)]))]

    result = _fetch(fake, client_factory)

    assert len(fake.location_calls("f-1")) == 2
    assert result.reported["backend/a.py"]["001. A"].line_numbers == {1}
    assert result.reported["backend/b.py"]["002. B"].line_numbers == {2}


def test_stalled_cursor_stops_pagination(fake, client_factory):
    stuck = page(vulns=connection([node("backend/app.py", 1)], end="bnVsbA==", more=True))
    fake.pages["f-1"] = [stuck, stuck, stuck]

    result = _fetch(fake, client_factory)

    assert len(fake.location_calls("f-1")) == 1
    assert result.reported["backend/app.py"]["001. SQL injection"].line_numbers == {1}


def test_fetch_is_idempotent(fake, client_factory):
    fake.pages["f-1"] = [
        page(
            vulns=connection([node("backend/app.py", 3), node("backend/db.py", 8)], end="v1"),
            drafts=connection([node("backend/app.py", 5, state="CREATED")], end="d1"),
        )
    ]

    first = _fetch(fake, client_factory)
    fake.requests.clear()
    second = _fetch(fake, client_factory)

    assert first == second
    assert first.to_document() == second.to_document()


def test_unknown_group_fails(client_factory):
    with pytest.raises(GroupNotFoundError):
        _fetch(FakeIntegrates(group=None), client_factory)


def test_missing_token_sends_nothing(fake, client_factory):
    with pytest.raises(AuthMissingError):
        _fetch(fake, client_factory, token=None)
    assert fake.requests == []
