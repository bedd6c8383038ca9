"""Tests for projecting a result onto one file's lines."""

from __future__ import annotations

from retrieves.locations import AggregatedResult, fold
from retrieves.overlay import PENDING, REPORTED, project, summarize, vulnerability_url


def _result() -> AggregatedResult:
    result = AggregatedResult(group="acme", organization="acme-org")
    fold(result.reported, "backend/app.py", "001. SQL injection", "f-1", 12)
    fold(result.reported, "backend/app.py", "001. SQL injection", "f-1", 3)
    fold(result.reported, "backend/app.py", "002. XSS", "f-2", 12)
    fold(result.pending, "backend/app.py", "003. CSRF - SUBMITTED", "f-3", 0)
    fold(result.pending, "backend/app.py", "003. CSRF - SUBMITTED", "f-3", 99)
    fold(result.reported, "backend/other.py", "001. SQL injection", "f-1", 1)
    return result


def test_reported_first_then_pending():
    annotations = project(_result(), "backend/app.py")

    assert [(a.line, a.state, a.title) for a in annotations] == [
        (3, REPORTED, "001. SQL injection"),
        (12, REPORTED, "001. SQL injection"),
        (12, REPORTED, "002. XSS"),
        (1, PENDING, "003. CSRF - SUBMITTED"),
        (99, PENDING, "003. CSRF - SUBMITTED"),
    ]


def test_lines_are_clamped_to_the_file():
    annotations = project(_result(), "backend/app.py", line_count=20)

    assert [a.line for a in annotations] == [3, 12, 12, 1]


def test_unknown_file_has_no_annotations():
    assert project(_result(), "backend/missing.py") == []


def test_links_point_at_the_finding_locations():
    annotation = project(_result(), "backend/other.py")[0]

    assert annotation.finding_id == "f-1"
    assert annotation.url == (
        "https://app.fluidattacks.com/orgs/acme-org/groups/acme/vulns/f-1/locations/"
    )


def test_custom_console_url():
    url = vulnerability_url("org", "grp", "f-7", console_url="https://console.test/")
    assert url == "https://console.test/orgs/org/groups/grp/vulns/f-7/locations/"


def test_summary_shows_title_or_count():
    summary = summarize(project(_result(), "backend/app.py"))

    assert summary == {
        1: "003. CSRF - SUBMITTED",
        3: "001. SQL injection",
        12: "2 findings",
        99: "003. CSRF - SUBMITTED",
    }
