"""Turn an aggregated result into line annotations for one file."""

from dataclasses import dataclass

from .config import DEFAULT_CONSOLE_URL
from .locations import AggregatedResult, LocationRecord

REPORTED = "reported"
PENDING = "pending"


@dataclass(frozen=True)
class LineAnnotation:
    """One finding title shown on one line."""

    line: int
    state: str
    title: str
    finding_id: str
    url: str


def vulnerability_url(
    org: str, group: str, finding_id: str, console_url: str = DEFAULT_CONSOLE_URL
) -> str:
    return f"{console_url.rstrip('/')}/orgs/{org}/groups/{group}/vulns/{finding_id}/locations/"


def project(
    result: AggregatedResult,
    location_key: str,
    line_count: int | None = None,
    console_url: str = DEFAULT_CONSOLE_URL,
) -> list[LineAnnotation]:
    """
    Annotations for the file stored under *location_key*.

    Reported locations come first, then pending ones. Line numbers below 1
    are shown on line 1; lines past *line_count* (when given) are dropped.
    """
    reported, pending = result.for_location(location_key)
    annotations: list[LineAnnotation] = []

    def place(state: str, records: dict[str, LocationRecord]) -> None:
        for title, record in records.items():
            url = vulnerability_url(
                result.organization, result.group, record.finding_id, console_url
            )
            for line in sorted(record.line_numbers):
                line = max(line, 1)
                if line_count is not None and line > line_count:
                    continue
                annotations.append(LineAnnotation(line, state, title, record.finding_id, url))

    place(REPORTED, reported)
    place(PENDING, pending)
    return annotations


def summarize(annotations: list[LineAnnotation]) -> dict[int, str]:
    """End-of-line text per line: the title, or a count when several share it."""
    by_line: dict[int, list[LineAnnotation]] = {}
    for annotation in annotations:
        by_line.setdefault(annotation.line, []).append(annotation)

    return {
        line: entries[0].title if len(entries) == 1 else f"{len(entries)} findings"
        for line, entries in sorted(by_line.items())
    }
