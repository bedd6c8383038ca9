"""Location keys, records and the aggregated per-group result."""

import re
from typing import Any

from pydantic import BaseModel, Field, field_serializer, field_validator

# " (commit)", " [tag]" and similar metadata after the path
_METADATA_SUFFIX = re.compile(r"\s*[(\[].*[\])]", re.DOTALL)

LocationKey = str


def normalize_location(where: str) -> LocationKey:
    """Strip bracketed or parenthesised metadata from a remote ``where`` string."""
    return _METADATA_SUFFIX.sub("", where)


class LocationRecord(BaseModel):
    """Lines of one finding title at one location."""

    finding_id: str = Field(alias="id")
    line_numbers: set[int] = Field(default_factory=set, alias="locs")

    model_config = {"populate_by_name": True}

    @field_validator("line_numbers", mode="before")
    @classmethod
    def _drop_non_numeric(cls, value: Any) -> Any:
        # Snapshots written by the editor plugins store lines as strings
        if not isinstance(value, (list, tuple, set)):
            return value
        lines = set()
        for item in value:
            try:
                lines.add(int(str(item).strip()))
            except ValueError:
                continue
        return lines

    @field_serializer("line_numbers")
    def _sorted_lines(self, value: set[int]) -> list[int]:
        return sorted(value)


# location key -> display title -> record
Partition = dict[LocationKey, dict[str, LocationRecord]]


def fold(
    partition: Partition,
    location_key: LocationKey,
    title: str,
    finding_id: str,
    line_number: int,
) -> None:
    """Merge one (location, title, line) observation into *partition* in place."""
    titles = partition.setdefault(location_key, {})
    record = titles.get(title)
    if record is None:
        titles[title] = LocationRecord(finding_id=finding_id, line_numbers={line_number})
    else:
        record.line_numbers.add(line_number)


class AggregatedResult(BaseModel):
    """
    Everything known about a group's locations.

    Serialized with aliases this is exactly the persisted snapshot document:
    ``reported``, ``drafts``, ``org``, ``roots``, ``group`` and ``exportedAt``.
    """

    reported: Partition = Field(default_factory=dict)
    pending: Partition = Field(default_factory=dict, alias="drafts")
    roots: dict[str, str] = Field(default_factory=dict)
    organization: str = Field(default="", alias="org")
    group: str = ""
    exported_at: str | None = Field(default=None, alias="exportedAt")

    model_config = {"populate_by_name": True}

    @field_validator("organization", "group", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    def for_location(self, location_key: LocationKey) -> tuple[dict[str, LocationRecord], ...]:
        """Reported and pending records of one file."""
        return self.reported.get(location_key, {}), self.pending.get(location_key, {})

    def to_document(self) -> dict[str, Any]:
        """JSON-ready snapshot document."""
        return self.model_dump(mode="json", by_alias=True)
