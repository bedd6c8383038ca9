"""Pydantic models for Integrates GraphQL responses."""

from pydantic import BaseModel, Field

# base64("null"): endCursor reported by an empty connection
NULL_CURSOR = "bnVsbA=="

ACTIVE_ROOT_STATE = "ACTIVE"
LINES_TYPE = "lines"
VULNERABLE_STATE = "VULNERABLE"


class FindingSummary(BaseModel):
    """Finding as listed on a group."""

    id: str
    title: str
    status: str | None = None

    model_config = {"populate_by_name": True}


class GitRoot(BaseModel):
    """Group root. Non-git roots come back as empty objects."""

    id: str | None = None
    nickname: str | None = None
    state: str | None = None

    model_config = {"populate_by_name": True}


class GroupListing(BaseModel):
    """Findings and roots of one group."""

    name: str = ""
    organization: str = ""
    findings: list[FindingSummary] = Field(default_factory=list)
    roots: list[GitRoot] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    def active_roots(self) -> dict[str, str]:
        """Map nickname -> root id for roots in the ACTIVE state."""
        return {
            root.nickname: root.id
            for root in self.roots
            if root.state == ACTIVE_ROOT_STATE and root.nickname and root.id
        }


class LocationNode(BaseModel):
    """A vulnerability or draft location."""

    where: str | None = None
    specific: str | None = None
    state: str | None = None
    vulnerability_type: str | None = Field(default=None, alias="vulnerabilityType")

    model_config = {"populate_by_name": True}

    @property
    def is_lines(self) -> bool:
        return self.vulnerability_type == LINES_TYPE

    @property
    def line_number(self) -> int | None:
        """``specific`` as an int, or None when it is not a line number."""
        try:
            return int(str(self.specific).strip())
        except ValueError:
            return None


class LocationEdge(BaseModel):
    node: LocationNode | None = None


class PageInfo(BaseModel):
    end_cursor: str | None = Field(default=None, alias="endCursor")
    has_next_page: bool = Field(default=False, alias="hasNextPage")

    model_config = {"populate_by_name": True}


class LocationConnection(BaseModel):
    """One page of a cursor-paginated location connection."""

    edges: list[LocationEdge] = Field(default_factory=list)
    page_info: PageInfo | None = Field(default=None, alias="pageInfo")

    model_config = {"populate_by_name": True}

    @property
    def nodes(self) -> list[LocationNode]:
        return [edge.node for edge in self.edges if edge.node is not None]

    @property
    def has_next_page(self) -> bool:
        return bool(self.page_info and self.page_info.has_next_page)

    def next_cursor(self) -> str:
        """Cursor for the following request; empty restarts the connection."""
        if self.page_info is None or not self.page_info.end_cursor:
            return ""
        if self.page_info.end_cursor == NULL_CURSOR:
            return ""
        return self.page_info.end_cursor


class FindingLocationsPage(BaseModel):
    """Combined page of the vulnerabilities and drafts connections of a finding."""

    vulnerabilities: LocationConnection = Field(
        default_factory=LocationConnection, alias="vulnerabilitiesConnection"
    )
    drafts: LocationConnection = Field(
        default_factory=LocationConnection, alias="draftsConnection"
    )

    model_config = {"populate_by_name": True}

    @property
    def has_next_page(self) -> bool:
        return self.vulnerabilities.has_next_page or self.drafts.has_next_page
