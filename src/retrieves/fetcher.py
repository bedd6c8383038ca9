"""Collect a group's vulnerability and draft locations from Integrates."""

import logging

from .integrates_client import (
    FindingLocationsPage,
    FindingSummary,
    IntegratesClient,
    RetrievesError,
)
from .integrates_client.models import VULNERABLE_STATE
from .locations import AggregatedResult, fold, normalize_location

logger = logging.getLogger(__name__)


class RemoteLocationFetcher:
    """
    Walks a group's findings and folds every line location into an
    :class:`AggregatedResult`.

    Findings are processed one at a time in listing order, and the pages of a
    finding strictly in sequence, so only one request is ever outstanding.
    """

    def __init__(self, client: IntegratesClient, page_size: int = 5000):
        self.client = client
        self.page_size = page_size

    async def fetch_group(self, group_name: str) -> AggregatedResult:
        """
        Fetch all locations of a group.

        Raises:
            AuthMissingError: No token configured (nothing is sent)
            GroupNotFoundError: The API does not report the group
            TransportError, ProtocolError, AuthenticationError: The listing failed
        """
        listing = await self.client.get_group_listing(group_name)
        result = AggregatedResult(
            group=group_name,
            organization=listing.organization,
            roots=listing.active_roots(),
        )
        logger.info(
            "Group %s: %d findings, %d active roots",
            group_name,
            len(listing.findings),
            len(result.roots),
        )

        for finding in listing.findings:
            await self._collect_finding(finding, result)

        return result

    async def _collect_finding(self, finding: FindingSummary, result: AggregatedResult) -> None:
        """Page through both connections of a finding until neither has more."""
        vuln_cursor = ""
        draft_cursor = ""
        pages = 0

        while True:
            try:
                page = await self.client.get_finding_locations(
                    finding.id,
                    vuln_cursor=vuln_cursor,
                    draft_cursor=draft_cursor,
                    first=self.page_size,
                )
            except RetrievesError as e:
                # Keep what this finding produced so far and move on
                logger.warning(
                    "Stopping pagination for finding %s after %d pages: %s", finding.id, pages, e
                )
                return

            pages += 1
            self._fold_page(finding, page, result)

            if not page.has_next_page:
                break

            next_vuln = page.vulnerabilities.next_cursor()
            next_draft = page.drafts.next_cursor()
            if (next_vuln, next_draft) == (vuln_cursor, draft_cursor):
                logger.warning(
                    "Finding %s reports more pages but its cursors did not advance; stopping",
                    finding.id,
                )
                break
            vuln_cursor, draft_cursor = next_vuln, next_draft

        logger.debug("Finding %s: %d pages", finding.id, pages)

    @staticmethod
    def _fold_page(
        finding: FindingSummary, page: FindingLocationsPage, result: AggregatedResult
    ) -> None:
        for node in page.vulnerabilities.nodes:
            if node.state != VULNERABLE_STATE or not node.is_lines:
                continue
            line = node.line_number
            if line is None:
                logger.debug("Skipping non-numeric location %r of %s", node.specific, finding.id)
                continue
            fold(
                result.reported,
                normalize_location(node.where or ""),
                finding.title,
                finding.id,
                line,
            )

        for node in page.drafts.nodes:
            if not node.is_lines:
                continue
            line = node.line_number
            if line is None:
                logger.debug("Skipping non-numeric draft %r of %s", node.specific, finding.id)
                continue
            fold(
                result.pending,
                normalize_location(node.where or ""),
                f"{finding.title} - {node.state}",
                finding.id,
                line,
            )
