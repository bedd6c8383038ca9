"""Integrates GraphQL API client."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any

import httpx
from pydantic import ValidationError

from .models import FindingLocationsPage, GroupListing
from .queries import GET_FINDING_LOCATIONS, GET_GROUP_FINDINGS

logger = logging.getLogger(__name__)

# Retry configuration
RETRY_STATUS_CODES = {429, 502, 503, 504}
MAX_RETRY_DELAY = 16


class RetrievesError(Exception):
    """Base exception for location retrieval errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthMissingError(RetrievesError):
    """No API token is configured; nothing was sent."""


class AuthenticationError(RetrievesError):
    """The API rejected the token."""


class TransportError(RetrievesError):
    """The request could not be completed (network or HTTP failure)."""


class ProtocolError(RetrievesError):
    """The API answered with something other than usable GraphQL data."""


class GroupNotFoundError(RetrievesError):
    """The API does not know the group (or hides it from this token)."""


class IntegratesClient:
    """Client for the Integrates GraphQL endpoint."""

    def __init__(
        self,
        endpoint: str,
        token: str | None,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the Integrates client.

        Args:
            endpoint: GraphQL endpoint URL
            token: API token; requests fail with AuthMissingError when empty
            timeout: Request timeout in seconds
            max_retries: Attempts for 429/502/503/504 responses
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.endpoint = endpoint
        self.token = token
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers={"Authorization": f"Bearer {self.token}"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> IntegratesClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _request(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """POST one GraphQL document and return its ``data`` member."""
        if not self.token:
            raise AuthMissingError("No API token configured (set INTEGRATES_API_TOKEN)")

        try:
            response = await self.client.post(
                self.endpoint, json={"query": query, "variables": variables}
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {self.endpoint} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthenticationError(
                "Unauthorized - check your API token", response.status_code
            )
        if response.status_code >= 400:
            raise TransportError(f"API error: {response.status_code}", response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise ProtocolError("Invalid JSON response", response.status_code) from e

        if not isinstance(payload, dict):
            raise ProtocolError("Unexpected response shape", response.status_code)
        if payload.get("errors"):
            messages = [
                str(err.get("message", err)) if isinstance(err, dict) else str(err)
                for err in payload["errors"]
            ]
            raise ProtocolError("; ".join(messages), response.status_code)

        data = payload.get("data")
        if not isinstance(data, dict):
            raise ProtocolError("Response carries no data", response.status_code)
        return data

    async def _request_with_retry(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """
        Make a request, retrying throttled and gateway failures.

        Uses exponential backoff (1s, 2s, 4s, ... capped) with 0-1s of jitter.
        """
        for attempt in range(self.max_retries):
            try:
                return await self._request(query, variables)
            except TransportError as e:
                if e.status_code not in RETRY_STATUS_CODES or attempt >= self.max_retries - 1:
                    raise

                delay = min(2**attempt, MAX_RETRY_DELAY) + random.uniform(0, 1)
                logger.warning(
                    "Request failed (%s), retry %d/%d in %.1fs",
                    e.status_code,
                    attempt + 1,
                    self.max_retries,
                    delay,
                )
                await asyncio.sleep(delay)

        raise TransportError("Max retries exceeded")

    async def get_group_listing(self, group_name: str) -> GroupListing:
        """Get the findings and roots of a group."""
        data = await self._request_with_retry(GET_GROUP_FINDINGS, {"group": group_name})
        group = data.get("group")
        if not group:
            raise GroupNotFoundError(f"Group not found: {group_name}")
        try:
            return GroupListing.model_validate(group)
        except ValidationError as e:
            raise ProtocolError(f"Malformed group listing for {group_name}: {e}") from e

    async def get_finding_locations(
        self,
        finding_id: str,
        vuln_cursor: str = "",
        draft_cursor: str = "",
        first: int = 5000,
    ) -> FindingLocationsPage:
        """
        Get one page of both location connections of a finding.

        Args:
            finding_id: Finding identifier
            vuln_cursor: ``after`` cursor of the vulnerabilities connection
            draft_cursor: ``after`` cursor of the drafts connection
            first: Page size per connection
        """
        data = await self._request_with_retry(
            GET_FINDING_LOCATIONS,
            {
                "uuid": finding_id,
                "vulnToken": vuln_cursor,
                "draftToken": draft_cursor,
                "first": first,
            },
        )
        finding = data.get("finding")
        if not finding:
            raise ProtocolError(f"Finding not found: {finding_id}")
        try:
            return FindingLocationsPage.model_validate(finding)
        except ValidationError as e:
            raise ProtocolError(f"Malformed location page for {finding_id}: {e}") from e
