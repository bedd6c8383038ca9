"""Integrates API client."""

from .client import (
    AuthenticationError,
    AuthMissingError,
    GroupNotFoundError,
    IntegratesClient,
    ProtocolError,
    RetrievesError,
    TransportError,
)
from .models import (
    NULL_CURSOR,
    FindingLocationsPage,
    FindingSummary,
    GroupListing,
    LocationConnection,
    LocationNode,
)

__all__ = [
    "IntegratesClient",
    "AuthenticationError",
    "AuthMissingError",
    "GroupNotFoundError",
    "ProtocolError",
    "RetrievesError",
    "TransportError",
    "NULL_CURSOR",
    "FindingLocationsPage",
    "FindingSummary",
    "GroupListing",
    "LocationConnection",
    "LocationNode",
]
