"""Persisted per-group snapshot documents."""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from .integrates_client import RetrievesError
from .locations import AggregatedResult

logger = logging.getLogger(__name__)

SNAPSHOT_TEMPLATE = "retrieves-vulns-{group}.json"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class SnapshotUnreadableError(RetrievesError):
    """The snapshot document is missing or malformed."""


def snapshot_filename(group_name: str) -> str:
    return SNAPSHOT_TEMPLATE.format(group=group_name)


def utc_timestamp(now: datetime | None = None) -> str:
    """UTC export timestamp in the snapshot's ``exportedAt`` format."""
    return (now or datetime.now(timezone.utc)).strftime(TIMESTAMP_FORMAT)


def load_snapshot(path: Path) -> AggregatedResult:
    """
    Read a snapshot document.

    Raises:
        SnapshotUnreadableError: The file is absent, unreadable or not a snapshot
    """
    if not path.exists():
        raise SnapshotUnreadableError(f"Snapshot not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return AggregatedResult.model_validate(data)
    except OSError as e:
        raise SnapshotUnreadableError(f"Failed to read snapshot {path}: {e}") from e
    except (ValueError, ValidationError) as e:
        # JSONDecodeError and UnicodeDecodeError are both ValueErrors
        raise SnapshotUnreadableError(f"Invalid snapshot {path}: {e}") from e


def save_snapshot(path: Path, result: AggregatedResult) -> None:
    """
    Replace the snapshot document at *path* with *result*.

    The document is written to a temporary file first and renamed into place,
    so readers never see a half-written snapshot.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(".json.tmp")
    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(result.to_document(), f, indent=2)
        # Path.replace also overwrites on Windows
        temp_path.replace(path)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise

    if sys.platform != "win32":
        try:
            os.chmod(path, 0o600)
        except OSError:
            logger.debug("Could not restrict permissions on %s", path)
