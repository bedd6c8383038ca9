"""
Two-tier location cache with single-flight refreshes.

Resolution order for :meth:`SnapshotCache.get`:

1. the persisted snapshot document of the group;
2. the in-memory result of an earlier refresh in this process;
3. a background refresh when a token is available (``get`` returns None and
   listeners are told when the refresh ends);
4. nothing.

Only one refresh per group runs at a time. A second ``force_refresh`` for the
same group awaits the running one instead of starting new work.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import httpx

from .classifier import GroupPath
from .config import RetrievesConfig
from .fetcher import RemoteLocationFetcher
from .integrates_client import AuthMissingError, IntegratesClient, RetrievesError
from .locations import AggregatedResult
from .snapshot import (
    SnapshotUnreadableError,
    load_snapshot,
    save_snapshot,
    snapshot_filename,
    utc_timestamp,
)

logger = logging.getLogger(__name__)

FETCH_STARTED = "started"
FETCH_COMPLETED = "completed"
FETCH_FAILED = "failed"


@dataclass(frozen=True)
class FetchEvent:
    """Refresh lifecycle notification for one group."""

    group: str
    kind: str
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.kind == FETCH_COMPLETED


FetchListener = Callable[[FetchEvent], None]


class SnapshotCache:
    """Owns the in-memory results, the snapshot files and the in-flight refreshes."""

    def __init__(
        self,
        config: RetrievesConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the cache.

        Args:
            config: Application configuration
            transport: Optional httpx transport for the API client
        """
        self.config = config
        self._transport = transport
        self._results: dict[str, AggregatedResult] = {}
        self._inflight: dict[str, asyncio.Task[AggregatedResult]] = {}
        self._listeners: list[FetchListener] = []

    def subscribe(self, listener: FetchListener) -> None:
        """Register a callable for refresh notifications."""
        self._listeners.append(listener)

    def _notify(self, event: FetchEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Fetch listener failed for %s", event.group)

    def snapshot_path(self, group: GroupPath) -> Path:
        """Where the snapshot of *group* is persisted."""
        if self.config.snapshot_override:
            return self.config.snapshot_override
        return group.repo_root / snapshot_filename(group.name)

    def cached(self, group_name: str) -> AggregatedResult | None:
        """In-memory result of the last successful refresh, if any."""
        return self._results.get(group_name)

    def pending(self, group_name: str) -> "asyncio.Task[AggregatedResult] | None":
        """The running refresh of a group, if any."""
        return self._inflight.get(group_name)

    def get(self, group: GroupPath, token: str | None = None) -> AggregatedResult | None:
        """
        Return the best available result for *group* without waiting on the network.

        May start a background refresh (requires a running event loop); callers
        re-query after the ``completed`` notification.
        """
        path = self.snapshot_path(group)
        try:
            return load_snapshot(path)
        except SnapshotUnreadableError as e:
            logger.debug("%s", e)

        cached = self._results.get(group.name)
        if cached is not None:
            return cached

        token = token or self.config.api_token
        if not token:
            logger.debug("No API token; not fetching %s", group.name)
            return None

        self._start_refresh(group, token)
        return None

    async def force_refresh(self, group: GroupPath, token: str | None = None) -> AggregatedResult:
        """
        Fetch *group* from the API, replacing the cached and persisted result.

        Joins the running refresh of the group when there is one.

        Raises:
            RetrievesError: The refresh failed; cache and snapshot are unchanged
        """
        task = self._start_refresh(group, token or self.config.api_token)
        # A cancelled caller must not cancel the shared refresh
        return await asyncio.shield(task)

    def _start_refresh(
        self, group: GroupPath, token: str | None
    ) -> "asyncio.Task[AggregatedResult]":
        task = self._inflight.get(group.name)
        if task is not None:
            logger.debug("Refresh of %s already running", group.name)
            return task

        # Raises RuntimeError outside a running event loop
        task = asyncio.get_running_loop().create_task(self._refresh(group, token))
        self._inflight[group.name] = task
        task.add_done_callback(lambda done: self._release(group.name, done))
        return task

    def _release(self, group_name: str, task: "asyncio.Task[AggregatedResult]") -> None:
        if self._inflight.get(group_name) is task:
            del self._inflight[group_name]
        # Background refreshes may have no awaiting caller
        if not task.cancelled():
            task.exception()

    async def _refresh(self, group: GroupPath, token: str | None) -> AggregatedResult:
        if not token:
            raise AuthMissingError("No API token configured (set INTEGRATES_API_TOKEN)")

        self._notify(FetchEvent(group.name, FETCH_STARTED))
        logger.info("Downloading locations for %s", group.name)
        try:
            async with IntegratesClient(
                endpoint=self.config.endpoint,
                token=token,
                timeout=self.config.timeout,
                max_retries=self.config.max_retries,
                transport=self._transport,
            ) as client:
                fetcher = RemoteLocationFetcher(client, page_size=self.config.page_size)
                result = await fetcher.fetch_group(group.name)
        except RetrievesError as e:
            logger.error("Download failed for %s: %s", group.name, e)
            self._notify(FetchEvent(group.name, FETCH_FAILED, str(e)))
            raise

        result = result.model_copy(update={"exported_at": utc_timestamp()})
        self._persist(group, result)
        self._results[group.name] = result
        logger.info("Download complete for %s", group.name)
        self._notify(FetchEvent(group.name, FETCH_COMPLETED))
        return result

    def _persist(self, group: GroupPath, result: AggregatedResult) -> None:
        path = self.snapshot_path(group)
        try:
            save_snapshot(path, result)
        except OSError as e:
            logger.warning("Could not write snapshot %s: %s", path, e)

