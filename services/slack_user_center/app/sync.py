"""Periodic and on-demand refresh of the Slack member directory."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable

from libs.observability import record_sync

from .cache import DIRECTORY_USERS_KEY, CorrelationCache
from .clients import DirectoryBinding
from .errors import SlackAPIError
from .schemas import SyncReport

logger = logging.getLogger(__name__)

# Report timestamps use UTC+8.
REPORT_TIMEZONE = timezone(timedelta(hours=8), name="GMT")


@dataclass(frozen=True, slots=True)
class SyncState:
    syncing: bool = False
    succeeded: bool = False
    synced_at: datetime | None = None


class DirectorySync:
    """Refresh ``users.list`` into the cache, never running two refreshes at once.

    Manual triggers and timer ticks share :meth:`sync`. A tick that fires
    while a refresh is in flight is skipped; a manual trigger joins the
    in-flight refresh and reports its outcome instead of starting another.
    """

    def __init__(
        self,
        cache: CorrelationCache,
        binding: Callable[[], DirectoryBinding],
        *,
        interval_seconds: float,
        cache_ttl_seconds: float | None,
    ) -> None:
        self._cache = cache
        self._binding = binding
        self._interval_seconds = interval_seconds
        self._cache_ttl_seconds = cache_ttl_seconds
        self._state = SyncState()
        self._lock = asyncio.Lock()
        self._inflight: asyncio.Task[bool] | None = None
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> SyncState:
        return self._state

    async def sync(self, *, trigger: str = "manual", wait: bool = True) -> bool | None:
        """Run one refresh and return whether it succeeded.

        Returns ``None`` when ``wait`` is false and a refresh is already in
        flight.
        """

        async with self._lock:
            task = self._inflight
            if task is None:
                self._state = replace(self._state, syncing=True)
                task = asyncio.create_task(self._refresh(trigger))
                self._inflight = task
            elif not wait:
                logger.info("Directory sync already running, skipping %s trigger", trigger)
                record_sync(trigger, "skipped")
                return None
        return await asyncio.shield(task)

    async def _refresh(self, trigger: str) -> bool:
        succeeded = False
        try:
            users = await self._binding().client.list_users()
        except SlackAPIError as exc:
            logger.error("Failed to sync Slack users: %s", exc)
        else:
            self._cache.set(DIRECTORY_USERS_KEY, users, self._cache_ttl_seconds)
            succeeded = True
            logger.info("Synced %d Slack users", len(users))
        finally:
            async with self._lock:
                if succeeded:
                    self._state = SyncState(
                        syncing=False, succeeded=True, synced_at=datetime.now(timezone.utc)
                    )
                else:
                    self._state = replace(self._state, syncing=False, succeeded=False)
                self._inflight = None
            record_sync(trigger, "success" if succeeded else "failure")
        return succeeded

    def report(self) -> SyncReport:
        state = self._state
        if state.syncing:
            label = "pending"
        elif state.synced_at is not None:
            label = "complete"
        else:
            label = "none"
        synced_at = None
        if state.synced_at is not None:
            synced_at = state.synced_at.astimezone(REPORT_TIMEZONE).strftime("%Y-%m-%d %H:%M:%S")
        return SyncReport(
            state=label,
            syncing=state.syncing,
            last_sync_succeeded=state.succeeded,
            last_successful_sync_at=synced_at,
        )

    async def start(self) -> None:
        if self._task is not None:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_periodic())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None

    async def _run_periodic(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval_seconds)
            except asyncio.TimeoutError:
                pass
            if self._stop_event.is_set():
                break
            if not self._binding().config.auto_sync:
                logger.debug("Auto sync disabled, skipping scheduled directory sync")
                continue
            logger.info("UserCenter is syncing Slack user data...")
            try:
                await self.sync(trigger="scheduled", wait=False)
            except Exception:
                logger.exception("Scheduled directory sync crashed")
