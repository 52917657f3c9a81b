"""
Periodic collection loop.

Runs the platform orchestrator on a fixed interval and publishes each
result as one immutable snapshot, so readers never see a mix of cycles.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .models import Disk, RaidArray
from .systems.base import StorageSystem

logger = logging.getLogger(__name__)

JOB_ID = 'disk_collection'


@dataclass(frozen=True)
class Snapshot:
    """Reconciled output of one collection cycle."""
    disks: Tuple[Disk, ...] = ()
    arrays: Tuple[RaidArray, ...] = ()
    collected_at: Optional[datetime] = None
    duration: float = 0.0

    @property
    def is_empty(self) -> bool:
        return self.collected_at is None


class Collector:
    """Owns the published snapshot and the scheduler that refreshes it."""

    def __init__(self, system: StorageSystem, metrics=None):
        self.system = system
        self.metrics = metrics
        self._snapshot = Snapshot()
        self._snapshot_lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._scheduler: Optional[BackgroundScheduler] = None

    def snapshot(self) -> Snapshot:
        with self._snapshot_lock:
            return self._snapshot

    def collect(self) -> Snapshot:
        """
        Run one cycle and publish its snapshot.

        A failing cycle is logged and leaves the previous snapshot in place.
        Overlapping calls are skipped rather than queued.
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("Collection already in progress, skipping")
            return self.snapshot()

        try:
            start = time.monotonic()
            try:
                disks, arrays = self.system.collect()
            except Exception as e:
                logger.error(f"Disk collection failed: {e}", exc_info=True)
                return self.snapshot()

            snapshot = Snapshot(
                disks=tuple(disks),
                arrays=tuple(arrays),
                collected_at=datetime.now(timezone.utc),
                duration=time.monotonic() - start,
            )
            with self._snapshot_lock:
                self._snapshot = snapshot

            if self.metrics is not None:
                self.metrics.update(snapshot, self.system.tool_info)
            logger.info(
                f"Collection finished: {len(snapshot.disks)} disks, "
                f"{len(snapshot.arrays)} arrays in {snapshot.duration:.2f}s"
            )
            return snapshot
        finally:
            self._cycle_lock.release()

    def start(self, interval: float) -> None:
        """Collect once now, then every ``interval`` seconds in the background."""
        self.collect()

        self._scheduler = BackgroundScheduler(daemon=True)
        self._scheduler.add_job(
            self.collect,
            IntervalTrigger(seconds=interval),
            id=JOB_ID,
            name='Collect disk health',
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(f"Collection scheduled every {interval:g}s")

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def shutdown(self) -> None:
        if self.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
