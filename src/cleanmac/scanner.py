"""Concurrent, pruning scanner for reclaimable app artifacts.

Targets are scanned one after another. Inside a target, the entries of
each directory level are measured by a fixed pool of workers; entries
below the size threshold are dropped without being descended into, which
keeps the amount of work bounded however deep the tree is.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, TypeVar

from cleanmac.app_matcher import AppMatcher
from cleanmac.config import DEFAULT_CONCURRENCY, DEFAULT_SIZE_THRESHOLD
from cleanmac.models import (
    ItemType,
    ScanCategory,
    ScanItem,
    ScanReport,
    ScanTarget,
    SkippedItem,
    empty_totals,
    risk_for,
)
from cleanmac.ports import AppDetectionPort, DiskUsagePort, FileSystemEntry, FileSystemPort
from cleanmac.rules import (
    calculate_depth,
    is_explicitly_unsafe,
    is_leaf_cache_directory,
    is_recursive_category,
    is_safe_to_delete,
    max_depth_for,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Log a heartbeat every N entries of a large directory
LOG_EVERY = 250


class ProgressKind(str, Enum):
    """Kinds of progress events emitted during a scan."""

    TARGET_STARTED = "target-started"
    TARGET_FINISHED = "target-finished"
    ENTRY_ADDED = "entry-added"
    ENTRY_PRUNED = "entry-pruned"
    ENTRY_SKIPPED = "entry-skipped"


@dataclass(frozen=True)
class ScanProgressEvent:
    """Something happened during a scan."""

    kind: ProgressKind
    path: str
    size_bytes: int = 0
    entries: int = 0
    reason: Optional[str] = None


ProgressCallback = Callable[[ScanProgressEvent], None]


async def run_with_concurrency(
    tasks: Sequence[Callable[[], Awaitable[T]]],
    concurrency: int,
) -> list[T]:
    """
    Run tasks with at most ``concurrency`` in flight.

    Workers pull the next task from a shared index until the list is
    exhausted, so each task runs exactly once. Completion order is not
    defined; results are returned in task order.

    Args:
        tasks: Zero-argument coroutine functions
        concurrency: Number of workers (values below 1 mean 1)

    Returns:
        Task results, in the order of ``tasks``
    """
    results: list = [None] * len(tasks)
    index = 0

    async def worker() -> None:
        nonlocal index
        while index < len(tasks):
            current = index
            index += 1
            results[current] = await tasks[current]()

    workers = min(max(concurrency, 1), len(tasks))
    await asyncio.gather(*(worker() for _ in range(workers)))
    return results


@dataclass
class _TargetRun:
    """Mutable state of one target's traversal."""

    target: ScanTarget
    matcher: Optional[AppMatcher]
    concurrency: int
    items: list[ScanItem] = field(default_factory=list)
    skipped: list[SkippedItem] = field(default_factory=list)


def sum_by_category(items: Sequence[ScanItem]) -> dict[ScanCategory, int]:
    """Total item sizes per category, with every category present."""
    totals = empty_totals()
    for item in items:
        totals[item.category] += item.size_bytes
    return totals


class ScanService:
    """Scan targets for large, reclaimable entries.

    Args:
        file_system: Filesystem access.
        disk_usage: Size measurement.
        app_detection: When given, installed applications are loaded once
            per scan and Application Support folders are checked against
            them.
        size_threshold: Entries smaller than this many bytes are skipped
            and not descended into.
        on_progress: Optional callback receiving ScanProgressEvents.
    """

    def __init__(
        self,
        file_system: FileSystemPort,
        disk_usage: DiskUsagePort,
        *,
        app_detection: Optional[AppDetectionPort] = None,
        size_threshold: int = DEFAULT_SIZE_THRESHOLD,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.file_system = file_system
        self.disk_usage = disk_usage
        self.app_detection = app_detection
        self.size_threshold = size_threshold
        self.on_progress = on_progress

    async def scan(
        self,
        targets: Sequence[ScanTarget],
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> ScanReport:
        """
        Scan targets and build a report.

        Args:
            targets: Targets to scan; missing and unlistable ones are left out
            concurrency: Workers per directory level

        Returns:
            ScanReport with items, per-category totals and skipped entries
        """
        logger.info("Scan started: targets=%d, concurrency=%d", len(targets), concurrency)
        available = await self._existing_targets(targets)
        logger.info("Targets available for scan: %d", len(available))

        matcher = await self._load_matcher()
        items: list[ScanItem] = []
        skipped: list[SkippedItem] = []
        scanned: list[ScanTarget] = []

        for target in available:
            run = _TargetRun(target=target, matcher=matcher, concurrency=concurrency)
            if await self._scan_target(run):
                scanned.append(target)
            items.extend(run.items)
            skipped.extend(run.skipped)

        report = ScanReport(
            generated_at=datetime.now(),
            targets=scanned,
            items=items,
            totals_by_category=sum_by_category(items),
            skipped=skipped,
        )
        logger.info(
            "Scan finished: targets=%d, items=%d, skipped=%d",
            len(scanned),
            len(items),
            len(skipped),
        )
        return report

    async def _existing_targets(self, targets: Sequence[ScanTarget]) -> list[ScanTarget]:
        existing = []
        for target in targets:
            if await self.file_system.exists(target.path):
                existing.append(target)
            else:
                logger.debug("Target missing: %s", target.path)
        return existing

    async def _load_matcher(self) -> Optional[AppMatcher]:
        if self.app_detection is None:
            return None
        try:
            apps = await self.app_detection.get_installed_apps()
        except Exception as e:
            logger.warning("Could not load installed applications, orphan detection disabled: %s", e)
            return None
        logger.info("Installed applications loaded: %d", len(apps))
        return AppMatcher(apps)

    async def _scan_target(self, run: _TargetRun) -> bool:
        """Scan one target; False when its entries could not be listed."""
        target = run.target
        logger.info("Scanning target: category=%s, path=%s", target.category.value, target.path)
        try:
            entries = await self.file_system.list_entries(target.path)
        except Exception as e:
            logger.warning("Cannot list target %s: %s", target.path, e)
            run.skipped.append(SkippedItem(path=target.path, reason=_reason(e)))
            self._emit(ProgressKind.ENTRY_SKIPPED, target.path, reason=_reason(e))
            return False

        self._emit(ProgressKind.TARGET_STARTED, target.path, entries=len(entries))
        await self._scan_entries(entries, run)

        logger.info(
            "Target scan complete: path=%s, items=%d, skipped=%d",
            target.path,
            len(run.items),
            len(run.skipped),
        )
        self._emit(
            ProgressKind.TARGET_FINISHED,
            target.path,
            size_bytes=sum(item.size_bytes for item in run.items),
            entries=len(run.items),
        )
        return True

    async def _scan_entries(self, entries: Sequence[FileSystemEntry], run: _TargetRun) -> None:
        tasks = [
            (lambda entry=entry, position=position: self._scan_entry(entry, position, len(entries), run))
            for position, entry in enumerate(entries)
        ]
        await run_with_concurrency(tasks, run.concurrency)

    async def _scan_entry(
        self, entry: FileSystemEntry, position: int, total: int, run: _TargetRun
    ) -> None:
        target = run.target
        if position % LOG_EVERY == 0:
            logger.debug("Scanning entry %d/%d: %s", position + 1, total, entry.path)

        try:
            size_kb = await self.disk_usage.get_size_in_kb(entry.path)
            size_bytes = size_kb * 1024
            if size_bytes < self.size_threshold:
                self._emit(ProgressKind.ENTRY_PRUNED, entry.path, size_bytes=size_bytes)
                return

            stats = await self.file_system.stat(entry.path)
            depth = calculate_depth(entry.path, target.path)
            safe = is_safe_to_delete(entry.path, entry.name, target.category, depth)

            app_installed = None
            matched_app_name = None
            if target.category == ScanCategory.APP_SUPPORT and run.matcher is not None:
                match = run.matcher.match(entry.name)
                app_installed = match.is_installed
                matched_app_name = match.matched_app.name if match.matched_app else None
                # Leftovers of uninstalled apps are deletable unless they hold user data
                if not match.is_installed and not safe and not is_explicitly_unsafe(entry.path):
                    safe = True

            item = ScanItem(
                name=entry.name,
                path=entry.path,
                category=target.category,
                size_kb=size_kb,
                size_bytes=size_bytes,
                modified_at=stats.modified_at,
                type=entry.type,
                risk_level=risk_for(target.category),
                safe_to_delete=safe,
                parent_target_path=target.path,
                app_installed=app_installed,
                matched_app_name=matched_app_name,
            )
            run.items.append(item)
            self._emit(ProgressKind.ENTRY_ADDED, entry.path, size_bytes=size_bytes)

            if entry.type == ItemType.DIRECTORY and self._should_recurse(entry, target, depth):
                children = await self.file_system.list_entries(entry.path)
                await self._scan_entries(children, run)
        except Exception as e:
            logger.debug("Skipped entry %s: %s", entry.path, e)
            run.skipped.append(SkippedItem(path=entry.path, reason=_reason(e)))
            self._emit(ProgressKind.ENTRY_SKIPPED, entry.path, reason=_reason(e))

    @staticmethod
    def _should_recurse(entry: FileSystemEntry, target: ScanTarget, depth: int) -> bool:
        return (
            depth < max_depth_for(target.category)
            and not is_leaf_cache_directory(entry.path, entry.name)
            and is_recursive_category(target.category)
        )

    def _emit(self, kind: ProgressKind, path: str, **details) -> None:
        if self.on_progress is not None:
            self.on_progress(ScanProgressEvent(kind=kind, path=path, **details))


def _reason(error: Exception) -> str:
    return str(error) or type(error).__name__
