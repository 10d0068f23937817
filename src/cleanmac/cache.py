"""JSON persistence for scan reports."""

import logging
import os
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from cleanmac.errors import CacheError
from cleanmac.models import ScanCache, ScanCacheEntry, ScanReport
from cleanmac.ports import FileSystemPort

logger = logging.getLogger(__name__)

CACHE_FILE_NAME = "scan-cache.json"
REPORT_FILE_NAME = "scan-report.json"
MAX_ENTRIES = 10


class JsonCache:
    """Keeps the most recent scan reports in ``<cache_dir>/scan-cache.json``.

    Args:
        file_system: Filesystem used for reading and writing.
        cache_dir: Directory holding the cache file.
    """

    def __init__(self, file_system: FileSystemPort, cache_dir: str) -> None:
        self.file_system = file_system
        self.cache_dir = cache_dir
        self.cache_path = os.path.join(cache_dir, CACHE_FILE_NAME)

    async def load(self) -> Optional[ScanCache]:
        """Load the cache; None if it is missing or unreadable."""
        if not await self.file_system.exists(self.cache_path):
            return None
        try:
            content = await self.file_system.read_file(self.cache_path)
            return ScanCache.model_validate_json(content)
        except (OSError, ValidationError) as e:
            logger.warning("Ignoring unreadable scan cache %s: %s", self.cache_path, e)
            return None

    async def save(self, cache: ScanCache) -> None:
        """Write the cache to disk."""
        try:
            await self.file_system.ensure_directory(self.cache_dir)
            await self.file_system.write_file(self.cache_path, cache.model_dump_json(indent=2))
        except OSError as e:
            raise CacheError(f"Cannot write scan cache {self.cache_path}: {e}") from e

    async def add_entry(self, report: ScanReport, target_paths: list[str]) -> ScanCacheEntry:
        """
        Add a report to the cache, keeping the newest entries.

        Args:
            report: Report to store
            target_paths: Paths that were requested for the scan

        Returns:
            The new cache entry
        """
        deletable = report.deletable_items
        entry = ScanCacheEntry(
            report=report,
            scanned_at=report.generated_at,
            targets=list(target_paths),
            total_size=report.total_bytes,
            deletable_size=sum(item.size_bytes for item in deletable),
            deletable_count=len(deletable),
        )

        cache = await self.load() or ScanCache()
        entries = sorted([*cache.entries, entry], key=lambda e: e.scanned_at, reverse=True)
        await self.save(ScanCache(entries=entries[:MAX_ENTRIES], last_updated=datetime.now()))
        return entry

    async def latest_entry(self) -> Optional[ScanCacheEntry]:
        """Most recent cache entry, if any."""
        cache = await self.load()
        if not cache or not cache.entries:
            return None
        return cache.entries[0]

    async def clear(self) -> None:
        """Drop all cache entries."""
        if await self.file_system.exists(self.cache_path):
            await self.save(ScanCache())


async def write_report(file_system: FileSystemPort, report: ScanReport, path: str) -> None:
    """Write a single report as JSON."""
    try:
        await file_system.ensure_directory(os.path.dirname(path) or ".")
        await file_system.write_file(path, report.model_dump_json(indent=2))
    except OSError as e:
        raise CacheError(f"Cannot write report {path}: {e}") from e
