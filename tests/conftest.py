"""Shared fixtures: in-memory implementations of the scanner ports."""

import asyncio
import posixpath
from datetime import datetime

import pytest

from cleanmac.errors import DiskPermissionError
from cleanmac.models import InstalledApp, ItemType
from cleanmac.ports import (
    AppDetectionPort,
    DiskUsagePort,
    FileStats,
    FileSystemEntry,
    FileSystemPort,
)

MTIME = datetime(2024, 1, 15, 12, 0, 0)
MB_KB = 1024  # one MiB expressed in KiB


class FakeFileSystem(FileSystemPort):
    """Filesystem tree held in memory. Sizes are stored in KiB."""

    def __init__(self) -> None:
        self.types: dict[str, ItemType] = {}
        self.sizes: dict[str, int] = {}
        self.files: dict[str, str] = {}
        self.broken: set[str] = set()
        self.unlistable: set[str] = set()

    def add_dir(self, path: str) -> str:
        parent = posixpath.dirname(path)
        if parent != path and parent not in self.types and parent != "/":
            self.add_dir(parent)
        self.types[path] = ItemType.DIRECTORY
        return path

    def add_file(self, path: str, size_kb: int, item_type: ItemType = ItemType.FILE) -> str:
        self.add_dir(posixpath.dirname(path))
        self.types[path] = item_type
        self.sizes[path] = size_kb
        return path

    def size_of(self, path: str) -> int:
        prefix = path.rstrip("/") + "/"
        return sum(size for p, size in self.sizes.items() if p == path or p.startswith(prefix))

    async def exists(self, path: str) -> bool:
        return path in self.types or path in self.files

    async def list_entries(self, path: str) -> list[FileSystemEntry]:
        await asyncio.sleep(0)
        if path in self.unlistable:
            raise PermissionError(f"Permission denied: '{path}'")
        if self.types.get(path) != ItemType.DIRECTORY:
            raise NotADirectoryError(path)
        return [
            FileSystemEntry(name=posixpath.basename(p), path=p, type=t)
            for p, t in sorted(self.types.items())
            if posixpath.dirname(p) == path and p != path
        ]

    async def stat(self, path: str) -> FileStats:
        if path in self.broken or path not in self.types:
            raise FileNotFoundError(f"No such file or directory: '{path}'")
        return FileStats(modified_at=MTIME)

    async def ensure_directory(self, path: str) -> None:
        self.add_dir(path)

    async def write_file(self, path: str, contents: str) -> None:
        self.files[path] = contents

    async def read_file(self, path: str) -> str:
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]


class FakeDiskUsage(DiskUsagePort):
    """Sums file sizes of the fake filesystem and records every call."""

    def __init__(self, file_system: FakeFileSystem) -> None:
        self.file_system = file_system
        self.denied: set[str] = set()
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_size_in_kb(self, path: str) -> int:
        self.calls.append(path)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if path in self.denied:
                raise DiskPermissionError(path)
            return self.file_system.size_of(path)
        finally:
            self.in_flight -= 1


class FakeAppDetection(AppDetectionPort):
    def __init__(self, apps: list[InstalledApp], error: Exception | None = None) -> None:
        self.apps = apps
        self.error = error
        self.calls = 0

    async def get_installed_apps(self) -> list[InstalledApp]:
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.apps)


@pytest.fixture
def fake_fs() -> FakeFileSystem:
    return FakeFileSystem()


@pytest.fixture
def fake_du(fake_fs) -> FakeDiskUsage:
    return FakeDiskUsage(fake_fs)


@pytest.fixture
def make_apps():
    def _make(*specs: tuple[str, str | None]) -> FakeAppDetection:
        return FakeAppDetection(
            [
                InstalledApp(name=name, bundle_id=bundle_id, path=f"/Applications/{name}.app")
                for name, bundle_id in specs
            ]
        )

    return _make
