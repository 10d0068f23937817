"""Interfaces the scanner depends on.

Concrete implementations live in :mod:`cleanmac.adapters`; tests use
in-memory fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from cleanmac.models import InstalledApp, ItemType


@dataclass(frozen=True)
class FileSystemEntry:
    """A directory entry as returned by a listing."""

    name: str
    path: str
    type: ItemType


@dataclass(frozen=True)
class FileStats:
    """The subset of stat() results the scanner needs."""

    modified_at: datetime


class FileSystemPort(ABC):
    """Asynchronous filesystem access."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check whether a path exists."""

    @abstractmethod
    async def list_entries(self, path: str) -> list[FileSystemEntry]:
        """List the entries of a directory."""

    @abstractmethod
    async def stat(self, path: str) -> FileStats:
        """Stat a path."""

    @abstractmethod
    async def ensure_directory(self, path: str) -> None:
        """Create a directory and its parents."""

    @abstractmethod
    async def write_file(self, path: str, contents: str) -> None:
        """Write a text file."""

    @abstractmethod
    async def read_file(self, path: str) -> str:
        """Read a text file."""


class DiskUsagePort(ABC):
    """Measures on-disk usage of a path."""

    @abstractmethod
    async def get_size_in_kb(self, path: str) -> int:
        """Return the on-disk size of a path in KiB.

        Raises:
            DiskUsageError: If the size cannot be measured.
        """


class AppDetectionPort(ABC):
    """Finds installed applications."""

    @abstractmethod
    async def get_installed_apps(self) -> list[InstalledApp]:
        """Return the applications installed on this machine."""
