"""Local filesystem adapter."""

import asyncio
import os
from datetime import datetime
from pathlib import Path

from cleanmac.models import ItemType
from cleanmac.ports import FileStats, FileSystemEntry, FileSystemPort


def _entry_type(entry: os.DirEntry) -> ItemType:
    if entry.is_file(follow_symlinks=False):
        return ItemType.FILE
    if entry.is_dir(follow_symlinks=False):
        return ItemType.DIRECTORY
    if entry.is_symlink():
        return ItemType.SYMLINK
    return ItemType.OTHER


def _list_entries(path: str) -> list[FileSystemEntry]:
    with os.scandir(path) as entries:
        return [
            FileSystemEntry(name=entry.name, path=os.path.join(path, entry.name), type=_entry_type(entry))
            for entry in entries
        ]


class LocalFileSystem(FileSystemPort):
    """FileSystemPort backed by the local disk.

    Blocking calls run in the default thread pool so the event loop keeps
    scheduling other entries.
    """

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.exists, path)

    async def list_entries(self, path: str) -> list[FileSystemEntry]:
        return await asyncio.to_thread(_list_entries, path)

    async def stat(self, path: str) -> FileStats:
        result = await asyncio.to_thread(os.stat, path)
        return FileStats(modified_at=datetime.fromtimestamp(result.st_mtime))

    async def ensure_directory(self, path: str) -> None:
        await asyncio.to_thread(Path(path).mkdir, parents=True, exist_ok=True)

    async def write_file(self, path: str, contents: str) -> None:
        await asyncio.to_thread(Path(path).write_text, contents, encoding="utf-8")

    async def read_file(self, path: str) -> str:
        return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")
