"""Installed application discovery for macOS."""

import asyncio
import logging
import os
import plistlib
from typing import Optional

from cleanmac.models import InstalledApp, ItemType
from cleanmac.ports import AppDetectionPort, FileSystemPort

logger = logging.getLogger(__name__)

APPLICATION_DIRS = ("/Applications", "~/Applications")


def read_bundle_id(info_plist: str) -> Optional[str]:
    """Read CFBundleIdentifier from an Info.plist, or None if unreadable."""
    try:
        with open(info_plist, "rb") as f:
            data = plistlib.load(f)
    except (OSError, plistlib.InvalidFileException, ValueError) as e:
        logger.debug("Could not read %s: %s", info_plist, e)
        return None

    bundle_id = data.get("CFBundleIdentifier") if isinstance(data, dict) else None
    if isinstance(bundle_id, str) and bundle_id.strip():
        return bundle_id.strip()
    return None


class MacOSAppDetection(AppDetectionPort):
    """Find ``*.app`` bundles in the Applications folders.

    Args:
        file_system: Filesystem used to list the application folders.
        search_dirs: Folders to look in; defaults to /Applications and
            ~/Applications.
    """

    def __init__(
        self,
        file_system: FileSystemPort,
        search_dirs: tuple[str, ...] = APPLICATION_DIRS,
    ) -> None:
        self.file_system = file_system
        self.search_dirs = tuple(os.path.expanduser(d) for d in search_dirs)

    async def get_installed_apps(self) -> list[InstalledApp]:
        apps: list[InstalledApp] = []
        for directory in self.search_dirs:
            if await self.file_system.exists(directory):
                apps.extend(await self._scan_directory(directory))
        logger.debug("Found %d installed applications", len(apps))
        return apps

    async def _scan_directory(self, directory: str) -> list[InstalledApp]:
        apps = []
        for entry in await self.file_system.list_entries(directory):
            if entry.type != ItemType.DIRECTORY or not entry.name.endswith(".app"):
                continue
            name = entry.name[: -len(".app")]
            if not name:
                continue
            info_plist = os.path.join(entry.path, "Contents", "Info.plist")
            bundle_id = None
            if await self.file_system.exists(info_plist):
                bundle_id = await asyncio.to_thread(read_bundle_id, info_plist)
            apps.append(InstalledApp(name=name, bundle_id=bundle_id, path=entry.path))
        return apps
