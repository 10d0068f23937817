"""Concrete implementations of the scanner ports."""

from cleanmac.adapters.app_detection import MacOSAppDetection
from cleanmac.adapters.disk_usage import DuDiskUsage
from cleanmac.adapters.filesystem import LocalFileSystem

__all__ = ["DuDiskUsage", "LocalFileSystem", "MacOSAppDetection"]
