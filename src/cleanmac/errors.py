"""Exceptions raised by cleanmac."""


class CleanMacError(Exception):
    """Base class for cleanmac errors."""


class DiskUsageError(CleanMacError):
    """Measuring the size of a path failed."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(message)


class DiskPermissionError(DiskUsageError):
    """Measuring a path failed because access was denied."""

    def __init__(self, path: str) -> None:
        super().__init__(
            path,
            f"Permission denied for {path}. Grant Full Disk Access to your terminal "
            "(System Settings > Privacy & Security > Full Disk Access).",
        )


class CacheError(CleanMacError):
    """Reading or writing the scan cache failed."""
