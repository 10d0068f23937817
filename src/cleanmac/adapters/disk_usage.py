"""Disk usage measurement with du(1)."""

import asyncio
import logging

from cleanmac.errors import DiskPermissionError, DiskUsageError
from cleanmac.ports import DiskUsagePort

logger = logging.getLogger(__name__)


def is_permission_error(message: str) -> bool:
    """Check if du output reports an access problem."""
    lower = message.lower()
    return "permission denied" in lower or "operation not permitted" in lower


def parse_du_output(stdout: str) -> int:
    """Parse the KiB figure from ``du -sk`` output; 0 if unparseable."""
    tokens = stdout.strip().split()
    if not tokens:
        return 0
    try:
        return int(tokens[0])
    except ValueError:
        return 0


class DuDiskUsage(DiskUsagePort):
    """DiskUsagePort that shells out to ``du -sk``.

    Args:
        use_sudo: Run du through sudo so protected folders can be measured.
    """

    def __init__(self, use_sudo: bool = False) -> None:
        self.use_sudo = use_sudo

    def command(self, path: str) -> list[str]:
        """Build the du command line for a path."""
        args = ["du", "-sk", path]
        return ["sudo", *args] if self.use_sudo else args

    async def get_size_in_kb(self, path: str) -> int:
        args = self.command(path)
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise DiskUsageError(path, f"{args[0]} not found: {e}") from e

        stdout, stderr = await process.communicate()
        out = stdout.decode(errors="replace")
        err = stderr.decode(errors="replace")

        if process.returncode != 0:
            logger.debug("du failed for %s: %s", path, err.strip())
            if is_permission_error(err):
                raise DiskPermissionError(path)
            raise DiskUsageError(path, err.strip() or f"du exited with code {process.returncode}")

        return parse_du_output(out)
