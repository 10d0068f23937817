"""cleanmac - find reclaimable app leftovers on macOS, safely."""

__version__ = "0.1.0"
