"""Deletion-safety rules for scanned entries.

The pattern tables below are evaluated in order and the first hit wins.
Safe patterns are checked before unsafe ones, so a name such as
``Temporary Data`` resolves to safe.
"""

import re

from cleanmac.models import ScanCategory

# Deepest level (relative to the target) at which anything is marked deletable
MAX_SAFE_DEPTH = 4

# Recursion never goes below this depth, whatever the category
ABSOLUTE_MAX_DEPTH = 4

SAFE_DELETE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p)
    for p in (
        # Cache
        r"[Cc]ache[Ss]torage?$",
        r"[Cc]ache[s]?$",
        r"[Cc]aches$",
        r"\.cache$",
        r"[Cc]ache\.db$",
        # Logs
        r"[Ll]og[s]?$",
        r"\.log$",
        # Temporary files
        r"[Tt]emp[s]?$",
        r"[Tt]emporary",
        r"[Tt]mp$",
        # Service workers
        r"[Ss]ervice\s*[Ww]orker",
        r"[Ss]w\.js$",
        # Browser storage
        r"[Ii]ndexedDB$",
        r"[Ll]ocal\s*[Ss]torage$",
        r"[Gg]pucache$",
        r"[Ss]hadercache$",
        r"[Cc]ode\s*[Cc]ache$",
        # Old/backup files
        r"\.old$",
        r"\.bak$",
        r"\.backup$",
    )
)

UNSAFE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p)
    for p in (
        # User data
        r"[Dd]ata$",
        r"[Uu]ser\s*[Dd]ata$",
        r"[Dd]atabase[s]?$",
        # Preferences
        r"[Pp]reference[s]?$",
        r"[Pp]refs?$",
        # Extensions/plugins
        r"[Ee]xtension[s]?$",
        r"[Pp]lugin[s]?$",
        # Saved state
        r"[Ss]aved\s*[Ss]tate$",
        # Application bundles
        r"\.app$",
        r"\.app\.dSYM$",
        # Code signing
        r"[Cc]ode[Ss]ignature",
    )
)

LEAF_CACHE_DIR_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p)
    for p in (
        # IndexedDB / LevelDB
        r"[Ii]ndexedDB",
        r"\.indexeddb\.leveldb$",
        r"\.leveldb$",
        # Local Storage
        r"[Ll]ocal\s*[Ss]torage",
        r"leveldb$",
        # Cache
        r"[Cc]ache[Ss]torage?$",
        r"[Cc]ache[s]?$",
        r"[Cc]aches$",
        r"\.cache$",
        # Logs
        r"[Ll]og[s]?$",
        # History
        r"[Hh]istory$",
        # Temporary
        r"[Tt]emp[s]?$",
        r"[Tt]emporary",
        r"[Tt]mp$",
        # Service Worker is not a leaf: CacheStorage lives inside it.
        # Browser caches
        r"[Gg]pucache$",
        r"[Ss]hadercache$",
        r"[Cc]ode\s*[Cc]ache$",
    )
)

# Guard for the orphaned-folder override in the scanner
EXPLICIT_UNSAFE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"[Pp]reference[s]?"),
    re.compile(r"[Dd]ata$"),
    re.compile(r"[Uu]ser\s*[Dd]ata"),
)

_DB_FILE = re.compile(r"\.db$")
_CACHE_DB = re.compile(r"[Cc]ache\.db")

NEVER_SAFE_CATEGORIES = frozenset({ScanCategory.PREFERENCES, ScanCategory.LAUNCH_ITEMS})
ALWAYS_SAFE_CATEGORIES = frozenset({ScanCategory.CACHES, ScanCategory.SAVED_APP_STATE})
RECURSIVE_CATEGORIES = frozenset(
    {
        ScanCategory.APP_SUPPORT,
        ScanCategory.CONTAINERS,
        ScanCategory.GROUP_CONTAINERS,
        ScanCategory.CACHES,
    }
)


def _first_match(patterns: tuple[re.Pattern[str], ...], path: str, name: str) -> bool:
    return any(p.search(path) or p.search(name) for p in patterns)


def is_safe_to_delete(path: str, name: str, category: ScanCategory, depth: int) -> bool:
    """
    Decide whether an entry can be deleted without losing user data.

    Args:
        path: Full path of the entry
        name: Entry name (last path segment)
        category: Category of the target the entry was found under
        depth: Depth of the entry below the target

    Returns:
        True if the entry is considered safe to delete
    """
    if depth > MAX_SAFE_DEPTH:
        return False

    if category in NEVER_SAFE_CATEGORIES:
        return False

    if _first_match(SAFE_DELETE_PATTERNS, path, name):
        return True

    if _first_match(UNSAFE_PATTERNS, path, name):
        return False

    # Databases other than cache.db
    if _DB_FILE.search(path) and not _CACHE_DB.search(path):
        return False

    return category in ALWAYS_SAFE_CATEGORIES


def is_leaf_cache_directory(path: str, name: str) -> bool:
    """Check if a directory is scanned as a single unit instead of recursed into."""
    return _first_match(LEAF_CACHE_DIR_PATTERNS, path, name)


def is_explicitly_unsafe(path: str) -> bool:
    """Check if a path names preferences or user data."""
    return any(p.search(path) for p in EXPLICIT_UNSAFE_PATTERNS)


def calculate_depth(path: str, base_path: str) -> int:
    """Count the path segments of ``path`` below ``base_path``."""
    relative = path[len(base_path):]
    return len([part for part in relative.split("/") if part])


def max_depth_for(category: ScanCategory) -> int:
    """Deepest level the scanner recurses to for a category."""
    depth = 4 if category == ScanCategory.APP_SUPPORT else 3
    return min(depth, ABSOLUTE_MAX_DEPTH)


def is_recursive_category(category: ScanCategory) -> bool:
    """Whether entries of this category are descended into."""
    return category in RECURSIVE_CATEGORIES
