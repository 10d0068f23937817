"""Default scan targets for cleanmac."""

import os
from pathlib import Path

from cleanmac.models import RISK_ORDER, ScanCategory, ScanTarget


def expand_path(path: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expanduser(os.path.expandvars(path)))


def _user(path: str) -> str:
    return str(expand_path(path))


DEFAULT_TARGETS: list[ScanTarget] = [
    # =============================================================================
    # USER LIBRARY
    # =============================================================================
    ScanTarget(
        path=_user("~/Library/Application Support"),
        category=ScanCategory.APP_SUPPORT,
        is_system=False,
        guideline=(
            "Contains app data, settings, and support files. Generally safe to clean after "
            "uninstalling apps, but active apps may lose preferences or data. Only delete folders "
            "for apps you no longer use. Cache folders within app bundles are usually safe."
        ),
    ),
    ScanTarget(
        path=_user("~/Library/Caches"),
        category=ScanCategory.CACHES,
        is_system=False,
        guideline=(
            "Cache files can be safely deleted. Apps will regenerate them, but may run slightly "
            "slower initially. Older cache files (>30 days) are usually safe to remove. System "
            "caches may require admin access."
        ),
    ),
    ScanTarget(
        path=_user("~/Library/Preferences"),
        category=ScanCategory.PREFERENCES,
        is_system=False,
        guideline=(
            "Contains app preference files (.plist). Deleting will reset app settings. Avoid "
            "deleting unless troubleshooting or uninstalling apps. Back up before deleting."
        ),
    ),
    ScanTarget(
        path=_user("~/Library/Saved Application State"),
        category=ScanCategory.SAVED_APP_STATE,
        is_system=False,
        guideline=(
            "Stores window positions and document states. Safe to delete - apps recreate it on "
            "next launch. No data loss, just UI state reset."
        ),
    ),
    ScanTarget(
        path=_user("~/Library/Containers"),
        category=ScanCategory.CONTAINERS,
        is_system=False,
        guideline=(
            "Sandboxed app containers. Safe to delete containers for uninstalled apps. Active app "
            "containers may contain important data - review before deleting. Cache folders within "
            "containers are safe."
        ),
    ),
    ScanTarget(
        path=_user("~/Library/Group Containers"),
        category=ScanCategory.GROUP_CONTAINERS,
        is_system=False,
        guideline=(
            "Shared containers used by multiple apps (e.g., iCloud, Messages). May contain synced "
            "data. Cache and temporary folders are usually safe. Avoid deleting com.apple.* "
            "containers unless you know what they contain."
        ),
    ),
    ScanTarget(
        path=_user("~/Library/LaunchAgents"),
        category=ScanCategory.LAUNCH_ITEMS,
        is_system=False,
        guideline=(
            "Apps and scripts that run at your login. Safe to remove agents from uninstalled apps. "
            "Review the list - malware sometimes installs here."
        ),
    ),
    # =============================================================================
    # SYSTEM LIBRARY - requires admin access
    # =============================================================================
    ScanTarget(
        path="/Library/Application Support",
        category=ScanCategory.SYSTEM,
        is_system=True,
        guideline=(
            "System-wide app support files. Avoid deleting system app folders. Third-party app "
            "leftovers are usually safe. Can affect all users."
        ),
    ),
    ScanTarget(
        path="/Library/Caches",
        category=ScanCategory.SYSTEM,
        is_system=True,
        guideline=(
            "System-wide caches. Generally safe to clean, but macOS may recreate them immediately "
            "and the system may slow down temporarily."
        ),
    ),
    ScanTarget(
        path="/Library/Preferences",
        category=ScanCategory.SYSTEM,
        is_system=True,
        guideline=(
            "System-wide preferences affecting all users. Do not delete without expert knowledge; "
            "mis-deletion can break macOS."
        ),
    ),
    ScanTarget(
        path="/Library/LaunchAgents",
        category=ScanCategory.LAUNCH_ITEMS,
        is_system=True,
        guideline=(
            "Launch agents for all users. Only remove agents from uninstalled apps and keep system "
            "agents."
        ),
    ),
    ScanTarget(
        path="/Library/LaunchDaemons",
        category=ScanCategory.LAUNCH_ITEMS,
        is_system=True,
        guideline=(
            "Root/system services, essential for macOS. Do not delete unless it belongs to malware "
            "or an uninstalled app."
        ),
    ),
    ScanTarget(
        path="/Library/StartupItems",
        category=ScanCategory.LAUNCH_ITEMS,
        is_system=True,
        guideline=(
            "Legacy startup items, replaced by LaunchAgents/Daemons. Usually empty or outdated on "
            "modern macOS. Review contents first."
        ),
    ),
]


def normalize_path(path: str) -> str:
    """Expand and absolutize a path without resolving symlinks."""
    return os.path.abspath(str(expand_path(path)))


def get_target(path: str) -> ScanTarget | None:
    """Get the default target for a path."""
    wanted = normalize_path(path)
    for target in DEFAULT_TARGETS:
        if normalize_path(target.path) == wanted:
            return target
    return None


def resolve_targets(requested: list[str] | None = None) -> list[ScanTarget]:
    """
    Turn requested paths into scan targets.

    Args:
        requested: Paths given by the user; empty or None means all defaults

    Returns:
        Known default targets for known paths, ad-hoc targets otherwise
    """
    if not requested:
        return list(DEFAULT_TARGETS)

    targets = []
    for path in requested:
        known = get_target(path)
        if known:
            targets.append(known)
            continue
        resolved = normalize_path(path)
        is_system = resolved.startswith("/Library")
        targets.append(
            ScanTarget(
                path=resolved,
                category=ScanCategory.SYSTEM if is_system else ScanCategory.APP_SUPPORT,
                is_system=is_system,
            )
        )
    return targets


def targets_by_risk(targets: list[ScanTarget] | None = None) -> list[ScanTarget]:
    """Targets ordered from lowest to highest risk."""
    return sorted(targets or DEFAULT_TARGETS, key=lambda t: RISK_ORDER[t.risk_level])
