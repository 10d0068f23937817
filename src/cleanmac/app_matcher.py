"""Match per-app data folders with installed applications.

Folders in ~/Library/Application Support are named after the app
("Notion"), its bundle id ("com.tinyspeck.slackmacgap") or something in
between ("com.tomjwatson.breaktimer.ShipIt"). A folder that matches no
installed app is considered orphaned.
"""

import re

from cleanmac.models import AppMatchResult, InstalledApp, MatchType

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_UPPER = re.compile(r"([A-Z])")
_TRAILING_APP = re.compile(r"app$", re.IGNORECASE)

NO_MATCH = AppMatchResult(is_installed=False, matched_app=None, match_type=MatchType.NONE)


def normalize_name(name: str) -> str:
    """Lowercase and strip everything except letters and digits."""
    return _NON_ALNUM.sub("", name.lower())


def normalize_bundle_id(bundle_id: str) -> str:
    """Lowercase a bundle identifier."""
    return bundle_id.lower()


def significant_words(name: str) -> list[str]:
    """Split an app name on camel case and whitespace, keeping words longer than 2 chars."""
    spaced = _UPPER.sub(r" \1", name).strip().lower()
    return [word for word in spaced.split() if len(word) > 2]


def _installed(app: InstalledApp, match_type: MatchType) -> AppMatchResult:
    return AppMatchResult(is_installed=True, matched_app=app, match_type=match_type)


class AppMatcher:
    """Look up folder names against a fixed list of installed applications.

    Args:
        installed_apps: Applications found on the machine. When two apps
            normalize to the same name or bundle id the first one wins.
    """

    def __init__(self, installed_apps: list[InstalledApp]) -> None:
        self._apps = list(installed_apps)
        self._by_name: dict[str, InstalledApp] = {}
        self._by_bundle_id: dict[str, InstalledApp] = {}

        for app in self._apps:
            self._by_name.setdefault(normalize_name(app.name), app)
            if app.bundle_id:
                self._by_bundle_id.setdefault(normalize_bundle_id(app.bundle_id), app)

    def __len__(self) -> int:
        return len(self._apps)

    def match(self, folder_name: str) -> AppMatchResult:
        """
        Match a folder name with an installed application.

        Strategies are tried from the most to the least specific and the
        first hit wins.

        Args:
            folder_name: Name of the folder (not the full path)

        Returns:
            AppMatchResult; ``is_installed`` is False for orphaned folders
        """
        normalized = normalize_name(folder_name)
        folder_lower = folder_name.lower()
        if not normalized:
            return NO_MATCH

        app = self._by_name.get(normalized)
        if app:
            return _installed(app, MatchType.EXACT_NAME)

        app = self._by_bundle_id.get(normalized)
        if app:
            return _installed(app, MatchType.BUNDLE_ID)

        for app in self._apps:
            if self._matches_app_name(app, folder_name, folder_lower, normalized):
                return _installed(app, MatchType.PARTIAL_NAME)

        for bundle_id, app in self._by_bundle_id.items():
            if self._matches_bundle_id(bundle_id, folder_lower, normalized):
                return _installed(app, MatchType.BUNDLE_ID)

        # Overlap in either direction, at least 4 chars unless a side is shorter
        for app_name, app in self._by_name.items():
            if not app_name:
                continue
            min_overlap = min(4, len(normalized), len(app_name))
            if (app_name in normalized and len(app_name) >= min_overlap) or (
                normalized in app_name and len(normalized) >= min_overlap
            ):
                return _installed(app, MatchType.PARTIAL_NAME)

        # Common variations, e.g. "NotionApp" or "notion" for "Notion"
        for app in self._apps:
            if self._matches_variation(app, folder_lower):
                return _installed(app, MatchType.PARTIAL_NAME)

        return NO_MATCH

    @staticmethod
    def _matches_app_name(
        app: InstalledApp, folder_name: str, folder_lower: str, normalized: str
    ) -> bool:
        if re.search(re.escape(app.name), folder_name, re.IGNORECASE):
            return True

        words = significant_words(app.name)
        if words and all(word in folder_lower for word in words):
            return True

        app_normalized = normalize_name(app.name)
        return len(app_normalized) >= 4 and app_normalized in normalized

    @staticmethod
    def _matches_bundle_id(bundle_id: str, folder_lower: str, normalized: str) -> bool:
        parts = bundle_id.split(".")
        if normalized in parts or normalized in bundle_id:
            return True

        if bundle_id in folder_lower or bundle_id.replace(".", "") in normalized:
            return True

        last_part = parts[-1]
        return bool(last_part) and last_part in normalized

    @staticmethod
    def _matches_variation(app: InstalledApp, folder_lower: str) -> bool:
        app_lower = app.name.lower()
        compact = re.sub(r"\s+", "", app_lower)
        return (
            folder_lower.startswith(app_lower)
            or app_lower.startswith(folder_lower)
            or folder_lower == compact
            or folder_lower == _TRAILING_APP.sub("", compact)
        )
