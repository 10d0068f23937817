"""Data models for cleanmac."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ScanCategory(str, Enum):
    """Classification bucket of a scan target."""

    APP_SUPPORT = "application-support"
    CACHES = "caches"
    PREFERENCES = "preferences"
    SAVED_APP_STATE = "saved-application-state"
    CONTAINERS = "containers"
    GROUP_CONTAINERS = "group-containers"
    LAUNCH_ITEMS = "launch-items"
    SYSTEM = "system"


class RiskLevel(str, Enum):
    """Risk level of deleting something from a category."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ItemType(str, Enum):
    """Kind of filesystem entry."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    OTHER = "other"


class MatchType(str, Enum):
    """How a folder was matched to an installed application."""

    EXACT_NAME = "exact-name"
    BUNDLE_ID = "bundle-id"
    PARTIAL_NAME = "partial-name"
    NONE = "none"


CATEGORY_RISK: dict[ScanCategory, RiskLevel] = {
    ScanCategory.APP_SUPPORT: RiskLevel.MEDIUM,
    ScanCategory.CACHES: RiskLevel.LOW,
    ScanCategory.PREFERENCES: RiskLevel.HIGH,
    ScanCategory.SAVED_APP_STATE: RiskLevel.LOW,
    ScanCategory.CONTAINERS: RiskLevel.MEDIUM,
    ScanCategory.GROUP_CONTAINERS: RiskLevel.MEDIUM,
    ScanCategory.LAUNCH_ITEMS: RiskLevel.HIGH,
    ScanCategory.SYSTEM: RiskLevel.CRITICAL,
}

RISK_ORDER: dict[RiskLevel, int] = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.CRITICAL: 3,
}


def risk_for(category: ScanCategory) -> RiskLevel:
    """Get the static risk level of a category."""
    return CATEGORY_RISK.get(category, RiskLevel.MEDIUM)


def format_size(size_bytes: int) -> str:
    """Format bytes to a human-readable string (binary units)."""
    if size_bytes <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size_bytes)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{value:.1f} {units[index]}"


class ScanTarget(BaseModel):
    """A root directory to scan."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Absolute path of the target directory")
    category: ScanCategory = Field(..., description="Category of everything below this path")
    is_system: bool = Field(False, description="Whether the target is system-wide")
    guideline: Optional[str] = Field(None, description="Advice shown to the user")

    @property
    def risk_level(self) -> RiskLevel:
        """Risk level derived from the category."""
        return risk_for(self.category)


class ScanItem(BaseModel):
    """A single measured entry found during a scan."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Entry name")
    path: str = Field(..., description="Absolute path")
    category: ScanCategory = Field(..., description="Category of the owning target")
    size_kb: int = Field(..., ge=0, description="On-disk size in KiB")
    size_bytes: int = Field(..., ge=0, description="On-disk size in bytes")
    modified_at: datetime = Field(..., description="Last modification time")
    type: ItemType = Field(..., description="Entry type")
    risk_level: RiskLevel = Field(..., description="Risk level of the category")
    safe_to_delete: bool = Field(False, description="Whether deletion is considered safe")
    parent_target_path: str = Field(..., description="Path of the target the item was found under")
    app_installed: Optional[bool] = Field(
        None, description="Whether the owning application is installed (app support only)"
    )
    matched_app_name: Optional[str] = Field(None, description="Name of the matched application")

    @model_validator(mode="before")
    @classmethod
    def _fill_size_bytes(cls, data: Any) -> Any:
        if isinstance(data, dict) and "size_bytes" not in data and "size_kb" in data:
            data = {**data, "size_bytes": data["size_kb"] * 1024}
        return data

    @model_validator(mode="after")
    def _check_size_bytes(self) -> "ScanItem":
        if self.size_bytes != self.size_kb * 1024:
            raise ValueError("size_bytes must equal size_kb * 1024")
        return self

    @property
    def is_orphaned(self) -> bool:
        """True when the owning application is known to be uninstalled."""
        return self.app_installed is False

    @property
    def size_human(self) -> str:
        """Human-readable size string."""
        return format_size(self.size_bytes)


class SkippedItem(BaseModel):
    """An entry that could not be scanned."""

    path: str = Field(..., description="Path that failed")
    reason: str = Field(..., description="Error message")


def empty_totals() -> dict[ScanCategory, int]:
    """Per-category totals with every category present."""
    return {category: 0 for category in ScanCategory}


class ScanReport(BaseModel):
    """Result of one scan invocation."""

    generated_at: datetime = Field(default_factory=datetime.now)
    targets: list[ScanTarget] = Field(default_factory=list)
    items: list[ScanItem] = Field(default_factory=list)
    totals_by_category: dict[ScanCategory, int] = Field(default_factory=empty_totals)
    skipped: list[SkippedItem] = Field(default_factory=list)

    @property
    def total_bytes(self) -> int:
        """Total size of all items."""
        return sum(item.size_bytes for item in self.items)

    @property
    def deletable_items(self) -> list[ScanItem]:
        """Items flagged safe to delete."""
        return [item for item in self.items if item.safe_to_delete]

    @property
    def deletable_bytes(self) -> int:
        """Total size of items flagged safe to delete."""
        return sum(item.size_bytes for item in self.deletable_items)

    def items_for_target(self, target: ScanTarget) -> list[ScanItem]:
        """Items found under a target."""
        return [item for item in self.items if item.parent_target_path == target.path]


class InstalledApp(BaseModel):
    """An application installed on the machine."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Application name without the .app suffix")
    bundle_id: Optional[str] = Field(None, description="CFBundleIdentifier, if readable")
    path: str = Field(..., description="Path of the .app bundle")


class AppMatchResult(BaseModel):
    """Outcome of matching a folder name against installed applications."""

    is_installed: bool
    matched_app: Optional[InstalledApp] = None
    match_type: MatchType = MatchType.NONE


class ScanCacheEntry(BaseModel):
    """A cached scan report with summary figures."""

    report: ScanReport
    scanned_at: datetime
    targets: list[str] = Field(default_factory=list)
    total_size: int = 0
    deletable_size: int = 0
    deletable_count: int = 0


class ScanCache(BaseModel):
    """Cache of recent scan reports, newest first."""

    entries: list[ScanCacheEntry] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=datetime.now)
