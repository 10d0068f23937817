"""Configuration for cleanmac.

Settings come from ``~/.cleanmac/config.json`` (optional) and are
overridden by environment variables. Invalid values are ignored in favour
of the defaults.
"""

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_SIZE_THRESHOLD = 10 * 1024 * 1024  # 10 MiB
DEFAULT_CONCURRENCY = 5

CONFIG_DIR = Path(os.path.expanduser("~/.cleanmac"))
CONFIG_FILE = CONFIG_DIR / "config.json"

THRESHOLD_ENV = "SKIP_ITEMS_SMALLER_THAN"
CONCURRENCY_ENV = "CLEANMAC_CONCURRENCY"
CACHE_DIR_ENV = "CLEANMAC_CACHE_DIR"
SUDO_ENV = "CLEANMAC_USE_SUDO"
LOG_LEVEL_ENV = "LOG_LEVEL"

_SIZE_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*(KB|MB|GB|TB|B)?$")

_MULTIPLIERS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
}


def parse_size_threshold(value: Optional[str]) -> Optional[int]:
    """
    Parse a size such as "100MB", "1.5GB", "500kb" or "1024" (bytes).

    Args:
        value: Size string, case-insensitive

    Returns:
        Size in bytes, or None if the value is empty or malformed
    """
    if not value:
        return None

    match = _SIZE_PATTERN.match(value.strip().upper())
    if not match:
        return None

    number = float(match.group(1))
    unit = match.group(2) or "B"
    return int(number * _MULTIPLIERS[unit])


def default_cache_dir() -> str:
    """Directory for scan reports and the scan cache."""
    return os.path.join(tempfile.gettempdir(), "clean-my-mac")


class Settings(BaseSettings):
    """Effective configuration for a cleanmac run.

    Environment variables take precedence over values passed in, which
    ``load_settings`` reads from the config file.
    """

    model_config = SettingsConfigDict(extra="ignore")

    size_threshold: int = Field(
        DEFAULT_SIZE_THRESHOLD,
        ge=0,
        validation_alias=AliasChoices(THRESHOLD_ENV.lower(), "size_threshold"),
        description="Entries smaller than this are skipped (bytes)",
    )
    concurrency: int = Field(
        DEFAULT_CONCURRENCY,
        ge=1,
        validation_alias=AliasChoices(CONCURRENCY_ENV.lower(), "concurrency"),
        description="Workers per directory level",
    )
    use_sudo: bool = Field(
        False,
        validation_alias=AliasChoices(SUDO_ENV.lower(), "use_sudo"),
        description="Measure sizes with 'sudo du'",
    )
    cache_dir: str = Field(
        default_factory=default_cache_dir,
        min_length=1,
        validation_alias=AliasChoices(CACHE_DIR_ENV.lower(), "cache_dir"),
        description="Report/cache directory",
    )
    log_level: str = Field(
        "INFO",
        min_length=1,
        validation_alias=AliasChoices(LOG_LEVEL_ENV.lower(), "log_level"),
        description="Logging level name",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("*", mode="wrap")
    @classmethod
    def _fall_back_to_default(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        if info.field_name == "size_threshold" and isinstance(value, str):
            # Thresholds use the "<number><unit>" format everywhere
            value = parse_size_threshold(value)
        try:
            return handler(value)
        except ValidationError:
            logger.debug("Ignoring invalid setting %s=%r", info.field_name, value)
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)


def _load_config_file(config_file: Path) -> dict[str, Any]:
    if not config_file.exists():
        return {}
    try:
        with open(config_file) as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable config %s: %s", config_file, e)
        return {}
    return data if isinstance(data, dict) else {}


def load_settings(config_file: Optional[Path] = None) -> Settings:
    """
    Build settings from the config file and environment.

    Args:
        config_file: Config file path (defaults to ~/.cleanmac/config.json)

    Returns:
        Settings; any invalid value falls back to its default
    """
    values = _load_config_file(config_file or CONFIG_FILE)
    return Settings(**{name: value for name, value in values.items() if name in Settings.model_fields})
