"""Configuration management for lingo_metrics.

Settings are resolved once and injected into every client at construction;
nothing reads credentials from the environment behind the caller's back.
The config file is TOML, stored at ~/.lingo/config.toml by default.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal

import tomli_w
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)

from lingo_metrics.exceptions import ConfigError, UnknownQueryError
from lingo_metrics.queries import DUNE_QUERIES

# Valid regions for Mixpanel data residency
VALID_REGIONS = ("us", "eu", "in")
RegionType = Literal["us", "eu", "in"]

DEFAULT_CONFIG_DIR = Path.home() / ".lingo"

# Environment variables and the Settings fields they populate
ENV_VARS: dict[str, str] = {
    "DUNE_API_KEY": "dune_api_key",
    "MIXPANEL_API_SECRET": "mixpanel_secret",
    "CRON_SECRET": "cron_secret",
    "LINGO_PROXY_URL": "proxy_url",
    "LINGO_CACHE_PATH": "cache_path",
}

_SECRET_FIELDS = frozenset({"dune_api_key", "mixpanel_secret", "cron_secret"})


class Settings(BaseModel):
    """Immutable runtime configuration.

    Secrets are held as SecretStr so they never leak through repr/str or
    ``to_dict()``.
    """

    model_config = ConfigDict(frozen=True)

    dune_api_key: SecretStr | None = None
    """API key sent as X-Dune-API-Key. Required for Dune requests."""

    dune_base_url: str = "https://api.dune.com/api/v1"
    """Base URL of the Dune API."""

    mixpanel_secret: SecretStr | None = None
    """Mixpanel API secret, used by the proxy for Basic auth."""

    mixpanel_project_id: str = "3623820"
    """Mixpanel project identifier."""

    mixpanel_report_id: int = 75454495
    """Saved Insights report (bookmark) holding the DAU series."""

    mixpanel_region: RegionType = "eu"
    """Mixpanel data residency region."""

    proxy_url: str = "http://localhost:3000"
    """Base URL of the analytics proxy used by the analytics client."""

    cron_secret: SecretStr | None = None
    """Bearer token guarding the refresh endpoint. None disables the check."""

    scheduler_header: str = "x-vercel-cron"
    """Header whose value "1" identifies the platform scheduler."""

    cache_path: Path | None = DEFAULT_CONFIG_DIR / "cache.db"
    """DuckDB cache file. None keeps the cache in memory."""

    query_limit: int = 1000
    """Default row limit for Dune result reads."""

    timeout: float = 30.0
    """HTTP timeout in seconds."""

    poll_interval: float = 2.0
    """Seconds between result reads while waiting for an execution."""

    max_wait: float = 0.0
    """Seconds to wait for an unfinished execution. 0 fails immediately."""

    tracked_event: str = "Wallet Connected"
    """Event whose bucket counts approximate weekly/monthly active users."""

    event_groups: tuple[tuple[str, ...], ...] = (
        ("Wallet Connected", "Stake Initiated", "Stake Completed"),
        ("Unstake Completed", "Rewards Claimed"),
    )
    """Event groups requested in parallel for the monthly event-count mode."""

    event_from_date: str = "2024-11-01"
    """Start of the fixed event-count window (YYYY-MM-DD)."""

    event_to_date: str | None = None
    """End of the event-count window. None means today."""

    queries: dict[str, str] = Field(default_factory=lambda: dict(DUNE_QUERIES))
    """Query name to Dune query id."""

    @field_validator("mixpanel_region", mode="before")
    @classmethod
    def validate_region(cls, v: str) -> str:
        """Validate and normalize region to lowercase."""
        if not isinstance(v, str):
            raise ValueError(f"Region must be a string. Got: {type(v).__name__}")
        v_lower = v.lower()
        if v_lower not in VALID_REGIONS:
            valid = ", ".join(VALID_REGIONS)
            raise ValueError(f"Region must be one of: {valid}. Got: {v}")
        return v_lower

    @field_validator("cache_path", mode="before")
    @classmethod
    def validate_cache_path(cls, v: Any) -> Any:
        """Map the ":memory:" marker to an in-memory cache."""
        if isinstance(v, str) and v.strip() == ":memory:":
            return None
        if isinstance(v, str):
            return Path(v).expanduser()
        return v

    @field_validator("query_limit")
    @classmethod
    def validate_limit(cls, v: int) -> int:
        """Row limits must be positive."""
        if v <= 0:
            raise ValueError("query_limit must be positive")
        return v

    @field_validator("poll_interval", "max_wait", "timeout")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        """Durations cannot be negative."""
        if v < 0:
            raise ValueError("Durations must be non-negative")
        return v

    def require_dune_api_key(self) -> str:
        """Return the Dune API key.

        Raises:
            ConfigError: If no key is configured.
        """
        if self.dune_api_key is None or not self.dune_api_key.get_secret_value():
            raise ConfigError("Dune API key not configured")
        return self.dune_api_key.get_secret_value()

    def require_mixpanel_secret(self) -> str:
        """Return the Mixpanel API secret.

        Raises:
            ConfigError: If no secret is configured.
        """
        if self.mixpanel_secret is None or not self.mixpanel_secret.get_secret_value():
            raise ConfigError("Mixpanel API secret not configured")
        return self.mixpanel_secret.get_secret_value()

    def resolve_query(self, name_or_id: str | int) -> str:
        """Resolve a query name (e.g. "TOP_STAKERS") or raw id to a query id.

        Raises:
            UnknownQueryError: If a non-numeric name is not registered.
        """
        value = str(name_or_id).strip()
        if value.isdigit():
            return value
        key = value.upper()
        if key not in self.queries:
            raise UnknownQueryError(value, sorted(self.queries))
        return self.queries[key]

    def query_name(self, query_id: str) -> str | None:
        """Return the registered name for a query id, if any."""
        for name, qid in self.queries.items():
            if qid == str(query_id):
                return name
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize settings with secrets redacted."""
        data = self.model_dump(mode="json")
        for key in _SECRET_FIELDS:
            data[key] = "***" if data.get(key) else None
        return data


class ConfigManager:
    """Resolves Settings from overrides, environment, and the config file.

    Resolution order (highest first):
    1. Keyword overrides passed to ``load()``
    2. Environment variables (DUNE_API_KEY, MIXPANEL_API_SECRET, ...)
    3. Config file values
    4. Settings defaults

    Config file location (in priority order):
    1. Explicit config_path parameter
    2. LINGO_CONFIG_PATH environment variable
    3. Default: ~/.lingo/config.toml
    """

    DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.toml"

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialize ConfigManager.

        Args:
            config_path: Override config file location.
        """
        if config_path is not None:
            self._config_path = config_path
        elif "LINGO_CONFIG_PATH" in os.environ:
            self._config_path = Path(os.environ["LINGO_CONFIG_PATH"])
        else:
            self._config_path = self.DEFAULT_CONFIG_PATH

    @property
    def config_path(self) -> Path:
        """Return the config file path."""
        return self._config_path

    def _read_config(self) -> dict[str, Any]:
        """Read and parse the config file.

        Returns:
            Parsed config dictionary, or empty dict if file doesn't exist.
        """
        if not self._config_path.exists():
            return {}

        try:
            with self._config_path.open("rb") as f:
                return dict(tomllib.load(f))
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(
                f"Invalid TOML in config file: {e}",
                details={"path": str(self._config_path)},
            ) from e

    def _write_config(self, config: dict[str, Any]) -> None:
        """Write config to file, creating directory if needed."""
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        with self._config_path.open("wb") as f:
            tomli_w.dump(config, f)

    def _from_env(self) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for env_name, field_name in ENV_VARS.items():
            value = os.environ.get(env_name)
            if value:
                values[field_name] = value
        return values

    def load(self, **overrides: Any) -> Settings:
        """Resolve settings.

        Args:
            **overrides: Settings fields that take precedence over everything.

        Returns:
            Immutable Settings object.

        Raises:
            ConfigError: If the file is invalid or a value fails validation.
        """
        file_values = self._read_config()
        queries = dict(DUNE_QUERIES)
        queries.update(
            {str(k).upper(): str(v) for k, v in file_values.pop("queries", {}).items()}
        )

        values: dict[str, Any] = {**file_values, **self._from_env()}
        values.update({k: v for k, v in overrides.items() if v is not None})
        values.setdefault("queries", queries)
        if "event_groups" in values:
            values["event_groups"] = tuple(tuple(g) for g in values["event_groups"])

        try:
            return Settings(**values)
        except ValidationError as e:
            raise ConfigError(
                f"Invalid configuration: {e.errors()[0]['msg']}",
                details={"path": str(self._config_path)},
            ) from e

    def init(self, *, force: bool = False, **values: Any) -> Path:
        """Write a config file populated with defaults and the given values.

        Args:
            force: Overwrite an existing file.
            **values: Settings fields to store.

        Returns:
            Path of the written file.

        Raises:
            ConfigError: If the file exists and force is False.
        """
        if self._config_path.exists() and not force:
            raise ConfigError(
                f"Config file already exists: {self._config_path}",
                details={"path": str(self._config_path)},
            )
        defaults = Settings()
        config: dict[str, Any] = {
            "dune_base_url": defaults.dune_base_url,
            "mixpanel_project_id": defaults.mixpanel_project_id,
            "mixpanel_report_id": defaults.mixpanel_report_id,
            "mixpanel_region": defaults.mixpanel_region,
            "proxy_url": defaults.proxy_url,
            "query_limit": defaults.query_limit,
        }
        config.update({k: v for k, v in values.items() if v is not None})
        config["queries"] = dict(DUNE_QUERIES)
        self._write_config(config)
        return self._config_path

    def set_value(self, key: str, value: Any) -> None:
        """Store a single top-level value in the config file.

        Raises:
            ConfigError: If key is not a Settings field.
        """
        if key not in Settings.model_fields or key == "queries":
            raise ConfigError(f"Unknown setting: {key}", details={"key": key})
        config = self._read_config()
        config[key] = value
        self._write_config(config)
