"""Configuration management for Basket Insights."""

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass
class DataConfig:
    """Data storage configuration."""

    storage_dir: Path
    backend: str = "json"


@dataclass
class DefaultsConfig:
    """Default values configuration."""

    user: str | None = None


@dataclass
class CatalogConfig:
    """Catalog reconciliation configuration."""

    price_drift_threshold: float = 0.01


@dataclass
class AnalyticsConfig:
    """Analytics configuration."""

    lookback_months: int = 5
    top_brands: int = 10


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    console_level: str = "WARNING"
    log_dir: Path | None = None


@dataclass
class Config:
    """Complete application configuration."""

    data: DataConfig
    defaults: DefaultsConfig
    catalog: CatalogConfig
    analytics: AnalyticsConfig
    logging: LoggingConfig


class ConfigManager:
    """Manages application configuration from TOML files."""

    def __init__(self, config_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional explicit path to config file.
                        If not provided, searches standard locations.
        """
        self.config_path = config_path or self._find_config()
        self._config = self._load_config()

    @property
    def data(self) -> DataConfig:
        """Get data configuration."""
        return self._config.data

    @property
    def defaults(self) -> DefaultsConfig:
        """Get defaults configuration."""
        return self._config.defaults

    @property
    def catalog(self) -> CatalogConfig:
        """Get catalog configuration."""
        return self._config.catalog

    @property
    def analytics(self) -> AnalyticsConfig:
        """Get analytics configuration."""
        return self._config.analytics

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration."""
        return self._config.logging

    def log_dir(self, data_dir: Path | None = None) -> Path:
        """Directory for per-run log files.

        Args:
            data_dir: Data directory overriding the configured one
        """
        return self.logging.log_dir or (data_dir or self.data.storage_dir) / "logs"

    def _find_config(self) -> Path:
        """Find config file in standard locations."""
        locations = [
            Path.cwd() / "config.toml",
            Path.home() / ".config" / "basket-insights" / "config.toml",
            Path.home() / ".basket-insights" / "config.toml",
        ]

        for loc in locations:
            if loc.exists():
                return loc

        # Return default location if none found
        return Path.home() / ".config" / "basket-insights" / "config.toml"

    def _load_config(self) -> Config:
        """Load configuration from TOML file."""
        if not self.config_path.exists():
            return self._default_config()

        with open(self.config_path, "rb") as f:
            data = tomllib.load(f)

        log_dir = data.get("logging", {}).get("log_dir")

        return Config(
            data=DataConfig(
                storage_dir=Path(
                    data.get("data", {}).get("storage_dir", "~/basket-insights/data")
                ).expanduser(),
                backend=data.get("data", {}).get("backend", "json"),
            ),
            defaults=DefaultsConfig(
                user=data.get("defaults", {}).get("user"),
            ),
            catalog=CatalogConfig(
                price_drift_threshold=data.get("catalog", {}).get("price_drift_threshold", 0.01),
            ),
            analytics=AnalyticsConfig(
                lookback_months=data.get("analytics", {}).get("lookback_months", 5),
                top_brands=data.get("analytics", {}).get("top_brands", 10),
            ),
            logging=LoggingConfig(
                level=data.get("logging", {}).get("level", "INFO"),
                console_level=data.get("logging", {}).get("console_level", "WARNING"),
                log_dir=Path(log_dir).expanduser() if log_dir else None,
            ),
        )

    def _default_config(self) -> Config:
        """Return default configuration."""
        return Config(
            data=DataConfig(storage_dir=Path.home() / "basket-insights" / "data"),
            defaults=DefaultsConfig(),
            catalog=CatalogConfig(),
            analytics=AnalyticsConfig(),
            logging=LoggingConfig(),
        )

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get config value by dot-notation path.

        Args:
            key_path: Dot-separated path like 'catalog.price_drift_threshold'
            default: Default value if path not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split(".")
        value: Any = self._config

        for key in keys:
            if hasattr(value, key):
                value = getattr(value, key)
            elif isinstance(value, dict):
                value = value.get(key)
                if value is None:
                    return default
            else:
                return default

        return value if value is not None else default
