"""
Configuration management for Buildcast.
"""

import os
import copy
import yaml
import toml
import json
from pathlib import Path
from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from .constants import CONFIG_FILES, DEFAULT_CONFIG
from .utils import logger, merge_dicts


class ForecastConfig(BaseModel):
    """Forecast engine configuration."""
    cache_ttl: int = Field(default=3600)
    history_window: int = Field(default=10)
    min_history: int = Field(default=5)
    single_flight: bool = Field(default=True)


class CalendarConfig(BaseModel):
    """Working-day calendar configuration."""
    default_region: Optional[str] = None
    window_buffer: float = Field(default=1.4)
    max_range_days: int = Field(default=3660)


class CacheConfig(BaseModel):
    """Forecast cache configuration."""
    backend: str = Field(default="memory")
    max_size: int = Field(default=1000)
    persist: bool = Field(default=False)
    cache_dir: Optional[str] = None


class StorageConfig(BaseModel):
    """Project store configuration."""
    db_path: Optional[str] = None


class ServerConfig(BaseModel):
    """HTTP server configuration."""
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=5000)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO")
    format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    file: Optional[str] = None


class BuildcastConfig(BaseModel):
    """Main configuration model."""
    forecast: ForecastConfig = Field(default_factory=ForecastConfig)
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class Config:
    """Configuration manager for Buildcast."""

    def __init__(self, config_file: Optional[str] = None):
        self.config_file = config_file
        self.config_data = self._load_config()
        self.config = BuildcastConfig(**self.config_data)
        self._apply_environment_overrides()

    def _find_config_file(self) -> Optional[Path]:
        """Find configuration file in current directory or parent directories."""
        current_dir = Path.cwd()

        for parent in [current_dir] + list(current_dir.parents):
            for config_name in CONFIG_FILES:
                config_path = parent / config_name
                if config_path.exists():
                    logger.debug(f"Found config file: {config_path}")
                    return config_path

        return None

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file."""
        config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_file:
            config_path = Path(self.config_file)
        else:
            config_path = self._find_config_file()

        if not config_path or not config_path.exists():
            logger.debug("No config file found, using defaults")
            return config

        try:
            if config_path.suffix in ['.yaml', '.yml']:
                with open(config_path, 'r') as f:
                    file_config = yaml.safe_load(f) or {}
            elif config_path.suffix == '.toml':
                with open(config_path, 'r') as f:
                    file_config = toml.load(f)
            elif config_path.suffix == '.json':
                with open(config_path, 'r') as f:
                    file_config = json.load(f)
            else:
                logger.warning(f"Unknown config file format: {config_path}")
                return config

            config = merge_dicts(config, file_config)
            logger.debug(f"Loaded config from: {config_path}")

        except Exception as e:
            logger.error(f"Error loading config file: {e}")

        return config

    def _apply_environment_overrides(self):
        """Apply environment variable overrides to configuration."""
        log_level = os.getenv('BUILDCAST_LOG_LEVEL')
        if log_level:
            self.config.logging.level = log_level

        db_path = os.getenv('BUILDCAST_DB_PATH')
        if db_path:
            self.config.storage.db_path = db_path

        cache_ttl = os.getenv('BUILDCAST_CACHE_TTL')
        if cache_ttl:
            try:
                self.config.forecast.cache_ttl = int(cache_ttl)
            except ValueError:
                logger.warning(f"Ignoring invalid BUILDCAST_CACHE_TTL: {cache_ttl}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot-notation key."""
        keys = key.split('.')
        value = self.config_data

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any):
        """Set configuration value by dot-notation key."""
        keys = key.split('.')
        config_dict = self.config_data

        for k in keys[:-1]:
            if k not in config_dict:
                config_dict[k] = {}
            config_dict = config_dict[k]

        config_dict[keys[-1]] = value

        # Recreate config object
        self.config = BuildcastConfig(**self.config_data)

    def save(self, path: Optional[str] = None):
        """Save configuration to file."""
        if path:
            save_path = Path(path)
        else:
            save_path = Path(self.config_file or '.buildcast.yaml')

        if save_path.suffix in ['.yaml', '.yml']:
            with open(save_path, 'w') as f:
                yaml.dump(self.config_data, f, default_flow_style=False)
        elif save_path.suffix == '.toml':
            with open(save_path, 'w') as f:
                toml.dump(self.config_data, f)
        elif save_path.suffix == '.json':
            with open(save_path, 'w') as f:
                json.dump(self.config_data, f, indent=2)
        else:
            # Default to YAML
            save_path = save_path.with_suffix('.yaml')
            with open(save_path, 'w') as f:
                yaml.dump(self.config_data, f, default_flow_style=False)

        logger.info(f"Configuration saved to: {save_path}")

    def validate(self) -> bool:
        """Validate configuration."""
        try:
            # Pydantic validates on instantiation
            BuildcastConfig(**self.config_data)
            return True
        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            return False

    @classmethod
    def create_default(cls, path: str = '.buildcast.yaml'):
        """Create a default configuration file."""
        config = cls()
        config.save(path)
        return config

    def db_path(self) -> Path:
        """Resolve the SQLite database location."""
        if self.config.storage.db_path:
            return Path(self.config.storage.db_path).expanduser()
        return Path.home() / ".buildcast" / "buildcast.db"

    def cache_dir(self) -> Path:
        """Resolve the persistent cache directory."""
        if self.config.cache.cache_dir:
            return Path(self.config.cache.cache_dir).expanduser()
        return Path.home() / ".buildcast" / "cache"
