"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class SlotConfig(BaseModel):
    """Slot tiling settings."""
    granularity_minutes: int = 30

    @field_validator("granularity_minutes")
    @classmethod
    def validate_granularity(cls, value: int) -> int:
        """Ensure slot granularity is positive."""
        if value <= 0:
            raise ValueError("granularity_minutes must be greater than zero")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    slots: SlotConfig = Field(default_factory=SlotConfig)
    snapshot_path: Optional[Path] = None
    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {value}")
        return level

    def get_log_level(self) -> int:
        return getattr(logging, self.log_level)

    def resolve_snapshot_path(self, config_path: Path) -> Optional[Path]:
        """Snapshot path, relative paths being taken from the config file's directory."""
        if self.snapshot_path is None:
            return None
        if self.snapshot_path.is_absolute():
            return self.snapshot_path
        return config_path.parent / self.snapshot_path

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
