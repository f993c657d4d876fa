from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from roofengine.contract import (
    DEFAULT_OVERHANG_MM,
    DEFAULT_PITCH_DEG,
    DEFAULT_PLATE_HEIGHT_MM,
    EVENT_BUDGET_FACTOR,
    MAX_PITCH_DEG,
)
from roofengine.exceptions import ConfigurationError

# Load .env file from project root
_env_path = Path(__file__).parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


class RoofSettings(BaseModel):
    """Defaults handed to the solve functions by entry points."""

    default_pitch_deg: float = Field(DEFAULT_PITCH_DEG, ge=0.0, lt=MAX_PITCH_DEG)
    overhang_mm: float = Field(DEFAULT_OVERHANG_MM, ge=0.0)
    # None means gable ends get the same overhang as eaves
    gable_overhang_mm: float | None = Field(default=None, ge=0.0)
    plate_height_mm: float = DEFAULT_PLATE_HEIGHT_MM
    min_edge_length_mm: float = Field(0.0, ge=0.0, description="Footprint edges shorter than this are merged away")
    event_budget_factor: int = Field(EVENT_BUDGET_FACTOR, ge=1, le=64)
    max_workers: int | None = Field(default=None, ge=1)

    @field_validator("gable_overhang_mm", mode="before")
    @classmethod
    def _blank_gable_overhang(cls, value: Any) -> Any:
        if value in ("", "none", "None"):
            return None
        return value


class LoggingSettings(BaseModel):
    level: str = "INFO"
    json_format: bool = False
    log_file: Path | None = None

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = str(value).upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level


class Settings(BaseModel):
    roof: RoofSettings = Field(default_factory=RoofSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Load settings from a YAML configuration file.

        Args:
            path: Optional path to configuration file. If not provided, uses the
                ROOFENGINE_CONFIG environment variable or config/default.yaml.
                A missing default file yields built-in defaults.

        Returns:
            Settings instance with loaded configuration.

        Raises:
            ConfigurationError: If an explicit file does not exist or is invalid.
        """
        explicit = path is not None or "ROOFENGINE_CONFIG" in os.environ
        config_path = path or Path(os.getenv("ROOFENGINE_CONFIG", "config/default.yaml"))
        if not config_path.exists():
            if explicit:
                raise ConfigurationError(
                    f"Configuration file not found: {config_path}",
                    {"path": str(config_path)},
                )
            return cls()
        with config_path.open("r", encoding="utf-8") as fp:
            try:
                payload = yaml.safe_load(fp) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}", {"path": str(config_path)}) from exc
        try:
            return cls(**payload)
        except Exception as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}", {"path": str(config_path)}) from exc


@lru_cache(maxsize=1)
def get_settings(path: str | None = None) -> Settings:
    return Settings.load(Path(path) if path else None)


__all__ = [
    "Settings",
    "RoofSettings",
    "LoggingSettings",
    "get_settings",
]
