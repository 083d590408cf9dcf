"""Pydantic configuration schema for phrasespam.

This module defines the configuration schema that mirrors config.yaml
structure. Every section has defaults, so an empty file (or no file) gives
a working configuration.

Usage:
    from phrasespam.config_schema import AppConfig

    config = AppConfig(**yaml_data)
"""

from typing import Literal

import regex
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Current schema version - increment when adding new required fields
CURRENT_SCHEMA_VERSION = 1


class StrictModel(BaseModel):
    """Base for config sections; misspelled keys are errors, not silent defaults."""

    model_config = ConfigDict(extra="forbid")


class DatabaseConfig(StrictModel):
    """SQLite storage configuration."""

    path: str = Field(
        default="data/phrasespam.db",
        description="Path to the SQLite database file",
    )
    busy_timeout_ms: int = Field(
        default=1000,
        ge=0,
        le=600_000,
        description="Milliseconds SQLite waits on a lock before reporting busy",
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Ensure the database path is not empty."""
        if not v or not v.strip():
            raise ValueError("Database path cannot be empty")
        return v


class ExtractionConfig(StrictModel):
    """Phrase extraction configuration."""

    word_split: str = Field(
        default=r"[.:;,]*\s+",
        description="Regular expression separating words",
    )
    trailing: str = Field(
        default=r"[!?]$",
        description="Regular expression matching a trailing character to strip",
    )
    max_phrase_length: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Longest run of consecutive words treated as one phrase",
    )
    regex_timeout: float = Field(
        default=1.0,
        gt=0,
        le=60,
        description="Seconds allowed per regex operation on message text",
    )

    @field_validator("word_split", "trailing")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        """Ensure the pattern is non-empty and compiles."""
        if not v:
            raise ValueError("Pattern cannot be empty")
        try:
            regex.compile(v)
        except regex.error as e:
            raise ValueError(f"Invalid regular expression {v!r}: {e}") from e
        return v


class ScoringConfig(StrictModel):
    """Message scoring configuration."""

    max_significant: int | Literal["unlimited"] | None = Field(
        default=15,
        description="Most extreme phrases combined per message ('unlimited' or null for all)",
    )

    @field_validator("max_significant")
    @classmethod
    def validate_max_significant(cls, v: int | str | None) -> int | str | None:
        """Ensure a numeric limit is positive."""
        if isinstance(v, int) and v < 1:
            raise ValueError("max_significant must be at least 1 (or 'unlimited')")
        return v

    @property
    def limit(self) -> int | None:
        """Numeric limit, or None when every phrase is used."""
        if self.max_significant == "unlimited":
            return None
        return self.max_significant


class RetryConfig(StrictModel):
    """Retry behaviour when the database is locked."""

    max_attempts: int = Field(
        default=60,
        ge=1,
        le=10_000,
        description="Total attempts per storage operation",
    )
    interval_seconds: float = Field(
        default=5.0,
        ge=0,
        le=3600,
        description="Delay between attempts",
    )


class ExportConfig(StrictModel):
    """Paged export configuration for full dumps."""

    page_size: int = Field(
        default=10000,
        ge=1,
        le=1_000_000,
        description="Rows read per page",
    )
    queue_size: int = Field(
        default=4,
        ge=1,
        le=100,
        description="Pages buffered between reader and consumer",
    )
    initial_interval: float = Field(
        default=0.5,
        gt=0,
        description="First polling delay in seconds",
    )
    min_interval: float = Field(
        default=0.01,
        gt=0,
        description="Shortest polling delay in seconds",
    )
    max_interval: float = Field(
        default=5.0,
        gt=0,
        description="Longest polling delay in seconds",
    )

    @model_validator(mode="after")
    def validate_interval_bounds(self) -> "ExportConfig":
        """Ensure min_interval <= max_interval."""
        if self.min_interval > self.max_interval:
            raise ValueError("min_interval cannot exceed max_interval")
        return self


class LoggingConfig(StrictModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Minimum level written to stderr",
    )
    json_output: bool = Field(
        default=False,
        description="Write JSON lines instead of human-readable output",
    )


class AppConfig(StrictModel):
    """Root configuration schema for phrasespam.

    This model validates the entire config.yaml structure. If validation
    fails, the CLI exits with a clear error.
    """

    schema_version: int = Field(
        default=CURRENT_SCHEMA_VERSION,
        ge=1,
        description="Config schema version for migration tracking",
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
