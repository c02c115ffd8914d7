"""Configuration schema for dok-sync.

Defines Pydantic models for the config file: named jobs, each with a list
of source and target connector specs, plus a logging section.

Usage:
    from dok_sync.config_loader import load_config_file
    from dok_sync.config_schema import build_config, get_job_config

    config = build_config(load_config_file("dok.yml"))
    job = get_job_config(config, "notes")
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Configuration could not be loaded or is invalid."""


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class ProviderConfig(BaseModel):
    """One connector entry of a job.

    Attributes:
        provider: Registered connector kind (e.g. ``filesystem``, ``dify``).
        provider_id: Identifier of a source instance; defaults to the
            connector's own default.  Ignored for targets.
        name: Optional label used in logs and reports.
        config: Connector-specific settings.
    """

    provider: str = Field(min_length=1, description="Connector kind")
    provider_id: str | None = Field(
        default=None, description="Source instance identifier"
    )
    name: str | None = Field(default=None, description="Display label")
    config: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True, "extra": "forbid"}


class JobConfig(BaseModel):
    """A sync job: sources converge into every target."""

    sources: list[ProviderConfig] = Field(min_length=1)
    targets: list[ProviderConfig] = Field(min_length=1)
    batch_size: int | None = Field(
        default=None,
        ge=1,
        le=100,
        description="Concurrent operations per batch (1-100)",
    )
    batch_delay_ms: int | None = Field(
        default=None,
        ge=0,
        le=60000,
        description="Pause between batches in milliseconds (0-60000)",
    )

    model_config = {"frozen": True, "extra": "forbid"}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``text`` or ``json``.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: Literal["text", "json"] = Field(default="text")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


class DokConfig(BaseModel):
    """Top-level configuration."""

    jobs: dict[str, JobConfig] = Field(min_length=1)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def format_validation_error(error: ValidationError) -> str:
    """Render pydantic issues as ``path: message`` separated by ``, ``."""
    return ", ".join(
        f"{'.'.join(str(p) for p in issue['loc'])}: {issue['msg']}"
        for issue in error.errors()
    )


def build_config(raw_data: dict) -> DokConfig:
    """Construct a validated ``DokConfig`` from a raw dict.

    Raises:
        ConfigError: With one ``path: message`` entry per issue.
    """
    try:
        return DokConfig(**(raw_data or {}))
    except ValidationError as exc:
        raise ConfigError(
            f"Configuration validation failed: {format_validation_error(exc)}"
        ) from exc


def get_job_config(config: DokConfig, job_name: str) -> JobConfig:
    """Return the job called *job_name*.

    Raises:
        ConfigError: If no such job exists.
    """
    job = config.jobs.get(job_name)
    if job is None:
        raise ConfigError(f"Job '{job_name}' not found in configuration")
    return job


def list_job_names(config: DokConfig) -> list[str]:
    """All job names, in file order."""
    return list(config.jobs)
