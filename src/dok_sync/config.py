"""Run settings for a sync job.

Resolves the knobs that control one ``dok run`` from CLI flags,
environment variables, the job's YAML section and built-in defaults.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML job config > Built-in defaults

Environment variables:
    DOK_DRY_RUN: Plan and log only (optional, default: false)
    DOK_BATCH_SIZE: Concurrent operations per batch (optional, default: 5)
    DOK_BATCH_DELAY_MS: Pause between batches in ms (optional, default: 100)
    DOK_LOG_LEVEL: Log level name (optional, default: INFO)
"""

import logging
import os
from dataclasses import dataclass

from .config_schema import JobConfig

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY_MS = 100

_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "WARNING", "ERROR", "CRITICAL")


@dataclass
class RunSettings:
    dry_run: bool = False
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_delay: float = DEFAULT_BATCH_DELAY_MS / 1000
    log_level: str | None = None


def get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _int_env(key: str, low: int, high: int) -> int | None:
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def resolve_run_settings(
    job: JobConfig | None = None,
    dry_run: bool = False,
    log_level: str | None = None,
) -> RunSettings:
    """Resolve run settings with unified precedence.

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        job: Validated job section supplying YAML fallbacks.
        dry_run: ``--dry-run`` CLI flag.
        log_level: ``--log-level`` CLI value.

    Returns:
        Resolved RunSettings.

    Raises:
        ValueError: If an environment variable holds an invalid value.
    """
    # --- Boolean: CLI > env > default ---
    if dry_run:
        final_dry_run = True
    else:
        final_dry_run = bool(get_bool_env("DOK_DRY_RUN"))

    # --- Numeric: env > YAML > default ---
    batch_size = _int_env("DOK_BATCH_SIZE", 1, 100)
    if batch_size is None:
        if job is not None and job.batch_size is not None:
            batch_size = job.batch_size
        else:
            batch_size = DEFAULT_BATCH_SIZE

    delay_ms = _int_env("DOK_BATCH_DELAY_MS", 0, 60000)
    if delay_ms is None:
        if job is not None and job.batch_delay_ms is not None:
            delay_ms = job.batch_delay_ms
        else:
            delay_ms = DEFAULT_BATCH_DELAY_MS

    # --- Log level: CLI > env > unset (caller decides) ---
    final_level = log_level or os.getenv("DOK_LOG_LEVEL")
    if final_level is not None:
        final_level = final_level.strip().upper()
        if final_level not in _LOG_LEVELS:
            raise ValueError(
                f"Invalid log level '{final_level}': must be one of "
                f"{', '.join(_LOG_LEVELS)}"
            )

    settings = RunSettings(
        dry_run=final_dry_run,
        batch_size=batch_size,
        batch_delay=delay_ms / 1000,
        log_level=final_level,
    )
    logger.debug("Resolved run settings: %s", settings)
    return settings
