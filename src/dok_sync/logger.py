import json
import logging
import os
import sys
from typing import Any, Protocol, runtime_checkable

_DATEFMT = "%Y-%m-%d %H:%M:%S"


@runtime_checkable
class SyncLogger(Protocol):
    """Structured logger accepted by the engine, fetcher and reconciler.

    Each method takes a message and an optional free-form metadata map.
    """

    def info(self, message: str, meta: dict[str, Any] | None = None) -> None: ...

    def warn(self, message: str, meta: dict[str, Any] | None = None) -> None: ...

    def error(self, message: str, meta: dict[str, Any] | None = None) -> None: ...

    def debug(self, message: str, meta: dict[str, Any] | None = None) -> None: ...


class NullLogger:
    """Logger that discards everything. Default for the core."""

    def info(self, message: str, meta: dict[str, Any] | None = None) -> None:
        pass

    def warn(self, message: str, meta: dict[str, Any] | None = None) -> None:
        pass

    def error(self, message: str, meta: dict[str, Any] | None = None) -> None:
        pass

    def debug(self, message: str, meta: dict[str, Any] | None = None) -> None:
        pass


def _format_meta(meta: dict[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in meta.items())


class StdlibSyncLogger:
    """Adapter from ``SyncLogger`` onto a stdlib ``logging.Logger``.

    Metadata is appended to the message as ``key=value`` pairs and also
    attached to the record as ``record.meta`` for ``JsonFormatter``.
    """

    def __init__(self, name: str = "dok_sync"):
        self._logger = logging.getLogger(name)

    def _log(
        self, level: int, message: str, meta: dict[str, Any] | None
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if meta:
            self._logger.log(
                level,
                "%s %s",
                message,
                _format_meta(meta),
                extra={"meta": meta},
            )
        else:
            self._logger.log(level, "%s", message)

    def info(self, message: str, meta: dict[str, Any] | None = None) -> None:
        self._log(logging.INFO, message, meta)

    def warn(self, message: str, meta: dict[str, Any] | None = None) -> None:
        self._log(logging.WARNING, message, meta)

    def error(self, message: str, meta: dict[str, Any] | None = None) -> None:
        self._log(logging.ERROR, message, meta)

    def debug(self, message: str, meta: dict[str, Any] | None = None) -> None:
        self._log(logging.DEBUG, message, meta)


class JsonFormatter(logging.Formatter):
    """Single-line JSON formatter for structured output.

    Produces one JSON object per log record with fields: ts, level, logger, msg.
    Structured metadata is included as "meta" and exception info as "exc"
    when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        meta = getattr(record, "meta", None)
        if meta:
            # Keep msg free of the key=value suffix when meta is structured
            entry["msg"] = str(record.args[0]) if record.args else entry["msg"]
            entry["meta"] = meta
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    level: str | None = None,
    debug: bool = False,
    log_file: str | None = None,
    log_format: str = "text",
) -> None:
    """
    Configure logging for CLI runs.

    Args:
        level: Log level name; falls back to the DOK_LOG_LEVEL env var.
        debug: If True, overrides the level to DEBUG.
        log_file: Optional file to write in addition to stderr.
        log_format: "text" (default) or "json" for structured output.

    Environment variables:
        DOK_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
                       Default: INFO.
    """
    level_name = (level or os.getenv("DOK_LOG_LEVEL", "INFO")).upper()
    if level_name == "WARN":
        level_name = "WARNING"

    # debug parameter overrides level
    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, level_name, logging.INFO)

    # Log to stderr so stdout stays free for reports
    handlers: list[logging.Handler] = []
    stderr_handler = logging.StreamHandler(sys.stderr)

    if log_format == "json":
        stderr_handler.setFormatter(JsonFormatter(datefmt=_DATEFMT))
    else:
        stderr_handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] [%(levelname)s] %(message)s",
                datefmt=_DATEFMT,
            )
        )
    handlers.append(stderr_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        if log_format == "json":
            file_handler.setFormatter(JsonFormatter(datefmt=_DATEFMT))
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    "[%(asctime)s] [%(levelname)s] %(name)s %(message)s",
                    datefmt=_DATEFMT,
                )
            )
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,
    )

    # Silence third-party libs unless DEBUG
    if log_level != logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("requests").setLevel(logging.WARNING)
        logging.getLogger("charset_normalizer").setLevel(logging.WARNING)
