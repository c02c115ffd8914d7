"""
YAML configuration loader for dok-sync.

Provides convention-based config file discovery, YAML !include support,
and env var expansion.

Usage:
    from dok_sync.config_loader import load_config_file

    raw = load_config_file("dok.yml")
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from .config_schema import ConfigError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 1. Env var expansion
# ---------------------------------------------------------------------------

# Matches ${VAR}, ${VAR:-default} and bare $VAR
_ENV_VAR_PATTERN = re.compile(
    r"\$\{([^}:]+?)(?::-(.*?))?\}|\$([A-Za-z_][A-Za-z0-9_]*)"
)


def expand_env_vars(value: str) -> str:
    """Replace ``${VAR}``, ``${VAR:-default}`` and ``$VAR`` with env values.

    * ``${VAR:-default}`` uses *default* when VAR is unset or empty.
    * ``${VAR}`` and ``$VAR`` require VAR to be set.
    * Literal ``${`` with no closing ``}`` is left untouched.

    Raises:
        ConfigError: If a referenced variable is unset and has no default.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1) or match.group(3)
        default = match.group(2)  # None when no :- clause
        env_val = os.environ.get(var_name)
        if env_val is not None and (env_val != "" or default is None):
            return env_val
        if default is not None:
            return default
        raise ConfigError(f"Environment variable {var_name} is not defined")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _expand_recursive(obj: Any) -> Any:
    """Walk a nested dict/list and expand env vars in all strings."""
    if isinstance(obj, str):
        return expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# 2. YAML !include support (dedicated SafeLoader subclass)
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """YAML SafeLoader subclass with ``!include`` support.

    Uses a dedicated subclass so the global ``yaml.SafeLoader`` is never
    modified.  Tracks an *include stack* per-load to detect circular includes.
    """


def _include_constructor(
    loader: ConfigLoader, node: yaml.ScalarNode
) -> Any:
    """Handle ``!include path/to/file.yml`` directives."""
    include_path_str: str = loader.construct_scalar(node)

    # Resolve relative to the file that contains the !include
    if os.path.isabs(include_path_str):
        include_path = Path(include_path_str)
    else:
        parent_dir = Path(loader.name).resolve().parent
        include_path = parent_dir / include_path_str

    include_path = include_path.resolve()

    include_stack: list[Path] = getattr(loader, "_include_stack", [])
    if include_path in include_stack:
        chain = (
            " -> ".join(str(p) for p in include_stack)
            + f" -> {include_path}"
        )
        raise ConfigError(f"Circular include detected: {chain}")

    if not include_path.exists():
        source_file = Path(loader.name).resolve()
        raise ConfigError(
            f"Include file not found: {include_path} (referenced from {source_file})"
        )

    return _load_yaml_with_includes(
        include_path, _include_stack=include_stack + [include_path]
    )


ConfigLoader.add_constructor("!include", _include_constructor)


def _load_yaml_with_includes(
    path: Path,
    *,
    _include_stack: list[Path] | None = None,
) -> Any:
    """Load a YAML file using the ``ConfigLoader`` (with ``!include``)."""
    path = path.resolve()
    if _include_stack is None:
        _include_stack = [path]

    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_stack = _include_stack  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# 3. Convention-based file discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config file paths in precedence order (highest first).

    Search order:
        1. ``DOK_CONFIG`` env var (explicit single path)
        2. ``dok.yml`` / ``dok.yaml`` in CWD
        3. ``.dok/config.yml`` in CWD
        4. ``~/.config/dok/config.yml`` (XDG global)

    Only paths that exist on disk are returned.
    """
    candidates: list[Path] = []

    env_path = os.environ.get("DOK_CONFIG")
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    cwd = Path.cwd()
    candidates.append(cwd / "dok.yml")
    candidates.append(cwd / "dok.yaml")
    candidates.append(cwd / ".dok" / "config.yml")
    candidates.append(Path.home() / ".config" / "dok" / "config.yml")

    return [p for p in candidates if p.exists()]


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Return the config file to use.

    An explicit *path* wins; otherwise the highest-precedence discovered
    file is used.

    Raises:
        ConfigError: If the file does not exist or none was discovered.
    """
    if path is not None:
        resolved = Path(path).expanduser().resolve()
        if not resolved.exists():
            raise ConfigError(f"Configuration file not found: {resolved}")
        return resolved

    existing = discover_config_files()
    if not existing:
        raise ConfigError(
            "No configuration file found. Pass --config, set DOK_CONFIG, "
            "or create dok.yml in the current directory."
        )
    return existing[0]


# ---------------------------------------------------------------------------
# 4. Loading
# ---------------------------------------------------------------------------


def load_config_file(
    path: str | Path | None = None, *, expand_env: bool = True
) -> dict[str, Any]:
    """Load one YAML config file into a raw dict.

    Env var expansion is applied to all string values after parsing.

    Args:
        path: Config file; discovered when ``None``.
        expand_env: Set to ``False`` to keep ``${VAR}`` references
            verbatim (used by ``dok validate``).

    Raises:
        ConfigError: If the file is missing, unparsable, not a mapping,
            or references an undefined variable.
    """
    config_path = resolve_config_path(path)
    logger.debug("Loading config: %s", config_path)
    try:
        data = _load_yaml_with_includes(config_path)
    except yaml.YAMLError as exc:
        raise ConfigError(
            f"Failed to parse {config_path}: {exc}"
        ) from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config file {config_path} has non-dict root "
            f"({type(data).__name__})"
        )

    return _expand_recursive(data) if expand_env else data
