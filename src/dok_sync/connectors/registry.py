"""Connector registry: maps config ``provider`` kinds to factories.

The mapping is explicit and built at import time; there is no plugin
discovery.  Extra kinds can be added with ``register_source()`` /
``register_target()`` before a job is built.

Factory signatures:
- source: ``(config: dict, provider_id: str | None) -> connector``
- target: ``(config: dict, name: str | None) -> connector``
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..config_schema import ConfigError, ProviderConfig
from .dify import DifyTarget
from .directory import DirectoryTarget
from .filesystem import FilesystemSource
from .notion import NotionSource

logger = logging.getLogger(__name__)

SourceFactory = Callable[[dict, str | None], Any]
TargetFactory = Callable[[dict, str | None], Any]


@dataclass(frozen=True, slots=True)
class ConnectorKind:
    """Registered connector kind.

    Attributes:
        kind: Value of ``provider`` in the config file.
        factory: Builds a connector from its config section.
    """

    kind: str
    factory: Callable[..., Any]


def _filesystem_source(config: dict, provider_id: str | None) -> FilesystemSource:
    if provider_id is not None:
        return FilesystemSource(provider_id=provider_id, **config)
    return FilesystemSource(**config)


def _notion_source(config: dict, provider_id: str | None) -> NotionSource:
    if provider_id is not None:
        return NotionSource(provider_id=provider_id, **config)
    return NotionSource(**config)


def _directory_target(config: dict, name: str | None) -> DirectoryTarget:
    return DirectoryTarget(name=name, **config)


def _dify_target(config: dict, name: str | None) -> DifyTarget:
    return DifyTarget(name=name, **config)


_SOURCES: dict[str, ConnectorKind] = {
    "filesystem": ConnectorKind("filesystem", _filesystem_source),
    "notion": ConnectorKind("notion", _notion_source),
}

_TARGETS: dict[str, ConnectorKind] = {
    "directory": ConnectorKind("directory", _directory_target),
    "dify": ConnectorKind("dify", _dify_target),
}


def register_source(kind: str, factory: SourceFactory) -> None:
    """Register (or replace) a source connector kind."""
    _SOURCES[kind] = ConnectorKind(kind, factory)


def register_target(kind: str, factory: TargetFactory) -> None:
    """Register (or replace) a target connector kind."""
    _TARGETS[kind] = ConnectorKind(kind, factory)


def source_kinds() -> list[str]:
    return sorted(_SOURCES)


def target_kinds() -> list[str]:
    return sorted(_TARGETS)


def _build(
    registry: dict[str, ConnectorKind],
    role: str,
    spec: ProviderConfig,
    label: str | None,
) -> Any:
    entry = registry.get(spec.provider)
    if entry is None:
        raise ConfigError(
            f"Unknown {role} provider '{spec.provider}'. "
            f"Available: {', '.join(sorted(registry))}"
        )
    try:
        connector = entry.factory(dict(spec.config), label)
    except (TypeError, ValueError) as exc:
        raise ConfigError(
            f"Invalid config for {role} provider '{spec.provider}': {exc}"
        ) from exc
    logger.debug("Built %s connector %s", role, spec.provider)
    return connector


def build_source(spec: ProviderConfig) -> Any:
    """Build a source connector from its config entry.

    Raises:
        ConfigError: If the kind is unknown or its config is rejected.
    """
    return _build(_SOURCES, "source", spec, spec.provider_id)


def build_target(spec: ProviderConfig) -> Any:
    """Build a target connector from its config entry.

    Raises:
        ConfigError: If the kind is unknown or its config is rejected.
    """
    return _build(_TARGETS, "target", spec, spec.name)
