"""Connector contracts, reference connectors and the kind registry."""

from .base import SourceConnector, TargetConnector
from .registry import (
    build_source,
    build_target,
    register_source,
    register_target,
)

__all__ = [
    "SourceConnector",
    "TargetConnector",
    "build_source",
    "build_target",
    "register_source",
    "register_target",
]
