"""Core async helpers shared between the engine and the connectors."""

from .async_utils import call_connector, drain, run_in_batches, run_sync

__all__ = ["call_connector", "drain", "run_in_batches", "run_sync"]
