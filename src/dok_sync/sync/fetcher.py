"""Metadata fetcher: aggregates document listings from connectors.

Pure I/O aggregation, no diffing.  A failing connector is never
swallowed: without a complete source listing the planner would emit
spurious deletes.
"""

from __future__ import annotations

from collections.abc import Sequence

from dok_sync.core.async_utils import call_connector, drain
from dok_sync.logger import NullLogger, SyncLogger

from .errors import MetadataFetchError
from .models import DocumentMetadata


def connector_name(connector: object) -> str:
    """Label of a connector for logs and errors."""
    name = getattr(connector, "name", None) or getattr(
        connector, "provider_id", None
    )
    return str(name) if name else type(connector).__name__


class MetadataFetcher:
    """Fetch document metadata from source and target connectors.

    Args:
        logger: Structured logger; defaults to ``NullLogger``.
    """

    def __init__(self, logger: SyncLogger | None = None) -> None:
        self.logger = logger or NullLogger()

    async def fetch_source_metadata(
        self, sources: Sequence[object]
    ) -> list[DocumentMetadata]:
        """Fetch and flatten the listings of every source connector.

        Sources are queried one after another, in order, so the combined
        listing (and therefore the plan) is deterministic.

        Raises:
            MetadataFetchError: If any connector fails.
        """
        documents: list[DocumentMetadata] = []
        for source in sources:
            documents.extend(await self._fetch(source))
        return documents

    async def fetch_target_metadata(
        self, target: object
    ) -> list[DocumentMetadata]:
        """Fetch the current listing of one target connector.

        Raises:
            MetadataFetchError: If the connector fails.
        """
        return await self._fetch(target)

    async def _fetch(self, connector: object) -> list[DocumentMetadata]:
        name = connector_name(connector)
        try:
            listing = await call_connector(
                connector.fetch_documents_metadata  # type: ignore[attr-defined]
            )
            items = await drain(listing)
        except Exception as exc:
            self.logger.error(
                "Failed to fetch metadata", {"connector": name, "error": str(exc)}
            )
            raise MetadataFetchError(name, exc) from exc

        for item in items:
            if not isinstance(item, DocumentMetadata):
                raise MetadataFetchError(
                    name,
                    f"expected DocumentMetadata, got {type(item).__name__}",
                )

        self.logger.info(
            "Fetched metadata", {"connector": name, "count": len(items)}
        )
        return items
