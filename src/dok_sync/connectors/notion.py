"""Notion database source connector.

Lists the pages of one Notion database with the official ``notion-client``
SDK and stages each page as Markdown.

* ``source_id`` is the page id, ``last_modified`` its ``last_edited_time``.
* ``title`` comes from the page's title property (``Title``/``Name`` and
  their Japanese equivalents first, then any property of type ``title``).
* Content is rendered from the page's block tree; block types with no
  Markdown form are skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from datetime import datetime
from pathlib import Path

from notion_client import Client
from notion_client.helpers import iterate_paginated_api

from dok_sync.sync.models import DocumentMetadata, parse_document_id
from dok_sync.sync.staging import current_staging

logger = logging.getLogger(__name__)

TITLE_FIELDS = ("Title", "title", "Name", "name", "名前", "タイトル")
UNTITLED = "Untitled"

# Blocks rendered only through their children
_CONTAINER_TYPES = frozenset({"column_list", "column", "synced_block"})
# Children of these blocks are nested one indentation level deeper
_NESTING_TYPES = frozenset(
    {"bulleted_list_item", "numbered_list_item", "to_do", "toggle"}
)
_FILE_TYPES = frozenset({"image", "file", "pdf", "video", "audio"})
_LINK_TYPES = frozenset({"bookmark", "embed", "link_preview"})
_INDENT = "    "


class NotionSourceError(Exception):
    """A Notion page could not be converted or staged."""


def parse_notion_time(value: str) -> datetime:
    """Parse a Notion ISO-8601 timestamp (``...Z`` suffix allowed)."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def extract_title(properties: dict) -> str:
    """Return the plain-text title of a page from its properties."""
    for field in TITLE_FIELDS:
        title = _title_text(properties.get(field))
        if title:
            return title
    for value in properties.values():
        title = _title_text(value)
        if title:
            return title
    return UNTITLED


def _title_text(prop: object) -> str | None:
    if not isinstance(prop, dict) or prop.get("type") != "title":
        return None
    parts = prop.get("title") or []
    text = "".join(part.get("plain_text", "") for part in parts)
    return text or None


def rich_text_to_markdown(rich_text: list[dict]) -> str:
    """Render a Notion rich-text array with inline Markdown markup."""
    parts: list[str] = []
    for item in rich_text:
        text = item.get("plain_text", "")
        if not text:
            continue
        annotations = item.get("annotations") or {}
        if annotations.get("code"):
            text = f"`{text}`"
        if annotations.get("bold"):
            text = f"**{text}**"
        if annotations.get("italic"):
            text = f"_{text}_"
        if annotations.get("strikethrough"):
            text = f"~~{text}~~"
        if item.get("href"):
            text = f"[{text}]({item['href']})"
        parts.append(text)
    return "".join(parts)


def _plain_text(rich_text: list[dict]) -> str:
    return "".join(item.get("plain_text", "") for item in rich_text)


class MarkdownRenderer:
    """Render a tree of Notion blocks to Markdown.

    Args:
        list_children: Called with a block id, returns its child blocks.
    """

    def __init__(self, list_children: Callable[[str], list[dict]]) -> None:
        self.list_children = list_children

    def render(self, blocks: list[dict], depth: int = 0) -> str:
        chunks = [self.render_block(block, depth) for block in blocks]
        return "\n\n".join(chunk for chunk in chunks if chunk)

    def _children(self, block: dict) -> list[dict]:
        if not block.get("has_children"):
            return []
        return self.list_children(block["id"])

    def render_block(self, block: dict, depth: int = 0) -> str:
        kind = block.get("type", "")
        data = block.get(kind) or {}

        if kind in _CONTAINER_TYPES:
            return self.render(self._children(block), depth)
        if kind == "table":
            return self._render_table(block, depth)

        line = self._render_line(kind, data)
        if line is None:
            logger.debug("Skipping unsupported Notion block type %s", kind)
            return ""

        indent = _INDENT * depth
        text = "\n".join(indent + part for part in line.split("\n"))
        if kind in ("child_page", "child_database"):
            return text

        children = self._children(block)
        if children:
            child_depth = depth + 1 if kind in _NESTING_TYPES else depth
            nested = self.render(children, child_depth)
            if nested:
                separator = "\n" if kind in _NESTING_TYPES else "\n\n"
                text = f"{text}{separator}{nested}"
        return text

    def _render_line(self, kind: str, data: dict) -> str | None:
        text = rich_text_to_markdown(data.get("rich_text") or [])

        if kind == "paragraph":
            return text
        if kind in ("heading_1", "heading_2", "heading_3"):
            return f"{'#' * int(kind[-1])} {text}"
        if kind in ("bulleted_list_item", "toggle"):
            return f"- {text}"
        if kind == "numbered_list_item":
            return f"1. {text}"
        if kind == "to_do":
            mark = "x" if data.get("checked") else " "
            return f"- [{mark}] {text}"
        if kind == "quote":
            return f"> {text}"
        if kind == "callout":
            icon = (data.get("icon") or {}).get("emoji")
            return f"> {icon} {text}" if icon else f"> {text}"
        if kind == "code":
            language = data.get("language") or ""
            if language == "plain text":
                language = ""
            code = _plain_text(data.get("rich_text") or [])
            return f"```{language}\n{code}\n```"
        if kind == "equation":
            return f"$$\n{data.get('expression', '')}\n$$"
        if kind == "divider":
            return "---"
        if kind in _FILE_TYPES:
            return self._render_file(kind, data)
        if kind in _LINK_TYPES:
            url = data.get("url", "")
            return f"[{url}]({url})" if url else None
        if kind in ("child_page", "child_database"):
            return f"**{data.get('title') or UNTITLED}**"
        return None

    @staticmethod
    def _render_file(kind: str, data: dict) -> str | None:
        source = data.get(data.get("type", "")) or {}
        url = source.get("url")
        if not url:
            return None
        caption = _plain_text(data.get("caption") or []) or data.get("name")
        if kind == "image":
            return f"![{caption or ''}]({url})"
        return f"[{caption or url}]({url})"

    def _render_table(self, block: dict, depth: int) -> str:
        rows = [
            [rich_text_to_markdown(cell) for cell in row["table_row"]["cells"]]
            for row in self._children(block)
            if row.get("type") == "table_row"
        ]
        if not rows:
            return ""
        indent = _INDENT * depth
        lines = [indent + "| " + " | ".join(rows[0]) + " |"]
        lines.append(indent + "|" + "---|" * len(rows[0]))
        for row in rows[1:]:
            lines.append(indent + "| " + " | ".join(row) + " |")
        return "\n".join(lines)


class NotionSource:
    """Source connector over the pages of one Notion database.

    Args:
        api_key: Notion integration token.
        database_id: Database whose pages are synced.
        provider_id: Identifier of this source instance.
        timeout_ms: Request timeout of the Notion client.
        client: Pre-built ``notion_client.Client`` (replaces ``api_key``).
    """

    def __init__(
        self,
        api_key: str | None = None,
        database_id: str = "",
        provider_id: str = "notion",
        timeout_ms: int = 60_000,
        client: Client | None = None,
    ) -> None:
        if not database_id:
            raise ValueError("database_id is required")
        if client is None and not api_key:
            raise ValueError("api_key is required")
        if ":" in provider_id:
            raise ValueError(
                f"provider_id must not contain ':' (got '{provider_id}')"
            )
        self.database_id = database_id
        self.provider_id = provider_id
        self.client = client or Client(auth=api_key, timeout_ms=timeout_ms)
        self.renderer = MarkdownRenderer(self._list_children)

    @property
    def name(self) -> str:
        return f"notion:{self.provider_id}"

    def _metadata_for(self, page: dict) -> DocumentMetadata:
        return DocumentMetadata(
            provider_id=self.provider_id,
            source_id=page["id"],
            title=extract_title(page.get("properties") or {}),
            last_modified=parse_notion_time(page["last_edited_time"]),
            file_extension="md",
        )

    def fetch_documents_metadata(self) -> Iterator[DocumentMetadata]:
        """Lazily yield metadata for every page of the database."""
        for page in iterate_paginated_api(
            self.client.databases.query, database_id=self.database_id
        ):
            if "properties" not in page or "last_edited_time" not in page:
                continue
            yield self._metadata_for(page)

    def _list_children(self, block_id: str) -> list[dict]:
        return list(
            iterate_paginated_api(
                self.client.blocks.children.list, block_id=block_id
            )
        )

    def render_page(self, page_id: str) -> str:
        """Return the Markdown content of *page_id*."""
        content = self.renderer.render(self._list_children(page_id))
        return content + "\n" if content else ""

    def download_document_content(self, document_id: str) -> Path:
        """Render the page behind *document_id* and stage it as Markdown.

        Raises:
            NotionSourceError: If the page could not be read or staged.
        """
        provider_id, page_id = parse_document_id(document_id)
        if provider_id != self.provider_id:
            raise ValueError(
                f"Document {document_id} does not belong to "
                f"provider '{self.provider_id}'"
            )
        try:
            page = self.client.pages.retrieve(page_id=page_id)
            content = self.render_page(page_id)
            metadata = self._metadata_for(page)
            return current_staging().create_temp_file(
                metadata, content, extension="md"
            )
        except Exception as exc:
            logger.error(
                "Failed to convert Notion page %s to markdown: %s",
                page_id,
                exc,
            )
            raise NotionSourceError(
                f"Failed to download content from Notion page {page_id}: {exc}"
            ) from exc
