"""Tests for MetadataFetcher: listing shapes and failure propagation."""

import pytest

from conftest import FakeSource, FakeTarget, make_doc
from dok_sync.sync.errors import MetadataFetchError
from dok_sync.sync.fetcher import MetadataFetcher, connector_name


class LazySource:
    provider_id = "lazy"

    def __init__(self, docs):
        self.docs = docs
        self.yielded = 0

    def fetch_documents_metadata(self):
        for doc in self.docs:
            self.yielded += 1
            yield doc


class AsyncIterSource:
    provider_id = "aiter"

    def __init__(self, docs):
        self.docs = docs

    async def fetch_documents_metadata(self):
        for doc in self.docs:
            yield doc


class CoroutineSource:
    provider_id = "coro"

    def __init__(self, docs):
        self.docs = docs

    async def fetch_documents_metadata(self):
        return list(self.docs)


class BrokenSource:
    provider_id = "broken"

    def fetch_documents_metadata(self):
        raise ConnectionError("upstream down")


class TestFetchSourceMetadata:
    async def test_flattens_sources_in_order(self):
        first = FakeSource([make_doc("a"), make_doc("b")], provider_id="one")
        second = FakeSource([make_doc("c", provider_id="two")], provider_id="two")
        docs = await MetadataFetcher().fetch_source_metadata([first, second])
        assert [d.source_id for d in docs] == ["a", "b", "c"]

    async def test_lazy_iterable_is_drained(self):
        source = LazySource([make_doc("a"), make_doc("b")])
        docs = await MetadataFetcher().fetch_source_metadata([source])
        assert len(docs) == 2
        assert source.yielded == 2

    async def test_async_iterable(self):
        docs = await MetadataFetcher().fetch_source_metadata(
            [AsyncIterSource([make_doc("a")])]
        )
        assert [d.document_id for d in docs] == ["src:a"]

    async def test_coroutine_returning_list(self):
        docs = await MetadataFetcher().fetch_source_metadata(
            [CoroutineSource([make_doc("a"), make_doc("b")])]
        )
        assert len(docs) == 2

    async def test_no_sources(self):
        assert await MetadataFetcher().fetch_source_metadata([]) == []

    async def test_failure_is_wrapped_and_propagated(self, recording_logger):
        fetcher = MetadataFetcher(recording_logger)
        with pytest.raises(MetadataFetchError) as exc_info:
            await fetcher.fetch_source_metadata(
                [FakeSource([make_doc("a")]), BrokenSource()]
            )

        err = exc_info.value
        assert err.connector == "broken"
        assert isinstance(err.__cause__, ConnectionError)
        assert str(err) == "Failed to fetch metadata from broken: upstream down"
        assert "Failed to fetch metadata" in recording_logger.messages("error")

    async def test_non_metadata_item_rejected(self):
        class BadSource:
            provider_id = "bad"

            def fetch_documents_metadata(self):
                return [{"source_id": "a"}]

        with pytest.raises(MetadataFetchError, match="expected DocumentMetadata"):
            await MetadataFetcher().fetch_source_metadata([BadSource()])


class TestFetchTargetMetadata:
    async def test_target_listing(self, recording_logger):
        target = FakeTarget([make_doc("a")], name="kb")
        docs = await MetadataFetcher(recording_logger).fetch_target_metadata(target)
        assert [d.document_id for d in docs] == ["src:a"]
        assert ("info", "Fetched metadata", {"connector": "kb", "count": 1}) in recording_logger.records


class TestConnectorName:
    def test_prefers_name(self):
        assert connector_name(FakeTarget(name="kb")) == "kb"

    def test_falls_back_to_provider_id(self):
        assert connector_name(FakeSource(provider_id="notes")) == "notes"

    def test_falls_back_to_class_name(self):
        assert connector_name(object()) == "object"
