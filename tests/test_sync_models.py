"""Tests for dok_sync.sync.models: document ids and plan summaries."""

import pytest
from pydantic import ValidationError

from conftest import BASE_TIME, make_doc
from dok_sync.sync.models import (
    DocumentMetadata,
    OperationType,
    ReconcileResult,
    SyncOperation,
    SyncPlan,
    compose_document_id,
    extract_extension_from_source_id,
    parse_document_id,
)


# ---------------------------------------------------------------------------
# Document ids
# ---------------------------------------------------------------------------


class TestDocumentId:
    def test_compose(self):
        assert compose_document_id("notion", "page-1") == "notion:page-1"

    def test_parse_simple(self):
        assert parse_document_id("notion:page-1") == ("notion", "page-1")

    @pytest.mark.parametrize(
        "source_id",
        ["a:b", "dir/file:v1.md", "c:/Users/me/file.md", "::", "", "x:y:z"],
    )
    def test_round_trip_with_delimiter_in_source_id(self, source_id):
        """Only the first ':' separates provider and source."""
        doc_id = compose_document_id("fs", source_id)
        assert parse_document_id(doc_id) == ("fs", source_id)

    def test_parse_without_delimiter_raises(self):
        with pytest.raises(ValueError, match="expected 'provider:source'"):
            parse_document_id("no-delimiter")

    def test_metadata_document_id(self):
        doc = make_doc("a:b", provider_id="p")
        assert doc.document_id == "p:a:b"


class TestExtractExtension:
    @pytest.mark.parametrize(
        "source_id, expected",
        [
            ("docs/guide.md", "md"),
            ("archive.tar.gz", "gz"),
            ("folder.d/README", None),
            ("no_extension", None),
            ("trailing.", None),
        ],
    )
    def test_extract(self, source_id, expected):
        assert extract_extension_from_source_id(source_id) == expected


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class TestModels:
    def test_metadata_is_frozen(self):
        doc = make_doc("a")
        with pytest.raises(ValidationError):
            doc.title = "changed"

    def test_metadata_extension_optional(self):
        doc = DocumentMetadata(
            provider_id="p",
            source_id="s",
            title="t",
            last_modified=BASE_TIME,
        )
        assert doc.file_extension is None

    def test_operation_type_values(self):
        assert [t.value for t in OperationType] == [
            "create",
            "update",
            "delete",
            "skip",
        ]
        assert OperationType("delete") is OperationType.DELETE


class TestSyncPlan:
    def test_from_operations_counts(self):
        ops = [
            SyncOperation(type=OperationType.CREATE, document_metadata=make_doc("a"), reason=""),
            SyncOperation(type=OperationType.CREATE, document_metadata=make_doc("b"), reason=""),
            SyncOperation(type=OperationType.SKIP, document_metadata=make_doc("c"), reason=""),
            SyncOperation(type=OperationType.DELETE, document_metadata=make_doc("d"), reason=""),
        ]
        plan = SyncPlan.from_operations(ops)
        assert plan.summary.total == 4
        assert plan.summary.create == 2
        assert plan.summary.update == 0
        assert plan.summary.skip == 1
        assert plan.summary.delete == 1
        assert plan.has_changes

    def test_by_type_keeps_order(self):
        ops = [
            SyncOperation(type=OperationType.CREATE, document_metadata=make_doc(s), reason="")
            for s in ("z", "a", "m")
        ]
        plan = SyncPlan.from_operations(ops)
        assert [op.document_id for op in plan.by_type(OperationType.CREATE)] == [
            "src:z",
            "src:a",
            "src:m",
        ]

    def test_only_skips_has_no_changes(self):
        plan = SyncPlan.from_operations(
            [SyncOperation(type=OperationType.SKIP, document_metadata=make_doc("a"), reason="")]
        )
        assert not plan.has_changes

    def test_empty_plan(self):
        plan = SyncPlan.from_operations([])
        assert plan.operations == ()
        assert plan.summary.total == 0
        assert not plan.has_changes


class TestReconcileResult:
    def test_success_without_failures(self):
        result = ReconcileResult(target_name="t", started_at="now")
        assert result.success
