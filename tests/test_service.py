"""Tests for structpatch.service — optimistic updates over the collaborator contracts."""

import pytest

from conftest import (
    ListSink, MemoryDiffRecordStore, MemoryDocumentStore, RacingDocumentStore,
    equivalent, toys_doc,
)

from structpatch.config import ServiceConfig
from structpatch.core import Change, Op, Scalar
from structpatch.diff import compute_diff
from structpatch.errors import ConflictError, DuplicateIdentityError, VersionNotFoundError
from structpatch.formats import from_python
from structpatch.protocols import DiffRecordStore, DocumentStore, NotificationSink
from structpatch.service import diff_stored_versions, update_document
from structpatch.versions import DiffRecord

NO_WAIT = ServiceConfig(max_attempts=3, backoff_max=0.0)


def _rename(name):
    return lambda doc: doc.with_field("name", Scalar(name))


class TestProtocols:

    def test_fakes_satisfy_the_contracts(self):
        assert isinstance(MemoryDocumentStore(), DocumentStore)
        assert isinstance(MemoryDiffRecordStore(), DiffRecordStore)
        assert isinstance(ListSink(), NotificationSink)

    def test_missing_method(self):
        assert not isinstance(ListSink(), DocumentStore)


class TestUpdateDocument:

    def test_saves_appends_and_publishes(self, documents, records, sink, alice_old, alice_new):
        documents.put("doc1", alice_old)
        result = update_document("doc1", lambda doc: alice_new,
                                 documents=documents, records=records, sink=sink)

        expected = compute_diff(alice_old, alice_new)
        assert result.version == 2
        assert result.changes == expected
        assert result.attempts == 1
        assert documents.docs["doc1"] == (from_python(alice_new), 2)
        assert records.records["doc1"] == [DiffRecord(2, expected)]
        assert sink.published == [("doc1", expected)]

    def test_mutate_receives_a_value(self, documents, records, alice_old):
        documents.put("doc1", alice_old)
        result = update_document("doc1", _rename("Bob"), documents=documents, records=records)
        assert result.changes == [Change(Op.REPLACE, ("name",), Scalar("Bob"))]

    def test_sink_is_optional(self, documents, records, alice_old):
        documents.put("doc1", alice_old)
        result = update_document("doc1", _rename("Bob"), documents=documents, records=records)
        assert result.version == 2

    def test_no_change_saves_nothing(self, documents, records, sink, alice_old):
        documents.put("doc1", alice_old)
        result = update_document("doc1", lambda doc: doc,
                                 documents=documents, records=records, sink=sink)
        assert result.version == 1
        assert result.changes == []
        assert documents.saves == 0
        assert records.records == {}
        assert sink.published == []

    def test_excluded_change_is_saved_but_not_published(self, documents, records, sink):
        documents.put("doc1", {"name": "A", "updatedAt": 1})
        result = update_document(
            "doc1", lambda doc: {"name": "A", "updatedAt": 2},
            documents=documents, records=records, sink=sink, exclusions=["/updatedAt"],
        )
        assert result.version == 2
        assert result.changes == []
        assert documents.saves == 1
        assert documents.docs["doc1"] == (from_python({"name": "A", "updatedAt": 2}), 2)
        assert records.records["doc1"] == [DiffRecord(2, [])]
        assert sink.published == []

    def test_excluded_change_keeps_the_chain_readable(self, documents, records):
        base = {"name": "A", "updatedAt": 1}
        documents.put("doc1", base, version=0)
        update_document("doc1", lambda doc: {"name": "A", "updatedAt": 2},
                        documents=documents, records=records, exclusions=["/updatedAt"])
        update_document("doc1", lambda doc: {"name": "B", "updatedAt": 3},
                        documents=documents, records=records, exclusions=["/updatedAt"])

        assert diff_stored_versions("doc1", base, 0, 1, records=records,
                                    exclusions=["/updatedAt"]) == []
        assert diff_stored_versions("doc1", base, 1, 2, records=records,
                                    exclusions=["/updatedAt"]) == [
            Change(Op.REPLACE, ("name",), Scalar("B")),
        ]

    def test_engine_errors_are_not_retried(self, documents, records):
        documents.put("doc1", {"toys": []})
        with pytest.raises(DuplicateIdentityError):
            update_document("doc1", lambda doc: {"toys": [{"id": "a"}, {"id": "a"}]},
                            documents=documents, records=records,
                            service_config=NO_WAIT)
        assert documents.saves == 0


class TestConflicts:

    def test_retry_recomputes_from_fresh_document(self, records, sink, alice_old):
        documents = RacingDocumentStore(
            competing=lambda doc: toys_doc(("toy1", "Car"), ("toy2", "Doll"), ("toy9", "Kite")),
        )
        documents.put("doc1", alice_old)

        result = update_document("doc1", _rename("Bob"), documents=documents,
                                 records=records, sink=sink, service_config=NO_WAIT)

        assert result.attempts == 2
        assert result.version == 3
        assert result.changes == [Change(Op.REPLACE, ("name",), Scalar("Bob"))]
        stored, _ = documents.docs["doc1"]
        assert equivalent(stored, toys_doc(("toy1", "Car"), ("toy2", "Doll"),
                                           ("toy9", "Kite"), name="Bob"))
        assert [r.version for r in records.records["doc1"]] == [3]
        assert len(sink.published) == 1

    def test_gives_up_after_max_attempts(self, records, sink, alice_old):
        documents = RacingDocumentStore(competing=lambda doc: doc, races=10)
        documents.put("doc1", alice_old)

        with pytest.raises(ConflictError) as exc_info:
            update_document("doc1", _rename("Bob"), documents=documents,
                            records=records, sink=sink, service_config=NO_WAIT)

        assert exc_info.value.doc_id == "doc1"
        assert documents.races == 10 - NO_WAIT.max_attempts
        assert documents.saves == 0
        assert records.records == {}
        assert sink.published == []


class TestStoredVersions:

    def test_diff_between_stored_versions(self, documents, records):
        base = toys_doc(("toy1", "Car"), ("toy2", "Doll"))
        documents.put("doc1", base, version=0)
        update_document("doc1", lambda doc: toys_doc(("toy1", "Bus"), ("toy2", "Doll")),
                        documents=documents, records=records)
        update_document("doc1", lambda doc: toys_doc(("toy1", "Bus")),
                        documents=documents, records=records)

        final, version = documents.docs["doc1"]
        assert version == 2
        assert diff_stored_versions("doc1", base, 0, 2, records=records) == \
            compute_diff(base, final)
        assert diff_stored_versions("doc1", base, 2, 1, records=records) == [
            Change(Op.ADD, ("toys", "toy2"), from_python({"id": "toy2", "name": "Doll"}),
                   ("toy2",)),
        ]

    def test_base_version_offset(self, documents, records):
        base = {"n": 1}
        documents.put("doc1", base, version=5)
        update_document("doc1", lambda doc: {"n": 2}, documents=documents, records=records)
        update_document("doc1", lambda doc: {"n": 3}, documents=documents, records=records)

        assert diff_stored_versions("doc1", base, 5, 7, records=records, base_version=5) == [
            Change(Op.REPLACE, ("n",), Scalar(3)),
        ]
        assert diff_stored_versions("doc1", base, 6, 7, records=records, base_version=5) == [
            Change(Op.REPLACE, ("n",), Scalar(3)),
        ]

    def test_no_records_after_base_version(self, records):
        base = {"n": 1}
        assert diff_stored_versions("doc1", base, 5, 5, records=records, base_version=5) == []

    def test_version_after_empty_tail(self, records):
        with pytest.raises(VersionNotFoundError):
            diff_stored_versions("doc1", {"n": 1}, 5, 6, records=records, base_version=5)
