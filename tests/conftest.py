"""Shared fixtures: sample documents and in-memory collaborator fakes."""

import os
import sys

import pytest

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from structpatch.core import Array, Change, Object, Value
from structpatch.errors import ConflictError
from structpatch.formats import coerce_value
from structpatch.normalize import normalize
from structpatch.versions import DiffRecord


def toys_doc(*toys, name="Alice"):
    """{"id": "1", "name": ..., "toys": [{"id": ..., "name": ...}, ...]}"""
    return {
        "id": "1",
        "name": name,
        "toys": [{"id": tid, "name": tname} for tid, tname in toys],
    }


def equivalent(a, b, exclusions=None) -> bool:
    """Equal up to the order of identifiable arrays."""
    return normalize(coerce_value(a), exclusions) == normalize(coerce_value(b), exclusions)


def reverse_arrays(value: Value) -> Value:
    """Reverse every array in the tree (a permuted instance of the same document)."""
    if isinstance(value, Object):
        return Object({k: reverse_arrays(v) for k, v in value.entries.items()})
    if isinstance(value, Array):
        return Array(tuple(reverse_arrays(item) for item in reversed(value.items)))
    return value


@pytest.fixture
def alice_old():
    return toys_doc(("toy1", "Car"), ("toy2", "Doll"))


@pytest.fixture
def alice_new():
    return toys_doc(("toy2", "Robot"))


# ═══════════════════════════════════════════════════════════════════
#  COLLABORATOR FAKES
# ═══════════════════════════════════════════════════════════════════

class MemoryDocumentStore:
    """DocumentStore keeping (value, version) per id."""

    def __init__(self):
        self.docs: dict[str, tuple[Value, int]] = {}
        self.saves = 0

    def put(self, doc_id: str, value, version: int = 1) -> None:
        self.docs[doc_id] = (coerce_value(value), version)

    def load(self, doc_id: str) -> tuple[Value, int]:
        return self.docs[doc_id]

    def save(self, doc_id: str, value: Value, expected_version: int) -> int:
        _, current = self.docs[doc_id]
        if current != expected_version:
            raise ConflictError(doc_id, expected_version, current)
        self.saves += 1
        self.docs[doc_id] = (value, current + 1)
        return current + 1


class RacingDocumentStore(MemoryDocumentStore):
    """
    Lets a concurrent writer slip in before the next `races` saves.

    The writer applies `competing` to the stored document and bumps the
    version, so the pending save conflicts.
    """

    def __init__(self, competing, races: int = 1):
        super().__init__()
        self.competing = competing
        self.races = races

    def save(self, doc_id: str, value: Value, expected_version: int) -> int:
        if self.races > 0:
            self.races -= 1
            doc, version = self.docs[doc_id]
            self.docs[doc_id] = (coerce_value(self.competing(doc)), version + 1)
        return super().save(doc_id, value, expected_version)


class MemoryDiffRecordStore:
    """DiffRecordStore keeping an ascending list of records per id."""

    def __init__(self):
        self.records: dict[str, list[DiffRecord]] = {}

    def append(self, doc_id: str, version: int, changes: list[Change]) -> None:
        self.records.setdefault(doc_id, []).append(DiffRecord(version, changes))

    def load_range(self, doc_id: str, from_version: int, to_version: int) -> list[DiffRecord]:
        return [r for r in self.records.get(doc_id, [])
                if from_version <= r.version <= to_version]


class ListSink:
    """NotificationSink collecting every published payload."""

    def __init__(self):
        self.published: list[tuple[str, list[Change]]] = []

    def publish(self, doc_id: str, changes: list[Change]) -> None:
        self.published.append((doc_id, list(changes)))


@pytest.fixture
def documents():
    return MemoryDocumentStore()


@pytest.fixture
def records():
    return MemoryDiffRecordStore()


@pytest.fixture
def sink():
    return ListSink()
