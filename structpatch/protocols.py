"""Collaborator contracts consumed by the update service.

The engine itself never calls any of these.  They describe what the
layer that invokes the engine needs from persistence and publication.
Implementations satisfy them structurally; no inheritance required::

    class MemoryStore:
        def load(self, doc_id): ...
        def save(self, doc_id, value, expected_version): ...

    assert isinstance(MemoryStore(), DocumentStore)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from structpatch.core import Change, Value
    from structpatch.versions import DiffRecord


@runtime_checkable
class DocumentStore(Protocol):
    """Current documents with an optimistic version counter.

    ``save`` must succeed at most once per expected prior version and raise
    ``structpatch.errors.ConflictError`` when the stored version differs.
    """

    def load(self, doc_id: str) -> tuple[Value, int]: ...

    def save(self, doc_id: str, value: Value, expected_version: int) -> int: ...


@runtime_checkable
class DiffRecordStore(Protocol):
    """Per-version change lists, the version chain of each document."""

    def append(self, doc_id: str, version: int, changes: list[Change]) -> None: ...

    def load_range(self, doc_id: str, from_version: int,
                   to_version: int) -> list[DiffRecord]: ...


@runtime_checkable
class NotificationSink(Protocol):
    """Receives the change list of every successful update."""

    def publish(self, doc_id: str, changes: list[Change]) -> None: ...
