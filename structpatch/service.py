"""
structpatch.service — The layer that drives the engine against persistence.

    load ─▶ mutate ─▶ compute_diff ─▶ save(expected_version) ─▶ append ─▶ publish
      ▲                                   │
      └────────── ConflictError ──────────┘   (whole cycle retried)

The engine is pure and knows nothing about versions or retries.  The
document store enforces at most one successful save per expected prior
version; when it refuses, the update is recomputed from the freshly
loaded document, never from a stale diff.  Retries are driven by
tenacity with jittered exponential backoff; once max_attempts is exhausted
the last ConflictError propagates.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Union

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from .config import DiffConfig, ExclusionSet, ServiceConfig
from .core import Change, Value
from .diff import compute_diff
from .errors import ConflictError
from .formats import coerce_value
from .logging import get_logger
from .protocols import DiffRecordStore, DocumentStore, NotificationSink
from .versions import compare_versions

log = get_logger("service")


@dataclass(frozen=True, slots=True)
class UpdateResult:
    """Outcome of update_document.

    Attributes:
        version: The stored version after the update (unchanged when the
            mutation left the document equal).
        changes: The changes that were appended and published; empty when
            only excluded fields changed.
        attempts: How many load → save cycles it took.
    """

    version: int
    changes: list[Change] = field(default_factory=list)
    attempts: int = 1


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    log.warning(
        "update_conflict",
        doc_id=getattr(exc, "doc_id", None),
        expected_version=getattr(exc, "expected_version", None),
        attempt=retry_state.attempt_number,
    )


def update_document(
    doc_id: str,
    mutate: Callable[[Value], Any],
    *,
    documents: DocumentStore,
    records: DiffRecordStore,
    sink: Optional[NotificationSink] = None,
    exclusions: Union[ExclusionSet, Iterable[str], None] = None,
    config: Optional[DiffConfig] = None,
    service_config: Optional[ServiceConfig] = None,
) -> UpdateResult:
    """
    Apply `mutate` to the stored document with optimistic concurrency.

    `mutate` receives the current document as a Value and returns the
    desired document (a Value or plain JSON-like data).  It may be called
    once per attempt, so it must not have side effects of its own.

    A mutation that leaves the document equal saves, appends and
    publishes nothing.  One that only touches excluded fields is still
    saved, under an empty diff record so the chain stays gapless, but
    nothing is published.

    Raises:
        ConflictError: every attempt lost the race.
        StructPatchError: from compute_diff, surfaced on the first attempt.
    """
    service_config = service_config or ServiceConfig()
    retrying = Retrying(
        retry=retry_if_exception_type(ConflictError),
        stop=stop_after_attempt(service_config.max_attempts),
        wait=wait_random_exponential(max=service_config.backoff_max),
        before_sleep=_log_retry,
        reraise=True,
    )

    for attempt in retrying:
        with attempt:
            current, version = documents.load(doc_id)
            current = coerce_value(current)
            desired = coerce_value(mutate(current))

            changes = compute_diff(current, desired, exclusions, config=config)
            attempts = attempt.retry_state.attempt_number
            if desired == current:
                log.info("update_skipped", doc_id=doc_id, version=version)
                return UpdateResult(version=version, changes=[], attempts=attempts)

            new_version = documents.save(doc_id, desired, version)

    records.append(doc_id, new_version, changes)
    if changes and sink is not None:
        sink.publish(doc_id, changes)
    log.info("document_updated", doc_id=doc_id, version=new_version,
             changes=len(changes), attempts=attempts)
    return UpdateResult(version=new_version, changes=changes, attempts=attempts)


def diff_stored_versions(
    doc_id: str,
    base: Any,
    from_version: int,
    to_version: int,
    *,
    records: DiffRecordStore,
    base_version: int = 0,
    exclusions: Union[ExclusionSet, Iterable[str], None] = None,
    config: Optional[DiffConfig] = None,
) -> list[Change]:
    """
    Changes between two stored versions of a document.

    `base` is the document at `base_version`; the records after it are
    loaded from the store and both endpoints are reconstructed.
    """
    chain = records.load_range(doc_id, base_version + 1, max(from_version, to_version))
    return compare_versions(base, chain, from_version, to_version, exclusions,
                            base_version=base_version, config=config)
