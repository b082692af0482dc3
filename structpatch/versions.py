"""
structpatch.versions — Historical snapshots from a base and per-version diffs.

A version chain is a base document plus an ascending sequence of diff
records.  The snapshot at version v is the base folded through every
record with version ≤ v.

Comparing two versions ALWAYS reconstructs both endpoints and diffs them
afresh.  Concatenating the intermediate diffs is not equivalent: an
element added, removed and re-added across versions would show up as a
remove + add pair even when nothing changed net, and the intermediate
ops were computed against tree states that no longer exist.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

from .config import DiffConfig, ExclusionSet
from .core import Change, Value
from .diff import compute_diff
from .errors import VersionNotFoundError, VersionOrderError
from .formats import coerce_value
from .logging import get_logger
from .patch import apply_change_sequence

log = get_logger("versions")


@dataclass(frozen=True, slots=True)
class DiffRecord:
    """The changes that produced `version` from the version before it."""
    version: int
    changes: tuple[Change, ...]

    def __init__(self, version: int, changes: Iterable[Change]):
        object.__setattr__(self, 'version', version)
        object.__setattr__(self, 'changes', tuple(changes))


DiffChain = Sequence[Union[DiffRecord, Sequence[Change]]]


def as_records(diffs: DiffChain, start: int = 1) -> list[DiffRecord]:
    """
    Normalize a chain to DiffRecords.

    Bare change lists are numbered by position from `start`.  DiffRecords
    must be strictly ascending by version.

    Raises:
        VersionOrderError: versions repeat or go backwards.
    """
    records: list[DiffRecord] = []
    for position, item in enumerate(diffs, start=start):
        if isinstance(item, DiffRecord):
            record = item
        else:
            record = DiffRecord(position, item)
        if records and record.version <= records[-1].version:
            raise VersionOrderError(
                f"version {record.version} follows version {records[-1].version}"
            )
        records.append(record)
    return records


def _bounds(records: list[DiffRecord], base_version: Optional[int]) -> tuple[int, int]:
    if base_version is None:
        base_version = records[0].version - 1 if records else 0
    elif records and records[0].version <= base_version:
        raise VersionOrderError(
            f"version {records[0].version} is not after base version {base_version}"
        )
    return base_version, records[-1].version if records else base_version


def reconstruct(base, diffs: DiffChain, *, config: Optional[DiffConfig] = None) -> Value:
    """
    Fold `base` through every diff in ascending version order.

    Errors from the underlying apply propagate unchanged; there is no
    partial or best-effort result.
    """
    doc = coerce_value(base)
    for record in as_records(diffs):
        doc = apply_change_sequence(record.changes, doc, config=config)
    return doc


def snapshot_at(base, diffs: DiffChain, version: int, *,
                base_version: Optional[int] = None,
                config: Optional[DiffConfig] = None) -> Value:
    """
    The document as of `version`.

    `base` is the document at `base_version`.  Left out, the base is the
    version just before the first record (0 for an empty chain); given, an
    empty chain still answers for the base version itself and bare change
    lists are numbered from base_version + 1.

    Raises:
        VersionNotFoundError: `version` lies outside the chain.
        VersionOrderError: a record is not after the base version.
    """
    start = 1 if base_version is None else base_version + 1
    records = as_records(diffs, start)
    first, last = _bounds(records, base_version)
    if not first <= version <= last:
        raise VersionNotFoundError(version, first, last)
    return reconstruct(base, [r for r in records if r.version <= version], config=config)


def compare_versions(base, diffs: DiffChain, from_version: int, to_version: int,
                     exclusions: Union[ExclusionSet, Iterable[str], None] = None,
                     *, base_version: Optional[int] = None,
                     config: Optional[DiffConfig] = None) -> list[Change]:
    """
    Changes that turn the `from_version` snapshot into the `to_version` one.

    Both snapshots are reconstructed independently and diffed with
    compute_diff; the result is minimal for the net difference.
    """
    start = 1 if base_version is None else base_version + 1
    records = as_records(diffs, start)
    old = snapshot_at(base, records, from_version, base_version=base_version, config=config)
    new = snapshot_at(base, records, to_version, base_version=base_version, config=config)
    changes = compute_diff(old, new, exclusions, config=config)
    log.debug("versions_compared", from_version=from_version,
              to_version=to_version, changes=len(changes))
    return changes
