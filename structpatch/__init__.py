"""
structpatch
===========

Identity-aware structural diff / patch for JSON-like documents.

    old = {"id": "1", "toys": [{"id": "toy1", "name": "Car"},
                               {"id": "toy2", "name": "Doll"}]}
    new = {"id": "1", "toys": [{"id": "toy2", "name": "Robot"}]}

    compute_diff(old, new)
      → [REMOVE /toys/toy1 ids=['toy1'],
         REPLACE /toys/toy2/name: Scalar('Robot') ids=['toy2']]

Array elements that carry an ``id`` are addressed by that id, not by
position, so:

  • Reordering an identifiable array is not a change.
  • A change list computed against one instance of a document applies
    to any other instance whose arrays are ordered differently.
  • Any historical version can be rebuilt from a base document and the
    per-version change lists, and two versions can be compared by
    rebuilding both.

Every engine operation is pure: values are immutable and every call
returns new trees.
"""

from structpatch.config import (
    DiffConfig, ExclusionSet, IdentityPolicy, ServiceConfig, load_config,
    load_service_config,
)
from structpatch.core import (
    # Types
    Value,
    Scalar,
    Array,
    Object,
    Change,
    Op,
    # Identity
    Identifiable,
    Positional,
    extract_identity,
    identity_of,
)
from structpatch.diff import compute_diff
from structpatch.errors import (
    StructPatchError,
    DuplicateIdentityError,
    MissingIdentityError,
    PathNotFoundError,
    IdentityNotFoundError,
    TypeMismatchError,
    UnsupportedOperationError,
    MalformedChangeError,
    VersionOrderError,
    VersionNotFoundError,
    ConflictError,
)
from structpatch.formats import (
    from_json, to_json, from_python, to_python,
    change_to_dict, change_from_dict, changes_to_json, changes_from_json,
    encode_path, decode_path,
)
from structpatch.logging import get_logger, setup_logging
from structpatch.normalize import Keyed, normalize, denormalize, prune
from structpatch.patch import apply_change, apply_change_sequence
from structpatch.protocols import DiffRecordStore, DocumentStore, NotificationSink
from structpatch.service import UpdateResult, diff_stored_versions, update_document
from structpatch.versions import DiffRecord, reconstruct, snapshot_at, compare_versions

__version__ = "0.1.0"
__all__ = [
    "Value", "Scalar", "Array", "Object", "Change", "Op",
    "Identifiable", "Positional", "extract_identity", "identity_of",
    "DiffConfig", "ExclusionSet", "IdentityPolicy", "ServiceConfig", "load_config",
    "load_service_config", "setup_logging", "get_logger",
    "normalize", "denormalize", "prune", "Keyed",
    "compute_diff", "apply_change", "apply_change_sequence",
    "DiffRecord", "reconstruct", "snapshot_at", "compare_versions",
    "DocumentStore", "DiffRecordStore", "NotificationSink",
    "UpdateResult", "update_document", "diff_stored_versions",
    "from_json", "to_json", "from_python", "to_python",
    "change_to_dict", "change_from_dict", "changes_to_json", "changes_from_json",
    "encode_path", "decode_path",
    "StructPatchError", "DuplicateIdentityError", "MissingIdentityError",
    "PathNotFoundError", "IdentityNotFoundError", "TypeMismatchError",
    "UnsupportedOperationError", "MalformedChangeError",
    "VersionOrderError", "VersionNotFoundError", "ConflictError",
]
