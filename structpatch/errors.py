"""
structpatch.errors — Failure kinds raised by the diff/patch engine.

Every error is a local failure of a single call.  Nothing is retried or
partially applied inside the engine; the caller decides what to do.

Where a failure concerns a location in a document, the exception carries
the offending path (a tuple of segments) as ``.path``.
"""

from typing import Optional


class StructPatchError(Exception):
    """Base class for everything the engine raises on purpose."""


class _PathError(StructPatchError):
    def __init__(self, message: str, path: tuple = ()):
        super().__init__(message)
        self.path = tuple(path)


class DuplicateIdentityError(_PathError, ValueError):
    """Two sibling array elements share the same identity token."""

    def __init__(self, token: str, path: tuple = ()):
        where = "/".join(str(p) for p in path) or "(root)"
        super().__init__(f"duplicate identity {token!r} in array at /{where}", path)
        self.token = token


class MissingIdentityError(_PathError, ValueError):
    """An array had to be identifiable but one of its elements has no identity."""

    def __init__(self, index: int, path: tuple = ()):
        where = "/".join(str(p) for p in path) or "(root)"
        super().__init__(f"element {index} of array at /{where} has no identity", path)
        self.index = index


class PathNotFoundError(_PathError, LookupError):
    """An intermediate path segment does not exist in the target."""


class IdentityNotFoundError(PathNotFoundError):
    """An identity token has no matching sibling in the target array."""

    def __init__(self, token: str, path: tuple = ()):
        where = "/".join(str(p) for p in path) or "(root)"
        super().__init__(f"no element with identity {token!r} at /{where}", path)
        self.token = token


class TypeMismatchError(_PathError, TypeError):
    """The node an operation lands on is of the wrong kind for that operation."""


class UnsupportedOperationError(StructPatchError, ValueError):
    """The change's op is not one of add / remove / replace."""

    def __init__(self, op):
        super().__init__(f"unsupported operation: {op!r}")
        self.op = op


class MalformedChangeError(StructPatchError, ValueError):
    """A change (or its wire payload) is structurally invalid."""


class VersionOrderError(StructPatchError, ValueError):
    """Diff records were not supplied in strictly ascending version order."""


class VersionNotFoundError(StructPatchError, LookupError):
    """A requested version lies outside the chain."""

    def __init__(self, version: int, first: int, last: int):
        super().__init__(f"version {version} is outside the chain [{first}, {last}]")
        self.version = version


class ConflictError(StructPatchError):
    """
    A document store refused a save because the stored version moved on.

    Raised by DocumentStore implementations, never by the engine itself.
    """

    def __init__(self, doc_id: str, expected_version: int,
                 actual_version: Optional[int] = None):
        msg = f"version conflict on {doc_id!r}: expected {expected_version}"
        if actual_version is not None:
            msg += f", found {actual_version}"
        super().__init__(msg)
        self.doc_id = doc_id
        self.expected_version = expected_version
        self.actual_version = actual_version
