"""
structpatch.core — Document values and element identity
========================================================

THE MODEL
─────────

A document is a tree built from three kinds of node:

    Scalar(v)                   v is None, bool, int, float or str
    Array(v₁, ..., vₙ)          ORDERED sequence of values
    Object({k₁:v₁, ..., kₙ:vₙ}) UNORDERED mapping of field name → value

Every node is immutable.  Operations never modify a tree in place; they
build a new one and share every untouched subtree with the input
(structural copy-on-write).

Equality is structural:

    • Object equality ignores field order.
    • Array equality respects element order.
    • Scalar(True) != Scalar(1)     (bool is never a number here, even
                                     though Python says True == 1)
    • Scalar(1) == Scalar(1.0)      (JSON has one number type)


IDENTITY
────────

An Object that is a direct element of an Array may carry a reserved
string field (``id`` by default).  Its value is the element's IDENTITY
TOKEN.

An array is IDENTIFIABLE when every element is an Object with a string
identity and no two siblings share one.  Identifiable arrays are diffed
and patched by identity, so reordering them is not a change.  Any other
array is POSITIONAL and is handled by index, which is only correct when
nobody reorders it.  That limitation is deliberate and documented, not
papered over.

The empty array is identifiable (vacuously every element has an id).
"""

from dataclasses import dataclass
from enum import StrEnum, auto
from typing import Any, Optional, Union

from .errors import DuplicateIdentityError, MissingIdentityError


DEFAULT_IDENTITY_FIELD = "id"


# ═══════════════════════════════════════════════════════════════════
#  VALUE TYPES
# ═══════════════════════════════════════════════════════════════════

class Value:
    """Base class for document values.  Not instantiated directly."""
    __slots__ = ()


@dataclass(frozen=True, slots=True, eq=False)
class Scalar(Value):
    """
    A leaf value: string, number, bool or null.

    Examples:
        Scalar("hello")
        Scalar(42)
        Scalar(True)
        Scalar(None)
    """
    val: Any

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Scalar):
            return NotImplemented
        a, b = self.val, other.val
        # bool is a subclass of int; keep the two apart.
        if (type(a) is bool) != (type(b) is bool):
            return False
        return a == b

    def __hash__(self) -> int:
        return hash((type(self.val) is bool, self.val))

    def __repr__(self) -> str:
        return f"Scalar({self.val!r})"


@dataclass(frozen=True, slots=True)
class Array(Value):
    """
    An ordered sequence of values.

    Examples:
        Array((Scalar(1), Scalar(2)))
        Array((Object({"id": Scalar("a")}),))
    """
    items: tuple[Value, ...]

    def __len__(self) -> int:
        return len(self.items)

    def with_item(self, index: int, value: Value) -> "Array":
        items = list(self.items)
        items[index] = value
        return Array(tuple(items))

    def without_item(self, index: int) -> "Array":
        return Array(self.items[:index] + self.items[index + 1:])

    def inserted(self, index: int, value: Value) -> "Array":
        return Array(self.items[:index] + (value,) + self.items[index:])

    def __repr__(self) -> str:
        if len(self.items) <= 5:
            return f"Array({list(self.items)})"
        return f"Array([{self.items[0]!r}, ..., {self.items[-1]!r}] len={len(self.items)})"


@dataclass(frozen=True, slots=True)
class Object(Value):
    """
    An UNORDERED mapping of field names to values.

    Field order is kept for display and for round-tripping to JSON, but
    it never takes part in equality.

    Examples:
        Object({"name": Scalar("Alice"), "age": Scalar(30)})
    """
    entries: dict[str, Value]

    def __init__(self, entries: dict[str, Value]):
        object.__setattr__(self, 'entries', dict(entries))

    def __hash__(self):
        return hash(frozenset(self.entries.items()))

    def get(self, key: str) -> Optional[Value]:
        return self.entries.get(key)

    def with_field(self, key: str, value: Value) -> "Object":
        entries = dict(self.entries)
        entries[key] = value
        return Object(entries)

    def without_field(self, key: str) -> "Object":
        entries = dict(self.entries)
        del entries[key]
        return Object(entries)

    def __repr__(self) -> str:
        if len(self.entries) <= 3:
            return f"Object({self.entries})"
        return f"Object({{...}} len={len(self.entries)})"


# ═══════════════════════════════════════════════════════════════════
#  CHANGE
# ═══════════════════════════════════════════════════════════════════

class Op(StrEnum):
    """Kinds of change.  Values are the wire names."""
    ADD = auto()
    REMOVE = auto()
    REPLACE = auto()


APPEND = "-"


@dataclass(frozen=True, slots=True)
class Change:
    """
    One recorded mutation.

    path segments are field names, identity tokens, numeric indices (as
    strings) or "-" for append.  item_ids holds one token per array
    boundary that was resolved by identity, in path order.

    Examples:
        Change(Op.REMOVE, ("toys", "toy1"), item_ids=("toy1",))
        Change(Op.REPLACE, ("toys", "toy2", "name"), Scalar("Robot"), ("toy2",))
    """
    op: Op
    path: tuple[str, ...]
    value: Optional[Value] = None
    item_ids: tuple[str, ...] = ()

    def __repr__(self) -> str:
        path_str = "/" + "/".join(self.path)
        ids = f" ids={list(self.item_ids)}" if self.item_ids else ""
        if self.op == Op.REMOVE:
            return f"REMOVE {path_str}{ids}"
        return f"{str(self.op).upper()} {path_str}: {self.value!r}{ids}"


# ═══════════════════════════════════════════════════════════════════
#  IDENTITY EXTRACTION
# ═══════════════════════════════════════════════════════════════════

class IdentityPolicy(StrEnum):
    """
    How arrays are classified as identifiable or positional.

    - AUTO:       identifiable when every element carries a unique identity,
                  positional otherwise.
    - REQUIRED:   every array must be identifiable; an element without an
                  identity raises MissingIdentityError.
    - POSITIONAL: every array is positional (identities are ignored).
    """

    AUTO = auto()
    REQUIRED = auto()
    POSITIONAL = auto()


@dataclass(frozen=True, slots=True)
class Identifiable:
    """Array whose elements are addressed by identity token, in array order."""
    index: dict[str, Object]


@dataclass(frozen=True, slots=True)
class Positional:
    """Array whose elements are addressed by index."""


IdentityMode = Union[Identifiable, Positional]

_POSITIONAL = Positional()


def identity_of(value: Value, field: str = DEFAULT_IDENTITY_FIELD) -> Optional[str]:
    """Return the identity token of an array element, or None if it has none."""
    if not isinstance(value, Object):
        return None
    ident = value.entries.get(field)
    if isinstance(ident, Scalar) and isinstance(ident.val, str):
        return ident.val
    return None


def extract_identity(
    array: Array,
    identity_field: str = DEFAULT_IDENTITY_FIELD,
    policy: IdentityPolicy = IdentityPolicy.AUTO,
    path: tuple = (),
) -> IdentityMode:
    """
    Classify an array as Identifiable or Positional.

    `path` is only used to make error messages point somewhere useful.

    Raises:
        MissingIdentityError: policy is REQUIRED and an element has no identity.
        DuplicateIdentityError: two elements share an identity token.
    """
    if policy == IdentityPolicy.POSITIONAL:
        return _POSITIONAL

    index: dict[str, Object] = {}
    tokens = []
    for i, item in enumerate(array.items):
        token = identity_of(item, identity_field)
        if token is None:
            if policy == IdentityPolicy.REQUIRED:
                raise MissingIdentityError(i, path)
            return _POSITIONAL
        tokens.append((token, item))

    for token, item in tokens:
        if token in index:
            raise DuplicateIdentityError(token, path)
        index[token] = item

    return Identifiable(index)


def find_identity(array: Array, token: str,
                  identity_field: str = DEFAULT_IDENTITY_FIELD) -> Optional[int]:
    """Index of the element whose identity equals `token`, or None."""
    for i, item in enumerate(array.items):
        if identity_of(item, identity_field) == token:
            return i
    return None


def has_identities(array: Array, identity_field: str = DEFAULT_IDENTITY_FIELD) -> bool:
    """True when the array is non-empty and every element carries an identity."""
    return bool(array.items) and all(
        identity_of(item, identity_field) is not None for item in array.items
    )
