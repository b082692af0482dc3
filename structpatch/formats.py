"""
structpatch.formats — Convert between real-world data and engine types.

Supported conversions:
    • Python objects (dict, list, str, int, float, bool, None) ↔ Value
    • JSON strings ↔ Value
    • Change ↔ wire dict / JSON  {"op", "path", "value"?, "itemIds"}
    • Path tuples ↔ JSON Pointer strings (RFC 6901)
"""

import json
from typing import Any, Iterable

from .core import Array, Change, Object, Op, Scalar, Value
from .errors import MalformedChangeError, UnsupportedOperationError


# ═══════════════════════════════════════════════════════════════════
#  PYTHON OBJECTS ↔ VALUES
# ═══════════════════════════════════════════════════════════════════

def from_python(obj: Any) -> Value:
    """
    Convert a Python object to a document value.

    Mapping:
        None            → Scalar(None)
        bool            → Scalar(bool)
        int/float/str   → Scalar(...)
        list/tuple      → Array(...)
        dict            → Object(...)   (keys must be strings)

    Nested structures are converted recursively.

    Raises:
        TypeError: for anything that has no JSON counterpart.
    """
    if obj is None:
        return Scalar(None)
    if isinstance(obj, bool):  # Must check before int (bool is subclass of int)
        return Scalar(obj)
    if isinstance(obj, (int, float, str)):
        return Scalar(obj)
    if isinstance(obj, (list, tuple)):
        return Array(tuple(from_python(item) for item in obj))
    if isinstance(obj, dict):
        entries = {}
        for k, v in obj.items():
            if not isinstance(k, str):
                raise TypeError(f"Object keys must be strings, got {type(k)!r}")
            entries[k] = from_python(v)
        return Object(entries)

    raise TypeError(f"Unsupported document value type: {type(obj)!r}")


def to_python(val: Value) -> Any:
    """
    Convert a document value back to a plain Python object.

    Inverse of from_python:
        to_python(from_python(obj)) == obj
    for JSON-compatible objects (tuples come back as lists).
    """
    if isinstance(val, Scalar):
        return val.val
    if isinstance(val, Array):
        return [to_python(item) for item in val.items]
    if isinstance(val, Object):
        return {k: to_python(v) for k, v in val.entries.items()}
    raise TypeError(f"Unknown Value type: {type(val)}")


def coerce_value(obj: Any) -> Value:
    """Return `obj` unchanged if it is already a Value, else convert it."""
    if isinstance(obj, Value):
        return obj
    return from_python(obj)


# ═══════════════════════════════════════════════════════════════════
#  JSON STRINGS ↔ VALUES
# ═══════════════════════════════════════════════════════════════════

def from_json(text: str) -> Value:
    """Parse a JSON string into a document value."""
    return from_python(json.loads(text))


def to_json(val: Value, **kwargs) -> str:
    """Convert a document value to a JSON string."""
    return json.dumps(to_python(val), **kwargs)


# ═══════════════════════════════════════════════════════════════════
#  JSON POINTER (RFC 6901)
# ═══════════════════════════════════════════════════════════════════

def _escape(segment: str) -> str:
    # ~ must be escaped first
    return segment.replace("~", "~0").replace("/", "~1")


def _unescape(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


def encode_path(path: Iterable[str]) -> str:
    """("toys", "toy2", "name") → "/toys/toy2/name";  () → "" (the root)."""
    return "".join("/" + _escape(str(p)) for p in path)


def decode_path(pointer: str) -> tuple[str, ...]:
    """
    Inverse of encode_path.

    Raises:
        MalformedChangeError: `pointer` is neither empty nor starts with "/".
    """
    if pointer == "":
        return ()
    if not pointer.startswith("/"):
        raise MalformedChangeError(f"JSON Pointer must start with '/': {pointer!r}")
    return tuple(_unescape(t) for t in pointer[1:].split("/"))


# ═══════════════════════════════════════════════════════════════════
#  CHANGE WIRE FORMAT
# ═══════════════════════════════════════════════════════════════════

def change_to_dict(change: Change) -> dict:
    """Wire form of a change.  "value" is present only for add/replace."""
    out: dict[str, Any] = {
        "op": str(change.op),
        "path": encode_path(change.path),
    }
    if change.op != Op.REMOVE:
        out["value"] = to_python(change.value) if change.value is not None else None
    out["itemIds"] = list(change.item_ids)
    return out


def change_from_dict(data: dict) -> Change:
    """
    Parse one change from its wire form.

    Raises:
        UnsupportedOperationError: "op" is not add / remove / replace.
        MalformedChangeError: a required member is missing or mistyped.
    """
    if not isinstance(data, dict):
        raise MalformedChangeError(f"change must be an object, got {type(data).__name__}")
    if "op" not in data or "path" not in data:
        raise MalformedChangeError(f"change needs 'op' and 'path': {data!r}")

    try:
        op = Op(data["op"])
    except ValueError:
        raise UnsupportedOperationError(data["op"]) from None

    if not isinstance(data["path"], str):
        raise MalformedChangeError(f"path must be a string, got {data['path']!r}")

    item_ids = data.get("itemIds", [])
    if not isinstance(item_ids, list) or not all(isinstance(t, str) for t in item_ids):
        raise MalformedChangeError(f"itemIds must be a list of strings, got {item_ids!r}")

    value = None
    if op != Op.REMOVE:
        if "value" not in data:
            raise MalformedChangeError(f"{op} requires a value: {data!r}")
        value = from_python(data["value"])

    return Change(op=op, path=decode_path(data["path"]), value=value,
                  item_ids=tuple(item_ids))


def changes_to_json(changes: Iterable[Change], **kwargs) -> str:
    """Serialize a change sequence (e.g. a notification payload) to JSON."""
    return json.dumps([change_to_dict(c) for c in changes], **kwargs)


def changes_from_json(text: str) -> list[Change]:
    """Parse a JSON array of wire changes, preserving order."""
    data = json.loads(text)
    if not isinstance(data, list):
        raise MalformedChangeError("change sequence must be a JSON array")
    return [change_from_dict(item) for item in data]
