"""
structpatch.patch — Apply changes to a concrete document instance.

A Change is LOGICAL: its path names identity tokens, not positions.  The
target it is applied to may order its identifiable arrays differently
from the document the change was computed on, so every array boundary
is resolved against the target's actual layout.

RESOLUTION (walking change.path through the target)
───────────────────────────────────────────────────

    Object  segment is a field name.  Missing → PathNotFoundError,
            unless this is the terminal segment of an add.

    Array   if the next item_ids token equals the segment, the element
            is found by identity (no match → IdentityNotFoundError); the
            terminal segment of an add does no lookup and appends.

            Older producers put the array index in the path and the id
            in item_ids ("/toys/1" + ["toy2"]).  That form is accepted
            too: for "-", or for a numeric segment over an array whose
            elements all carry identities, the token wins over the index,
            unless the token reappears later in the path (then it
            belongs to a deeper array and this array is walked by index).

            Otherwise the segment is an index or "-".

    Scalar  nothing to walk into → PathNotFoundError.

APPLY (at the resolved parent)
──────────────────────────────

    remove   delete the field / the element
    replace  parent must be an Object and the field must exist;
             an Array parent is a TypeMismatchError
    add      Object: set the field
             Array, identity: append `value` with the token injected as id
             Array, positional: insert at the index ("-" appends)

Every function here is pure.  The target is never modified; untouched
subtrees are shared with the result.
"""

from typing import Iterable, Optional

from .config import DiffConfig
from .core import (
    APPEND, Array, Change, Object, Op, Scalar, Value,
    find_identity, has_identities,
)
from .errors import (
    IdentityNotFoundError, MalformedChangeError, PathNotFoundError,
    TypeMismatchError, UnsupportedOperationError,
)
from .formats import coerce_value
from .logging import get_logger

log = get_logger("patch")

_DEFAULT_CONFIG = DiffConfig()
_OPS = frozenset(Op)


def _where(path: tuple) -> str:
    return "/" + "/".join(path)


def _check(change: Change) -> None:
    if change.op not in _OPS:
        raise UnsupportedOperationError(change.op)
    if change.op != Op.REMOVE and change.value is None:
        raise MalformedChangeError(f"{change.op} at {_where(change.path)} requires a value")


def apply_change(change: Change, target, *, config: Optional[DiffConfig] = None) -> Value:
    """
    Apply one change to `target` and return the new document.

    `target` may be a Value or plain JSON-like Python data; it is never
    modified.

    Raises:
        PathNotFoundError, IdentityNotFoundError, TypeMismatchError,
        UnsupportedOperationError, MalformedChangeError
    """
    config = config or _DEFAULT_CONFIG
    _check(change)
    target = coerce_value(target)

    if not change.path:
        if change.op == Op.REMOVE:
            raise TypeMismatchError("cannot remove the document root")
        return change.value

    result, unused = _apply(target, change.path, change.item_ids, change, (), config)
    if unused:
        raise MalformedChangeError(
            f"item_ids {list(unused)} were not consumed by path {_where(change.path)}"
        )
    return result


def apply_change_sequence(changes: Iterable[Change], target, *,
                          config: Optional[DiffConfig] = None) -> Value:
    """
    Apply `changes` in order (a left fold of apply_change).

    Later changes may depend on the state left by earlier ones, so the
    order produced by compute_diff must be preserved.
    """
    doc = coerce_value(target)
    count = 0
    for change in changes:
        doc = apply_change(change, doc, config=config)
        count += 1
    log.debug("changes_applied", count=count)
    return doc


# ═══════════════════════════════════════════════════════════════════
#  RESOLUTION
# ═══════════════════════════════════════════════════════════════════

def _apply(node: Value, segments: tuple, tokens: tuple, change: Change,
           walked: tuple, config: DiffConfig) -> tuple[Value, tuple]:
    """Apply `change` below `node`.  Returns (new node, unconsumed tokens)."""
    seg, rest = segments[0], segments[1:]
    here = walked + (seg,)
    terminal = not rest

    if isinstance(node, Object):
        if terminal:
            return _apply_to_object(node, seg, change, here), tokens
        if seg not in node.entries:
            raise PathNotFoundError(f"field {seg!r} not found at {_where(walked)}", here)
        child, tokens = _apply(node.entries[seg], rest, tokens, change, here, config)
        return node.with_field(seg, child), tokens

    if isinstance(node, Array):
        token = None
        if tokens and _takes_token(node, seg, rest, tokens[0], config):
            token, tokens = tokens[0], tokens[1:]
        if terminal:
            return _apply_to_array(node, seg, token, change, here, config), tokens
        if token is not None:
            index = _find(node, token, here, config)
        else:
            index = _index(node, seg, here)
        child, tokens = _apply(node.items[index], rest, tokens, change, here, config)
        return node.with_item(index, child), tokens

    if terminal:
        raise TypeMismatchError(
            f"{change.op} at {_where(here)}: parent is a scalar, not a container", here)
    raise PathNotFoundError(f"cannot descend into a scalar at {_where(walked)}", here)


def _takes_token(node: Array, seg: str, rest: tuple, token: str,
                 config: DiffConfig) -> bool:
    if seg == token:
        return True
    if seg == APPEND:
        return True
    # A token still named further down the path belongs to a deeper array.
    if token in rest:
        return False
    return seg.isdigit() and has_identities(node, config.identity_field)


def _find(node: Array, token: str, here: tuple, config: DiffConfig) -> int:
    index = find_identity(node, token, config.identity_field)
    if index is None:
        raise IdentityNotFoundError(token, here[:-1])
    return index


def _index(node: Array, seg: str, here: tuple) -> int:
    if not seg.isdigit():
        raise PathNotFoundError(f"{seg!r} is not an array index at {_where(here[:-1])}", here)
    index = int(seg)
    if index >= len(node.items):
        raise PathNotFoundError(
            f"index {index} out of range (length {len(node.items)}) at {_where(here[:-1])}",
            here)
    return index


# ═══════════════════════════════════════════════════════════════════
#  APPLY AT THE PARENT
# ═══════════════════════════════════════════════════════════════════

def _apply_to_object(node: Object, key: str, change: Change, here: tuple) -> Object:
    if change.op == Op.ADD:
        return node.with_field(key, change.value)

    if key not in node.entries:
        raise PathNotFoundError(f"field {key!r} not found at {_where(here[:-1])}", here)

    if change.op == Op.REMOVE:
        return node.without_field(key)
    return node.with_field(key, change.value)


def _apply_to_array(node: Array, seg: str, token: Optional[str], change: Change,
                    here: tuple, config: DiffConfig) -> Array:
    if change.op == Op.REPLACE:
        raise TypeMismatchError(
            f"replace at {_where(here)} targets an array slot; "
            f"replace a field of the element instead", here)

    if change.op == Op.REMOVE:
        if token is not None:
            return node.without_item(_find(node, token, here, config))
        return node.without_item(_index(node, seg, here))

    # add
    if token is not None:
        if not isinstance(change.value, Object):
            raise TypeMismatchError(
                f"add at {_where(here)} needs an object to become an identified element",
                here)
        element = change.value.with_field(config.identity_field, Scalar(token))
        return Array(node.items + (element,))

    if seg == APPEND:
        return Array(node.items + (change.value,))
    if not seg.isdigit() or int(seg) > len(node.items):
        raise PathNotFoundError(
            f"cannot insert at {seg!r} (length {len(node.items)}) at {_where(here[:-1])}",
            here)
    return node.inserted(int(seg), change.value)
