"""
structpatch.diff — Identity-aware structural diff
=================================================

PIPELINE
────────

    old, new ──prune──▶ old', new'           (excluded fields dropped)
             ──key────▶ ⟦old⟧, ⟦new⟧         (identifiable arrays → Keyed)
             ──diff───▶ raw operations       (keyed-tree diff, §1–§2)
             ──project▶ Change[]             (§3)

§1  KEYED-TREE DIFF
    Objects and Keyed nodes are compared key-by-key:

        keys only in old          → remove      (sorted)
        keys only in new          → add         (sorted)
        keys in both, unequal     → recurse     (sorted)

    Differing scalars, and any switch of kind (scalar ↔ object ↔ keyed
    array ↔ positional array), become ONE replace of the whole subtree.
    Nothing is diffed across incompatible shapes.

    Because Keyed erases element order, a pure reordering of an
    identifiable array produces nothing at all.  There is no move op.

§2  POSITIONAL ARRAYS
    Arrays without reliable identity are aligned with the classic
    edit-distance DP:

        D[i][j] = min( D[i-1][j]   + 1,              delete aᵢ
                       D[i][j-1]   + 1,              insert bⱼ
                       D[i-1][j-1] + sub(aᵢ, bⱼ) )   keep / descend

        sub(a, b) = 0   if a == b
                    1   if a and b are containers of the same kind
                    ∞   otherwise

    A slot is never replaced wholesale (a patch cannot replace an array
    slot), so a changed scalar becomes remove + add.  Ops are emitted in
    forward order and addressed in the coordinates of the array AS IT
    EVOLVES while the sequence is applied: after handling everything
    before old[i] / new[j], the live array is new[:j] + old[i:].

§3  RE-PROJECTION
    Every raw step remembers where it came from in both originals.  The
    parent of each change is located in the pruned OLD original (a
    missing parent raises PathNotFoundError), values are read from the
    pruned NEW original, and every step that crossed an identity-keyed
    array contributes its token to item_ids.  Positional steps contribute
    nothing.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Union

from .config import DiffConfig, ExclusionSet
from .core import APPEND, Array, Change, Object, Op, Scalar, Value, find_identity
from .errors import PathNotFoundError
from .formats import coerce_value
from .logging import get_logger
from .normalize import Keyed, key_arrays, prune

log = get_logger("diff")

_DEFAULT_CONFIG = DiffConfig()


# ═══════════════════════════════════════════════════════════════════
#  RAW OPERATIONS
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class _Step:
    """One path segment of a raw op, with its locators in both originals."""
    token: str                       # segment emitted in Change.path
    keyed: bool                      # crossed an identity-keyed array
    old: Union[str, int, None]       # field / identity / index in old
    new: Union[str, int, None]       # field / identity / index in new


@dataclass(frozen=True, slots=True)
class _Raw:
    op: Op
    steps: tuple[_Step, ...]


def _diff(a: Value, b: Value, steps: tuple, out: list) -> None:
    if a == b:
        return

    if type(a) is type(b):
        if isinstance(a, Object):
            _diff_keys(a.entries, b.entries, steps, False, out)
            return
        if isinstance(a, Keyed):
            _diff_keys(a.entries, b.entries, steps, True, out)
            return
        if isinstance(a, Array):
            _diff_positional(a, b, steps, out)
            return

    # Unequal scalars or a change of kind
    out.append(_Raw(Op.REPLACE, steps))


def _diff_keys(a: dict, b: dict, steps: tuple, keyed: bool, out: list) -> None:
    """Diff two key → value maps (object fields or identity-keyed elements)."""
    a_keys = set(a)
    b_keys = set(b)

    for k in sorted(a_keys - b_keys):
        out.append(_Raw(Op.REMOVE, steps + (_Step(k, keyed, k, None),)))

    for k in sorted(b_keys - a_keys):
        out.append(_Raw(Op.ADD, steps + (_Step(k, keyed, None, k),)))

    for k in sorted(a_keys & b_keys):
        _diff(a[k], b[k], steps + (_Step(k, keyed, k, k),), out)


_KEEP, _DESCEND, _DELETE, _INSERT = range(4)
_INF = float("inf")


def _sub_cost(x: Value, y: Value) -> float:
    if x == y:
        return 0.0
    if type(x) is type(y) and not isinstance(x, Scalar):
        return 1.0
    return _INF


def _align(a: tuple, b: tuple) -> list[tuple[int, int, int]]:
    """
    Minimum edit alignment of two sequences, as (kind, i, j) in forward order.

    Trace-back prefers keep/descend, then delete, then insert.
    """
    m, n = len(a), len(b)

    sub = [[_sub_cost(a[i], b[j]) for j in range(n)] for i in range(m)]

    dp = [[0.0] * (n + 1) for _ in range(m + 1)]
    for j in range(1, n + 1):
        dp[0][j] = float(j)
    for i in range(1, m + 1):
        dp[i][0] = float(i)

    for i in range(1, m + 1):
        for j in range(1, n + 1):
            dp[i][j] = min(
                dp[i - 1][j] + 1.0,
                dp[i][j - 1] + 1.0,
                dp[i - 1][j - 1] + sub[i - 1][j - 1],
            )

    ops: list[tuple[int, int, int]] = []
    i, j = m, n
    while i > 0 or j > 0:
        if i > 0 and j > 0:
            c = sub[i - 1][j - 1]
            if c != _INF and dp[i][j] == dp[i - 1][j - 1] + c:
                ops.append((_KEEP if c == 0.0 else _DESCEND, i - 1, j - 1))
                i -= 1
                j -= 1
                continue
        if i > 0 and dp[i][j] == dp[i - 1][j] + 1.0:
            ops.append((_DELETE, i - 1, j))
            i -= 1
            continue
        ops.append((_INSERT, i, j - 1))
        j -= 1

    ops.reverse()
    return ops


def _diff_positional(a: Array, b: Array, steps: tuple, out: list) -> None:
    m = len(a.items)
    for kind, i, j in _align(a.items, b.items):
        # Live array at this point is b[:j] + a[i:]
        if kind == _DESCEND:
            _diff(a.items[i], b.items[j], steps + (_Step(str(j), False, i, j),), out)
        elif kind == _DELETE:
            out.append(_Raw(Op.REMOVE, steps + (_Step(str(j), False, i, None),)))
        elif kind == _INSERT:
            token = APPEND if i == m else str(j)
            out.append(_Raw(Op.ADD, steps + (_Step(token, False, None, j),)))


# ═══════════════════════════════════════════════════════════════════
#  RE-PROJECTION
# ═══════════════════════════════════════════════════════════════════

def _locate(root: Value, steps: tuple, side: str, config: DiffConfig) -> Value:
    """Walk a pruned original along `steps`, using the locators for `side`."""
    node = root
    walked: tuple = ()
    for step in steps:
        key = step.old if side == "old" else step.new
        walked += (step.token,)
        if isinstance(node, Object) and isinstance(key, str) and key in node.entries:
            node = node.entries[key]
            continue
        if isinstance(node, Array) and key is not None:
            if step.keyed:
                index = find_identity(node, key, config.identity_field)
            else:
                index = key if isinstance(key, int) and 0 <= key < len(node.items) else None
            if index is not None:
                node = node.items[index]
                continue
        raise PathNotFoundError(f"path /{'/'.join(walked)} does not exist in the {side} document",
                                walked)
    return node


def _project(raw: _Raw, old: Value, new: Value, config: DiffConfig) -> Change:
    steps = raw.steps
    parent = steps[:-1]

    # Every change needs its parent to exist in old; no implicit creation.
    _locate(old, parent, "old", config)

    value = None
    if raw.op == Op.REPLACE:
        if steps:
            _locate(old, steps, "old", config)
        value = _locate(new, steps, "new", config)
    elif raw.op == Op.ADD:
        value = _locate(new, steps, "new", config)

    return Change(
        op=raw.op,
        path=tuple(s.token for s in steps),
        value=value,
        item_ids=tuple(s.token for s in steps if s.keyed),
    )


# ═══════════════════════════════════════════════════════════════════
#  PUBLIC ENTRY POINT
# ═══════════════════════════════════════════════════════════════════

def compute_diff(old, new,
                 exclusions: Union[ExclusionSet, Iterable[str], None] = None,
                 *, config: Optional[DiffConfig] = None) -> list[Change]:
    """
    Compute the changes that turn `old` into `new`.

    `old` and `new` may be Values or plain JSON-like Python data.  Fields
    named by `exclusions` are neither compared nor emitted.  Applying the
    result in order to `old`, or to any instance of `old` whose
    identifiable arrays are permuted, yields `new` (modulo excluded
    fields and the order of identifiable arrays).

    Raises:
        DuplicateIdentityError: sibling array elements share an identity.
        MissingIdentityError: identity policy is REQUIRED and an element lacks one.
        PathNotFoundError: a change's parent does not exist in `old`.
    """
    config = config or _DEFAULT_CONFIG
    exclusions = ExclusionSet.coerce(exclusions)

    old_src = prune(coerce_value(old), exclusions)
    new_src = prune(coerce_value(new), exclusions)

    raw: list[_Raw] = []
    _diff(key_arrays(old_src, config), key_arrays(new_src, config), (), raw)

    changes = [_project(r, old_src, new_src, config) for r in raw]
    log.debug("diff_computed", changes=len(changes),
              excluded_patterns=len(exclusions.patterns))
    return changes
