"""
structpatch.normalize — Order-independent view of a document, for diffing.

Two passes, always in this order:

    prune       drop every excluded field; arrays stay arrays
    key         rewrite every identifiable array as a Keyed node
                (identity token → element)

After keying, two arrays holding the same elements in a different order
are EQUAL, so the generic keyed-tree diff sees no change.  Exclusion runs
first, which is what guarantees excluded fields never show up in a
Change.

    denormalize(normalize(v, E)) == prune(v, E)

holds for every value: Keyed keeps its entries in the original array
order.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Union

from .config import DiffConfig, ExclusionSet
from .core import (
    Array, Identifiable, Object, Value,
    extract_identity,
)
from .logging import get_logger

log = get_logger("normalize")

_DEFAULT_CONFIG = DiffConfig()


@dataclass(frozen=True, slots=True)
class Keyed(Value):
    """
    Normalized form of an identifiable array: identity token → element.

    Only ever produced by normalize().  A Keyed never equals an Object,
    even with the same entries: turning an object into an array of
    identified elements is a change of kind.
    """
    entries: dict[str, Value]

    def __init__(self, entries: dict[str, Value]):
        object.__setattr__(self, 'entries', dict(entries))

    def __hash__(self):
        return hash(frozenset(self.entries.items()))

    def __repr__(self) -> str:
        return f"Keyed({list(self.entries)})"


def prune(value: Value,
          exclusions: Union[ExclusionSet, Iterable[str], None] = None) -> Value:
    """Return `value` without the fields named by `exclusions`."""
    exclusions = ExclusionSet.coerce(exclusions)
    if not exclusions:
        return value
    return _prune(value, (), exclusions)


def _prune(value: Value, fields: tuple[str, ...], exclusions: ExclusionSet) -> Value:
    if isinstance(value, Object):
        entries = {}
        for k, v in value.entries.items():
            child_fields = fields + (k,)
            if exclusions.excludes(child_fields):
                continue
            entries[k] = _prune(v, child_fields, exclusions)
        return Object(entries)
    if isinstance(value, Array):
        # Array levels are transparent to exclusion patterns.
        return Array(tuple(_prune(item, fields, exclusions) for item in value.items))
    return value


def normalize(value: Value,
              exclusions: Union[ExclusionSet, Iterable[str], None] = None,
              config: Optional[DiffConfig] = None) -> Value:
    """
    Prune excluded fields, then key every identifiable array by identity.

    Raises:
        DuplicateIdentityError, MissingIdentityError: from identity extraction.
    """
    config = config or _DEFAULT_CONFIG
    return key_arrays(prune(value, exclusions), config)


def key_arrays(value: Value, config: Optional[DiffConfig] = None,
               path: tuple = ()) -> Value:
    """The keying pass of normalize(), for an already pruned value."""
    config = config or _DEFAULT_CONFIG

    if isinstance(value, Object):
        return Object({k: key_arrays(v, config, path + (k,))
                       for k, v in value.entries.items()})

    if isinstance(value, Array):
        mode = extract_identity(value, config.identity_field,
                                config.identity_policy, path)
        if isinstance(mode, Identifiable):
            return Keyed({token: key_arrays(item, config, path + (token,))
                          for token, item in mode.index.items()})
        if any(isinstance(item, Object) for item in value.items):
            log.debug("positional_array", path="/" + "/".join(map(str, path)),
                      length=len(value.items))
        return Array(tuple(key_arrays(item, config, path + (i,))
                           for i, item in enumerate(value.items)))

    return value


def denormalize(value: Value) -> Value:
    """Turn every Keyed node back into an Array, in its original order."""
    if isinstance(value, Keyed):
        return Array(tuple(denormalize(v) for v in value.entries.values()))
    if isinstance(value, Object):
        return Object({k: denormalize(v) for k, v in value.entries.items()})
    if isinstance(value, Array):
        return Array(tuple(denormalize(item) for item in value.items))
    return value
