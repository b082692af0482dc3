"""
structpatch.config — Engine configuration and exclusion declarations.

Configuration is threaded explicitly through every call.  There is no
process-wide registry: an omitted ``config`` argument simply means
``DiffConfig()``.

Environment variables (read only by ``load_config``):

    STRUCTPATCH_IDENTITY_FIELD    reserved identity field      (default "id")
    STRUCTPATCH_IDENTITY_POLICY   auto | required | positional (default auto)
    STRUCTPATCH_MAX_ATTEMPTS      save attempts per update     (default 3)
    STRUCTPATCH_LOG_LEVEL         debug | info | warning | error
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from .core import DEFAULT_IDENTITY_FIELD, IdentityPolicy

__all__ = [
    "DiffConfig",
    "ExclusionSet",
    "IdentityPolicy",
    "ServiceConfig",
    "load_config",
    "load_service_config",
    "log_level_from_env",
]


@dataclass(frozen=True, slots=True)
class DiffConfig:
    """Immutable configuration shared by normalize, diff and patch.

    Attributes:
        identity_field: Reserved field holding an array element's identity token.
        identity_policy: How arrays are classified (see IdentityPolicy).
    """

    identity_field: str = DEFAULT_IDENTITY_FIELD
    identity_policy: IdentityPolicy = IdentityPolicy.AUTO

    def __post_init__(self) -> None:
        if not self.identity_field:
            msg = "identity_field must be a non-empty string"
            raise ValueError(msg)
        if "/" in self.identity_field:
            msg = f"identity_field must not contain '/', got {self.identity_field!r}"
            raise ValueError(msg)
        # Accept plain strings ("auto") as well as enum members.
        object.__setattr__(self, "identity_policy", IdentityPolicy(self.identity_policy))


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    """Settings for the update service (load → diff → save → notify).

    Attributes:
        max_attempts: Total save attempts per update before the last
            ConflictError is re-raised.
        backoff_max: Upper bound, in seconds, of the jittered wait between
            attempts.
    """

    max_attempts: int = 3
    backoff_max: float = 0.5

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {self.max_attempts}"
            raise ValueError(msg)
        if self.backoff_max < 0.0:
            msg = f"backoff_max must be >= 0.0, got {self.backoff_max}"
            raise ValueError(msg)


# ═══════════════════════════════════════════════════════════════════
#  EXCLUSIONS
# ═══════════════════════════════════════════════════════════════════

WILDCARD = "*"


def _parse_pattern(pattern: str) -> tuple[str, ...]:
    parts = tuple(p for p in pattern.strip().split("/") if p)
    if not parts:
        raise ValueError(f"empty exclusion pattern: {pattern!r}")
    return parts


@dataclass(frozen=True, slots=True)
class ExclusionSet:
    """
    Field paths that are never compared or emitted by the diff engine.

    Patterns are slash-separated FIELD names.  Array levels are
    transparent, so ``/toys/createdAt`` excludes ``createdAt`` in every
    element of ``toys``.  A ``*`` segment matches any single field name.

    Examples:
        ExclusionSet.of("/updatedAt", "/toys/*/internal")
        ExclusionSet.of("audit")
    """

    patterns: frozenset[tuple[str, ...]] = field(default_factory=frozenset)

    @classmethod
    def of(cls, *patterns: str) -> ExclusionSet:
        return cls(frozenset(_parse_pattern(p) for p in patterns))

    @classmethod
    def coerce(cls, obj: Union[ExclusionSet, Iterable[str], None]) -> ExclusionSet:
        """Accept an ExclusionSet, an iterable of pattern strings, or None."""
        if obj is None:
            return EMPTY_EXCLUSIONS
        if isinstance(obj, ExclusionSet):
            return obj
        if isinstance(obj, str):
            return cls.of(obj)
        return cls.of(*obj)

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def excludes(self, field_path: tuple[str, ...]) -> bool:
        """True when `field_path` (field names only) matches a pattern exactly."""
        for pattern in self.patterns:
            if len(pattern) != len(field_path):
                continue
            if all(p == WILDCARD or p == f for p, f in zip(pattern, field_path)):
                return True
        return False


EMPTY_EXCLUSIONS = ExclusionSet()


# ═══════════════════════════════════════════════════════════════════
#  ENVIRONMENT
# ═══════════════════════════════════════════════════════════════════

def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"STRUCTPATCH_{key}", default)


def _env_int(key: str, default: int, min_val: Optional[int] = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_policy(value: str) -> IdentityPolicy:
    try:
        return IdentityPolicy(value.lower())
    except ValueError:
        valid = {p.value for p in IdentityPolicy}
        raise ValueError(f"Invalid identity policy: {value}. Must be one of {valid}") from None


def load_config() -> DiffConfig:
    """Load engine configuration from STRUCTPATCH_* environment variables."""
    return DiffConfig(
        identity_field=_env("IDENTITY_FIELD", DEFAULT_IDENTITY_FIELD),
        identity_policy=_validate_policy(_env("IDENTITY_POLICY", "auto")),
    )


def load_service_config() -> ServiceConfig:
    """Load update-service settings from STRUCTPATCH_* environment variables."""
    return ServiceConfig(max_attempts=_env_int("MAX_ATTEMPTS", 3, min_val=1))


def log_level_from_env() -> str:
    return _validate_log_level(_env("LOG_LEVEL", "info"))
