"""Change-set differencer.

Compares an observed remote snapshot with a desired configuration field by
field. Each resource family declares its fields once (kind, default,
mutability); the differencer applies the matching equality rule:

- Empty equivalence: "", None and a missing key are the same value
- Boolean and numeric strings: "true" == True, "180" == 180
- Unordered collections: sets and CIDR lists ignore order, CIDRs ignore case
- Ordered lists (AS-path prepends): positional equality
- Tag maps: key/value equality regardless of order

An empty ChangeSet means the resource is converged and no remote call is
needed.
"""

from __future__ import annotations

import ipaddress
import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel

from .models import BaseSpec, ObservedState

logger = logging.getLogger(__name__)


class FieldDecodeError(ValueError):
    """Raised when an observed value cannot be read as its field's kind."""

    def __init__(self, field_name: str, value: Any, reason: str) -> None:
        self.field_name = field_name
        self.value = value
        self.reason = reason
        super().__init__(f"Cannot decode observed field '{field_name}' value {value!r}: {reason}")


class FieldKind(str, Enum):
    """Equality rule applied to a field."""

    SCALAR = "scalar"
    BOOL = "bool"
    INT = "int"
    SET = "set"
    CIDR_SET = "cidr_set"
    ORDERED_LIST = "ordered_list"
    TAG_MAP = "tag_map"
    RECORDS = "records"


class Mutability(str, Enum):
    """How a change to a field can be applied remotely."""

    # Applied in place (toggle, setter, resize or HA transition)
    MUTABLE = "mutable"
    # Requires replacing the primary node
    FORCE_NEW = "force_new"
    # Cannot change once created; a change is rejected
    FIXED = "fixed"


@dataclass(frozen=True)
class FieldSpec:
    """Declaration of one diffable field.

    Attributes:
        name: Field name on the desired-config model.
        kind: Equality rule.
        default: Value assumed when the observed snapshot omits the field.
            Filled from the model default when left as None.
        mutability: How a change is applied.
        write_only: The controller never returns this value; compare only
            when the snapshot carries it.
        case_insensitive: Compare scalar strings ignoring case.
    """

    name: str
    kind: FieldKind = FieldKind.SCALAR
    default: Any = None
    mutability: Mutability = Mutability.MUTABLE
    write_only: bool = False
    case_insensitive: bool = False


@dataclass(frozen=True)
class FieldChange:
    """Old and new normalized value of a changed field."""

    old: Any
    new: Any


class ChangeSet(Mapping[str, FieldChange]):
    """Immutable mapping of field name to FieldChange, in declaration order."""

    def __init__(self, changes: Mapping[str, FieldChange] | None = None) -> None:
        self._changes: dict[str, FieldChange] = dict(changes or {})

    def __getitem__(self, name: str) -> FieldChange:
        return self._changes[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._changes)

    def __len__(self) -> int:
        return len(self._changes)

    def __repr__(self) -> str:
        return f"ChangeSet({self._changes!r})"

    def touches(self, *names: str) -> bool:
        """Return True if any of the named fields changed."""
        return any(name in self._changes for name in names)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value.lower() in ("true", "yes", "1", "on", "enabled"):
            return True
        if value.lower() in ("false", "no", "0", "off", "disabled", ""):
            return False
    if isinstance(value, int):
        return value != 0
    return bool(value)


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0
        try:
            return int(value)
        except ValueError:
            return int(float(value))
    return int(value)


def _as_items(value: Any) -> Sequence[Any]:
    if value is None or value == "":
        return ()
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return list(value)


def _canonical_cidr(value: str) -> str:
    text = str(value).strip().lower()
    try:
        return str(ipaddress.ip_network(text))
    except ValueError:
        return text


def _record(value: Any) -> tuple[tuple[str, str], ...]:
    if isinstance(value, BaseModel):
        value = value.model_dump()
    return tuple(sorted((str(k), str(v)) for k, v in dict(value).items()))


def normalize(value: Any, spec: FieldSpec) -> Any:
    """Normalize a raw or desired value to the field's comparable form.

    None, and for every kind but SCALAR an empty string, stand for the
    field default.
    """
    if value is None or (value == "" and spec.kind is not FieldKind.SCALAR):
        value = spec.default

    match spec.kind:
        case FieldKind.BOOL:
            return _to_bool(value)
        case FieldKind.INT:
            return 0 if value is None else _to_int(value)
        case FieldKind.SET:
            return frozenset(str(item) for item in _as_items(value))
        case FieldKind.CIDR_SET:
            return frozenset(_canonical_cidr(item) for item in _as_items(value))
        case FieldKind.ORDERED_LIST:
            return tuple(str(item) for item in _as_items(value))
        case FieldKind.TAG_MAP:
            return {str(k): str(v) for k, v in dict(value or {}).items()}
        case FieldKind.RECORDS:
            return tuple(_record(item) for item in (value or ()))
        case _:
            text = "" if value is None else str(value)
            return text.lower() if spec.case_insensitive else text


def diff(
    observed: ObservedState | None,
    desired: BaseSpec,
    fields: Sequence[FieldSpec],
) -> ChangeSet:
    """Compute the fields whose observed and desired values differ.

    A field missing from the observed snapshot is taken at its default, so a
    desired value equal to the default is not a change. With no observed
    state every field is compared against its default.

    Args:
        observed: Decoded remote snapshot, or None if the resource is absent.
        desired: Desired configuration.
        fields: The family's field declarations.

    Returns:
        ChangeSet of differing fields, in declaration order.

    Raises:
        FieldDecodeError: If an observed value does not fit its field kind.
    """
    values: Mapping[str, Any] = observed.values if observed is not None else {}
    changes: dict[str, FieldChange] = {}

    for spec in fields:
        if spec.write_only and observed is not None and spec.name not in values:
            continue

        raw = values.get(spec.name)
        try:
            old = normalize(raw, spec)
        except (TypeError, ValueError) as e:
            raise FieldDecodeError(spec.name, raw, str(e)) from e
        new = normalize(getattr(desired, spec.name), spec)
        if old != new:
            changes[spec.name] = FieldChange(old=old, new=new)

    if changes:
        logger.debug(
            "Computed change set",
            extra={"kind": desired.kind, "fields": list(changes)},
        )
    return ChangeSet(changes)
