"""HA pairing state machine.

A primary node may carry one secondary (HA) node. The secondary is never
tracked locally: its lifecycle is derived on every pass from the desired
HA fields and from whether the secondary was observed on the controller.

    ABSENT ──► ENABLING ──► PRESENT ──► RESIZING ──► PRESENT
                               │
                               └──► DISABLING ──► ABSENT

ENABLING, RESIZING and DISABLING only exist during one reconciliation pass
and resolve to PRESENT or ABSENT once the pass has applied its operations.
A failed secondary creation stays ENABLING so the next pass retries it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .differ import ChangeSet
from .models import BaseSpec, ObservedState
from .validator import Rule, is_set, requires

DEFAULT_SECONDARY_SUFFIX = "-hagw"


class HaState(str, Enum):
    """Lifecycle states of a secondary node."""

    ABSENT = "absent"
    ENABLING = "enabling"
    PRESENT = "present"
    RESIZING = "resizing"
    DISABLING = "disabling"


@dataclass(frozen=True)
class HaPair:
    """Primary node identity and the name of its secondary."""

    primary: str
    secondary: str

    @classmethod
    def for_primary(cls, primary: str, suffix: str = DEFAULT_SECONDARY_SUFFIX) -> HaPair:
        return cls(primary=primary, secondary=f"{primary}{suffix}")


@dataclass(frozen=True)
class HaProfile:
    """How a resource family expresses its secondary node.

    Attributes:
        kind: Remote resource kind of the secondary node.
        presence_fields: Any of these set means HA is requested.
        mandatory_fields: Must be set whenever HA is requested.
        placement_fields: Changing any of these recreates the secondary.
        size_field: Changing only this resizes the secondary in place.
        suffix: Name suffix of the secondary node.
    """

    kind: str
    presence_fields: tuple[str, ...]
    mandatory_fields: tuple[str, ...]
    placement_fields: tuple[str, ...]
    size_field: str
    suffix: str = DEFAULT_SECONDARY_SUFFIX

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys((*self.presence_fields, *self.placement_fields, self.size_field)))

    def requested(self, cfg: BaseSpec) -> bool:
        return any(is_set(getattr(cfg, name)) for name in self.presence_fields)

    def mandatory_rule(self, name: str, message: str | None = None) -> Rule:
        """Validation rule rejecting requested HA with a mandatory field unset."""
        return requires(name, self.presence_fields, self.mandatory_fields, message)

    def pair(self, primary: str) -> HaPair:
        return HaPair.for_primary(primary, self.suffix)


def ha_state(
    profile: HaProfile,
    desired: BaseSpec,
    observed: ObservedState | None,
    changes: ChangeSet,
) -> HaState:
    """Determine the HA transition for this pass.

    Resizing is triggered purely by ChangeSet membership of the size or
    placement fields.
    """
    requested = profile.requested(desired)
    present = observed is not None and observed.secondary_present

    if requested and not present:
        return HaState.ENABLING
    if present and not requested:
        return HaState.DISABLING
    if not requested:
        return HaState.ABSENT
    if changes.touches(*profile.placement_fields, profile.size_field):
        return HaState.RESIZING
    return HaState.PRESENT


def needs_recreate(profile: HaProfile, changes: ChangeSet) -> bool:
    """Placement changes cannot be applied in place."""
    return changes.touches(*profile.placement_fields)


def resolve(state: HaState, succeeded: bool) -> HaState:
    """Resolve a pass-scoped state once the pass has finished.

    A failed transition keeps its in-flight state so the caller can report
    exactly what the next pass will retry.
    """
    if not succeeded:
        return state
    match state:
        case HaState.ENABLING | HaState.RESIZING | HaState.PRESENT:
            return HaState.PRESENT
        case _:
            return HaState.ABSENT
