"""Reconciliation planner.

Turns (observed, desired) into an ordered list of remote operations without
performing any I/O. The order is fixed for every resource family:

1. Structural operations on the primary node (delete/create on replacement,
   create, in-place resize)
2. HA secondary transitions (create, delete, recreate or resize)
3. Feature toggles: destructive calls first (reverse declaration order),
   then enabling and setting calls (declaration order)
4. Tag updates

A desired configuration is always validated before anything is planned, and
an empty ChangeSet against an existing resource plans nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .differ import ChangeSet, diff
from .ha import HaState, ha_state, needs_recreate
from .models import BaseSpec, ObservedState
from .resources import get_family
from .resources.base import ResourceFamily, Toggle, ToggleCall
from .validator import ValidationError, ensure_valid, validate_transition

logger = logging.getLogger(__name__)


class OperationClass(str, Enum):
    """Operation classification, used for ordering and logging only."""

    STRUCTURAL = "structural"
    FEATURE_TOGGLE = "feature_toggle"
    TAG = "tag"


class RemoteAction(str, Enum):
    """Which Remote Operations Interface call executes an operation."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Operation:
    """One queued remote call.

    Attributes:
        name: Controller action name.
        fields: Fields this operation resolves.
        classification: Structural, feature toggle or tag.
        action: Remote interface call to use.
        resource_kind: Remote kind (a family kind or an HA secondary kind).
        key: Remote key; empty when the controller assigns it on create.
        payload: Create payload or update delta, including ``action``.
        destructive: Disables a feature or deletes a node.
        secondary: Operates on the HA secondary node.
    """

    name: str
    fields: tuple[str, ...]
    classification: OperationClass
    action: RemoteAction
    resource_kind: str
    key: str
    payload: Mapping[str, Any] = field(default_factory=dict)
    destructive: bool = False
    secondary: bool = False

    def describe(self) -> str:
        target = self.key or "<new>"
        return f"{self.action.value} {self.resource_kind} {target}: {self.name}"


# =============================================================================
# Operation builders
# =============================================================================


def _create_fields(family: ResourceFamily) -> tuple[str, ...]:
    excluded = {name for t in family.toggles if t.post_create for name in t.fields}
    if family.ha is not None:
        excluded.update(family.ha.fields)
    if family.tag_field is not None:
        excluded.add(family.tag_field)
    return tuple(s.name for s in family.fields if s.name not in excluded)


def _create_primary(family: ResourceFamily, desired: BaseSpec) -> Operation:
    payload = family.build_create(desired)
    name = payload.get("action") or family.endpoints.create
    return Operation(
        name=name,
        fields=_create_fields(family),
        classification=OperationClass.STRUCTURAL,
        action=RemoteAction.CREATE,
        resource_kind=family.kind,
        key=desired.resource_key,
        payload={"action": name, **payload},
    )


def _delete_primary(family: ResourceFamily, key: str) -> Operation:
    return Operation(
        name=family.endpoints.delete,
        fields=(family.endpoints.key_param,),
        classification=OperationClass.STRUCTURAL,
        action=RemoteAction.DELETE,
        resource_kind=family.kind,
        key=key,
        destructive=True,
    )


def _create_secondary(family: ResourceFamily, desired: BaseSpec, primary: str) -> Operation:
    assert family.ha is not None and family.ha_endpoints is not None
    assert family.build_secondary is not None
    pair = family.ha.pair(primary)
    action = family.ha_endpoints.create
    return Operation(
        name=action,
        fields=family.ha.fields,
        classification=OperationClass.STRUCTURAL,
        action=RemoteAction.CREATE,
        resource_kind=family.ha.kind,
        key=pair.secondary,
        payload={"action": action, **family.build_secondary(desired, pair.secondary)},
        secondary=True,
    )


def _delete_secondary(family: ResourceFamily, primary: str) -> Operation:
    assert family.ha is not None and family.ha_endpoints is not None
    return Operation(
        name=family.ha_endpoints.delete,
        fields=family.ha.fields,
        classification=OperationClass.STRUCTURAL,
        action=RemoteAction.DELETE,
        resource_kind=family.ha.kind,
        key=family.ha.pair(primary).secondary,
        destructive=True,
        secondary=True,
    )


def _update(
    family: ResourceFamily,
    key: str,
    name: str,
    fields: tuple[str, ...],
    params: Mapping[str, Any],
    classification: OperationClass,
    *,
    destructive: bool = False,
    kind: str | None = None,
    secondary: bool = False,
) -> Operation:
    return Operation(
        name=name,
        fields=fields,
        classification=classification,
        action=RemoteAction.UPDATE,
        resource_kind=kind or family.kind,
        key=key,
        payload={"action": name, **params},
        destructive=destructive,
        secondary=secondary,
    )


def _toggle_ops(
    family: ResourceFamily,
    desired: BaseSpec,
    changes: ChangeSet,
    key: str,
    *,
    creating: bool,
) -> list[Operation]:
    """Feature toggle operations, destructive calls first.

    Toggles run their destructive calls in reverse declaration order so that
    dependent features are switched off before the features they depend on.
    Calls of one toggle keep the order the toggle gives them.
    """
    destructive: list[list[tuple[Toggle, ToggleCall]]] = []
    constructive: list[tuple[Toggle, ToggleCall]] = []
    for toggle in family.toggles:
        if creating and not toggle.post_create:
            continue
        calls = toggle.calls(desired, changes)
        destructive.append([(toggle, call) for call in calls if call.destructive])
        constructive.extend((toggle, call) for call in calls if not call.destructive)

    ordered = [item for group in reversed(destructive) for item in group] + constructive

    return [
        _update(
            family,
            key,
            call.action,
            toggle.fields,
            call.params,
            OperationClass.FEATURE_TOGGLE,
            destructive=call.destructive,
        )
        for toggle, call in ordered
    ]


def _tag_ops(family: ResourceFamily, desired: BaseSpec, changes: ChangeSet, key: str) -> list[Operation]:
    if family.tag_field is None or family.tag_field not in changes:
        return []
    tags = dict(getattr(desired, family.tag_field))
    return [
        _update(
            family,
            key,
            family.tag_action,
            (family.tag_field,),
            {family.tag_field: tags},
            OperationClass.TAG,
        )
    ]


# =============================================================================
# Planning
# =============================================================================


def _plan_create(family: ResourceFamily, desired: BaseSpec) -> list[Operation]:
    changes = diff(None, desired, family.fields)
    key = desired.resource_key
    ops = [_create_primary(family, desired)]
    if family.ha is not None and family.ha.requested(desired):
        ops.append(_create_secondary(family, desired, key))
    ops.extend(_toggle_ops(family, desired, changes, key, creating=True))
    ops.extend(_tag_ops(family, desired, changes, key))
    return ops


def _plan_secondary(
    family: ResourceFamily,
    desired: BaseSpec,
    observed: ObservedState,
    changes: ChangeSet,
) -> list[Operation]:
    if family.ha is None:
        return []

    profile = family.ha
    key = observed.key
    state = ha_state(profile, desired, observed, changes)
    match state:
        case HaState.ENABLING:
            return [_create_secondary(family, desired, key)]
        case HaState.DISABLING:
            return [_delete_secondary(family, key)]
        case HaState.RESIZING if needs_recreate(profile, changes):
            return [_delete_secondary(family, key), _create_secondary(family, desired, key)]
        case HaState.RESIZING if family.resize is not None:
            return [
                _update(
                    family,
                    profile.pair(key).secondary,
                    family.resize.action,
                    (profile.size_field,),
                    {family.resize.param: getattr(desired, profile.size_field)},
                    OperationClass.STRUCTURAL,
                    kind=profile.kind,
                    secondary=True,
                )
            ]
        case _:
            return []


def _plan_update(
    family: ResourceFamily,
    desired: BaseSpec,
    observed: ObservedState,
    changes: ChangeSet,
) -> list[Operation]:
    key = observed.key
    ops: list[Operation] = []

    if family.resize is not None and family.resize.field in changes:
        ops.append(
            _update(
                family,
                key,
                family.resize.action,
                (family.resize.field,),
                {family.resize.param: getattr(desired, family.resize.field)},
                OperationClass.STRUCTURAL,
            )
        )
    ops.extend(_plan_secondary(family, desired, observed, changes))
    ops.extend(_toggle_ops(family, desired, changes, key, creating=False))
    ops.extend(_tag_ops(family, desired, changes, key))
    return ops


def plan_reconciliation(observed: ObservedState | None, desired: BaseSpec) -> list[Operation]:
    """Plan the operations that move ``observed`` to ``desired``.

    Args:
        observed: Decoded remote state, or None if the resource is absent.
        desired: Desired configuration.

    Returns:
        Ordered operations; empty when the resource is converged.

    Raises:
        ValidationError: If the configuration or the transition is rejected.
    """
    family = get_family(desired.kind)
    ensure_valid(desired)

    if observed is None:
        ops = _plan_create(family, desired)
        _log_plan(desired, ops, "create")
        return ops

    changes = diff(observed, desired, family.fields)
    if not changes:
        logger.debug("Resource converged", extra={"kind": desired.kind, "key": observed.key})
        return []

    violation = validate_transition(family, changes, desired)
    if violation is not None:
        logger.info(
            "Transition rejected",
            extra={"kind": desired.kind, "key": observed.key, "rule": violation.rule},
        )
        raise ValidationError(violation)

    replaced = [name for name in family.force_new_fields if name in changes]
    if replaced:
        logger.info(
            "Replacement required",
            extra={"kind": desired.kind, "key": observed.key, "fields": replaced},
        )
        ops = plan_deletion(observed) + _plan_create(family, desired)
        _log_plan(desired, ops, "replace")
        return ops

    ops = _plan_update(family, desired, observed, changes)
    _log_plan(desired, ops, "update")
    return ops


def plan_deletion(observed: ObservedState) -> list[Operation]:
    """Plan deletion of a resource: the HA secondary first, then the primary."""
    family = get_family(observed.kind)
    ops: list[Operation] = []
    if family.ha is not None and observed.secondary_present:
        ops.append(_delete_secondary(family, observed.key))
    ops.append(_delete_primary(family, observed.key))
    return ops


def ha_transition(observed: ObservedState | None, desired: BaseSpec) -> HaState | None:
    """HA state this pass moves through, or None for families without HA."""
    family = get_family(desired.kind)
    if family.ha is None:
        return None
    changes = diff(observed, desired, family.fields)
    return ha_state(family.ha, desired, observed, changes)


def _log_plan(desired: BaseSpec, ops: list[Operation], mode: str) -> None:
    logger.info(
        "Planned reconciliation",
        extra={
            "kind": desired.kind,
            "key": desired.resource_key,
            "mode": mode,
            "operations": [op.name for op in ops],
        },
    )
