"""Declarative building blocks of a resource family.

A family is data: its fields and their equality/mutability, its ordered
validation rules, its feature toggles, how it is created, how a controller
snapshot is decoded, and its optional HA profile. The planner and the
reconciler are generic over these declarations.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from ..differ import ChangeSet, FieldSpec, Mutability
from ..ha import HaProfile
from ..models import BaseSpec, ObservedState
from ..validator import Rule, TransitionRule, is_set


@dataclass(frozen=True)
class Endpoints:
    """Controller actions for one remote resource kind.

    Attributes:
        create: Action that creates the resource.
        read: Action that returns its snapshot.
        delete: Action that deletes it.
        key_param: Parameter carrying the key on read/update/delete.
        create_key_param: Payload parameter naming the new resource on
            create (defaults to key_param). Empty keys are assigned by
            the controller.
        lookup: Action listing existing resources, for kinds whose key is
            assigned by the controller.
    """

    create: str
    read: str
    delete: str
    key_param: str
    create_key_param: str = ""
    lookup: str = ""

    @property
    def id_param(self) -> str:
        return self.create_key_param or self.key_param


@dataclass(frozen=True)
class ToggleCall:
    """One controller call produced by a toggle."""

    action: str
    params: Mapping[str, Any] = field(default_factory=dict)
    destructive: bool = False


ToggleBuilder = Callable[[Any, ChangeSet], list[ToggleCall]]


@dataclass(frozen=True)
class Toggle:
    """A feature that is configured after the primary exists.

    ``post_create`` is False for toggles whose fields already travel in the
    create payload; they only run on updates.
    """

    name: str
    fields: tuple[str, ...]
    build: ToggleBuilder
    post_create: bool = True

    def calls(self, cfg: BaseSpec, changes: ChangeSet) -> list[ToggleCall]:
        if not changes.touches(*self.fields):
            return []
        return self.build(cfg, changes)


@dataclass(frozen=True)
class Resize:
    """In-place size change of a node."""

    field: str
    action: str
    param: str


def wire(value: Any) -> Any:
    """Convert a model value to its controller payload form."""
    if isinstance(value, frozenset | set):
        return sorted(value)
    if isinstance(value, tuple | list):
        return [wire(item) for item in value]
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, Mapping):
        return dict(value)
    return value


def switch(
    field_name: str,
    *,
    enable: str | None = None,
    disable: str | None = None,
    extra: tuple[str, ...] = (),
) -> Toggle:
    """Boolean feature with enable/disable actions.

    ``extra`` fields travel with the enable call; when only they change on an
    enabled feature, it is disabled and re-enabled.
    """
    enable_action = enable or field_name
    disable_action = disable or field_name.replace("enable_", "disable_", 1)

    def build(cfg: BaseSpec, changes: ChangeSet) -> list[ToggleCall]:
        params = {name: wire(getattr(cfg, name)) for name in extra}
        enabled = bool(getattr(cfg, field_name))
        if field_name in changes:
            if enabled:
                return [ToggleCall(enable_action, params)]
            return [ToggleCall(disable_action, destructive=True)]
        if enabled:
            return [
                ToggleCall(disable_action, destructive=True),
                ToggleCall(enable_action, params),
            ]
        return []

    return Toggle(field_name, (field_name, *extra), build)


def setter(
    field_name: str,
    action: str,
    *,
    clear: str | None = None,
    param: str | None = None,
) -> Toggle:
    """Valued feature set by one action, optionally cleared by another.

    With a clear action, a change between two non-default values clears the
    old value before setting the new one; a change back to the default only
    clears.
    """

    def build(cfg: BaseSpec, changes: ChangeSet) -> list[ToggleCall]:
        change = changes[field_name]
        value = getattr(cfg, field_name)
        set_call = ToggleCall(action, {param or field_name: wire(value)})
        if clear is None:
            return [dataclasses.replace(set_call, destructive=not is_set(value))]
        if not is_set(change.new):
            return [ToggleCall(clear, destructive=True)]
        if is_set(change.old):
            return [ToggleCall(clear, destructive=True), set_call]
        return [set_call]

    return Toggle(field_name, (field_name,), build)


SnapshotParser = Callable[[Mapping[str, Any], Mapping[str, Any] | None], dict[str, Any]]


@dataclass(frozen=True)
class ResourceFamily:
    """Complete declaration of one resource family."""

    kind: str
    model: type[BaseSpec]
    endpoints: Endpoints
    fields: tuple[FieldSpec, ...]
    rules: tuple[Rule, ...]
    build_create: Callable[[Any], dict[str, Any]]
    parse_snapshot: SnapshotParser
    transition_rules: tuple[TransitionRule, ...] = ()
    toggles: tuple[Toggle, ...] = ()
    resize: Resize | None = None
    tag_field: str | None = None
    tag_action: str = "update_tags"
    ha: HaProfile | None = None
    ha_endpoints: Endpoints | None = None
    build_secondary: Callable[[Any, str], dict[str, Any]] | None = None
    natural_key: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        model_fields = self.model.model_fields
        resolved: list[FieldSpec] = []
        for spec in self.fields:
            if spec.name not in model_fields:
                raise ValueError(f"{self.kind}: unknown field '{spec.name}'")
            if spec.default is None and not model_fields[spec.name].is_required():
                default = model_fields[spec.name].get_default(call_default_factory=True)
                spec = dataclasses.replace(spec, default=default)
            resolved.append(spec)
        object.__setattr__(self, "fields", tuple(resolved))

        if self.ha is not None and (self.ha_endpoints is None or self.build_secondary is None):
            raise ValueError(f"{self.kind}: HA profile requires ha_endpoints and build_secondary")
        if self.natural_key and not self.endpoints.lookup:
            raise ValueError(f"{self.kind}: natural_key requires a lookup endpoint")

    def field_spec(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(name)

    @property
    def force_new_fields(self) -> tuple[str, ...]:
        return tuple(s.name for s in self.fields if s.mutability is Mutability.FORCE_NEW)

    def observe(
        self,
        key: str,
        raw: Mapping[str, Any],
        secondary_raw: Mapping[str, Any] | None = None,
    ) -> ObservedState:
        """Decode controller snapshots into an ObservedState.

        Raises:
            MalformedTokenError: If a composite field cannot be decoded.
        """
        values = self.parse_snapshot(raw, secondary_raw)
        return ObservedState(
            kind=self.kind,
            key=key,
            values=values,
            secondary_present=secondary_raw is not None,
            raw=dict(raw),
        )


def _as_path_calls(cfg: Any, changes: ChangeSet) -> list[ToggleCall]:
    as_changed = "local_as_number" in changes
    prepend_changed = "prepend_as_path" in changes
    calls: list[ToggleCall] = []

    had_prepend = prepend_changed and is_set(changes["prepend_as_path"].old)
    if had_prepend and (as_changed or not cfg.prepend_as_path):
        calls.append(ToggleCall("edit_prepend_as_path", {"prepend_as_path": []}, destructive=True))
    if as_changed:
        calls.append(
            ToggleCall(
                "edit_local_as_number",
                {"local_as_number": cfg.local_as_number},
                destructive=not cfg.local_as_number,
            )
        )
    if prepend_changed and cfg.prepend_as_path:
        calls.append(
            ToggleCall("edit_prepend_as_path", {"prepend_as_path": wire(cfg.prepend_as_path)})
        )
    return calls


def as_path() -> Toggle:
    """Local AS number and AS-path prepend, edited together.

    An existing prepend list is cleared first whenever the AS number changes
    or the list becomes empty, then the AS number is set, then the new list.
    """
    return Toggle("as_path", ("local_as_number", "prepend_as_path"), _as_path_calls)


def _active_standby_calls(cfg: Any, changes: ChangeSet) -> list[ToggleCall]:
    if not cfg.enable_active_standby:
        if "enable_active_standby" not in changes:
            return []
        return [
            ToggleCall(
                "disable_active_standby",
                {"enable_active_standby_preemptive": False},
                destructive=True,
            )
        ]
    action = (
        "enable_active_standby_preemptive"
        if cfg.enable_active_standby_preemptive
        else "enable_active_standby"
    )
    return [
        ToggleCall(
            action,
            {
                "enable_active_standby": True,
                "enable_active_standby_preemptive": cfg.enable_active_standby_preemptive,
            },
        )
    ]


def active_standby() -> Toggle:
    """Active-standby mode, optionally preemptive."""
    return Toggle(
        "active_standby",
        ("enable_active_standby", "enable_active_standby_preemptive"),
        _active_standby_calls,
    )
