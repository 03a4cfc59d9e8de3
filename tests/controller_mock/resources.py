"""In-memory controller state and Remote Operations Interface double.

Resources are stored per (kind, key) as the payload they were created with;
update actions merge their parameters into the stored snapshot, so a pass
that applied its operations reads back as converged on the next pass.
"""

from __future__ import annotations

import copy
import itertools
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from provider_engine.remote import NotFoundError, RemoteOperations
from provider_engine.resources import get_endpoints


@dataclass(frozen=True)
class MockCall:
    """One recorded call against the mock controller."""

    method: str
    kind: str
    key: str
    action: str
    payload: dict[str, Any] = field(default_factory=dict)


class MockControllerState:
    """In-memory controller state.

    All operations are synchronous since this is test code.
    """

    # Maximum resources to prevent unbounded growth in tests
    MAX_RESOURCES = 1000

    def __init__(self) -> None:
        """Initialize empty state."""
        self._resources: dict[tuple[str, str], dict[str, Any]] = {}
        self._failures: dict[str, BaseException] = {}
        self._ids = itertools.count(1)
        self.calls: list[MockCall] = []

    @property
    def resource_count(self) -> int:
        return len(self._resources)

    def seed(self, kind: str, key: str, snapshot: Mapping[str, Any]) -> None:
        """Pre-populate a resource as if it had been created out-of-band."""
        self._store(kind, key, dict(snapshot))

    def get(self, kind: str, key: str) -> dict[str, Any] | None:
        """Get a copy of a stored snapshot, None if absent."""
        snapshot = self._resources.get((kind, key))
        return copy.deepcopy(snapshot) if snapshot is not None else None

    def remove(self, kind: str, key: str) -> None:
        """Delete a resource out-of-band."""
        self._resources.pop((kind, key), None)

    def fail_on(self, action: str, error: BaseException | None = None) -> None:
        """Make every call of ``action`` raise ``error``."""
        self._failures[action] = error or RuntimeError(f"simulated failure of '{action}'")

    def clear_failures(self) -> None:
        self._failures.clear()

    def actions(self, method: str | None = None) -> list[str]:
        """Action names called so far, optionally filtered by method."""
        return [c.action for c in self.calls if method is None or c.method == method]

    def next_id(self, kind: str) -> str:
        return f"{kind}-{next(self._ids)}"

    def record(self, call: MockCall) -> None:
        self.calls.append(call)
        error = self._failures.get(call.action)
        if error is not None:
            raise error

    def _store(self, kind: str, key: str, snapshot: dict[str, Any]) -> None:
        if (kind, key) not in self._resources and len(self._resources) >= self.MAX_RESOURCES:
            raise ValueError(f"Resource limit exceeded: {self.MAX_RESOURCES}")
        self._resources[(kind, key)] = snapshot

    def create(self, kind: str, key: str, snapshot: dict[str, Any]) -> None:
        if (kind, key) in self._resources:
            raise ValueError(f"{kind} '{key}' already exists")
        self._store(kind, key, snapshot)

    def find(self, kind: str, criteria: Mapping[str, str]) -> list[str]:
        """Keys of stored resources whose snapshot matches every criterion."""
        return [
            key
            for (stored_kind, key), snapshot in self._resources.items()
            if stored_kind == kind
            and all(str(snapshot.get(name, "")) == value for name, value in criteria.items())
        ]

    def update(self, kind: str, key: str, action: str, params: Mapping[str, Any]) -> None:
        snapshot = self._resources.get((kind, key))
        if snapshot is None:
            raise NotFoundError(kind, key)
        snapshot.update(copy.deepcopy(dict(params)))

        # enable_X / disable_X actions flip the enable_X flag unless the
        # action carries it explicitly
        if action.startswith("enable_") and action not in params:
            snapshot[action] = True
        elif action.startswith("disable_"):
            flag = action.replace("disable_", "enable_", 1)
            if flag not in params:
                snapshot[flag] = False

    def delete(self, kind: str, key: str) -> None:
        if self._resources.pop((kind, key), None) is None:
            raise NotFoundError(kind, key)


class MockRemote(RemoteOperations):
    """Remote Operations Interface backed by MockControllerState."""

    def __init__(self, state: MockControllerState | None = None) -> None:
        self.state = state or MockControllerState()

    async def create(self, kind: str, payload: Mapping[str, Any]) -> str:
        endpoints = get_endpoints(kind)
        params = copy.deepcopy(dict(payload))
        action = params.pop("action", endpoints.create)
        key = str(params.get(endpoints.id_param) or "")

        self.state.record(MockCall("create", kind, key, action, dict(params)))
        if not key:
            key = self.state.next_id(kind)
            params[endpoints.id_param] = key
        self.state.create(kind, key, params)
        return key

    async def read(self, kind: str, key: str) -> Mapping[str, Any]:
        self.state.record(MockCall("read", kind, key, get_endpoints(kind).read))
        snapshot = self.state.get(kind, key)
        if snapshot is None:
            raise NotFoundError(kind, key)
        return snapshot

    async def find(self, kind: str, criteria: Mapping[str, str]) -> str | None:
        self.state.record(MockCall("find", kind, "", get_endpoints(kind).lookup, dict(criteria)))
        keys = self.state.find(kind, criteria)
        if len(keys) > 1:
            raise ValueError(f"{len(keys)} {kind} resources match {dict(criteria)}")
        return keys[0] if keys else None

    async def update(self, kind: str, key: str, delta: Mapping[str, Any]) -> None:
        params = dict(delta)
        action = params.pop("action")
        self.state.record(MockCall("update", kind, key, action, params))
        self.state.update(kind, key, action, params)

    async def delete(self, kind: str, key: str) -> None:
        self.state.record(MockCall("delete", kind, key, get_endpoints(kind).delete))
        self.state.delete(kind, key)
