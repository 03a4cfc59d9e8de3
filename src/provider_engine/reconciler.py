"""Reconciliation orchestrator.

Runs one reconciliation pass for one resource instance:

1. Read the observed state (NotFound means the resource is absent); a
   resource whose ID the controller assigns is first found by natural key
2. Plan the ordered operations (validation happens before any remote call)
3. Apply them one by one through the Remote Operations Interface

There is no loop, no polling and no retry here. The first failing operation
stops the pass; if earlier operations were committed the caller receives a
PartialReconciliationError listing exactly what was applied, so the next
pass can read fresh state and resume. Cancellation is never caught: an
asyncio.CancelledError from the remote collaborator propagates unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .ha import HaState, resolve
from .models import BaseSpec, ObservedState
from .planner import Operation, RemoteAction, ha_transition, plan_deletion, plan_reconciliation
from .remote import NotFoundError, RemoteOperationError, RemoteOperations
from .resources import get_family
from .validator import ensure_valid

logger = logging.getLogger(__name__)


class PartialReconciliationError(Exception):
    """An operation failed after earlier operations were committed.

    Attributes:
        committed: Operations applied before the failure, in order.
        failed: The operation that failed.
        cause: The RemoteOperationError raised for it.
        ha_state: HA state left behind (ENABLING when the secondary
            creation failed, so the next pass retries only the secondary).
    """

    def __init__(
        self,
        committed: list[Operation],
        failed: Operation,
        cause: RemoteOperationError,
        ha_state: HaState | None = None,
    ) -> None:
        self.committed = list(committed)
        self.failed = failed
        self.cause = cause
        self.ha_state = ha_state
        done = ", ".join(op.name for op in committed)
        super().__init__(
            f"Reconciliation stopped at '{failed.name}' after committing [{done}]: {cause.cause}"
        )


@dataclass
class ReconcileResult:
    """Result of a single reconciliation pass."""

    kind: str
    key: str
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    operations: list[Operation] = field(default_factory=list)
    committed: list[Operation] = field(default_factory=list)
    remote_id: str = ""
    ha_state: HaState | None = None
    dry_run: bool = False

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def changed(self) -> bool:
        return bool(self.committed)


class Reconciler:
    """Single-pass reconciler over a Remote Operations Interface.

    Holds no state between passes; concurrent passes for different resource
    instances may share one Reconciler.
    """

    def __init__(self, remote: RemoteOperations, *, dry_run: bool = False) -> None:
        self._remote = remote
        self._dry_run = dry_run

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    async def read(self, kind: str, key: str) -> ObservedState | None:
        """Fetch and decode the observed state of a resource.

        Returns:
            ObservedState, or None if the resource does not exist.

        Raises:
            RemoteOperationError: If the controller read fails.
            MalformedTokenError: If a composite field cannot be decoded.
        """
        family = get_family(kind)
        raw = await self._read_raw(family.endpoints.read, kind, key)
        if raw is None:
            logger.info("Resource not found", extra={"kind": kind, "key": key})
            return None

        secondary_raw = None
        if family.ha is not None:
            secondary = family.ha.pair(key).secondary
            secondary_raw = await self._read_raw(family.endpoints.read, family.ha.kind, secondary)

        return family.observe(key, raw, secondary_raw)

    async def lookup(self, desired: BaseSpec) -> str:
        """Find the remote ID of an existing instance by its natural key.

        Returns an empty string for families without a natural key or when
        no instance matches.

        Raises:
            RemoteOperationError: If the controller lookup fails.
        """
        family = get_family(desired.kind)
        if not family.natural_key:
            return ""

        criteria = {name: str(getattr(desired, name)) for name in family.natural_key}
        try:
            found = await self._remote.find(desired.kind, criteria)
        except RemoteOperationError:
            raise
        except Exception as e:
            raise RemoteOperationError(family.endpoints.lookup, family.natural_key, e) from e

        if found:
            logger.info(
                "Found existing resource by natural key",
                extra={"kind": desired.kind, "key": found, "criteria": criteria},
            )
        return found or ""

    async def _read_raw(self, action: str, kind: str, key: str) -> dict[str, Any] | None:
        try:
            return dict(await self._remote.read(kind, key))
        except NotFoundError:
            return None
        except RemoteOperationError:
            raise
        except Exception as e:
            raise RemoteOperationError(action, (), e) from e

    async def plan(
        self, desired: BaseSpec
    ) -> tuple[ObservedState | None, list[Operation], HaState | None]:
        """Read the observed state and plan the pass.

        Resources whose key is assigned by the controller are looked up by
        their natural key first, and planned as creates only when no
        instance matches.

        Raises:
            ValidationError: If the configuration is rejected (before the
                read) or the transition is rejected (after it).
        """
        ensure_valid(desired)
        key = desired.resource_key or await self.lookup(desired)
        observed = await self.read(desired.kind, key) if key else None
        operations = plan_reconciliation(observed, desired)
        return observed, operations, ha_transition(observed, desired)

    async def apply(
        self,
        operations: list[Operation],
        ha_state: HaState | None = None,
    ) -> tuple[list[Operation], dict[str, str]]:
        """Execute planned operations in order.

        Returns:
            Committed operations and the remote IDs of created resources,
            keyed by remote kind.

        Raises:
            RemoteOperationError: If the first operation fails.
            PartialReconciliationError: If a later operation fails.
        """
        committed: list[Operation] = []
        created: dict[str, str] = {}

        for op in operations:
            try:
                remote_id = await self._execute(op, created)
            except Exception as e:
                error = e if isinstance(e, RemoteOperationError) else RemoteOperationError(
                    op.name, op.fields, e
                )
                logger.error(
                    "Operation failed",
                    extra={
                        "kind": op.resource_kind,
                        "key": op.key,
                        "operation": op.name,
                        "fields": list(op.fields),
                        "committed": len(committed),
                        "error": str(e),
                    },
                )
                if not committed:
                    raise error from e
                left = None
                if ha_state is not None:
                    left = resolve(ha_state, _secondary_done(operations, committed))
                raise PartialReconciliationError(committed, op, error, left) from e

            if remote_id is not None:
                created[op.resource_kind] = remote_id
            committed.append(op)
            logger.info(
                "Operation applied",
                extra={
                    "kind": op.resource_kind,
                    "key": op.key or created.get(op.resource_kind, ""),
                    "operation": op.name,
                    "classification": op.classification.value,
                },
            )

        return committed, created

    async def _execute(self, op: Operation, created: dict[str, str]) -> str | None:
        key = op.key or created.get(op.resource_kind, "")
        match op.action:
            case RemoteAction.CREATE:
                return await self._remote.create(op.resource_kind, op.payload)
            case RemoteAction.UPDATE:
                await self._remote.update(op.resource_kind, key, op.payload)
            case RemoteAction.DELETE:
                await self._remote.delete(op.resource_kind, key)
        return None

    async def reconcile(self, desired: BaseSpec) -> ReconcileResult:
        """Run one full pass for a desired configuration.

        Raises:
            ValidationError: Before any remote call, if the configuration
                is rejected.
            RemoteOperationError: If the read or the first operation fails.
            PartialReconciliationError: If a later operation fails.
            MalformedTokenError: If the observed state cannot be decoded.
            FieldDecodeError: If an observed value does not fit its field.
        """
        result = ReconcileResult(kind=desired.kind, key=desired.resource_key, dry_run=self._dry_run)
        observed, operations, state = await self.plan(desired)
        result.operations = operations
        result.ha_state = state

        if self._dry_run or not operations:
            result.remote_id = observed.key if observed is not None else desired.resource_key
            result.end_time = datetime.now(UTC)
            self._log_result(result)
            return result

        committed, created = await self.apply(operations, state)
        result.committed = committed
        result.remote_id = created.get(desired.kind) or (
            observed.key if observed is not None else desired.resource_key
        )
        if state is not None:
            result.ha_state = resolve(state, True)
        result.end_time = datetime.now(UTC)
        self._log_result(result)
        return result

    async def destroy(self, kind: str, key: str) -> ReconcileResult:
        """Delete a resource and its HA secondary.

        A resource that is already gone plans nothing.
        """
        result = ReconcileResult(kind=kind, key=key, dry_run=self._dry_run)
        observed = await self.read(kind, key)
        if observed is not None:
            result.operations = plan_deletion(observed)
            if get_family(kind).ha is not None:
                result.ha_state = (
                    HaState.DISABLING if observed.secondary_present else HaState.ABSENT
                )

        if result.operations and not self._dry_run:
            result.committed, _ = await self.apply(result.operations, result.ha_state)
            if result.ha_state is not None:
                result.ha_state = resolve(result.ha_state, True)

        result.remote_id = key
        result.end_time = datetime.now(UTC)
        self._log_result(result)
        return result

    def _log_result(self, result: ReconcileResult) -> None:
        """Log reconciliation result with structured data."""
        extra: dict[str, Any] = {
            "kind": result.kind,
            "key": result.key or result.remote_id,
            "duration_seconds": result.duration_seconds,
            "planned": len(result.operations),
            "committed": len(result.committed),
            "dry_run": result.dry_run,
        }
        if result.ha_state is not None:
            extra["ha_state"] = result.ha_state.value

        if result.dry_run and result.operations:
            logger.info("Reconciliation planned (dry run)", extra=extra)
        elif not result.operations:
            logger.info("No drift detected", extra=extra)
        else:
            logger.info("Reconciliation result", extra=extra)


def _secondary_done(operations: list[Operation], committed: list[Operation]) -> bool:
    return all(op in committed for op in operations if op.secondary)
