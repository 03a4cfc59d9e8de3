"""Remote Operations Interface.

The engine talks to the controller only through this interface. Every call
is synchronous-to-acceptance: the controller may finish the change later,
the engine never polls for completion.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any


class NotFoundError(Exception):
    """The controller has no resource with this key.

    An expected outcome on read (deleted out-of-band), not a failure.
    """

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} '{key}' does not exist")


class RemoteOperationError(Exception):
    """A remote call failed.

    Wraps the collaborator's error with the operation name and the fields it
    was resolving. Never retried by the engine.
    """

    def __init__(self, operation: str, fields: tuple[str, ...], cause: BaseException) -> None:
        self.operation = operation
        self.fields = fields
        self.cause = cause
        where = f" ({', '.join(fields)})" if fields else ""
        super().__init__(f"Operation '{operation}'{where} failed: {cause}")


class RemoteOperations(ABC):
    """What the orchestrator needs from a controller transport."""

    @abstractmethod
    async def create(self, kind: str, payload: Mapping[str, Any]) -> str:
        """Create a resource and return its remote ID."""
        pass

    @abstractmethod
    async def read(self, kind: str, key: str) -> Mapping[str, Any]:
        """Return the resource snapshot.

        Raises:
            NotFoundError: If the resource does not exist.
        """
        pass

    @abstractmethod
    async def find(self, kind: str, criteria: Mapping[str, str]) -> str | None:
        """Return the remote ID of the resource matching ``criteria``.

        Used for resources whose ID is assigned by the controller, to find an
        existing instance by its natural key. None if nothing matches.
        """
        pass

    @abstractmethod
    async def update(self, kind: str, key: str, delta: Mapping[str, Any]) -> None:
        """Apply one update action (``delta["action"]``) to the resource."""
        pass

    @abstractmethod
    async def delete(self, kind: str, key: str) -> None:
        """Delete the resource."""
        pass
