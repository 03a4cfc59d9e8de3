"""Controller mock for integration testing.

Provides an in-memory implementation of the Remote Operations Interface so
full reconciliation passes run without a controller.

Key Features:
- In-memory state per (kind, key), seeded or created by the engine
- Lookup by natural key for controller-assigned IDs
- Update actions merged into the stored snapshot (enable_/disable_ flags)
- Call log for ordering assertions
- Error injection per action name

Usage:
    from controller_mock import MockRemote

    remote = MockRemote()
    result = await Reconciler(remote).reconcile(spec)

    assert remote.state.actions("create") == ["create_spoke_gw"]
"""

from .resources import MockCall, MockControllerState, MockRemote

__all__ = [
    "MockCall",
    "MockControllerState",
    "MockRemote",
]
