"""Tests for the single-pass reconciler.

These tests run full passes against MockRemote, an in-memory controller,
so that a pass that applied its operations reads back on the next pass.
"""

from __future__ import annotations

import asyncio

import pytest
from conftest import make_firewall, make_gateway
from controller_mock import MockRemote

from provider_engine.ha import HaState
from provider_engine.reconciler import PartialReconciliationError, Reconciler
from provider_engine.remote import RemoteOperationError
from provider_engine.validator import ValidationError

HA = {"ha_subnet": "10.0.2.0/24", "ha_gw_size": "t3.medium"}


def full_gateway():
    return make_gateway(
        **HA,
        enable_bgp=True,
        local_as_number="65001",
        prepend_as_path=["65001", "65001"],
        enable_jumbo_frame=True,
        tags={"env": "prod", "team": "net"},
    )


class TestCreate:
    """Tests for passes against an absent resource."""

    @pytest.mark.asyncio
    async def test_create_then_converged(self, remote: MockRemote) -> None:
        """Test that a second pass against the created resource plans nothing."""
        reconciler = Reconciler(remote)
        desired = full_gateway()

        first = await reconciler.reconcile(desired)

        assert first.changed
        assert first.remote_id == "spoke-1"
        assert first.ha_state == HaState.PRESENT
        assert remote.state.actions("create") == ["create_spoke_gw", "create_multicloud_ha_gateway"]
        assert remote.state.get("gateway_ha", "spoke-1-hagw") is not None

        second = await reconciler.reconcile(desired)

        assert second.operations == []
        assert not second.changed
        assert second.ha_state == HaState.PRESENT

    @pytest.mark.asyncio
    async def test_created_snapshot(self, remote: MockRemote) -> None:
        await Reconciler(remote).reconcile(full_gateway())

        snapshot = remote.state.get("gateway", "spoke-1")
        assert snapshot is not None
        assert snapshot["gw_subnet"] == "10.0.1.0/24"
        assert snapshot["enable_bgp"] is True
        assert snapshot["local_as_number"] == "65001"
        assert snapshot["prepend_as_path"] == ["65001", "65001"]
        assert snapshot["tags"] == {"env": "prod", "team": "net"}

    @pytest.mark.asyncio
    async def test_deleted_out_of_band_is_recreated(self, remote: MockRemote) -> None:
        reconciler = Reconciler(remote)
        await reconciler.reconcile(make_gateway())
        remote.state.remove("gateway", "spoke-1")

        result = await reconciler.reconcile(make_gateway())

        assert [op.name for op in result.committed] == ["create_spoke_gw"]
        assert remote.state.get("gateway", "spoke-1") is not None

    @pytest.mark.asyncio
    async def test_controller_assigned_key(self, remote: MockRemote) -> None:
        """Test that operations after create use the key the controller assigned."""
        reconciler = Reconciler(remote)

        result = await reconciler.reconcile(make_firewall(tags={"env": "prod"}))

        assert result.remote_id == "firewall_instance-1"
        assert [op.name for op in result.committed] == ["add_firewall_instance", "update_tags"]
        tag_call = remote.state.calls[-1]
        assert tag_call.key == "firewall_instance-1"

        adopted = make_firewall(instance_id=result.remote_id, tags={"env": "prod"})
        again = await reconciler.reconcile(adopted)

        assert again.operations == []

    @pytest.mark.asyncio
    async def test_empty_key_skips_read(self, remote: MockRemote) -> None:
        await Reconciler(remote).reconcile(make_firewall())

        assert remote.state.actions("find") == ["list_firewall_instances"]
        assert remote.state.actions("read") == []

    @pytest.mark.asyncio
    async def test_assigned_key_found_on_next_pass(self, remote: MockRemote) -> None:
        """Test that a second pass finds the instance instead of creating another."""
        reconciler = Reconciler(remote)
        desired = make_firewall(tags={"env": "prod"})

        first = await reconciler.reconcile(desired)
        second = await reconciler.reconcile(desired)

        assert second.operations == []
        assert second.remote_id == first.remote_id == "firewall_instance-1"
        assert remote.state.actions("create") == ["add_firewall_instance"]
        assert remote.state.resource_count == 1
        lookup = [c for c in remote.state.calls if c.method == "find"][-1]
        assert lookup.payload == {"gw_name": "transit-fw", "firewall_name": "fw-1"}

    @pytest.mark.asyncio
    async def test_assigned_key_drift_updates_found_instance(self, remote: MockRemote) -> None:
        reconciler = Reconciler(remote)
        await reconciler.reconcile(make_firewall())

        result = await reconciler.reconcile(make_firewall(firewall_size="c5.2xlarge"))

        assert [op.name for op in result.committed] == ["edit_firewall_size"]
        assert result.committed[0].key == "firewall_instance-1"
        assert remote.state.get("firewall_instance", "firewall_instance-1")["firewall_size"] == (
            "c5.2xlarge"
        )

    @pytest.mark.asyncio
    async def test_lookup_failure_is_wrapped(self, remote: MockRemote) -> None:
        remote.state.fail_on("list_firewall_instances")

        with pytest.raises(RemoteOperationError) as exc_info:
            await Reconciler(remote).reconcile(make_firewall())

        assert exc_info.value.operation == "list_firewall_instances"
        assert exc_info.value.fields == ("gw_name", "firewall_name")
        assert remote.state.actions("create") == []


class TestUpdate:
    """Tests for passes against an existing resource."""

    @pytest.mark.asyncio
    async def test_update_applies_only_changes(self, remote: MockRemote) -> None:
        reconciler = Reconciler(remote)
        await reconciler.reconcile(full_gateway())
        remote.state.calls.clear()

        desired = full_gateway().model_copy(update={"gw_size": "t3.large"})
        result = await reconciler.reconcile(desired)

        assert [op.name for op in result.committed] == ["edit_gw_size"]
        assert remote.state.get("gateway", "spoke-1")["gw_size"] == "t3.large"

    @pytest.mark.asyncio
    async def test_disable_ha(self, remote: MockRemote) -> None:
        reconciler = Reconciler(remote)
        await reconciler.reconcile(make_gateway(**HA))

        result = await reconciler.reconcile(make_gateway())

        assert result.ha_state == HaState.ABSENT
        assert remote.state.get("gateway_ha", "spoke-1-hagw") is None
        assert remote.state.get("gateway", "spoke-1") is not None

    @pytest.mark.asyncio
    async def test_secondary_removed_out_of_band(self, remote: MockRemote) -> None:
        reconciler = Reconciler(remote)
        await reconciler.reconcile(make_gateway(**HA))
        remote.state.remove("gateway_ha", "spoke-1-hagw")

        result = await reconciler.reconcile(make_gateway(**HA))

        assert [op.name for op in result.committed] == ["create_multicloud_ha_gateway"]

    @pytest.mark.asyncio
    async def test_rejected_transition(self, remote: MockRemote) -> None:
        reconciler = Reconciler(remote)
        await reconciler.reconcile(make_gateway(enable_encrypt_volume=True))
        remote.state.calls.clear()

        with pytest.raises(ValidationError) as exc_info:
            await reconciler.reconcile(make_gateway())

        assert exc_info.value.violation.rule == "encrypt_volume_enable_only"
        assert remote.state.actions("update") == []


class TestFailures:
    """Tests for error propagation."""

    @pytest.mark.asyncio
    async def test_invalid_config_makes_no_calls(self, remote: MockRemote) -> None:
        desired = make_gateway(enable_active_standby_preemptive=True)

        with pytest.raises(ValidationError):
            await Reconciler(remote).reconcile(desired)

        assert remote.state.calls == []

    @pytest.mark.asyncio
    async def test_first_operation_failure(self, remote: MockRemote) -> None:
        remote.state.fail_on("create_spoke_gw")

        with pytest.raises(RemoteOperationError) as exc_info:
            await Reconciler(remote).reconcile(make_gateway())

        assert exc_info.value.operation == "create_spoke_gw"
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert remote.state.resource_count == 0

    @pytest.mark.asyncio
    async def test_secondary_failure_is_partial(self, remote: MockRemote) -> None:
        """Test a failed secondary create leaves HA enabling and resumes next pass."""
        reconciler = Reconciler(remote)
        desired = make_gateway(**HA)
        remote.state.fail_on("create_multicloud_ha_gateway")

        with pytest.raises(PartialReconciliationError) as exc_info:
            await reconciler.reconcile(desired)

        error = exc_info.value
        assert [op.name for op in error.committed] == ["create_spoke_gw"]
        assert error.failed.name == "create_multicloud_ha_gateway"
        assert error.ha_state == HaState.ENABLING
        assert error.cause.operation == "create_multicloud_ha_gateway"

        remote.state.clear_failures()
        retry = await reconciler.reconcile(desired)

        assert [op.name for op in retry.committed] == ["create_multicloud_ha_gateway"]
        assert retry.ha_state == HaState.PRESENT

    @pytest.mark.asyncio
    async def test_toggle_failure_after_secondary(self, remote: MockRemote) -> None:
        remote.state.fail_on("enable_jumbo_frame")

        with pytest.raises(PartialReconciliationError) as exc_info:
            await Reconciler(remote).reconcile(make_gateway(**HA, enable_jumbo_frame=True))

        assert exc_info.value.ha_state == HaState.PRESENT
        assert "enable_jumbo_frame" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_read_failure_is_wrapped(self, remote: MockRemote) -> None:
        remote.state.fail_on("get_gateway_info")

        with pytest.raises(RemoteOperationError) as exc_info:
            await Reconciler(remote).reconcile(make_gateway())

        assert exc_info.value.operation == "get_gateway_info"
        assert remote.state.actions("create") == []

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, remote: MockRemote) -> None:
        remote.state.fail_on("create_spoke_gw", asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await Reconciler(remote).reconcile(make_gateway())


class TestDryRun:
    """Tests for dry-run passes."""

    @pytest.mark.asyncio
    async def test_no_mutations(self, remote: MockRemote) -> None:
        result = await Reconciler(remote, dry_run=True).reconcile(full_gateway())

        assert result.dry_run
        assert result.operations
        assert result.committed == []
        assert remote.state.actions("create") == []
        assert remote.state.resource_count == 0


class TestDestroy:
    """Tests for destroy()."""

    @pytest.mark.asyncio
    async def test_secondary_deleted_first(self, remote: MockRemote) -> None:
        reconciler = Reconciler(remote)
        await reconciler.reconcile(make_gateway(**HA))
        remote.state.calls.clear()

        result = await reconciler.destroy("gateway", "spoke-1")

        deletes = [(c.kind, c.key) for c in remote.state.calls if c.method == "delete"]
        assert deletes == [("gateway_ha", "spoke-1-hagw"), ("gateway", "spoke-1")]
        assert result.ha_state == HaState.ABSENT
        assert remote.state.resource_count == 0

    @pytest.mark.asyncio
    async def test_missing_resource(self, remote: MockRemote) -> None:
        result = await Reconciler(remote).destroy("gateway", "nope")

        assert result.operations == []
        assert not result.changed

    @pytest.mark.asyncio
    async def test_dry_run_keeps_resource(self, remote: MockRemote) -> None:
        await Reconciler(remote).reconcile(make_gateway())

        result = await Reconciler(remote, dry_run=True).destroy("gateway", "spoke-1")

        assert [op.name for op in result.operations] == ["delete_gateway"]
        assert remote.state.get("gateway", "spoke-1") is not None
