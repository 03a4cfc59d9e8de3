"""Tests for desired-config models."""

import pytest
from conftest import make_gateway
from pydantic import ValidationError

from provider_engine.models import (
    AccountSpec,
    BgpLanInterface,
    FirewallInstanceSpec,
    GatewayGroupSpec,
    GatewaySpec,
    ObservedState,
    get_spec_class,
)


class TestGatewaySpec:
    """Tests for GatewaySpec model."""

    def test_defaults(self) -> None:
        spec = make_gateway()

        assert spec.kind == "gateway"
        assert spec.resource_key == "spoke-1"
        assert spec.bgp_hold_time == 180
        assert spec.allocate_new_eip is True
        assert spec.ha_requested is False

    def test_lax_coercion(self) -> None:
        """Test that loosely typed YAML values are normalized."""
        spec = make_gateway(
            enable_bgp="true",
            bgp_hold_time="90",
            local_as_number=65001,
            prepend_as_path=["65001", "65001"],
            bgp_manual_advertise_cidrs=["10.1.0.0/16", "10.2.0.0/16"],
        )

        assert spec.enable_bgp is True
        assert spec.bgp_hold_time == 90
        assert spec.local_as_number == "65001"
        assert spec.prepend_as_path == ("65001", "65001")
        assert spec.bgp_manual_advertise_cidrs == frozenset({"10.1.0.0/16", "10.2.0.0/16"})

    def test_null_means_default(self) -> None:
        spec = make_gateway(bgp_hold_time=None, zone=None)

        assert spec.bgp_hold_time == 180
        assert spec.zone == ""

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            make_gateway(unknown_field="x")

    def test_subnet_must_be_cidr(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            make_gateway(subnet="10.0.1.0")

        assert "CIDR" in str(exc_info.value)

    def test_frozen(self) -> None:
        spec = make_gateway()
        with pytest.raises(ValidationError):
            spec.gw_size = "t3.large"  # type: ignore[misc]

    def test_ha_requested(self) -> None:
        assert make_gateway(ha_subnet="10.0.2.0/24").ha_requested
        assert make_gateway(cloud_type=4, ha_zone="us-west1-b").ha_requested


class TestBgpLanInterface:
    """Tests for the BGP-over-LAN interface record."""

    def test_valid(self) -> None:
        interface = BgpLanInterface(vpc_id="lan-vpc", subnet="172.16.0.0/24")
        assert interface.vpc_id == "lan-vpc"

    def test_nested_in_gateway(self) -> None:
        spec = make_gateway(
            cloud_type=4,
            bgp_lan_interfaces=[{"vpc_id": "lan-vpc", "subnet": "172.16.0.0/24"}],
        )
        assert spec.bgp_lan_interfaces[0].subnet == "172.16.0.0/24"

    def test_requires_vpc_id(self) -> None:
        with pytest.raises(ValidationError):
            BgpLanInterface(vpc_id="", subnet="172.16.0.0/24")

    def test_rejects_unknown_keys(self) -> None:
        with pytest.raises(ValidationError):
            BgpLanInterface(vpc_id="lan-vpc", subnet="172.16.0.0/24", zone="a")  # type: ignore[call-arg]


class TestOtherFamilies:
    """Tests for account, gateway group and firewall instance models."""

    def test_account_key(self) -> None:
        spec = AccountSpec(account_name="gcp-dev", cloud_type=4, rbac_groups=["ops", "net"])
        assert spec.resource_key == "gcp-dev"
        assert spec.rbac_groups == frozenset({"ops", "net"})

    def test_group_requires_size(self) -> None:
        with pytest.raises(ValidationError):
            GatewayGroupSpec(group_name="g", cloud_type=1, vpc_id="v", account_name="a")

    def test_firewall_key_assigned_on_create(self) -> None:
        spec = FirewallInstanceSpec(
            cloud_type=1,
            gw_name="fw-gw",
            vpc_id="vpc-1",
            firewall_name="fw",
            firewall_image="Fortinet FortiGate Next-Generation Firewall",
            firewall_size="c5.xlarge",
            egress_subnet="10.1.0.0/28",
        )
        assert spec.resource_key == ""


class TestObservedState:
    """Tests for ObservedState."""

    def test_get(self) -> None:
        observed = ObservedState(kind="gateway", key="spoke-1", values={"gw_size": "t3.medium"})

        assert observed.get("gw_size") == "t3.medium"
        assert observed.get("missing", "x") == "x"
        assert observed.secondary_present is False


class TestRegistry:
    """Tests for the spec registry."""

    def test_get_spec_class(self) -> None:
        assert get_spec_class("gateway") is GatewaySpec

    def test_unknown_kind(self) -> None:
        with pytest.raises(ValueError, match="Unknown kind"):
            get_spec_class("vpn")
