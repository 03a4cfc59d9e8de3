"""Pydantic models for desired resource configuration.

These models provide:
1. Type-safe YAML parsing
2. Normalization of loosely typed input ("true", "12", lists) into typed
   scalars, sets and ordered tuples
3. Immutable records, one per reconciliation pass

Cross-field rules (cloud scoping, couplings, ranges) are deliberately not
enforced here; they belong to the validator so that they are evaluated in a
fixed order and reported one at a time.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Annotated, Any, ClassVar

from pydantic import BaseModel, Field, field_validator, model_validator

# =============================================================================
# Base Models
# =============================================================================


class BaseSpec(BaseModel):
    """Base desired configuration shared by every resource family."""

    model_config = {"extra": "forbid", "frozen": True, "coerce_numbers_to_str": True}

    kind: ClassVar[str] = ""
    key_field: ClassVar[str] = ""

    cloud_type: int

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        """Treat explicit nulls as absent so field defaults apply."""
        if isinstance(data, Mapping):
            return {k: v for k, v in data.items() if v is not None}
        return data

    @property
    def resource_key(self) -> str:
        """Remote key of the primary resource ("" when assigned on create)."""
        return str(getattr(self, self.key_field, ""))


class BgpLanInterface(BaseModel):
    """One BGP-over-LAN interface of a GCP gateway."""

    model_config = {"extra": "forbid", "frozen": True}

    vpc_id: Annotated[str, Field(min_length=1)]
    subnet: str

    @field_validator("subnet")
    @classmethod
    def validate_cidr(cls, v: str) -> str:
        if "/" not in v:
            raise ValueError("subnet must be in CIDR notation (e.g., 10.0.0.0/24)")
        return v


# =============================================================================
# Access Accounts
# =============================================================================


class AccountSpec(BaseSpec):
    """Cloud access account onboarded to the controller."""

    kind: ClassVar[str] = "account"
    key_field: ClassVar[str] = "account_name"

    account_name: Annotated[str, Field(min_length=1)]

    # AWS
    aws_account_number: str = ""
    aws_iam: bool = False
    aws_access_key: str = ""
    aws_secret_key: str = ""
    aws_role_app: str = ""
    aws_role_ec2: str = ""
    aws_gateway_role_app: str = ""
    aws_gateway_role_ec2: str = ""

    # GCP
    gcloud_project_id: str = ""
    gcloud_project_credentials_filepath: str = ""

    # Azure
    arm_subscription_id: str = ""
    arm_directory_id: str = ""
    arm_application_id: str = ""
    arm_application_key: str = ""

    # OCI
    oci_tenancy_id: str = ""
    oci_user_id: str = ""
    oci_compartment_id: str = ""
    oci_api_private_key_filepath: str = ""

    # AliCloud
    alicloud_account_id: str = ""
    alicloud_access_key: str = ""
    alicloud_secret_key: str = ""

    rbac_groups: frozenset[str] = frozenset()


# =============================================================================
# Gateways
# =============================================================================


class GatewaySpec(BaseSpec):
    """Spoke or transit gateway with an optional HA peer."""

    kind: ClassVar[str] = "gateway"
    key_field: ClassVar[str] = "gw_name"

    gw_name: Annotated[str, Field(min_length=1)]
    gateway_type: str = "spoke"
    account_name: Annotated[str, Field(min_length=1)]
    vpc_id: Annotated[str, Field(min_length=1)]
    vpc_reg: Annotated[str, Field(min_length=1)]
    gw_size: Annotated[str, Field(min_length=1)]
    subnet: str
    zone: str = ""

    allocate_new_eip: bool = True
    eip: str = ""

    insane_mode: bool = False
    insane_mode_az: str = ""

    # OCI placement
    availability_domain: str = ""
    fault_domain: str = ""

    # HA peer
    ha_subnet: str = ""
    ha_zone: str = ""
    ha_gw_size: str = ""
    ha_insane_mode_az: str = ""
    ha_availability_domain: str = ""
    ha_fault_domain: str = ""
    ha_eip: str = ""

    # BGP
    enable_bgp: bool = False
    local_as_number: str = ""
    prepend_as_path: tuple[str, ...] = ()
    bgp_manual_advertise_cidrs: frozenset[str] = frozenset()
    enable_bgp_ecmp: bool = False
    bgp_hold_time: int = 180
    bgp_polling_time: int = 50
    bgp_neighbor_status_polling_time: int = 5
    enable_bgp_over_lan: bool = False
    bgp_lan_interfaces_count: int = 0
    bgp_lan_interfaces: tuple[BgpLanInterface, ...] = ()

    enable_active_standby: bool = False
    enable_active_standby_preemptive: bool = False

    enable_encrypt_volume: bool = False
    customer_managed_keys: str = ""

    enable_monitor_gateway_subnets: bool = False
    monitor_exclude_list: frozenset[str] = frozenset()

    enable_private_oob: bool = False
    oob_management_subnet: str = ""
    oob_availability_zone: str = ""
    ha_oob_management_subnet: str = ""
    ha_oob_availability_zone: str = ""

    enable_spot_instance: bool = False
    spot_price: str = ""
    delete_spot: bool = False

    insertion_gateway: bool = False
    insertion_gateway_az: str = ""

    enable_designated_gateway: bool = False
    enable_global_vpc: bool = False
    enable_jumbo_frame: bool = False
    enable_vpc_dns_server: bool = False
    enable_transit_firenet: bool = False
    rx_queue_size: str = ""
    tunnel_detection_time: int = 0

    tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("subnet", "ha_subnet", "oob_management_subnet", "ha_oob_management_subnet")
    @classmethod
    def validate_cidr(cls, v: str) -> str:
        if v and "/" not in v:
            raise ValueError("subnet must be in CIDR notation (e.g., 10.0.0.0/24)")
        return v

    @property
    def ha_requested(self) -> bool:
        return bool(self.ha_subnet or self.ha_zone)


# =============================================================================
# Gateway Groups
# =============================================================================


class GatewayGroupSpec(BaseSpec):
    """Group of transit or spoke gateways sharing one VPC and feature set."""

    kind: ClassVar[str] = "gateway_group"
    key_field: ClassVar[str] = "group_name"

    group_name: Annotated[str, Field(min_length=1)]
    gw_type: str = "TRANSIT"
    group_instance_size: Annotated[str, Field(min_length=1)]
    vpc_id: Annotated[str, Field(min_length=1)]
    account_name: Annotated[str, Field(min_length=1)]

    enable_ipv6: bool = False
    enable_insane_mode: bool = False
    enable_bgp_over_lan: bool = False
    enable_gateway_load_balancer: bool = False
    enable_global_vpc: bool = False
    enable_jumbo_frame: bool = True
    enable_gro_gso: bool = True
    enable_nat: bool = False
    enable_vpc_dns_server: bool = False

    enable_bgp: bool = False
    local_as_number: str = ""
    prepend_as_path: tuple[str, ...] = ()
    bgp_hold_time: int = 180
    bgp_polling_time: int = 50
    bgp_neighbor_status_polling_time: int = 5
    bgp_accept_communities: bool = False
    bgp_send_communities: bool = False

    enable_active_standby: bool = False
    enable_active_standby_preemptive: bool = False

    enable_learned_cidrs_approval: bool = False
    approved_learned_cidrs: frozenset[str] = frozenset()

    enable_firenet: bool = False
    enable_transit_firenet: bool = False


# =============================================================================
# Firewall Instances
# =============================================================================


class FirewallInstanceSpec(BaseSpec):
    """Third-party firewall instance attached to a FireNet gateway."""

    kind: ClassVar[str] = "firewall_instance"
    key_field: ClassVar[str] = "instance_id"

    # Assigned by the controller on create; set it to adopt an existing instance
    instance_id: str = ""

    gw_name: Annotated[str, Field(min_length=1)]
    vpc_id: Annotated[str, Field(min_length=1)]
    firewall_name: Annotated[str, Field(min_length=1)]
    firewall_image: Annotated[str, Field(min_length=1)]
    firewall_image_version: str = ""
    firewall_size: Annotated[str, Field(min_length=1)]
    egress_subnet: str
    management_subnet: str = ""
    zone: str = ""

    # GCP
    management_vpc_id: str = ""
    egress_vpc_id: str = ""

    # Azure
    username: str = ""
    password: str = ""
    ssh_public_key: str = ""

    # AWS
    iam_role: str = ""
    bootstrap_bucket_name: str = ""

    tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("egress_subnet", "management_subnet")
    @classmethod
    def validate_cidr(cls, v: str) -> str:
        if v and "/" not in v:
            raise ValueError("subnet must be in CIDR notation (e.g., 10.0.0.0/24)")
        return v


# =============================================================================
# Observed State
# =============================================================================


@dataclass(frozen=True)
class ObservedState:
    """Last-known remote representation of one resource.

    Attributes:
        kind: Resource family.
        key: Remote key of the primary node.
        values: Field values decoded from the controller snapshot.
        secondary_present: Whether the HA peer was observed.
        raw: The undecoded primary snapshot, kept for diagnostics.
    """

    kind: str
    key: str
    values: Mapping[str, Any] = field(default_factory=dict)
    secondary_present: bool = False
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)


# =============================================================================
# Registry
# =============================================================================

SPEC_REGISTRY: dict[str, type[BaseSpec]] = {
    "account": AccountSpec,
    "gateway": GatewaySpec,
    "gateway_group": GatewayGroupSpec,
    "firewall_instance": FirewallInstanceSpec,
}


def get_spec_class(kind: str) -> type[BaseSpec]:
    """Get the spec class for a resource kind.

    Raises:
        ValueError: If kind is not recognized.
    """
    spec_class = SPEC_REGISTRY.get(kind)
    if spec_class is None:
        valid_kinds = list(SPEC_REGISTRY.keys())
        raise ValueError(f"Unknown kind '{kind}'. Valid kinds: {valid_kinds}")
    return spec_class
