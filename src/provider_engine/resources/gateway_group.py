"""Gateway groups.

A group shares one VPC, instance size and feature set across its member
gateways. It has no HA peer of its own and no tags.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..cloud_types import (
    AWS_RELATED,
    AZURE_ARM_RELATED,
    GCP_RELATED,
    OCI_RELATED,
    CloudType,
)
from ..differ import FieldKind, FieldSpec, Mutability
from ..models import GatewayGroupSpec
from ..tokens import first_segment
from ..validator import (
    RuleCategory,
    cloud_scoped,
    coupled,
    custom,
    in_range,
    known_cloud_type,
    mutually_exclusive,
    one_of,
)
from .base import (
    Endpoints,
    Resize,
    ResourceFamily,
    active_standby,
    as_path,
    setter,
    switch,
)

GROUP_CLOUDS = AWS_RELATED | GCP_RELATED | AZURE_ARM_RELATED | OCI_RELATED
IPV6_CLOUDS = CloudType.AWS | CloudType.AZURE
INSANE_MODE_CLOUDS = AWS_RELATED | GCP_RELATED | AZURE_ARM_RELATED | OCI_RELATED

_FORCE_NEW = Mutability.FORCE_NEW

FIELDS = (
    FieldSpec("group_name", mutability=_FORCE_NEW),
    FieldSpec("gw_type", mutability=_FORCE_NEW, case_insensitive=True),
    FieldSpec("cloud_type", FieldKind.INT, mutability=Mutability.FIXED),
    FieldSpec("account_name", mutability=_FORCE_NEW),
    FieldSpec("vpc_id", mutability=_FORCE_NEW),
    FieldSpec("group_instance_size"),
    FieldSpec("enable_insane_mode", FieldKind.BOOL, mutability=_FORCE_NEW),
    FieldSpec("enable_bgp_over_lan", FieldKind.BOOL, mutability=_FORCE_NEW),
    FieldSpec("enable_gateway_load_balancer", FieldKind.BOOL, mutability=_FORCE_NEW),
    FieldSpec("enable_global_vpc", FieldKind.BOOL, mutability=_FORCE_NEW),
    FieldSpec("enable_ipv6", FieldKind.BOOL),
    FieldSpec("enable_jumbo_frame", FieldKind.BOOL),
    FieldSpec("enable_gro_gso", FieldKind.BOOL),
    FieldSpec("enable_nat", FieldKind.BOOL),
    FieldSpec("enable_vpc_dns_server", FieldKind.BOOL),
    FieldSpec("enable_bgp", FieldKind.BOOL),
    FieldSpec("local_as_number"),
    FieldSpec("prepend_as_path", FieldKind.ORDERED_LIST),
    FieldSpec("bgp_hold_time", FieldKind.INT),
    FieldSpec("bgp_polling_time", FieldKind.INT),
    FieldSpec("bgp_neighbor_status_polling_time", FieldKind.INT),
    FieldSpec("bgp_accept_communities", FieldKind.BOOL),
    FieldSpec("bgp_send_communities", FieldKind.BOOL),
    FieldSpec("enable_active_standby", FieldKind.BOOL),
    FieldSpec("enable_active_standby_preemptive", FieldKind.BOOL),
    FieldSpec("enable_learned_cidrs_approval", FieldKind.BOOL),
    FieldSpec("approved_learned_cidrs", FieldKind.CIDR_SET),
    FieldSpec("enable_firenet", FieldKind.BOOL),
    FieldSpec("enable_transit_firenet", FieldKind.BOOL),
)

RULES = (
    known_cloud_type(GROUP_CLOUDS, "gateway group"),
    one_of("gw_type", "gw_type", ("TRANSIT", "SPOKE")),
    in_range("bgp_hold_time_range", "bgp_hold_time", 12, 360),
    in_range("bgp_polling_time_range", "bgp_polling_time", 10, 50),
    in_range("bgp_neighbor_status_polling_time_range", "bgp_neighbor_status_polling_time", 1, 10),
    cloud_scoped(
        "ipv6_scope",
        ("enable_ipv6",),
        IPV6_CLOUDS,
        "enable_ipv6 is only supported for AWS (1) and Azure (8)",
    ),
    cloud_scoped(
        "bgp_over_lan_scope",
        ("enable_bgp_over_lan",),
        AZURE_ARM_RELATED,
        "enable_bgp_over_lan is only supported for Azure related cloud types",
    ),
    cloud_scoped(
        "insane_mode_scope",
        ("enable_insane_mode",),
        INSANE_MODE_CLOUDS,
        "enable_insane_mode is only supported for AWS, GCP, Azure and OCI related cloud types",
    ),
    cloud_scoped(
        "gateway_load_balancer_scope",
        ("enable_gateway_load_balancer",),
        AWS_RELATED,
        "enable_gateway_load_balancer is only supported for AWS related cloud types",
    ),
    cloud_scoped(
        "global_vpc_scope",
        ("enable_global_vpc",),
        GCP_RELATED,
        "enable_global_vpc is only supported for GCP",
    ),
    coupled(
        "local_as_number_bgp",
        "local_as_number",
        "enable_bgp",
        "local_as_number requires enable_bgp to be true",
    ),
    coupled(
        "prepend_as_path_local_as",
        "prepend_as_path",
        "local_as_number",
        "prepend_as_path requires local_as_number to be set",
    ),
    coupled(
        "active_standby_preemptive",
        "enable_active_standby_preemptive",
        "enable_active_standby",
        "enable_active_standby_preemptive requires enable_active_standby to be true",
    ),
    coupled(
        "approved_learned_cidrs_approval",
        "approved_learned_cidrs",
        "enable_learned_cidrs_approval",
        "approved_learned_cidrs requires enable_learned_cidrs_approval to be true",
    ),
    mutually_exclusive(
        "firenet_transit_firenet",
        ("enable_firenet",),
        ("enable_transit_firenet",),
        "can't enable firenet and transit firenet at the same time",
    ),
    custom(
        "gateway_load_balancer_firenet",
        RuleCategory.ENABLE_COUPLING,
        ("enable_gateway_load_balancer", "enable_firenet", "enable_transit_firenet"),
        lambda cfg, _ct: cfg.enable_gateway_load_balancer
        and not (cfg.enable_firenet or cfg.enable_transit_firenet),
        "enable_gateway_load_balancer requires enable_firenet or enable_transit_firenet",
    ),
)

TOGGLES = (
    switch("enable_ipv6"),
    switch("enable_jumbo_frame"),
    switch("enable_gro_gso"),
    switch("enable_nat"),
    switch("enable_vpc_dns_server"),
    switch("enable_bgp"),
    as_path(),
    setter("bgp_hold_time", "change_bgp_hold_time"),
    setter("bgp_polling_time", "change_bgp_polling_time"),
    setter("bgp_neighbor_status_polling_time", "change_bgp_neighbor_status_polling_time"),
    setter("bgp_accept_communities", "set_bgp_accept_communities"),
    setter("bgp_send_communities", "set_bgp_send_communities"),
    active_standby(),
    switch("enable_learned_cidrs_approval"),
    setter("approved_learned_cidrs", "update_approved_learned_cidrs"),
    switch("enable_firenet"),
    switch("enable_transit_firenet"),
)


def build_create(cfg: GatewayGroupSpec) -> dict[str, Any]:
    return {
        "action": "create_gateway_group",
        "group_name": cfg.group_name,
        "gw_type": cfg.gw_type,
        "cloud_type": cfg.cloud_type,
        "account_name": cfg.account_name,
        "vpc_id": cfg.vpc_id,
        "group_instance_size": cfg.group_instance_size,
        "enable_insane_mode": cfg.enable_insane_mode,
        "enable_bgp_over_lan": cfg.enable_bgp_over_lan,
        "enable_gateway_load_balancer": cfg.enable_gateway_load_balancer,
        "enable_global_vpc": cfg.enable_global_vpc,
    }


_NAMES = frozenset(spec.name for spec in FIELDS)


def parse_snapshot(
    raw: Mapping[str, Any], secondary_raw: Mapping[str, Any] | None
) -> dict[str, Any]:
    values = {name: value for name, value in raw.items() if name in _NAMES}
    if "vpc_id" in raw:
        values["vpc_id"] = first_segment(str(raw["vpc_id"]))
    return values


GATEWAY_GROUP = ResourceFamily(
    kind="gateway_group",
    model=GatewayGroupSpec,
    endpoints=Endpoints(
        create="create_gateway_group",
        read="get_gateway_group",
        delete="delete_gateway_group",
        key_param="group_name",
    ),
    fields=FIELDS,
    rules=RULES,
    toggles=TOGGLES,
    build_create=build_create,
    parse_snapshot=parse_snapshot,
    resize=Resize(
        field="group_instance_size",
        action="update_gateway_group_instance_size",
        param="group_instance_size",
    ),
)
