"""Spoke and transit gateways.

The gateway is the richest family: it carries an HA peer, BGP settings,
per-cloud placement fields and the composite subnet tokens of the
controller API.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..cloud_types import (
    ALICLOUD_RELATED,
    AWS_RELATED,
    AZURE_ARM_RELATED,
    GCP_RELATED,
    OCI_RELATED,
    CloudType,
    supports,
)
from ..differ import FieldKind, FieldSpec, Mutability
from ..ha import HaProfile
from ..models import GatewaySpec
from ..tokens import (
    AZURE_ZONE_SUBNET,
    INSANE_MODE_SUBNET,
    OOB_SUBNET,
    decode,
    encode,
    first_segment,
)
from ..validator import (
    RuleCategory,
    TransitionRule,
    changes_with,
    cloud_scoped,
    coupled,
    custom,
    enable_only,
    in_range,
    known_cloud_type,
    mutually_exclusive,
    one_of,
    required_for_clouds,
    requires,
)
from .base import (
    Endpoints,
    Resize,
    ResourceFamily,
    active_standby,
    as_path,
    setter,
    switch,
    wire,
)

GATEWAY_CLOUDS = (
    AWS_RELATED | GCP_RELATED | AZURE_ARM_RELATED | OCI_RELATED | ALICLOUD_RELATED
)
INSANE_MODE_CLOUDS = AWS_RELATED | GCP_RELATED | AZURE_ARM_RELATED | OCI_RELATED
MONITOR_SUBNET_CLOUDS = AWS_RELATED ^ CloudType.AWS_CHINA
DESIGNATED_GATEWAY_CLOUDS = CloudType.AWS | CloudType.AWS_GOV | CloudType.AWS_CHINA
RX_QUEUE_SIZES = ("", "1K", "2K", "4K", "8K", "16K")

HA_PLACEMENT_FIELDS = (
    "ha_subnet",
    "ha_zone",
    "ha_insane_mode_az",
    "ha_availability_domain",
    "ha_fault_domain",
    "ha_eip",
    "ha_oob_management_subnet",
    "ha_oob_availability_zone",
)

HA_PROFILE = HaProfile(
    kind="gateway_ha",
    presence_fields=("ha_subnet", "ha_zone"),
    mandatory_fields=("ha_gw_size",),
    placement_fields=HA_PLACEMENT_FIELDS,
    size_field="ha_gw_size",
)

# =============================================================================
# Fields
# =============================================================================

_FORCE_NEW = Mutability.FORCE_NEW

FIELDS = (
    FieldSpec("gw_name", mutability=_FORCE_NEW),
    FieldSpec("gateway_type", mutability=_FORCE_NEW, case_insensitive=True),
    FieldSpec("cloud_type", FieldKind.INT, mutability=Mutability.FIXED),
    FieldSpec("account_name", mutability=_FORCE_NEW),
    FieldSpec("vpc_id", mutability=_FORCE_NEW),
    FieldSpec("vpc_reg", mutability=_FORCE_NEW),
    FieldSpec("gw_size"),
    FieldSpec("subnet", mutability=_FORCE_NEW),
    FieldSpec("zone", mutability=_FORCE_NEW),
    FieldSpec("allocate_new_eip", FieldKind.BOOL, mutability=_FORCE_NEW),
    FieldSpec("eip", mutability=_FORCE_NEW),
    FieldSpec("insane_mode", FieldKind.BOOL, mutability=_FORCE_NEW),
    FieldSpec("insane_mode_az", mutability=_FORCE_NEW),
    FieldSpec("availability_domain", mutability=_FORCE_NEW),
    FieldSpec("fault_domain", mutability=_FORCE_NEW),
    FieldSpec("ha_subnet"),
    FieldSpec("ha_zone"),
    FieldSpec("ha_gw_size"),
    FieldSpec("ha_insane_mode_az"),
    FieldSpec("ha_availability_domain"),
    FieldSpec("ha_fault_domain"),
    FieldSpec("ha_eip"),
    FieldSpec("enable_bgp", FieldKind.BOOL),
    FieldSpec("local_as_number"),
    FieldSpec("prepend_as_path", FieldKind.ORDERED_LIST),
    FieldSpec("bgp_manual_advertise_cidrs", FieldKind.CIDR_SET),
    FieldSpec("enable_bgp_ecmp", FieldKind.BOOL),
    FieldSpec("bgp_hold_time", FieldKind.INT),
    FieldSpec("bgp_polling_time", FieldKind.INT),
    FieldSpec("bgp_neighbor_status_polling_time", FieldKind.INT),
    FieldSpec("enable_bgp_over_lan", FieldKind.BOOL, mutability=_FORCE_NEW),
    FieldSpec("bgp_lan_interfaces_count", FieldKind.INT, mutability=_FORCE_NEW),
    FieldSpec("bgp_lan_interfaces", FieldKind.RECORDS, mutability=_FORCE_NEW),
    FieldSpec("enable_active_standby", FieldKind.BOOL),
    FieldSpec("enable_active_standby_preemptive", FieldKind.BOOL),
    FieldSpec("enable_encrypt_volume", FieldKind.BOOL),
    FieldSpec("customer_managed_keys", write_only=True),
    FieldSpec("enable_monitor_gateway_subnets", FieldKind.BOOL),
    FieldSpec("monitor_exclude_list", FieldKind.SET),
    FieldSpec("enable_private_oob", FieldKind.BOOL, mutability=_FORCE_NEW),
    FieldSpec("oob_management_subnet", mutability=_FORCE_NEW),
    FieldSpec("oob_availability_zone", mutability=_FORCE_NEW),
    FieldSpec("ha_oob_management_subnet"),
    FieldSpec("ha_oob_availability_zone"),
    FieldSpec("enable_spot_instance", FieldKind.BOOL, mutability=_FORCE_NEW),
    FieldSpec("spot_price", mutability=_FORCE_NEW),
    FieldSpec("delete_spot", FieldKind.BOOL, mutability=_FORCE_NEW),
    FieldSpec("insertion_gateway", FieldKind.BOOL, mutability=_FORCE_NEW),
    FieldSpec("insertion_gateway_az", mutability=_FORCE_NEW),
    FieldSpec("enable_designated_gateway", FieldKind.BOOL, mutability=Mutability.FIXED),
    FieldSpec("enable_global_vpc", FieldKind.BOOL, mutability=_FORCE_NEW),
    FieldSpec("enable_jumbo_frame", FieldKind.BOOL),
    FieldSpec("enable_vpc_dns_server", FieldKind.BOOL),
    FieldSpec("enable_transit_firenet", FieldKind.BOOL),
    FieldSpec("rx_queue_size"),
    FieldSpec("tunnel_detection_time", FieldKind.INT),
    FieldSpec("tags", FieldKind.TAG_MAP),
)

# =============================================================================
# Validation rules (evaluated in order, first violation wins)
# =============================================================================


def _ha_requested(cfg: Any) -> bool:
    return HA_PROFILE.requested(cfg)


_HA_DEPENDENT_FIELDS = (
    "ha_insane_mode_az",
    "ha_availability_domain",
    "ha_fault_domain",
    "ha_eip",
    "ha_oob_management_subnet",
    "ha_oob_availability_zone",
)
_OOB_FIELDS = (
    "oob_management_subnet",
    "oob_availability_zone",
    "ha_oob_management_subnet",
    "ha_oob_availability_zone",
)

RULES = (
    known_cloud_type(GATEWAY_CLOUDS, "gateway"),
    one_of("gateway_type", "gateway_type", ("spoke", "transit")),
    in_range("bgp_hold_time_range", "bgp_hold_time", 12, 360),
    in_range("bgp_polling_time_range", "bgp_polling_time", 10, 50),
    in_range("bgp_neighbor_status_polling_time_range", "bgp_neighbor_status_polling_time", 1, 10),
    in_range("tunnel_detection_time_range", "tunnel_detection_time", 20, 600, optional=True),
    one_of("rx_queue_size", "rx_queue_size", RX_QUEUE_SIZES),
    # Cloud scoping
    cloud_scoped("zone_scope", ("zone",), AZURE_ARM_RELATED),
    cloud_scoped("ha_zone_scope", ("ha_zone",), GCP_RELATED | AZURE_ARM_RELATED),
    cloud_scoped("insane_mode_scope", ("insane_mode",), INSANE_MODE_CLOUDS),
    cloud_scoped("insane_mode_az_scope", ("insane_mode_az", "ha_insane_mode_az"), AWS_RELATED),
    cloud_scoped(
        "oci_placement_scope",
        ("availability_domain", "fault_domain", "ha_availability_domain", "ha_fault_domain"),
        OCI_RELATED,
    ),
    cloud_scoped(
        "encrypt_volume_scope", ("enable_encrypt_volume", "customer_managed_keys"), AWS_RELATED
    ),
    cloud_scoped(
        "monitor_gateway_subnets_scope",
        ("enable_monitor_gateway_subnets",),
        MONITOR_SUBNET_CLOUDS,
        asymmetric=True,
    ),
    cloud_scoped(
        "bgp_over_lan_scope", ("enable_bgp_over_lan",), AZURE_ARM_RELATED | GCP_RELATED
    ),
    cloud_scoped("bgp_lan_interfaces_count_scope", ("bgp_lan_interfaces_count",), AZURE_ARM_RELATED),
    cloud_scoped("bgp_lan_interfaces_scope", ("bgp_lan_interfaces",), GCP_RELATED),
    cloud_scoped("private_oob_scope", ("enable_private_oob", *_OOB_FIELDS), CloudType.AWS),
    cloud_scoped(
        "spot_instance_scope",
        ("enable_spot_instance", "spot_price"),
        AWS_RELATED | AZURE_ARM_RELATED,
    ),
    cloud_scoped("delete_spot_scope", ("delete_spot",), AZURE_ARM_RELATED),
    cloud_scoped("rx_queue_size_scope", ("rx_queue_size",), AWS_RELATED),
    cloud_scoped("global_vpc_scope", ("enable_global_vpc",), GCP_RELATED),
    cloud_scoped(
        "insertion_gateway_scope", ("insertion_gateway", "insertion_gateway_az"), AWS_RELATED
    ),
    cloud_scoped(
        "designated_gateway_scope",
        ("enable_designated_gateway",),
        DESIGNATED_GATEWAY_CLOUDS,
        asymmetric=True,
    ),
    cloud_scoped("tags_scope", ("tags",), AWS_RELATED | AZURE_ARM_RELATED),
    custom(
        "spoke_bgp_over_lan_scope",
        RuleCategory.CLOUD_SCOPING,
        ("gateway_type", "enable_bgp_over_lan"),
        lambda cfg, ct: cfg.gateway_type == "spoke"
        and cfg.enable_bgp_over_lan
        and not supports(ct, AZURE_ARM_RELATED),
        "'enable_bgp_over_lan' on spoke gateways is only supported for Azure",
    ),
    custom(
        "transit_firenet_gateway_type",
        RuleCategory.CONDITIONAL_REQUIREMENT,
        ("enable_transit_firenet", "gateway_type"),
        lambda cfg, _ct: cfg.enable_transit_firenet and cfg.gateway_type != "transit",
        "'enable_transit_firenet' is only valid for transit gateways",
    ),
    # Mutual exclusivity
    mutually_exclusive(
        "insertion_gateway_insane_mode",
        ("insertion_gateway",),
        ("insane_mode",),
        "'insertion_gateway' and 'insane_mode' cannot both be enabled",
    ),
    mutually_exclusive(
        "designated_gateway_ha",
        ("enable_designated_gateway",),
        ("ha_subnet", "ha_zone"),
        "can't enable HA for gateway with 'enable_designated_gateway' enabled",
    ),
    custom(
        "eip_allocation",
        RuleCategory.MUTUAL_EXCLUSIVITY,
        ("allocate_new_eip", "eip"),
        lambda cfg, _ct: cfg.allocate_new_eip and bool(cfg.eip),
        "'eip' can only be set when 'allocate_new_eip' is false",
    ),
    custom(
        "eip_required",
        RuleCategory.CONDITIONAL_REQUIREMENT,
        ("allocate_new_eip", "eip"),
        lambda cfg, ct: not cfg.allocate_new_eip
        and not cfg.eip
        and supports(ct, AWS_RELATED | AZURE_ARM_RELATED | GCP_RELATED),
        "'eip' must be set when 'allocate_new_eip' is false",
    ),
    # HA peer
    custom(
        "gcp_ha_zone",
        RuleCategory.CONDITIONAL_REQUIREMENT,
        ("ha_subnet", "ha_zone"),
        lambda cfg, ct: supports(ct, GCP_RELATED) and bool(cfg.ha_subnet) and not cfg.ha_zone,
        "'ha_zone' must be set to enable HA on GCP, 'ha_subnet' is optional",
    ),
    requires(
        "azure_ha_zone_subnet",
        ("ha_zone",),
        ("ha_subnet",),
        "'ha_subnet' must be set when 'ha_zone' is set for Azure",
        union=AZURE_ARM_RELATED,
    ),
    HA_PROFILE.mandatory_rule("ha_gw_size_required", "'ha_gw_size' is required to enable HA"),
    custom(
        "ha_gw_size_without_ha",
        RuleCategory.ENABLE_COUPLING,
        ("ha_gw_size", "ha_subnet", "ha_zone"),
        lambda cfg, _ct: bool(cfg.ha_gw_size) and not _ha_requested(cfg),
        "'ha_gw_size' is only valid when HA is enabled ('ha_subnet' or 'ha_zone' set)",
    ),
    custom(
        "ha_fields_without_ha",
        RuleCategory.ENABLE_COUPLING,
        _HA_DEPENDENT_FIELDS,
        lambda cfg, _ct: any(getattr(cfg, f) for f in _HA_DEPENDENT_FIELDS)
        and not _ha_requested(cfg),
        "HA placement fields are only valid when HA is enabled ('ha_subnet' or 'ha_zone' set)",
    ),
    # Insane mode
    requires(
        "aws_insane_mode_az",
        ("insane_mode",),
        ("insane_mode_az",),
        "'insane_mode_az' is required to enable insane mode on AWS",
        union=AWS_RELATED,
    ),
    custom(
        "aws_ha_insane_mode_az",
        RuleCategory.CONDITIONAL_REQUIREMENT,
        ("insane_mode", "ha_subnet", "ha_insane_mode_az"),
        lambda cfg, ct: supports(ct, AWS_RELATED)
        and cfg.insane_mode
        and bool(cfg.ha_subnet)
        and not cfg.ha_insane_mode_az,
        "'ha_insane_mode_az' is required to enable HA with insane mode on AWS",
    ),
    coupled("insane_mode_az_coupling", "insane_mode_az", "insane_mode"),
    coupled("ha_insane_mode_az_coupling", "ha_insane_mode_az", "insane_mode"),
    # OCI placement
    required_for_clouds(
        "oci_placement", ("availability_domain", "fault_domain"), OCI_RELATED
    ),
    requires(
        "oci_ha_placement",
        ("ha_subnet",),
        ("ha_availability_domain", "ha_fault_domain"),
        union=OCI_RELATED,
    ),
    # Volume encryption and subnet monitoring
    coupled("customer_managed_keys_coupling", "customer_managed_keys", "enable_encrypt_volume"),
    coupled(
        "monitor_exclude_list_coupling", "monitor_exclude_list", "enable_monitor_gateway_subnets"
    ),
    # BGP
    coupled("manual_advertise_cidrs_bgp", "bgp_manual_advertise_cidrs", "enable_bgp"),
    coupled("local_as_number_bgp", "local_as_number", "enable_bgp"),
    coupled("prepend_as_path_local_as", "prepend_as_path", "local_as_number"),
    coupled("bgp_ecmp_bgp", "enable_bgp_ecmp", "enable_bgp"),
    coupled("bgp_over_lan_bgp", "enable_bgp_over_lan", "enable_bgp"),
    requires(
        "azure_bgp_lan_interfaces_count",
        ("enable_bgp_over_lan",),
        ("bgp_lan_interfaces_count",),
        union=AZURE_ARM_RELATED,
    ),
    coupled("bgp_lan_interfaces_count_coupling", "bgp_lan_interfaces_count", "enable_bgp_over_lan"),
    requires(
        "gcp_bgp_lan_interfaces",
        ("enable_bgp_over_lan",),
        ("bgp_lan_interfaces",),
        union=GCP_RELATED,
    ),
    coupled("bgp_lan_interfaces_coupling", "bgp_lan_interfaces", "enable_bgp_over_lan"),
    # Active-standby
    coupled(
        "active_standby_preemptive",
        "enable_active_standby_preemptive",
        "enable_active_standby",
        "could not configure Preemptive Mode with Active-Standby disabled",
    ),
    custom(
        "active_standby_ha",
        RuleCategory.ENABLE_COUPLING,
        ("enable_active_standby", "ha_subnet", "ha_zone"),
        lambda cfg, _ct: cfg.enable_active_standby and not _ha_requested(cfg),
        "'enable_active_standby' requires HA to be enabled",
    ),
    coupled("active_standby_bgp", "enable_active_standby", "enable_bgp"),
    # Private out-of-band management
    requires(
        "private_oob_fields",
        ("enable_private_oob",),
        ("oob_management_subnet", "oob_availability_zone"),
    ),
    custom(
        "private_oob_ha_fields",
        RuleCategory.CONDITIONAL_REQUIREMENT,
        ("enable_private_oob", "ha_subnet", "ha_oob_management_subnet", "ha_oob_availability_zone"),
        lambda cfg, _ct: cfg.enable_private_oob
        and bool(cfg.ha_subnet)
        and not (cfg.ha_oob_management_subnet and cfg.ha_oob_availability_zone),
        "'ha_oob_management_subnet' and 'ha_oob_availability_zone' are required "
        "to enable HA with private OOB",
    ),
    custom(
        "oob_fields_without_private_oob",
        RuleCategory.ENABLE_COUPLING,
        _OOB_FIELDS,
        lambda cfg, _ct: any(getattr(cfg, f) for f in _OOB_FIELDS) and not cfg.enable_private_oob,
        "OOB fields are only valid when 'enable_private_oob' is enabled",
    ),
    # Spot instances and insertion gateways
    coupled("spot_price_coupling", "spot_price", "enable_spot_instance"),
    coupled("delete_spot_coupling", "delete_spot", "enable_spot_instance"),
    requires("insertion_gateway_az", ("insertion_gateway",), ("insertion_gateway_az",)),
    coupled("insertion_gateway_az_coupling", "insertion_gateway_az", "insertion_gateway"),
)

TRANSITION_RULES: tuple[TransitionRule, ...] = (
    enable_only(
        "encrypt_volume_enable_only", "enable_encrypt_volume", "can't disable Encrypt Volume"
    ),
    changes_with(
        "customer_managed_keys_only",
        "customer_managed_keys",
        "enable_encrypt_volume",
        "updating customer_managed_keys only is not allowed",
    ),
    changes_with("ha_insane_mode_az_with_subnet", "ha_insane_mode_az", "ha_subnet"),
)

# =============================================================================
# Feature toggles
# =============================================================================


TOGGLES = (
    switch("enable_bgp"),
    as_path(),
    setter("bgp_manual_advertise_cidrs", "edit_bgp_manual_advertise_cidrs"),
    switch("enable_bgp_ecmp"),
    setter("bgp_hold_time", "change_bgp_hold_time"),
    setter("bgp_polling_time", "change_bgp_polling_time"),
    setter("bgp_neighbor_status_polling_time", "change_bgp_neighbor_status_polling_time"),
    active_standby(),
    switch("enable_encrypt_volume", extra=("customer_managed_keys",)),
    switch("enable_monitor_gateway_subnets", extra=("monitor_exclude_list",)),
    switch("enable_jumbo_frame"),
    switch("enable_vpc_dns_server"),
    switch("enable_transit_firenet"),
    setter("rx_queue_size", "modify_rx_queue_size"),
    setter("tunnel_detection_time", "modify_detection_time"),
)

# =============================================================================
# Wire format
# =============================================================================


def encode_subnet(
    cloud_type: int,
    subnet: str,
    *,
    zone: str = "",
    insane_mode: bool = False,
    insane_mode_az: str = "",
) -> str:
    """Build the ``gw_subnet`` token for a primary or secondary node."""
    if not subnet:
        return ""
    if supports(cloud_type, AZURE_ARM_RELATED):
        return AZURE_ZONE_SUBNET.encode(subnet, zone)
    if insane_mode and supports(cloud_type, AWS_RELATED):
        return INSANE_MODE_SUBNET.encode(subnet, insane_mode_az)
    return encode(subnet)


def decode_subnet(cloud_type: int, token: str, *, insane_mode: bool) -> tuple[str, str]:
    """Split a ``gw_subnet`` token into (subnet, zone-or-AZ qualifier)."""
    if not token:
        return "", ""
    if supports(cloud_type, AZURE_ARM_RELATED):
        subnet, zone = AZURE_ZONE_SUBNET.parse(token)
        return subnet, zone
    if insane_mode and supports(cloud_type, AWS_RELATED):
        subnet, az = INSANE_MODE_SUBNET.decode(token)
        return subnet, az
    (subnet,) = decode(token, 1)
    return subnet, ""


def _encode_oob(subnet: str, zone: str) -> str:
    return OOB_SUBNET.encode(subnet, zone) if subnet else ""


def build_create(cfg: GatewaySpec) -> dict[str, Any]:
    ct = cfg.cloud_type
    return {
        "action": "create_transit_gw" if cfg.gateway_type == "transit" else "create_spoke_gw",
        "gw_name": cfg.gw_name,
        "gateway_type": cfg.gateway_type,
        "cloud_type": ct,
        "account_name": cfg.account_name,
        "vpc_id": cfg.vpc_id,
        "vpc_reg": cfg.vpc_reg,
        "gw_size": cfg.gw_size,
        "gw_subnet": encode_subnet(
            ct,
            cfg.subnet,
            zone=cfg.zone,
            insane_mode=cfg.insane_mode,
            insane_mode_az=cfg.insane_mode_az,
        ),
        "allocate_new_eip": cfg.allocate_new_eip,
        "eip": cfg.eip,
        "insane_mode": cfg.insane_mode,
        "availability_domain": cfg.availability_domain,
        "fault_domain": cfg.fault_domain,
        "enable_bgp_over_lan": cfg.enable_bgp_over_lan,
        "bgp_lan_interfaces_count": cfg.bgp_lan_interfaces_count,
        "bgp_lan_interfaces": wire(cfg.bgp_lan_interfaces),
        "enable_private_oob": cfg.enable_private_oob,
        "oob_mgmt_subnet": _encode_oob(cfg.oob_management_subnet, cfg.oob_availability_zone),
        "enable_spot_instance": cfg.enable_spot_instance,
        "spot_price": cfg.spot_price,
        "delete_spot": cfg.delete_spot,
        "insertion_gateway": cfg.insertion_gateway,
        "insertion_gateway_az": cfg.insertion_gateway_az,
        "enable_designated_gateway": cfg.enable_designated_gateway,
        "enable_global_vpc": cfg.enable_global_vpc,
    }


def build_secondary(cfg: GatewaySpec, secondary: str) -> dict[str, Any]:
    ct = cfg.cloud_type
    payload: dict[str, Any] = {
        "primary_gw_name": cfg.gw_name,
        "ha_gw_name": secondary,
        "gw_size": cfg.ha_gw_size,
        "gw_subnet": encode_subnet(
            ct,
            cfg.ha_subnet,
            zone=cfg.ha_zone,
            insane_mode=cfg.insane_mode,
            insane_mode_az=cfg.ha_insane_mode_az,
        ),
        "insane_mode": cfg.insane_mode,
        "eip": cfg.ha_eip,
    }
    if supports(ct, GCP_RELATED):
        payload["zone"] = cfg.ha_zone
    if supports(ct, OCI_RELATED):
        payload["availability_domain"] = cfg.ha_availability_domain
        payload["fault_domain"] = cfg.ha_fault_domain
    if cfg.enable_private_oob:
        payload["oob_mgmt_subnet"] = _encode_oob(
            cfg.ha_oob_management_subnet, cfg.ha_oob_availability_zone
        )
    return payload


_PASSTHROUGH = tuple(
    spec.name
    for spec in FIELDS
    if spec.name
    not in (
        "subnet",
        "zone",
        "insane_mode_az",
        "oob_management_subnet",
        "oob_availability_zone",
        *HA_PLACEMENT_FIELDS,
        "ha_gw_size",
    )
)


def parse_snapshot(
    raw: Mapping[str, Any], secondary_raw: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Decode a gateway snapshot (and its HA peer) into field values."""
    values = {name: raw[name] for name in _PASSTHROUGH if name in raw}
    ct = int(raw.get("cloud_type", 0))
    insane_mode = bool(raw.get("insane_mode", False))

    values["vpc_id"] = first_segment(str(raw.get("vpc_id", "")))
    subnet, qualifier = decode_subnet(ct, str(raw.get("gw_subnet", "")), insane_mode=insane_mode)
    values["subnet"] = subnet
    if supports(ct, AZURE_ARM_RELATED):
        values["zone"] = qualifier
    else:
        values["insane_mode_az"] = qualifier

    if raw.get("oob_mgmt_subnet"):
        oob_subnet, oob_zone = OOB_SUBNET.decode(str(raw["oob_mgmt_subnet"]))
        values["oob_management_subnet"] = oob_subnet
        values["oob_availability_zone"] = oob_zone

    if secondary_raw is not None:
        values.update(_parse_secondary(ct, insane_mode, secondary_raw))
    return values


def _parse_secondary(ct: int, insane_mode: bool, raw: Mapping[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {
        "ha_gw_size": raw.get("gw_size", ""),
        "ha_eip": raw.get("eip", ""),
    }
    subnet, qualifier = decode_subnet(ct, str(raw.get("gw_subnet", "")), insane_mode=insane_mode)
    values["ha_subnet"] = subnet
    if supports(ct, AZURE_ARM_RELATED):
        values["ha_zone"] = qualifier
    elif supports(ct, GCP_RELATED):
        values["ha_zone"] = raw.get("zone", "")
    else:
        values["ha_insane_mode_az"] = qualifier

    if supports(ct, OCI_RELATED):
        values["ha_availability_domain"] = raw.get("availability_domain", "")
        values["ha_fault_domain"] = raw.get("fault_domain", "")
    if raw.get("oob_mgmt_subnet"):
        oob_subnet, oob_zone = OOB_SUBNET.decode(str(raw["oob_mgmt_subnet"]))
        values["ha_oob_management_subnet"] = oob_subnet
        values["ha_oob_availability_zone"] = oob_zone
    return values


# =============================================================================
# Family
# =============================================================================

GATEWAY = ResourceFamily(
    kind="gateway",
    model=GatewaySpec,
    endpoints=Endpoints(
        create="create_spoke_gw",
        read="get_gateway_info",
        delete="delete_gateway",
        key_param="gw_name",
    ),
    fields=FIELDS,
    rules=RULES,
    transition_rules=TRANSITION_RULES,
    toggles=TOGGLES,
    build_create=build_create,
    parse_snapshot=parse_snapshot,
    resize=Resize(field="gw_size", action="edit_gw_size", param="gw_size"),
    tag_field="tags",
    ha=HA_PROFILE,
    ha_endpoints=Endpoints(
        create="create_multicloud_ha_gateway",
        read="get_gateway_info",
        delete="delete_gateway",
        key_param="gw_name",
        create_key_param="ha_gw_name",
    ),
    build_secondary=build_secondary,
)
