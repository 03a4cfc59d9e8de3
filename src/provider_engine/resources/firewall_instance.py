"""Firewall instances attached to a FireNet gateway.

The controller assigns the instance ID on create; an instance created by an
earlier pass is found again by gateway and firewall name. Outside GCP the
egress and management subnets travel as ``subnet~~zone~~`` tokens; on GCP
the zone is a separate parameter.
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
    supports,
)
from ..differ import FieldKind, FieldSpec, Mutability
from ..models import FirewallInstanceSpec
from ..tokens import FIREWALL_ZONE_SUBNET
from ..validator import (
    RuleCategory,
    cloud_scoped,
    custom,
    known_cloud_type,
    mutually_exclusive,
    required_for_clouds,
)
from .base import Endpoints, Resize, ResourceFamily

FIREWALL_CLOUDS = AWS_RELATED | GCP_RELATED | AZURE_ARM_RELATED | OCI_RELATED
ZONE_CLOUDS = CloudType.AWS | CloudType.AZURE | GCP_RELATED

PALO_ALTO_PREFIX = "Palo Alto Networks"
FORTINET_PREFIX = "Fortinet FortiGate"
CHECK_POINT_MARKER = "CloudGuard"

_FORCE_NEW = Mutability.FORCE_NEW

FIELDS = (
    FieldSpec("cloud_type", FieldKind.INT, mutability=Mutability.FIXED),
    FieldSpec("gw_name", mutability=_FORCE_NEW),
    FieldSpec("vpc_id", mutability=_FORCE_NEW),
    FieldSpec("firewall_name", mutability=_FORCE_NEW),
    FieldSpec("firewall_image", mutability=_FORCE_NEW),
    FieldSpec("firewall_image_version", mutability=_FORCE_NEW),
    FieldSpec("firewall_size"),
    FieldSpec("egress_subnet", mutability=_FORCE_NEW),
    FieldSpec("management_subnet", mutability=_FORCE_NEW),
    FieldSpec("zone", mutability=_FORCE_NEW),
    FieldSpec("management_vpc_id", mutability=_FORCE_NEW),
    FieldSpec("egress_vpc_id", mutability=_FORCE_NEW),
    FieldSpec("username", mutability=_FORCE_NEW),
    FieldSpec("password", mutability=_FORCE_NEW, write_only=True),
    FieldSpec("ssh_public_key", mutability=_FORCE_NEW, write_only=True),
    FieldSpec("iam_role", mutability=_FORCE_NEW),
    FieldSpec("bootstrap_bucket_name", mutability=_FORCE_NEW),
    FieldSpec("tags", FieldKind.TAG_MAP),
)


def _palo_alto(cfg: Any) -> bool:
    return cfg.firewall_image.startswith(PALO_ALTO_PREFIX)


RULES = (
    known_cloud_type(FIREWALL_CLOUDS, "firewall instance"),
    custom(
        "palo_alto_management_subnet",
        RuleCategory.CONDITIONAL_REQUIREMENT,
        ("firewall_image", "management_subnet"),
        lambda cfg, _ct: _palo_alto(cfg) and not cfg.management_subnet,
        "'management_subnet' is required for Palo Alto Networks VM-Series",
    ),
    custom(
        "check_point_management_subnet_oci",
        RuleCategory.CONDITIONAL_REQUIREMENT,
        ("firewall_image", "management_subnet"),
        lambda cfg, ct: CHECK_POINT_MARKER in cfg.firewall_image
        and supports(ct, OCI_RELATED)
        and not cfg.management_subnet,
        "'management_subnet' is required for Check Point CloudGuard for OCI",
    ),
    custom(
        "check_point_management_subnet",
        RuleCategory.CLOUD_SCOPING,
        ("firewall_image", "management_subnet"),
        lambda cfg, ct: CHECK_POINT_MARKER in cfg.firewall_image
        and not supports(ct, OCI_RELATED)
        and bool(cfg.management_subnet),
        "'management_subnet' is required to be empty for Check Point CloudGuard except for OCI",
    ),
    custom(
        "fortinet_management_subnet",
        RuleCategory.MUTUAL_EXCLUSIVITY,
        ("firewall_image", "management_subnet"),
        lambda cfg, _ct: cfg.firewall_image.startswith(FORTINET_PREFIX)
        and bool(cfg.management_subnet),
        "'management_subnet' is required to be empty for Fortinet FortiGate series",
    ),
    cloud_scoped(
        "zone_scope",
        ("zone",),
        ZONE_CLOUDS,
        "'zone' attribute is only valid for AWS, GCP or Azure",
    ),
    cloud_scoped(
        "management_vpc_id_scope",
        ("management_vpc_id",),
        GCP_RELATED,
        "'management_vpc_id' is only valid for GCP",
    ),
    cloud_scoped(
        "egress_vpc_id_scope", ("egress_vpc_id",), GCP_RELATED, "'egress_vpc_id' is only valid for GCP"
    ),
    custom(
        "gcp_palo_alto_management_vpc",
        RuleCategory.CONDITIONAL_REQUIREMENT,
        ("firewall_image", "management_vpc_id"),
        lambda cfg, ct: supports(ct, GCP_RELATED) and _palo_alto(cfg) and not cfg.management_vpc_id,
        "'management_vpc_id' is required for GCP with Palo Alto Networks Firewall",
    ),
    custom(
        "gcp_management_vpc_empty",
        RuleCategory.MUTUAL_EXCLUSIVITY,
        ("firewall_image", "management_vpc_id"),
        lambda cfg, ct: supports(ct, GCP_RELATED)
        and not _palo_alto(cfg)
        and bool(cfg.management_vpc_id),
        "'management_vpc_id' is required to be empty for GCP Check Point or FortiGate firewall",
    ),
    required_for_clouds(
        "gcp_egress_vpc_id", ("egress_vpc_id",), GCP_RELATED, "'egress_vpc_id' is required for GCP"
    ),
    cloud_scoped(
        "azure_authentication_scope",
        ("username", "password", "ssh_public_key"),
        AZURE_ARM_RELATED,
        "'username' and 'password' or 'ssh_public_key' are only supported for Azure",
    ),
    mutually_exclusive(
        "password_ssh_key",
        ("password",),
        ("ssh_public_key",),
        "authentication method can be either a password or an SSH public key",
    ),
    cloud_scoped(
        "iam_role_scope",
        ("iam_role",),
        AWS_RELATED,
        "advanced option 'iam_role' is only supported for AWS provider, please set to empty",
    ),
    cloud_scoped(
        "bootstrap_bucket_scope",
        ("bootstrap_bucket_name",),
        AWS_RELATED,
        "advanced option 'bootstrap_bucket_name' is only supported for AWS provider",
    ),
    cloud_scoped(
        "tags_scope",
        ("tags",),
        CloudType.AWS | CloudType.AZURE,
        "adding tags is only supported for AWS (1) and Azure (8)",
    ),
)


def encode_subnet(cloud_type: int, subnet: str, zone: str) -> str:
    if not subnet or supports(cloud_type, GCP_RELATED):
        return subnet
    return FIREWALL_ZONE_SUBNET.encode(subnet, zone)


def build_create(cfg: FirewallInstanceSpec) -> dict[str, Any]:
    ct = cfg.cloud_type
    payload: dict[str, Any] = {
        "action": "add_firewall_instance",
        "instance_id": cfg.instance_id,
        "cloud_type": ct,
        "gw_name": cfg.gw_name,
        "vpc_id": cfg.vpc_id,
        "firewall_name": cfg.firewall_name,
        "firewall_image": cfg.firewall_image,
        "firewall_image_version": cfg.firewall_image_version,
        "firewall_size": cfg.firewall_size,
        "egress_subnet": encode_subnet(ct, cfg.egress_subnet, cfg.zone),
        "management_subnet": encode_subnet(ct, cfg.management_subnet, cfg.zone),
        "username": cfg.username,
        "password": cfg.password,
        "ssh_public_key": cfg.ssh_public_key,
        "iam_role": cfg.iam_role,
        "bootstrap_bucket_name": cfg.bootstrap_bucket_name,
    }
    if supports(ct, GCP_RELATED):
        payload["zone"] = cfg.zone
        payload["management_vpc_id"] = cfg.management_vpc_id
        payload["egress_vpc_id"] = cfg.egress_vpc_id
    return payload


_PASSTHROUGH = (
    "cloud_type",
    "gw_name",
    "vpc_id",
    "firewall_name",
    "firewall_image",
    "firewall_image_version",
    "firewall_size",
    "management_vpc_id",
    "egress_vpc_id",
    "username",
    "password",
    "ssh_public_key",
    "iam_role",
    "bootstrap_bucket_name",
    "tags",
)


def parse_snapshot(
    raw: Mapping[str, Any], secondary_raw: Mapping[str, Any] | None
) -> dict[str, Any]:
    values = {name: raw[name] for name in _PASSTHROUGH if name in raw}
    ct = int(raw.get("cloud_type", 0))
    zone = str(raw.get("zone", ""))

    for name in ("egress_subnet", "management_subnet"):
        token = str(raw.get(name, ""))
        if not token or supports(ct, GCP_RELATED):
            values[name] = token
            continue
        subnet, qualifier = FIREWALL_ZONE_SUBNET.parse(token)
        values[name] = subnet
        zone = zone or qualifier

    values["zone"] = zone
    return values


FIREWALL_INSTANCE = ResourceFamily(
    kind="firewall_instance",
    model=FirewallInstanceSpec,
    endpoints=Endpoints(
        create="add_firewall_instance",
        read="get_firewall_instance",
        delete="delete_firewall_instance",
        key_param="instance_id",
        lookup="list_firewall_instances",
    ),
    fields=FIELDS,
    rules=RULES,
    build_create=build_create,
    parse_snapshot=parse_snapshot,
    resize=Resize(field="firewall_size", action="edit_firewall_size", param="firewall_size"),
    tag_field="tags",
    natural_key=("gw_name", "firewall_name"),
)
