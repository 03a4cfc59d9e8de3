"""Cloud-type capability matrix.

Every cloud provider/region variant the controller knows is a single bit.
Capability checks are a bitwise AND of a cloud type against a named union
of those bits, e.g. ``supports(cloud_type, AWS_RELATED)``.

The module holds only immutable constants and pure functions, so it is safe
to read from any number of concurrent reconciliation passes.
"""

from __future__ import annotations

from enum import IntFlag


class CloudType(IntFlag):
    """Single cloud-type identifiers as used by the controller API."""

    AWS = 1
    GCP = 4
    AZURE = 8
    OCI = 16
    AZURE_GOV = 32
    AWS_GOV = 256
    AWS_CHINA = 1024
    AZURE_CHINA = 2048
    EDGE_SELF_MANAGED = 4096
    ALICLOUD = 8192
    AWS_TOP_SECRET = 16384
    AWS_SECRET = 32768
    EDGE_CSP = 65536
    EDGE_ZEDEDA = 65536
    EDGE_NEO = 262144
    EDGE_EQUINIX = 524288
    EDGE_MEGAPORT = 1048576


# Named capability unions
AWS_RELATED = (
    CloudType.AWS
    | CloudType.AWS_GOV
    | CloudType.AWS_CHINA
    | CloudType.AWS_TOP_SECRET
    | CloudType.AWS_SECRET
)
GCP_RELATED = CloudType.GCP
AZURE_ARM_RELATED = CloudType.AZURE | CloudType.AZURE_GOV | CloudType.AZURE_CHINA
OCI_RELATED = CloudType.OCI
ALICLOUD_RELATED = CloudType.ALICLOUD
EDGE_RELATED = (
    CloudType.EDGE_CSP
    | CloudType.EDGE_EQUINIX
    | CloudType.EDGE_NEO
    | CloudType.EDGE_MEGAPORT
    | CloudType.EDGE_SELF_MANAGED
)
ALL_CLOUDS = (
    AWS_RELATED
    | GCP_RELATED
    | AZURE_ARM_RELATED
    | OCI_RELATED
    | ALICLOUD_RELATED
    | EDGE_RELATED
)

# Labels used in user-facing messages
_LABELS: dict[int, str] = {
    CloudType.AWS: "AWS",
    CloudType.GCP: "GCP",
    CloudType.AZURE: "Azure",
    CloudType.OCI: "OCI",
    CloudType.AZURE_GOV: "AzureGov",
    CloudType.AWS_GOV: "AWSGov",
    CloudType.AWS_CHINA: "AWSChina",
    CloudType.AZURE_CHINA: "AzureChina",
    CloudType.EDGE_SELF_MANAGED: "EdgeSelfManaged",
    CloudType.ALICLOUD: "AliCloud",
    CloudType.AWS_TOP_SECRET: "AWS Top Secret",
    CloudType.AWS_SECRET: "AWS Secret",
    CloudType.EDGE_CSP: "Edge CSP",
    CloudType.EDGE_NEO: "Edge NEO",
    CloudType.EDGE_EQUINIX: "Edge Equinix",
    CloudType.EDGE_MEGAPORT: "Edge Megaport",
}

SINGLE_CLOUD_TYPES: frozenset[int] = frozenset(int(value) for value in _LABELS)


def is_known(cloud_type: object) -> bool:
    """Return True if ``cloud_type`` is exactly one known single cloud type."""
    if isinstance(cloud_type, bool) or not isinstance(cloud_type, int):
        return False
    return int(cloud_type) in SINGLE_CLOUD_TYPES


def supports(cloud_type: int, union: int) -> bool:
    """Check whether a cloud type belongs to a capability union.

    Unknown values (composites, unassigned bits, non-integers) fail every
    test, which callers treat as "no capabilities".

    Args:
        cloud_type: The resource's cloud type.
        union: Bitwise OR of single cloud-type constants.

    Returns:
        True if the cloud type is known and its bit is in the union.
    """
    if not is_known(cloud_type):
        return False
    return bool(int(cloud_type) & int(union))


def label(cloud_type: int) -> str:
    """Human-readable name of a single cloud type."""
    return _LABELS.get(int(cloud_type), f"unknown ({cloud_type})")


def describe(union: int) -> str:
    """Render a union as ``"AWS (1), AWSGov (256)"`` for error messages."""
    members = [
        f"{name} ({int(value)})" for value, name in sorted(_LABELS.items()) if int(union) & value
    ]
    return ", ".join(members)
