"""Cloud access accounts.

Credentials differ per cloud; each credential field is only legal for its
own cloud type, and AWS accounts authenticate either with an access key pair
or with an IAM role pair, never both.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..cloud_types import ALICLOUD_RELATED, CloudType, supports
from ..differ import ChangeSet, FieldKind, FieldSpec, Mutability
from ..models import AccountSpec
from ..validator import (
    RuleCategory,
    cloud_scoped,
    custom,
    known_cloud_type,
    required_for_clouds,
)
from .base import Endpoints, ResourceFamily, Toggle, ToggleCall, setter, wire

ACCOUNT_CLOUDS = (
    CloudType.AWS | CloudType.GCP | CloudType.AZURE | CloudType.OCI | ALICLOUD_RELATED
)
GATEWAY_ROLE_CLOUDS = CloudType.AWS | CloudType.AWS_GOV | CloudType.AWS_CHINA

AWS_FIELDS = (
    "aws_account_number",
    "aws_iam",
    "aws_access_key",
    "aws_secret_key",
    "aws_role_app",
    "aws_role_ec2",
)
GCP_FIELDS = ("gcloud_project_id", "gcloud_project_credentials_filepath")
AZURE_FIELDS = (
    "arm_subscription_id",
    "arm_directory_id",
    "arm_application_id",
    "arm_application_key",
)
OCI_FIELDS = (
    "oci_tenancy_id",
    "oci_user_id",
    "oci_compartment_id",
    "oci_api_private_key_filepath",
)
ALICLOUD_FIELDS = ("alicloud_account_id", "alicloud_access_key", "alicloud_secret_key")
GATEWAY_ROLE_FIELDS = ("aws_gateway_role_app", "aws_gateway_role_ec2")

CREDENTIAL_FIELDS = (
    *AWS_FIELDS,
    *GATEWAY_ROLE_FIELDS,
    *GCP_FIELDS,
    *AZURE_FIELDS,
    *OCI_FIELDS,
    *ALICLOUD_FIELDS,
)
_SECRETS = frozenset(
    {
        "aws_secret_key",
        "gcloud_project_credentials_filepath",
        "arm_application_key",
        "oci_api_private_key_filepath",
        "alicloud_secret_key",
    }
)

FIELDS = (
    FieldSpec("account_name", mutability=Mutability.FORCE_NEW),
    FieldSpec("cloud_type", FieldKind.INT, mutability=Mutability.FIXED),
    *(
        FieldSpec(
            name,
            FieldKind.BOOL if name == "aws_iam" else FieldKind.SCALAR,
            write_only=name in _SECRETS,
        )
        for name in CREDENTIAL_FIELDS
    ),
    FieldSpec("rbac_groups", FieldKind.SET),
)


def _has(cfg: Any, *names: str) -> bool:
    return any(getattr(cfg, name) for name in names)


RULES = (
    known_cloud_type(ACCOUNT_CLOUDS, "account"),
    cloud_scoped(
        "gateway_role_scope",
        GATEWAY_ROLE_FIELDS,
        GATEWAY_ROLE_CLOUDS,
        "aws_gateway_role_app and aws_gateway_role_ec2 can only be used with "
        "AWS (1), AWSGov (256) and AWSChina (1024)",
        asymmetric=True,
    ),
    custom(
        "gateway_role_requires_iam",
        RuleCategory.ENABLE_COUPLING,
        (*GATEWAY_ROLE_FIELDS, "aws_iam"),
        lambda cfg, ct: supports(ct, CloudType.AWS)
        and _has(cfg, *GATEWAY_ROLE_FIELDS)
        and not cfg.aws_iam,
        "aws_gateway_role_app and aws_gateway_role_ec2 can only be used with AWS (1) "
        "when aws_iam is enabled",
    ),
    custom(
        "gateway_role_pair",
        RuleCategory.CONDITIONAL_REQUIREMENT,
        GATEWAY_ROLE_FIELDS,
        lambda cfg, _ct: bool(cfg.aws_gateway_role_app) != bool(cfg.aws_gateway_role_ec2),
        "must provide both aws_gateway_role_app and aws_gateway_role_ec2 when using "
        "separate IAM role and policy for gateways",
    ),
    cloud_scoped(
        "aws_credentials_scope",
        AWS_FIELDS,
        CloudType.AWS,
        "'aws_iam', 'aws_account_number', 'aws_role_app', 'aws_role_ec2', 'aws_access_key' "
        "and 'aws_secret_key' can only be set when 'cloud_type' is AWS (1)",
    ),
    cloud_scoped("gcp_credentials_scope", GCP_FIELDS, CloudType.GCP),
    cloud_scoped("azure_credentials_scope", AZURE_FIELDS, CloudType.AZURE),
    cloud_scoped("oci_credentials_scope", OCI_FIELDS, CloudType.OCI),
    cloud_scoped("alicloud_credentials_scope", ALICLOUD_FIELDS, ALICLOUD_RELATED),
    required_for_clouds(
        "aws_account_number",
        ("aws_account_number",),
        CloudType.AWS,
        "aws account number is needed for aws cloud",
    ),
    custom(
        "aws_access_key_with_iam",
        RuleCategory.MUTUAL_EXCLUSIVITY,
        ("aws_iam", "aws_access_key", "aws_secret_key"),
        lambda cfg, _ct: cfg.aws_iam and _has(cfg, "aws_access_key", "aws_secret_key"),
        "'aws_access_key' and 'aws_secret_key' can only be set when 'aws_iam' is false "
        "and 'cloud_type' is AWS (1)",
    ),
    custom(
        "aws_role_without_iam",
        RuleCategory.MUTUAL_EXCLUSIVITY,
        ("aws_iam", "aws_role_app", "aws_role_ec2"),
        lambda cfg, _ct: not cfg.aws_iam and _has(cfg, "aws_role_app", "aws_role_ec2"),
        "'aws_role_app' and 'aws_role_ec2' can only be set when 'aws_iam' is true "
        "and 'cloud_type' is AWS (1)",
    ),
    custom(
        "aws_access_key_required",
        RuleCategory.CONDITIONAL_REQUIREMENT,
        ("aws_iam", "aws_access_key", "aws_secret_key"),
        lambda cfg, ct: supports(ct, CloudType.AWS)
        and not cfg.aws_iam
        and not (cfg.aws_access_key and cfg.aws_secret_key),
        "'aws_access_key' and 'aws_secret_key' must be set when 'aws_iam' is false "
        "and 'cloud_type' is AWS (1)",
    ),
    required_for_clouds("gcp_credentials", GCP_FIELDS, CloudType.GCP),
    required_for_clouds("azure_credentials", AZURE_FIELDS, CloudType.AZURE),
    required_for_clouds("oci_credentials", OCI_FIELDS, CloudType.OCI),
    required_for_clouds("alicloud_credentials", ALICLOUD_FIELDS, ALICLOUD_RELATED),
)


def _profile_calls(cfg: Any, changes: ChangeSet) -> list[ToggleCall]:
    params = {name: wire(getattr(cfg, name)) for name in CREDENTIAL_FIELDS}
    return [ToggleCall("edit_account_profile", params)]


TOGGLES = (
    Toggle("account_profile", CREDENTIAL_FIELDS, _profile_calls, post_create=False),
    setter("rbac_groups", "update_account_rbac_groups"),
)


def build_create(cfg: AccountSpec) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "action": "setup_account_profile",
        "account_name": cfg.account_name,
        "cloud_type": cfg.cloud_type,
    }
    for name in CREDENTIAL_FIELDS:
        payload[name] = wire(getattr(cfg, name))
    return payload


def parse_snapshot(
    raw: Mapping[str, Any], secondary_raw: Mapping[str, Any] | None
) -> dict[str, Any]:
    names = {spec.name for spec in FIELDS}
    return {name: value for name, value in raw.items() if name in names}


ACCOUNT = ResourceFamily(
    kind="account",
    model=AccountSpec,
    endpoints=Endpoints(
        create="setup_account_profile",
        read="get_account",
        delete="delete_account_profile",
        key_param="account_name",
    ),
    fields=FIELDS,
    rules=RULES,
    toggles=TOGGLES,
    build_create=build_create,
    parse_snapshot=parse_snapshot,
)
