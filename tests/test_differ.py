"""Tests for the change-set differencer."""

import pytest
from conftest import make_gateway, make_group

from provider_engine.differ import (
    ChangeSet,
    FieldChange,
    FieldDecodeError,
    FieldKind,
    FieldSpec,
    Mutability,
    diff,
    normalize,
)
from provider_engine.models import ObservedState
from provider_engine.resources import get_family

GATEWAY_FIELDS = get_family("gateway").fields


def observed_gateway(**values: object) -> ObservedState:
    base: dict[str, object] = {
        "gw_name": "spoke-1",
        "cloud_type": 1,
        "account_name": "aws-prod",
        "vpc_id": "vpc-0abc",
        "vpc_reg": "us-east-1",
        "gw_size": "t3.medium",
        "subnet": "10.0.1.0/24",
    }
    base.update(values)
    return ObservedState(kind="gateway", key="spoke-1", values=base)


class TestNormalize:
    """Tests for per-kind normalization."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("true", True), ("False", False), ("", False), (None, False), (1, True), ("yes", True)],
    )
    def test_bool(self, raw: object, expected: bool) -> None:
        assert normalize(raw, FieldSpec("f", FieldKind.BOOL, default=False)) is expected

    def test_int_from_string(self) -> None:
        spec = FieldSpec("f", FieldKind.INT, default=0)
        assert normalize("180", spec) == 180
        assert normalize("", spec) == 0
        assert normalize(None, spec) == 0

    @pytest.mark.parametrize(
        ("spec", "expected"),
        [
            (FieldSpec("f", FieldKind.INT, default=180), 180),
            (FieldSpec("f", FieldKind.BOOL, default=True), True),
            (FieldSpec("f", FieldKind.SET, default=frozenset({"a"})), frozenset({"a"})),
            (FieldSpec("f", FieldKind.SCALAR, default="x"), ""),
        ],
    )
    def test_empty_string_takes_default(self, spec: FieldSpec, expected: object) -> None:
        assert normalize("", spec) == expected

    def test_int_not_numeric(self) -> None:
        with pytest.raises(ValueError):
            normalize("soon", FieldSpec("f", FieldKind.INT, default=0))

    def test_set_from_comma_string(self) -> None:
        spec = FieldSpec("f", FieldKind.SET, default=frozenset())
        assert normalize("b, a", spec) == frozenset({"a", "b"})
        assert normalize(["a", "b"], spec) == normalize("a,b", spec)

    def test_cidr_set_canonical(self) -> None:
        spec = FieldSpec("f", FieldKind.CIDR_SET, default=frozenset())
        assert normalize(["10.1.0.0/16", "2001:DB8::/32"], spec) == normalize(
            ["2001:db8::/32", "10.1.0.0/16"], spec
        )

    def test_ordered_list_keeps_order(self) -> None:
        spec = FieldSpec("f", FieldKind.ORDERED_LIST, default=())
        assert normalize(["1", "2"], spec) != normalize(["2", "1"], spec)
        assert normalize("1,2", spec) == ("1", "2")

    def test_tag_map(self) -> None:
        spec = FieldSpec("f", FieldKind.TAG_MAP, default={})
        assert normalize({"b": 1, "a": "x"}, spec) == {"a": "x", "b": "1"}
        assert normalize(None, spec) == {}

    def test_case_insensitive_scalar(self) -> None:
        spec = FieldSpec("f", case_insensitive=True, default="")
        assert normalize("TRANSIT", spec) == normalize("transit", spec)

    def test_missing_scalar_is_empty(self) -> None:
        assert normalize(None, FieldSpec("f")) == ""


class TestDiff:
    """Tests for diff()."""

    def test_converged(self) -> None:
        changes = diff(observed_gateway(), make_gateway(), GATEWAY_FIELDS)
        assert len(changes) == 0

    def test_wire_types_compare_equal(self) -> None:
        """Test that strings from the controller equal typed desired values."""
        observed = observed_gateway(
            enable_bgp="true",
            bgp_hold_time="90",
            bgp_manual_advertise_cidrs="10.2.0.0/16,10.1.0.0/16",
        )
        desired = make_gateway(
            enable_bgp=True,
            bgp_hold_time=90,
            bgp_manual_advertise_cidrs=["10.1.0.0/16", "10.2.0.0/16"],
        )

        assert diff(observed, desired, GATEWAY_FIELDS) == ChangeSet()

    def test_reverting_to_default_is_a_change(self) -> None:
        changes = diff(observed_gateway(bgp_hold_time=90), make_gateway(), GATEWAY_FIELDS)

        assert list(changes) == ["bgp_hold_time"]
        assert changes["bgp_hold_time"] == FieldChange(old=90, new=180)

    def test_observed_default_is_not_a_change(self) -> None:
        changes = diff(observed_gateway(bgp_hold_time=180), make_gateway(), GATEWAY_FIELDS)
        assert not changes

    def test_empty_string_matches_non_zero_default(self) -> None:
        """Test that an empty controller value is not drift from a non-zero default."""
        assert diff(observed_gateway(bgp_hold_time=""), make_gateway(), GATEWAY_FIELDS) == {}

    def test_empty_string_matches_true_default(self) -> None:
        group_fields = [get_family("gateway_group").field_spec("enable_jumbo_frame")]
        observed = ObservedState(
            kind="gateway_group", key="transit-east", values={"enable_jumbo_frame": ""}
        )

        assert diff(observed, make_group(), group_fields) == {}

    def test_undecodable_value_names_the_field(self) -> None:
        with pytest.raises(FieldDecodeError) as exc_info:
            diff(observed_gateway(bgp_hold_time="three minutes"), make_gateway(), GATEWAY_FIELDS)

        assert exc_info.value.field_name == "bgp_hold_time"
        assert exc_info.value.value == "three minutes"
        assert "bgp_hold_time" in str(exc_info.value)

    def test_prepend_order_matters(self) -> None:
        observed = observed_gateway(
            enable_bgp=True, local_as_number="65001", prepend_as_path=["65001", "65002"]
        )
        desired = make_gateway(
            enable_bgp=True, local_as_number="65001", prepend_as_path=["65002", "65001"]
        )

        assert list(diff(observed, desired, GATEWAY_FIELDS)) == ["prepend_as_path"]

    def test_tags_order_free(self) -> None:
        observed = observed_gateway(tags={"env": "prod", "team": "net"})
        desired = make_gateway(tags={"team": "net", "env": "prod"})

        assert not diff(observed, desired, GATEWAY_FIELDS)

    def test_write_only_skipped_when_not_returned(self) -> None:
        desired = make_gateway(enable_encrypt_volume=True, customer_managed_keys="kms-key")
        observed = observed_gateway(enable_encrypt_volume=True)

        assert not diff(observed, desired, GATEWAY_FIELDS)

    def test_write_only_compared_when_returned(self) -> None:
        desired = make_gateway(enable_encrypt_volume=True, customer_managed_keys="kms-key")
        observed = observed_gateway(enable_encrypt_volume=True, customer_managed_keys="old")

        assert list(diff(observed, desired, GATEWAY_FIELDS)) == ["customer_managed_keys"]

    def test_absent_resource_compares_against_defaults(self) -> None:
        changes = diff(None, make_gateway(enable_bgp=True), GATEWAY_FIELDS)

        assert "enable_bgp" in changes
        assert "gw_name" in changes
        assert "bgp_hold_time" not in changes

    def test_declaration_order(self) -> None:
        observed = observed_gateway(gw_size="t3.small", enable_jumbo_frame=True)
        changes = diff(observed, make_gateway(), GATEWAY_FIELDS)

        assert list(changes) == ["gw_size", "enable_jumbo_frame"]


class TestChangeSet:
    """Tests for ChangeSet."""

    def test_touches(self) -> None:
        changes = ChangeSet({"ha_subnet": FieldChange("", "10.0.2.0/24")})

        assert changes.touches("ha_zone", "ha_subnet")
        assert not changes.touches("gw_size")

    def test_immutable_mapping(self) -> None:
        changes = ChangeSet({"a": FieldChange(1, 2)})
        with pytest.raises(TypeError):
            changes["b"] = FieldChange(1, 2)  # type: ignore[index]


class TestFieldDefaults:
    """Tests for model-derived field defaults."""

    def test_defaults_filled_from_model(self) -> None:
        family = get_family("gateway")

        assert family.field_spec("bgp_hold_time").default == 180
        assert family.field_spec("allocate_new_eip").default is True
        assert family.field_spec("gw_size").default is None

    def test_mutability_declared(self) -> None:
        family = get_family("gateway")

        assert family.field_spec("cloud_type").mutability is Mutability.FIXED
        assert "subnet" in family.force_new_fields
        assert "gw_size" not in family.force_new_fields
