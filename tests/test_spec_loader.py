"""Tests for desired-config file loading."""

from pathlib import Path

import pytest

from provider_engine.config import MAX_SPEC_FILE_SIZE_BYTES
from provider_engine.models import FirewallInstanceSpec, GatewaySpec
from provider_engine.spec_loader import SpecLoadError, load_spec, load_specs

FLAT_GATEWAY = """\
kind: gateway
gw_name: spoke-1
cloud_type: 1
account_name: aws-prod
vpc_id: vpc-0abc
vpc_reg: us-east-1
gw_size: t3.medium
subnet: 10.0.1.0/24
enable_bgp: "true"
local_as_number: 65001
"""

WRAPPED_FIREWALL = """\
apiVersion: provider-engine/v1
kind: firewall_instance
metadata:
  name: fw-1
spec:
  cloud_type: 1
  gw_name: transit-fw
  vpc_id: vpc-0fw
  firewall_name: fw-1
  firewall_image: Palo Alto Networks VM-Series Next-Generation Firewall Bundle 1
  firewall_size: c5.xlarge
  egress_subnet: 10.1.0.0/28
  management_subnet: 10.1.0.16/28
  zone: us-east-1a
"""


def write(path: Path, content: str) -> Path:
    path.write_text(content)
    return path


class TestLoadSpec:
    """Tests for load_spec."""

    def test_flat_layout(self, tmp_path: Path) -> None:
        spec = load_spec(write(tmp_path / "gw.yaml", FLAT_GATEWAY))

        assert isinstance(spec, GatewaySpec)
        assert spec.resource_key == "spoke-1"
        assert spec.enable_bgp is True
        assert spec.local_as_number == "65001"

    def test_wrapped_layout(self, tmp_path: Path) -> None:
        spec = load_spec(write(tmp_path / "fw.yaml", WRAPPED_FIREWALL))

        assert isinstance(spec, FirewallInstanceSpec)
        assert spec.resource_key == ""
        assert spec.zone == "us-east-1a"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SpecLoadError, match="Spec file not found"):
            load_spec(tmp_path / "missing.yaml")

    def test_file_too_large(self, tmp_path: Path) -> None:
        path = write(tmp_path / "big.yaml", "#" * (MAX_SPEC_FILE_SIZE_BYTES + 1))

        with pytest.raises(SpecLoadError, match="exceeds maximum size"):
            load_spec(path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(SpecLoadError, match="Invalid YAML in"):
            load_spec(write(tmp_path / "bad.yaml", "kind: [gateway\n"))

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(SpecLoadError, match="must contain a YAML mapping"):
            load_spec(write(tmp_path / "list.yaml", "- gateway\n"))

    def test_missing_kind(self, tmp_path: Path) -> None:
        with pytest.raises(SpecLoadError, match="must declare a 'kind'"):
            load_spec(write(tmp_path / "nokind.yaml", "gw_name: spoke-1\n"))

    def test_spec_section_not_mapping(self, tmp_path: Path) -> None:
        content = "apiVersion: provider-engine/v1\nkind: gateway\nspec: [1, 2]\n"

        with pytest.raises(SpecLoadError, match="Spec section must be a mapping"):
            load_spec(write(tmp_path / "wrapped.yaml", content))

    def test_unknown_kind(self, tmp_path: Path) -> None:
        with pytest.raises(SpecLoadError, match="Unknown kind 'vpn'"):
            load_spec(write(tmp_path / "vpn.yaml", "kind: vpn\nname: x\n"))

    def test_field_errors_listed(self, tmp_path: Path) -> None:
        content = FLAT_GATEWAY.replace("subnet: 10.0.1.0/24", "subnet: 10.0.1.0") + "unknown: 1\n"

        with pytest.raises(SpecLoadError) as exc_info:
            load_spec(write(tmp_path / "gw.yaml", content))

        message = str(exc_info.value)
        assert message.startswith(f"Validation failed for {tmp_path / 'gw.yaml'}:")
        assert "  - subnet:" in message
        assert "  - unknown:" in message


class TestLoadSpecs:
    """Tests for load_specs."""

    def test_single_file(self, tmp_path: Path) -> None:
        path = write(tmp_path / "gw.yaml", FLAT_GATEWAY)

        loaded = load_specs(path)

        assert [p for p, _ in loaded] == [path]

    def test_directory_in_name_order(self, tmp_path: Path) -> None:
        write(tmp_path / "b-gateway.yml", FLAT_GATEWAY)
        write(tmp_path / "a-firewall.yaml", WRAPPED_FIREWALL)
        write(tmp_path / "notes.txt", "ignored")

        loaded = load_specs(tmp_path)

        assert [p.name for p, _ in loaded] == ["a-firewall.yaml", "b-gateway.yml"]
        assert [s.kind for _, s in loaded] == ["firewall_instance", "gateway"]

    def test_missing_path(self, tmp_path: Path) -> None:
        with pytest.raises(SpecLoadError, match="Spec path not found"):
            load_specs(tmp_path / "nowhere")

    def test_one_bad_file_fails_all(self, tmp_path: Path) -> None:
        write(tmp_path / "a.yaml", FLAT_GATEWAY)
        write(tmp_path / "b.yaml", "kind: gateway\n")

        with pytest.raises(SpecLoadError, match="b.yaml"):
            load_specs(tmp_path)
