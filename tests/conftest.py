"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
from typing import Any

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for controller_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from controller_mock import MockRemote  # noqa: E402

from provider_engine.models import (  # noqa: E402
    AccountSpec,
    FirewallInstanceSpec,
    GatewayGroupSpec,
    GatewaySpec,
)


def make_gateway(**overrides: Any) -> GatewaySpec:
    """AWS spoke gateway without HA, overridable per test."""
    data: dict[str, Any] = {
        "gw_name": "spoke-1",
        "cloud_type": 1,
        "account_name": "aws-prod",
        "vpc_id": "vpc-0abc",
        "vpc_reg": "us-east-1",
        "gw_size": "t3.medium",
        "subnet": "10.0.1.0/24",
    }
    data.update(overrides)
    return GatewaySpec(**data)


def make_group(**overrides: Any) -> GatewayGroupSpec:
    data: dict[str, Any] = {
        "group_name": "transit-east",
        "cloud_type": 1,
        "gw_type": "TRANSIT",
        "group_instance_size": "c5.xlarge",
        "vpc_id": "vpc-0def",
        "account_name": "aws-prod",
    }
    data.update(overrides)
    return GatewayGroupSpec(**data)


def make_account(**overrides: Any) -> AccountSpec:
    data: dict[str, Any] = {
        "account_name": "aws-prod",
        "cloud_type": 1,
        "aws_account_number": "123456789012",
        "aws_access_key": "AKIAEXAMPLE",
        "aws_secret_key": "secret",
    }
    data.update(overrides)
    return AccountSpec(**data)


def make_firewall(**overrides: Any) -> FirewallInstanceSpec:
    data: dict[str, Any] = {
        "cloud_type": 1,
        "gw_name": "transit-fw",
        "vpc_id": "vpc-0fw",
        "firewall_name": "fw-1",
        "firewall_image": "Palo Alto Networks VM-Series Next-Generation Firewall Bundle 1",
        "firewall_size": "c5.xlarge",
        "egress_subnet": "10.1.0.0/28",
        "management_subnet": "10.1.0.16/28",
        "zone": "us-east-1a",
    }
    data.update(overrides)
    return FirewallInstanceSpec(**data)


@pytest.fixture
def remote() -> MockRemote:
    """Fresh in-memory controller."""
    return MockRemote()
