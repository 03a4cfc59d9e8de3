"""Resource family registry."""

from __future__ import annotations

from .account import ACCOUNT
from .base import Endpoints, ResourceFamily
from .firewall_instance import FIREWALL_INSTANCE
from .gateway import GATEWAY
from .gateway_group import GATEWAY_GROUP

FAMILIES: dict[str, ResourceFamily] = {
    family.kind: family for family in (ACCOUNT, GATEWAY, GATEWAY_GROUP, FIREWALL_INSTANCE)
}

# Remote kinds, including secondary nodes
ENDPOINTS: dict[str, Endpoints] = {kind: family.endpoints for kind, family in FAMILIES.items()}
for _family in FAMILIES.values():
    if _family.ha is not None and _family.ha_endpoints is not None:
        ENDPOINTS[_family.ha.kind] = _family.ha_endpoints


def get_family(kind: str) -> ResourceFamily:
    """Get the resource family for a kind.

    Raises:
        ValueError: If kind is not recognized.
    """
    family = FAMILIES.get(kind)
    if family is None:
        raise ValueError(f"Unknown kind '{kind}'. Valid kinds: {list(FAMILIES)}")
    return family


def get_endpoints(kind: str) -> Endpoints:
    """Get controller actions for a remote kind (primary or secondary).

    Raises:
        ValueError: If kind is not recognized.
    """
    endpoints = ENDPOINTS.get(kind)
    if endpoints is None:
        raise ValueError(f"Unknown remote kind '{kind}'. Valid kinds: {list(ENDPOINTS)}")
    return endpoints


__all__ = [
    "ENDPOINTS",
    "FAMILIES",
    "get_endpoints",
    "get_family",
]
