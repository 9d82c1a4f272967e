"""
Naming conventions and address planning for Azure workspace resources.

Every physical name is a pure function of ``(team, environment)`` so that
re-composing the same request always targets the same managed resources.
"""

from __future__ import annotations

import ipaddress
from typing import Tuple

from dbw.errors import InvalidArgument
from dbw.models import NetworkPlan

PRODUCT = "dbw"
COMPONENT = "databricks-workspace"

PRIVATE_SUBNET_NAME = "databricks-private"
PUBLIC_SUBNET_NAME = "databricks-public"
DELEGATION_NAME = "databricks-delegation"
DELEGATION_SERVICE = "Microsoft.Databricks/workspaces"
PEERING_NAME = "spoke-to-hub"

ALLOWED_SKUS = ("standard", "premium", "trial")

SUBNET_PREFIX = 24
# Two /24 blocks need at least a /23 of address space.
MAX_SPOKE_PREFIX = SUBNET_PREFIX - 1
# Up to /16 the subnets keep the first two octets of the supplied address.
LEGACY_SPOKE_PREFIX = 16


def resource_group_name(team: str, environment: str) -> str:
    return f"rg-{PRODUCT}-{team}-{environment}"


def virtual_network_name(team: str, environment: str) -> str:
    return f"vnet-{PRODUCT}-{team}-{environment}"


def security_group_name(tier: str, team: str, environment: str) -> str:
    """``tier`` is "private" or "public"."""
    return f"nsg-{PRODUCT}-{tier}-{team}-{environment}"


def workspace_name(team: str, environment: str) -> str:
    return f"{PRODUCT}-{team}-{environment}"


def managed_resource_group_name(team: str, environment: str) -> str:
    return f"rg-{PRODUCT}-managed-{team}-{environment}"


def resource_group_id(subscription_id: str, name: str) -> str:
    return f"/subscriptions/{subscription_id}/resourceGroups/{name}"


def _is_decimal(text: str) -> bool:
    # str.isdigit() also accepts non-ASCII digits such as "²".
    return text.isascii() and text.isdigit()


def split_cidr(cidr: str) -> Tuple[Tuple[int, int, int, int], int]:
    """
    Parse ``<IPv4>/<prefix>`` into its four octets and prefix length.

    Raises InvalidArgument for anything that is not a dotted quad with a
    0-32 prefix.
    """
    if not isinstance(cidr, str) or cidr.count("/") != 1:
        raise InvalidArgument(f"CIDR '{cidr}' must have the form <IPv4>/<prefix>.")
    address, prefix_text = cidr.split("/")
    parts = address.split(".")
    if len(parts) != 4:
        raise InvalidArgument(f"CIDR '{cidr}' address must have four dot-separated octets.")
    octets = []
    for part in parts:
        if not _is_decimal(part) or int(part) > 255:
            raise InvalidArgument(f"CIDR '{cidr}' has an invalid octet '{part}'.")
        octets.append(int(part))
    if not _is_decimal(prefix_text) or int(prefix_text) > 32:
        raise InvalidArgument(f"CIDR '{cidr}' has an invalid prefix length '{prefix_text}'.")
    return (octets[0], octets[1], octets[2], octets[3]), int(prefix_text)


def plan_subnets(spoke_cidr: str) -> NetworkPlan:
    """
    Carve the private and public /24 subnets out of the spoke range.

    Spokes of /16 or wider keep the first two octets of the supplied address
    (private ``a.b.0.0/24``, public ``a.b.1.0/24``). Spokes between /17 and
    /23 use the first two /24 blocks of the spoke network. Anything narrower
    cannot hold both subnets and is rejected.
    """
    octets, prefix = split_cidr(spoke_cidr)
    if prefix > MAX_SPOKE_PREFIX:
        raise InvalidArgument(
            f"Spoke CIDR '{spoke_cidr}' is too small; two /{SUBNET_PREFIX} subnets need "
            f"a /{MAX_SPOKE_PREFIX} or wider range."
        )
    if prefix <= LEGACY_SPOKE_PREFIX:
        base = f"{octets[0]}.{octets[1]}.0.0/{LEGACY_SPOKE_PREFIX}"
    else:
        base = spoke_cidr
    network = ipaddress.ip_network(base, strict=False)
    private, public = list(network.subnets(new_prefix=SUBNET_PREFIX))[:2]
    return NetworkPlan(
        spoke_cidr=spoke_cidr,
        private_subnet_cidr=str(private),
        public_subnet_cidr=str(public),
    )


__all__ = [
    "ALLOWED_SKUS",
    "COMPONENT",
    "DELEGATION_NAME",
    "DELEGATION_SERVICE",
    "PEERING_NAME",
    "PRIVATE_SUBNET_NAME",
    "PRODUCT",
    "PUBLIC_SUBNET_NAME",
    "managed_resource_group_name",
    "plan_subnets",
    "resource_group_id",
    "resource_group_name",
    "security_group_name",
    "split_cidr",
    "virtual_network_name",
    "workspace_name",
]
