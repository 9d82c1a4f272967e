"""
In-process stand-in for the orchestration engine.

Resources are "created" as soon as their dependencies and deferred inputs
resolve. The provider assigns Azure Resource Manager style ids, keeps the
created state in ``resources``, and rejects declarations the real service
would reject (unknown SKU, bad address ranges, name collisions).
"""

from __future__ import annotations

import hashlib
import ipaddress
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from dbw.composition.azure import helpers
from dbw.composition.deferred import Deferred
from dbw.composition.providers.base import (
    ResourceDeclaration,
    ResourceHandle,
    ResourceProvider,
)
from dbw.errors import ProvisionFailed
from dbw.models import ResourceKind

LOGGER = logging.getLogger(__name__)

_NETWORK_PROVIDER = "Microsoft.Network"
_DATABRICKS_PROVIDER = "Microsoft.Databricks"


@dataclass
class ManagedResource:
    """State of one resource the provider created."""

    id: str
    kind: ResourceKind
    name: str
    owner: str
    logical_name: str
    config: Dict[str, Any]
    attributes: Dict[str, Any]


class InMemoryProvider(ResourceProvider):
    """
    Resource provider that keeps everything in a dict keyed by resource id.

    Re-declaring a resource under the same owner is an idempotent update
    (same id, replaced config). The same id declared by another owner is a
    naming collision.
    """

    def __init__(self, platform: str = "pulumi") -> None:
        self.platform = platform
        self.resources: Dict[str, ManagedResource] = {}
        self._lock = threading.RLock()

    def register(self, declaration: ResourceDeclaration) -> ResourceHandle:
        handle = ResourceHandle(declaration)
        dependencies = Deferred.all(dep.id for dep in declaration.depends_on)
        config = Deferred.unwrap(declaration.config)

        def _settle(ready: Deferred[List[Any]]) -> None:
            exc = ready.failure()
            if exc is not None:
                if not isinstance(exc, ProvisionFailed):
                    exc = ProvisionFailed(str(exc), declaration.logical_name)
                LOGGER.warning("Skipping %s: upstream failure (%s)", declaration.logical_name, exc)
                handle.state.fail(exc)
                return
            try:
                state = self._create(declaration, ready.result()[1])
            except ProvisionFailed as err:
                LOGGER.warning("Provider rejected %s: %s", declaration.logical_name, err)
                handle.state.fail(err)
                return
            handle.state.resolve(state)

        Deferred.all([dependencies, config]).add_callback(_settle)
        return handle

    def get(self, resource_id: str) -> Optional[ManagedResource]:
        return self.resources.get(resource_id)

    def find(self, kind: ResourceKind) -> List[ManagedResource]:
        return [resource for resource in self.resources.values() if resource.kind == kind]

    # ------------------------------------------------------------------ #
    # Creation
    # ------------------------------------------------------------------ #

    def _create(self, declaration: ResourceDeclaration, config: Dict[str, Any]) -> Dict[str, Any]:
        builder = _ID_BUILDERS[declaration.kind]
        resource_id = builder(declaration.subscription_id, config)
        check = _CHECKS.get(declaration.kind)
        with self._lock:
            existing = self.resources.get(resource_id)
            if existing is not None and existing.owner != declaration.owner:
                raise ProvisionFailed(
                    f"{declaration.kind.value} '{declaration.physical_name}' already exists "
                    f"and is managed by '{existing.owner}'.",
                    declaration.logical_name,
                )
            if check is not None:
                check(self, resource_id, config, declaration)
            attributes = {"id": resource_id, "name": config.get("name", declaration.physical_name)}
            attributes.update(_computed_attributes(declaration.kind, resource_id))
            self.resources[resource_id] = ManagedResource(
                id=resource_id,
                kind=declaration.kind,
                name=attributes["name"],
                owner=declaration.owner,
                logical_name=declaration.logical_name,
                config=config,
                attributes=attributes,
            )
        verb = "Updated" if existing is not None else "Created"
        LOGGER.info("%s %s %s", verb, declaration.kind.value, resource_id)
        return dict(attributes)


def _group_id(subscription_id: str, config: Dict[str, Any]) -> str:
    return helpers.resource_group_id(subscription_id, config["resource_group_name"])


def _vnet_id(subscription_id: str, config: Dict[str, Any]) -> str:
    return (
        f"{_group_id(subscription_id, config)}/providers/{_NETWORK_PROVIDER}"
        f"/virtualNetworks/{config['virtual_network_name']}"
    )


_ID_BUILDERS: Dict[ResourceKind, Callable[[str, Dict[str, Any]], str]] = {
    ResourceKind.RESOURCE_GROUP: lambda sub, cfg: helpers.resource_group_id(sub, cfg["name"]),
    ResourceKind.VIRTUAL_NETWORK: lambda sub, cfg: (
        f"{_group_id(sub, cfg)}/providers/{_NETWORK_PROVIDER}/virtualNetworks/{cfg['name']}"
    ),
    ResourceKind.NETWORK_SECURITY_GROUP: lambda sub, cfg: (
        f"{_group_id(sub, cfg)}/providers/{_NETWORK_PROVIDER}/networkSecurityGroups/{cfg['name']}"
    ),
    ResourceKind.SUBNET: lambda sub, cfg: f"{_vnet_id(sub, cfg)}/subnets/{cfg['name']}",
    ResourceKind.VIRTUAL_NETWORK_PEERING: lambda sub, cfg: (
        f"{_vnet_id(sub, cfg)}/virtualNetworkPeerings/{cfg['name']}"
    ),
    ResourceKind.DATABRICKS_WORKSPACE: lambda sub, cfg: (
        f"{_group_id(sub, cfg)}/providers/{_DATABRICKS_PROVIDER}/workspaces/{cfg['name']}"
    ),
}


def _computed_attributes(kind: ResourceKind, resource_id: str) -> Dict[str, Any]:
    if kind != ResourceKind.DATABRICKS_WORKSPACE:
        return {}
    digest = int(hashlib.sha256(resource_id.encode("utf-8")).hexdigest()[:13], 16)
    workspace_id = str(digest % 10**16).zfill(16)
    return {
        "workspace_id": workspace_id,
        "workspace_url": f"adb-{workspace_id}.{digest % 20}.azuredatabricks.net",
    }


# ---------------------------------------------------------------------- #
# Service-side validation
# ---------------------------------------------------------------------- #


def _parse_network(value: Any, declaration: ResourceDeclaration) -> ipaddress.IPv4Network:
    try:
        network = ipaddress.ip_network(str(value), strict=True)
    except ValueError as err:
        raise ProvisionFailed(
            f"Invalid address range '{value}' on {declaration.physical_name}: {err}",
            declaration.logical_name,
        ) from err
    if network.version != 4:
        raise ProvisionFailed(
            f"Address range '{value}' on {declaration.physical_name} is not IPv4.",
            declaration.logical_name,
        )
    return network


def _check_located(provider, resource_id, config, declaration) -> None:
    if not config.get("location"):
        raise ProvisionFailed(
            f"{declaration.physical_name} has no location.", declaration.logical_name
        )


def _check_virtual_network(provider, resource_id, config, declaration) -> None:
    _check_located(provider, resource_id, config, declaration)
    prefixes = config.get("address_prefixes") or []
    if not prefixes:
        raise ProvisionFailed(
            f"{declaration.physical_name} declares no address space.", declaration.logical_name
        )
    for prefix in prefixes:
        # Spoke ranges may carry host bits; the service normalises them.
        try:
            ipaddress.ip_network(str(prefix), strict=False)
        except ValueError as err:
            raise ProvisionFailed(
                f"Invalid address range '{prefix}' on {declaration.physical_name}: {err}",
                declaration.logical_name,
            ) from err


def _check_subnet(provider, resource_id, config, declaration) -> None:
    subnet = _parse_network(config.get("address_prefix"), declaration)
    vnet_id = resource_id.rsplit("/subnets/", 1)[0]
    vnet = provider.resources.get(vnet_id)
    if vnet is None:
        raise ProvisionFailed(
            f"Parent network of {declaration.physical_name} does not exist.",
            declaration.logical_name,
        )
    spaces = [
        ipaddress.ip_network(str(prefix), strict=False)
        for prefix in vnet.config.get("address_prefixes", [])
    ]
    if not any(subnet.subnet_of(space) for space in spaces):
        raise ProvisionFailed(
            f"Subnet range {subnet} is outside the address space of {vnet.name}.",
            declaration.logical_name,
        )
    for other in provider.find(ResourceKind.SUBNET):
        if other.id == resource_id or not other.id.startswith(f"{vnet_id}/subnets/"):
            continue
        if subnet.overlaps(ipaddress.ip_network(other.config["address_prefix"])):
            raise ProvisionFailed(
                f"Subnet range {subnet} overlaps {other.name}.", declaration.logical_name
            )


def _check_peering(provider, resource_id, config, declaration) -> None:
    remote = str(config.get("remote_virtual_network_id") or "")
    if not remote.startswith("/subscriptions/") or "/virtualNetworks/" not in remote:
        raise ProvisionFailed(
            f"'{remote}' is not a virtual network resource id.", declaration.logical_name
        )


def _check_workspace(provider, resource_id, config, declaration) -> None:
    _check_located(provider, resource_id, config, declaration)
    sku = config.get("sku")
    if sku not in helpers.ALLOWED_SKUS:
        raise ProvisionFailed(
            f"Unsupported workspace SKU '{sku}'; expected one of {', '.join(helpers.ALLOWED_SKUS)}.",
            declaration.logical_name,
        )


_CHECKS = {
    ResourceKind.RESOURCE_GROUP: _check_located,
    ResourceKind.VIRTUAL_NETWORK: _check_virtual_network,
    ResourceKind.NETWORK_SECURITY_GROUP: _check_located,
    ResourceKind.SUBNET: _check_subnet,
    ResourceKind.VIRTUAL_NETWORK_PEERING: _check_peering,
    ResourceKind.DATABRICKS_WORKSPACE: _check_workspace,
}
