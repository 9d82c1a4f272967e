"""
Shared dataclasses for workspace composition.

These models intentionally remain lightweight so that the composer, the
providers and the CLI can share them without importing one another.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from dbw.errors import InvalidArgument


class ResourceKind(str, Enum):
    RESOURCE_GROUP = "resource_group"
    VIRTUAL_NETWORK = "virtual_network"
    NETWORK_SECURITY_GROUP = "network_security_group"
    SUBNET = "subnet"
    VIRTUAL_NETWORK_PEERING = "virtual_network_peering"
    DATABRICKS_WORKSPACE = "databricks_workspace"


class PublicNetworkAccess(str, Enum):
    ENABLED = "Enabled"
    DISABLED = "Disabled"


class RequiredNsgRules(str, Enum):
    ALL_RULES = "AllRules"
    # The service injects no NSG rules of its own.
    NO_RULES = "NoAzureDatabricksRules"


# camelCase option names accepted alongside the dataclass field names.
_REQUEST_ALIASES = {
    "teamName": "team_name",
    "subscriptionId": "subscription_id",
    "spokeCidr": "spoke_cidr",
    "hubVnetId": "hub_vnet_id",
    "skuTier": "sku_tier",
    "enablePublicAccess": "enable_public_access",
    "costCenter": "cost_center",
    "dataClassification": "data_classification",
}


@dataclass(frozen=True)
class WorkspaceRequest:
    """
    Caller-facing description of one workspace.

    Optional fields stay ``None`` here; defaults are applied by
    ``dbw.composition.inputs.normalize_request``.
    """

    team_name: str
    location: str
    subscription_id: str
    spoke_cidr: str
    hub_vnet_id: Optional[str] = None
    sku_tier: Optional[str] = None
    enable_public_access: Optional[bool] = None
    environment: Optional[str] = None
    cost_center: Optional[str] = None
    data_classification: Optional[str] = None
    tags: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WorkspaceRequest:
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = _REQUEST_ALIASES.get(key, key)
            if name not in known:
                raise InvalidArgument(f"Unknown workspace option '{key}'.")
            kwargs[name] = value
        missing = [
            name
            for name in ("team_name", "location", "subscription_id", "spoke_cidr")
            if name not in kwargs
        ]
        if missing:
            raise InvalidArgument(f"Missing required workspace option(s): {', '.join(missing)}.")
        if kwargs.get("tags") is None:
            kwargs["tags"] = {}
        elif not isinstance(kwargs["tags"], Mapping):
            raise InvalidArgument("'tags' must be a mapping of string to string.")
        return cls(**kwargs)


@dataclass(frozen=True)
class NetworkPlan:
    """Spoke address space and the two /24 subnets carved out of it."""

    spoke_cidr: str
    private_subnet_cidr: str
    public_subnet_cidr: str


@dataclass(frozen=True)
class ResolvedRequest:
    """A validated request with every default applied."""

    team_name: str
    location: str
    subscription_id: str
    spoke_cidr: str
    hub_vnet_id: Optional[str]
    sku_tier: str
    enable_public_access: bool
    environment: str
    cost_center: str
    data_classification: Optional[str]
    tags: Dict[str, str]
    network: NetworkPlan


@dataclass(frozen=True)
class NetworkConfig:
    vnet_id: str
    private_subnet_id: str
    public_subnet_id: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "vnetId": self.vnet_id,
            "privateSubnetId": self.private_subnet_id,
            "publicSubnetId": self.public_subnet_id,
        }


@dataclass(frozen=True)
class WorkspaceOutputs:
    """
    Identifiers exported once every source resource has resolved.
    """

    workspace_url: str
    workspace_id: str
    workspace_name: str
    resource_group_name: str
    managed_resource_group_name: str
    network_config: NetworkConfig

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workspaceUrl": self.workspace_url,
            "workspaceId": self.workspace_id,
            "workspaceName": self.workspace_name,
            "resourceGroupName": self.resource_group_name,
            "managedResourceGroupName": self.managed_resource_group_name,
            "networkConfig": self.network_config.to_dict(),
        }

    def to_json(self, **json_kwargs: Any) -> str:
        return json.dumps(self.to_dict(), **json_kwargs)
