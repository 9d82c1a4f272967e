"""
Terraform backend: records declarations as ``azurerm`` resources.

Handles resolve immediately to Terraform interpolation references
(``${azurerm_virtual_network.analytics_vnet.id}``), so the rendered document
carries the dependency graph and Terraform performs the actual reconciliation.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from dbw.composition.deferred import Deferred
from dbw.composition.providers.base import (
    ResourceDeclaration,
    ResourceHandle,
    ResourceProvider,
)
from dbw.errors import ProvisionFailed
from dbw.models import PublicNetworkAccess, ResourceKind, WorkspaceOutputs

LOGGER = logging.getLogger(__name__)

AZURERM_SOURCE = "hashicorp/azurerm"
AZURERM_VERSION = ">= 3.0"

RESOURCE_TYPES = {
    ResourceKind.RESOURCE_GROUP: "azurerm_resource_group",
    ResourceKind.VIRTUAL_NETWORK: "azurerm_virtual_network",
    ResourceKind.NETWORK_SECURITY_GROUP: "azurerm_network_security_group",
    ResourceKind.SUBNET: "azurerm_subnet",
    ResourceKind.VIRTUAL_NETWORK_PEERING: "azurerm_virtual_network_peering",
    ResourceKind.DATABRICKS_WORKSPACE: "azurerm_databricks_workspace",
}
NSG_ASSOCIATION_TYPE = "azurerm_subnet_network_security_group_association"

DELEGATION_ACTIONS = [
    "Microsoft.Network/virtualNetworks/subnets/join/action",
    "Microsoft.Network/virtualNetworks/subnets/prepareNetworkPolicies/action",
    "Microsoft.Network/virtualNetworks/subnets/unprepareNetworkPolicies/action",
]

_LABEL_RE = re.compile(r"[^A-Za-z0-9_]")


def terraform_label(logical_name: str) -> str:
    """Turn a logical name into a valid Terraform block label."""
    label = _LABEL_RE.sub("_", logical_name)
    if not label or not (label[0].isalpha() or label[0] == "_"):
        label = f"r_{label}"
    return label


def reference(resource_type: str, label: str, attribute: str) -> str:
    return "${" + f"{resource_type}.{label}.{attribute}" + "}"


def provider_alias(subscription_id: str) -> str:
    """Alias of the ``azurerm`` provider configured for ``subscription_id``."""
    return terraform_label(f"sub_{subscription_id}")


class TerraformProvider(ResourceProvider):
    """
    Collects ``azurerm`` resource blocks; ``render`` returns Terraform JSON.

    Every block remembers the subscription it was declared in. When more than
    one subscription is involved, ``render`` emits one aliased ``azurerm``
    provider per subscription and pins each block to its alias.
    """

    platform = "terraform"

    def __init__(self) -> None:
        self.resources: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.subscriptions: List[str] = []
        self._placement: Dict[Tuple[str, str], str] = {}
        self._associations: Dict[Tuple[str, str], str] = {}

    def register(self, declaration: ResourceDeclaration) -> ResourceHandle:
        handle = ResourceHandle(declaration)
        resource_type = RESOURCE_TYPES[declaration.kind]
        label = terraform_label(declaration.logical_name)
        if label in self.resources.get(resource_type, {}):
            handle.state.fail(
                ProvisionFailed(
                    f"{resource_type}.{label} is declared twice.", declaration.logical_name
                )
            )
            return handle
        subscription_id = declaration.subscription_id
        if subscription_id not in self.subscriptions:
            self.subscriptions.append(subscription_id)

        def _record(config: Dict[str, Any]) -> Dict[str, Any]:
            block = self._translate(declaration, label, config)
            depends_on = [
                f"{RESOURCE_TYPES[dep.kind]}.{terraform_label(dep.logical_name)}"
                for dep in declaration.depends_on
            ]
            if depends_on:
                block["depends_on"] = depends_on
            self._add_block(resource_type, label, block, subscription_id)
            LOGGER.debug("Recorded %s.%s in %s", resource_type, label, subscription_id)
            return self._state(declaration.kind, resource_type, label)

        Deferred.unwrap(declaration.config).apply(_record).pipe(handle.state)
        return handle

    # ------------------------------------------------------------------ #
    # Rendering
    # ------------------------------------------------------------------ #

    def render(self, outputs: Optional[Mapping[str, WorkspaceOutputs]] = None) -> Dict[str, Any]:
        """
        Build the Terraform JSON document.

        ``outputs`` maps composition names to their bundles. A single
        composition exports the stable keys as-is; several compositions get
        their keys prefixed with the composition label.
        """
        document: Dict[str, Any] = {
            "terraform": {
                "required_providers": {
                    "azurerm": {"source": AZURERM_SOURCE, "version": AZURERM_VERSION},
                },
            },
            "provider": {"azurerm": self._provider_config()},
            "resource": self._resource_blocks(),
        }
        if outputs:
            prefixed = len(outputs) > 1
            document["output"] = {}
            for name, bundle in outputs.items():
                for key, value in bundle.to_dict().items():
                    output_name = f"{terraform_label(name)}_{key}" if prefixed else key
                    document["output"][output_name] = {"value": value}
        return document

    def _provider_config(self) -> Any:
        if len(self.subscriptions) <= 1:
            config: Dict[str, Any] = {"features": {}}
            if self.subscriptions:
                config["subscription_id"] = self.subscriptions[0]
            return config
        return [
            {"alias": provider_alias(sub), "features": {}, "subscription_id": sub}
            for sub in self.subscriptions
        ]

    def _resource_blocks(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        if len(self.subscriptions) <= 1:
            return self.resources
        pinned: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for resource_type, blocks in self.resources.items():
            for label, block in blocks.items():
                alias = provider_alias(self._placement[(resource_type, label)])
                pinned.setdefault(resource_type, {})[label] = {**block, "provider": f"azurerm.{alias}"}
        return pinned

    def _add_block(
        self, resource_type: str, label: str, block: Dict[str, Any], subscription_id: str
    ) -> None:
        self.resources.setdefault(resource_type, {})[label] = block
        self._placement[(resource_type, label)] = subscription_id

    def write(
        self, path: str | Path, outputs: Optional[Mapping[str, WorkspaceOutputs]] = None
    ) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8") as fh:
            json.dump(self.render(outputs), fh, indent=2)
            fh.write("\n")
        LOGGER.info("Wrote Terraform configuration to %s", target)
        return target

    # ------------------------------------------------------------------ #
    # Translation
    # ------------------------------------------------------------------ #

    def _state(self, kind: ResourceKind, resource_type: str, label: str) -> Dict[str, Any]:
        state = {
            "id": reference(resource_type, label, "id"),
            "name": reference(resource_type, label, "name"),
        }
        if kind == ResourceKind.DATABRICKS_WORKSPACE:
            state["workspace_url"] = reference(resource_type, label, "workspace_url")
            state["workspace_id"] = reference(resource_type, label, "workspace_id")
        return state

    def _translate(
        self, declaration: ResourceDeclaration, label: str, config: Dict[str, Any]
    ) -> Dict[str, Any]:
        kind = declaration.kind
        if kind == ResourceKind.RESOURCE_GROUP:
            return {"name": config["name"], "location": config["location"], "tags": config.get("tags", {})}
        if kind == ResourceKind.VIRTUAL_NETWORK:
            return {
                "name": config["name"],
                "resource_group_name": config["resource_group_name"],
                "location": config["location"],
                "address_space": list(config["address_prefixes"]),
                "tags": config.get("tags", {}),
            }
        if kind == ResourceKind.NETWORK_SECURITY_GROUP:
            block = {
                "name": config["name"],
                "resource_group_name": config["resource_group_name"],
                "location": config["location"],
                "tags": config.get("tags", {}),
            }
            if config.get("security_rules"):
                block["security_rule"] = list(config["security_rules"])
            return block
        if kind == ResourceKind.SUBNET:
            return self._translate_subnet(label, config, declaration.subscription_id)
        if kind == ResourceKind.VIRTUAL_NETWORK_PEERING:
            return {
                "name": config["name"],
                "resource_group_name": config["resource_group_name"],
                "virtual_network_name": config["virtual_network_name"],
                "remote_virtual_network_id": config["remote_virtual_network_id"],
                "allow_virtual_network_access": config["allow_virtual_network_access"],
                "allow_forwarded_traffic": config["allow_forwarded_traffic"],
                "allow_gateway_transit": config["allow_gateway_transit"],
                "use_remote_gateways": config["use_remote_gateways"],
            }
        if kind == ResourceKind.DATABRICKS_WORKSPACE:
            return self._translate_workspace(config)
        raise ProvisionFailed(f"Unsupported resource kind {kind}.", declaration.logical_name)

    def _translate_subnet(
        self, label: str, config: Dict[str, Any], subscription_id: str
    ) -> Dict[str, Any]:
        block = {
            "name": config["name"],
            "resource_group_name": config["resource_group_name"],
            "virtual_network_name": config["virtual_network_name"],
            "address_prefixes": [config["address_prefix"]],
            "delegation": [
                {
                    "name": delegation["name"],
                    "service_delegation": [
                        {"name": delegation["service_name"], "actions": list(DELEGATION_ACTIONS)}
                    ],
                }
                for delegation in config.get("delegations", [])
            ],
        }
        if config.get("network_security_group_id"):
            # azurerm binds NSGs to subnets through a separate association resource.
            association = f"{label}_nsg"
            self._add_block(
                NSG_ASSOCIATION_TYPE,
                association,
                {
                    "subnet_id": reference(RESOURCE_TYPES[ResourceKind.SUBNET], label, "id"),
                    "network_security_group_id": config["network_security_group_id"],
                },
                subscription_id,
            )
            key = (config["resource_group_name"], config["name"])
            self._associations[key] = reference(NSG_ASSOCIATION_TYPE, association, "id")
        return block

    def _translate_workspace(self, config: Dict[str, Any]) -> Dict[str, Any]:
        parameters = config.get("parameters", {})
        private_name = parameters.get("custom_private_subnet_name")
        public_name = parameters.get("custom_public_subnet_name")
        custom_parameters: Dict[str, Any] = {
            "virtual_network_id": parameters.get("custom_virtual_network_id"),
            "private_subnet_name": private_name,
            "public_subnet_name": public_name,
            "no_public_ip": parameters.get("enable_no_public_ip", True),
        }
        group = config["resource_group_name"]
        for tier, subnet_name in (("private", private_name), ("public", public_name)):
            association = self._associations.get((group, subnet_name))
            if association:
                custom_parameters[f"{tier}_subnet_network_security_group_association_id"] = association
        return {
            "name": config["name"],
            "resource_group_name": config["resource_group_name"],
            "location": config["location"],
            "sku": config["sku"],
            # azurerm takes the managed group by name; the id's last segment is the name.
            "managed_resource_group_name": config["managed_resource_group_id"].rsplit("/", 1)[-1],
            "public_network_access_enabled": config["public_network_access"] == PublicNetworkAccess.ENABLED.value,
            "network_security_group_rules_required": config["required_nsg_rules"],
            "custom_parameters": custom_parameters,
            "tags": config.get("tags", {}),
        }


__all__: List[str] = ["TerraformProvider", "provider_alias", "reference", "terraform_label"]
