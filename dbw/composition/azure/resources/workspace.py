from __future__ import annotations

from dbw.composition.azure import helpers
from dbw.composition.resource_templates import (
    ResourceInstance,
    ResourceTemplate,
    TemplateContext,
)
from dbw.models import PublicNetworkAccess, RequiredNsgRules, ResourceKind


def _build_workspace(ctx: TemplateContext) -> ResourceInstance:
    request = ctx.request
    group = ctx.require("resource_group")
    network = ctx.require("network")
    subnets = ctx.require("subnets")
    public_access = request.enable_public_access

    managed_group = helpers.managed_resource_group_name(request.team_name, request.environment)
    # The service creates and owns the managed group; only its id is computed here.
    managed_group_id = helpers.resource_group_id(request.subscription_id, managed_group)
    name = helpers.workspace_name(request.team_name, request.environment)

    workspace = ctx.declare(
        ResourceKind.DATABRICKS_WORKSPACE,
        "workspace",
        name,
        {
            "name": name,
            "resource_group_name": group["name"],
            "location": request.location,
            "managed_resource_group_id": managed_group_id,
            "sku": request.sku_tier,
            "public_network_access": (
                PublicNetworkAccess.ENABLED if public_access else PublicNetworkAccess.DISABLED
            ).value,
            "required_nsg_rules": (
                RequiredNsgRules.ALL_RULES if public_access else RequiredNsgRules.NO_RULES
            ).value,
            "parameters": {
                "custom_virtual_network_id": network["id"],
                "custom_private_subnet_name": helpers.PRIVATE_SUBNET_NAME,
                "custom_public_subnet_name": helpers.PUBLIC_SUBNET_NAME,
                "enable_no_public_ip": not public_access,
            },
            "tags": dict(request.tags),
        },
        depends_on=[subnets["private"], subnets["public"]],
    )
    return ResourceInstance(
        handles=[workspace],
        shared_values={
            "workspace": {
                "handle": workspace,
                "managed_resource_group_name": managed_group,
            }
        },
    )


def get_templates() -> list[ResourceTemplate]:
    return [
        ResourceTemplate(
            key="databricks_workspace",
            kind="databricks workspace",
            provides=("workspace",),
            requires=("resource_group", "network", "subnets"),
            builder=_build_workspace,
        )
    ]
