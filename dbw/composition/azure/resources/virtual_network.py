from __future__ import annotations

from dbw.composition.azure import helpers
from dbw.composition.resource_templates import (
    ResourceInstance,
    ResourceTemplate,
    TemplateContext,
)
from dbw.models import ResourceKind


def _build_virtual_network(ctx: TemplateContext) -> ResourceInstance:
    request = ctx.request
    group = ctx.require("resource_group")
    name = helpers.virtual_network_name(request.team_name, request.environment)
    vnet = ctx.declare(
        ResourceKind.VIRTUAL_NETWORK,
        "vnet",
        name,
        {
            "name": name,
            "resource_group_name": group["name"],
            "location": request.location,
            "address_prefixes": [request.network.spoke_cidr],
            "tags": dict(request.tags),
        },
        depends_on=[group["handle"]],
    )
    return ResourceInstance(
        handles=[vnet],
        shared_values={"network": {"handle": vnet, "id": vnet.id, "name": vnet.name}},
    )


def get_templates() -> list[ResourceTemplate]:
    return [
        ResourceTemplate(
            key="virtual_network",
            kind="spoke virtual network",
            provides=("network",),
            requires=("resource_group",),
            builder=_build_virtual_network,
        )
    ]
