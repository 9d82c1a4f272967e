from __future__ import annotations

from dbw.composition.azure import helpers
from dbw.composition.resource_templates import (
    ResourceInstance,
    ResourceTemplate,
    TemplateContext,
)
from dbw.models import ResourceKind


def _build_peering(ctx: TemplateContext) -> ResourceInstance:
    hub_vnet_id = ctx.request.hub_vnet_id
    if not hub_vnet_id:
        raise RuntimeError("hub peering template requires a hub network id.")
    network = ctx.require("network")
    peering = ctx.declare(
        ResourceKind.VIRTUAL_NETWORK_PEERING,
        "spoke-to-hub",
        helpers.PEERING_NAME,
        {
            "name": helpers.PEERING_NAME,
            "resource_group_name": ctx.require("resource_group")["name"],
            "virtual_network_name": network["name"],
            "remote_virtual_network_id": hub_vnet_id,
            "allow_virtual_network_access": True,
            "allow_forwarded_traffic": True,
            # The spoke never routes through a hub-provided gateway.
            "allow_gateway_transit": False,
            "use_remote_gateways": False,
        },
        depends_on=[network["handle"]],
    )
    return ResourceInstance(
        handles=[peering],
        shared_values={"peering": {"handle": peering}},
    )


def get_templates() -> list[ResourceTemplate]:
    return [
        ResourceTemplate(
            key="hub_peering",
            kind="spoke to hub peering",
            provides=("peering",),
            requires=("resource_group", "network"),
            builder=_build_peering,
        )
    ]
