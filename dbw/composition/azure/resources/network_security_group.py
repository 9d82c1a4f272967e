from __future__ import annotations

from dbw.composition.azure import helpers
from dbw.composition.resource_templates import (
    ResourceInstance,
    ResourceTemplate,
    TemplateContext,
)
from dbw.models import ResourceKind

TIERS = ("private", "public")


def _build_security_groups(ctx: TemplateContext) -> ResourceInstance:
    request = ctx.request
    group = ctx.require("resource_group")
    handles = {}
    for tier in TIERS:
        name = helpers.security_group_name(tier, request.team_name, request.environment)
        # Rules are left to the workspace service and platform defaults.
        handles[tier] = ctx.declare(
            ResourceKind.NETWORK_SECURITY_GROUP,
            f"{tier}-nsg",
            name,
            {
                "name": name,
                "resource_group_name": group["name"],
                "location": request.location,
                "security_rules": [],
                "tags": dict(request.tags),
            },
            depends_on=[group["handle"]],
        )
    return ResourceInstance(
        handles=[handles[tier] for tier in TIERS],
        shared_values={"security_groups": handles},
    )


def get_templates() -> list[ResourceTemplate]:
    return [
        ResourceTemplate(
            key="network_security_groups",
            kind="network security groups",
            provides=("security_groups",),
            requires=("resource_group",),
            builder=_build_security_groups,
        )
    ]
