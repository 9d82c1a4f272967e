from __future__ import annotations

from dbw.composition.azure import helpers
from dbw.composition.resource_templates import (
    ResourceInstance,
    ResourceTemplate,
    TemplateContext,
)
from dbw.models import ResourceKind


def _build_resource_group(ctx: TemplateContext) -> ResourceInstance:
    request = ctx.request
    name = helpers.resource_group_name(request.team_name, request.environment)
    group = ctx.declare(
        ResourceKind.RESOURCE_GROUP,
        "rg",
        name,
        {
            "name": name,
            "location": request.location,
            "tags": dict(request.tags),
        },
    )
    return ResourceInstance(
        handles=[group],
        shared_values={"resource_group": {"handle": group, "name": group.name}},
    )


def get_templates() -> list[ResourceTemplate]:
    return [
        ResourceTemplate(
            key="resource_group",
            kind="resource group",
            provides=("resource_group",),
            builder=_build_resource_group,
        )
    ]
