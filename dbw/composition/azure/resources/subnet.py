from __future__ import annotations

from dbw.composition.azure import helpers
from dbw.composition.resource_templates import (
    ResourceInstance,
    ResourceTemplate,
    TemplateContext,
)
from dbw.models import ResourceKind


def _subnet_config(ctx: TemplateContext, name: str, cidr: str, security_group) -> dict:
    return {
        "name": name,
        "resource_group_name": ctx.require("resource_group")["name"],
        "virtual_network_name": ctx.require("network")["name"],
        "address_prefix": cidr,
        "network_security_group_id": security_group.id,
        "delegations": [
            {"name": helpers.DELEGATION_NAME, "service_name": helpers.DELEGATION_SERVICE},
        ],
    }


def _build_subnets(ctx: TemplateContext) -> ResourceInstance:
    network = ctx.require("network")
    groups = ctx.require("security_groups")
    plan = ctx.request.network

    private = ctx.declare(
        ResourceKind.SUBNET,
        "private-subnet",
        helpers.PRIVATE_SUBNET_NAME,
        _subnet_config(ctx, helpers.PRIVATE_SUBNET_NAME, plan.private_subnet_cidr, groups["private"]),
        depends_on=[network["handle"], groups["private"]],
    )
    # Chained after the private subnet to keep creation order deterministic.
    public = ctx.declare(
        ResourceKind.SUBNET,
        "public-subnet",
        helpers.PUBLIC_SUBNET_NAME,
        _subnet_config(ctx, helpers.PUBLIC_SUBNET_NAME, plan.public_subnet_cidr, groups["public"]),
        depends_on=[network["handle"], groups["public"], private],
    )
    return ResourceInstance(
        handles=[private, public],
        shared_values={"subnets": {"private": private, "public": public}},
    )


def get_templates() -> list[ResourceTemplate]:
    return [
        ResourceTemplate(
            key="delegated_subnets",
            kind="delegated subnets",
            provides=("subnets",),
            requires=("resource_group", "network", "security_groups"),
            builder=_build_subnets,
        )
    ]
