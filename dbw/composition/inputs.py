"""
Request validation, defaults and compliance tagging.

Everything here runs before the first resource is declared, so malformed input
never leaves a half-declared graph behind.
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

from dbw.composition.azure import helpers
from dbw.errors import InvalidArgument
from dbw.models import ResolvedRequest, WorkspaceRequest

LOGGER = logging.getLogger(__name__)

DEFAULT_SKU_TIER = "premium"
DEFAULT_PUBLIC_ACCESS = False
DEFAULT_ENVIRONMENT = "dev"
DEFAULT_COST_CENTER = "unassigned"
DEFAULT_MANAGED_BY = "pulumi"

REQUIRED_FIELDS = ("team_name", "location", "subscription_id", "spoke_cidr")
OPTIONAL_TEXT_FIELDS = ("hub_vnet_id", "sku_tier", "environment", "cost_center", "data_classification")


def validate_request(request: WorkspaceRequest) -> None:
    """Raise InvalidArgument for missing, blank or mistyped fields."""
    for name in REQUIRED_FIELDS:
        value = getattr(request, name)
        if not isinstance(value, str) or not value.strip():
            raise InvalidArgument(f"'{name}' is required and must be a non-empty string.")
    for name in OPTIONAL_TEXT_FIELDS:
        value = getattr(request, name)
        if value is not None and (not isinstance(value, str) or not value.strip()):
            raise InvalidArgument(f"'{name}' must be omitted or a non-empty string.")
    # Quoted YAML booleans ("false") are strings and would otherwise read as True.
    if request.enable_public_access is not None and not isinstance(request.enable_public_access, bool):
        raise InvalidArgument(
            f"'enable_public_access' must be true or false, got {request.enable_public_access!r}."
        )
    if not isinstance(request.tags, Mapping):
        raise InvalidArgument("'tags' must be a mapping of string to string.")


def compliance_tags(
    team: str,
    environment: str,
    cost_center: str,
    managed_by: str = DEFAULT_MANAGED_BY,
    data_classification: Optional[str] = None,
) -> Dict[str, str]:
    tags = {
        "team": team,
        "environment": environment,
        "cost-center": cost_center,
        "managed-by": managed_by,
        "component": helpers.COMPONENT,
    }
    if data_classification:
        tags["data-classification"] = data_classification
    return tags


def merge_tags(mandatory: Mapping[str, str], user_supplied: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """
    Return caller tags overlaid with the mandatory ones.

    Mandatory keys are written last, so they win on collision. Neither input
    is modified.
    """
    merged: Dict[str, str] = {}
    for key, value in (user_supplied or {}).items():
        merged[str(key)] = str(value)
    for key, value in mandatory.items():
        merged[key] = value
    return merged


def normalize_request(
    request: WorkspaceRequest, managed_by: str = DEFAULT_MANAGED_BY
) -> ResolvedRequest:
    """Validate ``request``, apply defaults and plan the network."""
    validate_request(request)
    team = request.team_name.strip()
    environment = (request.environment or DEFAULT_ENVIRONMENT).strip()
    cost_center = (request.cost_center or DEFAULT_COST_CENTER).strip()
    data_classification = request.data_classification.strip() if request.data_classification else None
    enable_public_access = (
        DEFAULT_PUBLIC_ACCESS if request.enable_public_access is None else request.enable_public_access
    )
    network = helpers.plan_subnets(request.spoke_cidr.strip())

    mandatory = compliance_tags(
        team,
        environment,
        cost_center,
        managed_by=managed_by,
        data_classification=data_classification,
    )
    user_tags = request.tags or {}
    tags = merge_tags(mandatory, user_tags)
    overridden = sorted(
        key for key, value in user_tags.items() if key in mandatory and str(value) != mandatory[key]
    )
    if overridden:
        LOGGER.debug("Compliance tags replaced caller values for: %s", ", ".join(overridden))

    return ResolvedRequest(
        team_name=team,
        location=request.location.strip(),
        subscription_id=request.subscription_id.strip(),
        spoke_cidr=network.spoke_cidr,
        hub_vnet_id=request.hub_vnet_id.strip() if request.hub_vnet_id else None,
        sku_tier=request.sku_tier or DEFAULT_SKU_TIER,
        enable_public_access=enable_public_access,
        environment=environment,
        cost_center=cost_center,
        data_classification=data_classification,
        tags=tags,
        network=network,
    )
