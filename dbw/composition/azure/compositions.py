from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from dbw.models import ResolvedRequest


@dataclass(frozen=True)
class CompositionFamily:
    """
    Which resource templates make up a composition.

    - name: descriptive label for logs and plans.
    - mandatory: templates that are always realised.
    - peering: template realised only when the request names a hub network.
    """

    name: str
    mandatory: Tuple[str, ...]
    peering: Tuple[str, ...] = ()

    def pick_templates(self, request: ResolvedRequest) -> List[str]:
        selection: List[str] = list(self.mandatory)
        if request.hub_vnet_id:
            selection.extend(self.peering)
        return selection


WORKSPACE_FAMILY = CompositionFamily(
    name="isolated_workspace",
    mandatory=(
        "resource_group",
        "virtual_network",
        "network_security_groups",
        "delegated_subnets",
        "databricks_workspace",
    ),
    peering=("hub_peering",),
)
