"""
Workspace composer: realises resource templates into a declared graph.

The composer discovers templates under ``dbw.composition.azure.resources``,
orders them by the capabilities they provide and require, and hands each one a
``TemplateContext``. The last step bundles the deferred identifiers into a
single ``WorkspaceOutputs`` value.
"""

from __future__ import annotations

import importlib
import logging
import pkgutil
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from dbw.composition import inputs
from dbw.composition.azure import compositions
from dbw.composition.deferred import Deferred
from dbw.composition.providers import InMemoryProvider
from dbw.composition.providers.base import ResourceHandle, ResourceProvider
from dbw.composition.resource_templates import (
    ResourceInstance,
    ResourceTemplate,
    TemplateContext,
)
from dbw.errors import InvalidArgument
from dbw.models import NetworkConfig, ResolvedRequest, WorkspaceOutputs, WorkspaceRequest

LOGGER = logging.getLogger(__name__)

RESOURCE_PACKAGE = "dbw.composition.azure.resources"

# Module-level cache to avoid repeated package scans
_TEMPLATE_CACHE: Optional[Dict[str, ResourceTemplate]] = None
_CAPABILITY_CACHE: Optional[Dict[str, List[str]]] = None


@dataclass
class Composition:
    """
    Everything one composition declared.

    - resources: handles per template key, in realisation order.
    - outputs: resolves once the workspace, resource group, network and both
      subnets have provider-assigned identifiers.
    """

    name: str
    request: ResolvedRequest
    family: str
    order: List[str]
    resources: Dict[str, List[ResourceHandle]]
    outputs: Deferred[WorkspaceOutputs]

    @property
    def handles(self) -> List[ResourceHandle]:
        return [handle for key in self.order for handle in self.resources.get(key, [])]

    def find(self, logical_name: str) -> Optional[ResourceHandle]:
        for handle in self.handles:
            if handle.logical_name == logical_name:
                return handle
        return None

    def result(self, timeout: Optional[float] = None) -> WorkspaceOutputs:
        """Return the outputs bundle, raising ProvisionFailed if the provider rejected anything."""
        return self.outputs.result(timeout)

    def plan(self) -> List[Dict[str, Any]]:
        """Static view of the declared graph in creation order."""
        entries = []
        for handle in self.handles:
            declaration = handle.declaration
            entries.append(
                {
                    "kind": declaration.kind.value,
                    "logicalName": declaration.logical_name,
                    "name": declaration.physical_name,
                    "dependsOn": [dep.logical_name for dep in declaration.depends_on],
                }
            )
        return entries


class WorkspaceComposer:
    """
    Builds workspace compositions from resource templates.
    """

    def __init__(
        self,
        provider: Optional[ResourceProvider] = None,
        family: compositions.CompositionFamily = compositions.WORKSPACE_FAMILY,
    ) -> None:
        self.provider = provider or InMemoryProvider()
        self.family = family
        self._templates: Optional[Dict[str, ResourceTemplate]] = None
        self._capability_map: Optional[Dict[str, List[str]]] = None

    @property
    def templates(self) -> Dict[str, ResourceTemplate]:
        """Lazy-loaded templates with module-level caching."""
        if self._templates is None:
            global _TEMPLATE_CACHE
            if _TEMPLATE_CACHE is None:
                _TEMPLATE_CACHE = _load_templates()
            self._templates = _TEMPLATE_CACHE
        return self._templates

    @property
    def capability_map(self) -> Dict[str, List[str]]:
        """Lazy-loaded capability map with module-level caching."""
        if self._capability_map is None:
            global _CAPABILITY_CACHE
            if _CAPABILITY_CACHE is None:
                _CAPABILITY_CACHE = _build_capability_map(self.templates)
            self._capability_map = _CAPABILITY_CACHE
        return self._capability_map

    def compose(self, name: str, request: WorkspaceRequest) -> Composition:
        """
        Validate ``request`` and declare its resource graph.

        Raises InvalidArgument before anything is declared when the request is
        malformed. Provider rejections surface through ``Composition.outputs``.
        """
        if not name or not name.strip():
            raise InvalidArgument("Composition name must be a non-empty string.")
        resolved = inputs.normalize_request(request, managed_by=self.provider.platform)
        selected = self._select_templates(resolved)
        order = self._topological_order(selected)
        LOGGER.info(
            "Composing %s (%s) for team=%s environment=%s: %s",
            name,
            self.family.name,
            resolved.team_name,
            resolved.environment,
            " -> ".join(order),
        )
        resources, shared = self._realise_templates(name, resolved, order)
        return Composition(
            name=name,
            request=resolved,
            family=self.family.name,
            order=order,
            resources=resources,
            outputs=aggregate_outputs(shared),
        )

    # ------------------------------------------------------------------ #
    # Selection + ordering
    # ------------------------------------------------------------------ #

    def _select_templates(self, request: ResolvedRequest) -> List[str]:
        selected: List[str] = []
        for key in self.family.pick_templates(request):
            self._include_with_dependencies(key, selected)
        return selected

    def _include_with_dependencies(self, key: str, selected: List[str]) -> None:
        if key in selected:
            return
        if key not in self.templates:
            raise RuntimeError(f"Unknown resource template '{key}'.")
        for capability in self.templates[key].requires:
            provider_key = self._select_capability_provider(capability, selected)
            self._include_with_dependencies(provider_key, selected)
        selected.append(key)

    def _select_capability_provider(self, capability: str, selected: List[str]) -> str:
        providers = self.capability_map.get(capability, [])
        if not providers:
            raise RuntimeError(f"No templates provide required capability '{capability}'.")
        chosen = [provider for provider in providers if provider in selected]
        if chosen:
            return chosen[0]
        return providers[0]

    def _topological_order(self, selected: List[str]) -> List[str]:
        adjacency: Dict[str, List[str]] = {key: [] for key in selected}
        indegree: Dict[str, int] = {key: 0 for key in selected}
        for key in selected:
            for capability in self.templates[key].requires:
                provider = self._select_capability_provider(capability, selected)
                adjacency[provider].append(key)
                indegree[key] += 1
        ready = [key for key in selected if indegree[key] == 0]
        order: List[str] = []
        while ready:
            node = ready.pop(0)
            order.append(node)
            for neighbor in adjacency[node]:
                indegree[neighbor] -= 1
                if indegree[neighbor] == 0:
                    ready.append(neighbor)
        if len(order) != len(selected):
            raise RuntimeError("Cycle detected while ordering resource templates.")
        return order

    # ------------------------------------------------------------------ #
    # Instantiation
    # ------------------------------------------------------------------ #

    def _realise_templates(
        self, name: str, request: ResolvedRequest, order: List[str]
    ):
        shared_state: Dict[str, Dict[str, Any]] = {}
        resources: Dict[str, List[ResourceHandle]] = {}
        for key in order:
            template = self.templates[key]
            ctx = TemplateContext(
                name=name,
                request=request,
                provider=self.provider,
                shared=shared_state,
            )
            instance: ResourceInstance = template.builder(ctx)
            resources[key] = list(instance.handles)
            for capability in template.provides:
                shared_state[capability] = instance.shared_values.get(capability, {})
        return resources, shared_state


def aggregate_outputs(shared: Dict[str, Dict[str, Any]]) -> Deferred[WorkspaceOutputs]:
    """Bundle the deferred identifiers of a realised composition."""
    workspace = shared["workspace"]
    handle: ResourceHandle = workspace["handle"]
    group: ResourceHandle = shared["resource_group"]["handle"]
    network: ResourceHandle = shared["network"]["handle"]
    subnets = shared["subnets"]
    managed_group_name = workspace["managed_resource_group_name"]

    gate = [
        handle.output("workspace_url"),
        handle.output("workspace_id"),
        handle.name,
        group.name,
        network.id,
        subnets["private"].id,
        subnets["public"].id,
    ]
    # The peering exports nothing, but its rejection must still fail the bundle.
    if "peering" in shared:
        gate.append(shared["peering"]["handle"].id)
    values = Deferred.all(gate)

    def _bundle(resolved: List[Any]) -> WorkspaceOutputs:
        url, workspace_id, workspace_name, group_name, vnet_id, private_id, public_id = resolved[:7]
        return WorkspaceOutputs(
            workspace_url=url,
            workspace_id=workspace_id,
            workspace_name=workspace_name,
            resource_group_name=group_name,
            managed_resource_group_name=managed_group_name,
            network_config=NetworkConfig(
                vnet_id=vnet_id,
                private_subnet_id=private_id,
                public_subnet_id=public_id,
            ),
        )

    return values.apply(_bundle)


def compose_workspace(
    name: str, request: WorkspaceRequest, provider: Optional[ResourceProvider] = None
) -> Composition:
    """Compose one workspace against ``provider`` (in-memory when omitted)."""
    return WorkspaceComposer(provider=provider).compose(name, request)


# ---------------------------------------------------------------------- #
# Template discovery
# ---------------------------------------------------------------------- #


def _load_templates() -> Dict[str, ResourceTemplate]:
    templates: Dict[str, ResourceTemplate] = {}
    package = importlib.import_module(RESOURCE_PACKAGE)
    for _finder, name, ispkg in pkgutil.walk_packages(package.__path__, package.__name__ + "."):
        if ispkg:
            continue
        module = importlib.import_module(name)
        for template in getattr(module, "get_templates", lambda: [])() or []:
            if template.key in templates:
                raise RuntimeError(f"Duplicate template key detected: {template.key}")
            templates[template.key] = template
    return templates


def _build_capability_map(templates: Dict[str, ResourceTemplate]) -> Dict[str, List[str]]:
    capability_map: Dict[str, List[str]] = {}
    for key in sorted(templates):
        for capability in templates[key].provides:
            capability_map.setdefault(capability, []).append(key)
    return capability_map
