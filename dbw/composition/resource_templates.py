"""
Generic resource template plumbing for workspace composition.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from dbw.composition.providers.base import (
    ResourceDeclaration,
    ResourceHandle,
    ResourceProvider,
)
from dbw.models import ResolvedRequest, ResourceKind

LOGGER = logging.getLogger(__name__)


@dataclass
class TemplateContext:
    """
    Shared state passed to each resource template builder.

    - name: logical name of the composition; prefixes every logical resource name.
    - request: validated request with defaults applied.
    - provider: where declarations are registered.
    - shared: capability map populated by previously realised templates.
    """

    name: str
    request: ResolvedRequest
    provider: ResourceProvider
    shared: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def require(self, capability: str) -> Dict[str, Any]:
        values = self.shared.get(capability)
        if not values:
            raise RuntimeError(f"{capability} capability missing for template.")
        return values

    def declare(
        self,
        kind: ResourceKind,
        suffix: str,
        physical_name: str,
        config: Dict[str, Any],
        depends_on: Optional[Sequence[ResourceHandle]] = None,
    ) -> ResourceHandle:
        declaration = ResourceDeclaration(
            kind=kind,
            logical_name=f"{self.name}-{suffix}",
            physical_name=physical_name,
            subscription_id=self.request.subscription_id,
            config=config,
            depends_on=list(depends_on or ()),
            owner=self.name,
        )
        LOGGER.debug("Declaring %s %s (%s)", kind.value, declaration.logical_name, physical_name)
        return self.provider.register(declaration)


@dataclass
class ResourceInstance:
    """
    Concrete output of a resource template.

    - handles: resources declared by this template.
    - shared_values: capability payloads exposed for downstream templates.
    """

    handles: List[ResourceHandle]
    shared_values: Dict[str, Dict[str, Any]] = field(default_factory=dict)


BuilderFn = Callable[[TemplateContext], ResourceInstance]


@dataclass(frozen=True)
class ResourceTemplate:
    """
    Declarative description of one building block of the workspace.

    - key: unique identifier.
    - kind: natural language description used in logs and plans.
    - provides: capabilities offered to downstream templates (e.g., "network").
    - requires: capabilities that must already exist before instantiation.
    - builder: callback that declares resources and publishes shared state.
    """

    key: str
    kind: str
    provides: Tuple[str, ...]
    builder: BuilderFn
    requires: Tuple[str, ...] = ()
