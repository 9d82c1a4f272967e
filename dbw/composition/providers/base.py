"""
Provider contract: declare a resource, receive a handle whose values resolve later.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List

from dbw.composition.deferred import Deferred
from dbw.models import ResourceKind


@dataclass
class ResourceDeclaration:
    """
    One node of the resource graph.

    - kind: which managed resource this is.
    - logical_name: unique within a composition (e.g. "analytics-vnet").
    - physical_name: the name the cloud resource will carry.
    - config: provider-neutral settings; values may be ``Deferred``.
    - depends_on: handles that must exist before this resource is created.
    - owner: the composition that declared it.
    """

    kind: ResourceKind
    logical_name: str
    physical_name: str
    subscription_id: str
    config: Dict[str, Any] = field(default_factory=dict)
    depends_on: List["ResourceHandle"] = field(default_factory=list)
    owner: str = ""


class ResourceHandle:
    """Declared resource plus the deferred state its provider reports back."""

    def __init__(self, declaration: ResourceDeclaration) -> None:
        self.declaration = declaration
        self.state: Deferred[Dict[str, Any]] = Deferred()

    @property
    def kind(self) -> ResourceKind:
        return self.declaration.kind

    @property
    def logical_name(self) -> str:
        return self.declaration.logical_name

    @property
    def id(self) -> Deferred[str]:
        return self.output("id")

    @property
    def name(self) -> Deferred[str]:
        return self.output("name")

    def output(self, key: str) -> Deferred[Any]:
        def _lookup(state: Dict[str, Any]) -> Any:
            if key not in state:
                raise KeyError(f"{self.logical_name} exposes no attribute '{key}'.")
            return state[key]

        return self.state.apply(_lookup)

    def __repr__(self) -> str:
        return f"<ResourceHandle {self.kind.value} {self.logical_name}>"


class ResourceProvider(ABC):
    """
    Opaque capability that turns declarations into managed resources.

    ``platform`` names the orchestration platform and is written into the
    ``managed-by`` compliance tag.
    """

    platform: str = "unknown"

    @abstractmethod
    def register(self, declaration: ResourceDeclaration) -> ResourceHandle:
        """Accept a declaration and return its handle without blocking."""
