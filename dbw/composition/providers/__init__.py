"""
Resource provider backends, looked up by name.

- ``memory``: in-process stand-in for the orchestration engine.
- ``terraform``: renders the declared graph as Terraform JSON.
"""

from __future__ import annotations

from typing import Any, Dict, List, Type

from dbw.composition.providers.base import (
    ResourceDeclaration,
    ResourceHandle,
    ResourceProvider,
)
from dbw.composition.providers.memory import InMemoryProvider
from dbw.composition.providers.terraform import TerraformProvider

PROVIDERS: Dict[str, Type[ResourceProvider]] = {
    "memory": InMemoryProvider,
    "terraform": TerraformProvider,
}


def get_provider(name: str, **kwargs: Any) -> ResourceProvider:
    try:
        provider_cls = PROVIDERS[name]
    except KeyError:
        raise ValueError(
            f"Unknown provider '{name}'; expected one of {', '.join(sorted(PROVIDERS))}."
        ) from None
    return provider_cls(**kwargs)


def get_all_providers() -> List[str]:
    return list(PROVIDERS.keys())


__all__ = [
    "InMemoryProvider",
    "PROVIDERS",
    "ResourceDeclaration",
    "ResourceHandle",
    "ResourceProvider",
    "TerraformProvider",
    "get_all_providers",
    "get_provider",
]
