"""dbw: network-isolated Databricks workspace composition.

This package exposes a few subpackages:

- `dbw.composition`  (resource templates, deferred handles, providers)
- `dbw.config`       (YAML configuration of settings and workspace requests)
- `dbw.cli`          (plan/render entry points)
"""

from dbw.errors import ConfigError, InvalidArgument, ProvisionFailed
from dbw.models import NetworkConfig, NetworkPlan, WorkspaceOutputs, WorkspaceRequest

__all__ = [
    "ConfigError",
    "InvalidArgument",
    "NetworkConfig",
    "NetworkPlan",
    "ProvisionFailed",
    "WorkspaceOutputs",
    "WorkspaceRequest",
]
