"""Exception types raised while composing a workspace."""

from __future__ import annotations


class InvalidArgument(ValueError):
    """Malformed or missing input, raised before any resource is declared."""


class ProvisionFailed(RuntimeError):
    """
    The resource provider rejected a declared resource.

    Carries the logical name of the rejected declaration so callers can tell
    which part of the graph failed.
    """

    def __init__(self, message: str, resource: str | None = None) -> None:
        super().__init__(message)
        self.resource = resource


class ConfigError(ValueError):
    """The YAML configuration is structurally invalid."""
