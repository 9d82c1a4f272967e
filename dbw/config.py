"""
YAML-based configuration of workspace requests.

Structure:

    settings:
      provider: memory        # or terraform
      output: main.tf.json    # where `render` writes Terraform JSON
      log_level: INFO
    workspaces:
      analytics:              # composition name
        team_name: data-science
        location: westeurope
        subscription_id: sub-123
        spoke_cidr: 10.1.0.0/16
        hubVnetId: /subscriptions/.../virtualNetworks/vnet-hub   # camelCase also accepted
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from dbw.composition.providers import get_all_providers
from dbw.errors import ConfigError, InvalidArgument
from dbw.models import WorkspaceRequest

CONFIG_ENV_VAR = "DBW_CONFIG"
DEFAULT_FILENAME = "workspaces.yaml"


@dataclass
class SettingsConfig:
    """Global settings."""
    provider: str = "memory"
    output: str = "main.tf.json"
    log_level: str = "INFO"


@dataclass
class WorkspaceConfig:
    """
    Parsed configuration file.

    ``workspaces`` keeps the file order so compositions are declared in the
    order they were written.
    """
    settings: SettingsConfig = field(default_factory=SettingsConfig)
    workspaces: Dict[str, WorkspaceRequest] = field(default_factory=dict)

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> WorkspaceConfig:
        """Load configuration from YAML file."""
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as err:
                raise ConfigError(f"Invalid YAML in {path}: {err}") from err

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Any) -> WorkspaceConfig:
        if not isinstance(data, dict):
            raise ConfigError("Top-level configuration must be a mapping.")

        settings_data = data.get("settings") or {}
        if not isinstance(settings_data, dict):
            raise ConfigError("'settings' must be a mapping.")
        settings = SettingsConfig(
            provider=str(settings_data.get("provider", "memory")),
            output=str(settings_data.get("output", "main.tf.json")),
            log_level=str(settings_data.get("log_level", "INFO")).upper(),
        )
        if settings.provider not in get_all_providers():
            raise ConfigError(
                f"Unknown provider '{settings.provider}'; expected one of {', '.join(get_all_providers())}."
            )

        workspaces_data = data.get("workspaces") or {}
        if not isinstance(workspaces_data, dict):
            raise ConfigError("'workspaces' must be a mapping of name -> options.")
        workspaces: Dict[str, WorkspaceRequest] = {}
        for name, options in workspaces_data.items():
            if not isinstance(options, dict):
                raise ConfigError(f"Workspace '{name}' must be a mapping of options.")
            try:
                workspaces[str(name)] = WorkspaceRequest.from_dict(options)
            except InvalidArgument as err:
                raise ConfigError(f"Workspace '{name}': {err}") from err

        return cls(settings=settings, workspaces=workspaces)

    # =============================================================================
    # Query Methods
    # =============================================================================

    def get_workspace_names(self) -> List[str]:
        return list(self.workspaces.keys())

    def get_workspace(self, name: str) -> WorkspaceRequest:
        if name not in self.workspaces:
            raise ConfigError(
                f"No workspace named '{name}'; configured: {', '.join(self.workspaces) or 'none'}."
            )
        return self.workspaces[name]


# Global configuration instance
_config: Optional[WorkspaceConfig] = None


def get_config(config_path: Optional[str | Path] = None) -> WorkspaceConfig:
    """
    Get the global configuration.

    Args:
        config_path: Path to YAML config file. If None, uses default locations:
                    1. DBW_CONFIG environment variable
                    2. ./workspaces.yaml (current directory)
                    3. ~/.dbw/workspaces.yaml (home directory)
    """
    global _config

    if _config is not None and config_path is None:
        return _config

    if config_path is None:
        env_path = os.getenv(CONFIG_ENV_VAR)
        if env_path:
            config_path = Path(env_path)
        else:
            candidates = [
                Path.cwd() / DEFAULT_FILENAME,
                Path.home() / ".dbw" / DEFAULT_FILENAME,
            ]
            for candidate in candidates:
                if candidate.exists():
                    config_path = candidate
                    break

    if config_path is None:
        raise FileNotFoundError(
            f"No config file found. Create {DEFAULT_FILENAME} or set {CONFIG_ENV_VAR} environment variable."
        )

    _config = WorkspaceConfig.from_yaml(config_path)
    return _config


def reset_config() -> None:
    """Reset the global configuration cache."""
    global _config
    _config = None


def set_config(config: WorkspaceConfig) -> None:
    """Set a custom configuration."""
    global _config
    _config = config
