"""
YAML configuration loading.
"""

import textwrap

import pytest

from dbw.config import (
    CONFIG_ENV_VAR,
    SettingsConfig,
    WorkspaceConfig,
    get_config,
    reset_config,
    set_config,
)
from dbw.errors import ConfigError
from dbw.models import WorkspaceRequest

SAMPLE = textwrap.dedent(
    """
    settings:
      provider: terraform
      output: build/main.tf.json
      log_level: debug
    workspaces:
      analytics:
        teamName: data-science
        location: westeurope
        subscriptionId: sub-123
        spokeCidr: 10.1.0.0/16
        tags:
          owner: alice
      marketing:
        team_name: marketing
        location: northeurope
        subscription_id: sub-456
        spoke_cidr: 10.2.0.0/16
        enable_public_access: true
    """
)


def write_config(tmp_path, text=SAMPLE, name="workspaces.yaml"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestLoading:
    def test_settings(self, tmp_path):
        config = WorkspaceConfig.from_yaml(write_config(tmp_path))
        assert config.settings == SettingsConfig(
            provider="terraform", output="build/main.tf.json", log_level="DEBUG"
        )

    def test_workspaces_keep_file_order(self, tmp_path):
        config = WorkspaceConfig.from_yaml(write_config(tmp_path))
        assert config.get_workspace_names() == ["analytics", "marketing"]

    def test_camel_and_snake_case_options(self, tmp_path):
        config = WorkspaceConfig.from_yaml(write_config(tmp_path))
        assert config.get_workspace("analytics") == WorkspaceRequest(
            team_name="data-science",
            location="westeurope",
            subscription_id="sub-123",
            spoke_cidr="10.1.0.0/16",
            tags={"owner": "alice"},
        )
        assert config.get_workspace("marketing").enable_public_access is True

    def test_defaults_for_empty_settings(self, tmp_path):
        config = WorkspaceConfig.from_yaml(write_config(tmp_path, "workspaces: {}\n"))
        assert config.settings == SettingsConfig()
        assert config.get_workspace_names() == []


class TestErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            WorkspaceConfig.from_yaml(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            WorkspaceConfig.from_yaml(write_config(tmp_path, "workspaces: [unclosed\n"))

    def test_unknown_provider(self, tmp_path):
        with pytest.raises(ConfigError, match="Unknown provider"):
            WorkspaceConfig.from_yaml(write_config(tmp_path, "settings:\n  provider: bicep\n"))

    def test_unknown_option(self, tmp_path):
        text = textwrap.dedent(
            """
            workspaces:
              analytics:
                team_name: a
                location: b
                subscription_id: c
                spoke_cidr: 10.0.0.0/16
                region: nowhere
            """
        )
        with pytest.raises(ConfigError, match="Workspace 'analytics'.*region"):
            WorkspaceConfig.from_yaml(write_config(tmp_path, text))

    def test_missing_required_option(self, tmp_path):
        text = "workspaces:\n  analytics:\n    team_name: a\n"
        with pytest.raises(ConfigError, match="location"):
            WorkspaceConfig.from_yaml(write_config(tmp_path, text))

    def test_non_mapping_workspace(self, tmp_path):
        with pytest.raises(ConfigError, match="mapping"):
            WorkspaceConfig.from_yaml(write_config(tmp_path, "workspaces:\n  analytics: yes\n"))

    def test_unknown_workspace_name(self, tmp_path):
        config = WorkspaceConfig.from_yaml(write_config(tmp_path))
        with pytest.raises(ConfigError, match="No workspace named 'finance'"):
            config.get_workspace("finance")


class TestGlobalConfig:
    def test_env_var_lookup(self, tmp_path, monkeypatch):
        path = write_config(tmp_path, name="custom.yaml")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert get_config().settings.provider == "terraform"

    def test_current_directory_lookup(self, tmp_path, monkeypatch):
        write_config(tmp_path)
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        monkeypatch.chdir(tmp_path)
        assert get_config().get_workspace_names() == ["analytics", "marketing"]

    def test_no_config_found(self, tmp_path, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        with pytest.raises(FileNotFoundError, match="No config file found"):
            get_config()

    def test_cached_until_reset(self, tmp_path):
        first = get_config(write_config(tmp_path))
        assert get_config() is first
        reset_config()
        set_config(WorkspaceConfig())
        assert get_config().get_workspace_names() == []
