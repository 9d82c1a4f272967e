#!/usr/bin/env python3
"""
Workspace composition CLI.

Usage:
    # Compose every configured workspace against settings.provider and
    # print the declared graph plus the resolved outputs
    dbw plan -c workspaces.yaml

    # Render one workspace as Terraform JSON
    dbw render -c workspaces.yaml -w analytics -o build/main.tf.json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Dict, List, Optional, Sequence

from dbw.composition.component import WorkspaceComposer
from dbw.composition.providers import TerraformProvider, get_provider
from dbw.config import WorkspaceConfig, get_config
from dbw.errors import ConfigError, InvalidArgument, ProvisionFailed
from dbw.models import WorkspaceOutputs

LOGGER = logging.getLogger("dbw")


def _selected(config: WorkspaceConfig, names: Optional[List[str]]) -> List[str]:
    if not names:
        return config.get_workspace_names()
    for name in names:
        config.get_workspace(name)
    return names


def run_plan(config: WorkspaceConfig, names: Optional[List[str]]) -> Dict[str, dict]:
    """Compose against ``settings.provider``; raises on rejection."""
    composer = WorkspaceComposer(provider=get_provider(config.settings.provider))
    report: Dict[str, dict] = {}
    for name in _selected(config, names):
        composition = composer.compose(name, config.get_workspace(name))
        report[name] = {
            "resources": composition.plan(),
            "outputs": composition.result().to_dict(),
        }
    return report


def run_render(config: WorkspaceConfig, names: Optional[List[str]], output: str) -> str:
    provider = TerraformProvider()
    composer = WorkspaceComposer(provider=provider)
    outputs: Dict[str, WorkspaceOutputs] = {}
    for name in _selected(config, names):
        outputs[name] = composer.compose(name, config.get_workspace(name)).result()
    return str(provider.write(output, outputs))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbw",
        description="Compose network-isolated Databricks workspaces",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dbw plan -c workspaces.yaml
  dbw plan -c workspaces.yaml -w analytics
  dbw render -c workspaces.yaml -o build/main.tf.json
        """,
    )
    parser.add_argument(
        "--log-level",
        help="Override settings.log_level (DEBUG, INFO, WARNING, ...)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for command, help_text in (
        ("plan", "Compose against settings.provider and print the graph and outputs"),
        ("render", "Compose against the Terraform provider and write Terraform JSON"),
    ):
        sub = subparsers.add_parser(command, help=help_text)
        sub.add_argument(
            "-c", "--config",
            help="Path to the YAML configuration (default: $DBW_CONFIG or ./workspaces.yaml)",
        )
        sub.add_argument(
            "-w", "--workspace",
            action="append",
            help="Composition name to process; repeatable (default: all)",
        )
        if command == "render":
            sub.add_argument("-o", "--output", help="Output path (default: settings.output)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = get_config(args.config)
    except (FileNotFoundError, ConfigError) as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=(args.log_level or config.settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "plan":
            print(json.dumps(run_plan(config, args.workspace), indent=2))
        else:
            path = run_render(config, args.workspace, args.output or config.settings.output)
            print(path)
    except (InvalidArgument, ConfigError) as err:
        LOGGER.error("Invalid input: %s", err)
        return 1
    except ProvisionFailed as err:
        LOGGER.error("Provisioning failed for %s: %s", err.resource or "composition", err)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
