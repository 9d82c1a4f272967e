"""
Pytest configuration and shared fixtures for all tests.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the repo root is on `sys.path` so top-level imports work.
repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from dbw.composition.providers import InMemoryProvider
from dbw.config import reset_config
from dbw.models import WorkspaceRequest

HUB_VNET_ID = (
    "/subscriptions/hub-sub/resourceGroups/rg-hub/providers/"
    "Microsoft.Network/virtualNetworks/vnet-hub"
)


@pytest.fixture(autouse=True)
def cleanup_config():
    """
    Automatically reset the cached YAML configuration after each test.
    """
    yield
    reset_config()


@pytest.fixture
def request_factory():
    """
    Build WorkspaceRequest objects from the canonical example.

    Usage:
        def test_something(request_factory):
            req = request_factory(environment="prod")
    """

    def _make(**overrides) -> WorkspaceRequest:
        values = {
            "team_name": "data-science",
            "location": "westeurope",
            "subscription_id": "sub-123",
            "spoke_cidr": "10.1.0.0/16",
        }
        values.update(overrides)
        return WorkspaceRequest(**values)

    return _make


@pytest.fixture
def sample_request(request_factory) -> WorkspaceRequest:
    return request_factory()


@pytest.fixture
def hub_vnet_id() -> str:
    return HUB_VNET_ID


@pytest.fixture
def memory_provider() -> InMemoryProvider:
    return InMemoryProvider()
