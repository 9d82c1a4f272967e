"""
End-to-end composition against the in-memory provider.

Covers:
- The canonical data-science example and its exported outputs
- Optional hub peering
- Ordering and the static plan
- Idempotent re-composition and naming collisions
- Rejections before and after declaration
"""

import pytest

from dbw.composition import inputs
from dbw.composition.azure import compositions
from dbw.composition.component import WorkspaceComposer, compose_workspace
from dbw.composition.providers import InMemoryProvider
from dbw.errors import InvalidArgument, ProvisionFailed
from dbw.models import ResourceKind

RG_ID = "/subscriptions/sub-123/resourceGroups/rg-dbw-data-science-dev"
VNET_ID = RG_ID + "/providers/Microsoft.Network/virtualNetworks/vnet-dbw-data-science-dev"

MANDATORY_ORDER = [
    "resource_group",
    "virtual_network",
    "network_security_groups",
    "delegated_subnets",
    "databricks_workspace",
]


class RecordingProvider(InMemoryProvider):
    """In-memory provider that remembers every declaration it receives."""

    def __init__(self):
        super().__init__()
        self.declared = []

    def register(self, declaration):
        self.declared.append(declaration.logical_name)
        return super().register(declaration)


# ============================================================================
# 1. CANONICAL EXAMPLE
# ============================================================================

class TestCanonicalExample:
    def test_outputs(self, sample_request, memory_provider):
        outputs = compose_workspace("analytics", sample_request, memory_provider).result()
        assert outputs.workspace_name == "dbw-data-science-dev"
        assert outputs.resource_group_name == "rg-dbw-data-science-dev"
        assert outputs.managed_resource_group_name == "rg-dbw-managed-data-science-dev"
        assert outputs.network_config.vnet_id == VNET_ID
        assert outputs.network_config.private_subnet_id == VNET_ID + "/subnets/databricks-private"
        assert outputs.network_config.public_subnet_id == VNET_ID + "/subnets/databricks-public"
        assert outputs.workspace_url.startswith("adb-")
        assert outputs.workspace_url.endswith(".azuredatabricks.net")
        assert outputs.workspace_id.isdigit() and len(outputs.workspace_id) == 16

    def test_output_keys_are_stable(self, sample_request):
        data = compose_workspace("analytics", sample_request).result().to_dict()
        assert list(data) == [
            "workspaceUrl",
            "workspaceId",
            "workspaceName",
            "resourceGroupName",
            "managedResourceGroupName",
            "networkConfig",
        ]
        assert list(data["networkConfig"]) == ["vnetId", "privateSubnetId", "publicSubnetId"]

    def test_subnet_ranges(self, sample_request, memory_provider):
        compose_workspace("analytics", sample_request, memory_provider).result()
        prefixes = {
            resource.name: resource.config["address_prefix"]
            for resource in memory_provider.find(ResourceKind.SUBNET)
        }
        assert prefixes == {
            "databricks-private": "10.1.0.0/24",
            "databricks-public": "10.1.1.0/24",
        }

    def test_workspace_settings(self, sample_request, memory_provider):
        compose_workspace("analytics", sample_request, memory_provider).result()
        (workspace,) = memory_provider.find(ResourceKind.DATABRICKS_WORKSPACE)
        assert workspace.config["sku"] == "premium"
        assert workspace.config["public_network_access"] == "Disabled"
        assert workspace.config["required_nsg_rules"] == "NoAzureDatabricksRules"
        assert workspace.config["managed_resource_group_id"] == (
            "/subscriptions/sub-123/resourceGroups/rg-dbw-managed-data-science-dev"
        )
        assert workspace.config["parameters"]["custom_virtual_network_id"] == VNET_ID
        assert workspace.config["parameters"]["enable_no_public_ip"] is True

    def test_every_resource_is_tagged(self, sample_request, memory_provider):
        compose_workspace("analytics", sample_request, memory_provider).result()
        tagged = [r for r in memory_provider.resources.values() if "tags" in r.config]
        assert {r.kind for r in tagged} == {
            ResourceKind.RESOURCE_GROUP,
            ResourceKind.VIRTUAL_NETWORK,
            ResourceKind.NETWORK_SECURITY_GROUP,
            ResourceKind.DATABRICKS_WORKSPACE,
        }
        for resource in tagged:
            assert resource.config["tags"]["managed-by"] == "pulumi"
            assert resource.config["tags"]["component"] == "databricks-workspace"

    def test_public_access_toggle(self, request_factory, memory_provider):
        request = request_factory(enable_public_access=True)
        compose_workspace("analytics", request, memory_provider).result()
        (workspace,) = memory_provider.find(ResourceKind.DATABRICKS_WORKSPACE)
        assert workspace.config["public_network_access"] == "Enabled"
        assert workspace.config["required_nsg_rules"] == "AllRules"
        assert workspace.config["parameters"]["enable_no_public_ip"] is False


# ============================================================================
# 2. OPTIONAL PEERING
# ============================================================================

class TestPeering:
    def test_no_peering_without_hub(self, sample_request, memory_provider):
        composition = compose_workspace("analytics", sample_request, memory_provider)
        composition.result()
        assert composition.order == MANDATORY_ORDER
        assert memory_provider.find(ResourceKind.VIRTUAL_NETWORK_PEERING) == []

    def test_exactly_one_peering_with_hub(self, request_factory, hub_vnet_id, memory_provider):
        composition = compose_workspace(
            "analytics", request_factory(hub_vnet_id=hub_vnet_id), memory_provider
        )
        composition.result()
        (peering,) = memory_provider.find(ResourceKind.VIRTUAL_NETWORK_PEERING)
        assert peering.name == "spoke-to-hub"
        assert peering.id == VNET_ID + "/virtualNetworkPeerings/spoke-to-hub"
        assert peering.config["remote_virtual_network_id"] == hub_vnet_id
        assert composition.order.index("hub_peering") > composition.order.index("virtual_network")

    def test_family_picks_peering_only_with_hub(self, request_factory, hub_vnet_id):
        family = compositions.WORKSPACE_FAMILY
        without = family.pick_templates(inputs.normalize_request(request_factory()))
        with_hub = family.pick_templates(
            inputs.normalize_request(request_factory(hub_vnet_id=hub_vnet_id))
        )
        assert "hub_peering" not in without
        assert with_hub == without + ["hub_peering"]


# ============================================================================
# 3. PLAN AND ORDERING
# ============================================================================

class TestPlan:
    def test_plan_lists_resources_in_creation_order(self, sample_request):
        plan = compose_workspace("analytics", sample_request).plan()
        assert [entry["logicalName"] for entry in plan] == [
            "analytics-rg",
            "analytics-vnet",
            "analytics-private-nsg",
            "analytics-public-nsg",
            "analytics-private-subnet",
            "analytics-public-subnet",
            "analytics-workspace",
        ]
        workspace = plan[-1]
        assert workspace["kind"] == "databricks_workspace"
        assert workspace["name"] == "dbw-data-science-dev"
        assert workspace["dependsOn"] == ["analytics-private-subnet", "analytics-public-subnet"]

    def test_find_by_logical_name(self, sample_request):
        composition = compose_workspace("analytics", sample_request)
        assert composition.find("analytics-vnet").kind == ResourceKind.VIRTUAL_NETWORK
        assert composition.find("nope") is None

    def test_names_depend_only_on_team_and_environment(self, request_factory):
        first = compose_workspace("a", request_factory()).plan()
        second = compose_workspace(
            "a",
            request_factory(location="northeurope", spoke_cidr="10.9.0.0/16", sku_tier="standard"),
        ).plan()
        assert [e["name"] for e in first] == [e["name"] for e in second]

    def test_templates_are_discovered(self):
        composer = WorkspaceComposer()
        assert set(composer.templates) == set(MANDATORY_ORDER) | {"hub_peering"}
        assert composer.capability_map["network"] == ["virtual_network"]


# ============================================================================
# 4. IDEMPOTENCY AND COLLISIONS
# ============================================================================

class TestLifecycle:
    def test_recompose_is_idempotent(self, sample_request, memory_provider):
        composer = WorkspaceComposer(provider=memory_provider)
        first = composer.compose("analytics", sample_request).result()
        count = len(memory_provider.resources)
        second = composer.compose("analytics", sample_request).result()
        assert first == second
        assert len(memory_provider.resources) == count == 7

    def test_distinct_teams_coexist(self, request_factory, memory_provider):
        composer = WorkspaceComposer(provider=memory_provider)
        composer.compose("analytics", request_factory()).result()
        composer.compose("marketing", request_factory(team_name="marketing")).result()
        assert len(memory_provider.find(ResourceKind.DATABRICKS_WORKSPACE)) == 2

    def test_same_names_under_other_owner_collide(self, sample_request, memory_provider):
        composer = WorkspaceComposer(provider=memory_provider)
        composer.compose("analytics", sample_request).result()
        clash = composer.compose("other", sample_request)
        with pytest.raises(ProvisionFailed, match="already exists") as excinfo:
            clash.result()
        assert excinfo.value.resource == "other-rg"


# ============================================================================
# 5. REJECTIONS
# ============================================================================

class TestRejections:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"spoke_cidr": "10.1.0.0"},
            {"spoke_cidr": "10.1.0.0/24"},
            {"team_name": ""},
            {"location": " "},
            {"subscription_id": ""},
            {"hub_vnet_id": ""},
            {"enable_public_access": "false"},
            {"environment": "  "},
        ],
    )
    def test_invalid_input_declares_nothing(self, request_factory, overrides):
        provider = RecordingProvider()
        with pytest.raises(InvalidArgument):
            compose_workspace("analytics", request_factory(**overrides), provider)
        assert provider.declared == []

    def test_blank_composition_name(self, sample_request):
        with pytest.raises(InvalidArgument):
            WorkspaceComposer().compose("  ", sample_request)

    def test_unknown_sku_fails_at_provisioning(self, request_factory, memory_provider):
        composition = compose_workspace(
            "analytics", request_factory(sku_tier="enterprise"), memory_provider
        )
        with pytest.raises(ProvisionFailed, match="enterprise"):
            composition.result()
        assert memory_provider.find(ResourceKind.DATABRICKS_WORKSPACE) == []
        assert len(memory_provider.resources) == 6

    def test_rejected_peering_fails_outputs(self, request_factory, memory_provider):
        composition = compose_workspace(
            "analytics", request_factory(hub_vnet_id="vnet-hub"), memory_provider
        )
        with pytest.raises(ProvisionFailed, match="not a virtual network") as excinfo:
            composition.result()
        assert excinfo.value.resource == "analytics-spoke-to-hub"
        # The rest of the graph was still created.
        assert len(memory_provider.find(ResourceKind.DATABRICKS_WORKSPACE)) == 1


def test_default_provider_is_in_memory(sample_request):
    composer = WorkspaceComposer()
    assert isinstance(composer.provider, InMemoryProvider)
    assert composer.compose("analytics", sample_request).request.tags["managed-by"] == "pulumi"
