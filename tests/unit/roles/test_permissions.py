"""Unit tests for the permission calculator and the tier clamp."""

import pytest

from app.roles.catalog import PROJECT_ROLE_CATALOG, PROJECT_ROLES
from app.roles.exceptions import ConfigurationError, UnknownRoleError
from app.roles.hierarchy import clamp_to_tier, effective_hierarchy, highest_role_within
from app.roles.permissions import PERMISSION_RULES, Permission, compute_permissions
from app.roles.tiers import TIERS


class TestComputePermissions:
    """Threshold table behavior."""

    def test_producer_level_on_pro(self):
        permissions = compute_permissions(65, "PRO")

        assert permissions.as_dict() == {
            "canManageTeam": False,
            "canManageProjects": True,
            "canViewFinancials": False,
            "canEditContent": True,
            "canApproveContent": True,
            "canAccessReports": True,
            "canManageSettings": False,
            "hierarchyLevel": 65,
        }

    def test_financials_need_pro_tier(self):
        assert not compute_permissions(90, "BASIC").can_view_financials
        assert compute_permissions(90, "PRO").can_view_financials
        assert compute_permissions(70, "ENTERPRISE").can_view_financials

    def test_zero_hierarchy_has_nothing(self):
        assert compute_permissions(0, "ENTERPRISE").enabled() == []

    def test_full_hierarchy_has_everything_on_enterprise(self):
        assert compute_permissions(100, "ENTERPRISE").enabled() == [p.value for p in Permission]

    def test_enabled_preserves_table_order(self):
        assert compute_permissions(60, "PRO").enabled() == [
            "canManageProjects",
            "canEditContent",
            "canApproveContent",
            "canAccessReports",
        ]

    @pytest.mark.parametrize("tier", list(TIERS))
    def test_monotonic_in_hierarchy(self, tier):
        previous = set()
        for level in range(0, 101):
            current = set(compute_permissions(level, tier).enabled())
            assert previous <= current
            previous = current

    def test_monotonic_in_tier(self):
        for level in range(0, 101):
            basic = set(compute_permissions(level, "BASIC").enabled())
            pro = set(compute_permissions(level, "PRO").enabled())
            enterprise = set(compute_permissions(level, "ENTERPRISE").enabled())
            assert basic <= pro <= enterprise

    def test_every_permission_has_a_rule(self):
        assert set(PERMISSION_RULES) == set(Permission)

    @pytest.mark.parametrize("value", [-1, 101, 50.0, True, "60", None])
    def test_rejects_invalid_hierarchy(self, value):
        with pytest.raises(ValueError):
            compute_permissions(value, "PRO")

    def test_unknown_tier(self):
        with pytest.raises(ConfigurationError):
            compute_permissions(50, "FREE")


class TestTierClamp:
    """Project roles above the tier ceiling are downgraded, never rejected."""

    def test_role_within_ceiling_is_unchanged(self):
        assert clamp_to_tier("PRODUCER", "PRO").name == "PRODUCER"

    def test_role_at_ceiling_is_unchanged(self):
        assert clamp_to_tier("PRODUCTION_ASSISTANT", "BASIC").name == "PRODUCTION_ASSISTANT"

    def test_role_above_ceiling_is_clamped(self):
        assert clamp_to_tier("ADMIN", "PRO").name == "MANAGER"
        assert clamp_to_tier("ADMIN", "BASIC").name == "PRODUCTION_ASSISTANT"

    @pytest.mark.parametrize("tier", list(TIERS))
    def test_clamped_role_never_exceeds_ceiling(self, tier):
        ceiling = TIERS[tier].max_hierarchy
        for role in PROJECT_ROLE_CATALOG:
            assert clamp_to_tier(role, tier).hierarchy <= ceiling

    def test_highest_role_within_prefers_first_declared(self):
        assert highest_role_within(75).name == "PROJECT_MANAGER"
        assert highest_role_within(100).name == "ADMIN"

    def test_highest_role_within_nothing_available(self):
        with pytest.raises(ConfigurationError):
            highest_role_within(5)

    def test_unknown_project_role(self):
        with pytest.raises(UnknownRoleError):
            clamp_to_tier("WIZARD", "PRO")

    def test_effective_hierarchy_is_max(self):
        assert effective_hierarchy("viewer", "EDITOR") == 60
        assert effective_hierarchy("owner", PROJECT_ROLES["GUEST"]) == 100
