# tests/test_roles.py

"""
Tests for the role hierarchy and the permission catalog.
"""

import pytest

from fisca.core.permissions import (
    PERMISSION_CATALOG, PERMISSION_NAMES, create_user_permission, permissions_for_role,
)
from fisca.core.roles import (
    CREATABLE_ROLES, ROLE_CATALOG, RoleName, can_create_role, creatable_roles, is_below,
    parse_role, role_rank,
)

R = RoleName


EXPECTED_CREATABLE = {
    R.admin: {
        R.jefe_campana, R.responsable_localidad, R.responsable_seccion,
        R.responsable_circuito, R.fiscal_general, R.fiscal_mesa, R.logistica,
    },
    R.jefe_campana: {
        R.responsable_localidad, R.responsable_seccion, R.responsable_circuito,
        R.fiscal_general, R.fiscal_mesa, R.logistica,
    },
    R.responsable_localidad: {
        R.responsable_seccion, R.responsable_circuito, R.fiscal_general,
        R.fiscal_mesa, R.logistica,
    },
    R.responsable_seccion: {
        R.responsable_circuito, R.fiscal_general, R.fiscal_mesa, R.logistica,
    },
    R.responsable_circuito: {R.fiscal_general, R.fiscal_mesa, R.logistica},
    R.fiscal_general: {R.fiscal_mesa, R.logistica},
    R.fiscal_mesa: set(),
    R.logistica: set(),
}


@pytest.mark.parametrize("role", list(RoleName))
def test_creatable_roles_match_hierarchy(role):
    """Test that each role creates exactly its configured subordinates."""
    assert set(creatable_roles(role)) == EXPECTED_CREATABLE[role]
    assert set(creatable_roles(role.value)) == EXPECTED_CREATABLE[role]


def test_creatable_roles_are_strictly_below_creator():
    """Test that no role can create a peer or a superior."""
    for creator, targets in CREATABLE_ROLES.items():
        for target in targets:
            assert is_below(target, creator)
            assert role_rank(target) > role_rank(creator)


def test_admin_cannot_create_admin():
    assert not can_create_role("admin", "admin")
    assert can_create_role("admin", "jefe_campana")


def test_leaf_roles_share_rank():
    assert role_rank("fiscal_mesa") == role_rank("logistica") == 7
    assert not is_below("fiscal_mesa", "logistica")
    assert not is_below("logistica", "fiscal_mesa")


def test_unknown_role_is_harmless():
    """Test that roles outside the catalog can create nothing and are never below."""
    assert parse_role("superuser") is None
    assert creatable_roles("superuser") == frozenset()
    assert not can_create_role("admin", "superuser")
    assert not is_below("superuser", "admin")


def test_catalog_ranks_are_ordered():
    ranks = [spec.rank for spec in ROLE_CATALOG]
    assert ranks == sorted(ranks)
    assert ROLE_CATALOG[0].name == R.admin


def test_permission_names_are_unique():
    names = [spec.name for spec in PERMISSION_CATALOG]
    assert len(names) == len(set(names))


def test_admin_holds_every_permission():
    assert permissions_for_role("admin") == PERMISSION_NAMES


@pytest.mark.parametrize("role", [r for r in RoleName if r != R.admin])
def test_non_admin_permissions_are_reads_plus_role_creation(role):
    """Test that non-admin roles read everything and create only their subordinates."""
    expected_reads = {spec.name for spec in PERMISSION_CATALOG if spec.action == "read"}
    expected_creates = {create_user_permission(t) for t in EXPECTED_CREATABLE[role]}

    granted = permissions_for_role(role)

    assert granted == expected_reads | expected_creates
    assert "users.create" not in granted
    assert not any(p.endswith((".update", ".delete")) for p in granted)


def test_create_user_permission_name():
    assert create_user_permission(R.fiscal_mesa) == "users.create.fiscal_mesa"
    assert create_user_permission("logistica") == "users.create.logistica"
