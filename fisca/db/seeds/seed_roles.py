"""Seed system roles, the permission catalog and role-permission rows."""

import logging

from sqlalchemy.orm import Session

from fisca.core.permissions import PERMISSION_CATALOG, permissions_for_role
from fisca.core.roles import ROLE_CATALOG
from fisca.models.role import ActionEnum, Role, Permission, RolePermission, StatusEnum

logger = logging.getLogger("fisca.seeds")


def seed_roles(db: Session) -> dict:
    """Stage roles, permissions and their joins; the caller commits.

    Returns a mapping of role name to Role.
    """
    roles = {}
    for spec in ROLE_CATALOG:
        role = Role(
            name=spec.name.value,
            display_name=spec.display_name,
            description=spec.description,
            rank=spec.rank,
            is_system=True,
            status=StatusEnum.active,
        )
        db.add(role)
        roles[role.name] = role

    permissions = {}
    for spec in PERMISSION_CATALOG:
        permission = Permission(
            name=spec.name,
            display_name=spec.display_name,
            entity=spec.entity,
            action=ActionEnum(spec.action),
            is_system=True,
            status=StatusEnum.active,
        )
        db.add(permission)
        permissions[permission.name] = permission

    db.flush()

    grants = 0
    for name, role in roles.items():
        for permission_name in sorted(permissions_for_role(name)):
            db.add(RolePermission(role_id=role.id, permission_id=permissions[permission_name].id))
            grants += 1
    db.flush()

    logger.info(
        "Seeded %d roles, %d permissions, %d role permissions",
        len(roles), len(permissions), grants,
    )
    return roles
