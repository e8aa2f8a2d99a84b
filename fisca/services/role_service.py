"""Role service — read the role catalog, delete custom roles."""

import logging
from typing import List

from sqlalchemy.orm import Session

from fisca.core.exceptions import (
    AuthorizationDenied, ResourceConflictError, ResourceNotFoundError,
)
from fisca.models.role import Role, Permission
from fisca.models.user import User

logger = logging.getLogger("fisca.roles")


class RoleService:

    @staticmethod
    def list_roles(db: Session) -> List[Role]:
        return db.query(Role).order_by(Role.rank, Role.name).all()

    @staticmethod
    def get_role(db: Session, role_id: int) -> Role:
        role = db.get(Role, role_id)
        if role is None:
            raise ResourceNotFoundError(f"Role {role_id} not found")
        return role

    @staticmethod
    def delete_role(db: Session, role_id: int) -> None:
        """Delete a non-system role nobody holds."""
        role = RoleService.get_role(db, role_id)
        if role.is_system:
            raise AuthorizationDenied(f"System role '{role.name}' cannot be deleted")
        if db.query(User.id).filter(User.role_id == role.id).first():
            raise ResourceConflictError(f"Role '{role.name}' is assigned to users")
        db.delete(role)
        db.commit()
        logger.info("Deleted role %s", role.name)

    @staticmethod
    def list_permissions(db: Session) -> List[Permission]:
        return db.query(Permission).order_by(Permission.entity, Permission.name).all()


role_service = RoleService()
