"""Roles & permissions API router."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fisca.db.session import get_db
from fisca.schemas.schemas import MessageResponse, PermissionOut, RoleDetailOut, RoleOut
from fisca.services.role_service import role_service
from fisca.core.security import (
    require_permissions_read, require_roles_delete, require_roles_read,
)

router = APIRouter(prefix="/roles", tags=["roles"])
permissions_router = APIRouter(prefix="/permissions", tags=["roles"])


def role_out(role) -> RoleOut:
    return RoleOut(
        id=role.id,
        name=role.name,
        display_name=role.display_name,
        description=role.description,
        rank=role.rank,
        is_system=role.is_system,
        status=role.status.value,
    )


def permission_out(permission) -> PermissionOut:
    return PermissionOut(
        id=permission.id,
        name=permission.name,
        display_name=permission.display_name,
        entity=permission.entity,
        action=permission.action.value,
        is_system=permission.is_system,
    )


@router.get("", response_model=List[RoleOut])
async def list_roles(
    db: Session = Depends(get_db),
    user=Depends(require_roles_read),
):
    """All roles, most privileged first."""
    return [role_out(role) for role in role_service.list_roles(db)]


@router.get("/{role_id}", response_model=RoleDetailOut)
async def get_role(
    role_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_roles_read),
):
    """A role together with the permissions it grants."""
    role = role_service.get_role(db, role_id)
    return RoleDetailOut(
        **role_out(role).model_dump(),
        permissions=[permission_out(p) for p in role.permissions],
    )


@router.delete("/{role_id}", response_model=MessageResponse)
async def delete_role(
    role_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_roles_delete),
):
    role_service.delete_role(db, role_id)
    return MessageResponse(message="Role deleted")


@permissions_router.get("", response_model=List[PermissionOut])
async def list_permissions(
    db: Session = Depends(get_db),
    user=Depends(require_permissions_read),
):
    """The full permission catalog."""
    return [permission_out(p) for p in role_service.list_permissions(db)]
