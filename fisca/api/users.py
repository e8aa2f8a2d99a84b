"""Users API router — collaborators, available roles and access grants."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fisca.api.auth import user_out
from fisca.api.roles import role_out
from fisca.core.levels import OrgLevel
from fisca.core.security import get_current_user, require_users_read
from fisca.db.session import get_db
from fisca.schemas.schemas import (
    AccessGrantOut, AccessLevelIn, LevelSlotOut, MessageResponse, RoleOut,
    UserCreate, UserListResponse, UserOut, UserUpdate,
)
from fisca.services.access_service import access_service
from fisca.services.user_service import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/available-roles", response_model=List[RoleOut])
async def available_roles(
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    """Roles the caller may assign to a new collaborator."""
    return [role_out(role) for role in user_service.available_roles(db, user)]


@router.get("/assignable-levels", response_model=List[LevelSlotOut])
async def assignable_levels(
    role_id: int = Query(..., ge=1),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    """Levels the caller may offer for a collaborator with ``role_id``."""
    slots = user_service.assignable_levels_for(db, user, role_id)
    return [LevelSlotOut(entity_type=s.level.value, multiple=s.multiple) for s in slots]


@router.get("/me/access", response_model=List[AccessGrantOut])
async def my_access(
    db: Session = Depends(get_db),
    user=Depends(require_users_read),
):
    """The caller's own grants."""
    return access_service.describe_grants(db, user.id)


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    role_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user=Depends(require_users_read),
):
    """List users visible to the caller."""
    result = user_service.list_users(db, user, page, page_size, search, role_id)
    return UserListResponse(
        users=[user_out(db, u) for u in result["users"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )


@router.post("", response_model=UserOut, status_code=201)
async def create_user(
    body: UserCreate,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    """Create a collaborator with a subordinate role and its access levels."""
    created = user_service.create_collaborator(db, user, body)
    return user_out(db, created, with_access=True)


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_users_read),
):
    target = user_service.get_visible_user(db, user, user_id)
    return user_out(db, target, with_access=True)


@router.put("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: int,
    body: UserUpdate,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    """Edit a collaborator; a role switch without access levels clears its grants."""
    updated = user_service.update_collaborator(db, user, user_id, body)
    return user_out(db, updated, with_access=True)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    user_service.delete_collaborator(db, user, user_id)
    return MessageResponse(message="Usuario eliminado correctamente")


@router.get("/{user_id}/access", response_model=List[AccessGrantOut])
async def get_user_access(
    user_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_users_read),
):
    """A user's grants with entity names, for pre-populating pickers."""
    target = user_service.get_visible_user(db, user, user_id)
    return access_service.describe_grants(db, target.id)


@router.post("/{user_id}/access", response_model=AccessGrantOut, status_code=201)
async def add_user_access(
    user_id: int,
    body: AccessLevelIn,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    """Add one grant, subject to the same level rules as creation."""
    target = user_service.get_visible_user(db, user, user_id)
    user_service.add_grant(db, user, target, body.entity_type, body.entity_id)
    grants = access_service.describe_grants(db, target.id)
    level = OrgLevel.parse(body.entity_type).value
    return next(g for g in grants if g["entity_type"] == level and g["entity_id"] == body.entity_id)


@router.delete("/{user_id}/access/{entity_type}/{entity_id}", response_model=MessageResponse)
async def remove_user_access(
    user_id: int,
    entity_type: OrgLevel,
    entity_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    target = user_service.get_visible_user(db, user, user_id)
    user_service.check_manages(user, target)
    access_service.revoke(db, target.id, entity_type, entity_id)
    return MessageResponse(message="Access removed")


@router.delete("/{user_id}/access", response_model=MessageResponse)
async def clear_user_access(
    user_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    target = user_service.get_visible_user(db, user, user_id)
    user_service.check_manages(user, target)
    deleted = access_service.revoke_all(db, target.id)
    return MessageResponse(message=f"Deleted {deleted} access records", detail={"deleted": deleted})
