"""Organization API router — localidades, circuitos, escuelas, mesas."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fisca.core.exceptions import AuthorizationDenied
from fisca.core.levels import OrgLevel
from fisca.core.security import get_current_user, has_permission
from fisca.db.session import get_db
from fisca.schemas.schemas import EntityCreate, EntityOut, EntityUpdate, MessageResponse
from fisca.services.organization_service import organization_service

router = APIRouter(prefix="/organization", tags=["organization"])


def entity_out(level: OrgLevel, entity) -> EntityOut:
    return EntityOut(
        id=entity.id,
        level=level.value,
        name=entity.display_name,
        parent_id=entity.parent_id,
        status=entity.status.value,
    )


def _require(user, level: OrgLevel, action: str) -> None:
    permission = f"{level.plural}.{action}"
    if not has_permission(user, permission):
        raise AuthorizationDenied(f"Missing permission '{permission}'")


@router.get("/{level}", response_model=List[EntityOut])
async def list_entities(
    level: OrgLevel,
    parent_id: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    """Entities at ``level`` inside the caller's access scope."""
    _require(user, level, "read")
    entities = organization_service.list_visible(db, user, level, parent_id)
    return [entity_out(level, e) for e in entities]


@router.get("/{level}/{entity_id}", response_model=EntityOut)
async def get_entity(
    level: OrgLevel,
    entity_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    _require(user, level, "read")
    return entity_out(level, organization_service.get_visible(db, user, level, entity_id))


@router.post("/{level}", response_model=EntityOut, status_code=201)
async def create_entity(
    level: OrgLevel,
    body: EntityCreate,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    """Create an entity under a parent one level up."""
    _require(user, level, "create")
    return entity_out(level, organization_service.create(db, level, body))


@router.put("/{level}/{entity_id}", response_model=EntityOut)
async def update_entity(
    level: OrgLevel,
    entity_id: int,
    body: EntityUpdate,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    """Rename, renumber or move an entity under another parent."""
    _require(user, level, "update")
    return entity_out(level, organization_service.update(db, level, entity_id, body))


@router.delete("/{level}/{entity_id}", response_model=MessageResponse)
async def delete_entity(
    level: OrgLevel,
    entity_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    _require(user, level, "delete")
    organization_service.delete(db, level, entity_id)
    return MessageResponse(message=f"{level.value.capitalize()} deleted")
