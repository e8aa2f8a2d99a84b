"""Organization service — localidades, circuitos, escuelas and mesas."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from fisca.core.exceptions import (
    DanglingReference, ResourceConflictError, ResourceNotFoundError, ValidationError,
)
from fisca.core.levels import OrgLevel
from fisca.models.organization import LEVEL_MODELS, PARENT_COLUMNS, Mesa
from fisca.models.role import StatusEnum
from fisca.models.user import User
from fisca.models.user_access import UserAccess
from fisca.services.access_service import access_service

logger = logging.getLogger("fisca.organization")


class OrganizationService:
    """CRUD over the four-level organizational tree, filtered by user scope."""

    @staticmethod
    def _check_parent(db: Session, level: OrgLevel, parent_id: Optional[int]) -> None:
        parent_level = level.parent
        if parent_level is None:
            if parent_id is not None:
                raise ValidationError("A localidad has no parent")
            return
        if parent_id is None:
            raise ValidationError(f"A {level.value} needs a {parent_level.value} parent")
        if db.get(LEVEL_MODELS[parent_level], parent_id) is None:
            raise DanglingReference(
                f"{parent_level.value.capitalize()} {parent_id} does not exist"
            )

    @staticmethod
    def _check_mesa_number(db: Session, escuela_id: int, numero: int, exclude_id=None) -> None:
        query = db.query(Mesa.id).filter(Mesa.escuela_id == escuela_id, Mesa.numero == numero)
        if exclude_id is not None:
            query = query.filter(Mesa.id != exclude_id)
        if query.first():
            raise ResourceConflictError(f"Mesa {numero} already exists in escuela {escuela_id}")

    @staticmethod
    def create(db: Session, level, data):
        """Create an entity whose parent sits exactly one level up.

        Raises:
            ValidationError: Missing name/number, or a parent given for a localidad.
            DanglingReference: The parent does not exist.
            ResourceConflictError: A mesa number is already used in the escuela.
        """
        level = OrgLevel.parse(level)
        model = LEVEL_MODELS[level]
        parent_level = level.parent

        OrganizationService._check_parent(db, level, data.parent_id)

        values = {}
        if level == OrgLevel.mesa:
            if data.numero is None:
                raise ValidationError("A mesa needs a numero")
            OrganizationService._check_mesa_number(db, data.parent_id, data.numero)
            values["numero"] = data.numero
        else:
            if not data.nombre:
                raise ValidationError(f"A {level.value} needs a nombre")
            values["nombre"] = data.nombre
        if level == OrgLevel.escuela:
            values["direccion"] = data.direccion
        if parent_level is not None:
            values[PARENT_COLUMNS[level].key] = data.parent_id

        entity = model(**values)
        db.add(entity)
        db.commit()
        db.refresh(entity)
        logger.info("Created %s %s", level.value, entity.id)
        return entity

    @staticmethod
    def update(db: Session, level, entity_id: int, data):
        """Edit an entity; moving it re-checks the parent and the mesa number.

        Grants on a moved entity keep their denormalized ``parent_id`` in step.

        Raises:
            ResourceNotFoundError: The entity does not exist.
            ValidationError: A blank name, or a parent given for a localidad.
            DanglingReference: The new parent does not exist.
            ResourceConflictError: The mesa number is taken in the target escuela.
        """
        level = OrgLevel.parse(level)
        entity = db.get(LEVEL_MODELS[level], entity_id)
        if entity is None:
            raise ResourceNotFoundError(f"{level.value.capitalize()} {entity_id} not found")

        fields = data.model_dump(exclude_unset=True)
        parent_id = entity.parent_id
        if "parent_id" in fields:
            parent_id = fields["parent_id"]
            OrganizationService._check_parent(db, level, parent_id)

        if level == OrgLevel.mesa:
            numero = fields.get("numero") or entity.numero
            if numero != entity.numero or parent_id != entity.parent_id:
                OrganizationService._check_mesa_number(db, parent_id, numero, exclude_id=entity.id)
            entity.numero = numero
        elif "nombre" in fields:
            if not fields["nombre"]:
                raise ValidationError(f"A {level.value} needs a nombre")
            entity.nombre = fields["nombre"]
        if level == OrgLevel.escuela and "direccion" in fields:
            entity.direccion = fields["direccion"]
        if fields.get("status"):
            entity.status = StatusEnum(fields["status"])

        moved = level.parent is not None and parent_id != entity.parent_id
        if moved:
            setattr(entity, PARENT_COLUMNS[level].key, parent_id)
            db.query(UserAccess).filter(
                UserAccess.entity_type == level, UserAccess.entity_id == entity_id,
            ).update({UserAccess.parent_id: parent_id})

        db.commit()
        db.refresh(entity)
        logger.info("Updated %s %s (moved: %s)", level.value, entity_id, moved)
        return entity

    @staticmethod
    def list_visible(
        db: Session,
        user: User,
        level,
        parent_id: Optional[int] = None,
    ) -> List:
        """Entities at ``level`` the user can see, optionally under one parent."""
        level = OrgLevel.parse(level)
        model = LEVEL_MODELS[level]
        query = db.query(model)

        scope = access_service.accessible_ids(db, user, level)
        if scope is not None:
            if not scope:
                return []
            query = query.filter(model.id.in_(scope))
        if parent_id is not None:
            if level.parent is None:
                raise ValidationError("Localidades have no parent")
            query = query.filter(PARENT_COLUMNS[level] == parent_id)
        return query.order_by(model.id).all()

    @staticmethod
    def get_visible(db: Session, user: User, level, entity_id: int):
        level = OrgLevel.parse(level)
        entity = db.get(LEVEL_MODELS[level], entity_id)
        scope = access_service.accessible_ids(db, user, level)
        if entity is None or (scope is not None and entity_id not in scope):
            raise ResourceNotFoundError(f"{level.value.capitalize()} {entity_id} not found")
        return entity

    @staticmethod
    def delete(db: Session, level, entity_id: int) -> None:
        """Delete a leaf entity that no access grant points at."""
        level = OrgLevel.parse(level)
        entity = db.get(LEVEL_MODELS[level], entity_id)
        if entity is None:
            raise ResourceNotFoundError(f"{level.value.capitalize()} {entity_id} not found")

        child = level.child
        if child is not None:
            has_children = db.query(LEVEL_MODELS[child].id).filter(
                PARENT_COLUMNS[child] == entity_id
            ).first()
            if has_children:
                raise ResourceConflictError(
                    f"{level.value.capitalize()} {entity_id} still has {child.plural}"
                )
        granted = db.query(UserAccess.id).filter(
            UserAccess.entity_type == level, UserAccess.entity_id == entity_id,
        ).first()
        if granted:
            raise ResourceConflictError(
                f"{level.value.capitalize()} {entity_id} is assigned to users"
            )

        db.delete(entity)
        db.commit()
        logger.info("Deleted %s %s", level.value, entity_id)


organization_service = OrganizationService()
