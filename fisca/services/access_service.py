"""Access grant store — which organizational entities each user is scoped to."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fisca.core.exceptions import (
    DanglingReference, DuplicateGrant, ResourceNotFoundError, ValidationError,
)
from fisca.core.levels import ORDERED_LEVELS, OrgLevel
from fisca.core.roles import RoleName
from fisca.models.organization import LEVEL_MODELS, PARENT_COLUMNS
from fisca.models.role import StatusEnum
from fisca.models.user import User
from fisca.models.user_access import UserAccess

logger = logging.getLogger("fisca.access")


def _sort_key(access: UserAccess):
    return (access.entity_type.rank, access.entity_id)


def _normalize(item) -> tuple:
    """Accept ``(type, id)``, ``(type, id, parent)`` or a mapping with those keys."""
    if isinstance(item, dict):
        return item.get("entity_type"), item.get("entity_id"), item.get("parent_id")
    if hasattr(item, "entity_type"):
        return item.entity_type, item.entity_id, getattr(item, "parent_id", None)
    if len(item) == 2:
        return item[0], item[1], None
    return tuple(item)


class ChildIndex:
    """Read-through cache of parent id -> child ids for one lookup pass.

    Built per call and discarded afterwards; it only saves repeat queries
    while walking down the hierarchy.
    """

    def __init__(self, db: Session):
        self.db = db
        self._children: Dict[tuple, List[int]] = {}

    def children(self, child_level: OrgLevel, parent_ids: Iterable[int]) -> set:
        parent_ids = set(parent_ids)
        missing = [pid for pid in parent_ids if (child_level, pid) not in self._children]
        if missing:
            column = PARENT_COLUMNS[child_level]
            model = LEVEL_MODELS[child_level]
            for pid in missing:
                self._children[(child_level, pid)] = []
            rows = self.db.query(model.id, column).filter(column.in_(missing)).all()
            for child_id, parent_id in rows:
                self._children[(child_level, parent_id)].append(child_id)
        result = set()
        for pid in parent_ids:
            result.update(self._children[(child_level, pid)])
        return result


class AccessService:
    """Persists, queries and enforces uniqueness of user access grants."""

    @staticmethod
    def resolve_entity(db: Session, entity_type, entity_id: int):
        """Return the entity row for a level and id.

        Raises:
            InvalidLevel: If entity_type is not a known level.
            DanglingReference: If no such entity exists.
        """
        level = OrgLevel.parse(entity_type)
        if not isinstance(entity_id, int) or isinstance(entity_id, bool) or entity_id < 1:
            raise ValidationError(f"Invalid {level.value} id '{entity_id}'")
        entity = db.get(LEVEL_MODELS[level], entity_id)
        if entity is None:
            raise DanglingReference(f"{level.value.capitalize()} {entity_id} does not exist")
        return entity

    @staticmethod
    def _stage(
        db: Session,
        user_id: int,
        entity_type,
        entity_id: int,
        parent_id: Optional[int] = None,
    ) -> UserAccess:
        level = OrgLevel.parse(entity_type)
        entity = AccessService.resolve_entity(db, level, entity_id)
        if parent_id is not None and parent_id != entity.parent_id:
            raise ValidationError(
                f"{level.value.capitalize()} {entity_id} belongs to {entity.parent_id}, not {parent_id}"
            )
        access = UserAccess(
            user_id=user_id,
            entity_type=level,
            entity_id=entity_id,
            parent_id=entity.parent_id,
            status=StatusEnum.active,
        )
        db.add(access)
        return access

    @staticmethod
    def _require_user(db: Session, user_id: int) -> User:
        user = db.get(User, user_id)
        if user is None:
            raise DanglingReference(f"User {user_id} does not exist")
        return user

    @staticmethod
    def grant(
        db: Session,
        user_id: int,
        entity_type,
        entity_id: int,
        parent_id: Optional[int] = None,
    ) -> UserAccess:
        """Insert one grant.

        Raises:
            DuplicateGrant: If the user already holds this (level, entity).
            InvalidLevel: If entity_type is not a known level.
            DanglingReference: If the user or the entity does not exist.
        """
        level = OrgLevel.parse(entity_type)
        AccessService._require_user(db, user_id)
        existing = db.query(UserAccess).filter(
            UserAccess.user_id == user_id,
            UserAccess.entity_type == level,
            UserAccess.entity_id == entity_id,
        ).first()
        if existing:
            raise DuplicateGrant(f"User {user_id} already has access to {level.value} {entity_id}")

        access = AccessService._stage(db, user_id, level, entity_id, parent_id)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise DuplicateGrant(
                f"User {user_id} already has access to {level.value} {entity_id}"
            ) from e
        db.refresh(access)
        logger.info("Granted %s %s to user %s", level.value, entity_id, user_id)
        return access

    @staticmethod
    def stage_replace(db: Session, user_id: int, grants: Iterable) -> List[UserAccess]:
        """Delete the user's grants and stage the new list without committing.

        Used by callers that need the replacement inside a larger unit of work.
        """
        items = [_normalize(item) for item in grants]
        seen = set()
        for entity_type, entity_id, _ in items:
            key = (OrgLevel.parse(entity_type), entity_id)
            if key in seen:
                raise DuplicateGrant(f"{key[0].value} {entity_id} listed more than once")
            seen.add(key)

        db.query(UserAccess).filter(UserAccess.user_id == user_id).delete()
        db.flush()
        staged = [
            AccessService._stage(db, user_id, entity_type, entity_id, parent_id)
            for entity_type, entity_id, parent_id in items
        ]
        db.flush()
        return staged

    @staticmethod
    def replace_grants(db: Session, user_id: int, grants: Iterable) -> List[UserAccess]:
        """Atomically replace every grant the user holds.

        Readers see either the old complete set or the new one; on any failure
        the transaction is rolled back and the old set stays in place.
        """
        try:
            AccessService._require_user(db, user_id)
            staged = AccessService.stage_replace(db, user_id, grants)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Replaced grants for user %s (%d grants)", user_id, len(staged))
        return AccessService.list_grants(db, user_id)

    @staticmethod
    def list_grants(db: Session, user_id: int) -> List[UserAccess]:
        """Grants held by the user, ordered by level rank then entity id."""
        rows = db.query(UserAccess).filter(UserAccess.user_id == user_id).all()
        return sorted(rows, key=_sort_key)

    @staticmethod
    def describe_grants(db: Session, user_id: int) -> List[Dict[str, Any]]:
        """Grants joined with entity display names, for pre-populating pickers."""
        grants = AccessService.list_grants(db, user_id)

        wanted: Dict[OrgLevel, set] = {}
        for access in grants:
            wanted.setdefault(access.entity_type, set()).add(access.entity_id)
        names: Dict[tuple, str] = {}
        for level, ids in wanted.items():
            model = LEVEL_MODELS[level]
            for entity in db.query(model).filter(model.id.in_(ids)):
                names[(level, entity.id)] = entity.display_name

        described = []
        for access in grants:
            described.append({
                "id": access.id,
                "entity_type": access.entity_type.value,
                "entity_id": access.entity_id,
                "entity_name": names.get((access.entity_type, access.entity_id)),
                "parent_id": access.parent_id,
                "status": access.status.value,
            })
        return described

    @staticmethod
    def revoke(db: Session, user_id: int, entity_type, entity_id: int) -> None:
        """Remove a single grant."""
        level = OrgLevel.parse(entity_type)
        deleted = db.query(UserAccess).filter(
            UserAccess.user_id == user_id,
            UserAccess.entity_type == level,
            UserAccess.entity_id == entity_id,
        ).delete()
        if not deleted:
            raise ResourceNotFoundError(
                f"User {user_id} has no access to {level.value} {entity_id}"
            )
        db.commit()
        logger.info("Revoked %s %s from user %s", level.value, entity_id, user_id)

    @staticmethod
    def revoke_all(db: Session, user_id: int) -> int:
        """Remove every grant the user holds; returns how many were removed."""
        deleted = db.query(UserAccess).filter(UserAccess.user_id == user_id).delete()
        db.commit()
        logger.info("Revoked %d grants from user %s", deleted, user_id)
        return deleted

    @staticmethod
    def accessible_ids(db: Session, user: User, level) -> Optional[set]:
        """Ids at ``level`` the user may act upon, or None when unrestricted.

        A grant on a level covers every descendant entity below it, so access
        to a localidad reaches all of its circuitos, escuelas and mesas.
        """
        level = OrgLevel.parse(level)
        if user.role_name == RoleName.admin.value:
            return None

        direct: Dict[OrgLevel, set] = {}
        for access in AccessService.list_grants(db, user.id):
            if access.status == StatusEnum.active:
                direct.setdefault(access.entity_type, set()).add(access.entity_id)

        index = ChildIndex(db)
        current: set = set()
        for step in ORDERED_LEVELS[:level.rank]:
            inherited = index.children(step, current) if current and step.parent else set()
            current = direct.get(step, set()) | inherited
        return current


access_service = AccessService()
