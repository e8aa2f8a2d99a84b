"""User service — collaborator creation, editing and deletion under the role hierarchy."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fisca.core.exceptions import (
    AuthorizationDenied, ResourceConflictError, ResourceNotFoundError, ValidationError,
)
from fisca.core.levels import OrgLevel
from fisca.core.permissions import create_user_permission
from fisca.core.roles import (
    AccessSelection, LevelSlot, RoleName, assignable_levels, can_create_role,
    creatable_roles, is_below,
)
from fisca.core.security import hash_password, has_permission
from fisca.models.role import Role, StatusEnum
from fisca.models.user import User
from fisca.services.access_service import access_service

logger = logging.getLogger("fisca.users")


def _is_admin(user: User) -> bool:
    return user.role_name == RoleName.admin.value


class UserService:
    """Creates and manages collaborator accounts on behalf of an acting user."""

    @staticmethod
    def available_roles(db: Session, acting: User) -> List[Role]:
        """Active roles the acting user may assign, most privileged first."""
        names = [role.value for role in creatable_roles(acting.role_name)]
        if not names:
            return []
        return (
            db.query(Role)
            .filter(Role.name.in_(names), Role.status == StatusEnum.active)
            .order_by(Role.rank, Role.display_name)
            .all()
        )

    @staticmethod
    def get_role(db: Session, role_id: int) -> Role:
        role = db.get(Role, role_id)
        if role is None or role.status != StatusEnum.active:
            raise ValidationError(f"Invalid role ID {role_id}")
        return role

    @staticmethod
    def check_can_create(acting: User, role: Role) -> None:
        """Raise AuthorizationDenied unless ``acting`` may hand out ``role``."""
        allowed = can_create_role(acting.role_name, role.name)
        if not allowed or not has_permission(acting, create_user_permission(role.name)):
            raise AuthorizationDenied(
                f"Role '{acting.role.display_name if acting.role else None}' cannot create "
                f"users with role '{role.display_name}'"
            )

    @staticmethod
    def assignable_levels_for(db: Session, acting: User, role_id: int) -> List[LevelSlot]:
        role = UserService.get_role(db, role_id)
        return assignable_levels(acting.role_name, role.name)

    @staticmethod
    def _build_selection(db: Session, acting: User, role: Role, access_levels) -> AccessSelection:
        """Validate submitted levels against the resolver and the acting user's own scope."""
        if not assignable_levels(acting.role_name, role.name):
            raise AuthorizationDenied(
                f"No access levels can be assigned to role '{role.display_name}' by "
                f"'{acting.role.display_name}'"
            )
        items = [(level.entity_type, level.entity_id) for level in access_levels]
        selection = AccessSelection.from_request(acting.role_name, role.name, items)
        if not selection.grants():
            raise ValidationError("At least one access level must be selected")

        for level, entity_id in selection.grants():
            UserService._check_scope(db, acting, level, entity_id)
        return selection

    @staticmethod
    def _check_scope(db: Session, acting: User, level: OrgLevel, entity_id: int) -> None:
        access_service.resolve_entity(db, level, entity_id)
        scope = access_service.accessible_ids(db, acting, level)
        if scope is not None and entity_id not in scope:
            raise AuthorizationDenied(f"{level.value.capitalize()} {entity_id} is outside your access")

    @staticmethod
    def _check_unique(db: Session, email=None, dni=None, telefono=None, exclude_id=None) -> None:
        checks = [
            ("email", User.email, email, "El email ya está registrado en el sistema"),
            ("dni", User.dni, dni, "El DNI ya está registrado en el sistema"),
            ("telefono", User.telefono, telefono,
             "El número de teléfono ya está registrado en el sistema"),
        ]
        for _, column, value, message in checks:
            if not value:
                continue
            query = db.query(User.id).filter(column == value)
            if exclude_id is not None:
                query = query.filter(User.id != exclude_id)
            if query.first():
                raise ResourceConflictError(message)

    @staticmethod
    def create_collaborator(db: Session, acting: User, data) -> User:
        """Create a user with a subordinate role and its access grants in one transaction.

        Raises:
            ValidationError: Unknown role, bad levels, or no level selected.
            AuthorizationDenied: Role or level outside what the acting user may grant.
            ResourceConflictError: Email, DNI or phone already registered.
        """
        role = UserService.get_role(db, data.role_id)
        UserService.check_can_create(acting, role)
        selection = UserService._build_selection(db, acting, role, data.access_levels)
        UserService._check_unique(db, data.email, data.dni, data.telefono)

        try:
            user = User(
                email=data.email,
                hashed_password=hash_password(data.password),
                first_name=data.first_name,
                last_name=data.last_name,
                dni=data.dni,
                telefono=data.telefono,
                status=StatusEnum.active,
                role_id=role.id,
                created_by=acting.id,
            )
            db.add(user)
            db.flush()
            access_service.stage_replace(db, user.id, selection.grants())
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise ResourceConflictError("El email, DNI o teléfono ya está registrado en el sistema") from e
        except Exception:
            db.rollback()
            raise

        db.refresh(user)
        logger.info(
            "User %s created user %s with role %s (%d grants)",
            acting.id, user.id, role.name, len(selection.grants()),
        )
        return user

    @staticmethod
    def check_manages(acting: User, target: User) -> None:
        """Admins manage everyone; others only users they created who still rank below them."""
        if _is_admin(acting):
            return
        if target.created_by != acting.id or not is_below(target.role_name, acting.role_name):
            raise AuthorizationDenied("No tienes permisos para modificar este usuario")

    @staticmethod
    def get_visible_user(db: Session, acting: User, user_id: int) -> User:
        user = db.get(User, user_id)
        if user is None:
            raise ResourceNotFoundError(f"User {user_id} not found")
        if user.id != acting.id:
            UserService.check_manages(acting, user)
        return user

    @staticmethod
    def add_grant(db: Session, acting: User, target: User, entity_type, entity_id: int):
        """Give ``target`` one more grant under the same rules as creation.

        On a single-select level the new entity replaces whatever the user
        held at that level; on a multi-select level it is appended.

        Raises:
            AuthorizationDenied: Target not managed by acting, or level not assignable.
            DuplicateGrant: The grant already exists on a multi-select level.
            DanglingReference: The entity does not exist.
        """
        UserService.check_manages(acting, target)
        role = target.role
        UserService.check_can_create(acting, role)

        level = OrgLevel.parse(entity_type)
        slot = next(
            (s for s in assignable_levels(acting.role_name, role.name) if s.level == level),
            None,
        )
        if slot is None:
            raise AuthorizationDenied(
                f"Role '{acting.role.display_name}' cannot assign {level.plural} "
                f"to role '{role.display_name}'"
            )
        UserService._check_scope(db, acting, level, entity_id)

        if slot.multiple:
            return access_service.grant(db, target.id, level, entity_id)

        kept = [
            (access.entity_type, access.entity_id)
            for access in access_service.list_grants(db, target.id)
            if access.entity_type != level
        ]
        grants = access_service.replace_grants(db, target.id, kept + [(level, entity_id)])
        logger.info("User %s set %s %s for user %s", acting.id, level.value, entity_id, target.id)
        return next(g for g in grants if g.entity_type == level)

    @staticmethod
    def update_collaborator(db: Session, acting: User, user_id: int, data) -> User:
        """Edit a collaborator.

        Switching the role without sending ``access_levels`` clears the user's
        grants, since they were chosen for the previous role.
        """
        user = db.get(User, user_id)
        if user is None:
            raise ResourceNotFoundError(f"User {user_id} not found")
        UserService.check_manages(acting, user)

        fields = data.model_dump(exclude_unset=True)
        UserService._check_unique(
            db, dni=fields.get("dni"), telefono=fields.get("telefono"), exclude_id=user.id,
        )

        role = user.role
        role_changed = False
        if fields.get("role_id") is not None and fields["role_id"] != user.role_id:
            role = UserService.get_role(db, fields["role_id"])
            UserService.check_can_create(acting, role)
            role_changed = True

        selection = None
        if data.access_levels is not None:
            UserService.check_can_create(acting, role)
            selection = UserService._build_selection(db, acting, role, data.access_levels)

        try:
            for name in ("first_name", "last_name", "dni", "telefono"):
                if name in fields:
                    setattr(user, name, fields[name])
            if fields.get("password"):
                user.hashed_password = hash_password(fields["password"])
            if fields.get("status"):
                user.status = StatusEnum(fields["status"])
            if role_changed:
                user.role_id = role.id

            if selection is not None:
                access_service.stage_replace(db, user.id, selection.grants())
            elif role_changed:
                access_service.stage_replace(db, user.id, [])
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise ResourceConflictError("El DNI o teléfono ya está registrado en el sistema") from e
        except Exception:
            db.rollback()
            raise

        db.refresh(user)
        logger.info("User %s updated user %s (role changed: %s)", acting.id, user.id, role_changed)
        return user

    @staticmethod
    def delete_collaborator(db: Session, acting: User, user_id: int) -> None:
        """Delete a user; its grants go with it."""
        user = db.get(User, user_id)
        if user is None:
            raise ResourceNotFoundError(f"User {user_id} not found")
        if user.id == acting.id:
            raise ValidationError("Cannot delete your own account")
        UserService.check_manages(acting, user)

        db.delete(user)
        db.commit()
        logger.info("User %s deleted user %s", acting.id, user_id)

    @staticmethod
    def list_users(
        db: Session,
        acting: User,
        page: int = 1,
        page_size: int = 20,
        search: Optional[str] = None,
        role_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Admins see every user; everyone else sees the users they created."""
        query = db.query(User)
        if not _is_admin(acting):
            query = query.filter(User.created_by == acting.id)
        if role_id:
            query = query.filter(User.role_id == role_id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                User.email.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.dni.ilike(pattern),
            ))

        total = query.count()
        users = (
            query.order_by(User.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"users": users, "total": total, "page": page, "page_size": page_size}


user_service = UserService()
