"""Role, Permission and RolePermission models for RBAC."""

import enum

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Enum, ForeignKey,
    UniqueConstraint, func,
)
from sqlalchemy.orm import relationship

from fisca.db.base import Base


class StatusEnum(str, enum.Enum):
    active = "active"
    inactive = "inactive"


class ActionEnum(str, enum.Enum):
    create = "create"
    read = "read"
    update = "update"
    delete = "delete"


class Role(Base):
    """System role; lower rank means more privilege."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    rank = Column(Integer, nullable=False)
    is_system = Column(Boolean, default=False, nullable=False)
    status = Column(Enum(StatusEnum), default=StatusEnum.active, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    permissions = relationship(
        "Permission",
        secondary="role_permissions",
        lazy="selectin",
        order_by="Permission.name",
        viewonly=True,
    )

    @property
    def permission_names(self) -> set:
        return {p.name for p in self.permissions}


class Permission(Base):
    """Atomic capability: ``entity.action`` or ``users.create.<role>``."""
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    display_name = Column(String(255), nullable=False)
    entity = Column(String(50), nullable=False)
    action = Column(Enum(ActionEnum), nullable=False)
    is_system = Column(Boolean, default=False, nullable=False)
    status = Column(Enum(StatusEnum), default=StatusEnum.active, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)


class RolePermission(Base):
    """Explicit grant of one permission to one role."""
    __tablename__ = "role_permissions"
    __table_args__ = (UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
