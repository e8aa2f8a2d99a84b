"""User model."""

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, func
from sqlalchemy.orm import relationship

from fisca.db.base import Base
from fisca.models.role import StatusEnum


class User(Base):
    """Platform user scoped by role and access grants."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    dni = Column(String(20), unique=True, nullable=True)
    telefono = Column(String(30), unique=True, nullable=True)
    status = Column(Enum(StatusEnum), default=StatusEnum.active, nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    role = relationship("Role", lazy="joined")
    accesses = relationship(
        "UserAccess",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="UserAccess.id",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def role_name(self):
        return self.role.name if self.role else None

    @property
    def is_active(self) -> bool:
        return self.status == StatusEnum.active
