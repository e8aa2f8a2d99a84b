"""Access grant tying a user to one organizational entity."""

from sqlalchemy import (
    Column, Integer, DateTime, Enum, ForeignKey, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship

from fisca.core.levels import OrgLevel
from fisca.db.base import Base
from fisca.models.role import StatusEnum


class UserAccess(Base):
    """One (user, level, entity) grant; parent_id is denormalized for display."""
    __tablename__ = "user_accesses"
    __table_args__ = (
        UniqueConstraint("user_id", "entity_type", "entity_id", name="uq_user_access_entity"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    entity_type = Column(Enum(OrgLevel), nullable=False)
    entity_id = Column(Integer, nullable=False)
    parent_id = Column(Integer, nullable=True)
    status = Column(Enum(StatusEnum), default=StatusEnum.active, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="accesses")
