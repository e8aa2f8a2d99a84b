"""Seed the initial admin user from settings."""

import logging

from sqlalchemy.orm import Session

from fisca.core.config import settings
from fisca.core.security import hash_password
from fisca.models.role import Role, StatusEnum
from fisca.models.user import User

logger = logging.getLogger("fisca.seeds")


def seed_admin(db: Session) -> User:
    """Stage the admin account if missing; the caller commits."""
    existing = db.query(User).filter(User.email == settings.ADMIN_EMAIL).first()
    if existing:
        logger.info("Admin '%s' already exists, skipping", settings.ADMIN_EMAIL)
        return existing

    admin_role = db.query(Role).filter(Role.name == "admin").one()
    admin = User(
        email=settings.ADMIN_EMAIL,
        hashed_password=hash_password(settings.ADMIN_PASSWORD),
        first_name=settings.ADMIN_FIRST_NAME,
        last_name=settings.ADMIN_LAST_NAME,
        status=StatusEnum.active,
        role_id=admin_role.id,
    )
    db.add(admin)
    db.flush()
    logger.info("Created admin user %s", settings.ADMIN_EMAIL)
    return admin
