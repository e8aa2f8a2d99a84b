"""Idempotent, all-or-nothing bootstrap of roles, permissions and the admin user."""

import logging

from sqlalchemy.orm import Session

from fisca.core.exceptions import BootstrapFailure
from fisca.db.seeds.seed_admin import seed_admin
from fisca.db.seeds.seed_roles import seed_roles
from fisca.models.role import Role, Permission, RolePermission
from fisca.models.user import User
from fisca.models.user_access import UserAccess

logger = logging.getLogger("fisca.seeds")


def _wipe(db: Session) -> None:
    # Children first so no foreign key is left dangling mid-transaction.
    db.query(UserAccess).delete()
    db.query(User).update({User.created_by: None})
    db.query(User).delete()
    db.query(RolePermission).delete()
    db.query(Permission).delete()
    db.query(Role).delete()
    db.flush()


def bootstrap(db: Session, reset: bool = False) -> bool:
    """Seed the authorization model.

    Without ``reset`` this is a no-op once roles exist. With ``reset`` every
    user, grant, role and permission is wiped and recreated. Either way the
    work happens in a single transaction.

    Returns:
        True when rows were written, False on the no-op path.

    Raises:
        BootstrapFailure: If any statement fails; the transaction is rolled back.
    """
    try:
        if not reset and db.query(Role.id).first() is not None:
            logger.info("Roles already seeded, nothing to do")
            return False

        if reset:
            logger.warning("Resetting users, grants, roles and permissions")
            _wipe(db)

        seed_roles(db)
        seed_admin(db)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("Bootstrap failed, rolled back: %s", e)
        raise BootstrapFailure(f"Bootstrap failed: {e}") from e

    logger.info("Bootstrap complete")
    return True
