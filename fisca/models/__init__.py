"""Models package — import all models so metadata.create_all sees them."""

from fisca.models.role import Role, Permission, RolePermission, StatusEnum, ActionEnum
from fisca.models.user import User
from fisca.models.organization import Localidad, Circuito, Escuela, Mesa, LEVEL_MODELS
from fisca.models.user_access import UserAccess

__all__ = [
    "Role", "Permission", "RolePermission", "StatusEnum", "ActionEnum",
    "User", "Localidad", "Circuito", "Escuela", "Mesa", "LEVEL_MODELS",
    "UserAccess",
]
