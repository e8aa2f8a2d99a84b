"""Permission catalog and the per-role permission sets derived from it."""

from dataclasses import dataclass

from fisca.core.roles import ROLE_CATALOG, RoleName, creatable_roles, parse_role

ENTITIES = (
    "users", "affiliates", "localidades", "secciones", "circuitos",
    "escuelas", "mesas", "ciudadanos", "roles", "permissions",
)

ACTIONS = ("create", "read", "update", "delete")

_ACTION_LABELS = {
    "create": "Create",
    "read": "Read",
    "update": "Update",
    "delete": "Delete",
}


@dataclass(frozen=True)
class PermissionSpec:
    name: str
    display_name: str
    entity: str
    action: str


def create_user_permission(role) -> str:
    """Name of the capability to create users holding ``role``."""
    name = parse_role(role)
    return f"users.create.{name.value if name else role}"


def _build_catalog() -> tuple:
    specs = [
        PermissionSpec(
            name=f"{entity}.{action}",
            display_name=f"{_ACTION_LABELS[action]} {entity.capitalize()}",
            entity=entity,
            action=action,
        )
        for entity in ENTITIES
        for action in ACTIONS
    ]
    for role in ROLE_CATALOG:
        if role.name == RoleName.admin:
            continue
        specs.append(PermissionSpec(
            name=create_user_permission(role.name),
            display_name=f"Create Users with {role.display_name} Role",
            entity="users",
            action="create",
        ))
    return tuple(specs)


PERMISSION_CATALOG = _build_catalog()

PERMISSION_NAMES = frozenset(spec.name for spec in PERMISSION_CATALOG)


def permissions_for_role(role) -> frozenset:
    """Permission names a role must hold.

    Admin holds the whole catalog. Every other role reads everything and may
    create users only in the roles it is configured to create.
    """
    name = parse_role(role)
    if name == RoleName.admin:
        return PERMISSION_NAMES
    reads = {spec.name for spec in PERMISSION_CATALOG if spec.action == "read"}
    creates = {create_user_permission(target) for target in creatable_roles(name)}
    return frozenset(reads | creates)
