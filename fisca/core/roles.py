"""Role hierarchy, role-creation rights and the assignable-level resolver.

The tables here are read-only configuration built once at import time.
Every role's creatable set and level sets are enumerated explicitly rather
than derived from its rank; rank only defines what "strictly below" means.
"""

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Optional

from fisca.core.exceptions import AuthorizationDenied, ValidationError
from fisca.core.levels import OrgLevel, sort_levels


class RoleName(str, enum.Enum):
    admin = "admin"
    jefe_campana = "jefe_campana"
    responsable_localidad = "responsable_localidad"
    responsable_seccion = "responsable_seccion"
    responsable_circuito = "responsable_circuito"
    fiscal_general = "fiscal_general"
    fiscal_mesa = "fiscal_mesa"
    logistica = "logistica"


@dataclass(frozen=True)
class RoleSpec:
    """Static catalog entry for a system role."""

    name: RoleName
    display_name: str
    description: str
    rank: int


ROLE_CATALOG = (
    RoleSpec(RoleName.admin, "Admin",
             "Acceso completo a todo el sistema.", 1),
    RoleSpec(RoleName.jefe_campana, "Jefe de Campaña",
             "Puede leer todo y crear usuarios con roles inferiores.", 2),
    RoleSpec(RoleName.responsable_localidad, "Responsable de Localidad",
             "Puede crear usuarios con roles inferiores.", 3),
    RoleSpec(RoleName.responsable_seccion, "Responsable de Sección",
             "Puede crear usuarios con roles inferiores.", 4),
    RoleSpec(RoleName.responsable_circuito, "Responsable de Circuito",
             "Puede crear usuarios con roles inferiores.", 5),
    RoleSpec(RoleName.fiscal_general, "Fiscal General",
             "Puede crear fiscales de mesa y logística.", 6),
    RoleSpec(RoleName.fiscal_mesa, "Fiscal de Mesa",
             "Fiscaliza una mesa.", 7),
    RoleSpec(RoleName.logistica, "Logística",
             "Rol para personal de logística.", 7),
)

ROLE_RANKS = MappingProxyType({spec.name: spec.rank for spec in ROLE_CATALOG})

_R = RoleName
_L = OrgLevel

CREATABLE_ROLES = MappingProxyType({
    _R.admin: frozenset({
        _R.jefe_campana, _R.responsable_localidad, _R.responsable_seccion,
        _R.responsable_circuito, _R.fiscal_general, _R.fiscal_mesa, _R.logistica,
    }),
    _R.jefe_campana: frozenset({
        _R.responsable_localidad, _R.responsable_seccion, _R.responsable_circuito,
        _R.fiscal_general, _R.fiscal_mesa, _R.logistica,
    }),
    _R.responsable_localidad: frozenset({
        _R.responsable_seccion, _R.responsable_circuito,
        _R.fiscal_general, _R.fiscal_mesa, _R.logistica,
    }),
    _R.responsable_seccion: frozenset({
        _R.responsable_circuito, _R.fiscal_general, _R.fiscal_mesa, _R.logistica,
    }),
    _R.responsable_circuito: frozenset({_R.fiscal_general, _R.fiscal_mesa, _R.logistica}),
    _R.fiscal_general: frozenset({_R.fiscal_mesa, _R.logistica}),
    _R.fiscal_mesa: frozenset(),
    _R.logistica: frozenset(),
})

# Levels a role may hand out when creating or editing a collaborator.
GRANTABLE_LEVELS = MappingProxyType({
    _R.admin: frozenset({_L.localidad, _L.circuito, _L.escuela, _L.mesa}),
    _R.responsable_localidad: frozenset({_L.circuito, _L.escuela, _L.mesa}),
    _R.responsable_circuito: frozenset({_L.escuela, _L.mesa}),
    _R.fiscal_general: frozenset({_L.mesa}),
    _R.fiscal_mesa: frozenset(),
    _R.logistica: frozenset(),
})

# Levels a role is expected to operate within once created.
REQUIRED_LEVELS = MappingProxyType({
    _R.fiscal_mesa: frozenset({_L.mesa}),
    _R.fiscal_general: frozenset({_L.escuela}),
    _R.jefe_campana: frozenset({_L.localidad, _L.circuito, _L.escuela, _L.mesa}),
    _R.logistica: frozenset({_L.circuito, _L.escuela}),
    _R.responsable_circuito: frozenset({_L.circuito, _L.escuela}),
    _R.responsable_localidad: frozenset({_L.localidad, _L.circuito, _L.escuela}),
    _R.responsable_seccion: frozenset({_L.circuito, _L.escuela}),
})


def _check_hierarchy() -> None:
    for creator, targets in CREATABLE_ROLES.items():
        for target in targets:
            if ROLE_RANKS[target] <= ROLE_RANKS[creator]:
                raise RuntimeError(
                    f"Role '{creator.value}' is configured to create '{target.value}' "
                    f"which is not strictly below it"
                )


_check_hierarchy()


def parse_role(value) -> Optional[RoleName]:
    """Map a role name to RoleName, or None for roles outside the catalog."""
    if isinstance(value, RoleName):
        return value
    try:
        return RoleName(value)
    except ValueError:
        return None


def _role_value(role):
    return role.value if isinstance(role, RoleName) else role


def role_rank(role) -> Optional[int]:
    name = parse_role(role)
    return ROLE_RANKS[name] if name else None


def is_below(role, other) -> bool:
    """True when ``role`` is strictly less privileged than ``other``."""
    rank, other_rank = role_rank(role), role_rank(other)
    if rank is None or other_rank is None:
        return False
    return rank > other_rank


def creatable_roles(acting_role) -> frozenset:
    """Roles the acting role may assign to a new user."""
    name = parse_role(acting_role)
    return CREATABLE_ROLES.get(name, frozenset())


def can_create_role(acting_role, target_role) -> bool:
    target = parse_role(target_role)
    return target is not None and target in creatable_roles(acting_role)


def levels_grantable_by(role) -> frozenset:
    return GRANTABLE_LEVELS.get(parse_role(role), frozenset())


def levels_required_by(role) -> frozenset:
    return REQUIRED_LEVELS.get(parse_role(role), frozenset())


def is_multi_select(level: OrgLevel, target_role) -> bool:
    """Selection arity is fixed per level, except escuela for fiscal_general."""
    if level == OrgLevel.mesa:
        return False
    if level == OrgLevel.escuela:
        return parse_role(target_role) != RoleName.fiscal_general
    return True


@dataclass(frozen=True)
class LevelSlot:
    """One selectable level offered for a collaborator."""

    level: OrgLevel
    multiple: bool


def assignable_levels(acting_role, target_role) -> list[LevelSlot]:
    """Levels the acting role may offer when creating a user with ``target_role``.

    The result is the intersection of what the acting role can grant and what
    the target role operates within, ordered by level rank. An empty list is
    a valid answer: the caller must not create an unscoped collaborator.
    """
    levels = levels_grantable_by(acting_role) & levels_required_by(target_role)
    return [
        LevelSlot(level=level, multiple=is_multi_select(level, target_role))
        for level in sort_levels(levels)
    ]


@dataclass
class AccessSelection:
    """Access levels chosen for a collaborator while a form is being filled.

    Mirrors how the selector behaves: switching the target role drops every
    previous choice, single-select levels replace, multi-select levels append.
    """

    acting_role: str
    target_role: Optional[str] = None
    selected: dict = field(default_factory=dict)

    def __post_init__(self):
        self.acting_role = _role_value(self.acting_role)
        self.target_role = _role_value(self.target_role)

    def set_target_role(self, role) -> None:
        role = _role_value(role)
        if role != self.target_role:
            self.selected = {}
        self.target_role = role

    def slots(self) -> list[LevelSlot]:
        if self.target_role is None:
            return []
        return assignable_levels(self.acting_role, self.target_role)

    def select(self, level, entity_id: int) -> None:
        """Add an entity choice at ``level``.

        Raises:
            InvalidLevel: If ``level`` is not a known level.
            AuthorizationDenied: If ``level`` is not assignable for the current roles.
        """
        level = OrgLevel.parse(level)
        slot = next((s for s in self.slots() if s.level == level), None)
        if slot is None:
            raise AuthorizationDenied(
                f"Level '{level.value}' cannot be assigned by '{self.acting_role}' "
                f"to role '{self.target_role}'"
            )
        if not slot.multiple:
            self.selected[level] = [entity_id]
            return
        chosen = self.selected.setdefault(level, [])
        if entity_id not in chosen:
            chosen.append(entity_id)

    def deselect(self, level, entity_id: int) -> None:
        level = OrgLevel.parse(level)
        chosen = self.selected.get(level, [])
        if entity_id in chosen:
            chosen.remove(entity_id)
        if not chosen:
            self.selected.pop(level, None)

    def grants(self) -> list[tuple]:
        """Chosen ``(level, entity_id)`` pairs ordered by level rank, then id."""
        return [
            (level, entity_id)
            for level in sort_levels(self.selected)
            for entity_id in sorted(self.selected[level])
        ]

    @classmethod
    def from_request(cls, acting_role, target_role, items: Iterable) -> "AccessSelection":
        """Build a selection from submitted ``(entity_type, entity_id)`` pairs.

        Unlike interactive selection, a request naming two entities on a
        single-select level is rejected instead of keeping the last one.
        """
        selection = cls(acting_role=acting_role)
        selection.set_target_role(target_role)
        for entity_type, entity_id in items:
            level = OrgLevel.parse(entity_type)
            before = list(selection.selected.get(level, []))
            selection.select(level, entity_id)
            if before and not is_multi_select(level, target_role) and before != [entity_id]:
                raise ValidationError(
                    f"Role '{selection.target_role}' accepts a single {level.value}"
                )
        return selection
