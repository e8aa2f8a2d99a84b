"""Organizational levels: localidad > circuito > escuela > mesa."""

import enum
from typing import Optional

from fisca.core.exceptions import InvalidLevel


class OrgLevel(str, enum.Enum):
    """Closed set of organizational levels, ordered from widest to narrowest."""

    localidad = "localidad"
    circuito = "circuito"
    escuela = "escuela"
    mesa = "mesa"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @property
    def parent(self) -> Optional["OrgLevel"]:
        """Level one rank up, or None for localidad."""
        index = self.rank - 1
        return ORDERED_LEVELS[index - 1] if index > 0 else None

    @property
    def child(self) -> Optional["OrgLevel"]:
        """Level one rank down, or None for mesa."""
        index = self.rank - 1
        return ORDERED_LEVELS[index + 1] if index + 1 < len(ORDERED_LEVELS) else None

    @property
    def plural(self) -> str:
        return _PLURALS[self]

    @classmethod
    def parse(cls, value) -> "OrgLevel":
        """Parse a level name, accepting the plural table names the UI sends.

        Raises:
            InvalidLevel: If the value is not one of the four known levels.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for level in cls:
                if key == level.value or key == level.plural:
                    return level
        raise InvalidLevel(f"Unknown organizational level '{value}'")


ORDERED_LEVELS = (OrgLevel.localidad, OrgLevel.circuito, OrgLevel.escuela, OrgLevel.mesa)

_RANKS = {level: index + 1 for index, level in enumerate(ORDERED_LEVELS)}

_PLURALS = {
    OrgLevel.localidad: "localidades",
    OrgLevel.circuito: "circuitos",
    OrgLevel.escuela: "escuelas",
    OrgLevel.mesa: "mesas",
}


def sort_levels(levels) -> list[OrgLevel]:
    """Return the given levels ordered by rank."""
    return sorted(set(levels), key=lambda level: level.rank)
