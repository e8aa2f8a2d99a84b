"""Organizational hierarchy: Localidad -> Circuito -> Escuela -> Mesa."""

from sqlalchemy import (
    Column, Integer, String, DateTime, Enum, ForeignKey, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship

from fisca.core.levels import OrgLevel
from fisca.db.base import Base
from fisca.models.role import StatusEnum


class Localidad(Base):
    __tablename__ = "localidades"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre = Column(String(255), nullable=False, index=True)
    status = Column(Enum(StatusEnum), default=StatusEnum.active, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    circuitos = relationship("Circuito", back_populates="localidad")

    @property
    def parent_id(self):
        return None

    @property
    def display_name(self) -> str:
        return self.nombre


class Circuito(Base):
    __tablename__ = "circuitos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre = Column(String(255), nullable=False, index=True)
    localidad_id = Column(Integer, ForeignKey("localidades.id"), nullable=False, index=True)
    status = Column(Enum(StatusEnum), default=StatusEnum.active, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    localidad = relationship("Localidad", back_populates="circuitos")
    escuelas = relationship("Escuela", back_populates="circuito")

    @property
    def parent_id(self):
        return self.localidad_id

    @property
    def display_name(self) -> str:
        return self.nombre


class Escuela(Base):
    __tablename__ = "escuelas"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre = Column(String(255), nullable=False, index=True)
    direccion = Column(String(255), nullable=True)
    circuito_id = Column(Integer, ForeignKey("circuitos.id"), nullable=False, index=True)
    status = Column(Enum(StatusEnum), default=StatusEnum.active, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    circuito = relationship("Circuito", back_populates="escuelas")
    mesas = relationship("Mesa", back_populates="escuela")

    @property
    def parent_id(self):
        return self.circuito_id

    @property
    def display_name(self) -> str:
        return self.nombre


class Mesa(Base):
    __tablename__ = "mesas"
    __table_args__ = (UniqueConstraint("escuela_id", "numero", name="uq_mesa_escuela_numero"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    numero = Column(Integer, nullable=False)
    escuela_id = Column(Integer, ForeignKey("escuelas.id"), nullable=False, index=True)
    status = Column(Enum(StatusEnum), default=StatusEnum.active, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    escuela = relationship("Escuela", back_populates="mesas")

    @property
    def parent_id(self):
        return self.escuela_id

    @property
    def display_name(self) -> str:
        return f"Mesa {self.numero}"


LEVEL_MODELS = {
    OrgLevel.localidad: Localidad,
    OrgLevel.circuito: Circuito,
    OrgLevel.escuela: Escuela,
    OrgLevel.mesa: Mesa,
}

# Foreign-key column pointing at the parent level, per child model.
PARENT_COLUMNS = {
    OrgLevel.circuito: Circuito.localidad_id,
    OrgLevel.escuela: Escuela.circuito_id,
    OrgLevel.mesa: Mesa.escuela_id,
}
