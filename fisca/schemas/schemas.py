"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Any
from datetime import datetime

from fisca.core.levels import OrgLevel


# ---- Auth ----
class LoginRequest(BaseModel):
    email: str = Field(..., min_length=4)
    password: str = Field(..., min_length=4)

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Optional["UserOut"] = None


# ---- Access levels ----
class AccessLevelIn(BaseModel):
    entity_type: str
    entity_id: int = Field(..., ge=1)

    @field_validator("entity_type")
    @classmethod
    def known_level(cls, value: str) -> str:
        return OrgLevel.parse(value).value

class AccessGrantOut(BaseModel):
    id: int
    entity_type: str
    entity_id: int
    entity_name: Optional[str] = None
    parent_id: Optional[int] = None
    status: str = "active"

class LevelSlotOut(BaseModel):
    entity_type: str
    multiple: bool


# ---- Roles & permissions ----
class PermissionOut(BaseModel):
    id: int
    name: str
    display_name: str
    entity: str
    action: str
    is_system: bool

    class Config:
        from_attributes = True

class RoleOut(BaseModel):
    id: int
    name: str
    display_name: str
    description: Optional[str] = None
    rank: int
    is_system: bool
    status: str

    class Config:
        from_attributes = True

class RoleDetailOut(RoleOut):
    permissions: List[PermissionOut] = []


# ---- User ----
def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None

class UserOut(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    dni: Optional[str] = None
    telefono: Optional[str] = None
    role: Optional[str] = None
    role_id: int
    status: str
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    access_levels: List[AccessGrantOut] = []

class UserCreate(BaseModel):
    email: str = Field(..., min_length=4, max_length=255)
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    dni: Optional[str] = Field(None, max_length=20)
    telefono: Optional[str] = Field(None, max_length=30)
    role_id: int = Field(..., ge=1)
    access_levels: List[AccessLevelIn] = []

    @field_validator("dni", "telefono")
    @classmethod
    def blank_is_none(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)

class UserUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    dni: Optional[str] = Field(None, max_length=20)
    telefono: Optional[str] = Field(None, max_length=30)
    password: Optional[str] = Field(None, min_length=6)
    status: Optional[str] = Field(None, pattern="^(active|inactive)$")
    role_id: Optional[int] = Field(None, ge=1)
    access_levels: Optional[List[AccessLevelIn]] = None

    @field_validator("dni", "telefono")
    @classmethod
    def blank_is_none(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)

class UserListResponse(BaseModel):
    users: List[UserOut]
    total: int
    page: int
    page_size: int


# ---- Organization ----
class EntityCreate(BaseModel):
    nombre: Optional[str] = Field(None, min_length=1, max_length=255)
    numero: Optional[int] = Field(None, ge=1)
    direccion: Optional[str] = Field(None, max_length=255)
    parent_id: Optional[int] = Field(None, ge=1)

class EntityUpdate(BaseModel):
    nombre: Optional[str] = Field(None, min_length=1, max_length=255)
    numero: Optional[int] = Field(None, ge=1)
    direccion: Optional[str] = Field(None, max_length=255)
    parent_id: Optional[int] = Field(None, ge=1)
    status: Optional[str] = Field(None, pattern="^(active|inactive)$")

class EntityOut(BaseModel):
    id: int
    level: str
    name: str
    parent_id: Optional[int] = None
    status: str


# ---- Generic ----
class MessageResponse(BaseModel):
    message: str
    detail: Optional[Any] = None


TokenResponse.model_rebuild()
