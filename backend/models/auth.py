"""
Sakkanal - Modeles Auth & Administrateurs
Role + Permission hybrid model.
Roles are presets. Permissions are the real authority.
"""

from pydantic import BaseModel, field_validator
from typing import Optional, Dict

from services.permissions import VALID_ROLES


class UserLogin(BaseModel):
    email: str
    password: str


class UserCreate(BaseModel):
    email: str
    password: str
    nom: str
    role: str = "viewer"
    permissions: Optional[Dict[str, bool]] = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        if v not in VALID_ROLES:
            raise ValueError(f"Role invalide: {v}. Valides: {VALID_ROLES}")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        if len(v) < 8:
            raise ValueError("Le mot de passe doit contenir au moins 8 caractères")
        return v


class UserUpdate(BaseModel):
    nom: Optional[str] = None
    role: Optional[str] = None
    permissions: Optional[Dict[str, bool]] = None
    is_active: Optional[bool] = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        if v is not None and v not in VALID_ROLES:
            raise ValueError(f"Role invalide: {v}")
        return v
