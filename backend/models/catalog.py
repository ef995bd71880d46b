"""
Sakkanal - Modèles Catalogue (produits et scénarios)
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator
from enum import Enum


class ScenarioCategory(str, Enum):
    ECONOMIQUE = "economique"
    STANDARD = "standard"
    PREMIUM = "premium"


class ProductCreate(BaseModel):
    name: str
    category: ScenarioCategory = ScenarioCategory.ECONOMIQUE
    description: str = ""
    price: float = Field(default=0, ge=0)
    technical_specs: Dict[str, Any] = {}
    performance_data: Dict[str, Any] = {}


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[ScenarioCategory] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    technical_specs: Optional[Dict[str, Any]] = None
    performance_data: Optional[Dict[str, Any]] = None


class ScenarioCreate(BaseModel):
    """
    Scénario = bundle de produits à un niveau de prix.
    max_budget=None signifie "sans plafond".
    """
    name: str
    category: ScenarioCategory
    site_types: List[str] = []
    min_budget: float = Field(default=0, ge=0)
    max_budget: Optional[float] = Field(default=None, ge=0)
    products: List[str] = []
    estimated_savings: float = Field(ge=0, le=100)  # %
    equipment_lifespan: int = Field(default=10, ge=1)  # années
    description: str = ""

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Nom du scénario requis")
        return v.strip()

    @model_validator(mode="after")
    def check_budget_range(self):
        if self.max_budget is not None and self.max_budget < self.min_budget:
            raise ValueError("max_budget doit être supérieur ou égal à min_budget")
        return self


class ScenarioUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[ScenarioCategory] = None
    site_types: Optional[List[str]] = None
    min_budget: Optional[float] = Field(default=None, ge=0)
    max_budget: Optional[float] = Field(default=None, ge=0)
    products: Optional[List[str]] = None
    estimated_savings: Optional[float] = Field(default=None, ge=0, le=100)
    equipment_lifespan: Optional[int] = Field(default=None, ge=1)
    description: Optional[str] = None
