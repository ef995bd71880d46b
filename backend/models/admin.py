"""
Sakkanal - Modèles back-office: segments, intégrations CRM, entraînement
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


# ==================== SEGMENTS ====================

class SegmentCriteria(BaseModel):
    """Tous les critères sont optionnels et cumulatifs (ET)"""
    min_score: Optional[float] = None
    status: Optional[List[str]] = None
    min_budget: Optional[float] = None
    site_types: Optional[List[str]] = None
    inactive_days: Optional[int] = Field(default=None, ge=1)


class SegmentCreate(BaseModel):
    name: str
    description: str = ""
    criteria: SegmentCriteria = SegmentCriteria()


class SegmentUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    criteria: Optional[SegmentCriteria] = None


# ==================== CRM ====================

class SyncFrequency(str, Enum):
    REALTIME = "realtime"
    HOURLY = "hourly"
    DAILY = "daily"


class CRMIntegrationCreate(BaseModel):
    name: str
    webhook_url: str
    sync_frequency: SyncFrequency = SyncFrequency.REALTIME
    is_active: bool = False
    config: Dict[str, Any] = {}  # api_key, headers supplémentaires


class CRMIntegrationUpdate(BaseModel):
    name: Optional[str] = None
    webhook_url: Optional[str] = None
    sync_frequency: Optional[SyncFrequency] = None
    is_active: Optional[bool] = None
    config: Optional[Dict[str, Any]] = None


# ==================== ENTRAÎNEMENT ====================

class TrainingDataCreate(BaseModel):
    site_type: str = ""
    electricity_bill: float = 0
    installation_power: float = 0
    measurement_points: int = 0
    budget: float = 0
    chosen_scenario: str = ""
    actual_savings: Optional[float] = None
    satisfaction: Optional[int] = Field(default=None, ge=0, le=10)
    roi_months: Optional[int] = None
    implementation_success: bool = True


class ModelActivate(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_version: str


class ProjectOutcome(BaseModel):
    scenario_id: Optional[str] = None
    savings_percent: float
    success: bool = True
    satisfaction: Optional[int] = Field(default=None, ge=0, le=10)
    roi_months: Optional[int] = None


class CollectProjectData(BaseModel):
    lead_id: str
    actual_data: ProjectOutcome
