"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Sakkanal - Models Package                                                   ║
║                                                                              ║
║  Exports tous les modèles pour import facile                                 ║
║  from models import LeadPublicSubmit, ScenarioCreate, SegmentCreate, etc.    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

# Auth
from .auth import (
    UserLogin,
    UserCreate,
    UserUpdate,
)

# Lead & questionnaire
from .lead import (
    LeadStatus,
    InteractionType,
    QuestionnaireInput,
    ContactInfo,
    LeadPublicSubmit,
    ReportRequest,
    LeadStatusUpdate,
    InteractionCreate,
    LeadUpdate,
    VisitTrack,
)

# Catalogue
from .catalog import (
    ScenarioCategory,
    ProductCreate,
    ProductUpdate,
    ScenarioCreate,
    ScenarioUpdate,
)

# Back-office
from .admin import (
    SegmentCriteria,
    SegmentCreate,
    SegmentUpdate,
    SyncFrequency,
    CRMIntegrationCreate,
    CRMIntegrationUpdate,
    TrainingDataCreate,
    ModelActivate,
    ProjectOutcome,
    CollectProjectData,
)

__all__ = [
    # Auth
    "UserLogin",
    "UserCreate",
    "UserUpdate",
    # Lead
    "LeadStatus",
    "InteractionType",
    "QuestionnaireInput",
    "ContactInfo",
    "LeadPublicSubmit",
    "ReportRequest",
    "LeadStatusUpdate",
    "InteractionCreate",
    "LeadUpdate",
    "VisitTrack",
    # Catalogue
    "ScenarioCategory",
    "ProductCreate",
    "ProductUpdate",
    "ScenarioCreate",
    "ScenarioUpdate",
    # Back-office
    "SegmentCriteria",
    "SegmentCreate",
    "SegmentUpdate",
    "SyncFrequency",
    "CRMIntegrationCreate",
    "CRMIntegrationUpdate",
    "TrainingDataCreate",
    "ModelActivate",
    "ProjectOutcome",
    "CollectProjectData",
]
