"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Sakkanal - Modèle Lead & Questionnaire                                      ║
║                                                                              ║
║  RÈGLES:                                                                     ║
║  1. Un lead est TOUJOURS inséré si téléphone valide                          ║
║  2. Le score est calculé à l'insertion puis à chaque modification            ║
║  3. Statuts: new, contacted, qualified, converted, lost                      ║
║  4. Montants en FCFA, facture électrique MENSUELLE                           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from enum import Enum


class LeadStatus(str, Enum):
    NEW = "new"                # Nouveau lead, pas encore contacté
    CONTACTED = "contacted"    # Premier contact effectué
    QUALIFIED = "qualified"    # Besoin confirmé
    CONVERTED = "converted"    # Devenu client
    LOST = "lost"              # Abandonné


class InteractionType(str, Enum):
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    NOTE = "note"
    STATUS_CHANGE = "status_change"


class QuestionnaireInput(BaseModel):
    """
    Réponses au questionnaire public.
    budget=0 signifie "non précisé".
    """
    site_type: str
    electricity_bill: float = Field(gt=0)  # Facture mensuelle FCFA
    installation_power: float = Field(default=0, ge=0)  # kW
    measurement_points: int = Field(default=0, ge=0)
    budget: float = Field(default=0, ge=0)
    zones_to_monitor: List[str] = []
    specific_needs: List[str] = []

    @field_validator("site_type")
    @classmethod
    def validate_site_type(cls, v):
        if not v or not v.strip():
            raise ValueError("Type de site requis")
        return v.strip()


class ContactInfo(BaseModel):
    """Coordonnées saisies dans le formulaire de capture"""
    full_name: str
    email: str
    phone: str = ""
    company: Optional[str] = ""


class LeadPublicSubmit(BaseModel):
    """
    Lead soumis via le formulaire public (après la page résultats)
    """
    contact: ContactInfo
    questionnaire: QuestionnaireInput
    selected_scenario_id: Optional[str] = None
    recommended_scenarios: List[Dict[str, Any]] = []
    prediction_id: Optional[str] = None

    # Tracking
    source: Optional[str] = "site_web"
    visitor_id: Optional[str] = ""


class ReportRequest(BaseModel):
    """Demande de rapport PDF"""
    scenario_id: str
    contact: ContactInfo
    questionnaire: QuestionnaireInput


class LeadStatusUpdate(BaseModel):
    status: LeadStatus
    notes: Optional[str] = ""


class InteractionCreate(BaseModel):
    interaction_type: InteractionType
    notes: str = ""


class LeadUpdate(BaseModel):
    """Modification d'un lead par admin"""
    company_name: Optional[str] = None
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    budget: Optional[float] = None
    notes_admin: Optional[str] = None


class VisitTrack(BaseModel):
    page: str
    visitor_id: Optional[str] = ""
    referrer: Optional[str] = ""
    user_agent: Optional[str] = ""
