"""
Routes Publiques - Parcours questionnaire Sakkanal
Endpoints SANS authentification pour:
- Catalogue des scénarios
- Recommandations et comparaison
- Capture du lead
- Rapport PDF
- Tracking des visites
"""

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response
import logging
import uuid

from config import db, now_iso, timestamp, normalize_phone_sn, ascii_slug
from models import QuestionnaireInput, LeadPublicSubmit, ReportRequest, VisitTrack
from services.lead_scoring import calculate_lead_score
from services.scenario_matching import (
    predict_scenarios,
    match_scenarios,
    compare_scenarios,
    NoScenarioAvailable,
)
from services.pdf_report import SakkanalReportGenerator

router = APIRouter(prefix="/public", tags=["Public"])
logger = logging.getLogger("public")

CATEGORY_ORDER = {"economique": 0, "standard": 1, "premium": 2}


def _client_ip(request: Request) -> str:
    return request.headers.get("x-forwarded-for", request.client.host if request.client else "")


async def _all_scenarios() -> list:
    scenarios = await db.scenarios.find({}, {"_id": 0}).to_list(500)
    scenarios.sort(key=lambda s: (CATEGORY_ORDER.get(s.get("category"), 99), s.get("min_budget") or 0))
    return scenarios


# ==================== CATALOGUE ====================

@router.get("/scenarios")
async def list_public_scenarios():
    """Scénarios triés économique → standard → premium."""
    return {"scenarios": await _all_scenarios()}


# ==================== RECOMMANDATIONS ====================

@router.post("/recommendations")
async def get_recommendations(data: QuestionnaireInput):
    """
    Top 3 des scénarios pour le questionnaire.
    Si la prédiction échoue, repli sur le barème simple.
    """
    form = data.model_dump()

    try:
        result = await predict_scenarios(form)
        return {"mode": "predictive", **result}
    except NoScenarioAvailable:
        raise HTTPException(status_code=404, detail="Aucun scénario disponible")
    except Exception as e:
        logger.error(f"Erreur prédiction, repli sur le barème simple: {str(e)}")

    scenarios = await _all_scenarios()
    if not scenarios:
        raise HTTPException(status_code=404, detail="Aucun scénario disponible")

    return {
        "mode": "basic",
        "scenarios": match_scenarios(form, scenarios),
        "advice": [],
        "prediction_id": None,
    }


@router.post("/comparison")
async def compare(data: QuestionnaireInput):
    """Tous les scénarios avec produits, métriques et compatibilité."""
    scenarios = await db.scenarios.find({}, {"_id": 0}).to_list(500)
    if not scenarios:
        raise HTTPException(status_code=404, detail="Aucun scénario disponible")

    products = await db.products.find({}, {"_id": 0}).to_list(1000)
    return {"comparison": compare_scenarios(data.model_dump(), scenarios, products)}


# ==================== CAPTURE LEAD ====================

@router.post("/leads")
async def submit_lead(data: LeadPublicSubmit, request: Request):
    """
    Flow:
    1. Valider téléphone (format Sénégal)
    2. Vérifier le scénario choisi
    3. Scorer et enregistrer le lead
    4. Notifier les admins (+ email si HOT)
    5. Envoyer aux CRMs temps réel
    6. Rattacher la prédiction au lead
    """
    # 1. Téléphone
    status, phone_result, phone_quality = normalize_phone_sn(data.contact.phone)
    if status == "invalid":
        raise HTTPException(status_code=400, detail=f"Téléphone invalide: {phone_result}")

    if not data.contact.full_name.strip():
        raise HTTPException(status_code=400, detail="Nom complet requis")

    # 2. Scénario
    if data.selected_scenario_id:
        scenario = await db.scenarios.find_one({"id": data.selected_scenario_id}, {"_id": 0})
        if not scenario:
            raise HTTPException(status_code=404, detail="Scénario non trouvé")

    # 3. Lead
    form = data.questionnaire.model_dump()
    score = calculate_lead_score(form)

    lead_doc = {
        "id": str(uuid.uuid4()),
        # Contact
        "company_name": (data.contact.company or "").strip(),
        "contact_name": data.contact.full_name.strip(),
        "email": data.contact.email.lower().strip(),
        "phone": phone_result,
        "phone_quality": phone_quality,
        # Questionnaire
        "site_type": form["site_type"],
        "electricity_bill": form["electricity_bill"],
        "installation_power": form["installation_power"],
        "measurement_points": form["measurement_points"],
        "budget": form["budget"],
        "specific_needs": form["specific_needs"],
        "zones_to_monitor": form["zones_to_monitor"],
        "form_data": form,
        # Recommandation
        "selected_scenario_id": data.selected_scenario_id,
        "recommended_scenarios": data.recommended_scenarios,
        # Scoring
        "score": score["total"],
        "score_breakdown": score["breakdown"],
        "priority": score["priority"],
        # Suivi
        "status": "new",
        "source": data.source or "site_web",
        "visitor_id": data.visitor_id or "",
        "ip": _client_ip(request),
        "register_date": timestamp(),
        "crm_sync_status": {},
        "created_at": now_iso(),
        "updated_at": now_iso(),
    }

    await db.leads.insert_one(lead_doc)
    lead_doc.pop("_id", None)
    logger.info(f"Lead {lead_doc['id']} enregistré - score {score['total']} ({score['priority']})")

    # 4. Notifications
    from services.notifier import notify_new_lead
    await notify_new_lead(lead_doc)

    if score["priority"] == "HOT":
        from email_service import email_service
        email_service.send_hot_lead_alert(lead_doc)

    # 5. CRMs temps réel
    from services.crm_sync import push_new_lead
    crm_results = await push_new_lead(lead_doc)

    # 6. Prédiction
    if data.prediction_id:
        await db.ai_predictions.update_one(
            {"id": data.prediction_id},
            {"$set": {"lead_id": lead_doc["id"], "updated_at": now_iso()}}
        )

    return {
        "success": True,
        "lead_id": lead_doc["id"],
        "score": score["total"],
        "priority": score["priority"],
        "crm": crm_results,
    }


# ==================== RAPPORT PDF ====================

def report_filename(full_name: str, ts: int) -> str:
    """Rapport_Sakkanal_<nom>_<timestamp>.pdf, nom réduit à l'ASCII"""
    return f"Rapport_Sakkanal_{ascii_slug(full_name, 'Client')}_{ts}.pdf"


@router.post("/report")
async def download_report(data: ReportRequest):
    if not data.contact.full_name.strip() or not data.contact.email.strip():
        raise HTTPException(status_code=400, detail="Nom complet et email requis")

    scenario = await db.scenarios.find_one({"id": data.scenario_id}, {"_id": 0})
    if not scenario:
        raise HTTPException(status_code=404, detail="Scénario non trouvé")

    pdf_bytes = SakkanalReportGenerator().generate(
        scenario,
        data.contact.model_dump(),
        data.questionnaire.model_dump()
    )

    filename = report_filename(data.contact.full_name, timestamp())
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


# ==================== TRACKING ====================

@router.post("/visits")
async def track_visit(data: VisitTrack, request: Request):
    visit = {
        "id": str(uuid.uuid4()),
        "page": data.page,
        "visitor_id": data.visitor_id or "",
        "referrer": data.referrer or "",
        "user_agent": data.user_agent or request.headers.get("user-agent", ""),
        "ip": _client_ip(request),
        "created_at": now_iso()
    }

    await db.page_visits.insert_one(visit)

    return {"success": True, "visit_id": visit["id"]}
