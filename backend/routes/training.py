"""
Routes Entraînement - Historique de projets et versions du modèle
"""

from fastapi import APIRouter, HTTPException, Depends
import uuid

from models import TrainingDataCreate, ModelActivate, CollectProjectData
from config import db, now_iso
from services.permissions import require_permission
from services.activity_logger import log_activity
from services.model_training import (
    training_stats,
    train_model,
    activate_model,
    get_model_metrics,
    collect_project_data,
    ModelNotFound,
    LeadNotFound,
)

router = APIRouter(prefix="/training", tags=["Training"])


# ==================== DONNÉES ====================

@router.get("/data")
async def list_training_data(limit: int = 100, user: dict = Depends(require_permission("training.view"))):
    rows = await db.ai_training_data.find({}, {"_id": 0}) \
        .sort("created_at", -1) \
        .to_list(min(limit, 1000))
    total = await db.ai_training_data.count_documents({})
    return {"data": rows, "total": total}


@router.post("/data")
async def add_training_data(data: TrainingDataCreate, user: dict = Depends(require_permission("training.manage"))):
    """Saisie manuelle d'un projet réalisé"""
    if not data.site_type.strip() or not data.chosen_scenario.strip() or data.actual_savings is None:
        raise HTTPException(
            status_code=400,
            detail="Type de site, scénario choisi et économies réelles requis"
        )

    row = {
        "id": str(uuid.uuid4()),
        "site_type": data.site_type.strip(),
        "electricity_bill": data.electricity_bill,
        "installation_power": data.installation_power,
        "measurement_points": data.measurement_points,
        "budget": data.budget,
        "zones_count": 0,
        "specific_needs": [],
        "chosen_scenario_category": data.chosen_scenario.strip(),
        "actual_savings_percent": data.actual_savings,
        "implementation_success": data.implementation_success,
        "customer_satisfaction": data.satisfaction,
        "roi_months": data.roi_months,
        "source": "manual",
        "created_by": user.get("email"),
        "created_at": now_iso()
    }
    await db.ai_training_data.insert_one(row)
    row.pop("_id", None)

    await log_activity(user, "create", "training_data", row["id"], row["site_type"])
    return {"success": True, "data": row}


@router.get("/stats")
async def get_training_stats(user: dict = Depends(require_permission("training.view"))):
    rows = await db.ai_training_data.find({}, {"_id": 0}).to_list(10000)
    return training_stats(rows)


# ==================== MODÈLE ====================

@router.post("/train")
async def train(user: dict = Depends(require_permission("training.manage"))):
    result = await train_model()

    model = result["model"]
    await log_activity(
        user, "train", "model", model["id"], model["model_version"],
        details={"training_samples": model["training_samples"]}
    )
    return {"success": True, **result}


@router.post("/activate")
async def activate(data: ModelActivate, user: dict = Depends(require_permission("training.manage"))):
    try:
        result = await activate_model(data.model_version)
    except ModelNotFound:
        raise HTTPException(status_code=404, detail="Modèle non trouvé")

    await log_activity(user, "activate", "model", entity_name=data.model_version)
    return result


@router.get("/metrics")
async def metrics(user: dict = Depends(require_permission("training.view"))):
    return await get_model_metrics()


@router.post("/collect")
async def collect(data: CollectProjectData, user: dict = Depends(require_permission("training.manage"))):
    """Résultat réel d'un projet → prédiction complétée + historique"""
    try:
        result = await collect_project_data(data.lead_id, data.actual_data.model_dump())
    except LeadNotFound:
        raise HTTPException(status_code=404, detail="Lead non trouvé")

    await log_activity(
        user, "create", "training_data", data.lead_id,
        details={"savings_percent": data.actual_data.savings_percent}
    )
    return result
