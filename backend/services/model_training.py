"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Sakkanal - Panneau d'entraînement du modèle de recommandation               ║
║                                                                              ║
║  Le "modèle" est le barème de scenario_matching enrichi par l'historique     ║
║  ai_training_data. L'entraînement calcule les statistiques de l'historique   ║
║  et enregistre une version avec des métriques simulées.                      ║
║                                                                              ║
║  Une seule version active à la fois dans ai_model_metrics.                   ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Optional

from config import db, now_iso, round_half_up

logger = logging.getLogger("model_training")

# (minimum, amplitude) des métriques simulées
SIMULATED_METRIC_RANGES = {
    "accuracy": (0.85, 0.1),
    "precision": (0.83, 0.1),
    "recall": (0.87, 0.1),
    "f1": (0.85, 0.1),
    "mae": (2.0, 0.5),
}

REALTIME_WINDOW = 50
CORRECT_PREDICTION_MAX_ERROR = 5
RETRAIN_MIN_ROWS = 10
RETRAIN_WINDOW_DAYS = 30


class ModelNotFound(Exception):
    """Version de modèle inconnue"""


class LeadNotFound(Exception):
    """Lead inconnu"""


# ==================== STATISTIQUES ====================

def training_stats(rows: List[Dict]) -> Dict:
    """
    Patterns de l'historique:
    - par type de site: count, avg_savings, scenarios, most_chosen
    - par catégorie de scénario: count, avg_savings, avg_roi
    """
    site_patterns = {}
    scenario_patterns = {}

    for row in rows:
        savings = row.get("actual_savings_percent") or 0
        category = row.get("chosen_scenario_category")

        site = site_patterns.setdefault(row.get("site_type"), {
            "count": 0, "total_savings": 0, "scenarios": {},
        })
        site["count"] += 1
        site["total_savings"] += savings

        if category:
            site["scenarios"][category] = site["scenarios"].get(category, 0) + 1

            scenario = scenario_patterns.setdefault(category, {
                "count": 0, "total_savings": 0, "total_roi": 0,
            })
            scenario["count"] += 1
            scenario["total_savings"] += savings
            scenario["total_roi"] += row.get("roi_months") or 0

    for site in site_patterns.values():
        site["avg_savings"] = site["total_savings"] / site["count"]
        scenarios = site["scenarios"]
        site["most_chosen"] = max(scenarios, key=scenarios.get) if scenarios else None

    for scenario in scenario_patterns.values():
        scenario["avg_savings"] = scenario["total_savings"] / scenario["count"]
        scenario["avg_roi"] = scenario["total_roi"] / scenario["count"]

    return {
        "site_patterns": site_patterns,
        "scenario_patterns": scenario_patterns,
        "total_samples": len(rows),
    }


def simulate_metrics(rng: Optional[random.Random] = None) -> Dict[str, float]:
    rng = rng or random.Random()
    return {name: low + rng.random() * span for name, (low, span) in SIMULATED_METRIC_RANGES.items()}


def next_model_version(existing_count: int) -> str:
    return f"v{existing_count + 1}.0"


def realtime_stats(predictions: List[Dict]) -> Dict:
    """
    Précision mesurée sur les prédictions dont le résultat réel est connu.
    Prédiction correcte = écart < 5 points d'économies.
    """
    if not predictions:
        return {"message": "Aucune prédiction disponible"}

    total_error = 0.0
    correct = 0
    for prediction in predictions:
        predicted = prediction.get("predicted_savings")
        actual = prediction.get("actual_savings")
        if predicted and actual:
            error = abs(predicted - actual)
            total_error += error
            if error < CORRECT_PREDICTION_MAX_ERROR:
                correct += 1

    return {
        "total_predictions": len(predictions),
        "avg_error": round_half_up(total_error / len(predictions), 2),
        "accuracy": int(round_half_up(correct / len(predictions) * 100)),
        "last_updated": now_iso(),
    }


# ==================== PERSISTANCE ====================

async def train_model() -> Dict:
    """Nouvelle version active, les précédentes sont désactivées."""
    rows = await db.ai_training_data.find({}, {"_id": 0}).to_list(10000)
    stats = training_stats(rows)
    metrics = simulate_metrics()

    existing = await db.ai_model_metrics.count_documents({})
    version = next_model_version(existing)

    await db.ai_model_metrics.update_many({"is_active": True}, {"$set": {"is_active": False}})

    model = {
        "id": str(uuid.uuid4()),
        "model_version": version,
        "accuracy": metrics["accuracy"],
        "precision_score": metrics["precision"],
        "recall_score": metrics["recall"],
        "f1_score": metrics["f1"],
        "mean_absolute_error": metrics["mae"],
        "training_samples": stats["total_samples"],
        "last_trained_at": now_iso(),
        "is_active": True,
        "created_at": now_iso(),
    }
    await db.ai_model_metrics.insert_one(model)
    model.pop("_id", None)

    logger.info(f"[TRAINING] Modèle {version} entraîné sur {stats['total_samples']} échantillons")
    return {"model": model, "stats": stats}


async def activate_model(version: str) -> Dict:
    target = await db.ai_model_metrics.find_one({"model_version": version}, {"_id": 0})
    if not target:
        raise ModelNotFound(version)

    await db.ai_model_metrics.update_many({"is_active": True}, {"$set": {"is_active": False}})
    await db.ai_model_metrics.update_one({"model_version": version}, {"$set": {"is_active": True}})

    logger.info(f"Modèle {version} activé")
    return {"success": True, "message": f"Modèle {version} activé avec succès"}


async def get_model_metrics() -> Dict:
    active = await db.ai_model_metrics.find_one({"is_active": True}, {"_id": 0})

    predictions = await db.ai_predictions.find(
        {"actual_savings": {"$ne": None}},
        {"_id": 0}
    ).sort("created_at", -1).to_list(REALTIME_WINDOW)

    history = await db.ai_model_metrics.find({}, {"_id": 0}) \
        .sort("created_at", -1) \
        .to_list(10)

    return {
        "active_model": active,
        "realtime_stats": realtime_stats(predictions),
        "model_history": history,
    }


def training_row_from_lead(lead: dict, form: dict, category: Optional[str], outcome: dict) -> Dict:
    return {
        "id": str(uuid.uuid4()),
        "site_type": form.get("site_type") or lead.get("site_type"),
        "electricity_bill": form.get("electricity_bill") or lead.get("electricity_bill") or 0,
        "installation_power": form.get("installation_power") or lead.get("installation_power") or 0,
        "measurement_points": form.get("measurement_points") or 0,
        "budget": form.get("budget") or 0,
        "zones_count": len(form.get("zones_to_monitor") or []),
        "specific_needs": form.get("specific_needs") or [],
        "chosen_scenario_category": category,
        "actual_savings_percent": outcome["savings_percent"],
        "implementation_success": outcome.get("success", True),
        "customer_satisfaction": outcome.get("satisfaction"),
        "roi_months": outcome.get("roi_months"),
        "source": "project",
        "created_at": now_iso(),
    }


async def collect_project_data(lead_id: str, outcome: dict, now: Optional[datetime] = None) -> Dict:
    """
    Résultat réel d'un projet terminé:
    1. complète la dernière prédiction du lead
    2. ajoute une ligne d'historique
    3. signale si assez de données récentes pour réentraîner
    """
    lead = await db.leads.find_one({"id": lead_id}, {"_id": 0})
    if not lead:
        raise LeadNotFound(lead_id)

    predictions = await db.ai_predictions.find({"lead_id": lead_id}, {"_id": 0}) \
        .sort("created_at", -1) \
        .to_list(1)
    prediction = predictions[0] if predictions else None

    if prediction:
        await db.ai_predictions.update_one(
            {"id": prediction["id"]},
            {"$set": {
                "actual_scenario_id": outcome.get("scenario_id"),
                "actual_savings": outcome["savings_percent"],
                "feedback_score": outcome.get("satisfaction"),
                "updated_at": now_iso(),
            }}
        )

    form = lead.get("form_data") or (prediction or {}).get("input_data") or {}

    scenario_id = outcome.get("scenario_id") or lead.get("selected_scenario_id")
    scenario = await db.scenarios.find_one({"id": scenario_id}, {"_id": 0}) if scenario_id else None
    category = scenario.get("category") if scenario else None

    await db.ai_training_data.insert_one(training_row_from_lead(lead, form, category, outcome))

    now = now or datetime.now(timezone.utc)
    since = (now - timedelta(days=RETRAIN_WINDOW_DAYS)).isoformat()
    recent = await db.ai_training_data.count_documents({"created_at": {"$gte": since}})

    return {
        "success": True,
        "message": "Données collectées avec succès",
        "should_retrain": recent >= RETRAIN_MIN_ROWS,
        "new_data_count": recent,
    }
