"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Sakkanal - Recommandation de scénarios                                      ║
║                                                                              ║
║  Trois barèmes coexistent:                                                   ║
║  1. match_scenarios         → page résultats (repli si la prédiction échoue) ║
║  2. compatibility_score     → page comparaison                               ║
║  3. perform_advanced_calc.  → prédiction enrichie par l'historique           ║
║                                                                              ║
║  Les scénarios sont des documents Mongo (dict), le questionnaire est le      ║
║  dict issu de QuestionnaireInput.model_dump().                               ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import math
import uuid
from typing import List, Dict, Optional

from config import db, now_iso, round_half_up

logger = logging.getLogger("scenario_matching")

TOP_N = 3
HISTORY_LIMIT = 50
HISTORY_BILL_TOLERANCE = 0.3

SAVINGS_FLOOR = 10
SAVINGS_CEILING = 45

# Points par besoin spécifique et par catégorie
NEEDS_MAPPING = {
    "IA prédictive": {"premium": 5, "standard": 2, "economique": 0},
    "Pilotage à distance": {"premium": 3, "standard": 3, "economique": 1},
    "Maintenance prédictive": {"premium": 4, "standard": 1, "economique": 0},
    "Rapports automatiques": {"premium": 2, "standard": 2, "economique": 1},
}

ENERGY_EFFICIENCY = {"premium": 95, "standard": 85}
DEFAULT_ENERGY_EFFICIENCY = 70


class NoScenarioAvailable(Exception):
    """Aucun scénario en catalogue"""


# ==================== HELPERS ====================

def _site_type_matches(scenario: dict, form: dict) -> bool:
    return form.get("site_type") in (scenario.get("site_types") or [])


def _budget_in_range(scenario: dict, budget: float) -> bool:
    min_budget = scenario.get("min_budget") or 0
    max_budget = scenario.get("max_budget")
    return budget >= min_budget and (not max_budget or budget <= max_budget)


def monthly_savings_for(electricity_bill: float, savings_percent: float) -> float:
    return electricity_bill * savings_percent / 100


def annual_savings_for(monthly_savings: float) -> float:
    return monthly_savings * 12


# ==================== BARÈME SIMPLE ====================

def match_scenarios(form: dict, scenarios: List[dict]) -> List[dict]:
    """
    Barème simple de la page résultats.
    Retourne les 3 meilleurs: [{"scenario", "score", "match_reason"}]
    """
    budget = form.get("budget") or 0
    bill = form.get("electricity_bill") or 0
    needs = form.get("specific_needs") or []

    results = []
    for scenario in scenarios:
        score = 0
        reasons = []
        category = scenario.get("category")

        if _site_type_matches(scenario, form):
            score += 30
            reasons.append("Compatible avec votre type de site")

        if budget > 0:
            if _budget_in_range(scenario, budget):
                score += 25
                reasons.append("Correspond à votre budget")
        else:
            score += 10

        if bill > 500000 and category == "premium":
            score += 20
            reasons.append("Recommandé pour votre niveau de consommation")
        elif bill > 200000 and category == "standard":
            score += 20
            reasons.append("Optimal pour votre consommation")
        elif category == "economique":
            score += 15
            reasons.append("Solution économique adaptée")

        if "IA prédictive" in needs and category == "premium":
            score += 15
            reasons.append("Inclut intelligence artificielle")

        if "Pilotage à distance" in needs:
            score += 10
            reasons.append("Contrôle à distance disponible")

        results.append({
            "scenario": scenario,
            "score": score,
            "match_reason": ", ".join(reasons),
        })

    results.sort(key=lambda r: r["score"], reverse=True)
    return results[:TOP_N]


# ==================== PAGE COMPARAISON ====================

def compatibility_score(scenario: dict, form: dict) -> int:
    score = 0
    category = scenario.get("category")
    budget = form.get("budget") or 0
    bill = form.get("electricity_bill") or 0
    points = form.get("measurement_points") or 0

    if _site_type_matches(scenario, form):
        score += 30

    if budget > 0:
        if _budget_in_range(scenario, budget):
            score += 25
    else:
        score += 10

    if bill > 500000 and category == "premium":
        score += 25
    elif bill > 200000 and category == "standard":
        score += 20
    elif category == "economique":
        score += 15

    if points > 15 and category == "premium":
        score += 10
    elif points > 5 and category == "standard":
        score += 10

    if "Maintenance préventive" in (form.get("specific_needs") or []) and category == "premium":
        score += 10

    return score


def comparison_metrics(scenario: dict, form: dict) -> dict:
    """
    Investissement = milieu de la fourchette, ou min_budget * 1.5 sans plafond.
    roi_months est None quand le scénario n'annonce aucune économie.
    """
    min_budget = scenario.get("min_budget") or 0
    max_budget = scenario.get("max_budget")
    if max_budget:
        investment = min_budget + (max_budget - min_budget) / 2
    else:
        investment = min_budget + min_budget * 0.5

    monthly = monthly_savings_for(form.get("electricity_bill") or 0, scenario.get("estimated_savings") or 0)
    annual = annual_savings_for(monthly)
    roi_months = int(round_half_up(investment / monthly)) if monthly > 0 else None

    return {
        "initial_investment": investment,
        "monthly_savings": monthly,
        "annual_savings": annual,
        "roi_months": roi_months,
        "total_savings_5_years": annual * 5 - investment,
        "energy_efficiency": ENERGY_EFFICIENCY.get(scenario.get("category"), DEFAULT_ENERGY_EFFICIENCY),
    }


def compare_scenarios(form: dict, scenarios: List[dict], products: List[dict]) -> List[dict]:
    """Tous les scénarios enrichis, triés par compatibilité décroissante."""
    products_by_id = {p["id"]: p for p in products if p.get("id")}

    enriched = []
    for scenario in scenarios:
        product_ids = scenario.get("products") or []
        linked = [products_by_id[pid] for pid in product_ids if pid in products_by_id]
        enriched.append({
            "scenario": scenario,
            "products": linked,
            "metrics": comparison_metrics(scenario, form),
            "score": compatibility_score(scenario, form),
        })

    enriched.sort(key=lambda e: e["score"], reverse=True)
    return enriched


# ==================== PRÉDICTION ENRICHIE ====================

def perform_advanced_calculation(form: dict, scenario: dict, historical: List[dict]) -> dict:
    """
    Score d'un scénario enrichi par les projets similaires réalisés.

    Barème:
      compatibilité site   30
      budget               25 (15 si >= 70% du minimum, 10 si non précisé)
      historique           jusqu'à 25 (taux de succès * 15 + économies)
      consommation         15 (12 pour economique)
      besoins spécifiques  selon NEEDS_MAPPING
    """
    score = 0.0
    reasons = []
    category = scenario.get("category")
    budget = form.get("budget") or 0
    bill = form.get("electricity_bill") or 0
    power = form.get("installation_power") or 0
    points = form.get("measurement_points") or 0
    needs = form.get("specific_needs") or []
    min_budget = scenario.get("min_budget") or 0

    # 1. Compatibilité
    if _site_type_matches(scenario, form):
        score += 30
        reasons.append("Parfaitement adapté à votre type de site")

    # 2. Budget
    if budget > 0:
        if _budget_in_range(scenario, budget):
            score += 25
            reasons.append("Correspond parfaitement à votre budget")
        elif budget >= min_budget * 0.7:
            score += 15
            reasons.append("Budget légèrement inférieur mais réalisable")
    else:
        score += 10

    # 3. Historique
    similar = [h for h in historical if h.get("chosen_scenario_category") == category]
    avg_savings = 0.0
    if similar:
        avg_savings = sum(h.get("actual_savings_percent") or 0 for h in similar) / len(similar)
        success_rate = sum(1 for h in similar if h.get("implementation_success")) / len(similar)

        score += success_rate * 15
        score += min(avg_savings / 40 * 10, 10)

        reasons.append(f"Solution éprouvée avec {int(round_half_up(success_rate * 100))}% de succès")
        reasons.append(f"Économies moyennes constatées: {avg_savings:.1f}%")

    # 4. Consommation
    if bill > 500000 and category == "premium":
        score += 15
        reasons.append("Optimisé pour les hautes consommations")
    elif bill > 200000 and category == "standard":
        score += 15
        reasons.append("Idéal pour votre niveau de consommation")
    elif category == "economique":
        score += 12
        reasons.append("Solution économique efficace")

    # 5. Besoins spécifiques
    for need in needs:
        mapping = NEEDS_MAPPING.get(need)
        if not mapping:
            continue
        need_points = mapping.get(category, 0)
        if need_points > 0:
            score += need_points
            reasons.append(f"Inclut: {need}")

    # 6. Économies ajustées
    savings = scenario.get("estimated_savings") or 0
    if len(similar) >= 3:
        savings = savings * 0.6 + avg_savings * 0.4

    if power > 100:
        savings += 1.5
    if points > 15:
        savings += 1
    if "IA prédictive" in needs:
        savings += 2

    savings = min(max(savings, SAVINGS_FLOOR), SAVINGS_CEILING)

    # 7. ROI (savings >= 10% et facture > 0, donc monthly > 0)
    monthly = monthly_savings_for(bill, savings)
    annual = annual_savings_for(monthly)
    max_budget = scenario.get("max_budget") or min_budget * 1.5
    estimated_cost = (min_budget + max_budget) / 2
    roi = math.ceil(estimated_cost / monthly) if monthly > 0 else None

    return {
        "score": int(round_half_up(score)),
        "calculated_savings": round_half_up(savings, 1),
        "calculated_roi": roi,
        "match_reasons": reasons,
        "monthly_savings": int(round_half_up(monthly)),
        "annual_savings": int(round_half_up(annual)),
    }


def generate_personalized_advice(form: dict, top: List[dict]) -> List[dict]:
    advice = []
    if not top:
        return advice

    power = form.get("installation_power") or 0
    points = form.get("measurement_points") or 0
    bill = form.get("electricity_bill") or 0

    best_roi = top[0].get("calculated_roi")
    if best_roi is not None and best_roi <= 12:
        advice.append({
            "type": "financial",
            "title": "Retour sur investissement rapide",
            "description": f"Votre investissement sera rentabilisé en {best_roi} mois seulement",
            "impact": "Rentabilité garantie",
        })

    if power > 150:
        advice.append({
            "type": "technical",
            "title": "Installation importante détectée",
            "description": "Nos solutions sont optimisées pour les grandes puissances installées",
            "impact": "Performance maximisée",
        })

    if points < 5 and bill > 300000:
        advice.append({
            "type": "optimization",
            "title": "Optimisation des points de mesure recommandée",
            "description": "Augmentez votre couverture de mesure pour de meilleurs résultats",
            "impact": "+5 à 10% d'économies supplémentaires",
        })

    return advice


def rank_scenarios(form: dict, scenarios: List[dict], historical: List[dict]) -> List[dict]:
    """Calcule tous les scénarios et garde les 3 meilleurs."""
    scored = []
    for scenario in scenarios:
        calculation = perform_advanced_calculation(form, scenario, historical)
        scored.append({"scenario": scenario, **calculation})

    scored.sort(key=lambda s: s["score"], reverse=True)
    return scored[:TOP_N]


async def load_historical_cases(form: dict) -> List[dict]:
    """Projets réussis du même type de site, facture à ±30%."""
    bill = form.get("electricity_bill") or 0
    query = {
        "site_type": form.get("site_type"),
        "electricity_bill": {
            "$gte": bill * (1 - HISTORY_BILL_TOLERANCE),
            "$lte": bill * (1 + HISTORY_BILL_TOLERANCE),
        },
        "implementation_success": True,
    }
    return await db.ai_training_data.find(query, {"_id": 0}).to_list(HISTORY_LIMIT)


async def predict_scenarios(form: dict, lead_id: Optional[str] = None) -> Dict:
    """
    Prédiction complète: top 3 + conseils.
    La prédiction est enregistrée pour mesurer la précision plus tard;
    un échec d'enregistrement ne bloque pas la réponse.
    """
    scenarios = await db.scenarios.find({}, {"_id": 0}).to_list(500)
    if not scenarios:
        raise NoScenarioAvailable("Aucun scénario disponible")

    historical = await load_historical_cases(form)
    top = rank_scenarios(form, scenarios, historical)
    advice = generate_personalized_advice(form, top)

    best = top[0]
    prediction = {
        "id": str(uuid.uuid4()),
        "lead_id": lead_id,
        "input_data": form,
        "predicted_scenario_id": best["scenario"].get("id"),
        "predicted_savings": best["calculated_savings"],
        "predicted_roi_months": best["calculated_roi"],
        "confidence_score": best["score"] / 100,
        "actual_scenario_id": None,
        "actual_savings": None,
        "feedback_score": None,
        "created_at": now_iso(),
        "updated_at": now_iso(),
    }

    prediction_id = None
    try:
        await db.ai_predictions.insert_one(prediction)
        prediction_id = prediction["id"]
        logger.info(f"Prédiction enregistrée: {prediction_id} → {prediction['predicted_scenario_id']}")
    except Exception as e:
        logger.error(f"Erreur sauvegarde prédiction: {str(e)}")

    return {
        "scenarios": top,
        "advice": advice,
        "prediction_id": prediction_id,
        "historical_cases": len(historical),
    }
