"""
Sakkanal - Scoring des leads

Score sur 100 points:
  - Facture électrique mensuelle   30
  - Puissance installée            25
  - Budget déclaré                 20
  - Nombre de besoins spécifiques  15
  - Nombre de zones à surveiller   10

Priorité: HOT >= 70, WARM >= 45, COLD sinon.
"""

from typing import Dict, List

from config import round_half_up

HOT_THRESHOLD = 70
WARM_THRESHOLD = 45

PRIORITY_DISPLAY = {
    "HOT": ("Priorité Haute", "#e74c3c"),
    "WARM": ("Priorité Moyenne", "#f39c12"),
    "COLD": ("Priorité Basse", "#3498db"),
}

# (seuil, points) triés par seuil décroissant
ELECTRICITY_TIERS = [(500000, 30), (300000, 25), (200000, 20), (100000, 15), (50000, 10)]
POWER_TIERS = [(100, 25), (75, 20), (50, 15), (25, 10)]
BUDGET_TIERS = [(15000000, 20), (10000000, 17), (5000000, 14), (3000000, 10)]


def _tier_points(value: float, tiers: list, default: float) -> float:
    for threshold, points in tiers:
        if value >= threshold:
            return points
    return default


def priority_for(total: float) -> str:
    if total >= HOT_THRESHOLD:
        return "HOT"
    if total >= WARM_THRESHOLD:
        return "WARM"
    return "COLD"


def calculate_lead_score(lead: dict) -> dict:
    """
    Calcule le score d'un lead.

    Returns:
        {"total", "breakdown", "priority", "label", "color"}
    """
    electricity_bill = lead.get("electricity_bill") or 0
    installation_power = lead.get("installation_power") or 0
    budget = lead.get("budget") or 0

    breakdown = {
        "electricity": _tier_points(electricity_bill, ELECTRICITY_TIERS, 5),
        "power": _tier_points(installation_power, POWER_TIERS, 5),
        # Budget non renseigné = 0 point
        "budget": _tier_points(budget, BUDGET_TIERS, 5) if budget else 0,
        "needs": min(len(lead.get("specific_needs") or []) * 4, 15),
        "zones": min(len(lead.get("zones_to_monitor") or []) * 2.5, 10),
    }

    total = sum(breakdown.values())
    priority = priority_for(total)
    label, color = PRIORITY_DISPLAY[priority]

    return {
        "total": int(round_half_up(total)),
        "breakdown": breakdown,
        "priority": priority,
        "label": label,
        "color": color,
    }


def get_score_color(score: float) -> str:
    return PRIORITY_DISPLAY[priority_for(score)][1]


def get_score_gradient(score: float) -> str:
    if score >= HOT_THRESHOLD:
        return "linear-gradient(135deg, #e74c3c, #c0392b)"
    if score >= WARM_THRESHOLD:
        return "linear-gradient(135deg, #f39c12, #e67e22)"
    return "linear-gradient(135deg, #3498db, #2980b9)"


def estimate_commercial_potential(lead: dict) -> float:
    """
    Potentiel commercial estimé en FCFA.
    Une installation représente environ 2.5 fois la facture annuelle,
    plafonnée par le budget quand il est renseigné.
    """
    annual_bill = (lead.get("electricity_bill") or 0) * 12
    estimated_installation = annual_bill * 2.5

    budget = lead.get("budget") or 0
    if budget > 0:
        return min(estimated_installation, budget)

    return estimated_installation


def analyze_lead_needs(lead: dict) -> Dict[str, str]:
    """Besoin principal, scénario recommandé et urgence."""
    needs = lead.get("specific_needs") or []
    electricity_bill = lead.get("electricity_bill") or 0
    budget = lead.get("budget") or 0

    primary_need = "Surveillance générale"
    if "Réduire les coûts" in needs:
        primary_need = "Réduction des coûts énergétiques"
    elif "Optimiser la maintenance" in needs:
        primary_need = "Optimisation de la maintenance"
    elif "Accompagner une extension" in needs:
        primary_need = "Extension de capacité"
    elif "Surveillance/suivi de la consommation" in needs:
        primary_need = "Monitoring énergétique"

    score = calculate_lead_score(lead)
    if score["total"] >= HOT_THRESHOLD or budget >= 10000000:
        recommended_scenario = "premium"
    elif score["total"] >= WARM_THRESHOLD or budget >= 5000000:
        recommended_scenario = "standard"
    else:
        recommended_scenario = "economic"

    if "Réduire les coûts" in needs and electricity_bill > 300000:
        urgency = "high"
    elif "Accompagner une extension" in needs:
        urgency = "high"
    elif len(needs) >= 3:
        urgency = "medium"
    else:
        urgency = "low"

    return {
        "primary_need": primary_need,
        "recommended_scenario": recommended_scenario,
        "urgency": urgency,
    }


def get_lead_insights(lead: dict) -> List[str]:
    insights = []
    score = calculate_lead_score(lead)
    potential = estimate_commercial_potential(lead)
    analysis = analyze_lead_needs(lead)

    needs = lead.get("specific_needs") or []
    zones = lead.get("zones_to_monitor") or []

    if score["priority"] == "HOT":
        insights.append("🔥 Lead à forte valeur - Priorité de contact immédiate")

    if (lead.get("electricity_bill") or 0) > 400000:
        insights.append("💰 Facture élevée - Fort potentiel d'économies")

    if (lead.get("installation_power") or 0) > 75:
        insights.append("⚡ Installation importante - Solution complète recommandée")

    if analysis["urgency"] == "high":
        insights.append("⏱️ Besoin urgent identifié - Contact rapide nécessaire")

    if potential > 10000000:
        insights.append(f"💎 Potentiel commercial estimé: {potential / 1000000:.1f}M FCFA")

    if len(needs) >= 3:
        insights.append("🎯 Besoins multiples - Opportunité cross-sell")

    if len(zones) >= 5:
        insights.append("📊 Nombreuses zones - Installation complexe")

    return insights
