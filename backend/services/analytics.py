"""
Sakkanal - Analytics & tendances
Fonctions pures sur des listes de documents, les routes chargent les données.
"""

from collections import Counter, OrderedDict
from typing import List, Dict, Optional

from config import round_half_up

TREND_RANGES = {"3m": 3, "6m": 6, "1y": 12}

MONTHS_FR = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]


def month_label(period: str) -> str:
    """'2025-03' -> 'mars 2025'"""
    year, month = period.split("-")
    return f"{MONTHS_FR[int(month) - 1]} {year}"


def monthly_trends(leads: List[Dict]) -> List[Dict]:
    """
    Leads groupés par mois de création (YYYY-MM), ordre croissant.
    new_leads = tous les leads du mois, les autres colonnes comptent
    le statut actuel des leads du mois.
    """
    buckets = {}
    for lead in leads:
        created_at = lead.get("created_at") or ""
        if len(created_at) < 7:
            continue
        period = created_at[:7]
        bucket = buckets.setdefault(period, {
            "period": period, "new_leads": 0, "contacted": 0, "qualified": 0, "converted": 0,
        })
        bucket["new_leads"] += 1
        status = lead.get("status")
        if status in ("contacted", "qualified", "converted"):
            bucket[status] += 1

    return [buckets[p] for p in sorted(buckets)]


def limit_trends(trends: List[Dict], time_range: str = "6m") -> List[Dict]:
    """3m/6m/1y → 3/6/12 derniers mois. Valeur inconnue = 1y."""
    return trends[-TREND_RANGES.get(time_range, 12):]


def growth_rate(current: float, previous: float) -> float:
    if previous == 0:
        return 0
    return (current - previous) / previous * 100


def predict_next_month(trends: List[Dict]) -> Optional[Dict]:
    """
    Prévision du nombre de nouveaux leads le mois prochain.
    Croissance moyenne des deux dernières transitions sur 3 mois.
    """
    if len(trends) < 3:
        return None

    recent = trends[-3:]
    avg_growth = (
        growth_rate(recent[1]["new_leads"], recent[0]["new_leads"])
        + growth_rate(recent[2]["new_leads"], recent[1]["new_leads"])
    ) / 2

    last_value = trends[-1]["new_leads"]
    if avg_growth > 0:
        confidence = "positive"
    elif avg_growth < 0:
        confidence = "negative"
    else:
        confidence = "stable"

    return {
        "value": int(round_half_up(last_value * (1 + avg_growth / 100))),
        "growth": avg_growth,
        "confidence": confidence,
    }


def trends_with_growth(trends: List[Dict]) -> List[Dict]:
    enriched = []
    for index, trend in enumerate(trends):
        growth = growth_rate(trend["new_leads"], trends[index - 1]["new_leads"]) if index > 0 else 0
        enriched.append({**trend, "label": month_label(trend["period"]), "growth": round(growth, 1)})
    return enriched


def conversion_rate(leads: List[Dict]) -> Dict:
    total = len(leads)
    converted = sum(1 for lead in leads if lead.get("status") == "converted")
    return {
        "total_leads": total,
        "converted_leads": converted,
        "conversion_rate": round(converted / total * 100, 1) if total else 0,
    }


def lead_sources(leads: List[Dict]) -> List[Dict]:
    counts = Counter(lead.get("source") or "inconnu" for lead in leads)
    return [{"source": source, "count": count} for source, count in counts.most_common()]


def visit_stats(visits: List[Dict]) -> Dict:
    visitors = {v.get("visitor_id") or v.get("ip") for v in visits}
    visitors.discard(None)
    visitors.discard("")

    by_page = OrderedDict(Counter(v.get("page") or "/" for v in visits).most_common())
    return {
        "total_visits": len(visits),
        "unique_visitors": len(visitors),
        "by_page": [{"page": page, "count": count} for page, count in by_page.items()],
    }


def priority_distribution(leads: List[Dict]) -> Dict[str, int]:
    counts = Counter(lead.get("priority") or "COLD" for lead in leads)
    return {p: counts.get(p, 0) for p in ("HOT", "WARM", "COLD")}


def status_distribution(leads: List[Dict]) -> Dict[str, int]:
    counts = Counter(lead.get("status") or "new" for lead in leads)
    return {s: counts.get(s, 0) for s in ("new", "contacted", "qualified", "converted", "lost")}
