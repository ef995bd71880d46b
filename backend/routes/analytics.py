"""
Routes Analytics - Tableau de bord, tendances et exports
"""

from fastapi import APIRouter, Depends, Query
from datetime import datetime, timezone
from typing import Optional

from config import db, created_at_range
from services.permissions import require_permission
from services.activity_logger import log_activity
from services.analytics import (
    TREND_RANGES,
    monthly_trends,
    limit_trends,
    predict_next_month,
    trends_with_growth,
    conversion_rate,
    lead_sources,
    visit_stats,
    priority_distribution,
    status_distribution,
)
from services.csv_export import format_analytics_for_export
from routes.leads import csv_response

router = APIRouter(prefix="/analytics", tags=["Analytics"])

ANALYTICS_FIELDS = {
    "_id": 0, "id": 1, "status": 1, "priority": 1, "source": 1,
    "score": 1, "created_at": 1, "electricity_bill": 1, "budget": 1,
}


async def load_overview(date_from: Optional[str] = None, date_to: Optional[str] = None) -> dict:
    query = created_at_range(date_from, date_to)
    leads = await db.leads.find(query, ANALYTICS_FIELDS).to_list(50000)
    visits = await db.page_visits.find(query, {"_id": 0}).to_list(100000)

    return {
        "conversion_rate": conversion_rate(leads),
        "lead_sources": lead_sources(leads),
        "visit_stats": visit_stats(visits),
        "priority_distribution": priority_distribution(leads),
        "status_distribution": status_distribution(leads),
    }


async def load_trends(time_range: str) -> dict:
    leads = await db.leads.find({}, ANALYTICS_FIELDS).to_list(50000)
    trends = limit_trends(monthly_trends(leads), time_range)
    return {
        "range": time_range if time_range in TREND_RANGES else "1y",
        "trends": trends_with_growth(trends),
        "prediction": predict_next_month(trends),
    }


@router.get("/dashboard")
async def dashboard(user: dict = Depends(require_permission("dashboard.view"))):
    """Compteurs de la page d'accueil du back-office"""
    today = datetime.now(timezone.utc).strftime("%Y-%m-%d")

    total = await db.leads.count_documents({})
    new_today = await db.leads.count_documents({"created_at": {"$gte": today}})
    hot = await db.leads.count_documents({"priority": "HOT", "status": {"$nin": ["converted", "lost"]}})
    converted = await db.leads.count_documents({"status": "converted"})
    to_process = await db.leads.count_documents({"status": "new"})

    recent = await db.leads.find({}, {"_id": 0}).sort("created_at", -1).to_list(5)

    return {
        "total_leads": total,
        "new_today": new_today,
        "hot_leads": hot,
        "new_leads": to_process,
        "converted_leads": converted,
        "conversion_rate": round(converted / total * 100, 1) if total else 0,
        "recent_leads": recent,
    }


@router.get("/overview")
async def overview(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    user: dict = Depends(require_permission("analytics.view"))
):
    return await load_overview(date_from, date_to)


@router.get("/trends")
async def trends(time_range: str = Query("6m", alias="range"), user: dict = Depends(require_permission("analytics.view"))):
    """Tendances mensuelles 3m / 6m / 1y + prévision du mois suivant"""
    return await load_trends(time_range)


# ==================== EXPORTS ====================

@router.get("/export")
async def export_overview(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    user: dict = Depends(require_permission("analytics.view"))
):
    data = await load_overview(date_from, date_to)
    response = csv_response(format_analytics_for_export(data), "analytics")
    await log_activity(user, "export", "analytics")
    return response


@router.get("/trends/export")
async def export_trends(time_range: str = Query("6m", alias="range"), user: dict = Depends(require_permission("analytics.view"))):
    data = await load_trends(time_range)
    rows = [
        {
            "Mois": trend["label"],
            "Nouveaux leads": trend["new_leads"],
            "Contactés": trend["contacted"],
            "Qualifiés": trend["qualified"],
            "Convertis": trend["converted"],
            "Croissance (%)": trend["growth"],
        }
        for trend in data["trends"]
    ]
    response = csv_response(rows, f"tendances_{data['range']}")
    await log_activity(user, "export", "analytics", details={"range": data["range"]})
    return response
