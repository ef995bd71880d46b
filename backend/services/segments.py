"""
Sakkanal - Segmentation des leads
Traduit les critères d'un segment en requête Mongo sur la collection leads.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict

from config import db


def build_segment_query(criteria: Optional[dict], now: Optional[datetime] = None) -> dict:
    """
    Critères cumulatifs (ET). Un critère absent, nul ou vide est ignoré.

    - min_score      → score >= min_score
    - status[]       → status dans la liste
    - min_budget     → budget >= min_budget
    - site_types[]   → site_type dans la liste
    - inactive_days  → updated_at <= now - inactive_days
    """
    criteria = criteria or {}
    now = now or datetime.now(timezone.utc)
    query = {}

    if criteria.get("min_score"):
        query["score"] = {"$gte": criteria["min_score"]}

    if isinstance(criteria.get("status"), list) and criteria["status"]:
        query["status"] = {"$in": criteria["status"]}

    if criteria.get("min_budget"):
        query["budget"] = {"$gte": criteria["min_budget"]}

    if isinstance(criteria.get("site_types"), list) and criteria["site_types"]:
        query["site_type"] = {"$in": criteria["site_types"]}

    if criteria.get("inactive_days"):
        inactive_since = now - timedelta(days=criteria["inactive_days"])
        query["updated_at"] = {"$lte": inactive_since.isoformat()}

    return query


async def count_segment_leads(segment: dict) -> int:
    return await db.leads.count_documents(build_segment_query(segment.get("criteria")))


async def get_segment_leads(segment: dict, limit: int = 1000) -> List[Dict]:
    query = build_segment_query(segment.get("criteria"))
    return await db.leads.find(query, {"_id": 0}).sort("created_at", -1).to_list(limit)
