"""
Journal d'activité du back-office Sakkanal
Une ligne par action d'administrateur, consultable via /api/auth/activity-logs.

Actions: login, logout, create, update, delete, export, sync, train, activate
Entités: user, lead, product, scenario, segment, crm, analytics, model, training_data
"""

import logging
import uuid
from typing import Optional

from config import db, now_iso, created_at_range

logger = logging.getLogger("activity")

MAX_LOGS_PER_PAGE = 500


async def log_activity(
    user: dict,
    action: str,
    entity_type: str,
    entity_id: str = None,
    entity_name: str = None,
    details: dict = None,
    ip_address: str = None
) -> dict:
    entry = {
        "id": str(uuid.uuid4()),
        "user_id": user.get("id", "system"),
        "user_email": user.get("email", "system"),
        "user_nom": user.get("nom", "Système"),
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "entity_name": entity_name,
        "details": details or {},
        "ip_address": ip_address,
        "created_at": now_iso()
    }
    await db.activity_logs.insert_one(entry)
    entry.pop("_id", None)

    logger.info(f"[ACTIVITY] {entry['user_email']} {action} {entity_type}:{entity_id or '-'}")
    return entry


def build_activity_query(
    user_id: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> dict:
    """Filtres cumulatifs; une date seule (YYYY-MM-DD) couvre toute la journée"""
    query = {}
    for field, value in (("user_id", user_id), ("entity_type", entity_type),
                         ("entity_id", entity_id), ("action", action)):
        if value:
            query[field] = value

    query.update(created_at_range(date_from, date_to))

    return query


async def get_activity_logs(limit: int = 100, skip: int = 0, **filters) -> dict:
    query = build_activity_query(**filters)
    limit = max(1, min(limit, MAX_LOGS_PER_PAGE))

    logs = await db.activity_logs.find(query, {"_id": 0}) \
        .sort("created_at", -1) \
        .skip(skip) \
        .limit(limit) \
        .to_list(limit)
    total = await db.activity_logs.count_documents(query)

    return {"logs": logs, "total": total, "limit": limit, "skip": skip}
