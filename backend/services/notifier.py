"""
Sakkanal - Notifications du back-office
Une notification par administrateur actif, lue par polling.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from config import db, now_iso
from services.permissions import get_preset_permissions, user_has_permission

logger = logging.getLogger("notifier")

NOTIFICATION_TYPES = ("new_lead", "status_change", "interaction", "high_value", "urgent", "reminder")
NOTIFICATION_PRIORITIES = ("low", "medium", "high")

STATUS_LABELS = {
    "new": "Nouveau",
    "contacted": "Contacté",
    "qualified": "Qualifié",
    "converted": "Converti",
    "lost": "Perdu",
}

REMINDER_INACTIVE_DAYS = 7


async def notify_admins(
    notif_type: str,
    title: str,
    message: str,
    priority: str = "medium",
    lead_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> int:
    """Crée une notification pour chaque admin actif ayant notifications.view."""
    if notif_type not in NOTIFICATION_TYPES:
        raise ValueError(f"Type de notification inconnu: {notif_type}")
    if priority not in NOTIFICATION_PRIORITIES:
        raise ValueError(f"Priorité inconnue: {priority}")

    admins = await db.admin_users.find(
        {"is_active": {"$ne": False}},
        {"_id": 0, "password": 0}
    ).to_list(200)

    docs = []
    for admin in admins:
        if not admin.get("permissions"):
            admin["permissions"] = get_preset_permissions(admin.get("role", "viewer"))
        if not user_has_permission(admin, "notifications.view"):
            continue
        docs.append({
            "id": str(uuid.uuid4()),
            "admin_user_id": admin["id"],
            "lead_id": lead_id,
            "type": notif_type,
            "title": title,
            "message": message,
            "priority": priority,
            "is_read": False,
            "metadata": metadata or {},
            "read_at": None,
            "created_at": now_iso(),
        })

    if docs:
        await db.notifications.insert_many(docs)
    return len(docs)


# ==================== DÉCLENCHEURS ====================

async def notify_new_lead(lead: dict) -> int:
    name = lead.get("company_name") or lead.get("contact_name") or "Prospect"
    count = await notify_admins(
        "new_lead",
        "Nouveau lead",
        f"{name} - {lead.get('site_type', '')} (score {lead.get('score', 0)})",
        priority="medium",
        lead_id=lead["id"],
        metadata={"score": lead.get("score"), "priority": lead.get("priority")},
    )

    if lead.get("priority") == "HOT":
        count += await notify_admins(
            "high_value",
            "Lead à forte valeur",
            f"{name} a un score de {lead.get('score')}/100 - contact immédiat recommandé",
            priority="high",
            lead_id=lead["id"],
            metadata={"score": lead.get("score"), "electricity_bill": lead.get("electricity_bill")},
        )
    return count


async def notify_status_change(lead: dict, old_status: str, new_status: str, by_user: dict) -> int:
    name = lead.get("company_name") or lead.get("contact_name") or "Prospect"
    return await notify_admins(
        "status_change",
        "Changement de statut",
        f"{name}: {STATUS_LABELS.get(old_status, old_status)} → {STATUS_LABELS.get(new_status, new_status)}",
        priority="high" if new_status == "converted" else "low",
        lead_id=lead["id"],
        metadata={"old_status": old_status, "new_status": new_status, "by": by_user.get("email")},
    )


async def notify_interaction(lead: dict, interaction: dict, by_user: dict) -> int:
    name = lead.get("company_name") or lead.get("contact_name") or "Prospect"
    return await notify_admins(
        "interaction",
        "Nouvelle interaction",
        f"{by_user.get('nom') or by_user.get('email')} - {interaction['interaction_type']} avec {name}",
        priority="low",
        lead_id=lead["id"],
        metadata={"interaction_id": interaction["id"]},
    )


async def remind_inactive_leads(days: int = REMINDER_INACTIVE_DAYS, now: Optional[datetime] = None) -> int:
    """
    Rappel pour les leads ouverts sans activité depuis `days` jours.
    Un seul rappel par lead et par jour.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = (now - timedelta(days=days)).isoformat()
    today = now.strftime("%Y-%m-%d")

    leads = await db.leads.find({
        "status": {"$in": ["new", "contacted", "qualified"]},
        "updated_at": {"$lte": cutoff},
        "last_reminder_date": {"$ne": today},
    }, {"_id": 0}).to_list(500)

    for lead in leads:
        name = lead.get("company_name") or lead.get("contact_name") or "Prospect"
        await notify_admins(
            "reminder",
            "Lead sans suivi",
            f"{name} n'a pas été relancé depuis {days} jours",
            priority="high" if lead.get("priority") == "HOT" else "medium",
            lead_id=lead["id"],
            metadata={"inactive_days": days},
        )
        await db.leads.update_one({"id": lead["id"]}, {"$set": {"last_reminder_date": today}})

    if leads:
        logger.info(f"[REMINDER] {len(leads)} leads inactifs signalés")
    return len(leads)


async def list_notifications(admin_id: str, unread_only: bool = False, since: Optional[str] = None,
                             limit: int = 50) -> List[dict]:
    """
    Sans `since`: les plus récentes d'abord. Avec `since`: les plus anciennes
    d'abord, le front avance `since` page après page sans rien perdre.
    """
    query = {"admin_user_id": admin_id}
    if unread_only:
        query["is_read"] = False
    if since:
        query["created_at"] = {"$gt": since}

    return await db.notifications.find(query, {"_id": 0}) \
        .sort("created_at", 1 if since else -1) \
        .limit(limit) \
        .to_list(limit)
