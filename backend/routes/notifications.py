"""
Routes Notifications - Boîte de réception de l'administrateur connecté
Le front interroge GET /notifications?since=<created_at> pour les nouveautés.
"""

from fastapi import APIRouter, HTTPException, Depends
from typing import Optional

from config import db, now_iso
from services.permissions import require_permission
from services.notifier import list_notifications

router = APIRouter(prefix="/notifications", tags=["Notifications"])

MAX_NOTIFICATIONS = 50


async def get_own_notification(notification_id: str, user: dict) -> dict:
    notification = await db.notifications.find_one(
        {"id": notification_id, "admin_user_id": user["id"]},
        {"_id": 0}
    )
    if not notification:
        raise HTTPException(status_code=404, detail="Notification non trouvée")
    return notification


@router.get("")
async def get_notifications(
    unread_only: bool = False,
    since: Optional[str] = None,
    limit: int = MAX_NOTIFICATIONS,
    user: dict = Depends(require_permission("notifications.view"))
):
    limit = max(1, min(limit, MAX_NOTIFICATIONS))
    notifications = await list_notifications(user["id"], unread_only=unread_only, since=since, limit=limit)
    unread = await db.notifications.count_documents({"admin_user_id": user["id"], "is_read": False})
    return {
        "notifications": notifications,
        "unread_count": unread,
        "has_more": len(notifications) == limit,
    }


@router.get("/unread-count")
async def unread_count(user: dict = Depends(require_permission("notifications.view"))):
    count = await db.notifications.count_documents({"admin_user_id": user["id"], "is_read": False})
    return {"count": count}


@router.put("/read-all")
async def mark_all_read(user: dict = Depends(require_permission("notifications.view"))):
    result = await db.notifications.update_many(
        {"admin_user_id": user["id"], "is_read": False},
        {"$set": {"is_read": True, "read_at": now_iso()}}
    )
    return {"success": True, "updated": result.modified_count}


@router.get("/{notification_id}")
async def open_notification(notification_id: str, user: dict = Depends(require_permission("notifications.view"))):
    """Marque comme lue et retourne le lead lié avec ses interactions."""
    notification = await get_own_notification(notification_id, user)

    if not notification.get("is_read"):
        await db.notifications.update_one(
            {"id": notification_id},
            {"$set": {"is_read": True, "read_at": now_iso()}}
        )
        notification["is_read"] = True

    lead = None
    interactions = []
    if notification.get("lead_id"):
        lead = await db.leads.find_one({"id": notification["lead_id"]}, {"_id": 0})
        if lead:
            interactions = await db.lead_interactions.find({"lead_id": lead["id"]}, {"_id": 0}) \
                .sort("created_at", -1) \
                .to_list(100)

    return {"notification": notification, "lead": lead, "interactions": interactions}


@router.put("/{notification_id}/read")
async def mark_read(notification_id: str, user: dict = Depends(require_permission("notifications.view"))):
    await get_own_notification(notification_id, user)
    await db.notifications.update_one(
        {"id": notification_id},
        {"$set": {"is_read": True, "read_at": now_iso()}}
    )
    return {"success": True}


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, user: dict = Depends(require_permission("notifications.view"))):
    await get_own_notification(notification_id, user)
    await db.notifications.delete_one({"id": notification_id})
    return {"success": True}
