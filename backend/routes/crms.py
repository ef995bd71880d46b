"""
Routes pour les intégrations CRM externes (webhooks)
"""

from fastapi import APIRouter, HTTPException, Depends
import uuid

from models import CRMIntegrationCreate, CRMIntegrationUpdate
from config import db, now_iso
from services.permissions import require_permission
from services.activity_logger import log_activity
from services.crm_sync import sync_integration, process_queue, get_queue_stats

router = APIRouter(prefix="/crms", tags=["CRMs"])


def mask_secrets(integration: dict) -> dict:
    """Masque la clé API dans les réponses"""
    config = dict(integration.get("config") or {})
    api_key = config.get("api_key")
    if api_key:
        config["api_key"] = "••••" + str(api_key)[-4:]
    return {**integration, "config": config}


def check_webhook_url(url: str):
    if not url.startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="URL de webhook invalide")


async def get_integration_or_404(integration_id: str) -> dict:
    integration = await db.crm_integrations.find_one({"id": integration_id}, {"_id": 0})
    if not integration:
        raise HTTPException(status_code=404, detail="Intégration CRM non trouvée")
    return integration


@router.get("")
async def list_integrations(user: dict = Depends(require_permission("crm.manage"))):
    integrations = await db.crm_integrations.find({}, {"_id": 0}).sort("created_at", -1).to_list(100)
    return {"integrations": [mask_secrets(i) for i in integrations]}


@router.post("")
async def create_integration(data: CRMIntegrationCreate, user: dict = Depends(require_permission("crm.manage"))):
    check_webhook_url(data.webhook_url)

    integration = {
        "id": str(uuid.uuid4()),
        **data.model_dump(mode="json"),
        "last_sync": None,
        "created_at": now_iso(),
        "updated_at": now_iso()
    }
    await db.crm_integrations.insert_one(integration)
    integration.pop("_id", None)

    await log_activity(user, "create", "crm", integration["id"], integration["name"])
    return {"success": True, "integration": mask_secrets(integration)}


# Déclarée avant /{integration_id}
@router.get("/queue/stats")
async def queue_stats(user: dict = Depends(require_permission("crm.manage"))):
    return await get_queue_stats()


@router.post("/queue/process")
async def process_retry_queue(user: dict = Depends(require_permission("crm.manage"))):
    """Rejoue immédiatement les envois en attente"""
    results = await process_queue()
    return {"success": True, **results}


@router.get("/{integration_id}")
async def get_integration(integration_id: str, user: dict = Depends(require_permission("crm.manage"))):
    return mask_secrets(await get_integration_or_404(integration_id))


@router.put("/{integration_id}")
async def update_integration(
    integration_id: str,
    data: CRMIntegrationUpdate,
    user: dict = Depends(require_permission("crm.manage"))
):
    integration = await get_integration_or_404(integration_id)

    update_data = data.model_dump(mode="json", exclude_none=True)
    if "webhook_url" in update_data:
        check_webhook_url(update_data["webhook_url"])
    update_data["updated_at"] = now_iso()

    await db.crm_integrations.update_one({"id": integration_id}, {"$set": update_data})
    await log_activity(user, "update", "crm", integration_id, integration.get("name"))

    updated = await get_integration_or_404(integration_id)
    return {"success": True, "integration": mask_secrets(updated)}


@router.post("/{integration_id}/toggle")
async def toggle_integration(integration_id: str, user: dict = Depends(require_permission("crm.manage"))):
    integration = await get_integration_or_404(integration_id)
    is_active = not integration.get("is_active", False)

    await db.crm_integrations.update_one(
        {"id": integration_id},
        {"$set": {"is_active": is_active, "updated_at": now_iso()}}
    )
    await log_activity(
        user, "update", "crm", integration_id, integration.get("name"),
        details={"is_active": is_active}
    )

    return {"success": True, "is_active": is_active}


@router.post("/{integration_id}/sync")
async def manual_sync(integration_id: str, user: dict = Depends(require_permission("crm.manage"))):
    """Synchro manuelle: leads créés depuis last_sync"""
    integration = await get_integration_or_404(integration_id)
    summary = await sync_integration(integration)

    await log_activity(user, "sync", "crm", integration_id, integration.get("name"), details=summary)
    return {"success": True, **summary}


@router.delete("/{integration_id}")
async def delete_integration(integration_id: str, user: dict = Depends(require_permission("crm.manage"))):
    integration = await get_integration_or_404(integration_id)

    await db.crm_integrations.delete_one({"id": integration_id})
    await db.crm_sync_queue.update_many(
        {"integration_id": integration_id, "status": "pending"},
        {"$set": {"status": "cancelled", "updated_at": now_iso()}}
    )

    await log_activity(user, "delete", "crm", integration_id, integration.get("name"))
    return {"success": True}
