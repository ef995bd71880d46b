"""
Service d'envoi de leads vers les CRMs externes (HubSpot, Zoho, Salesforce...)
Gère l'envoi webhook, les erreurs, et la file d'attente de retry

Format webhook:
- POST {webhook_url}
- Headers: Authorization: Bearer {config.api_key} + config.headers
- Body: {"event": "lead.created", "source": "sakkanal", "sent_at", "lead": {...}}
"""

import httpx
import logging
import uuid
from datetime import datetime, timezone, timedelta
from typing import Dict, List, Optional
from config import db, now_iso

logger = logging.getLogger("crm_sync")

# Configuration retry
MAX_RETRY_ATTEMPTS = 5
RETRY_DELAYS = [60, 300, 900, 3600, 7200]  # 1min, 5min, 15min, 1h, 2h

WEBHOOK_TIMEOUT = 30.0

# Champs du lead transmis au CRM
LEAD_PAYLOAD_FIELDS = [
    "id", "company_name", "contact_name", "email", "phone",
    "site_type", "electricity_bill", "installation_power", "measurement_points",
    "budget", "specific_needs", "zones_to_monitor",
    "status", "score", "priority", "source", "selected_scenario_id",
    "created_at",
]


def build_payload(lead_doc: dict) -> dict:
    return {
        "event": "lead.created",
        "source": "sakkanal",
        "sent_at": now_iso(),
        "lead": {field: lead_doc.get(field) for field in LEAD_PAYLOAD_FIELDS},
    }


def build_headers(integration: dict) -> dict:
    config = integration.get("config") or {}
    headers = {"Content-Type": "application/json"}
    if config.get("api_key"):
        headers["Authorization"] = f"Bearer {config['api_key']}"
    headers.update(config.get("headers") or {})
    return headers


# ==================== ENVOI ====================

async def send_lead_to_webhook(lead_doc: dict, integration: dict) -> tuple:
    """
    Envoie un lead vers le webhook d'une intégration CRM.

    Returns:
        (status, response, should_queue)
        - status: "success", "auth_error", "validation_error", "server_error",
                  "timeout", "connection_error", "failed"
        - response: Réponse du webhook ou message d'erreur
        - should_queue: True si erreur temporaire (retry)
    """
    url = integration.get("webhook_url")
    status = "failed"
    response = None
    should_queue = False

    try:
        async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT) as client:
            resp = await client.post(
                url,
                json=build_payload(lead_doc),
                headers=build_headers(integration)
            )

            try:
                response = str(resp.json())
            except ValueError:
                response = resp.text

            if 200 <= resp.status_code < 300:
                status = "success"
                logger.info(f"Lead {lead_doc.get('id')} envoyé à {integration.get('name')}")
            elif resp.status_code in (401, 403):
                # Erreur d'auth - pas de retry
                status = "auth_error"
                logger.error(f"Erreur auth CRM {integration.get('name')}: {response}")
            elif resp.status_code in (400, 422):
                # Erreur de validation - pas de retry
                status = "validation_error"
                logger.warning(f"Erreur validation CRM {integration.get('name')}: {response}")
            elif resp.status_code >= 500:
                status = "server_error"
                should_queue = True
                logger.warning(f"Erreur serveur CRM {resp.status_code}: {url}")
            else:
                status = "failed"
                logger.warning(f"CRM rejected lead: {response}")

    except httpx.TimeoutException as e:
        status = "timeout"
        response = f"Timeout après {int(WEBHOOK_TIMEOUT)}s: {str(e)}"
        should_queue = True
        logger.warning(f"CRM timeout: {url}")

    except httpx.ConnectError as e:
        status = "connection_error"
        response = f"Erreur connexion: {str(e)}"
        should_queue = True
        logger.warning(f"CRM connection error: {url}")

    except httpx.HTTPError as e:
        status = "failed"
        response = str(e)
        should_queue = True
        logger.error(f"CRM error: {str(e)}")

    return status, response, should_queue


async def record_sync_result(lead_doc: dict, integration: dict, status: str, response: Optional[str]):
    """Trace le dernier résultat de synchro sur le lead."""
    await db.leads.update_one(
        {"id": lead_doc.get("id")},
        {"$set": {
            f"crm_sync_status.{integration['id']}": {
                "status": status,
                "response": response,
                "synced_at": now_iso(),
            },
        }}
    )


async def deliver_lead(lead_doc: dict, integration: dict) -> str:
    """Envoi + trace + mise en file si erreur temporaire."""
    status, response, should_queue = await send_lead_to_webhook(lead_doc, integration)
    await record_sync_result(lead_doc, integration, status, response)

    if should_queue:
        await add_to_queue(lead_doc, integration, reason=status, last_error=response)

    return status


# ==================== FILE D'ATTENTE ====================

async def add_to_queue(lead_doc: dict, integration: dict, reason: str = "crm_error", last_error: str = None):
    """
    Ajoute un couple (lead, intégration) à la file de retry.
    Premier retry après RETRY_DELAYS[0].
    """
    existing = await db.crm_sync_queue.find_one({
        "lead_id": lead_doc.get("id"),
        "integration_id": integration["id"],
        "status": "pending"
    }, {"_id": 0})
    if existing:
        logger.info(f"Lead {lead_doc.get('id')} déjà en queue pour {integration.get('name')}")
        return existing

    next_retry = (datetime.now(timezone.utc) + timedelta(seconds=RETRY_DELAYS[0])).isoformat()
    queue_entry = {
        "id": str(uuid.uuid4()),
        "lead_id": lead_doc.get("id"),
        "integration_id": integration["id"],
        "reason": reason,
        "attempts": 1,
        "max_attempts": MAX_RETRY_ATTEMPTS,
        "next_retry_at": next_retry,
        "status": "pending",
        "last_error": last_error,
        "created_at": now_iso(),
        "updated_at": now_iso()
    }

    await db.crm_sync_queue.insert_one(queue_entry)
    queue_entry.pop("_id", None)
    logger.info(f"Lead {lead_doc.get('id')} ajouté à la queue - raison: {reason}")
    return queue_entry


async def process_queue() -> Dict[str, int]:
    """
    Rejoue les envois en attente dont l'échéance est passée.
    Appelé par le scheduler toutes les heures.
    """
    pending = await db.crm_sync_queue.find({
        "status": "pending",
        "next_retry_at": {"$lte": now_iso()},
        "attempts": {"$lt": MAX_RETRY_ATTEMPTS}
    }, {"_id": 0}).to_list(50)

    results = {"processed": 0, "success": 0, "failed": 0, "exhausted": 0}

    for item in pending:
        lead = await db.leads.find_one({"id": item["lead_id"]}, {"_id": 0})
        integration = await db.crm_integrations.find_one({"id": item["integration_id"]}, {"_id": 0})

        if not lead or not integration:
            await db.crm_sync_queue.update_one(
                {"id": item["id"]},
                {"$set": {"status": "cancelled", "updated_at": now_iso()}}
            )
            continue

        status, response, should_retry = await send_lead_to_webhook(lead, integration)
        await record_sync_result(lead, integration, status, response)
        results["processed"] += 1

        attempts = item["attempts"] + 1

        if status == "success":
            results["success"] += 1
            await db.crm_sync_queue.update_one(
                {"id": item["id"]},
                {"$set": {"status": "success", "attempts": attempts, "updated_at": now_iso()}}
            )

        elif should_retry and attempts < MAX_RETRY_ATTEMPTS:
            results["failed"] += 1
            delay = RETRY_DELAYS[min(attempts - 1, len(RETRY_DELAYS) - 1)]
            next_retry = (datetime.now(timezone.utc) + timedelta(seconds=delay)).isoformat()
            await db.crm_sync_queue.update_one(
                {"id": item["id"]},
                {"$set": {
                    "status": "pending",
                    "attempts": attempts,
                    "next_retry_at": next_retry,
                    "last_error": response,
                    "updated_at": now_iso()
                }}
            )

        elif should_retry:
            results["exhausted"] += 1
            logger.error(f"Lead {lead['id']} abandonné après {MAX_RETRY_ATTEMPTS} tentatives vers {integration.get('name')}")
            from email_service import email_service
            email_service.send_critical_alert(
                "CRM_SYNC_EXHAUSTED",
                f"Synchro abandonnée vers {integration.get('name')}",
                {"lead_id": lead["id"], "webhook_url": integration.get("webhook_url"), "last_error": response}
            )
            await db.crm_sync_queue.update_one(
                {"id": item["id"]},
                {"$set": {
                    "status": "exhausted",
                    "attempts": attempts,
                    "last_error": response,
                    "updated_at": now_iso()
                }}
            )

        else:
            results["failed"] += 1
            await db.crm_sync_queue.update_one(
                {"id": item["id"]},
                {"$set": {
                    "status": "failed",
                    "attempts": attempts,
                    "last_error": response,
                    "updated_at": now_iso()
                }}
            )

    return results


async def get_queue_stats() -> Dict[str, int]:
    """Stats de la file d'attente."""
    stats = {}
    for status in ("pending", "success", "failed", "exhausted", "cancelled"):
        stats[status] = await db.crm_sync_queue.count_documents({"status": status})
    stats["total"] = await db.crm_sync_queue.count_documents({})
    return stats


# ==================== SYNCHRO ====================

async def push_new_lead(lead_doc: dict) -> List[dict]:
    """Envoie un lead tout juste capturé aux intégrations temps réel actives."""
    integrations = await db.crm_integrations.find(
        {"is_active": True, "sync_frequency": "realtime"},
        {"_id": 0}
    ).to_list(50)

    results = []
    for integration in integrations:
        status = await deliver_lead(lead_doc, integration)
        results.append({"integration_id": integration["id"], "status": status})
    return results


async def sync_integration(integration: dict) -> Dict:
    """
    Envoie à une intégration tous les leads créés depuis son last_sync,
    puis horodate last_sync.
    """
    query = {}
    if integration.get("last_sync"):
        query["created_at"] = {"$gt": integration["last_sync"]}

    started_at = now_iso()
    leads = await db.leads.find(query, {"_id": 0}).sort("created_at", 1).to_list(1000)

    summary = {"integration_id": integration["id"], "name": integration.get("name"), "sent": 0, "errors": 0}
    for lead in leads:
        status = await deliver_lead(lead, integration)
        if status == "success":
            summary["sent"] += 1
        else:
            summary["errors"] += 1

    await db.crm_integrations.update_one(
        {"id": integration["id"]},
        {"$set": {"last_sync": started_at, "updated_at": now_iso()}}
    )

    logger.info(
        f"[CRM_SYNC] {integration.get('name')}: {summary['sent']} envoyés, {summary['errors']} erreurs"
    )
    return summary


async def sync_integrations(frequency: str) -> List[Dict]:
    """Synchronise toutes les intégrations actives d'une fréquence donnée."""
    integrations = await db.crm_integrations.find(
        {"is_active": True, "sync_frequency": frequency},
        {"_id": 0}
    ).to_list(50)

    return [await sync_integration(integration) for integration in integrations]
