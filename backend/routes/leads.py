"""
Routes pour les Leads (back-office)
"""

from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import Response
from typing import Optional
import re
import uuid

from models import LeadStatusUpdate, InteractionCreate, LeadUpdate
from config import db, now_iso, normalize_phone_sn, created_at_range
from services.permissions import require_permission
from services.activity_logger import log_activity
from services.lead_scoring import (
    calculate_lead_score,
    estimate_commercial_potential,
    analyze_lead_needs,
    get_lead_insights,
    get_score_color,
    get_score_gradient,
)
from services.csv_export import (
    to_csv,
    export_filename,
    format_leads_for_export,
    format_leads_with_analytics_for_export,
    EmptyExportError,
)

router = APIRouter(prefix="/leads", tags=["Leads"])


def build_leads_query(
    status: Optional[str] = None,
    site_type: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> dict:
    query = {}

    if status:
        query["status"] = status
    if site_type:
        query["site_type"] = site_type
    if priority:
        query["priority"] = priority.upper()
    if search:
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        query["$or"] = [
            {"company_name": pattern},
            {"contact_name": pattern},
            {"email": pattern},
            {"phone": pattern},
        ]
    query.update(created_at_range(date_from, date_to))

    return query


def csv_response(rows: list, name: str) -> Response:
    try:
        content = to_csv(rows)
    except EmptyExportError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(name)}"'}
    )


async def get_lead_or_404(lead_id: str) -> dict:
    lead = await db.leads.find_one({"id": lead_id}, {"_id": 0})
    if not lead:
        raise HTTPException(status_code=404, detail="Lead non trouvé")
    return lead


async def get_interactions(lead_id: str) -> list:
    return await db.lead_interactions.find({"lead_id": lead_id}, {"_id": 0}) \
        .sort("created_at", -1) \
        .to_list(500)


# ==================== LISTE / EXPORT ====================

@router.get("")
async def list_leads(
    status: Optional[str] = None,
    site_type: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
    user: dict = Depends(require_permission("leads.view"))
):
    query = build_leads_query(status, site_type, priority, search, date_from, date_to)
    limit = min(limit, 500)

    leads = await db.leads.find(query, {"_id": 0}) \
        .sort("created_at", -1) \
        .skip(skip) \
        .limit(limit) \
        .to_list(limit)
    total = await db.leads.count_documents(query)

    return {"leads": leads, "total": total, "skip": skip, "limit": limit}


@router.get("/export")
async def export_leads(
    include_interactions: bool = False,
    status: Optional[str] = None,
    site_type: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    user: dict = Depends(require_permission("leads.export"))
):
    """Export CSV des leads filtrés, avec ou sans interactions."""
    query = build_leads_query(status, site_type, priority, search, date_from, date_to)
    leads = await db.leads.find(query, {"_id": 0}).sort("created_at", -1).to_list(10000)

    if include_interactions and leads:
        interactions = await db.lead_interactions.find(
            {"lead_id": {"$in": [lead["id"] for lead in leads]}},
            {"_id": 0}
        ).sort("created_at", -1).to_list(50000)

        by_lead = {}
        for interaction in interactions:
            by_lead.setdefault(interaction["lead_id"], []).append(interaction)
        for lead in leads:
            lead["interactions"] = by_lead.get(lead["id"], [])

        rows = format_leads_with_analytics_for_export(leads, include_interactions=True)
        name = "leads_avec_interactions"
    else:
        rows = format_leads_for_export(leads)
        name = "leads"

    response = csv_response(rows, name)

    await log_activity(
        user=user,
        action="export",
        entity_type="lead",
        details={"count": len(rows), "include_interactions": include_interactions}
    )
    return response


# ==================== DÉTAIL ====================

@router.get("/{lead_id}")
async def get_lead(lead_id: str, user: dict = Depends(require_permission("leads.view"))):
    """Lead + interactions + analyse commerciale."""
    lead = await get_lead_or_404(lead_id)

    return {
        "lead": lead,
        "interactions": await get_interactions(lead_id),
        "score": calculate_lead_score(lead),
        "commercial_potential": estimate_commercial_potential(lead),
        "needs_analysis": analyze_lead_needs(lead),
        "insights": get_lead_insights(lead),
        "display": {"color": get_score_color(lead.get("score", 0)), "gradient": get_score_gradient(lead.get("score", 0))},
    }


@router.put("/{lead_id}")
async def update_lead(lead_id: str, data: LeadUpdate, user: dict = Depends(require_permission("leads.edit"))):
    lead = await get_lead_or_404(lead_id)

    update_data = data.model_dump(exclude_none=True)

    if "phone" in update_data:
        status, phone_result, quality = normalize_phone_sn(update_data["phone"])
        if status == "invalid":
            raise HTTPException(status_code=400, detail=f"Téléphone invalide: {phone_result}")
        update_data["phone"] = phone_result
        update_data["phone_quality"] = quality

    if "email" in update_data:
        update_data["email"] = update_data["email"].lower().strip()

    if "budget" in update_data:
        score = calculate_lead_score({**lead, "budget": update_data["budget"]})
        update_data["score"] = score["total"]
        update_data["score_breakdown"] = score["breakdown"]
        update_data["priority"] = score["priority"]

    update_data["updated_at"] = now_iso()
    await db.leads.update_one({"id": lead_id}, {"$set": update_data})

    await log_activity(
        user=user,
        action="update",
        entity_type="lead",
        entity_id=lead_id,
        entity_name=lead.get("company_name") or lead.get("contact_name"),
        details={k: v for k, v in update_data.items() if k not in ("updated_at", "score_breakdown")}
    )

    return {"success": True, "lead": await get_lead_or_404(lead_id)}


@router.put("/{lead_id}/status")
async def update_lead_status(
    lead_id: str,
    data: LeadStatusUpdate,
    user: dict = Depends(require_permission("leads.edit"))
):
    """Change le statut, trace une interaction status_change et notifie."""
    lead = await get_lead_or_404(lead_id)
    old_status = lead.get("status", "new")
    new_status = data.status.value

    if old_status == new_status:
        return {"success": True, "lead": lead, "changed": False}

    await db.leads.update_one(
        {"id": lead_id},
        {"$set": {"status": new_status, "updated_at": now_iso()}}
    )

    interaction = {
        "id": str(uuid.uuid4()),
        "lead_id": lead_id,
        "interaction_type": "status_change",
        "notes": data.notes or f"Statut: {old_status} → {new_status}",
        "metadata": {"old_status": old_status, "new_status": new_status},
        "created_by": user.get("email"),
        "created_at": now_iso()
    }
    await db.lead_interactions.insert_one(interaction)

    from services.notifier import notify_status_change
    await notify_status_change(lead, old_status, new_status, user)

    await log_activity(
        user=user,
        action="update",
        entity_type="lead",
        entity_id=lead_id,
        entity_name=lead.get("company_name") or lead.get("contact_name"),
        details={"status": {"old": old_status, "new": new_status}}
    )

    return {"success": True, "lead": await get_lead_or_404(lead_id), "changed": True}


@router.post("/{lead_id}/interactions")
async def add_interaction(
    lead_id: str,
    data: InteractionCreate,
    user: dict = Depends(require_permission("leads.edit"))
):
    lead = await get_lead_or_404(lead_id)

    interaction = {
        "id": str(uuid.uuid4()),
        "lead_id": lead_id,
        "interaction_type": data.interaction_type.value,
        "notes": data.notes,
        "created_by": user.get("email"),
        "created_at": now_iso()
    }
    await db.lead_interactions.insert_one(interaction)
    interaction.pop("_id", None)

    await db.leads.update_one({"id": lead_id}, {"$set": {"updated_at": now_iso()}})

    from services.notifier import notify_interaction
    await notify_interaction(lead, interaction, user)

    return {"success": True, "interaction": interaction}


@router.delete("/{lead_id}")
async def delete_lead(lead_id: str, user: dict = Depends(require_permission("leads.delete"))):
    lead = await get_lead_or_404(lead_id)

    await db.leads.delete_one({"id": lead_id})
    await db.lead_interactions.delete_many({"lead_id": lead_id})
    await db.notifications.delete_many({"lead_id": lead_id})
    await db.crm_sync_queue.delete_many({"lead_id": lead_id})

    await log_activity(
        user=user,
        action="delete",
        entity_type="lead",
        entity_id=lead_id,
        entity_name=lead.get("company_name") or lead.get("contact_name")
    )

    return {"success": True}
