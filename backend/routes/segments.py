"""
Routes Segments - Groupes dynamiques de leads
Le contenu d'un segment est recalculé à chaque lecture depuis ses critères.
"""

from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import Response
import uuid

from models import SegmentCreate, SegmentUpdate
from config import db, now_iso
from services.permissions import require_permission
from services.activity_logger import log_activity
from services.segments import build_segment_query, count_segment_leads, get_segment_leads
from services.csv_export import (
    BOM,
    to_csv,
    export_filename,
    format_leads_for_export,
    format_segment_for_export,
)

router = APIRouter(prefix="/segments", tags=["Segments"])


async def get_segment_or_404(segment_id: str) -> dict:
    segment = await db.lead_segments.find_one({"id": segment_id}, {"_id": 0})
    if not segment:
        raise HTTPException(status_code=404, detail="Segment non trouvé")
    return segment


@router.get("")
async def list_segments(user: dict = Depends(require_permission("segments.view"))):
    """Segments avec le nombre de leads actuel"""
    segments = await db.lead_segments.find({}, {"_id": 0}).sort("created_at", -1).to_list(200)

    for segment in segments:
        segment["lead_count"] = await count_segment_leads(segment)

    return {"segments": segments}


@router.post("")
async def create_segment(data: SegmentCreate, user: dict = Depends(require_permission("segments.manage"))):
    if not data.name.strip():
        raise HTTPException(status_code=400, detail="Nom du segment requis")

    segment = {
        "id": str(uuid.uuid4()),
        "name": data.name.strip(),
        "description": data.description,
        "criteria": data.criteria.model_dump(exclude_none=True),
        "created_by": user.get("email"),
        "created_at": now_iso(),
        "updated_at": now_iso()
    }
    await db.lead_segments.insert_one(segment)
    segment.pop("_id", None)
    segment["lead_count"] = await count_segment_leads(segment)

    await log_activity(user, "create", "segment", segment["id"], segment["name"])
    return {"success": True, "segment": segment}


@router.get("/{segment_id}")
async def get_segment(segment_id: str, user: dict = Depends(require_permission("segments.view"))):
    segment = await get_segment_or_404(segment_id)
    segment["lead_count"] = await count_segment_leads(segment)
    segment["query"] = build_segment_query(segment.get("criteria"))
    return segment


@router.put("/{segment_id}")
async def update_segment(
    segment_id: str,
    data: SegmentUpdate,
    user: dict = Depends(require_permission("segments.manage"))
):
    segment = await get_segment_or_404(segment_id)

    update_data = {}
    if data.name is not None:
        if not data.name.strip():
            raise HTTPException(status_code=400, detail="Nom du segment requis")
        update_data["name"] = data.name.strip()
    if data.description is not None:
        update_data["description"] = data.description
    if data.criteria is not None:
        update_data["criteria"] = data.criteria.model_dump(exclude_none=True)
    update_data["updated_at"] = now_iso()

    await db.lead_segments.update_one({"id": segment_id}, {"$set": update_data})
    await log_activity(user, "update", "segment", segment_id, segment.get("name"))

    updated = await get_segment_or_404(segment_id)
    updated["lead_count"] = await count_segment_leads(updated)
    return {"success": True, "segment": updated}


@router.delete("/{segment_id}")
async def delete_segment(segment_id: str, user: dict = Depends(require_permission("segments.manage"))):
    segment = await get_segment_or_404(segment_id)

    await db.lead_segments.delete_one({"id": segment_id})
    await log_activity(user, "delete", "segment", segment_id, segment.get("name"))
    return {"success": True}


@router.get("/{segment_id}/leads")
async def list_segment_leads(
    segment_id: str,
    limit: int = 200,
    user: dict = Depends(require_permission("segments.view"))
):
    segment = await get_segment_or_404(segment_id)
    leads = await get_segment_leads(segment, limit=min(limit, 1000))
    return {"segment": segment, "leads": leads, "count": len(leads)}


@router.get("/{segment_id}/export")
async def export_segment(segment_id: str, user: dict = Depends(require_permission("leads.export"))):
    """
    CSV en deux blocs séparés par une ligne vide:
    synthèse du segment, puis détail des leads.
    """
    segment = await get_segment_or_404(segment_id)
    leads = await get_segment_leads(segment)

    content = to_csv([format_segment_for_export(segment, leads)])
    if leads:
        content += "\n\n" + to_csv(format_leads_for_export(leads))[len(BOM):]

    await log_activity(
        user, "export", "segment", segment_id, segment.get("name"),
        details={"count": len(leads)}
    )

    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename("segment_" + segment["name"])}"'}
    )
