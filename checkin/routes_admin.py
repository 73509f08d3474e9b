# checkin/routes_admin.py
from fastapi import APIRouter, Body, Depends, Query

from checkin.deps import Services, get_services, require_operator
from checkin.models import DraftStatus, EditIn, RejectIn

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_operator)])


@router.get("/drafts")
def list_drafts(
    status: str = Query(default=DraftStatus.PENDING_REVIEW.value),
    services: Services = Depends(get_services),
):
    drafts = services.review.list_drafts(status)
    return {"success": True, "drafts": [d.model_dump(mode="json") for d in drafts]}


@router.post("/drafts/{draft_id}/approve")
def approve_draft(draft_id: str, services: Services = Depends(get_services)):
    draft = services.review.approve(draft_id)
    return {"success": True, "message": "Draft approved and marked as sent.", "draft": draft.model_dump(mode="json")}


@router.post("/drafts/{draft_id}/reject")
def reject_draft(
    draft_id: str,
    payload: RejectIn | None = Body(default=None),
    services: Services = Depends(get_services),
):
    draft = services.review.reject(draft_id, payload.reason if payload else None)
    return {"success": True, "message": "Draft rejected.", "draft": draft.model_dump(mode="json")}


@router.post("/drafts/{draft_id}/edit")
def edit_draft(draft_id: str, payload: EditIn, services: Services = Depends(get_services)):
    draft = services.review.edit(draft_id, payload.ai_response)
    return {"success": True, "message": "Draft updated.", "draft": draft.model_dump(mode="json")}


@router.post("/checkins/run")
def run_checkins_now(services: Services = Depends(get_services)):
    """Run one dispatch cycle inline (skipped if a cycle is already running)."""
    summary = services.scheduler.run_cycle()
    return {
        "skipped": summary.skipped,
        "aborted": summary.aborted,
        "due": summary.due,
        "sent": summary.sent,
        "failed": summary.failed,
    }
