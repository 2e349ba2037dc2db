from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from whistlebox.api.deps import get_complaint_service, get_current_admin
from whistlebox.schemas.complaint import (
    ComplaintSummary,
    IntegrityReport,
    ReconcileReport,
    StatusUpdateRequest,
    StatusUpdateResponse,
)
from whistlebox.services.auth import AdminPrincipal
from whistlebox.services.complaint_service import ComplaintService

router = APIRouter(dependencies=[Depends(get_current_admin)])


@router.get("", response_model=List[ComplaintSummary])
async def list_complaints(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    service: ComplaintService = Depends(get_complaint_service),
):
    """
    Non-sensitive summaries, newest first.
    """
    return await service.admin_list(limit=limit)


@router.put("/{complaint_id}/status", response_model=StatusUpdateResponse)
async def update_complaint_status(
    complaint_id: str,
    request: StatusUpdateRequest,
    admin: AdminPrincipal = Depends(get_current_admin),
    service: ComplaintService = Depends(get_complaint_service),
):
    return await service.admin_update_status(complaint_id, request.status, actor=admin.sub)


@router.get("/{complaint_id}/integrity", response_model=IntegrityReport)
async def check_complaint_integrity(
    complaint_id: str,
    admin: AdminPrincipal = Depends(get_current_admin),
    service: ComplaintService = Depends(get_complaint_service),
):
    """
    Recompute the commitment from the decrypted content and compare.
    """
    return await service.verify_integrity(complaint_id, actor=admin.sub)


@router.post("/anchors/reconcile", response_model=ReconcileReport)
async def reconcile_anchors(
    limit: int = Query(50, ge=1, le=500),
    service: ComplaintService = Depends(get_complaint_service),
):
    return await service.reconcile_anchors(limit=limit)
