from fastapi import APIRouter, Depends, HTTPException, status

from whistlebox.api.deps import get_complaint_service
from whistlebox.core.exceptions import NotFoundError, UnauthorizedError
from whistlebox.schemas.complaint import (
    ComplaintContent,
    SubmissionReceipt,
    TrackRequest,
    TrackResponse,
)
from whistlebox.services.complaint_service import ComplaintService

router = APIRouter()

# Same answer for an unknown ID and a wrong PIN
GENERIC_TRACK_ERROR = "Invalid complaint ID or PIN"


@router.post("/complaints", response_model=SubmissionReceipt, status_code=status.HTTP_201_CREATED)
async def submit_complaint(
    request: ComplaintContent,
    service: ComplaintService = Depends(get_complaint_service),
):
    """
    Submit a complaint. The PIN in the response is shown once and cannot be
    retrieved again.
    """
    return await service.submit(request)


@router.post("/track", response_model=TrackResponse)
async def track_complaint(
    request: TrackRequest,
    service: ComplaintService = Depends(get_complaint_service),
):
    """
    Track complaint status using complaint ID and PIN.
    """
    try:
        complaint_status = await service.track(request.complaint_id, request.pin)
    except (NotFoundError, UnauthorizedError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=GENERIC_TRACK_ERROR)
    return TrackResponse(status=complaint_status)
