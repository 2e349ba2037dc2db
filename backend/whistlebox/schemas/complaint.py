from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from whistlebox.models.complaint import ComplaintStatus
from whistlebox.services.ledger import AnchorStatus


class ComplaintContent(BaseModel):
    """Reporter-supplied payload. Required fields are enforced by the service."""
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    category: Optional[str] = None
    date: Optional[str] = None
    anonymous: bool = False


class SubmissionReceipt(BaseModel):
    """Returned exactly once. The PIN cannot be retrieved again."""
    complaint_id: str
    pin: str
    commitment: str
    anchor_status: AnchorStatus
    anchor_reference: Optional[str] = None


class TrackRequest(BaseModel):
    complaint_id: str = Field(..., min_length=1, max_length=64)
    pin: str = Field(..., min_length=1, max_length=32)


class TrackResponse(BaseModel):
    status: ComplaintStatus


class ComplaintSummary(BaseModel):
    id: str
    category: str
    status: ComplaintStatus
    created_at: datetime


class StatusUpdateRequest(BaseModel):
    status: str


class StatusUpdateResponse(BaseModel):
    id: str
    status: ComplaintStatus


class IntegrityReport(BaseModel):
    complaint_id: str
    commitment: str
    recomputed: str
    intact: bool
    anchor_reference: Optional[str] = None


class ReconcileReport(BaseModel):
    attempted: int
    anchored: int
    still_pending: int
