"""
Complaint lifecycle: intake, PIN-gated tracking, admin review.

Submission order matters:
1. commitment over the normalized content
2. ledger anchor (policy decides whether a miss is fatal)
3. PIN + digest
4. encrypt sensitive fields
5. one INSERT with status Open

Tracking misses are counted per complaint id (see `TrackAttemptGuard`);
an id with too many recent misses is refused with the same error as a
wrong PIN.

Admin operations assume the caller was authenticated upstream (see
`whistlebox.api.deps.get_current_admin`); `actor` is recorded in the logs.
"""

from typing import List, Optional

from cryptography.fernet import Fernet
import structlog

from whistlebox.core.config import AnchorPolicy
from whistlebox.core.crypto import encrypt_field, decrypt_field
from whistlebox.core.exceptions import (
    AnchorUnavailable,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from whistlebox.core.time_utils import as_utc, get_utc_now
from whistlebox.db.complaint_store import ComplaintStore
from whistlebox.models.complaint import (
    Complaint,
    ComplaintStatus,
    TERMINAL_STATUSES,
    new_complaint_id,
)
from whistlebox.schemas.complaint import (
    ComplaintContent,
    ComplaintSummary,
    IntegrityReport,
    ReconcileReport,
    StatusUpdateResponse,
    SubmissionReceipt,
)
from whistlebox.services.commitment import commit, normalize, verify_commitment
from whistlebox.services.ledger import AnchorService
from whistlebox.services.pin_service import PinService
from whistlebox.services.track_guard import TrackAttemptGuard

logger = structlog.get_logger()

# Verified against on unknown ids so both failure paths do the same work
_UNUSED_DIGEST = "0" * 64


def _terminal_error(status: ComplaintStatus) -> ValidationError:
    return ValidationError(
        f"Complaint is {status.value}; its status can no longer change",
        details={"current": status.value},
    )


class ComplaintService:
    REQUIRED_FIELDS = ("title", "category", "description")

    def __init__(
        self,
        store: ComplaintStore,
        cipher: Fernet,
        anchor_service: AnchorService,
        anchor_policy: AnchorPolicy = AnchorPolicy.BEST_EFFORT,
        track_guard: Optional[TrackAttemptGuard] = None,
    ):
        self.store = store
        self.cipher = cipher
        self.anchor_service = anchor_service
        self.anchor_policy = anchor_policy
        self.track_guard = track_guard or TrackAttemptGuard()

    async def submit(self, content: ComplaintContent) -> SubmissionReceipt:
        missing = [
            field for field in self.REQUIRED_FIELDS
            if not (getattr(content, field) or "").strip()
        ]
        if missing:
            raise ValidationError("Missing required fields", details={"missing": missing})

        fields = normalize(content.model_dump())
        commitment = commit(fields)

        outcome = await self.anchor_service.anchor(commitment)
        if not outcome.anchored and self.anchor_policy == AnchorPolicy.REQUIRED:
            logger.error("submission_rejected", reason="anchor_required", anchor_status=outcome.status.value)
            raise AnchorUnavailable(f"anchor {outcome.status.value}: {outcome.error}")

        pin = PinService.generate_pin()

        complaint = Complaint(
            id=new_complaint_id(),
            title=encrypt_field(fields["title"], self.cipher),
            description=encrypt_field(fields["description"], self.cipher),
            location=encrypt_field(fields["location"], self.cipher),
            category=fields["category"],
            date=fields["date"],
            anonymous=fields["anonymous"],
            commitment=commitment,
            anchor_reference=outcome.reference,
            secret_hash=PinService.hash_pin(pin),
            status=ComplaintStatus.OPEN,
            created_at=get_utc_now(),
        )
        await self.store.create(complaint)

        logger.info(
            "complaint_submitted",
            complaint_id=complaint.id,
            category=complaint.category,
            anchor_status=outcome.status.value,
        )
        return SubmissionReceipt(
            complaint_id=complaint.id,
            pin=pin,
            commitment=commitment,
            anchor_status=outcome.status,
            anchor_reference=outcome.reference,
        )

    async def track(self, complaint_id: str, pin: str) -> ComplaintStatus:
        if complaint_id and self.track_guard.is_locked(complaint_id):
            PinService.verify_pin(pin, _UNUSED_DIGEST)
            logger.warning("track_denied", reason="locked", complaint_id=complaint_id)
            raise UnauthorizedError("too many failed attempts")

        complaint = await self.store.get(complaint_id) if complaint_id else None

        if complaint is None:
            PinService.verify_pin(pin, _UNUSED_DIGEST)
            logger.info("track_denied", reason="not_found")
            raise NotFoundError("complaint not found")

        if not PinService.verify_pin(pin, complaint.secret_hash):
            failures = self.track_guard.record_failure(complaint.id)
            logger.info("track_denied", reason="pin_mismatch", complaint_id=complaint.id, failures=failures)
            raise UnauthorizedError("pin mismatch")

        self.track_guard.reset(complaint.id)
        return complaint.status

    async def admin_list(self, limit: Optional[int] = None) -> List[ComplaintSummary]:
        complaints = await self.store.list_recent(limit=limit)
        return [
            ComplaintSummary(
                id=c.id,
                category=c.category,
                status=c.status or ComplaintStatus.OPEN,
                created_at=as_utc(c.created_at),
            )
            for c in complaints
        ]

    async def admin_update_status(
        self, complaint_id: str, new_status: str, actor: str = "system"
    ) -> StatusUpdateResponse:
        try:
            status = ComplaintStatus.parse(new_status)
        except ValueError:
            raise ValidationError(
                "Invalid status",
                details={"allowed": [s.value for s in ComplaintStatus]},
            )

        complaint = await self.store.get(complaint_id)
        if complaint is None:
            raise NotFoundError("complaint not found")

        if complaint.status == status:
            return StatusUpdateResponse(id=complaint.id, status=status)

        if complaint.status in TERMINAL_STATUSES:
            raise _terminal_error(complaint.status)

        if not await self.store.update_status(complaint.id, status):
            # Lost a race: the row was deleted or resolved after the read above
            current = await self.store.get(complaint.id)
            if current is None:
                raise NotFoundError("complaint not found")
            if current.status == status:
                return StatusUpdateResponse(id=complaint.id, status=status)
            raise _terminal_error(current.status)

        logger.info(
            "complaint_status_updated",
            complaint_id=complaint.id,
            previous=complaint.status.value,
            status=status.value,
            actor=actor,
        )
        return StatusUpdateResponse(id=complaint.id, status=status)

    async def verify_integrity(self, complaint_id: str, actor: str = "system") -> IntegrityReport:
        """
        Decrypt the stored content and check it still matches its commitment.
        """
        complaint = await self.store.get(complaint_id)
        if complaint is None:
            raise NotFoundError("complaint not found")

        content = {
            "title": decrypt_field(complaint.title, self.cipher),
            "description": decrypt_field(complaint.description, self.cipher),
            "location": decrypt_field(complaint.location, self.cipher),
            "category": complaint.category,
            "date": complaint.date,
            "anonymous": complaint.anonymous,
        }
        recomputed = commit(content)
        intact = verify_commitment(content, complaint.commitment)

        log = logger.info if intact else logger.error
        log("integrity_checked", complaint_id=complaint.id, intact=intact, actor=actor)

        return IntegrityReport(
            complaint_id=complaint.id,
            commitment=complaint.commitment,
            recomputed=recomputed,
            intact=intact,
            anchor_reference=complaint.anchor_reference,
        )

    async def reconcile_anchors(self, limit: int = 50) -> ReconcileReport:
        """
        Retry anchoring for records stored without a reference. Sequential,
        so one process never has two of its own anchors in flight here.
        """
        pending = await self.store.list_unanchored(limit=limit)
        if not self.anchor_service.enabled:
            logger.info("reconcile_skipped", reason="ledger_disabled", pending=len(pending))
            return ReconcileReport(attempted=0, anchored=0, still_pending=len(pending))

        anchored = 0
        for complaint in pending:
            outcome = await self.anchor_service.anchor(complaint.commitment)
            if not outcome.anchored:
                continue
            if await self.store.set_anchor_reference(complaint.id, outcome.reference):
                anchored += 1
                logger.info("complaint_anchored", complaint_id=complaint.id, anchor_reference=outcome.reference)

        report = ReconcileReport(
            attempted=len(pending),
            anchored=anchored,
            still_pending=len(pending) - anchored,
        )
        logger.info("reconcile_complete", **report.model_dump())
        return report
