"""
Complaint Model - one row per complaint.

Set once on INSERT and never changed afterwards:
- id, commitment, secret_hash, created_at
- title / description / location (Fernet tokens, "" when empty)
- category, date, anonymous (clear, needed for listing)

Mutable:
- status (admin only)
- anchor_reference (filled at most once, only while still NULL)
"""

import enum
import uuid

from sqlalchemy import Column, String, Boolean, DateTime, Text, Enum

from whistlebox.db.base import Base


class ComplaintStatus(str, enum.Enum):
    OPEN = "Open"
    IN_REVIEW = "In Review"
    RESOLVED = "Resolved"

    @classmethod
    def parse(cls, value) -> "ComplaintStatus":
        """Raises ValueError for anything outside the fixed set."""
        return cls(value)


TERMINAL_STATUSES = frozenset({ComplaintStatus.RESOLVED})


def new_complaint_id() -> str:
    return uuid.uuid4().hex


class Complaint(Base):
    __tablename__ = "complaints"

    id = Column(String(32), primary_key=True, default=new_complaint_id)

    # Encrypted content
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    location = Column(Text, nullable=False, default="")

    # Low-sensitivity content, stored in clear
    category = Column(String(100), nullable=False, index=True)
    date = Column(String(64), nullable=False, default="")
    anonymous = Column(Boolean, nullable=False, default=False)

    # Integrity
    commitment = Column(String(64), nullable=False, index=True)
    anchor_reference = Column(String(128), nullable=True)
    secret_hash = Column(String(64), nullable=False)

    status = Column(
        Enum(ComplaintStatus, values_callable=lambda e: [m.value for m in e], name="complaint_status"),
        default=ComplaintStatus.OPEN,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
