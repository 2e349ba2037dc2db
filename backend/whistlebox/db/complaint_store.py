from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from whistlebox.core.exceptions import StoreError
from whistlebox.models.complaint import Complaint, ComplaintStatus, TERMINAL_STATUSES

logger = structlog.get_logger()


class ComplaintStore:
    """
    Document-style access to the complaints table.

    Each call runs in its own session and transaction. A record is created
    by a single INSERT, so no partial record is ever visible; status and
    anchor updates are single-row conditional UPDATEs and rely on the
    database's row-level atomicity (last write wins among allowed writes).
    """

    def __init__(self, sessionmaker: async_sessionmaker):
        self._sessionmaker = sessionmaker

    async def create(self, complaint: Complaint) -> Complaint:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    session.add(complaint)
            return complaint
        except SQLAlchemyError as e:
            raise StoreError(f"create failed: {type(e).__name__}: {e}") from e

    async def get(self, complaint_id: str) -> Optional[Complaint]:
        try:
            async with self._sessionmaker() as session:
                return await session.get(Complaint, complaint_id)
        except SQLAlchemyError as e:
            raise StoreError(f"read failed: {type(e).__name__}: {e}") from e

    async def update_status(self, complaint_id: str, status: ComplaintStatus) -> bool:
        """
        Never moves a record out of a terminal status. False when the row is
        missing or already terminal.
        """
        stmt = (
            update(Complaint)
            .where(
                Complaint.id == complaint_id,
                Complaint.status.notin_(list(TERMINAL_STATUSES)),
            )
            .values(status=status)
        )
        return await self._execute_update(stmt)

    async def set_anchor_reference(self, complaint_id: str, reference: str) -> bool:
        """
        Write-once: only fills a reference that is still NULL.
        """
        stmt = (
            update(Complaint)
            .where(Complaint.id == complaint_id, Complaint.anchor_reference.is_(None))
            .values(anchor_reference=reference)
        )
        return await self._execute_update(stmt)

    async def list_recent(self, limit: Optional[int] = None) -> List[Complaint]:
        stmt = select(Complaint).order_by(Complaint.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._fetch_all(stmt)

    async def list_unanchored(self, limit: int = 50) -> List[Complaint]:
        stmt = (
            select(Complaint)
            .where(Complaint.anchor_reference.is_(None))
            .order_by(Complaint.created_at.asc())
            .limit(limit)
        )
        return await self._fetch_all(stmt)

    async def _fetch_all(self, stmt) -> List[Complaint]:
        try:
            async with self._sessionmaker() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StoreError(f"query failed: {type(e).__name__}: {e}") from e

    async def _execute_update(self, stmt) -> bool:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                    return result.rowcount > 0
        except SQLAlchemyError as e:
            raise StoreError(f"update failed: {type(e).__name__}: {e}") from e
