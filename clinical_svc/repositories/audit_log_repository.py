"""
Repository for the audit trail.

Audit entries are append-only: this repository exposes no update or delete,
and the persistence gateway refuses to stage either for AuditLog.
"""
import asyncio
from typing import List, Optional
from uuid import UUID

from core.config import DEFAULT_PAGE_SIZE
from core.result import Page, Result
from models import AuditLog
from repositories.base import GenericRepository
from storage.database import Database


class AuditLogRepository:
    def __init__(self, db: Database):
        self._logs: GenericRepository[AuditLog] = GenericRepository(db, AuditLog)

    async def add(
        self,
        entry: AuditLog,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[AuditLog]:
        return await self._logs.add(entry, cancellation=cancellation)

    async def get_all(self, cancellation: Optional[asyncio.Event] = None) -> Result[List[AuditLog]]:
        return await self._logs.get_all(cancellation=cancellation)

    async def get_by_id(
        self,
        entry_id: UUID,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[AuditLog]:
        return await self._logs.get_by_id(entry_id, cancellation=cancellation)

    async def get_paged(
        self,
        page_index: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[Page[AuditLog]]:
        return await self._logs.get_paged(page_index, page_size, cancellation=cancellation)

    async def get_for_record(
        self,
        table_name: str,
        record_id: UUID,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[List[AuditLog]]:
        """Audit entries about one row of one table, newest first."""
        return await self._logs.find_where(
            "table_name = ? AND record_id = ?",
            (table_name, record_id),
            order_by="created_at DESC, rowid DESC",
            cancellation=cancellation,
        )
