"""
Repository for lab results.
"""
import asyncio
from typing import List, Optional, Union
from uuid import UUID

from core.errors import GeneralErrors
from core.result import Err, Result
from models import LabResult, LabResultStatus
from repositories.base import GenericRepository
from storage.database import Database


class LabResultRepository(GenericRepository[LabResult]):
    """CRUD for lab results; reads attach the patient and ordering provider."""

    def __init__(self, db: Database):
        super().__init__(db, LabResult, includes=("patient", "ordering_provider"))

    async def get_for_patient(
        self,
        patient_id: UUID,
        status: Optional[Union[LabResultStatus, str]] = None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[List[LabResult]]:
        """
        Get a patient's lab results, newest test first.

        Args:
            patient_id: Patient whose results to return.
            status: Only return results in this status. Unknown status
                strings are a validation error.
        """
        where = "patient_id = ?"
        params: list = [patient_id]
        if status is not None:
            try:
                status = LabResultStatus(status)
            except ValueError:
                return Err(GeneralErrors.validation(f"Unknown lab result status '{status}'."))
            where += " AND status = ?"
            params.append(status)

        return await self.find_where(
            where,
            params,
            order_by="test_date DESC",
            includes=("ordering_provider",),
            cancellation=cancellation,
        )
