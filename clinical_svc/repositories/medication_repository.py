"""
Repository for medications (prescriptions).
"""
import asyncio
from typing import List, Optional
from uuid import UUID

from core.result import Result
from models import Medication, MedicationStatus
from repositories.base import GenericRepository
from storage.database import Database


class MedicationRepository(GenericRepository[Medication]):
    """CRUD for medications; reads attach the patient and prescribing provider."""

    def __init__(self, db: Database):
        super().__init__(db, Medication, includes=("patient", "prescribing_provider"))

    async def get_active_for_patient(
        self,
        patient_id: UUID,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[List[Medication]]:
        """
        Get a patient's active medications, most recently started first.

        An unknown patient yields an empty list, not NotFound.
        """
        return await self.find_where(
            "patient_id = ? AND status = ?",
            (patient_id, MedicationStatus.ACTIVE),
            order_by="start_date DESC",
            includes=("prescribing_provider",),
            cancellation=cancellation,
        )
