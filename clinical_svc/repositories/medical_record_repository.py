"""
Repository for medical records. Reads attach the patient and provider by default.
"""
from models import MedicalRecord
from repositories.base import GenericRepository
from storage.database import Database


class MedicalRecordRepository(GenericRepository[MedicalRecord]):
    def __init__(self, db: Database):
        super().__init__(db, MedicalRecord, includes=("patient", "provider"))
