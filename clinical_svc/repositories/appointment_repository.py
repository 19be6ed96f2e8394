"""
Repository for appointments. Reads attach the patient and provider by default.
"""
from models import Appointment
from repositories.base import GenericRepository
from storage.database import Database


class AppointmentRepository(GenericRepository[Appointment]):
    def __init__(self, db: Database):
        super().__init__(db, Appointment, includes=("patient", "provider"))
