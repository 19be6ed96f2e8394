"""
Repository layer for database access.

This module contains all data access operations. Every repository method
returns a Result (core.result) instead of raising for storage faults.
"""
from repositories.base import GenericRepository, translate_storage_error
from repositories.patient_repository import PatientRepository
from repositories.user_repository import UserRepository
from repositories.appointment_repository import AppointmentRepository
from repositories.medical_record_repository import MedicalRecordRepository
from repositories.medication_repository import MedicationRepository
from repositories.lab_result_repository import LabResultRepository
from repositories.audit_log_repository import AuditLogRepository

__all__ = [
    "GenericRepository",
    "translate_storage_error",
    "PatientRepository",
    "UserRepository",
    "AppointmentRepository",
    "MedicalRecordRepository",
    "MedicationRepository",
    "LabResultRepository",
    "AuditLogRepository",
]
