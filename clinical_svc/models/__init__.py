"""
Domain models for the clinical records data-access layer.

This module contains the persisted entities, their enumerations and the
medical history aggregate.
"""
from models.base import BaseEntity
from models.entities import (
    Appointment,
    AuditLog,
    LabResult,
    MedicalRecord,
    Medication,
    Patient,
    User,
)
from models.enums import (
    AppointmentStatus,
    Gender,
    LabResultStatus,
    MedicationStatus,
    UserRole,
)
from models.medical_history import PatientMedicalHistory

__all__ = [
    "BaseEntity",
    "Appointment",
    "AuditLog",
    "LabResult",
    "MedicalRecord",
    "Medication",
    "Patient",
    "User",
    "AppointmentStatus",
    "Gender",
    "LabResultStatus",
    "MedicationStatus",
    "UserRole",
    "PatientMedicalHistory",
]
