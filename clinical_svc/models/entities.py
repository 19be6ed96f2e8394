"""
Domain entities persisted by the data-access layer.

Navigation properties (``patient``, ``provider``, ``appointments``, ...) are
not persisted. They stay ``None`` unless a repository read asks for them via
``includes``; a requested collection is always a list, possibly empty.
"""
from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from models.base import BaseEntity, UtcDateTime
from models.enums import (
    AppointmentStatus,
    Gender,
    LabResultStatus,
    MedicationStatus,
    UserRole,
)


def _navigation(default=None):
    return Field(default=default, exclude=True, repr=False)


class User(BaseEntity):
    """A system user: physicians, nurses, lab staff, receptionists, admins."""

    email: str = Field(..., min_length=3, max_length=255)
    password_hash: str = Field(..., min_length=1, max_length=255)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole
    is_active: bool = True

    appointments: Optional[List["Appointment"]] = _navigation()
    medical_records: Optional[List["MedicalRecord"]] = _navigation()
    prescribed_medications: Optional[List["Medication"]] = _navigation()
    ordered_lab_results: Optional[List["LabResult"]] = _navigation()


class Patient(BaseEntity):
    """
    A patient and their demographic/contact details.

    ``mrn`` (Medical Record Number) is the external business identifier and
    is unique across patients; ``id`` is the internal identity.
    """

    mrn: str = Field(..., min_length=1, max_length=50)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: date
    gender: Gender

    address_line1: Optional[str] = Field(default=None, max_length=255)
    address_line2: Optional[str] = Field(default=None, max_length=255)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=50)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    phone_number: Optional[str] = Field(default=None, max_length=20)
    email: Optional[str] = Field(default=None, max_length=255)
    emergency_contact_name: Optional[str] = Field(default=None, max_length=200)
    emergency_contact_phone: Optional[str] = Field(default=None, max_length=20)

    appointments: Optional[List["Appointment"]] = _navigation()
    medical_records: Optional[List["MedicalRecord"]] = _navigation()
    medications: Optional[List["Medication"]] = _navigation()
    lab_results: Optional[List["LabResult"]] = _navigation()


class Appointment(BaseEntity):
    """A scheduled visit between a patient and a provider."""

    patient_id: UUID
    provider_id: UUID
    appointment_date: UtcDateTime
    duration_minutes: int = Field(..., gt=0)
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    appointment_type: str = Field(..., min_length=1, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)

    patient: Optional[Patient] = _navigation()
    provider: Optional[User] = _navigation()


class MedicalRecord(BaseEntity):
    """Clinical documentation of a single visit."""

    patient_id: UUID
    provider_id: UUID
    visit_date: UtcDateTime
    chief_complaint: str = Field(..., min_length=1, max_length=1000)
    diagnosis: str = Field(..., min_length=1, max_length=1000)
    treatment_plan: str = Field(..., min_length=1, max_length=2000)
    notes: Optional[str] = Field(default=None, max_length=2000)

    patient: Optional[Patient] = _navigation()
    provider: Optional[User] = _navigation()


class Medication(BaseEntity):
    """A prescription; ``end_date`` is None for open-ended or as-needed use."""

    patient_id: UUID
    prescribing_provider_id: UUID
    medication_name: str = Field(..., min_length=1, max_length=255)
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: str = Field(..., min_length=1, max_length=100)
    start_date: UtcDateTime
    end_date: Optional[UtcDateTime] = None
    status: MedicationStatus = MedicationStatus.ACTIVE

    patient: Optional[Patient] = _navigation()
    prescribing_provider: Optional[User] = _navigation()


class LabResult(BaseEntity):
    patient_id: UUID
    ordering_provider_id: UUID
    test_name: str = Field(..., min_length=1, max_length=255)
    test_date: UtcDateTime
    result: str = Field(..., max_length=1000)
    unit: Optional[str] = Field(default=None, max_length=50)
    reference_range: Optional[str] = Field(default=None, max_length=100)
    status: LabResultStatus = LabResultStatus.ORDERED
    notes: Optional[str] = Field(default=None, max_length=1000)

    patient: Optional[Patient] = _navigation()
    ordering_provider: Optional[User] = _navigation()


class AuditLog(BaseEntity):
    """
    Append-only audit trail entry.

    ``user_id`` is None for system-generated events; ``old_values`` and
    ``new_values`` hold JSON snapshots of the affected row.
    """

    user_id: Optional[UUID] = None
    action_type: str = Field(..., min_length=1, max_length=50)
    table_name: str = Field(..., min_length=1, max_length=50)
    record_id: Optional[UUID] = None
    old_values: Optional[str] = None
    new_values: Optional[str] = None
    ip_address: Optional[str] = Field(default=None, max_length=45)


# Resolve the forward references between Patient/User and the clinical records
for _model in (User, Patient, Appointment, MedicalRecord, Medication, LabResult):
    _model.model_rebuild()
