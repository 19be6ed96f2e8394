"""
Aggregate returned by PatientRepository.get_medical_history().
"""
from dataclasses import dataclass, field
from typing import List

from models.entities import Appointment, LabResult, MedicalRecord, Medication, Patient


@dataclass
class PatientMedicalHistory:
    """
    A patient together with all of their clinical records.

    Each collection is ordered newest first and is an empty list, never None,
    when the patient has no records of that kind.
    """

    patient: Patient
    medical_records: List[MedicalRecord] = field(default_factory=list)
    medications: List[Medication] = field(default_factory=list)
    lab_results: List[LabResult] = field(default_factory=list)
    appointments: List[Appointment] = field(default_factory=list)
