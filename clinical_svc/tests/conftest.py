"""
Shared pytest fixtures for repository tests.

Key patterns:

1. Database Isolation: Each test gets a fresh pair of temporary SQLite files
   (main + audit)
2. Repositories are constructed directly on the test database
3. Entity factories build valid, unsaved entities with unique MRNs/emails

Fixture Hierarchy:
    temp_db → repositories
    make_* factories are independent of the database
"""
import os
import shutil
import tempfile
from datetime import date, datetime, timezone
from itertools import count

import pytest

from models import (
    Appointment,
    Gender,
    LabResult,
    MedicalRecord,
    Medication,
    Patient,
    User,
    UserRole,
)
from repositories import (
    AppointmentRepository,
    AuditLogRepository,
    LabResultRepository,
    MedicalRecordRepository,
    MedicationRepository,
    PatientRepository,
    UserRepository,
)
from storage.database import Database

_sequence = count(1)


@pytest.fixture
def temp_db():
    """
    Create a temporary database for testing.

    Both the main file and the attached audit file live in one temp
    directory that is removed after the test.
    """
    tmp_dir = tempfile.mkdtemp()

    db = Database(
        db_path=os.path.join(tmp_dir, "clinical.db"),
        audit_db_path=os.path.join(tmp_dir, "audit.db"),
    )
    yield db

    # Cleanup
    shutil.rmtree(tmp_dir, ignore_errors=True)


@pytest.fixture
def patient_repo(temp_db):
    return PatientRepository(db=temp_db)


@pytest.fixture
def user_repo(temp_db):
    return UserRepository(db=temp_db)


@pytest.fixture
def appointment_repo(temp_db):
    return AppointmentRepository(db=temp_db)


@pytest.fixture
def medical_record_repo(temp_db):
    return MedicalRecordRepository(db=temp_db)


@pytest.fixture
def medication_repo(temp_db):
    return MedicationRepository(db=temp_db)


@pytest.fixture
def lab_result_repo(temp_db):
    return LabResultRepository(db=temp_db)


@pytest.fixture
def audit_repo(temp_db):
    return AuditLogRepository(db=temp_db)


# =============================================================================
# ENTITY FACTORIES
# =============================================================================

@pytest.fixture
def make_patient():
    """Build an unsaved Patient; keyword arguments override the defaults."""
    def _make(**overrides) -> Patient:
        n = next(_sequence)
        fields = {
            "mrn": f"MRN-{n:05d}",
            "first_name": "John",
            "last_name": "Doe",
            "date_of_birth": date(1980, 1, 15),
            "gender": Gender.MALE,
        }
        fields.update(overrides)
        return Patient(**fields)
    return _make


@pytest.fixture
def make_user():
    """Build an unsaved User (a physician unless ``role`` is given)."""
    def _make(**overrides) -> User:
        n = next(_sequence)
        fields = {
            "email": f"provider{n}@clinic.test",
            "password_hash": "pbkdf2$test",
            "first_name": "Gregory",
            "last_name": f"House{n}",
            "role": UserRole.PHYSICIAN,
        }
        fields.update(overrides)
        return User(**fields)
    return _make


@pytest.fixture
def make_appointment():
    def _make(patient: Patient, provider: User, **overrides) -> Appointment:
        fields = {
            "patient_id": patient.id,
            "provider_id": provider.id,
            "appointment_date": datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
            "duration_minutes": 30,
            "appointment_type": "Follow-up",
        }
        fields.update(overrides)
        return Appointment(**fields)
    return _make


@pytest.fixture
def make_medical_record():
    def _make(patient: Patient, provider: User, **overrides) -> MedicalRecord:
        fields = {
            "patient_id": patient.id,
            "provider_id": provider.id,
            "visit_date": datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
            "chief_complaint": "Headache",
            "diagnosis": "Tension headache",
            "treatment_plan": "Rest and fluids",
        }
        fields.update(overrides)
        return MedicalRecord(**fields)
    return _make


@pytest.fixture
def make_medication():
    def _make(patient: Patient, provider: User, **overrides) -> Medication:
        fields = {
            "patient_id": patient.id,
            "prescribing_provider_id": provider.id,
            "medication_name": "Metformin",
            "dosage": "500 mg",
            "frequency": "Twice daily",
            "start_date": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }
        fields.update(overrides)
        return Medication(**fields)
    return _make


@pytest.fixture
def make_lab_result():
    def _make(patient: Patient, provider: User, **overrides) -> LabResult:
        fields = {
            "patient_id": patient.id,
            "ordering_provider_id": provider.id,
            "test_name": "HbA1c",
            "test_date": datetime(2024, 2, 1, 8, 0, tzinfo=timezone.utc),
            "result": "6.1",
            "unit": "%",
        }
        fields.update(overrides)
        return LabResult(**fields)
    return _make
