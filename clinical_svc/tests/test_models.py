"""
Tests for entity model validation.
"""
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest
from pydantic import ValidationError

from models import (
    Appointment,
    AppointmentStatus,
    AuditLog,
    Gender,
    LabResultStatus,
    MedicationStatus,
    Patient,
    User,
    UserRole,
)


def _patient(**overrides):
    fields = {
        "mrn": "MRN-1",
        "first_name": "Ada",
        "last_name": "Lovelace",
        "date_of_birth": date(1815, 12, 10),
        "gender": Gender.FEMALE,
    }
    fields.update(overrides)
    return Patient(**fields)


def test_new_entity_defaults():
    """Test a fresh entity has an id but no persistence stamps."""
    patient = _patient()
    assert patient.id is not None
    assert patient.created_at is None
    assert patient.updated_at is None
    assert patient.row_version == 0


def test_enum_accepts_stored_value():
    patient = _patient(gender="PreferNotToSay")
    assert patient.gender is Gender.PREFER_NOT_TO_SAY


def test_invalid_gender_rejected():
    """Test closed enums fail at construction, not at storage."""
    with pytest.raises(ValidationError):
        _patient(gender="Unknown")


@pytest.mark.parametrize("model,field,value", [
    (Appointment, "status", "Postponed"),
    (User, "role", "Janitor"),
])
def test_invalid_status_and_role_rejected(model, field, value):
    base = {
        Appointment: {
            "patient_id": uuid4(),
            "provider_id": uuid4(),
            "appointment_date": datetime(2024, 1, 1, tzinfo=timezone.utc),
            "duration_minutes": 15,
            "appointment_type": "Consult",
        },
        User: {
            "email": "a@b.test",
            "password_hash": "x",
            "first_name": "A",
            "last_name": "B",
            "role": UserRole.NURSE,
        },
    }[model]
    with pytest.raises(ValidationError):
        model(**{**base, field: value})


def test_enum_values():
    assert AppointmentStatus.NO_SHOW.value == "NoShow"
    assert LabResultStatus.ABNORMAL.value == "Abnormal"
    assert MedicationStatus.ON_HOLD.value == "OnHold"
    assert UserRole.LAB_TECHNICIAN.value == "LabTechnician"


def test_invalid_assignment_rejected():
    """Test validation also runs on attribute assignment."""
    patient = _patient()
    with pytest.raises(ValidationError):
        patient.gender = "Robot"


def test_id_is_immutable():
    patient = _patient()
    with pytest.raises(ValidationError):
        patient.id = uuid4()


def test_duration_must_be_positive():
    with pytest.raises(ValidationError):
        Appointment(
            patient_id=uuid4(),
            provider_id=uuid4(),
            appointment_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
            duration_minutes=0,
            appointment_type="Consult",
        )


def test_datetimes_normalised_to_utc():
    """Test naive and offset datetimes both end up timezone-aware UTC."""
    naive = Appointment(
        patient_id=uuid4(),
        provider_id=uuid4(),
        appointment_date=datetime(2024, 1, 1, 10, 0),
        duration_minutes=15,
        appointment_type="Consult",
    )
    assert naive.appointment_date == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)

    ist = timezone(timedelta(hours=5, minutes=30))
    offset = naive.model_copy()
    offset.appointment_date = datetime(2024, 1, 1, 15, 30, tzinfo=ist)
    assert offset.appointment_date.tzinfo == timezone.utc
    assert offset.appointment_date.hour == 10


def test_iso_string_with_z_suffix_parsed():
    entry = AuditLog(action_type="Create", table_name="patients", created_at="2024-05-01T12:00:00Z")
    assert entry.created_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_navigation_properties_are_not_columns():
    """Test navigation properties are neither persisted nor serialised."""
    columns = Patient.column_names()
    assert "mrn" in columns
    assert "row_version" in columns
    assert "appointments" not in columns
    assert "lab_results" not in columns
    assert "provider" not in Appointment.column_names()

    patient = _patient()
    patient.appointments = []
    assert "appointments" not in patient.model_dump()


def test_audit_log_user_is_optional():
    entry = AuditLog(action_type="Login", table_name="users")
    assert entry.user_id is None
    assert entry.record_id is None
