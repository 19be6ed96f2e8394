"""
Tests for PatientRepository: validated writes, lookups, search,
appointment range queries and medical history assembly.
"""
import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from core.datetime_utils import utc_today
from core.errors import PatientErrors
from core.result import ErrorType
from models import Gender, LabResultStatus, PatientMedicalHistory


def _at(year, month, day, hour=9):
    return datetime(year, month, day, hour, 0, tzinfo=timezone.utc)


async def _seed_provider(user_repo, make_user, **overrides):
    provider = make_user(**overrides)
    assert (await user_repo.add(provider)).is_ok()
    return provider


# =============================================================================
# Validated writes
# =============================================================================

@pytest.mark.asyncio
async def test_add_patient(patient_repo, make_patient):
    patient = make_patient()
    result = await patient_repo.add(patient)

    assert result.is_ok()
    assert result.value.created_at is not None
    assert result.value.row_version == 1
    assert (await patient_repo.get_by_id(patient.id)).value.mrn == patient.mrn


@pytest.mark.asyncio
async def test_add_duplicate_mrn_conflicts(patient_repo, make_patient):
    """Test a second patient with the same MRN is rejected before writing."""
    await patient_repo.add(make_patient(mrn="MRN-42"))
    result = await patient_repo.add(make_patient(mrn="MRN-42", first_name="Other"))

    assert result.is_err()
    assert result.error == PatientErrors.DUPLICATE_MRN
    assert result.error.type == ErrorType.CONFLICT
    assert len((await patient_repo.get_all()).value) == 1


@pytest.mark.asyncio
async def test_update_to_another_patients_mrn_conflicts(patient_repo, make_patient):
    first = make_patient(mrn="MRN-A")
    second = make_patient(mrn="MRN-B")
    await patient_repo.add(first)
    await patient_repo.add(second)

    second.mrn = "MRN-A"
    result = await patient_repo.update(second)

    assert result.error == PatientErrors.DUPLICATE_MRN
    assert (await patient_repo.get_by_id(second.id)).value.mrn == "MRN-B"


@pytest.mark.asyncio
async def test_update_own_record_keeps_mrn(patient_repo, make_patient):
    """Test saving a patient with its unchanged MRN is not a duplicate of itself."""
    patient = make_patient(mrn="MRN-SELF")
    await patient_repo.add(patient)

    patient.city = "Leeds"
    result = await patient_repo.update(patient)

    assert result.is_ok()
    stored = (await patient_repo.get_by_id(patient.id)).value
    assert stored.city == "Leeds"
    assert stored.row_version == 2


@pytest.mark.asyncio
async def test_add_future_date_of_birth_rejected(patient_repo, make_patient):
    """Test a date of birth after today is a validation error and nothing is written."""
    tomorrow = utc_today() + timedelta(days=1)
    result = await patient_repo.add(make_patient(date_of_birth=tomorrow))

    assert result.is_err()
    assert result.error == PatientErrors.INVALID_DATE_OF_BIRTH
    assert result.error.type == ErrorType.VALIDATION
    assert (await patient_repo.get_all()).value == []


@pytest.mark.asyncio
async def test_update_future_date_of_birth_rejected(patient_repo, make_patient):
    patient = make_patient()
    await patient_repo.add(patient)

    patient.date_of_birth = utc_today() + timedelta(days=30)
    result = await patient_repo.update(patient)

    assert result.error == PatientErrors.INVALID_DATE_OF_BIRTH
    stored = (await patient_repo.get_by_id(patient.id)).value
    assert stored.date_of_birth == date(1980, 1, 15)
    assert stored.row_version == 1


@pytest.mark.asyncio
async def test_date_of_birth_today_allowed(patient_repo, make_patient):
    result = await patient_repo.add(make_patient(date_of_birth=utc_today()))
    assert result.is_ok()


@pytest.mark.asyncio
async def test_concurrent_adds_with_same_mrn(patient_repo, make_patient):
    """Test two concurrent adds claiming one MRN: one succeeds, one conflicts."""
    results = await asyncio.gather(
        patient_repo.add(make_patient(mrn="MRN-RACE")),
        patient_repo.add(make_patient(mrn="MRN-RACE")),
    )

    assert sum(r.is_ok() for r in results) == 1
    assert [r.error for r in results if r.is_err()] == [PatientErrors.DUPLICATE_MRN]


@pytest.mark.asyncio
async def test_stale_update_conflicts(patient_repo, make_patient):
    patient = make_patient()
    await patient_repo.add(patient)
    stale = (await patient_repo.get_by_id(patient.id)).value

    patient.first_name = "Fresh"
    assert (await patient_repo.update(patient)).is_ok()

    stale.first_name = "Stale"
    result = await patient_repo.update(stale)
    assert result.error.code == "General.ConcurrencyConflict"


@pytest.mark.asyncio
async def test_cancelled_add_writes_nothing(patient_repo, make_patient):
    cancel = asyncio.Event()
    cancel.set()

    with pytest.raises(asyncio.CancelledError):
        await patient_repo.add(make_patient(), cancellation=cancel)

    assert (await patient_repo.get_all()).value == []


@pytest.mark.asyncio
async def test_delete_patient_without_records(patient_repo, make_patient):
    patient = make_patient()
    await patient_repo.add(patient)

    assert (await patient_repo.delete(patient.id)).is_ok()
    assert (await patient_repo.get_by_id(patient.id)).is_err()


@pytest.mark.asyncio
async def test_get_paged_delegates(patient_repo, make_patient):
    for _ in range(3):
        await patient_repo.add(make_patient())

    page = (await patient_repo.get_paged(1, 2)).value
    assert len(page.items) == 1
    assert page.total_count == 3


# =============================================================================
# Lookups and search
# =============================================================================

@pytest.mark.asyncio
async def test_get_by_mrn(patient_repo, make_patient):
    patient = make_patient(mrn="MRN-LOOKUP")
    await patient_repo.add(patient)

    found = await patient_repo.get_by_mrn("MRN-LOOKUP")
    assert found.value.id == patient.id

    missing = await patient_repo.get_by_mrn("MRN-NOPE")
    assert missing.error == PatientErrors.NOT_FOUND


@pytest.mark.asyncio
async def test_search_by_term(patient_repo, make_patient):
    """Test term search is a case-insensitive substring match ordered by name."""
    await patient_repo.add(make_patient(first_name="Zoe", last_name="Smithers"))
    await patient_repo.add(make_patient(first_name="Adam", last_name="Smith"))
    await patient_repo.add(make_patient(first_name="Smitty", last_name="Brown"))
    await patient_repo.add(make_patient(first_name="Bob", last_name="Jones"))
    await patient_repo.add(make_patient(first_name="Carl", last_name="Jones", mrn="SMITH-001"))
    await patient_repo.add(make_patient(first_name="Alice", last_name="Smith"))

    result = await patient_repo.search(term="  Smith ")
    names = [(p.last_name, p.first_name) for p in result.value]

    assert names == [
        ("Jones", "Carl"),
        ("Smith", "Adam"),
        ("Smith", "Alice"),
        ("Smithers", "Zoe"),
    ]


@pytest.mark.asyncio
async def test_search_folds_non_ascii_case(patient_repo, make_patient):
    """Test accented and non-Latin letters match regardless of case."""
    await patient_repo.add(make_patient(first_name="Émile", last_name="Øster"))
    await patient_repo.add(make_patient(first_name="Ζωή", last_name="Straße"))
    await patient_repo.add(make_patient(first_name="Emil", last_name="Oster"))

    for term in ("øster", "ØSTER", "émile", "ÉMILE"):
        result = await patient_repo.search(term=term)
        assert [p.last_name for p in result.value] == ["Øster"], term

    assert [p.first_name for p in (await patient_repo.search(term="ΖΩΉ")).value] == ["Ζωή"]
    assert [p.last_name for p in (await patient_repo.search(term="STRASSE")).value] == ["Straße"]


@pytest.mark.asyncio
async def test_search_orders_names_ignoring_case(patient_repo, make_patient):
    for last_name in ("Zed", "de Souza", "adams", "Moore"):
        await patient_repo.add(make_patient(last_name=last_name))

    result = await patient_repo.search()
    assert [p.last_name for p in result.value] == ["adams", "de Souza", "Moore", "Zed"]


@pytest.mark.asyncio
async def test_search_escapes_wildcards(patient_repo, make_patient):
    await patient_repo.add(make_patient(last_name="Norris"))
    await patient_repo.add(make_patient(last_name="Under_score"))

    assert (await patient_repo.search(term="%")).value == []
    underscored = (await patient_repo.search(term="r_s")).value
    assert [p.last_name for p in underscored] == ["Under_score"]


@pytest.mark.asyncio
async def test_search_without_criteria_returns_all(patient_repo, make_patient):
    for last_name in ("Young", "Adams", "Moore"):
        await patient_repo.add(make_patient(last_name=last_name))

    for term in (None, "", "   "):
        result = await patient_repo.search(term=term)
        assert [p.last_name for p in result.value] == ["Adams", "Moore", "Young"]


@pytest.mark.asyncio
async def test_search_by_gender_and_date_of_birth(patient_repo, make_patient):
    """Test gender filter and inclusive date-of-birth bounds combine."""
    await patient_repo.add(make_patient(last_name="A", gender=Gender.FEMALE, date_of_birth=date(1990, 1, 1)))
    await patient_repo.add(make_patient(last_name="B", gender=Gender.FEMALE, date_of_birth=date(1995, 6, 30)))
    await patient_repo.add(make_patient(last_name="C", gender=Gender.FEMALE, date_of_birth=date(2000, 1, 1)))
    await patient_repo.add(make_patient(last_name="D", gender=Gender.MALE, date_of_birth=date(1995, 6, 30)))

    females = (await patient_repo.search(gender=Gender.FEMALE)).value
    assert [p.last_name for p in females] == ["A", "B", "C"]

    by_string = (await patient_repo.search(gender="Male")).value
    assert [p.last_name for p in by_string] == ["D"]

    in_range = (await patient_repo.search(
        gender=Gender.FEMALE,
        dob_start=date(1990, 1, 1),
        dob_end=datetime(1995, 6, 30, 23, 0),
    )).value
    assert [p.last_name for p in in_range] == ["A", "B"]


@pytest.mark.asyncio
async def test_search_unknown_gender_is_validation_error(patient_repo):
    result = await patient_repo.search(gender="Martian")
    assert result.is_err()
    assert result.error.type == ErrorType.VALIDATION


# =============================================================================
# Appointments
# =============================================================================

@pytest.mark.asyncio
async def test_appointments_for_missing_patient(patient_repo, make_patient):
    """Test a nonexistent patient yields Patient.NotFound, not an empty list."""
    result = await patient_repo.get_patient_appointments(make_patient().id)
    assert result.error == PatientErrors.NOT_FOUND


@pytest.mark.asyncio
async def test_appointments_newest_first_with_provider(
    patient_repo, user_repo, appointment_repo, make_patient, make_user, make_appointment
):
    patient, other = make_patient(), make_patient()
    await patient_repo.add(patient)
    await patient_repo.add(other)
    provider = await _seed_provider(user_repo, make_user)

    for day in (3, 1, 2):
        await appointment_repo.add(make_appointment(patient, provider, appointment_date=_at(2024, 5, day)))
    await appointment_repo.add(make_appointment(other, provider, appointment_date=_at(2024, 5, 4)))

    appointments = (await patient_repo.get_patient_appointments(patient.id)).value

    assert [a.appointment_date.day for a in appointments] == [3, 2, 1]
    assert all(a.provider.id == provider.id for a in appointments)


@pytest.mark.asyncio
async def test_appointments_within_range(
    patient_repo, user_repo, appointment_repo, make_patient, make_user, make_appointment
):
    """Test both bounds are inclusive and apply together."""
    patient = make_patient()
    await patient_repo.add(patient)
    provider = await _seed_provider(user_repo, make_user)

    for day in (1, 10, 20, 30):
        await appointment_repo.add(
            make_appointment(patient, provider, appointment_date=_at(2024, 6, day, hour=15))
        )

    bounded = (await patient_repo.get_patient_appointments(
        patient.id, start_date=_at(2024, 6, 10, hour=15), end_date=date(2024, 6, 20)
    )).value
    assert [a.appointment_date.day for a in bounded] == [20, 10]

    from_only = (await patient_repo.get_patient_appointments(patient.id, start_date=date(2024, 6, 20))).value
    assert [a.appointment_date.day for a in from_only] == [30, 20]

    until_only = (await patient_repo.get_patient_appointments(patient.id, end_date=_at(2024, 6, 1, hour=15))).value
    assert [a.appointment_date.day for a in until_only] == [1]


# =============================================================================
# Medical history
# =============================================================================

@pytest.mark.asyncio
async def test_medical_history_for_missing_patient(patient_repo, make_patient):
    result = await patient_repo.get_medical_history(make_patient().id)
    assert result.error == PatientErrors.NOT_FOUND


@pytest.mark.asyncio
async def test_medical_history_without_records(patient_repo, make_patient):
    """Test empty collections come back as empty lists, not None."""
    patient = make_patient()
    await patient_repo.add(patient)

    history = (await patient_repo.get_medical_history(patient.id)).value

    assert isinstance(history, PatientMedicalHistory)
    assert history.patient.id == patient.id
    assert history.lab_results == []
    assert history.medical_records == []
    assert history.medications == []
    assert history.appointments == []


@pytest.mark.asyncio
async def test_medical_history_ordered_with_providers(
    patient_repo,
    user_repo,
    appointment_repo,
    medical_record_repo,
    medication_repo,
    lab_result_repo,
    make_patient,
    make_user,
    make_appointment,
    make_medical_record,
    make_medication,
    make_lab_result,
):
    patient = make_patient()
    await patient_repo.add(patient)
    doctor = await _seed_provider(user_repo, make_user)
    lab_tech = await _seed_provider(user_repo, make_user, role="LabTechnician")

    for month in (1, 3, 2):
        await medical_record_repo.add(make_medical_record(patient, doctor, visit_date=_at(2024, month, 1)))
        await medication_repo.add(make_medication(patient, doctor, start_date=_at(2024, month, 1)))
        await appointment_repo.add(make_appointment(patient, doctor, appointment_date=_at(2024, month, 1)))
    await lab_result_repo.add(make_lab_result(patient, lab_tech, test_date=_at(2024, 2, 1)))
    await lab_result_repo.add(
        make_lab_result(patient, lab_tech, test_date=_at(2024, 4, 1), status=LabResultStatus.ABNORMAL)
    )

    history = (await patient_repo.get_medical_history(patient.id)).value

    assert [r.visit_date.month for r in history.medical_records] == [3, 2, 1]
    assert [m.start_date.month for m in history.medications] == [3, 2, 1]
    assert [a.appointment_date.month for a in history.appointments] == [3, 2, 1]
    assert [r.test_date.month for r in history.lab_results] == [4, 2]
    assert history.lab_results[0].status is LabResultStatus.ABNORMAL

    assert all(r.provider.id == doctor.id for r in history.medical_records)
    assert all(m.prescribing_provider.id == doctor.id for m in history.medications)
    assert all(a.provider.id == doctor.id for a in history.appointments)
    assert all(r.ordering_provider.id == lab_tech.id for r in history.lab_results)
