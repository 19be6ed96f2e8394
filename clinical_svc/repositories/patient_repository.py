"""
Repository for patient data access.

Architecture:
    PatientRepository wraps a GenericRepository[Patient] and adds patient
    specific queries and the business checks run before every write:

    - the MRN must not belong to another patient  → Conflict  Patient.DuplicateMrn
    - the date of birth must not be in the future → Validation Patient.InvalidDateOfBirth

    Both checks and the write run inside one BEGIN IMMEDIATE transaction, so
    two writers claiming the same MRN cannot both succeed.

All SQL for patients is encapsulated here and in the generic repository.
"""
import asyncio
import logging
from datetime import date, datetime, time
from typing import Iterable, List, Optional, Union
from uuid import UUID

from core.datetime_utils import to_utc, utc_today
from core.errors import GeneralErrors, PatientErrors
from core.exceptions import StorageError
from core.result import Deleted, Err, Error, Ok, Page, Result
from models import Appointment, Gender, Patient, PatientMedicalHistory
from repositories.base import GenericRepository, translate_storage_error
from storage.database import Database, Session

logger = logging.getLogger(__name__)

# Relations loaded to assemble a patient's medical history
MEDICAL_HISTORY_INCLUDES = (
    "medical_records.provider",
    "medications.prescribing_provider",
    "lab_results.ordering_provider",
    "appointments.provider",
)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _as_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def _range_start(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        return to_utc(value)
    return to_utc(datetime.combine(value, time.min))


def _range_end(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        return to_utc(value)
    return to_utc(datetime.combine(value, time.max))


class PatientRepository:
    """
    Repository for patient operations.

    Generic reads and deletes are delegated unchanged; ``add`` and
    ``update`` validate before delegating.
    """

    def __init__(self, db: Database):
        """
        Initialize the patient repository.

        Args:
            db: Database (persistence gateway) instance.
        """
        self._db = db
        self._patients: GenericRepository[Patient] = GenericRepository(db, Patient)

    # -------------------------------------------------------------------------
    # Delegated generic operations
    # -------------------------------------------------------------------------

    async def get_all(
        self,
        includes: Optional[Iterable[str]] = None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[List[Patient]]:
        return await self._patients.get_all(includes=includes, cancellation=cancellation)

    async def get_by_id(
        self,
        patient_id: UUID,
        includes: Optional[Iterable[str]] = None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[Patient]:
        return await self._patients.get_by_id(patient_id, includes=includes, cancellation=cancellation)

    async def get_paged(
        self,
        page_index: int,
        page_size: int,
        includes: Optional[Iterable[str]] = None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[Page[Patient]]:
        return await self._patients.get_paged(
            page_index, page_size, includes=includes, cancellation=cancellation
        )

    async def delete(
        self,
        patient_id: UUID,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[Deleted]:
        """Delete a patient; patients with clinical records cannot be deleted."""
        return await self._patients.delete(patient_id, cancellation=cancellation)

    # -------------------------------------------------------------------------
    # Patient queries
    # -------------------------------------------------------------------------

    async def get_by_mrn(
        self,
        mrn: str,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[Patient]:
        """
        Get a patient by exact Medical Record Number.

        Returns:
            Ok(Patient), or Err(Patient.NotFound) if no patient has this MRN.
        """
        result = await self._patients.find_first("mrn = ?", (mrn,), cancellation=cancellation)
        if result.is_err():
            return result
        if result.value is None:
            return Err(PatientErrors.NOT_FOUND)
        return Ok(result.value)

    async def search(
        self,
        term: Optional[str] = None,
        gender: Optional[Union[Gender, str]] = None,
        dob_start: Optional[Union[date, datetime]] = None,
        dob_end: Optional[Union[date, datetime]] = None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[List[Patient]]:
        """
        Search patients by any combination of criteria.

        Args:
            term: Case-insensitive substring matched against first name,
                  last name and MRN. Blank terms are ignored.
            gender: Exact gender match.
            dob_start: Inclusive lower bound on date of birth.
            dob_end: Inclusive upper bound on date of birth.

        Returns:
            Patients ordered by last name, then first name. With no criteria,
            every patient.
        """
        clauses: List[str] = []
        params: list = []

        if term is not None and term.strip():
            pattern = f"%{_escape_like(term.strip().casefold())}%"
            clauses.append(
                "(casefold(first_name) LIKE ? ESCAPE '\\' "
                "OR casefold(last_name) LIKE ? ESCAPE '\\' "
                "OR casefold(mrn) LIKE ? ESCAPE '\\')"
            )
            params.extend([pattern, pattern, pattern])

        if gender is not None:
            try:
                gender = Gender(gender)
            except ValueError:
                return Err(GeneralErrors.validation(f"Unknown gender '{gender}'."))
            clauses.append("gender = ?")
            params.append(gender)

        if dob_start is not None:
            clauses.append("date_of_birth >= ?")
            params.append(_as_date(dob_start))

        if dob_end is not None:
            clauses.append("date_of_birth <= ?")
            params.append(_as_date(dob_end))

        return await self._patients.find_where(
            " AND ".join(clauses) or None,
            params,
            order_by="casefold(last_name), casefold(first_name), rowid",
            cancellation=cancellation,
        )

    async def get_patient_appointments(
        self,
        patient_id: UUID,
        start_date: Optional[Union[date, datetime]] = None,
        end_date: Optional[Union[date, datetime]] = None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[List[Appointment]]:
        """
        Get a patient's appointments, newest first, with the provider attached.

        Both bounds are inclusive and combine on the same query. A bare date
        as ``end_date`` covers the whole day.

        Returns:
            Err(Patient.NotFound) if the patient does not exist; the
            appointment query is not run in that case.
        """
        clauses = ["patient_id = ?"]
        params: list = [patient_id]
        if start_date is not None:
            clauses.append("appointment_date >= ?")
            params.append(_range_start(start_date))
        if end_date is not None:
            clauses.append("appointment_date <= ?")
            params.append(_range_end(end_date))

        try:
            async with self._db.session() as session:
                if not await session.set(Patient).exists("id = ?", (patient_id,), cancellation=cancellation):
                    return Err(PatientErrors.NOT_FOUND)

                appointments = await session.set(Appointment).list(
                    " AND ".join(clauses),
                    params,
                    order_by="appointment_date DESC",
                    includes=("provider",),
                    cancellation=cancellation,
                )
        except StorageError as exc:
            return Err(translate_storage_error(exc, "get_patient_appointments", "Patient"))

        return Ok(appointments)

    async def get_medical_history(
        self,
        patient_id: UUID,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[PatientMedicalHistory]:
        """
        Assemble a patient's complete medical history.

        Each collection is ordered newest first by its clinical date and
        carries its provider; empty collections are empty lists.
        """
        try:
            async with self._db.session() as session:
                patient = await session.set(Patient).find(
                    patient_id,
                    includes=MEDICAL_HISTORY_INCLUDES,
                    cancellation=cancellation,
                )
        except StorageError as exc:
            return Err(translate_storage_error(exc, "get_medical_history", "Patient"))

        if patient is None:
            return Err(PatientErrors.NOT_FOUND)

        return Ok(PatientMedicalHistory(
            patient=patient,
            medical_records=sorted(patient.medical_records or [], key=lambda r: r.visit_date, reverse=True),
            medications=sorted(patient.medications or [], key=lambda m: m.start_date, reverse=True),
            lab_results=sorted(patient.lab_results or [], key=lambda r: r.test_date, reverse=True),
            appointments=sorted(patient.appointments or [], key=lambda a: a.appointment_date, reverse=True),
        ))

    # -------------------------------------------------------------------------
    # Validated writes
    # -------------------------------------------------------------------------

    async def add(
        self,
        patient: Patient,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[Patient]:
        """
        Add a new patient after checking MRN uniqueness and date of birth.

        Returns:
            Ok(Patient) with timestamps stamped, Err(Patient.DuplicateMrn),
            Err(Patient.InvalidDateOfBirth), or a storage error.
        """
        return await self._write_validated(patient, "add", cancellation)

    async def update(
        self,
        patient: Patient,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[Patient]:
        """
        Replace a patient after the same checks as ``add``.

        The MRN check ignores the patient's own row, so saving a patient with
        an unchanged MRN succeeds.
        """
        return await self._write_validated(patient, "update", cancellation)

    async def _validate(
        self,
        session: Session,
        patient: Patient,
        exclude_self: bool,
        cancellation: Optional[asyncio.Event],
    ) -> Optional[Error]:
        where = "mrn = ?"
        params: list = [patient.mrn]
        if exclude_self:
            where += " AND id != ?"
            params.append(patient.id)

        if await session.set(Patient).exists(where, params, cancellation=cancellation):
            return PatientErrors.DUPLICATE_MRN

        if patient.date_of_birth > utc_today():
            return PatientErrors.INVALID_DATE_OF_BIRTH

        return None

    async def _write_validated(
        self,
        patient: Patient,
        operation: str,
        cancellation: Optional[asyncio.Event],
    ) -> Result[Patient]:
        try:
            async with self._db.session() as session:
                async with session.transaction(cancellation):
                    error = await self._validate(
                        session, patient, exclude_self=(operation == "update"), cancellation=cancellation
                    )
                    if error is not None:
                        logger.warning(
                            f"Patient {operation} rejected: {error.code}",
                            extra={"mrn": patient.mrn, "patient_id": str(patient.id)},
                        )
                        return Err(error)

                    write = self._patients.add if operation == "add" else self._patients.update
                    result = await write(patient, cancellation=cancellation, session=session)
        except StorageError as exc:
            return Err(translate_storage_error(exc, operation, "Patient"))

        if result.is_ok():
            logger.info(
                f"Patient {operation} committed",
                extra={"patient_id": str(patient.id), "row_version": patient.row_version},
            )
        return result
