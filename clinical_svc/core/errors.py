"""
Catalogue of every error a repository can return.

Codes are stable and safe to expose to upstream handlers; descriptions are
human-readable and may change.
"""
from uuid import UUID

from core.result import Error


class PatientErrors:
    NOT_FOUND = Error.not_found(
        code="Patient.NotFound",
        description="Patient with specified identifier was not found.",
    )

    DUPLICATE_MRN = Error.conflict(
        code="Patient.DuplicateMrn",
        description="A patient with this MRN already exists.",
    )

    INVALID_DATE_OF_BIRTH = Error.validation(
        code="Patient.InvalidDateOfBirth",
        description="Date of birth cannot be in the future.",
    )


class UserErrors:
    NOT_FOUND = Error.not_found(
        code="User.NotFound",
        description="User with specified email was not found.",
    )


class GeneralErrors:
    CONCURRENCY_CONFLICT = Error.conflict(
        code="General.ConcurrencyConflict",
        description="The record was modified by another user.",
    )

    CONSTRAINT_VIOLATION = Error.conflict(
        code="General.ConstraintViolation",
        description="The change conflicts with existing data or dependent records.",
    )

    DATABASE_ERROR = Error.failure(
        code="General.DatabaseError",
        description="An error occurred while accessing the database.",
    )

    VALIDATION_ERROR = Error.validation(
        code="General.ValidationError",
        description="One or more validation errors occurred.",
    )

    @staticmethod
    def not_found(entity_name: str, entity_id: UUID) -> Error:
        """NotFound for a generic lookup; the description names the entity."""
        return Error.not_found(
            code="General.NotFound",
            description=f"{entity_name} with Id {entity_id} not found.",
        )

    @staticmethod
    def validation(description: str) -> Error:
        """Validation error with a call-specific description."""
        return Error.validation(code="General.ValidationError", description=description)
