"""
Closed enumerations used by the entity models.

Values are the strings persisted in the database. Constructing an entity
with a value outside these sets fails model validation.
"""
from enum import Enum


class Gender(str, Enum):
    """Patient gender identity."""

    MALE = "Male"
    FEMALE = "Female"
    NON_BINARY = "NonBinary"
    OTHER = "Other"
    PREFER_NOT_TO_SAY = "PreferNotToSay"


class UserRole(str, Enum):
    """Role of a system user; drives access control upstream."""

    ADMINISTRATOR = "Administrator"
    PHYSICIAN = "Physician"
    NURSE = "Nurse"
    LAB_TECHNICIAN = "LabTechnician"
    RECEPTIONIST = "Receptionist"


class AppointmentStatus(str, Enum):
    """
    Lifecycle of an appointment.

    Transition legality is decided by the calling workflow, not here.
    """

    SCHEDULED = "Scheduled"
    CONFIRMED = "Confirmed"
    CHECKED_IN = "CheckedIn"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "NoShow"


class LabResultStatus(str, Enum):
    ORDERED = "Ordered"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    ABNORMAL = "Abnormal"  # outside reference range, needs provider attention


class MedicationStatus(str, Enum):
    ACTIVE = "Active"
    DISCONTINUED = "Discontinued"
    COMPLETED = "Completed"
    ON_HOLD = "OnHold"
