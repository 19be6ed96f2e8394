"""
Per-entity storage configuration.

Each entity type is paired with an EntityConfiguration naming its table,
the schema (attached database) the table lives in, the relations that can
be eager-loaded through ``includes``, and whether rows are append-only.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Type

from models import (
    Appointment,
    AuditLog,
    BaseEntity,
    LabResult,
    MedicalRecord,
    Medication,
    Patient,
    User,
)


class TableNames:
    USERS = "users"
    PATIENTS = "patients"
    APPOINTMENTS = "appointments"
    MEDICAL_RECORDS = "medical_records"
    MEDICATIONS = "medications"
    LAB_RESULTS = "lab_results"
    AUDIT_LOGS = "audit_logs"


class SchemaNames:
    DEFAULT = "main"
    AUDIT = "audit"


@dataclass(frozen=True)
class Relation:
    """
    A navigation property that can be loaded on demand.

    Rows of ``target`` whose ``remote_key`` equals the source's ``local_key``
    are attached under the property ``name``: a list when ``many`` is True,
    otherwise a single entity (or None).
    """

    target: Type[BaseEntity]
    local_key: str
    remote_key: str
    many: bool = False


def _has_many(target: Type[BaseEntity], foreign_key: str) -> Relation:
    return Relation(target=target, local_key="id", remote_key=foreign_key, many=True)


def _belongs_to(target: Type[BaseEntity], foreign_key: str) -> Relation:
    return Relation(target=target, local_key=foreign_key, remote_key="id")


@dataclass(frozen=True)
class EntityConfiguration:
    entity_type: Type[BaseEntity]
    table_name: str
    schema_name: str = SchemaNames.DEFAULT
    relations: Dict[str, Relation] = field(default_factory=dict)
    append_only: bool = False

    @property
    def qualified_name(self) -> str:
        """Table name prefixed with its schema, e.g. ``audit.audit_logs``."""
        return f"{self.schema_name}.{self.table_name}"

    @property
    def entity_name(self) -> str:
        return self.entity_type.__name__

    @property
    def columns(self) -> List[str]:
        return self.entity_type.column_names()


CONFIGURATIONS: Dict[Type[BaseEntity], EntityConfiguration] = {
    config.entity_type: config
    for config in (
        EntityConfiguration(
            entity_type=User,
            table_name=TableNames.USERS,
            relations={
                "appointments": _has_many(Appointment, "provider_id"),
                "medical_records": _has_many(MedicalRecord, "provider_id"),
                "prescribed_medications": _has_many(Medication, "prescribing_provider_id"),
                "ordered_lab_results": _has_many(LabResult, "ordering_provider_id"),
            },
        ),
        EntityConfiguration(
            entity_type=Patient,
            table_name=TableNames.PATIENTS,
            relations={
                "appointments": _has_many(Appointment, "patient_id"),
                "medical_records": _has_many(MedicalRecord, "patient_id"),
                "medications": _has_many(Medication, "patient_id"),
                "lab_results": _has_many(LabResult, "patient_id"),
            },
        ),
        EntityConfiguration(
            entity_type=Appointment,
            table_name=TableNames.APPOINTMENTS,
            relations={
                "patient": _belongs_to(Patient, "patient_id"),
                "provider": _belongs_to(User, "provider_id"),
            },
        ),
        EntityConfiguration(
            entity_type=MedicalRecord,
            table_name=TableNames.MEDICAL_RECORDS,
            relations={
                "patient": _belongs_to(Patient, "patient_id"),
                "provider": _belongs_to(User, "provider_id"),
            },
        ),
        EntityConfiguration(
            entity_type=Medication,
            table_name=TableNames.MEDICATIONS,
            relations={
                "patient": _belongs_to(Patient, "patient_id"),
                "prescribing_provider": _belongs_to(User, "prescribing_provider_id"),
            },
        ),
        EntityConfiguration(
            entity_type=LabResult,
            table_name=TableNames.LAB_RESULTS,
            relations={
                "patient": _belongs_to(Patient, "patient_id"),
                "ordering_provider": _belongs_to(User, "ordering_provider_id"),
            },
        ),
        EntityConfiguration(
            entity_type=AuditLog,
            table_name=TableNames.AUDIT_LOGS,
            schema_name=SchemaNames.AUDIT,
            append_only=True,
        ),
    )
}


def get_configuration(entity_type: Type[BaseEntity]) -> EntityConfiguration:
    """
    Look up the storage configuration for an entity type.

    Raises:
        LookupError: If the type is not a configured entity.
    """
    try:
        return CONFIGURATIONS[entity_type]
    except KeyError:
        raise LookupError(f"No storage configuration for {entity_type.__name__}") from None
