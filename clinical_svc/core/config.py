"""
Configuration module for the clinical records data-access layer.
Uses Pydantic BaseSettings for validation - app fails fast if config is invalid.
"""
import logging
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings with validation.
    Values are read from the environment or a local .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database Configuration
    clinical_svc_db_dir: str = Field(default="data", description="Database directory")
    clinical_svc_db_file: str = Field(default="clinical_records.db", description="Main database filename")
    clinical_svc_audit_db_file: str = Field(
        default="clinical_audit.db",
        description="Database file attached as the 'audit' schema"
    )
    clinical_svc_db_busy_timeout: int = Field(
        default=5000,
        ge=0,
        description="SQLite busy timeout in milliseconds"
    )

    # Repository Configuration
    clinical_svc_default_page_size: int = Field(
        default=20,
        gt=0,
        description="Page size used when callers do not supply one"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: str = Field(default="json", description="Log output format: json or text")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, value: str) -> str:
        """Only json and text formatters are available."""
        value = value.lower()
        if value not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return value

    @model_validator(mode="after")
    def validate_database_files(self) -> "Settings":
        """The audit schema must be a separate file from the main database."""
        if self.clinical_svc_audit_db_file == self.clinical_svc_db_file:
            logger.critical(
                "CLINICAL_SVC_AUDIT_DB_FILE must differ from CLINICAL_SVC_DB_FILE"
            )
            raise ValueError("Audit database file must differ from the main database file")
        return self

    @property
    def database_path(self) -> str:
        """Get the full path of the main database."""
        return str(Path(self.clinical_svc_db_dir) / self.clinical_svc_db_file)

    @property
    def audit_database_path(self) -> str:
        """Get the full path of the audit database."""
        return str(Path(self.clinical_svc_db_dir) / self.clinical_svc_audit_db_file)


# Create global settings instance - fails fast if config is invalid
settings = Settings()

DATABASE_DIR = settings.clinical_svc_db_dir
DATABASE_PATH = settings.database_path
AUDIT_DATABASE_PATH = settings.audit_database_path
DATABASE_BUSY_TIMEOUT = settings.clinical_svc_db_busy_timeout
DEFAULT_PAGE_SIZE = settings.clinical_svc_default_page_size
