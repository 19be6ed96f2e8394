"""
Base shape shared by every persisted entity.
"""
from datetime import datetime
from typing import Annotated, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from core.datetime_utils import parse_datetime

# Any datetime accepted by an entity is normalised to timezone-aware UTC
UtcDateTime = Annotated[datetime, BeforeValidator(parse_datetime)]


class BaseEntity(BaseModel):
    """
    Identity, audit timestamps and concurrency token.

    ``created_at`` and ``updated_at`` are stamped by the persistence gateway
    when changes are saved; values supplied by callers are overwritten.
    ``row_version`` is incremented by the gateway on every write and is
    checked on update/delete to detect lost updates.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: UUID = Field(default_factory=uuid4, frozen=True)
    created_at: Optional[UtcDateTime] = None
    updated_at: Optional[UtcDateTime] = None
    row_version: int = Field(default=0, ge=0)

    @classmethod
    def column_names(cls) -> List[str]:
        """Names of the persisted fields (navigation properties are excluded)."""
        return [name for name, info in cls.model_fields.items() if not info.exclude]
