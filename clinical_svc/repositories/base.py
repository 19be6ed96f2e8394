"""
Generic repository: CRUD and pagination over any configured entity type.

Every operation returns a Result (core.result) instead of raising. Storage
faults raised by the persistence gateway are translated here:

    ConcurrencyError          → Conflict  General.ConcurrencyConflict
    ConstraintViolationError  → Conflict  General.ConstraintViolation
    InvalidIncludeError       → Validation General.ValidationError
    any other StorageError    → Failure   General.DatabaseError

``asyncio.CancelledError`` is not a storage fault and always propagates.

Usage:
    appointments = GenericRepository(db, Appointment, includes=("provider",))
    result = await appointments.get_by_id(appointment_id)
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import (
    Any,
    AsyncIterator,
    Generic,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
)
from uuid import UUID

from core.config import DEFAULT_PAGE_SIZE
from core.errors import GeneralErrors
from core.exceptions import (
    ConcurrencyError,
    ConstraintViolationError,
    InvalidIncludeError,
    StorageError,
)
from core.result import DELETED, Deleted, Err, Error, Ok, Page, Result
from models import BaseEntity
from storage.database import Database, Session

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseEntity)


def translate_storage_error(exc: StorageError, operation: str, entity_name: str) -> Error:
    """
    Map a gateway exception onto the error returned to callers.

    Args:
        exc: The exception raised by the persistence gateway.
        operation: Repository operation name, for logging.
        entity_name: Entity type name, for logging.
    """
    if isinstance(exc, InvalidIncludeError):
        logger.warning(f"Rejected include during {entity_name}.{operation}: {exc.detail}")
        return GeneralErrors.validation(exc.detail)
    if isinstance(exc, ConcurrencyError):
        logger.warning(
            f"Concurrency conflict during {entity_name}.{operation}",
            extra={"context": exc.context},
        )
        return GeneralErrors.CONCURRENCY_CONFLICT
    if isinstance(exc, ConstraintViolationError):
        logger.warning(
            f"Constraint violation during {entity_name}.{operation}: {exc.detail}",
            extra={"context": exc.context},
        )
        return GeneralErrors.CONSTRAINT_VIOLATION
    logger.exception(f"Storage failure during {entity_name}.{operation}: {exc.detail}")
    return GeneralErrors.DATABASE_ERROR


class GenericRepository(Generic[T]):
    """
    Mechanical data access for one entity type.

    Args:
        db: Persistence gateway.
        entity_type: The entity class this repository manages.
        includes: Relations eager-loaded by every read that does not pass its
            own ``includes``. Dotted paths load nested relations, e.g.
            ``"appointments.provider"``.

    Write operations accept an optional ``session``; when given, the write
    joins that session (and its open transaction) instead of opening its own.
    """

    def __init__(self, db: Database, entity_type: Type[T], includes: Sequence[str] = ()):
        self._db = db
        self._entity_type = entity_type
        self._includes: Tuple[str, ...] = tuple(includes)

    @property
    def entity_name(self) -> str:
        return self._entity_type.__name__

    def _resolve_includes(self, includes: Optional[Iterable[str]]) -> Tuple[str, ...]:
        return self._includes if includes is None else tuple(includes)

    @asynccontextmanager
    async def _session_scope(self, session: Optional[Session]) -> AsyncIterator[Session]:
        if session is not None:
            yield session
            return
        async with self._db.session() as own_session:
            yield own_session

    def _failed(self, exc: StorageError, operation: str) -> Err:
        return Err(translate_storage_error(exc, operation, self.entity_name))

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_all(
        self,
        includes: Optional[Iterable[str]] = None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[List[T]]:
        """Return every row, in insertion order."""
        return await self.find_where(order_by="rowid", includes=includes, cancellation=cancellation)

    async def get_by_id(
        self,
        entity_id: UUID,
        includes: Optional[Iterable[str]] = None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[T]:
        """Return the entity with this id, or NotFound."""
        try:
            async with self._db.session() as session:
                entity = await session.set(self._entity_type).find(
                    entity_id,
                    includes=self._resolve_includes(includes),
                    cancellation=cancellation,
                )
        except StorageError as exc:
            return self._failed(exc, "get_by_id")

        if entity is None:
            return Err(GeneralErrors.not_found(self.entity_name, entity_id))
        return Ok(entity)

    async def get_paged(
        self,
        page_index: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
        includes: Optional[Iterable[str]] = None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[Page[T]]:
        """
        Return one zero-based page plus the total row count.

        ``total_count`` counts every row regardless of the page window.
        """
        if page_index < 0 or page_size <= 0:
            return Err(GeneralErrors.validation(
                f"page_index must be >= 0 and page_size > 0 (got {page_index}, {page_size})."
            ))

        try:
            async with self._db.session() as session:
                entities = session.set(self._entity_type)
                total_count = await entities.count(cancellation=cancellation)
                offset = page_index * page_size
                if offset >= total_count:
                    items: List[T] = []
                else:
                    items = await entities.list(
                        order_by="rowid",
                        limit=min(page_size, total_count - offset),
                        offset=offset,
                        includes=self._resolve_includes(includes),
                        cancellation=cancellation,
                    )
        except StorageError as exc:
            return self._failed(exc, "get_paged")

        return Ok(Page(items=items, total_count=total_count))

    async def find_where(
        self,
        where: Optional[str] = None,
        params: Sequence[Any] = (),
        order_by: Optional[str] = None,
        includes: Optional[Iterable[str]] = None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[List[T]]:
        """Return rows matching a SQL ``where`` fragment (``?`` placeholders)."""
        try:
            async with self._db.session() as session:
                entities = await session.set(self._entity_type).list(
                    where,
                    params,
                    order_by=order_by,
                    includes=self._resolve_includes(includes),
                    cancellation=cancellation,
                )
        except StorageError as exc:
            return self._failed(exc, "find_where")
        return Ok(entities)

    async def find_first(
        self,
        where: str,
        params: Sequence[Any] = (),
        includes: Optional[Iterable[str]] = None,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[Optional[T]]:
        """Return the first row matching ``where``, or ``Ok(None)``."""
        try:
            async with self._db.session() as session:
                entity = await session.set(self._entity_type).first(
                    where,
                    params,
                    order_by="rowid",
                    includes=self._resolve_includes(includes),
                    cancellation=cancellation,
                )
        except StorageError as exc:
            return self._failed(exc, "find_first")
        return Ok(entity)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def add(
        self,
        entity: T,
        cancellation: Optional[asyncio.Event] = None,
        session: Optional[Session] = None,
    ) -> Result[T]:
        """Insert a new row; the gateway stamps created_at/updated_at."""
        try:
            async with self._session_scope(session) as active:
                active.set(self._entity_type).add(entity)
                await active.save_changes(cancellation)
        except StorageError as exc:
            return self._failed(exc, "add")

        if session is None:
            logger.info(f"{self.entity_name} added", extra={"entity_id": str(entity.id)})
        return Ok(entity)

    async def update(
        self,
        entity: T,
        cancellation: Optional[asyncio.Event] = None,
        session: Optional[Session] = None,
    ) -> Result[T]:
        """
        Replace the stored row with ``entity``.

        The write only succeeds if the stored row_version still equals
        ``entity.row_version``; otherwise the result is ConcurrencyConflict.
        """
        try:
            async with self._session_scope(session) as active:
                active.set(self._entity_type).update(entity)
                await active.save_changes(cancellation)
        except StorageError as exc:
            return self._failed(exc, "update")

        if session is None:
            logger.info(
                f"{self.entity_name} updated",
                extra={"entity_id": str(entity.id), "row_version": entity.row_version},
            )
        return Ok(entity)

    async def delete(
        self,
        entity_id: UUID,
        cancellation: Optional[asyncio.Event] = None,
        session: Optional[Session] = None,
    ) -> Result[Deleted]:
        """
        Delete by id.

        Returns NotFound if the row is absent, and ConstraintViolation if
        dependent rows reference it.
        """
        try:
            async with self._session_scope(session) as active:
                async with active.transaction(cancellation):
                    entities = active.set(self._entity_type)
                    entity = await entities.find(entity_id, cancellation=cancellation)
                    if entity is None:
                        return Err(GeneralErrors.not_found(self.entity_name, entity_id))
                    entities.remove(entity)
                    await active.save_changes(cancellation)
        except StorageError as exc:
            return self._failed(exc, "delete")

        if session is None:
            logger.info(f"{self.entity_name} deleted", extra={"entity_id": str(entity_id)})
        return Ok(DELETED)
