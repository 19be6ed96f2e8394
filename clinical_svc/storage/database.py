"""
Persistence gateway: SQLite connection management, schema initialization
and the unit-of-work Session used by the repositories.

Optimized for SQLite concurrency with WAL mode and busy_timeout.

Architecture:
    Repository → Session (unit of work) → EntitySet[T] (per-entity handle) → SQLite

    async with db.session() as session:
        patients = session.set(Patient)
        patient = await patients.find(patient_id)
        patient.city = "Leeds"
        patients.update(patient)
        await session.save_changes()

Concurrency model:
    SQLite calls run on the event loop thread. Outside a transaction every
    statement is preceded by a scheduling checkpoint, so concurrent callers
    interleave between statements. Inside ``Session.transaction()`` there are
    no checkpoints: the whole transaction (pre-check queries plus writes) runs
    without yielding, under ``BEGIN IMMEDIATE``. Lost updates are detected
    through the ``row_version`` column.

Timestamps:
    ``created_at``/``updated_at`` are stamped in ``save_changes()`` right
    before the pending writes are applied, overriding any values set by
    callers.
"""
import asyncio
import logging
import sqlite3
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import (
    Any,
    AsyncIterator,
    Dict,
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

from pydantic import ValidationError

from core.config import AUDIT_DATABASE_PATH, DATABASE_BUSY_TIMEOUT, DATABASE_PATH
from core.datetime_utils import to_db_string, utc_now
from core.exceptions import (
    ConcurrencyError,
    ConstraintViolationError,
    ImmutableEntityError,
    InvalidIncludeError,
    RowMappingError,
    StorageError,
)
from models import BaseEntity
from storage.configurations import EntityConfiguration, SchemaNames, get_configuration

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseEntity)

# Keeps IN (...) lists well under SQLite's bound-parameter limit
_IN_CHUNK_SIZE = 500

_ADD = "add"
_UPDATE = "update"
_REMOVE = "remove"


# =============================================================================
# SCHEMA
# =============================================================================

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS main.users (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        role TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        row_version INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS main.patients (
        id TEXT PRIMARY KEY,
        mrn TEXT NOT NULL UNIQUE,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        date_of_birth TEXT NOT NULL,
        gender TEXT NOT NULL,
        address_line1 TEXT,
        address_line2 TEXT,
        city TEXT,
        state TEXT,
        postal_code TEXT,
        phone_number TEXT,
        email TEXT,
        emergency_contact_name TEXT,
        emergency_contact_phone TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        row_version INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS main.appointments (
        id TEXT PRIMARY KEY,
        patient_id TEXT NOT NULL REFERENCES patients(id) ON DELETE RESTRICT,
        provider_id TEXT NOT NULL REFERENCES users(id) ON DELETE RESTRICT,
        appointment_date TEXT NOT NULL,
        duration_minutes INTEGER NOT NULL CHECK (duration_minutes > 0),
        status TEXT NOT NULL,
        appointment_type TEXT NOT NULL,
        notes TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        row_version INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS main.medical_records (
        id TEXT PRIMARY KEY,
        patient_id TEXT NOT NULL REFERENCES patients(id) ON DELETE RESTRICT,
        provider_id TEXT NOT NULL REFERENCES users(id) ON DELETE RESTRICT,
        visit_date TEXT NOT NULL,
        chief_complaint TEXT NOT NULL,
        diagnosis TEXT NOT NULL,
        treatment_plan TEXT NOT NULL,
        notes TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        row_version INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS main.medications (
        id TEXT PRIMARY KEY,
        patient_id TEXT NOT NULL REFERENCES patients(id) ON DELETE RESTRICT,
        prescribing_provider_id TEXT NOT NULL REFERENCES users(id) ON DELETE RESTRICT,
        medication_name TEXT NOT NULL,
        dosage TEXT NOT NULL,
        frequency TEXT NOT NULL,
        start_date TEXT NOT NULL,
        end_date TEXT,
        status TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        row_version INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS main.lab_results (
        id TEXT PRIMARY KEY,
        patient_id TEXT NOT NULL REFERENCES patients(id) ON DELETE RESTRICT,
        ordering_provider_id TEXT NOT NULL REFERENCES users(id) ON DELETE RESTRICT,
        test_name TEXT NOT NULL,
        test_date TEXT NOT NULL,
        result TEXT NOT NULL,
        unit TEXT,
        reference_range TEXT,
        status TEXT NOT NULL,
        notes TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        row_version INTEGER NOT NULL DEFAULT 1
    )
    """,
    # Separate database file: SQLite cannot enforce a foreign key to users here
    """
    CREATE TABLE IF NOT EXISTS audit.audit_logs (
        id TEXT PRIMARY KEY,
        user_id TEXT,
        action_type TEXT NOT NULL,
        table_name TEXT NOT NULL,
        record_id TEXT,
        old_values TEXT,
        new_values TEXT,
        ip_address TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        row_version INTEGER NOT NULL DEFAULT 1
    )
    """,
    "CREATE INDEX IF NOT EXISTS main.ix_appointments_patient_date ON appointments (patient_id, appointment_date)",
    "CREATE INDEX IF NOT EXISTS main.ix_appointments_provider ON appointments (provider_id)",
    "CREATE INDEX IF NOT EXISTS main.ix_medical_records_patient_visit ON medical_records (patient_id, visit_date)",
    "CREATE INDEX IF NOT EXISTS main.ix_medications_patient_status ON medications (patient_id, status)",
    "CREATE INDEX IF NOT EXISTS main.ix_medications_patient_name ON medications (patient_id, medication_name)",
    "CREATE INDEX IF NOT EXISTS main.ix_lab_results_patient_date ON lab_results (patient_id, test_date)",
    "CREATE INDEX IF NOT EXISTS main.ix_lab_results_patient_status ON lab_results (patient_id, status)",
    "CREATE INDEX IF NOT EXISTS audit.ix_audit_logs_created_at ON audit_logs (created_at)",
    "CREATE INDEX IF NOT EXISTS audit.ix_audit_logs_table_record ON audit_logs (table_name, record_id)",
    "CREATE INDEX IF NOT EXISTS audit.ix_audit_logs_user ON audit_logs (user_id)",
]


# =============================================================================
# VALUE CONVERSION
# =============================================================================

def to_db_value(value: Any) -> Any:
    """Convert a model or query value to what SQLite stores."""
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return to_db_string(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def _db_params(params: Iterable[Any]) -> Tuple[Any, ...]:
    return tuple(to_db_value(p) for p in params)


def _casefold(value: Optional[str]) -> Optional[str]:
    """SQL function ``casefold(x)``: Unicode case folding, unlike ASCII-only LOWER()."""
    return value.casefold() if value is not None else None


def _include_tree(includes: Iterable[str]) -> Dict[str, Dict]:
    """Turn ``["appointments.provider", "lab_results"]`` into a nested dict."""
    tree: Dict[str, Dict] = {}
    for path in includes:
        node = tree
        for part in path.split("."):
            node = node.setdefault(part, {})
    return tree


def _check_tree(config: EntityConfiguration, tree: Dict[str, Dict]) -> None:
    for name, nested in tree.items():
        relation = config.relations.get(name)
        if relation is None:
            raise InvalidIncludeError(
                f"{config.entity_name} has no relation named '{name}'",
                entity=config.entity_name,
                relation=name,
            )
        _check_tree(get_configuration(relation.target), nested)


# =============================================================================
# DATABASE
# =============================================================================

class Database:
    """
    SQLite database connection manager with concurrency optimizations.

    Features:
    - WAL mode for better concurrent read/write performance
    - Busy timeout to handle lock contention gracefully
    - Foreign key constraints enabled on every connection
    - Audit tables kept in a separate database attached as schema ``audit``

    Usage:
        db = Database(db_path="/tmp/clinical.db", audit_db_path="/tmp/audit.db")
        async with db.session() as session:
            ...
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        audit_db_path: Optional[str] = None,
        busy_timeout: Optional[int] = None,
    ):
        """
        Initialize the database and create the schema if missing.

        Args:
            db_path: Path to the main SQLite file. Defaults to config DATABASE_PATH.
            audit_db_path: Path to the audit SQLite file. Defaults to config AUDIT_DATABASE_PATH.
            busy_timeout: SQLite busy timeout in milliseconds. Defaults to config value.
        """
        self.db_path = db_path or DATABASE_PATH
        self.audit_db_path = audit_db_path or AUDIT_DATABASE_PATH
        self.busy_timeout = busy_timeout if busy_timeout is not None else DATABASE_BUSY_TIMEOUT

        for path in (self.db_path, self.audit_db_path):
            Path(path).parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    def _configure_connection(self, conn: sqlite3.Connection) -> None:
        """
        Configure connection with settings for concurrency and integrity.

        Args:
            conn: SQLite connection to configure.
        """
        conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout}")
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute(f"ATTACH DATABASE ? AS {SchemaNames.AUDIT}", (self.audit_db_path,))
        conn.create_function("casefold", 1, _casefold, deterministic=True)

    def _init_db(self) -> None:
        """Initialize database schema and enable WAL mode on both files."""
        conn = self.get_connection()
        try:
            for schema in (SchemaNames.DEFAULT, SchemaNames.AUDIT):
                mode = conn.execute(f"PRAGMA {schema}.journal_mode = WAL").fetchone()
                if not mode or mode[0].lower() != "wal":
                    logger.warning(f"Failed to enable WAL mode on {schema}, current mode: {mode}")

            for statement in _SCHEMA:
                conn.execute(statement)
        finally:
            conn.close()

        logger.info(
            f"Database initialized: {self.db_path} "
            f"(audit={self.audit_db_path}, busy_timeout={self.busy_timeout}ms)"
        )

    def get_connection(self) -> sqlite3.Connection:
        """
        Get a new autocommit connection; transactions are opened explicitly.

        Returns:
            sqlite3.Connection: Connection with rows returned as sqlite3.Row.
        """
        conn = sqlite3.connect(self.db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        self._configure_connection(conn)
        return conn

    def session(self) -> "Session":
        """Create a new unit of work. Use it as ``async with db.session() as s``."""
        return Session(self)


# =============================================================================
# SESSION
# =============================================================================

class Session:
    """
    Unit of work over a single connection.

    Writes staged through ``set(T).add/update/remove`` are applied by
    ``save_changes()``. Outside ``transaction()`` each ``save_changes()`` runs
    in its own transaction; inside, the writes join the open transaction and
    are committed when the ``transaction()`` block exits cleanly.
    """

    def __init__(self, db: Database):
        self._db = db
        self._conn: Optional[sqlite3.Connection] = None
        self._pending: List[Tuple[str, EntityConfiguration, BaseEntity]] = []
        self._in_transaction = False
        self._failed = False
        # Persistence stamps of entities written in the open transaction, as
        # they were before the first write; restored if it rolls back
        self._stamped: Dict[int, Tuple[BaseEntity, Dict[str, Any]]] = {}

    async def __aenter__(self) -> "Session":
        try:
            self._conn = self._db.get_connection()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open database connection: {e}") from e
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._conn is None:
            return
        try:
            if self._in_transaction:
                self._rollback()
        finally:
            self._conn.close()
            self._conn = None

    def set(self, entity_type: Type[T]) -> "EntitySet[T]":
        """Get the query/staging handle for an entity type."""
        return EntitySet(self, get_configuration(entity_type))

    # -------------------------------------------------------------------------
    # Cancellation and statement execution
    # -------------------------------------------------------------------------

    async def checkpoint(self, cancellation: Optional[asyncio.Event] = None) -> None:
        """
        Yield to the event loop (outside transactions) and honour cancellation.

        Raises:
            asyncio.CancelledError: If the cancellation event is set.
        """
        if not self._in_transaction:
            await asyncio.sleep(0)
        if cancellation is not None and cancellation.is_set():
            raise asyncio.CancelledError()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """
        Execute one statement, translating sqlite3 errors to storage errors.

        Raises:
            ConstraintViolationError: On UNIQUE/FOREIGN KEY/CHECK violations.
            StorageError: On any other sqlite3 error.
        """
        if self._conn is None:
            raise StorageError("Session is not open")
        try:
            return self._conn.execute(sql, params)
        except sqlite3.IntegrityError as e:
            raise ConstraintViolationError(str(e), sql=sql) from e
        except sqlite3.Error as e:
            raise StorageError(f"Database error: {e}", sql=sql) from e

    async def fetch_all(
        self,
        sql: str,
        params: Sequence[Any] = (),
        cancellation: Optional[asyncio.Event] = None,
    ) -> List[sqlite3.Row]:
        await self.checkpoint(cancellation)
        return self.execute(sql, _db_params(params)).fetchall()

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self, cancellation: Optional[asyncio.Event] = None) -> AsyncIterator["Session"]:
        """
        Run the block inside one ``BEGIN IMMEDIATE`` transaction.

        The write lock is taken up front so a pre-check query and the write
        that depends on it cannot be interleaved with another writer. The
        transaction commits when the block exits normally, and rolls back if
        the block raises, a save inside it failed, or cancellation was
        requested. Nested calls join the outer transaction.
        """
        if self._in_transaction:
            yield self
            return

        await self.checkpoint(cancellation)
        self.execute("BEGIN IMMEDIATE")
        self._in_transaction = True
        self._failed = False
        try:
            yield self
        except BaseException:
            self._rollback()
            raise

        if self._failed:
            self._rollback()
        elif cancellation is not None and cancellation.is_set():
            self._rollback()
            raise asyncio.CancelledError()
        else:
            self._commit()

    def _commit(self) -> None:
        try:
            self.execute("COMMIT")
        except StorageError:
            self._rollback()
            raise
        self._in_transaction = False
        self._pending.clear()
        self._stamped.clear()

    def _rollback(self) -> None:
        self._in_transaction = False
        self._pending.clear()
        for entity, stamps in self._stamped.values():
            for name, value in stamps.items():
                setattr(entity, name, value)
        self._stamped.clear()
        if self._conn is not None and self._conn.in_transaction:
            try:
                self._conn.execute("ROLLBACK")
            except sqlite3.Error:
                logger.exception("Rollback failed")

    # -------------------------------------------------------------------------
    # Change tracking
    # -------------------------------------------------------------------------

    def stage(self, operation: str, config: EntityConfiguration, entity: BaseEntity) -> None:
        if not isinstance(entity, config.entity_type):
            raise TypeError(f"Expected {config.entity_name}, got {type(entity).__name__}")
        if config.append_only and operation != _ADD:
            raise ImmutableEntityError(config.entity_name)
        self._pending.append((operation, config, entity))

    async def save_changes(self, cancellation: Optional[asyncio.Event] = None) -> int:
        """
        Stamp timestamps and apply all pending writes.

        Returns:
            int: Number of rows written.

        Raises:
            ConcurrencyError: If an update/delete hit a stale row_version.
            ConstraintViolationError: If the store rejected a write.
            StorageError: On any other storage fault.
            asyncio.CancelledError: If cancellation was requested; nothing is committed.
        """
        if not self._pending:
            return 0

        if self._in_transaction:
            await self.checkpoint(cancellation)
            try:
                return self._flush()
            except BaseException:
                self._failed = True
                raise

        async with self.transaction(cancellation):
            return self._flush()

    def _flush(self) -> int:
        pending, self._pending = self._pending, []
        now = utc_now()
        for operation, config, entity in pending:
            if operation == _ADD:
                self._insert(config, entity, now)
            elif operation == _UPDATE:
                self._update(config, entity, now)
            else:
                self._delete(config, entity)
        logger.debug(f"Flushed {len(pending)} pending change(s)")
        return len(pending)

    def _remember_stamps(self, entity: BaseEntity) -> None:
        if id(entity) not in self._stamped:
            self._stamped[id(entity)] = (
                entity,
                {name: getattr(entity, name) for name in ("created_at", "updated_at", "row_version")},
            )

    def _insert(self, config: EntityConfiguration, entity: BaseEntity, now: datetime) -> None:
        values = {column: to_db_value(getattr(entity, column)) for column in config.columns}
        values["created_at"] = values["updated_at"] = to_db_string(now)
        values["row_version"] = 1

        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        self.execute(
            f"INSERT INTO {config.qualified_name} ({columns}) VALUES ({placeholders})",
            tuple(values.values()),
        )

        self._remember_stamps(entity)
        entity.created_at = now
        entity.updated_at = now
        entity.row_version = 1

    def _update(self, config: EntityConfiguration, entity: BaseEntity, now: datetime) -> None:
        fixed = {"id", "created_at", "updated_at", "row_version"}
        columns = [c for c in config.columns if c not in fixed]
        assignments = ", ".join(f"{c} = ?" for c in columns)
        params = [to_db_value(getattr(entity, c)) for c in columns]
        params += [to_db_string(now), str(entity.id), entity.row_version]

        cursor = self.execute(
            f"UPDATE {config.qualified_name} "
            f"SET {assignments}, updated_at = ?, row_version = row_version + 1 "
            f"WHERE id = ? AND row_version = ?",
            params,
        )
        if cursor.rowcount == 0:
            raise ConcurrencyError(table=config.table_name, entity_id=str(entity.id))

        row = self.execute(
            f"SELECT created_at FROM {config.qualified_name} WHERE id = ?",
            (str(entity.id),),
        ).fetchone()
        self._remember_stamps(entity)
        entity.created_at = row["created_at"]
        entity.updated_at = now
        entity.row_version = entity.row_version + 1

    def _delete(self, config: EntityConfiguration, entity: BaseEntity) -> None:
        cursor = self.execute(
            f"DELETE FROM {config.qualified_name} WHERE id = ? AND row_version = ?",
            (str(entity.id), entity.row_version),
        )
        if cursor.rowcount == 0:
            raise ConcurrencyError(table=config.table_name, entity_id=str(entity.id))

    # -------------------------------------------------------------------------
    # Eager loading
    # -------------------------------------------------------------------------

    async def load_includes(
        self,
        config: EntityConfiguration,
        entities: Sequence[BaseEntity],
        includes: Iterable[str],
        cancellation: Optional[asyncio.Event] = None,
    ) -> None:
        """Attach the requested navigation properties (dotted paths allowed)."""
        tree = _include_tree(includes)
        _check_tree(config, tree)
        if tree and entities:
            await self._load_tree(config, entities, tree, cancellation)

    async def _load_tree(
        self,
        config: EntityConfiguration,
        entities: Sequence[BaseEntity],
        tree: Dict[str, Dict],
        cancellation: Optional[asyncio.Event],
    ) -> None:
        for name, nested in tree.items():
            relation = config.relations.get(name)
            target = get_configuration(relation.target)
            keys = {getattr(e, relation.local_key) for e in entities}
            keys.discard(None)
            related = await EntitySet(self, target).where_in(relation.remote_key, keys, cancellation)

            if nested:
                await self._load_tree(target, related, nested, cancellation)

            if relation.many:
                grouped: Dict[Any, List[BaseEntity]] = defaultdict(list)
                for item in related:
                    grouped[getattr(item, relation.remote_key)].append(item)
                for entity in entities:
                    setattr(entity, name, list(grouped.get(getattr(entity, relation.local_key), [])))
            else:
                by_key = {getattr(item, relation.remote_key): item for item in related}
                for entity in entities:
                    setattr(entity, name, by_key.get(getattr(entity, relation.local_key)))


# =============================================================================
# ENTITY SET
# =============================================================================

class EntitySet(Generic[T]):
    """
    Query and staging handle for one entity type within a Session.

    ``where`` clauses are SQL fragments with ``?`` placeholders; parameters
    may be UUIDs, enums, dates or datetimes and are converted to their
    stored representation.
    """

    def __init__(self, session: Session, config: EntityConfiguration):
        self._session = session
        self._config = config

    def _select(
        self,
        where: Optional[str] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> str:
        sql = f"SELECT {', '.join(self._config.columns)} FROM {self._config.qualified_name}"
        if where:
            sql += f" WHERE {where}"
        if order_by:
            sql += f" ORDER BY {order_by}"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
            if offset:
                sql += f" OFFSET {int(offset)}"
        return sql

    def _to_entity(self, row: sqlite3.Row) -> T:
        try:
            return self._config.entity_type.model_validate(dict(row))
        except ValidationError as e:
            raise RowMappingError(
                f"Row in '{self._config.table_name}' failed validation: {e}",
                table=self._config.table_name,
            ) from e

    async def list(
        self,
        where: Optional[str] = None,
        params: Sequence[Any] = (),
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        includes: Iterable[str] = (),
        cancellation: Optional[asyncio.Event] = None,
    ) -> List[T]:
        rows = await self._session.fetch_all(
            self._select(where, order_by, limit, offset), params, cancellation
        )
        entities = [self._to_entity(row) for row in rows]
        await self._session.load_includes(self._config, entities, includes, cancellation)
        return entities

    async def first(
        self,
        where: Optional[str] = None,
        params: Sequence[Any] = (),
        order_by: Optional[str] = None,
        includes: Iterable[str] = (),
        cancellation: Optional[asyncio.Event] = None,
    ) -> Optional[T]:
        found = await self.list(where, params, order_by, limit=1, includes=includes, cancellation=cancellation)
        return found[0] if found else None

    async def find(
        self,
        entity_id: UUID,
        includes: Iterable[str] = (),
        cancellation: Optional[asyncio.Event] = None,
    ) -> Optional[T]:
        return await self.first("id = ?", (entity_id,), includes=includes, cancellation=cancellation)

    async def count(
        self,
        where: Optional[str] = None,
        params: Sequence[Any] = (),
        cancellation: Optional[asyncio.Event] = None,
    ) -> int:
        sql = f"SELECT COUNT(*) FROM {self._config.qualified_name}"
        if where:
            sql += f" WHERE {where}"
        rows = await self._session.fetch_all(sql, params, cancellation)
        return rows[0][0]

    async def exists(
        self,
        where: str,
        params: Sequence[Any] = (),
        cancellation: Optional[asyncio.Event] = None,
    ) -> bool:
        sql = f"SELECT EXISTS (SELECT 1 FROM {self._config.qualified_name} WHERE {where})"
        rows = await self._session.fetch_all(sql, params, cancellation)
        return bool(rows[0][0])

    async def where_in(
        self,
        column: str,
        values: Iterable[Any],
        cancellation: Optional[asyncio.Event] = None,
    ) -> List[T]:
        """Rows whose ``column`` is one of ``values``, in insertion order."""
        values = list(values)
        found: List[T] = []
        for start in range(0, len(values), _IN_CHUNK_SIZE):
            chunk = values[start:start + _IN_CHUNK_SIZE]
            placeholders = ", ".join("?" for _ in chunk)
            found.extend(await self.list(f"{column} IN ({placeholders})", chunk, order_by="rowid", cancellation=cancellation))
        return found

    def add(self, entity: T) -> None:
        """Stage an insert."""
        self._session.stage(_ADD, self._config, entity)

    def update(self, entity: T) -> None:
        """Stage a full-row replace guarded by the entity's row_version."""
        self._session.stage(_UPDATE, self._config, entity)

    def remove(self, entity: T) -> None:
        """Stage a delete guarded by the entity's row_version."""
        self._session.stage(_REMOVE, self._config, entity)
