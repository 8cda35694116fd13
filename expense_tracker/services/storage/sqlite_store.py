"""
SQLite Storage Implementation

DESIGN DECISION: A local SQLite file is the durable store because:
1. Expenses never leave the user's machine (single user, no server)
2. No database setup required
3. Writes are durable once the transaction commits
4. Easy to back up (it's one file)

SCHEMA VERSIONING:
The schema version lives in SQLite's ``PRAGMA user_version``.
Upgrades are additive only (new columns, new indexes) so records
written by an older version are never lost.

Version history:
1. expenses table, indexes on date and category
2. ``source`` column (capture mode)
"""

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional

import structlog
from sqlalchemy import Column, DateTime, Index, String, Text, create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from expense_tracker.config import get_settings
from expense_tracker.models.expense import (
    DEFAULT_CATEGORY,
    DEFAULT_MERCHANT,
    CaptureSource,
    ExpenseRecord,
    ParsedExpenseCandidate,
)
from expense_tracker.services.storage.interface import (
    Clock,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    NotInitializedError,
    StorageError,
    generate_expense_id,
)


logger = structlog.get_logger(__name__)

Base = declarative_base()

EXPENSES_TABLE = "expenses"
SCHEMA_VERSION = 2

# Statements that bring a database at version (key - 1) to version key.
# Only ever ADD here; never drop or rewrite columns.
MIGRATIONS: dict[int, list[str]] = {
    2: [f"ALTER TABLE {EXPENSES_TABLE} ADD COLUMN source VARCHAR(16)"],
}


class ExpenseRow(Base):
    __tablename__ = EXPENSES_TABLE

    id = Column(String, primary_key=True)
    # Stored as text so Decimal values round-trip exactly
    amount = Column(String(32), nullable=False)
    merchant = Column(String(200), nullable=False, default=DEFAULT_MERCHANT)
    category = Column(String(50), nullable=False, default=DEFAULT_CATEGORY)
    description = Column(Text, nullable=False, default="")
    date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False)
    source = Column(String(16), nullable=True)

    __table_args__ = (
        Index("ix_expenses_date", "date"),
        Index("ix_expenses_category", "category"),
    )


class SQLiteExpenseStore(ExpenseStorageInterface):
    """
    SQLite implementation of expense storage.

    One row per expense. Construct it explicitly and pass it to whoever
    needs it; there is no module-level instance.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        clock: Clock = datetime.now,
    ):
        """
        Args:
            path: SQLite file path, or ":memory:". Defaults to the
                  configured ``EXPENSE_DB_PATH``.
            clock: Source of "now" for ``created_at`` and default dates.
        """
        self._path = path or get_settings().storage.path
        self._clock = clock
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def path(self) -> str:
        return self._path

    def _create_engine(self) -> Engine:
        """Create the SQLAlchemy engine, making the parent directory if needed."""
        if self._path == ":memory:":
            # One shared connection, otherwise each session sees an empty DB
            return create_engine(
                "sqlite:///:memory:",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )

        db_path = Path(self._path).expanduser()
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConnectionError(f"Cannot create database directory {db_path.parent}: {e}")

        return create_engine(
            f"sqlite:///{db_path}",
            connect_args={"check_same_thread": False},
        )

    @retry(
        retry=retry_if_exception_type(OperationalError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _apply_schema(self, engine: Engine) -> None:
        """
        Create or upgrade the schema to SCHEMA_VERSION.

        Fresh databases get the current schema in one go; existing ones
        replay only the migrations they haven't seen.
        """
        with engine.begin() as conn:
            table_existed = inspect(conn).has_table(EXPENSES_TABLE)
            version = conn.exec_driver_sql("PRAGMA user_version").scalar() or 0

            if not table_existed:
                Base.metadata.create_all(conn)
            else:
                # Versions before the pragma was written count as 1
                version = max(version, 1)
                for target in sorted(MIGRATIONS):
                    if version < target:
                        for statement in MIGRATIONS[target]:
                            conn.exec_driver_sql(statement)
                        logger.info("schema_migrated", version=target)
                for index in ExpenseRow.__table__.indexes:
                    index.create(conn, checkfirst=True)

            if version != SCHEMA_VERSION:
                conn.exec_driver_sql(f"PRAGMA user_version = {SCHEMA_VERSION}")

    async def init(self) -> None:
        """Open the database and bring the schema up to date."""
        if self._session_factory is not None:
            return

        engine = self._create_engine()
        try:
            self._apply_schema(engine)
        except SQLAlchemyError as e:
            engine.dispose()
            raise ConnectionError(f"Failed to open expense database at {self._path}: {e}")

        self._engine = engine
        self._session_factory = sessionmaker(
            bind=engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )
        logger.info("expense_store_ready", path=self._path, schema_version=SCHEMA_VERSION)

    def _session(self) -> Session:
        if self._session_factory is None:
            raise NotInitializedError("Expense store used before init()")
        return self._session_factory()

    def _row_to_record(self, row: ExpenseRow) -> ExpenseRecord:
        """Convert a database row to an ExpenseRecord."""
        return ExpenseRecord(
            id=row.id,
            amount=Decimal(row.amount),
            merchant=row.merchant,
            category=row.category,
            description=row.description,
            date=row.date,
            created_at=row.created_at,
            source=CaptureSource(row.source) if row.source else None,
        )

    async def add(
        self,
        candidate: ParsedExpenseCandidate,
        date: Optional[datetime] = None,
        source: Optional[CaptureSource] = None,
    ) -> ExpenseRecord:
        """Insert a new expense; committed before this returns."""
        now = self._clock()
        record = ExpenseRecord(
            id=generate_expense_id(),
            amount=candidate.amount,
            merchant=candidate.merchant or DEFAULT_MERCHANT,
            category=candidate.category or DEFAULT_CATEGORY,
            description=candidate.description or "",
            date=date or now,
            created_at=now,
            source=source,
        )

        session = self._session()
        try:
            session.add(ExpenseRow(
                id=record.id,
                amount=str(record.amount),
                merchant=record.merchant,
                category=record.category,
                description=record.description,
                date=record.date,
                created_at=record.created_at,
                source=record.source.value if record.source else None,
            ))
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise DuplicateError(f"Expense ID already exists: {record.id}") from e
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(f"Failed to save expense: {e}") from e
        finally:
            session.close()

        return record

    async def get_all(self) -> list[ExpenseRecord]:
        session = self._session()
        try:
            rows = session.query(ExpenseRow).all()
            return [self._row_to_record(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read expenses: {e}") from e
        finally:
            session.close()

    async def delete(self, expense_id: str) -> bool:
        session = self._session()
        try:
            deleted = (
                session.query(ExpenseRow)
                .filter(ExpenseRow.id == expense_id)
                .delete()
            )
            session.commit()
            return deleted > 0
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(f"Failed to delete expense: {e}") from e
        finally:
            session.close()

    async def close(self) -> None:
        """Release the database connection pool."""
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None
