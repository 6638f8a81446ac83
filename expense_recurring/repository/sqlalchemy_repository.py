"""
SqlAlchemyRecurringRepository -- default Repository over a SQLAlchemy Session.

Contract:
    Implements ``expense_recurring.repository.base.Repository`` against the
    ORM models in ``expense_recurring.models``.  Works on SQLite and
    PostgreSQL.

Architecture: expense_recurring/repository.  Imports from
    expense_recurring.models, expense_recurring.domain and expense_kernel.

Invariants enforced:
    - Every ``SQLAlchemyError`` is translated to ``PersistenceError``.
    - A SUCCESS ledger row colliding with ``uq_generation_logs_success``
      raises ``DuplicateGenerationError``; the failed insert is confined to
      its own SAVEPOINT so the enclosing transaction stays usable.
    - All timestamps come from the injected Clock.

Non-goals:
    - Does NOT call ``session.commit()`` -- caller controls boundaries.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from typing import Any, Generator
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from expense_kernel.domain.clock import Clock, SystemClock
from expense_kernel.exceptions import (
    DefinitionNotFoundError,
    DuplicateGenerationError,
    PersistenceError,
)
from expense_kernel.logging_config import get_logger
from expense_recurring.domain.types import (
    DueDefinition,
    GenerationLogEntry,
    GenerationStatus,
    LedgerTransaction,
    RecurringExpenseDefinition,
)
from expense_recurring.models.recurring import (
    GenerationLogModel,
    RecurringExpenseModel,
    TransactionModel,
)

logger = get_logger("recurring.repository")

_UPDATABLE_FIELDS = frozenset({
    "name",
    "category",
    "amount",
    "frequency_config",
    "start_date",
    "end_date",
    "is_active",
    "skip_holidays",
    "last_generated",
    "next_generate",
})


@contextmanager
def _translate_errors(operation: str) -> Generator[None, None, None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.warning(
            "persistence_error",
            extra={"operation": operation, "error": str(exc)},
        )
        raise PersistenceError(operation, str(exc)) from exc


def _due_on(today: date, include_overdue: bool) -> tuple:
    if include_overdue:
        due = RecurringExpenseModel.next_generate <= today
    else:
        due = RecurringExpenseModel.next_generate == today
    return (
        RecurringExpenseModel.is_active.is_(True),
        RecurringExpenseModel.next_generate.is_not(None),
        due,
    )


class SqlAlchemyRecurringRepository:
    """Repository backed by one SQLAlchemy Session."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    @property
    def session(self) -> Session:
        return self._session

    # -------------------------------------------------------------------------
    # Definitions
    # -------------------------------------------------------------------------

    def find_active_definitions(self) -> list[RecurringExpenseDefinition]:
        with _translate_errors("find_active_definitions"):
            models = self._session.execute(
                select(RecurringExpenseModel)
                .where(RecurringExpenseModel.is_active.is_(True))
                .order_by(
                    RecurringExpenseModel.next_generate,
                    RecurringExpenseModel.name,
                )
            ).scalars().all()
            return [m.to_dto() for m in models]

    def find_pending_generation(
        self, today: date, include_overdue: bool = True,
    ) -> list[RecurringExpenseDefinition]:
        with _translate_errors("find_pending_generation"):
            models = self._session.execute(
                select(RecurringExpenseModel)
                .where(*_due_on(today, include_overdue))
                .order_by(
                    RecurringExpenseModel.next_generate,
                    RecurringExpenseModel.name,
                )
            ).scalars().all()
            return [m.to_dto() for m in models]

    def find_due(
        self, today: date, include_overdue: bool = True,
    ) -> list[DueDefinition]:
        """Keys of due definitions; the stored schedule is not decoded."""
        with _translate_errors("find_due"):
            rows = self._session.execute(
                select(
                    RecurringExpenseModel.id,
                    RecurringExpenseModel.name,
                    RecurringExpenseModel.next_generate,
                )
                .where(*_due_on(today, include_overdue))
                .order_by(
                    RecurringExpenseModel.next_generate,
                    RecurringExpenseModel.name,
                )
            ).all()
            return [
                DueDefinition(id=row.id, name=row.name, next_generate=row.next_generate)
                for row in rows
            ]

    def get_definition(
        self, definition_id: UUID, for_update: bool = False,
    ) -> RecurringExpenseDefinition | None:
        with _translate_errors("get_definition"):
            model = self._load(definition_id, for_update=for_update)
            return model.to_dto() if model is not None else None

    def list_definitions(self) -> list[RecurringExpenseDefinition]:
        with _translate_errors("list_definitions"):
            models = self._session.execute(
                select(RecurringExpenseModel).order_by(
                    RecurringExpenseModel.created_at,
                    RecurringExpenseModel.name,
                )
            ).scalars().all()
            return [m.to_dto() for m in models]

    def add_definition(
        self, definition: RecurringExpenseDefinition,
    ) -> RecurringExpenseDefinition:
        model = RecurringExpenseModel.from_dto(definition)
        now = self._clock.now()
        model.created_at = now
        model.updated_at = now

        with _translate_errors("add_definition"):
            self._session.add(model)
            self._session.flush()
            return model.to_dto()

    def update_definition(
        self, definition_id: UUID, **fields: Any,
    ) -> RecurringExpenseDefinition:
        unknown = sorted(set(fields) - _UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update definition fields: {unknown}")

        with _translate_errors("update_definition"):
            model = self._load(definition_id)
            if model is None:
                raise DefinitionNotFoundError(str(definition_id))

            for name, value in fields.items():
                if name == "frequency_config":
                    model.frequency = value.frequency.value
                    model.frequency_config = value.to_dict()
                else:
                    setattr(model, name, value)
            model.updated_at = self._clock.now()
            self._session.flush()
            return model.to_dto()

    def delete_definition(self, definition_id: UUID) -> None:
        with _translate_errors("delete_definition"):
            model = self._load(definition_id)
            if model is None:
                raise DefinitionNotFoundError(str(definition_id))
            self._session.delete(model)
            self._session.flush()

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def create_transaction(self, transaction: LedgerTransaction) -> UUID:
        model = TransactionModel.from_dto(transaction)
        if model.id is None:
            model.id = uuid4()
        now = self._clock.now()
        model.created_at = now
        model.updated_at = now

        with _translate_errors("create_transaction"):
            self._session.add(model)
            self._session.flush()
            return model.id

    def get_transaction(self, transaction_id: UUID) -> LedgerTransaction | None:
        with _translate_errors("get_transaction"):
            model = self._session.get(TransactionModel, transaction_id)
            return model.to_dto() if model is not None else None

    def transactions_for(self, definition_id: UUID) -> list[LedgerTransaction]:
        with _translate_errors("transactions_for"):
            models = self._session.execute(
                select(TransactionModel)
                .where(TransactionModel.recurring_expense_id == definition_id)
                .order_by(TransactionModel.transaction_date)
            ).scalars().all()
            return [m.to_dto() for m in models]

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    def has_succeeded_on(self, definition_id: UUID, generation_date: date) -> bool:
        with _translate_errors("has_succeeded_on"):
            found = self._session.execute(
                select(GenerationLogModel.id).where(
                    GenerationLogModel.recurring_expense_id == definition_id,
                    GenerationLogModel.generation_date == generation_date,
                    GenerationLogModel.status == GenerationStatus.SUCCESS.value,
                ).limit(1)
            ).scalar_one_or_none()
            return found is not None

    def append_log_entry(self, entry: GenerationLogEntry) -> None:
        model = GenerationLogModel.from_dto(entry)
        if entry.created_at is None:
            now = self._clock.now()
            model.created_at = now
            model.updated_at = now

        savepoint = self._session.begin_nested()
        try:
            self._session.add(model)
            self._session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            if entry.status is GenerationStatus.SUCCESS:
                raise DuplicateGenerationError(
                    str(entry.recurring_expense_id), entry.generation_date,
                ) from exc
            raise PersistenceError("append_log_entry", str(exc)) from exc
        except SQLAlchemyError as exc:
            savepoint.rollback()
            raise PersistenceError("append_log_entry", str(exc)) from exc

    def list_log_entries(self, limit: int | None = None) -> list[GenerationLogEntry]:
        stmt = select(GenerationLogModel).order_by(
            GenerationLogModel.created_at.desc(),
            GenerationLogModel.generation_date.desc(),
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        with _translate_errors("list_log_entries"):
            return [m.to_dto() for m in self._session.execute(stmt).scalars().all()]

    def log_entries_on(self, generation_date: date) -> list[GenerationLogEntry]:
        with _translate_errors("log_entries_on"):
            models = self._session.execute(
                select(GenerationLogModel)
                .where(GenerationLogModel.generation_date == generation_date)
                .order_by(GenerationLogModel.created_at)
            ).scalars().all()
            return [m.to_dto() for m in models]

    def log_entries_for(self, definition_id: UUID) -> list[GenerationLogEntry]:
        with _translate_errors("log_entries_for"):
            models = self._session.execute(
                select(GenerationLogModel)
                .where(GenerationLogModel.recurring_expense_id == definition_id)
                .order_by(
                    GenerationLogModel.generation_date,
                    GenerationLogModel.created_at,
                )
            ).scalars().all()
            return [m.to_dto() for m in models]

    # -------------------------------------------------------------------------
    # Units of work
    # -------------------------------------------------------------------------

    @contextmanager
    def item_scope(self) -> Generator[None, None, None]:
        """One SAVEPOINT per definition; rolled back on any exception."""
        savepoint = self._session.begin_nested()
        try:
            yield
            savepoint.commit()
        except Exception:
            savepoint.rollback()
            raise

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _load(
        self, definition_id: UUID, for_update: bool = False,
    ) -> RecurringExpenseModel | None:
        stmt = select(RecurringExpenseModel).where(
            RecurringExpenseModel.id == definition_id,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self._session.execute(stmt).scalar_one_or_none()
