"""
ORM models for recurring expense persistence.

Contract:
    RecurringExpenseModel, GenerationLogModel, and TransactionModel persist
    definitions (mutable scheduling state), the generation ledger
    (append-only), and materialized transactions.  Each has ``to_dto()`` /
    ``from_dto()`` round-trip methods.

Architecture: expense_recurring/models. Imports from expense_kernel.db.base only.

Invariants enforced:
    - At most one SUCCESS ledger row per (recurring_expense_id,
      generation_date): partial UNIQUE index ``uq_generation_logs_success``.
    - Ledger rows carry no foreign key to ``recurring_expenses``; deleting a
      definition never cascades into the audit trail.
    - Ledger rows are immutable (see expense_kernel.db.immutability).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, Boolean, Date, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from expense_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from expense_recurring.domain.types import (
        GenerationLogEntry,
        LedgerTransaction,
        RecurringExpenseDefinition,
    )


class RecurringExpenseModel(TrackedBase):
    """Recurring expense definition with its scheduling cursor."""

    __tablename__ = "recurring_expenses"

    __table_args__ = (
        Index("ix_recurring_expenses_due", "is_active", "next_generate"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    frequency_config: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    skip_holidays: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_generated: Mapped[date | None] = mapped_column(Date, nullable=True)
    next_generate: Mapped[date | None] = mapped_column(Date, nullable=True)

    def to_dto(self) -> RecurringExpenseDefinition:
        from expense_recurring.domain.types import (
            RecurringExpenseDefinition,
            frequency_config_from_dict,
        )

        return RecurringExpenseDefinition(
            id=self.id,
            name=self.name,
            category=self.category,
            amount=Decimal(self.amount),
            frequency_config=frequency_config_from_dict(
                self.frequency, self.frequency_config,
            ),
            start_date=self.start_date,
            end_date=self.end_date,
            is_active=self.is_active,
            skip_holidays=self.skip_holidays,
            last_generated=self.last_generated,
            next_generate=self.next_generate,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_dto(cls, dto: RecurringExpenseDefinition) -> RecurringExpenseModel:
        model = cls(
            id=dto.id,
            name=dto.name,
            category=dto.category,
            amount=dto.amount,
            frequency=dto.frequency.value,
            frequency_config=dto.frequency_config.to_dict(),
            start_date=dto.start_date,
            end_date=dto.end_date,
            is_active=dto.is_active,
            skip_holidays=dto.skip_holidays,
            last_generated=dto.last_generated,
            next_generate=dto.next_generate,
        )
        if dto.created_at is not None:
            model.created_at = dto.created_at
            model.updated_at = dto.updated_at or dto.created_at
        return model


class GenerationLogModel(TrackedBase):
    """Append-only ledger row for one generation attempt."""

    __tablename__ = "recurring_generation_logs"

    __table_args__ = (
        Index(
            "uq_generation_logs_success",
            "recurring_expense_id",
            "generation_date",
            unique=True,
            sqlite_where=text("status = 'success'"),
            postgresql_where=text("status = 'success'"),
        ),
        Index("ix_generation_logs_date", "generation_date"),
        Index("ix_generation_logs_created_at", "created_at"),
    )

    recurring_expense_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    generation_date: Mapped[date] = mapped_column(Date, nullable=False)
    generated_transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> GenerationLogEntry:
        from expense_recurring.domain.types import GenerationLogEntry, GenerationStatus

        return GenerationLogEntry(
            id=self.id,
            recurring_expense_id=self.recurring_expense_id,
            generation_date=self.generation_date,
            status=GenerationStatus(self.status),
            generated_transaction_id=self.generated_transaction_id,
            reason=self.reason,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: GenerationLogEntry) -> GenerationLogModel:
        model = cls(
            id=dto.id,
            recurring_expense_id=dto.recurring_expense_id,
            generation_date=dto.generation_date,
            generated_transaction_id=dto.generated_transaction_id,
            status=dto.status.value,
            reason=dto.reason,
        )
        if dto.created_at is not None:
            model.created_at = dto.created_at
            model.updated_at = dto.created_at
        return model


class TransactionModel(TrackedBase):
    """Ledger transaction, possibly auto-generated from a definition."""

    __tablename__ = "transactions"

    __table_args__ = (
        Index("ix_transactions_date", "date"),
        Index("ix_transactions_recurring_expense", "recurring_expense_id"),
    )

    type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    transaction_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    recurring_expense_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )
    is_auto_generated: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
    )

    def to_dto(self) -> LedgerTransaction:
        from expense_recurring.domain.types import LedgerTransaction

        return LedgerTransaction(
            id=self.id,
            type=self.type,
            amount=Decimal(self.amount),
            category=self.category,
            date=self.transaction_date,
            note=self.note or "",
            currency=self.currency,
            recurring_expense_id=self.recurring_expense_id,
            is_auto_generated=self.is_auto_generated,
        )

    @classmethod
    def from_dto(cls, dto: LedgerTransaction) -> TransactionModel:
        model = cls(
            type=dto.type,
            amount=dto.amount,
            category=dto.category,
            transaction_date=dto.date,
            note=dto.note,
            currency=dto.currency,
            recurring_expense_id=dto.recurring_expense_id,
            is_auto_generated=dto.is_auto_generated,
        )
        if dto.id is not None:
            model.id = dto.id
        return model
