"""
ORM round-trip tests for expense_recurring.models.

Uses in-memory SQLite; verifies to_dto()/from_dto() and the partial unique
index on successful generations.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError

from expense_recurring.domain.types import (
    GenerationLogEntry,
    GenerationStatus,
    LedgerTransaction,
    RecurringExpenseDefinition,
    WeeklyConfig,
    YearlyConfig,
)
from expense_recurring.models.recurring import (
    GenerationLogModel,
    RecurringExpenseModel,
    TransactionModel,
)


def _log_model(definition_id, day, status, tx_id=None, reason=None):
    return GenerationLogModel.from_dto(GenerationLogEntry(
        id=uuid4(),
        recurring_expense_id=definition_id,
        generation_date=day,
        status=status,
        generated_transaction_id=tx_id,
        reason=reason,
    ))


class TestRecurringExpenseModel:

    def test_round_trip(self, session):
        dto = RecurringExpenseDefinition(
            id=uuid4(),
            name="Gym",
            category="health",
            amount=Decimal("49.90"),
            frequency_config=WeeklyConfig(days_of_week=frozenset({1, 4})),
            start_date=date(2026, 1, 5),
            end_date=date(2026, 12, 31),
            skip_holidays=True,
            next_generate=date(2026, 10, 19),
        )
        session.add(RecurringExpenseModel.from_dto(dto))
        session.flush()
        session.expunge_all()

        loaded = session.get(RecurringExpenseModel, dto.id).to_dto()
        assert loaded.name == "Gym"
        assert loaded.amount == Decimal("49.90")
        assert loaded.frequency_config == dto.frequency_config
        assert loaded.end_date == date(2026, 12, 31)
        assert loaded.skip_holidays is True
        assert loaded.next_generate == date(2026, 10, 19)
        assert loaded.last_generated is None
        assert loaded.created_at is not None

    def test_frequency_column_follows_config(self, session):
        dto = RecurringExpenseDefinition(
            id=uuid4(),
            name="Insurance",
            category="insurance",
            amount=Decimal("900"),
            frequency_config=YearlyConfig(month_of_year=3, day_of_month=1),
            start_date=date(2026, 3, 1),
        )
        model = RecurringExpenseModel.from_dto(dto)
        assert model.frequency == "yearly"
        assert model.frequency_config == {"month_of_year": 3, "day_of_month": 1}


class TestTransactionModel:

    def test_round_trip(self, session):
        definition_id = uuid4()
        model = TransactionModel.from_dto(LedgerTransaction(
            amount=Decimal("15.99"),
            category="subscriptions",
            date=date(2026, 10, 19),
            note="[auto] Netflix",
            recurring_expense_id=definition_id,
        ))
        session.add(model)
        session.flush()

        dto = model.to_dto()
        assert dto.id is not None
        assert dto.date == date(2026, 10, 19)
        assert dto.type == "expense"
        assert dto.is_auto_generated is True
        assert dto.recurring_expense_id == definition_id

    def test_date_column_name(self):
        columns = {c.name for c in inspect(TransactionModel).columns}
        assert "date" in columns
        assert "transaction_date" not in columns


class TestGenerationLogModel:

    def test_second_success_for_same_key_rejected(self, session):
        definition_id = uuid4()
        day = date(2026, 10, 19)
        session.add(_log_model(definition_id, day, GenerationStatus.SUCCESS, tx_id=uuid4()))
        session.flush()

        session.add(_log_model(definition_id, day, GenerationStatus.SUCCESS, tx_id=uuid4()))
        with pytest.raises(IntegrityError):
            session.flush()

    def test_failures_and_skips_may_repeat(self, session):
        definition_id = uuid4()
        day = date(2026, 10, 19)
        session.add_all([
            _log_model(definition_id, day, GenerationStatus.FAILED, reason="boom"),
            _log_model(definition_id, day, GenerationStatus.FAILED, reason="boom again"),
            _log_model(definition_id, day, GenerationStatus.SKIPPED, reason="holiday"),
            _log_model(definition_id, day, GenerationStatus.SUCCESS, tx_id=uuid4()),
        ])
        session.flush()

        rows = session.execute(
            select(GenerationLogModel).where(
                GenerationLogModel.recurring_expense_id == definition_id,
            )
        ).scalars().all()
        assert len(rows) == 4

    def test_no_foreign_key_to_definitions(self):
        table = GenerationLogModel.__table__
        assert not table.foreign_keys
