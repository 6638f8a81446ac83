"""
Tests for SqlAlchemyRecurringRepository.

Uses in-memory SQLite with SAVEPOINT support.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from expense_kernel.exceptions import (
    DefinitionNotFoundError,
    DuplicateGenerationError,
    PersistenceError,
)
from expense_recurring.domain.types import (
    GenerationLogEntry,
    GenerationStatus,
    LedgerTransaction,
    MonthlyConfig,
)
from expense_recurring.models.recurring import RecurringExpenseModel
from expense_recurring.repository.base import Repository

TODAY = date(2026, 10, 19)


def _success(definition_id, day, tx_id=None):
    return GenerationLogEntry(
        id=uuid4(),
        recurring_expense_id=definition_id,
        generation_date=day,
        status=GenerationStatus.SUCCESS,
        generated_transaction_id=tx_id or uuid4(),
    )


def _transaction(definition_id, day=TODAY):
    return LedgerTransaction(
        amount=Decimal("10"),
        category="misc",
        date=day,
        note="[auto] x",
        recurring_expense_id=definition_id,
    )


class TestProtocol:

    def test_satisfies_repository_protocol(self, repository):
        assert isinstance(repository, Repository)


class TestDefinitions:

    def test_pending_includes_overdue_by_default(self, repository, make_definition):
        due_today = make_definition(name="Today")
        overdue = make_definition(name="Overdue", next_generate=TODAY - timedelta(days=3))
        make_definition(name="Future", next_generate=TODAY + timedelta(days=1))

        pending = repository.find_pending_generation(TODAY)
        assert [d.id for d in pending] == [overdue.id, due_today.id]

    def test_pending_without_overdue(self, repository, make_definition):
        due_today = make_definition(name="Today")
        make_definition(name="Overdue", next_generate=TODAY - timedelta(days=3))

        pending = repository.find_pending_generation(TODAY, include_overdue=False)
        assert [d.id for d in pending] == [due_today.id]

    def test_inactive_never_pending(self, repository, make_definition):
        make_definition(is_active=False)
        assert repository.find_pending_generation(TODAY) == []
        assert repository.find_due(TODAY) == []
        assert repository.find_active_definitions() == []

    def test_due_keys_match_pending_selection(self, repository, make_definition):
        due_today = make_definition(name="Today")
        overdue = make_definition(name="Overdue", next_generate=TODAY - timedelta(days=3))
        make_definition(name="Future", next_generate=TODAY + timedelta(days=1))

        keys = repository.find_due(TODAY)
        assert [(k.id, k.name, k.next_generate) for k in keys] == [
            (overdue.id, "Overdue", overdue.next_generate),
            (due_today.id, "Today", TODAY),
        ]
        assert [k.id for k in repository.find_due(TODAY, include_overdue=False)] == [
            due_today.id,
        ]

    def test_due_keys_skip_schedule_decoding(self, repository, session):
        stamp = datetime(2026, 10, 1, tzinfo=timezone.utc)
        session.add(RecurringExpenseModel(
            id=uuid4(),
            name="Broken",
            category="misc",
            amount=Decimal("5"),
            frequency="weekly",
            frequency_config={"days_of_week": []},
            start_date=date(2026, 1, 1),
            is_active=True,
            skip_holidays=False,
            next_generate=TODAY,
            created_at=stamp,
            updated_at=stamp,
        ))
        session.flush()

        [key] = repository.find_due(TODAY)
        assert key.name == "Broken"

    def test_update_definition(self, repository, make_definition, clock):
        d = make_definition()
        clock.advance(60)

        updated = repository.update_definition(
            d.id,
            last_generated=TODAY,
            next_generate=TODAY + timedelta(days=1),
            frequency_config=MonthlyConfig(day_of_month=20),
        )
        assert updated.last_generated == TODAY
        assert updated.next_generate == date(2026, 10, 20)
        assert updated.frequency_config == MonthlyConfig(day_of_month=20)
        assert updated.frequency.value == "monthly"

    def test_update_unknown_field_rejected(self, repository, make_definition):
        d = make_definition()
        with pytest.raises(ValueError):
            repository.update_definition(d.id, id=uuid4())

    def test_update_missing_definition(self, repository):
        with pytest.raises(DefinitionNotFoundError):
            repository.update_definition(uuid4(), is_active=False)

    def test_get_for_update_rereads(self, repository, make_definition):
        d = make_definition()
        fetched = repository.get_definition(d.id, for_update=True)
        assert fetched == repository.get_definition(d.id)
        assert repository.get_definition(uuid4()) is None

    def test_delete_keeps_ledger(self, repository, make_definition):
        d = make_definition()
        repository.append_log_entry(_success(d.id, TODAY))

        repository.delete_definition(d.id)

        assert repository.get_definition(d.id) is None
        assert len(repository.log_entries_for(d.id)) == 1

    def test_delete_missing_definition(self, repository):
        with pytest.raises(DefinitionNotFoundError):
            repository.delete_definition(uuid4())


class TestTransactions:

    def test_create_returns_id(self, repository):
        definition_id = uuid4()
        tx_id = repository.create_transaction(_transaction(definition_id))
        stored = repository.get_transaction(tx_id)
        assert stored.id == tx_id
        assert stored.recurring_expense_id == definition_id
        assert repository.transactions_for(definition_id) == [stored]


class TestLedger:

    def test_has_succeeded_on(self, repository):
        definition_id = uuid4()
        assert not repository.has_succeeded_on(definition_id, TODAY)
        repository.append_log_entry(_success(definition_id, TODAY))
        assert repository.has_succeeded_on(definition_id, TODAY)
        assert not repository.has_succeeded_on(definition_id, TODAY + timedelta(days=1))

    def test_duplicate_success_raises_and_session_survives(self, repository):
        definition_id = uuid4()
        repository.append_log_entry(_success(definition_id, TODAY))

        with pytest.raises(DuplicateGenerationError) as exc_info:
            repository.append_log_entry(_success(definition_id, TODAY))
        assert exc_info.value.code == "DUPLICATE_GENERATION"
        assert isinstance(exc_info.value, PersistenceError)

        # The enclosing transaction is still usable.
        assert len(repository.log_entries_for(definition_id)) == 1

    def test_history_newest_first(self, repository, clock):
        definition_id = uuid4()
        for offset in range(3):
            repository.append_log_entry(
                _success(definition_id, TODAY + timedelta(days=offset)),
            )
            clock.advance(1)

        entries = repository.list_log_entries(limit=2)
        assert [e.generation_date for e in entries] == [
            TODAY + timedelta(days=2),
            TODAY + timedelta(days=1),
        ]

    def test_log_entries_on_date(self, repository):
        a, b = uuid4(), uuid4()
        repository.append_log_entry(_success(a, TODAY))
        repository.append_log_entry(_success(b, TODAY))
        repository.append_log_entry(_success(a, TODAY + timedelta(days=1)))
        assert len(repository.log_entries_on(TODAY)) == 2


class TestItemScope:

    def test_rolls_back_on_error(self, repository):
        definition_id = uuid4()
        with pytest.raises(RuntimeError):
            with repository.item_scope():
                repository.create_transaction(_transaction(definition_id))
                repository.append_log_entry(_success(definition_id, TODAY))
                raise RuntimeError("boom")

        assert repository.transactions_for(definition_id) == []
        assert not repository.has_succeeded_on(definition_id, TODAY)

    def test_keeps_writes_on_success(self, repository):
        definition_id = uuid4()
        with repository.item_scope():
            repository.create_transaction(_transaction(definition_id))
        assert len(repository.transactions_for(definition_id)) == 1


class TestErrorTranslation:

    def test_sqlalchemy_error_becomes_persistence_error(self, repository, monkeypatch):
        def _broken(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(repository.session, "execute", _broken)
        with pytest.raises(PersistenceError) as exc_info:
            repository.find_pending_generation(TODAY)
        assert exc_info.value.operation == "find_pending_generation"
