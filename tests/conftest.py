"""
Pytest fixtures for the recurring expense engine test suite.

Provides:
- In-memory SQLite sessions (SAVEPOINT-capable) with all tables created
- A DeterministicClock pinned to 2026-10-19 (a Monday)
- Repository, ledger, service and engine fixtures wired to that clock
- Structured log capture
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from expense_kernel.db.engine import create_engine_from_url, create_tables
from expense_kernel.domain.clock import DeterministicClock
from expense_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from expense_recurring.domain.types import (
    DailyConfig,
    RecurringExpenseDefinition,
)
from expense_recurring.engine import RecurringExpenseEngine
from expense_recurring.repository.sqlalchemy_repository import (
    SqlAlchemyRecurringRepository,
)
from expense_recurring.services.definitions import RecurringExpenseService
from expense_recurring.services.ledger import GenerationLedger

TODAY = date(2026, 10, 19)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture expense_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, recurring_engine):
            recurring_engine.generate()
            logs = captured_logs()
            assert any(r["message"] == "generation_run_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("expense_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database with all tables."""
    engine = create_engine_from_url("sqlite:///:memory:")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(db_engine):
    s = Session(bind=db_engine, expire_on_commit=False)
    yield s
    s.rollback()
    s.close()


# =============================================================================
# Engine fixtures
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def repository(session, clock):
    return SqlAlchemyRecurringRepository(session, clock=clock)


@pytest.fixture
def ledger(repository, clock):
    return GenerationLedger(repository, clock=clock)


@pytest.fixture
def definitions(repository, clock):
    return RecurringExpenseService(repository, clock=clock)


@pytest.fixture
def recurring_engine(repository, clock):
    return RecurringExpenseEngine(repository, clock=clock)


@pytest.fixture
def make_definition(repository):
    """
    Store a definition with an explicit cursor, bypassing the service.

    Usage::

        d = make_definition(next_generate=date(2026, 10, 15))
    """

    def _make(**overrides) -> RecurringExpenseDefinition:
        values = dict(
            id=uuid4(),
            name="Rent",
            category="housing",
            amount=Decimal("1200.00"),
            frequency_config=DailyConfig(),
            start_date=date(2026, 1, 1),
            next_generate=TODAY,
        )
        values.update(overrides)
        return repository.add_definition(RecurringExpenseDefinition(**values))

    return _make
