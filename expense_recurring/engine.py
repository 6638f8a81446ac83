"""
RecurringExpenseEngine -- DI container for the recurring expense engine.

Contract:
    Wires one Repository, one Clock, the calculator, the materializer, the
    ledger, the holiday calendar and the orchestrator.  Single place where
    all engine dependencies are composed.

Architecture: expense_recurring (top-level).  The canonical entry point for
    triggering generation runs.

Invariants enforced:
    - Clock injection: every collaborator receives the same Clock.
    - Exactly one Repository per engine; nothing resolves a backend through
      global state.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from expense_kernel.config import EngineSettings
from expense_kernel.domain.clock import Clock, SystemClock
from expense_kernel.logging_config import get_logger
from expense_recurring.domain.materializer import TransactionMaterializer
from expense_recurring.domain.schedule import NextRunCalculator
from expense_recurring.domain.types import GenerateResult, GenerationRunResult
from expense_recurring.repository.base import Repository
from expense_recurring.repository.sqlalchemy_repository import (
    SqlAlchemyRecurringRepository,
)
from expense_recurring.services.definitions import RecurringExpenseService
from expense_recurring.services.generator import GenerationOrchestrator
from expense_recurring.services.holidays import HolidayCalendar, StaticHolidayCalendar
from expense_recurring.services.ledger import GenerationLedger

logger = get_logger("recurring.engine")


class RecurringExpenseEngine:
    """Composition root for generation runs and definition management.

    Contract:
        - ``from_session()`` factory creates a fully wired engine.
        - ``generate()`` runs generation for the clock's current date and
          reports the number of transactions created.
        - ``run()`` returns the full ``GenerationRunResult``.

    Non-goals:
        - Does NOT decide when a run happens -- an external trigger does.
        - Does NOT manage session lifecycle -- caller controls commits.
    """

    def __init__(
        self,
        repository: Repository,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
        holidays: HolidayCalendar | None = None,
    ) -> None:
        self._settings = settings or EngineSettings()
        self._clock = clock or SystemClock()
        self._repository = repository

        self._calculator = NextRunCalculator(
            weekly_scan_limit=self._settings.weekly_scan_limit,
        )
        self._materializer = TransactionMaterializer(
            note_prefix=self._settings.note_prefix,
            currency=self._settings.currency,
        )
        self._ledger = GenerationLedger(
            repository,
            clock=self._clock,
            history_limit=self._settings.history_limit,
        )
        self._holidays = holidays or StaticHolidayCalendar(self._settings.holidays)
        self._orchestrator = GenerationOrchestrator(
            repository=repository,
            ledger=self._ledger,
            calculator=self._calculator,
            materializer=self._materializer,
            clock=self._clock,
            holidays=self._holidays,
        )
        self._definitions = RecurringExpenseService(
            repository, calculator=self._calculator, clock=self._clock,
        )

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_session(
        cls,
        session: Session,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
        holidays: HolidayCalendar | None = None,
    ) -> RecurringExpenseEngine:
        """Create a fully wired engine over a SQLAlchemy session.

        Args:
            session: SQLAlchemy session for persistence.
            settings: Optional settings; defaults to ``EngineSettings()``.
            clock: Optional clock for deterministic testing.
            holidays: Optional calendar; defaults to the settings' holidays.
        """
        effective_clock = clock or SystemClock()
        return cls(
            repository=SqlAlchemyRecurringRepository(session, clock=effective_clock),
            settings=settings,
            clock=effective_clock,
            holidays=holidays,
        )

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def generate(self, include_overdue: bool | None = None) -> GenerateResult:
        """Run generation for today; return how many transactions were created.

        Raises:
            GenerationRunAbortedError: Due definitions could not be fetched.
        """
        result = self.run(include_overdue=include_overdue)
        return GenerateResult(count=result.generated)

    def run(self, include_overdue: bool | None = None) -> GenerationRunResult:
        if include_overdue is None:
            include_overdue = self._settings.include_overdue
        return self._orchestrator.run(
            self._clock.today(), include_overdue=include_overdue,
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def repository(self) -> Repository:
        return self._repository

    @property
    def ledger(self) -> GenerationLedger:
        return self._ledger

    @property
    def definitions(self) -> RecurringExpenseService:
        return self._definitions

    @property
    def calculator(self) -> NextRunCalculator:
        return self._calculator

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def settings(self) -> EngineSettings:
        return self._settings
