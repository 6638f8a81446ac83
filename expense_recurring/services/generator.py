"""
GenerationOrchestrator -- one generation run over all due definitions.

Contract:
    ``run(today, include_overdue)`` discovers due definitions, materializes
    one transaction per definition, records every attempt in the ledger and
    advances each definition's scheduling cursor.  Returns a
    ``GenerationRunResult`` with generated / failed / skipped counts.

Architecture: expense_recurring/services.  Imports from
    expense_recurring.domain, expense_recurring.repository and kernel
    services.

Invariants enforced:
    - Per-definition isolation: all of one definition's work, reads
      included, runs inside its own ``item_scope()`` (SAVEPOINT).  A store
      error or a malformed stored schedule rolls back that scope only and
      is recorded as ``failed``; the run goes on with the next definition.
    - Idempotency: a (definition, date) pair already holding a SUCCESS
      entry is skipped without a new transaction.  Every decision is made
      under a keyed in-process lock on a locking re-read of the
      definition; the unique success index is the last line of defence.
    - A failed attempt leaves ``next_generate`` unchanged; a success
      strictly advances it.
    - Only a failure to fetch the due definitions aborts the run.

Non-goals:
    - Does NOT call ``session.commit()`` -- caller controls boundaries.
    - Does NOT retry failed definitions within a run.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import date
from uuid import UUID, uuid4

from expense_kernel.domain.clock import Clock, SystemClock
from expense_kernel.exceptions import (
    ConfigurationError,
    DuplicateGenerationError,
    GenerationRunAbortedError,
    PersistenceError,
)
from expense_kernel.logging_config import LogContext, get_logger
from expense_recurring.domain.materializer import TransactionMaterializer
from expense_recurring.domain.schedule import NextRunCalculator
from expense_recurring.domain.types import (
    DefinitionOutcome,
    DueDefinition,
    GenerationRunResult,
    GenerationStatus,
    RecurringExpenseDefinition,
    SkipReason,
)
from expense_recurring.repository.base import Repository
from expense_recurring.services.holidays import HolidayCalendar, NoHolidays
from expense_recurring.services.ledger import GenerationLedger
from expense_recurring.services.locks import KeyedLock, definition_locks

logger = get_logger("recurring.generator")

# Upper bound on consecutive holiday occurrences skipped in one step.
HOLIDAY_SKIP_LIMIT = 62


class GenerationOrchestrator:
    """Runs generation for every due definition, one at a time.

    Contract:
        - ``run()`` processes due definitions sequentially and returns the
          aggregate result.  Per-definition errors are logged and recorded
          as ``failed`` ledger entries; they never propagate.

    Raises (from ``run()``):
        GenerationRunAbortedError: The due definitions could not be fetched.
    """

    def __init__(
        self,
        repository: Repository,
        ledger: GenerationLedger | None = None,
        calculator: NextRunCalculator | None = None,
        materializer: TransactionMaterializer | None = None,
        clock: Clock | None = None,
        holidays: HolidayCalendar | None = None,
        locks: KeyedLock | None = None,
    ):
        self._repository = repository
        self._clock = clock or SystemClock()
        self._ledger = ledger or GenerationLedger(repository, clock=self._clock)
        self._calculator = calculator or NextRunCalculator()
        self._materializer = materializer or TransactionMaterializer()
        self._holidays = holidays or NoHolidays()
        self._locks = locks or definition_locks()

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run(self, today: date, include_overdue: bool = False) -> GenerationRunResult:
        """Generate transactions for every definition due on ``today``."""
        start_time = time.monotonic()

        with LogContext.bind(run_id=str(uuid4()), run_date=today):
            logger.info(
                "generation_run_started",
                extra={"include_overdue": include_overdue},
            )

            try:
                due = self._repository.find_due(
                    today, include_overdue=include_overdue,
                )
            except PersistenceError as exc:
                logger.error("generation_run_aborted", extra={"error": exc.reason})
                raise GenerationRunAbortedError(today, exc.reason) from exc

            outcomes: list[DefinitionOutcome] = []
            for item in due:
                with LogContext.bind(
                    definition_id=str(item.id),
                    definition_name=item.name,
                    generation_date=item.next_generate,
                ):
                    outcomes.append(self._process(item, today))

            generated = sum(
                1 for o in outcomes if o.status is GenerationStatus.SUCCESS
            )
            failed = sum(1 for o in outcomes if o.status is GenerationStatus.FAILED)
            skipped = len(outcomes) - generated - failed
            duration_ms = int((time.monotonic() - start_time) * 1000)

            logger.info(
                "generation_run_completed",
                extra={
                    "due": len(due),
                    "generated": generated,
                    "failed": failed,
                    "skipped": skipped,
                    "duration_ms": duration_ms,
                },
            )

        return GenerationRunResult(
            run_date=today,
            generated=generated,
            failed=failed,
            skipped=skipped,
            outcomes=tuple(outcomes),
            duration_ms=duration_ms,
        )

    # -------------------------------------------------------------------------
    # Per-definition processing
    # -------------------------------------------------------------------------

    def _process(self, item: DueDefinition, today: date) -> DefinitionOutcome:
        with self._locks.hold(item.id):
            return self._guarded(item, lambda: self._attempt(item, today))

    def _guarded(
        self, item: DueDefinition, action: Callable[[], DefinitionOutcome],
    ) -> DefinitionOutcome:
        """Run ``action``; turn any error into a recorded failure."""
        try:
            outcome = action()
        except DuplicateGenerationError:
            # A concurrent run recorded the success first.
            outcome = self._outcome(
                item, GenerationStatus.SKIPPED, reason=SkipReason.ALREADY_GENERATED,
            )
        except Exception as exc:
            return self._fail(item, exc)

        if outcome.status is GenerationStatus.SUCCESS:
            logger.info(
                "generation_succeeded",
                extra={"transaction_id": outcome.transaction_id},
            )
        else:
            logger.info("generation_skipped", extra={"reason": outcome.reason})
        return outcome

    def _attempt(self, item: DueDefinition, today: date) -> DefinitionOutcome:
        generation_date = item.next_generate
        with self._repository.item_scope():
            current = self._repository.get_definition(item.id, for_update=True)
            if (
                current is None
                or not current.is_active
                or current.next_generate != generation_date
            ):
                return self._outcome(
                    item, GenerationStatus.SKIPPED, reason=SkipReason.NO_LONGER_DUE,
                )

            if current.is_past_end(generation_date):
                self._deactivate(current.id, reason=SkipReason.PAST_END_DATE)
                self._ledger.record_skip(
                    current.id, generation_date, SkipReason.PAST_END_DATE,
                )
                return self._outcome(
                    item, GenerationStatus.SKIPPED, reason=SkipReason.PAST_END_DATE,
                )

            if current.skip_holidays and self._holidays.is_holiday(generation_date):
                self._skip_holiday(current, generation_date, today)
                return self._outcome(
                    item, GenerationStatus.SKIPPED, reason=SkipReason.HOLIDAY,
                )

            if self._ledger.has_succeeded_on(current.id, generation_date):
                self._advance(current, generation_date, today)
                return self._outcome(
                    item, GenerationStatus.SKIPPED,
                    reason=SkipReason.ALREADY_GENERATED,
                )

            transaction = self._materializer.materialize(current, generation_date)
            transaction_id = self._repository.create_transaction(transaction)
            self._ledger.record_success(current.id, generation_date, transaction_id)
            self._advance(current, generation_date, today)

        return self._outcome(
            item, GenerationStatus.SUCCESS, transaction_id=transaction_id,
        )

    def _skip_holiday(
        self,
        definition: RecurringExpenseDefinition,
        generation_date: date,
        today: date,
    ) -> None:
        self._ledger.record_skip(definition.id, generation_date, SkipReason.HOLIDAY)
        candidate = generation_date
        for _ in range(HOLIDAY_SKIP_LIMIT):
            candidate = self._calculator.compute_after(
                definition.frequency_config, candidate, today,
            )
            if definition.is_past_end(candidate):
                self._deactivate(definition.id, reason=SkipReason.PAST_END_DATE)
                return
            if not self._holidays.is_holiday(candidate):
                self._repository.update_definition(
                    definition.id, next_generate=candidate,
                )
                return
        raise ConfigurationError(
            f"no working-day occurrence within {HOLIDAY_SKIP_LIMIT} "
            f"occurrences after {generation_date.isoformat()}",
        )

    # -------------------------------------------------------------------------
    # Scheduling state
    # -------------------------------------------------------------------------

    def _advance(
        self,
        definition: RecurringExpenseDefinition,
        generated_on: date,
        today: date,
    ) -> None:
        next_date = self._calculator.compute_after(
            definition.frequency_config, generated_on, today,
        )
        if definition.is_past_end(next_date):
            self._repository.update_definition(
                definition.id, last_generated=generated_on,
            )
            self._deactivate(definition.id, reason="schedule complete")
        else:
            self._repository.update_definition(
                definition.id,
                last_generated=generated_on,
                next_generate=next_date,
            )

    def _deactivate(self, definition_id: UUID, reason: str) -> None:
        self._repository.update_definition(
            definition_id, is_active=False, next_generate=None,
        )
        logger.info("definition_deactivated", extra={"reason": reason})

    # -------------------------------------------------------------------------
    # Outcomes
    # -------------------------------------------------------------------------

    @staticmethod
    def _outcome(
        item: DueDefinition,
        status: GenerationStatus,
        reason: str | None = None,
        transaction_id: UUID | None = None,
    ) -> DefinitionOutcome:
        return DefinitionOutcome(
            definition_id=item.id,
            name=item.name,
            generation_date=item.next_generate,
            status=status,
            reason=reason,
            transaction_id=transaction_id,
        )

    def _fail(self, item: DueDefinition, exc: Exception) -> DefinitionOutcome:
        reason = str(exc) or type(exc).__name__
        logger.warning(
            "generation_failed",
            extra={
                "error_code": getattr(exc, "code", "UNHANDLED_EXCEPTION"),
                "error": reason,
            },
        )
        try:
            self._ledger.record_failure(item.id, item.next_generate, reason)
        except PersistenceError as ledger_exc:
            logger.error("ledger_write_failed", extra={"error": ledger_exc.reason})
        return self._outcome(item, GenerationStatus.FAILED, reason=reason)
