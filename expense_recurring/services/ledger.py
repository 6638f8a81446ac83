"""
GenerationLedger -- append-only audit trail of generation attempts.

Contract:
    Every attempt the orchestrator makes ends in exactly one ledger call:
    ``record_success``, ``record_failure`` or ``record_skip``.  The ledger
    is the authority for idempotency via ``has_succeeded_on``.

Invariants enforced:
    - At most one SUCCESS entry per (definition, generation_date); a second
      attempt raises ``DuplicateGenerationError`` from the repository.
    - Entries are never updated or deleted through this class.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID, uuid4

from expense_kernel.domain.clock import Clock, SystemClock
from expense_recurring.domain.types import (
    GenerationLogEntry,
    GenerationStats,
    GenerationStatus,
)
from expense_recurring.repository.base import Repository

DEFAULT_HISTORY_LIMIT = 20


class GenerationLedger:
    """Thin append-only facade over the repository's ledger operations."""

    def __init__(
        self,
        repository: Repository,
        clock: Clock | None = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self._repository = repository
        self._clock = clock or SystemClock()
        self._history_limit = history_limit

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def record_success(
        self,
        definition_id: UUID,
        generation_date: date,
        transaction_id: UUID,
    ) -> GenerationLogEntry:
        return self._append(
            definition_id, generation_date, GenerationStatus.SUCCESS,
            transaction_id=transaction_id,
        )

    def record_failure(
        self, definition_id: UUID, generation_date: date, reason: str,
    ) -> GenerationLogEntry:
        return self._append(
            definition_id, generation_date, GenerationStatus.FAILED,
            reason=reason or "unknown error",
        )

    def record_skip(
        self, definition_id: UUID, generation_date: date, reason: str,
    ) -> GenerationLogEntry:
        return self._append(
            definition_id, generation_date, GenerationStatus.SKIPPED,
            reason=reason,
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def has_succeeded_on(self, definition_id: UUID, generation_date: date) -> bool:
        return self._repository.has_succeeded_on(definition_id, generation_date)

    def history(self, limit: int | None = None) -> list[GenerationLogEntry]:
        """Most recent entries first."""
        return self._repository.list_log_entries(limit or self._history_limit)

    def entries_for(self, definition_id: UUID) -> list[GenerationLogEntry]:
        return self._repository.log_entries_for(definition_id)

    def stats_for(self, generation_date: date) -> GenerationStats:
        """Count ledger entries by status for one generation date."""
        entries = self._repository.log_entries_on(generation_date)
        counts = {status: 0 for status in GenerationStatus}
        for entry in entries:
            counts[entry.status] += 1
        return GenerationStats(
            date=generation_date,
            total=len(entries),
            success=counts[GenerationStatus.SUCCESS],
            failed=counts[GenerationStatus.FAILED],
            skipped=counts[GenerationStatus.SKIPPED],
        )

    def _append(
        self,
        definition_id: UUID,
        generation_date: date,
        status: GenerationStatus,
        transaction_id: UUID | None = None,
        reason: str | None = None,
    ) -> GenerationLogEntry:
        entry = GenerationLogEntry(
            id=uuid4(),
            recurring_expense_id=definition_id,
            generation_date=generation_date,
            status=status,
            generated_transaction_id=transaction_id,
            reason=reason,
            created_at=self._clock.now(),
        )
        self._repository.append_log_entry(entry)
        return entry
