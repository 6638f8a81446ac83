"""
Repository protocol -- the engine's only view of persistence.

Contract:
    The orchestrator, ledger and definition service receive ONE concrete
    Repository at construction (explicit dependency injection).  Nothing in
    the engine resolves a backend through global state.

Failure semantics:
    - Any store failure surfaces as ``PersistenceError``.
    - ``append_log_entry`` never silently drops an entry; a SUCCESS entry
      colliding with an existing one raises ``DuplicateGenerationError``.
    - ``item_scope()`` groups one definition's writes: on exception every
      write made inside the scope is discarded and the exception re-raised.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import date
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from expense_recurring.domain.types import (
    DueDefinition,
    GenerationLogEntry,
    LedgerTransaction,
    RecurringExpenseDefinition,
)


@runtime_checkable
class Repository(Protocol):
    """Persistence collaborator for definitions, transactions and the ledger."""

    # Definitions --------------------------------------------------------

    def find_active_definitions(self) -> list[RecurringExpenseDefinition]:
        """All active definitions, ordered by next_generate."""
        ...

    def find_pending_generation(
        self, today: date, include_overdue: bool = True,
    ) -> list[RecurringExpenseDefinition]:
        """Active definitions due on ``today``.

        With ``include_overdue`` the cursor may be earlier than ``today``;
        without it only ``next_generate == today`` qualifies.
        """
        ...

    def find_due(
        self, today: date, include_overdue: bool = True,
    ) -> list[DueDefinition]:
        """Same selection as ``find_pending_generation``, keys only.

        Never decodes a stored schedule, so one malformed row cannot fail
        the whole fetch.
        """
        ...

    def get_definition(
        self, definition_id: UUID, for_update: bool = False,
    ) -> RecurringExpenseDefinition | None:
        ...

    def list_definitions(self) -> list[RecurringExpenseDefinition]:
        ...

    def add_definition(
        self, definition: RecurringExpenseDefinition,
    ) -> RecurringExpenseDefinition:
        ...

    def update_definition(
        self, definition_id: UUID, **fields: Any,
    ) -> RecurringExpenseDefinition:
        """Apply ``fields`` (e.g. last_generated, next_generate, is_active)."""
        ...

    def delete_definition(self, definition_id: UUID) -> None:
        """Remove the definition; its ledger entries stay."""
        ...

    # Transactions -------------------------------------------------------

    def create_transaction(self, transaction: LedgerTransaction) -> UUID:
        """Persist ``transaction`` and return its id."""
        ...

    # Ledger -------------------------------------------------------------

    def has_succeeded_on(self, definition_id: UUID, generation_date: date) -> bool:
        ...

    def append_log_entry(self, entry: GenerationLogEntry) -> None:
        ...

    def list_log_entries(self, limit: int | None = None) -> list[GenerationLogEntry]:
        """Newest first."""
        ...

    def log_entries_on(self, generation_date: date) -> list[GenerationLogEntry]:
        ...

    def log_entries_for(self, definition_id: UUID) -> list[GenerationLogEntry]:
        ...

    # Units of work ------------------------------------------------------

    def item_scope(self) -> AbstractContextManager[None]:
        ...
