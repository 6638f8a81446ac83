"""
TransactionMaterializer -- maps a definition onto one ledger transaction.

Pure mapping: the persistence write is delegated to the Repository.
"""

from __future__ import annotations

from datetime import date

from expense_recurring.domain.types import LedgerTransaction, RecurringExpenseDefinition

DEFAULT_NOTE_PREFIX = "[auto] "
DEFAULT_CURRENCY = "CNY"


class TransactionMaterializer:
    """Builds the expense transaction for ``definition`` on ``generation_date``."""

    def __init__(
        self,
        note_prefix: str = DEFAULT_NOTE_PREFIX,
        currency: str = DEFAULT_CURRENCY,
    ):
        self._note_prefix = note_prefix
        self._currency = currency

    def materialize(
        self, definition: RecurringExpenseDefinition, generation_date: date,
    ) -> LedgerTransaction:
        return LedgerTransaction(
            amount=definition.amount,
            category=definition.category,
            date=generation_date,
            note=f"{self._note_prefix}{definition.name}",
            recurring_expense_id=definition.id,
            currency=self._currency,
        )
