"""
expense_recurring.models -- ORM models for recurring expense persistence.

Architecture: expense_recurring/models. Imports from expense_kernel.db.base only.
"""

from expense_recurring.models.recurring import (
    GenerationLogModel,
    RecurringExpenseModel,
    TransactionModel,
)

__all__ = [
    "GenerationLogModel",
    "RecurringExpenseModel",
    "TransactionModel",
]
