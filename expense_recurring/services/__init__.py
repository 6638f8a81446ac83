"""
expense_recurring.services -- Ledger, orchestrator and definition management.
"""

from expense_recurring.services.definitions import RecurringExpenseService
from expense_recurring.services.generator import GenerationOrchestrator
from expense_recurring.services.holidays import (
    HolidayCalendar,
    NoHolidays,
    StaticHolidayCalendar,
)
from expense_recurring.services.ledger import GenerationLedger
from expense_recurring.services.locks import KeyedLock, definition_locks

__all__ = [
    "GenerationLedger",
    "GenerationOrchestrator",
    "HolidayCalendar",
    "KeyedLock",
    "NoHolidays",
    "RecurringExpenseService",
    "StaticHolidayCalendar",
    "definition_locks",
]
