"""
expense_recurring.domain -- Pure types, schedule computation and mapping.

ZERO I/O.  All types are frozen dataclasses.
"""

from expense_recurring.domain.materializer import TransactionMaterializer
from expense_recurring.domain.schedule import NextRunCalculator, compute_next_run
from expense_recurring.domain.types import (
    DailyConfig,
    DefinitionOutcome,
    DueDefinition,
    Frequency,
    FrequencyConfig,
    GenerateResult,
    GenerationLogEntry,
    GenerationRunResult,
    GenerationStats,
    GenerationStatus,
    LedgerTransaction,
    MonthlyConfig,
    RecurringExpenseDefinition,
    SkipReason,
    WeeklyConfig,
    YearlyConfig,
    frequency_config_from_dict,
)

__all__ = [
    "DailyConfig",
    "DefinitionOutcome",
    "DueDefinition",
    "Frequency",
    "FrequencyConfig",
    "GenerateResult",
    "GenerationLogEntry",
    "GenerationRunResult",
    "GenerationStats",
    "GenerationStatus",
    "LedgerTransaction",
    "MonthlyConfig",
    "NextRunCalculator",
    "RecurringExpenseDefinition",
    "SkipReason",
    "TransactionMaterializer",
    "WeeklyConfig",
    "YearlyConfig",
    "compute_next_run",
    "frequency_config_from_dict",
]
