"""
expense_recurring.domain.types -- Pure frozen dataclasses for the engine.

ZERO I/O.

Frequency configuration is a closed tagged union: one frozen dataclass per
frequency, each validated exhaustively in ``__post_init__`` so that the
calculator never has to shape-check a payload at scan time.

Invariants enforced:
    - WeeklyConfig.days_of_week is non-empty and within 0..6 (0 = Sunday).
    - MonthlyConfig / YearlyConfig day and month ranges.
    - GenerationLogEntry carries a reason whenever status is not SUCCESS,
      and a transaction id only when it is.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Union
from uuid import UUID

from expense_kernel.exceptions import ConfigurationError


# =============================================================================
# Enums
# =============================================================================


class Frequency(str, Enum):
    """Recurrence frequency of a definition."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class GenerationStatus(str, Enum):
    """Outcome of one generation attempt."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class SkipReason:
    """Reasons attached to skipped outcomes."""

    PAST_END_DATE = "past end date"
    HOLIDAY = "holiday"
    ALREADY_GENERATED = "already generated"
    NO_LONGER_DUE = "no longer due"


# =============================================================================
# Frequency configuration (tagged union)
# =============================================================================


@dataclass(frozen=True)
class DailyConfig:
    """Every day. No parameters."""

    @property
    def frequency(self) -> Frequency:
        return Frequency.DAILY

    def to_dict(self) -> dict[str, Any]:
        return {}


@dataclass(frozen=True)
class WeeklyConfig:
    """Selected weekdays, 0 = Sunday .. 6 = Saturday."""

    days_of_week: frozenset[int]

    def __post_init__(self) -> None:
        days = frozenset(self.days_of_week)
        object.__setattr__(self, "days_of_week", days)
        if not days:
            raise ConfigurationError(
                "at least one weekday is required", field="days_of_week",
            )
        bad = sorted(d for d in days if not isinstance(d, int) or not 0 <= d <= 6)
        if bad:
            raise ConfigurationError(
                f"weekdays must be within 0..6, got {bad}", field="days_of_week",
            )

    @property
    def frequency(self) -> Frequency:
        return Frequency.WEEKLY

    def to_dict(self) -> dict[str, Any]:
        return {"days_of_week": sorted(self.days_of_week)}


def _check_day_of_month(day_of_month: Any) -> None:
    if isinstance(day_of_month, bool) or not isinstance(day_of_month, int):
        raise ConfigurationError(
            f"expected an integer, got {day_of_month!r}", field="day_of_month",
        )
    if not 1 <= day_of_month <= 31:
        raise ConfigurationError(
            f"must be within 1..31, got {day_of_month}", field="day_of_month",
        )


@dataclass(frozen=True)
class MonthlyConfig:
    """One day per month; clamped to the month's last day when too large."""

    day_of_month: int

    def __post_init__(self) -> None:
        _check_day_of_month(self.day_of_month)

    @property
    def frequency(self) -> Frequency:
        return Frequency.MONTHLY

    def to_dict(self) -> dict[str, Any]:
        return {"day_of_month": self.day_of_month}


@dataclass(frozen=True)
class YearlyConfig:
    """One day per year.

    A day that never exists in the month (e.g. April 31) is rejected.
    February 29 is accepted and clamps to February 28 in common years.
    """

    month_of_year: int
    day_of_month: int

    def __post_init__(self) -> None:
        if isinstance(self.month_of_year, bool) or not isinstance(self.month_of_year, int):
            raise ConfigurationError(
                f"expected an integer, got {self.month_of_year!r}",
                field="month_of_year",
            )
        if not 1 <= self.month_of_year <= 12:
            raise ConfigurationError(
                f"must be within 1..12, got {self.month_of_year}",
                field="month_of_year",
            )
        _check_day_of_month(self.day_of_month)
        # 2000 is a leap year, so this is the longest the month ever gets.
        longest = calendar.monthrange(2000, self.month_of_year)[1]
        if self.day_of_month > longest:
            raise ConfigurationError(
                f"month {self.month_of_year} never has day {self.day_of_month}",
                field="day_of_month",
            )

    @property
    def frequency(self) -> Frequency:
        return Frequency.YEARLY

    def to_dict(self) -> dict[str, Any]:
        return {
            "month_of_year": self.month_of_year,
            "day_of_month": self.day_of_month,
        }


FrequencyConfig = Union[DailyConfig, WeeklyConfig, MonthlyConfig, YearlyConfig]


def frequency_config_from_dict(
    frequency: Frequency | str, data: dict[str, Any] | None,
) -> FrequencyConfig:
    """Rebuild a frequency config from its persisted JSON payload.

    Raises:
        ConfigurationError: Unknown frequency, missing or unexpected keys,
            or values failing variant validation.
    """
    try:
        freq = Frequency(frequency)
    except ValueError:
        raise ConfigurationError(f"unknown frequency {frequency!r}") from None

    payload = dict(data or {})
    try:
        if freq is Frequency.DAILY:
            config: FrequencyConfig = DailyConfig(**payload)
        elif freq is Frequency.WEEKLY:
            config = WeeklyConfig(
                days_of_week=frozenset(payload.pop("days_of_week")), **payload,
            )
        elif freq is Frequency.MONTHLY:
            config = MonthlyConfig(**payload)
        else:
            config = YearlyConfig(**payload)
    except KeyError as exc:
        raise ConfigurationError(
            f"missing key for {freq.value} config", field=str(exc.args[0]),
        ) from None
    except TypeError as exc:
        raise ConfigurationError(
            f"unexpected {freq.value} config payload: {exc}",
        ) from None
    return config


# =============================================================================
# Definition
# =============================================================================


@dataclass(frozen=True)
class RecurringExpenseDefinition:
    """Immutable snapshot of a recurring expense definition.

    ``next_generate`` is the authoritative scheduling cursor.  It is None
    only while the definition is inactive.
    """

    id: UUID
    name: str
    category: str
    amount: Decimal
    frequency_config: FrequencyConfig
    start_date: date
    end_date: date | None = None
    is_active: bool = True
    skip_holidays: bool = False
    last_generated: date | None = None
    next_generate: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def frequency(self) -> Frequency:
        return self.frequency_config.frequency

    def is_past_end(self, day: date) -> bool:
        return self.end_date is not None and day > self.end_date


@dataclass(frozen=True)
class DueDefinition:
    """Key of a definition due for generation, read without its schedule.

    A run fetches these, then loads each full definition inside that
    definition's own unit of work.
    """

    id: UUID
    name: str
    next_generate: date


# =============================================================================
# Ledger
# =============================================================================


@dataclass(frozen=True)
class GenerationLogEntry:
    """Immutable audit record of one generation attempt.

    Idempotency key: (recurring_expense_id, generation_date) has at most one
    SUCCESS entry.
    """

    id: UUID
    recurring_expense_id: UUID
    generation_date: date
    status: GenerationStatus
    generated_transaction_id: UUID | None = None
    reason: str | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.status is GenerationStatus.SUCCESS:
            if self.generated_transaction_id is None:
                raise ValueError("success entries must reference a transaction")
        else:
            if self.generated_transaction_id is not None:
                raise ValueError(
                    f"{self.status.value} entries cannot reference a transaction"
                )
            if not self.reason:
                raise ValueError(f"{self.status.value} entries require a reason")


@dataclass(frozen=True)
class LedgerTransaction:
    """A materialized expense transaction, before or after persistence."""

    amount: Decimal
    category: str
    date: date
    note: str
    recurring_expense_id: UUID
    currency: str = "CNY"
    type: str = "expense"
    is_auto_generated: bool = True
    id: UUID | None = None


# =============================================================================
# Run results
# =============================================================================


@dataclass(frozen=True)
class DefinitionOutcome:
    """What happened to one definition during a run."""

    definition_id: UUID
    name: str
    generation_date: date | None
    status: GenerationStatus
    reason: str | None = None
    transaction_id: UUID | None = None


@dataclass(frozen=True)
class GenerationRunResult:
    """Immutable result of one orchestrator run."""

    run_date: date
    generated: int = 0
    failed: int = 0
    skipped: int = 0
    outcomes: tuple[DefinitionOutcome, ...] = ()
    duration_ms: int = 0

    @property
    def total(self) -> int:
        return self.generated + self.failed + self.skipped

    def as_counts(self) -> dict[str, int]:
        return {
            "generated": self.generated,
            "failed": self.failed,
            "skipped": self.skipped,
        }


@dataclass(frozen=True)
class GenerateResult:
    """What ``generate()`` reports to its caller."""

    count: int


@dataclass(frozen=True)
class GenerationStats:
    """Ledger statistics for a single generation date."""

    date: date
    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
