"""
Pure next-run computation for recurring expense definitions.

Contract:
    ``compute_next_run(config, anchor_date, today)`` and
    ``NextRunCalculator.compute()`` are PURE -- no I/O, no clock reads, no
    side effects.  They operate on calendar dates only.

Architecture: expense_recurring/domain.  ZERO I/O.

Invariants enforced:
    - The result is never earlier than ``today``.
    - The result is never earlier than ``anchor_date``, except for Daily
      where an anchor in the past jumps to ``today + 1``.
    - The weekly scan is bounded; a config that matches no weekday raises
      ConfigurationError instead of looping.
    - End dates are NOT considered here; the orchestrator decides whether a
      definition is deactivated instead of scheduled past its end date.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta

from expense_kernel.exceptions import ConfigurationError

from expense_recurring.domain.types import (
    DailyConfig,
    Frequency,
    FrequencyConfig,
    MonthlyConfig,
    WeeklyConfig,
    YearlyConfig,
)

DEFAULT_WEEKLY_SCAN_LIMIT = 8

_ONE_DAY = timedelta(days=1)


# =============================================================================
# Calendar helpers
# =============================================================================


def to_sunday_weekday(day: date) -> int:
    """Weekday with 0 = Sunday .. 6 = Saturday.

    Python's ``date.weekday()`` is 0 = Monday .. 6 = Sunday.
    """
    return (day.weekday() + 1) % 7


def clamp_day(year: int, month: int, day_of_month: int) -> date:
    """Return ``day_of_month`` in the given month, clamped to its last day."""
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day_of_month, last))


def _add_months(year: int, month: int, months: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


# =============================================================================
# Per-frequency rules
# =============================================================================


def _next_daily(anchor_date: date, today: date) -> date:
    if anchor_date >= today:
        return anchor_date
    return today + _ONE_DAY


def _next_weekly(
    config: WeeklyConfig, reference: date, scan_limit: int,
) -> date:
    candidate = reference
    for _ in range(scan_limit):
        if to_sunday_weekday(candidate) in config.days_of_week:
            return candidate
        candidate += _ONE_DAY
    raise ConfigurationError(
        f"no matching weekday within {scan_limit} days of {reference.isoformat()}",
        field="days_of_week",
    )


def _next_monthly(config: MonthlyConfig, reference: date) -> date:
    candidate = clamp_day(reference.year, reference.month, config.day_of_month)
    if candidate < reference:
        year, month = _add_months(reference.year, reference.month, 1)
        candidate = clamp_day(year, month, config.day_of_month)
    return candidate


def _next_yearly(config: YearlyConfig, reference: date) -> date:
    candidate = clamp_day(reference.year, config.month_of_year, config.day_of_month)
    if candidate < reference:
        candidate = clamp_day(
            reference.year + 1, config.month_of_year, config.day_of_month,
        )
    return candidate


def compute_next_run(
    config: FrequencyConfig,
    anchor_date: date,
    today: date,
    weekly_scan_limit: int = DEFAULT_WEEKLY_SCAN_LIMIT,
) -> date:
    """Compute the next eligible generation date.

    Args:
        config: Validated frequency configuration.
        anchor_date: ``start_date`` on first computation, or the day after
            the last generated date on recomputation.
        today: The caller's current calendar date.
        weekly_scan_limit: Upper bound on the weekly forward scan.

    Returns:
        The next generation date, always ``>= today``.

    Raises:
        ConfigurationError: If a weekly scan finds no matching weekday.
    """
    reference = max(anchor_date, today)

    if isinstance(config, DailyConfig):
        return _next_daily(anchor_date, today)
    if isinstance(config, WeeklyConfig):
        return _next_weekly(config, reference, weekly_scan_limit)
    if isinstance(config, MonthlyConfig):
        return _next_monthly(config, reference)
    if isinstance(config, YearlyConfig):
        return _next_yearly(config, reference)

    raise ConfigurationError(f"unsupported frequency config {config!r}")


class NextRunCalculator:
    """Stateless calculator wrapping ``compute_next_run``.

    Holds only the weekly scan bound so the orchestrator and the definition
    service agree on it.
    """

    def __init__(self, weekly_scan_limit: int = DEFAULT_WEEKLY_SCAN_LIMIT):
        self._weekly_scan_limit = weekly_scan_limit

    def compute(
        self,
        frequency: Frequency | str,
        config: FrequencyConfig,
        anchor_date: date,
        today: date,
    ) -> date:
        """Compute the next run for ``config``.

        Raises:
            ConfigurationError: If ``frequency`` disagrees with the config
                variant, or the weekly scan is exhausted.
        """
        try:
            freq = Frequency(frequency)
        except ValueError:
            raise ConfigurationError(f"unknown frequency {frequency!r}") from None
        if freq is not config.frequency:
            raise ConfigurationError(
                f"frequency {freq.value!r} does not match "
                f"{config.frequency.value!r} config",
            )
        return compute_next_run(
            config, anchor_date, today, weekly_scan_limit=self._weekly_scan_limit,
        )

    def compute_after(
        self, config: FrequencyConfig, generated_on: date, today: date,
    ) -> date:
        """Next run strictly after ``generated_on``."""
        return compute_next_run(
            config,
            generated_on + _ONE_DAY,
            today,
            weekly_scan_limit=self._weekly_scan_limit,
        )
