"""
RecurringExpenseService -- create, edit and inspect recurring definitions.

Contract:
    Validates definitions before they reach the store and keeps the
    scheduling cursor consistent with the frequency rule:

    - ``create()`` computes the first ``next_generate`` from ``start_date``.
    - ``update()`` recomputes the cursor whenever a schedule-relevant field
      changes, anchored on the day after the last successful generation
      (``start_date`` when nothing was generated yet).
    - Inactive definitions, and definitions whose cursor would fall past
      ``end_date``, carry ``next_generate = None``.

Non-goals:
    - Does NOT call ``session.commit()`` -- caller controls boundaries.
"""

from __future__ import annotations

import dataclasses
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID, uuid4

from expense_kernel.domain.clock import Clock, SystemClock
from expense_kernel.exceptions import DefinitionNotFoundError, InvalidDefinitionError
from expense_kernel.logging_config import get_logger
from expense_recurring.domain.schedule import NextRunCalculator
from expense_recurring.domain.types import (
    DailyConfig,
    FrequencyConfig,
    MonthlyConfig,
    RecurringExpenseDefinition,
    WeeklyConfig,
    YearlyConfig,
)
from expense_recurring.repository.base import Repository

logger = get_logger("recurring.definitions")

_EDITABLE_FIELDS = frozenset({
    "name",
    "category",
    "amount",
    "frequency_config",
    "start_date",
    "end_date",
    "is_active",
    "skip_holidays",
})

_SCHEDULE_FIELDS = frozenset({
    "frequency_config",
    "start_date",
    "end_date",
    "is_active",
})

_CONFIG_TYPES = (DailyConfig, WeeklyConfig, MonthlyConfig, YearlyConfig)


def _to_amount(value: Any) -> Decimal:
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidDefinitionError("amount", f"not a number: {value!r}") from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidDefinitionError("amount", f"must be positive, got {amount}")
    return amount


def _validate(definition: RecurringExpenseDefinition) -> None:
    if not definition.name or not definition.name.strip():
        raise InvalidDefinitionError("name", "must not be empty")
    if not definition.category or not definition.category.strip():
        raise InvalidDefinitionError("category", "must not be empty")
    if not isinstance(definition.frequency_config, _CONFIG_TYPES):
        raise InvalidDefinitionError(
            "frequency_config",
            f"unsupported config {definition.frequency_config!r}",
        )
    if definition.end_date is not None and definition.end_date < definition.start_date:
        raise InvalidDefinitionError(
            "end_date",
            f"{definition.end_date.isoformat()} is before start date "
            f"{definition.start_date.isoformat()}",
        )


class RecurringExpenseService:
    """Definition management over a Repository."""

    def __init__(
        self,
        repository: Repository,
        calculator: NextRunCalculator | None = None,
        clock: Clock | None = None,
    ):
        self._repository = repository
        self._calculator = calculator or NextRunCalculator()
        self._clock = clock or SystemClock()

    def create(
        self,
        name: str,
        category: str,
        amount: Decimal | int | str,
        frequency_config: FrequencyConfig,
        start_date: date,
        end_date: date | None = None,
        is_active: bool = True,
        skip_holidays: bool = False,
    ) -> RecurringExpenseDefinition:
        """Validate and store a new definition with its first cursor.

        Raises:
            InvalidDefinitionError: Name, category, amount or date range
                invalid.
            ConfigurationError: The frequency rule yields no date.
        """
        definition = RecurringExpenseDefinition(
            id=uuid4(),
            name=name,
            category=category,
            amount=_to_amount(amount),
            frequency_config=frequency_config,
            start_date=start_date,
            end_date=end_date,
            is_active=is_active,
            skip_holidays=skip_holidays,
        )
        _validate(definition)
        definition = self._with_cursor(definition, anchor=start_date)

        stored = self._repository.add_definition(definition)
        logger.info(
            "definition_created",
            extra={
                "definition_id": stored.id,
                "frequency": stored.frequency.value,
                "next_generate": stored.next_generate,
            },
        )
        return stored

    def update(self, definition_id: UUID, **changes: Any) -> RecurringExpenseDefinition:
        """Apply ``changes``; recompute the cursor if the schedule changed.

        Raises:
            DefinitionNotFoundError: Unknown ``definition_id``.
            InvalidDefinitionError: Non-editable field or invalid value.
        """
        unknown = sorted(set(changes) - _EDITABLE_FIELDS)
        if unknown:
            raise InvalidDefinitionError(unknown[0], "field is not editable")

        current = self.get(definition_id)
        if "amount" in changes:
            changes["amount"] = _to_amount(changes["amount"])

        updated = dataclasses.replace(current, **changes)
        _validate(updated)

        if _SCHEDULE_FIELDS & set(changes):
            anchor = updated.start_date
            if updated.last_generated is not None:
                anchor = max(anchor, updated.last_generated + timedelta(days=1))
            updated = self._with_cursor(updated, anchor=anchor)
            changes["is_active"] = updated.is_active
            changes["next_generate"] = updated.next_generate

        stored = self._repository.update_definition(definition_id, **changes)
        logger.info(
            "definition_updated",
            extra={
                "definition_id": definition_id,
                "fields": sorted(changes),
                "next_generate": stored.next_generate,
            },
        )
        return stored

    def delete(self, definition_id: UUID) -> None:
        """Remove a definition; its ledger history is kept."""
        self._repository.delete_definition(definition_id)
        logger.info("definition_deleted", extra={"definition_id": definition_id})

    def get(self, definition_id: UUID) -> RecurringExpenseDefinition:
        definition = self._repository.get_definition(definition_id)
        if definition is None:
            raise DefinitionNotFoundError(str(definition_id))
        return definition

    def list_all(self) -> list[RecurringExpenseDefinition]:
        return self._repository.list_definitions()

    def list_active(self) -> list[RecurringExpenseDefinition]:
        return self._repository.find_active_definitions()

    def list_pending(
        self, today: date | None = None, include_overdue: bool = True,
    ) -> list[RecurringExpenseDefinition]:
        return self._repository.find_pending_generation(
            today or self._clock.today(), include_overdue=include_overdue,
        )

    def _with_cursor(
        self, definition: RecurringExpenseDefinition, anchor: date,
    ) -> RecurringExpenseDefinition:
        if not definition.is_active:
            return dataclasses.replace(definition, next_generate=None)

        next_date = self._calculator.compute(
            definition.frequency,
            definition.frequency_config,
            anchor,
            self._clock.today(),
        )
        if definition.is_past_end(next_date):
            return dataclasses.replace(definition, is_active=False, next_generate=None)
        return dataclasses.replace(definition, next_generate=next_date)
