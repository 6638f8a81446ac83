"""Tests for the typed exception hierarchy (expense_kernel.exceptions)."""

from datetime import date

import pytest

from expense_kernel.exceptions import (
    ConfigurationError,
    DefinitionNotFoundError,
    DuplicateGenerationError,
    GenerationRunAbortedError,
    ImmutabilityViolationError,
    InvalidDefinitionError,
    PersistenceError,
    RecurringKernelError,
)


class TestHierarchy:

    @pytest.mark.parametrize("exc,code", [
        (ConfigurationError("bad"), "INVALID_FREQUENCY_CONFIG"),
        (InvalidDefinitionError("name", "empty"), "INVALID_DEFINITION"),
        (PersistenceError("create_transaction", "disk full"), "PERSISTENCE_ERROR"),
        (DuplicateGenerationError("abc", date(2026, 10, 19)), "DUPLICATE_GENERATION"),
        (DefinitionNotFoundError("abc"), "DEFINITION_NOT_FOUND"),
        (GenerationRunAbortedError(date(2026, 10, 19), "down"), "GENERATION_RUN_ABORTED"),
        (ImmutabilityViolationError("GenerationLog", "abc", "no"), "IMMUTABILITY_VIOLATION"),
    ])
    def test_codes(self, exc, code):
        assert isinstance(exc, RecurringKernelError)
        assert exc.code == code

    def test_duplicate_is_a_persistence_error(self):
        exc = DuplicateGenerationError("abc", date(2026, 10, 19))
        assert isinstance(exc, PersistenceError)
        assert exc.operation == "append_log_entry"
        assert exc.generation_date == date(2026, 10, 19)
        assert "2026-10-19" in str(exc)

    def test_invalid_definition_is_a_configuration_error(self):
        exc = InvalidDefinitionError("amount", "must be positive")
        assert isinstance(exc, ConfigurationError)
        assert exc.field == "amount"
        assert str(exc) == "Invalid recurring expense amount: must be positive"


class TestMessages:

    def test_configuration_error_with_field(self):
        exc = ConfigurationError("must be within 1..31", field="day_of_month")
        assert str(exc) == "Invalid frequency config (day_of_month): must be within 1..31"

    def test_configuration_error_without_field(self):
        assert str(ConfigurationError("oops")) == "Invalid frequency config: oops"
        assert ConfigurationError("oops").field is None

    def test_run_aborted(self):
        exc = GenerationRunAbortedError(date(2026, 10, 19), "connection refused")
        assert str(exc) == "Generation run for 2026-10-19 aborted: connection refused"
