"""
Typed exception hierarchy for the recurring expense engine.

Every error has a typed class (catch by type, not message), a ``code`` class
attribute (machine-readable, API-safe), and structured attributes carrying
the data a caller needs to react.

    RecurringKernelError (base)
    |
    +-- ConfigurationError
    |   +-- InvalidDefinitionError
    |
    +-- PersistenceError
    |   +-- DuplicateGenerationError
    |
    +-- DefinitionNotFoundError
    |
    +-- GenerationRunAbortedError
    |
    +-- ImmutabilityViolationError

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Configuration   | INVALID_FREQUENCY_CONFIG    | Frequency config fails validation
                | INVALID_DEFINITION          | Name / amount / date range invalid
----------------|-----------------------------|-----------------------------------------
Persistence     | PERSISTENCE_ERROR           | Store write or read failed
                | DUPLICATE_GENERATION        | Success already recorded for key
----------------|-----------------------------|-----------------------------------------
Lookup          | DEFINITION_NOT_FOUND        | Definition ID doesn't exist
----------------|-----------------------------|-----------------------------------------
Run             | GENERATION_RUN_ABORTED      | Due definitions could not be fetched
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Ledger row update/delete attempted

Handling patterns:

    try:
        result = engine.generate()
    except GenerationRunAbortedError as e:
        # Nothing was recorded; the whole run can be retried.
        alert(e.code, e.reason)

Per-definition errors (``PersistenceError`` and friends) never reach the
caller of a run; they are recorded as ``failed`` ledger entries instead.
"""

from datetime import date


class RecurringKernelError(Exception):
    """
    Base exception for all recurring expense engine errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "RECURRING_KERNEL_ERROR"


# Configuration errors


class ConfigurationError(RecurringKernelError):
    """Frequency configuration is invalid.

    Raised at definition creation/update time, before the configuration can
    reach the scheduler.
    """

    code: str = "INVALID_FREQUENCY_CONFIG"

    def __init__(self, reason: str, field: str | None = None):
        self.reason = reason
        self.field = field
        if field:
            super().__init__(f"Invalid frequency config ({field}): {reason}")
        else:
            super().__init__(f"Invalid frequency config: {reason}")


class InvalidDefinitionError(ConfigurationError):
    """A non-schedule field of a recurring expense definition is invalid."""

    code: str = "INVALID_DEFINITION"

    def __init__(self, field: str, reason: str):
        self.reason = reason
        self.field = field
        RecurringKernelError.__init__(
            self, f"Invalid recurring expense {field}: {reason}"
        )


# Persistence errors


class PersistenceError(RecurringKernelError):
    """A write or read against the persistence collaborator failed.

    Per-definition occurrences are recorded as ``failed`` ledger entries and
    the definition cursor is left unchanged for the next run.
    """

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Persistence failure during {operation}: {reason}")


class DuplicateGenerationError(PersistenceError):
    """A success entry already exists for (definition, generation date)."""

    code: str = "DUPLICATE_GENERATION"

    def __init__(self, recurring_expense_id: str, generation_date: date):
        self.recurring_expense_id = recurring_expense_id
        self.generation_date = generation_date
        RecurringKernelError.__init__(
            self,
            f"Generation already recorded for {recurring_expense_id} "
            f"on {generation_date.isoformat()}",
        )
        self.operation = "append_log_entry"
        self.reason = "duplicate success entry"


# Lookup errors


class DefinitionNotFoundError(RecurringKernelError):
    """Recurring expense definition with given ID was not found."""

    code: str = "DEFINITION_NOT_FOUND"

    def __init__(self, definition_id: str):
        self.definition_id = definition_id
        super().__init__(f"Recurring expense not found: {definition_id}")


# Run-level errors


class GenerationRunAbortedError(RecurringKernelError):
    """The whole generation run aborted before any definition was processed.

    Raised when the due definitions cannot even be fetched.  Nothing is
    partially recorded.
    """

    code: str = "GENERATION_RUN_ABORTED"

    def __init__(self, run_date: date, reason: str):
        self.run_date = run_date
        self.reason = reason
        super().__init__(
            f"Generation run for {run_date.isoformat()} aborted: {reason}"
        )


# Immutability errors


class ImmutabilityViolationError(RecurringKernelError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
