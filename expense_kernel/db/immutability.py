"""
ORM-level append-only enforcement for the generation ledger.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners below intercept those events for ledger rows and
raise ImmutabilityViolationError, aborting the flush:

    session.flush()
         |
         v
    [before_update] --> _check_generation_log_immutability() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_generation_log_delete() ---------> ImmutabilityViolationError

Entity                | When Immutable          | Why
----------------------|-------------------------|----------------------------------
GenerationLogModel    | ALWAYS (from creation)  | Audit trail and idempotency key

Registration is idempotent; ``unregister_immutability_listeners()`` exists
for tests that need to poke at raw rows.
"""

from sqlalchemy import event

from expense_kernel.exceptions import ImmutabilityViolationError
from expense_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_generation_log_immutability(mapper, connection, target):
    """Prevent any updates to ledger rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "GenerationLog",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="GenerationLog",
        entity_id=str(target.id),
        reason="Generation log entries are immutable and cannot be modified",
    )


def _check_generation_log_delete(mapper, connection, target):
    """Prevent deletion of ledger rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "GenerationLog",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="GenerationLog",
        entity_id=str(target.id),
        reason="Generation log entries cannot be deleted",
    )


def register_immutability_listeners() -> None:
    """
    Register the ledger immutability listeners.

    Call after models are imported and before any database operations.
    """
    from expense_recurring.models.recurring import GenerationLogModel

    if not event.contains(
        GenerationLogModel, "before_update", _check_generation_log_immutability
    ):
        event.listen(
            GenerationLogModel, "before_update", _check_generation_log_immutability
        )
    if not event.contains(
        GenerationLogModel, "before_delete", _check_generation_log_delete
    ):
        event.listen(
            GenerationLogModel, "before_delete", _check_generation_log_delete
        )


def unregister_immutability_listeners() -> None:
    """Remove the ledger immutability listeners. FOR TESTING ONLY."""
    from expense_recurring.models.recurring import GenerationLogModel

    if event.contains(
        GenerationLogModel, "before_update", _check_generation_log_immutability
    ):
        event.remove(
            GenerationLogModel, "before_update", _check_generation_log_immutability
        )
    if event.contains(
        GenerationLogModel, "before_delete", _check_generation_log_delete
    ):
        event.remove(
            GenerationLogModel, "before_delete", _check_generation_log_delete
        )
