"""
expense_recurring.repository -- Persistence contract and its SQLAlchemy implementation.
"""

from expense_recurring.repository.base import Repository
from expense_recurring.repository.sqlalchemy_repository import (
    SqlAlchemyRecurringRepository,
)

__all__ = [
    "Repository",
    "SqlAlchemyRecurringRepository",
]
