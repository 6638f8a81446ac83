"""
expense_kernel -- Infrastructure for the recurring expense engine.

Provides the typed exception hierarchy, structured JSON logging, the
injectable Clock, YAML-driven settings, and SQLAlchemy persistence plumbing
(declarative base, engine/session management, ledger immutability
listeners).

Architecture:
    expense_kernel never imports expense_recurring at module load time.
    The only exceptions are the lazy model imports inside
    ``db.engine.create_tables`` and ``db.immutability``.
"""
