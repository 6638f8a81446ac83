"""
expense_recurring -- Recurring expense scheduling engine.

Materializes recurring obligations (rent, subscriptions, utilities) into
ledger transactions on the dates their frequency rule yields, recording
every attempt in an append-only generation ledger so that no obligation is
ever generated twice for the same day.

Entry point::

    from expense_kernel.db.engine import session_scope
    from expense_recurring.engine import RecurringExpenseEngine

    with session_scope() as session:
        result = RecurringExpenseEngine.from_session(session).generate()
"""
