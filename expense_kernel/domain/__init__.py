"""
expense_kernel.domain -- Pure value objects shared by the engine.
"""

from expense_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = ["Clock", "DeterministicClock", "SystemClock"]
