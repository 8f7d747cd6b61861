"""
Orders Domain

Booking, lifecycle transitions and cancellation for cleaning orders.

Structure:
- schedule_matcher.py: Weekly schedule and same-day conflict checks
- pricing.py: Tax/total recomputation with rounding tolerance
- state_machine.py: Transition table, authorization, side effects
- cancellation.py: Late-cancellation fee
- repository.py / service.py / router.py: Persistence, use cases, HTTP
"""

from .router import router

__all__ = ["router"]
