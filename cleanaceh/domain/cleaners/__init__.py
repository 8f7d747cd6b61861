"""
Cleaners Domain

Weekly schedules and availability lookups. Profile management lives elsewhere.
"""

from .router import router

__all__ = ["router"]
