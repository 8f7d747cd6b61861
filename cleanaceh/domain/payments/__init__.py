"""
Payments Domain

Midtrans charges, webhook reconciliation and saved payment methods.
"""

from .router import router

__all__ = ["router"]
