"""
API routes for DispatchDesk
"""
from .dispatch_orders import router as dispatch_orders_router
from .ledger import router as ledger_router
from .parties import router as parties_router

__all__ = [
    "dispatch_orders_router",
    "ledger_router",
    "parties_router",
]
