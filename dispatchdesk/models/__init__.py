"""
Database models for DispatchDesk
"""
from dispatchdesk.database import Base

# Import all models
from .party import Supplier, LogisticsCompany
from .dispatch_order import DispatchOrder, DispatchOrderItem, DispatchOrderReturn
from .ledger import LedgerEntry

__all__ = [
    "Base",
    "Supplier",
    "LogisticsCompany",
    "DispatchOrder",
    "DispatchOrderItem",
    "DispatchOrderReturn",
    "LedgerEntry",
]
