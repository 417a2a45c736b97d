"""
Pydantic schemas for request/response validation
"""
from .dispatch_order import (
    DispatchOrderData, DispatchOrderCreate, DispatchOrderResponse,
    LineItem, FinalLineItem, ReturnRecord, ConfirmedQuantity, Packet, PacketComposition,
    ItemEdit, NewLineItem, OrderDraft, ReturnLine, ReturnRequest,
    OrderView, LineItemView, OrderTotals, RemainingSummary, PacketSummary, PacketBucket,
    ValidationResult, PaymentSnapshot,
)
from .ledger import (
    LedgerEntryCreate, LedgerEntryData, LedgerEntryResponse, LedgerRow, LedgerResponse,
    BalanceResponse, PaymentInstruction, SubPaymentResult, PaymentDistributionResult,
)
from .party import SupplierCreate, SupplierResponse, LogisticsCompanyCreate, LogisticsCompanyResponse

__all__ = [
    # Dispatch orders
    "DispatchOrderData",
    "DispatchOrderCreate",
    "DispatchOrderResponse",
    "LineItem",
    "FinalLineItem",
    "ReturnRecord",
    "ConfirmedQuantity",
    "Packet",
    "PacketComposition",
    "ItemEdit",
    "NewLineItem",
    "OrderDraft",
    "ReturnLine",
    "ReturnRequest",
    "OrderView",
    "LineItemView",
    "OrderTotals",
    "RemainingSummary",
    "PacketSummary",
    "PacketBucket",
    "ValidationResult",
    "PaymentSnapshot",
    # Ledger
    "LedgerEntryCreate",
    "LedgerEntryData",
    "LedgerEntryResponse",
    "LedgerRow",
    "LedgerResponse",
    "BalanceResponse",
    "PaymentInstruction",
    "SubPaymentResult",
    "PaymentDistributionResult",
    # Parties
    "SupplierCreate",
    "SupplierResponse",
    "LogisticsCompanyCreate",
    "LogisticsCompanyResponse",
]
