"""
Ledger and payment schemas
"""
import datetime as dt
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from dispatchdesk.schemas.common import Money

TransactionType = Literal["purchase", "charge", "payment", "return", "adjustment"]
PartyClass = Literal["supplier", "logistics"]


class LedgerEntryBase(BaseModel):
    entity_id: UUID
    entity_model: str = Field(..., description="Supplier or LogisticsCompany")
    transaction_type: TransactionType
    debit: Decimal = Field(default=Decimal("0"), ge=0)
    credit: Decimal = Field(default=Decimal("0"), ge=0)
    date: Optional[dt.date] = None
    payment_method: Optional[Literal["cash", "bank"]] = None
    description: Optional[str] = None
    reference_id: Optional[UUID] = None
    reference_model: Optional[str] = None


class LedgerEntryCreate(LedgerEntryBase):
    """Append one ledger entry"""
    pass


class LedgerEntryData(LedgerEntryBase):
    """Stored ledger entry"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: Optional[dt.datetime] = None


class LedgerEntryResponse(LedgerEntryData):
    debit: Money
    credit: Money


class LedgerRow(BaseModel):
    """Ledger entry annotated with the running balance after it"""
    entry: LedgerEntryResponse
    balance: Money


class LedgerResponse(BaseModel):
    entity_id: UUID
    party_class: PartyClass
    entries: List[LedgerRow]  # newest first
    current_balance: Money
    has_data: bool


class BalanceResponse(BaseModel):
    entity_id: UUID
    party_class: PartyClass
    balance: Money  # positive: we owe the party; negative: the party owes us
    source: Literal["ledger", "stored"]


class PaymentInstruction(BaseModel):
    """One payment carrying cash and/or bank amounts"""
    cash_amount: Decimal = Field(default=Decimal("0"), ge=0)
    bank_amount: Decimal = Field(default=Decimal("0"), ge=0)
    date: Optional[dt.date] = None
    notes: Optional[str] = None
    reference_id: Optional[UUID] = None
    reference_model: Optional[str] = None


class SubPaymentResult(BaseModel):
    payment_method: Literal["cash", "bank"]
    amount: Money
    entry_id: UUID
    balance_before: Optional[Money] = None  # None when the ledger had no data
    balance_after: Optional[Money] = None


class PaymentDistributionResult(BaseModel):
    entity_id: UUID
    party_class: PartyClass
    total_amount: Money
    submissions: List[SubPaymentResult]
