"""
Dispatch order schemas

DispatchOrderData is the immutable snapshot the engine computes over; it is
built from ORM rows by the order store (from_attributes) or directly in tests.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from dispatchdesk.schemas.common import Money

OrderStatus = Literal["pending", "pending-approval", "confirmed", "cancelled"]


class PacketComposition(BaseModel):
    """One color x size bucket inside a packet"""
    color: Optional[str] = None
    size: Optional[str] = None
    quantity: int = Field(default=0, ge=0)


class Packet(BaseModel):
    """Grouped sub-unit of a line item's quantity"""
    is_loose: bool = False
    composition: List[PacketComposition] = []


class BoxRecord(BaseModel):
    box_number: int


class LineItem(BaseModel):
    """Dispatch order line item as stored"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    position: int = 0
    product_name: str
    product_code: Optional[str] = None
    quantity: int = Field(..., ge=0, description="Originally ordered quantity")
    cost_price: Decimal = Field(default=Decimal("0"), ge=0, description="Supplier currency")
    primary_color: List[str] = []
    size: List[str] = []
    packets: List[Packet] = []
    use_variant_tracking: bool = False
    boxes: List[BoxRecord] = []


class FinalLineItem(LineItem):
    """Line item as persisted at submit/confirm; original_position is None for newly added items"""
    original_position: Optional[int] = None


class ReturnRecord(BaseModel):
    """Immutable return event"""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[UUID] = None
    item_id: UUID
    quantity: int = Field(..., gt=0)
    reason: Optional[str] = None
    notes: Optional[str] = None
    returned_at: datetime


class ConfirmedQuantity(BaseModel):
    item_id: UUID
    quantity: int = Field(..., ge=0)


class PaymentDetails(BaseModel):
    """Stored payment details (supplier currency)"""
    cash_payment: Money = Decimal("0")
    bank_payment: Money = Decimal("0")
    remaining_balance: Money = Decimal("0")
    outstanding_balance: Money = Decimal("0")


class DispatchOrderData(BaseModel):
    """Snapshot of one dispatch order including its return history"""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    order_number: str
    status: OrderStatus = "pending"
    supplier_id: Optional[UUID] = None
    logistics_company_id: Optional[UUID] = None
    dispatch_date: Optional[date] = None
    exchange_rate: Decimal = Decimal("1")
    percentage: Decimal = Decimal("0")
    total_discount: Decimal = Decimal("0")
    discount_basis: Optional[Decimal] = None
    total_boxes: int = 0
    is_total_boxes_confirmed: bool = False
    items: List[LineItem] = []
    returned_items: List[ReturnRecord] = []
    confirmed_quantities: List[ConfirmedQuantity] = []
    payment_details: PaymentDetails = PaymentDetails()
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class DispatchOrderItemCreate(BaseModel):
    product_name: str
    product_code: Optional[str] = None
    quantity: int = Field(..., ge=0)
    cost_price: Decimal = Field(default=Decimal("0"), ge=0)
    primary_color: List[str] = []
    size: List[str] = []
    packets: List[Packet] = []
    use_variant_tracking: bool = False


class DispatchOrderCreate(BaseModel):
    """Batch receipt - creates a dispatch order in pending"""
    order_number: str
    supplier_id: UUID
    logistics_company_id: Optional[UUID] = None
    dispatch_date: Optional[date] = None
    exchange_rate: Decimal = Field(default=Decimal("1"), gt=0)
    percentage: Decimal = Field(default=Decimal("0"), ge=0)
    total_discount: Decimal = Field(default=Decimal("0"), ge=0)
    total_boxes: int = Field(default=0, ge=0)
    notes: Optional[str] = None
    items: List[DispatchOrderItemCreate] = Field(..., min_length=1)


class ItemEdit(BaseModel):
    """Operator edits to one original line item. None means unchanged."""
    model_config = ConfigDict(extra="forbid")

    product_name: Optional[str] = None
    product_code: Optional[str] = None
    quantity: Optional[int] = None
    cost_price: Optional[Decimal] = Field(None, ge=0)
    primary_color: Optional[List[str]] = None
    size: Optional[List[str]] = None
    packets: Optional[List[Packet]] = None
    box_numbers: Optional[str] = Field(None, description="Comma separated box numbers")


class NewLineItem(BaseModel):
    """Item appended by the operator before confirmation"""
    model_config = ConfigDict(extra="forbid")

    product_name: str
    product_code: Optional[str] = None
    quantity: Optional[int] = None
    cost_price: Decimal = Field(default=Decimal("0"), ge=0)
    primary_color: List[str] = []
    size: List[str] = []
    packets: List[Packet] = []
    use_variant_tracking: bool = False
    box_numbers: Optional[str] = None


class OrderDraft(BaseModel):
    """
    Working state of the confirm/approval flow.

    Order-level fields left as None keep the stored value. verified_item_ids
    starts empty every time the flow is entered. supplier_id is not accepted:
    the supplier is fixed at creation.
    """
    model_config = ConfigDict(extra="forbid")

    item_edits: Dict[UUID, ItemEdit] = {}
    removed_item_ids: List[UUID] = []
    new_items: List[NewLineItem] = []
    logistics_company_id: Optional[UUID] = None
    dispatch_date: Optional[date] = None
    exchange_rate: Optional[Decimal] = None
    percentage: Optional[Decimal] = Field(None, ge=0)
    discount: Optional[Decimal] = Field(None, ge=0, description="Supplier currency")
    total_boxes: Optional[int] = None
    total_boxes_confirmed: Optional[bool] = None
    verified_item_ids: List[UUID] = []
    cash_payment: Decimal = Field(default=Decimal("0"), ge=0, description="Supplier currency")
    bank_payment: Decimal = Field(default=Decimal("0"), ge=0, description="Supplier currency")
    notes: Optional[str] = None


class ReturnLine(BaseModel):
    item_id: UUID
    quantity: int = Field(..., gt=0)
    reason: Optional[str] = None


class ReturnRequest(BaseModel):
    lines: List[ReturnLine] = Field(..., min_length=1)
    notes: Optional[str] = None


# ---------------------------------------------------------------------------
# Computed views
# ---------------------------------------------------------------------------

class PacketBucket(BaseModel):
    color: str
    size: str
    quantity: int


class PacketSummary(BaseModel):
    """
    Display estimate only. Buckets are scaled proportionally after returns;
    which physical packets went back is unknown.
    """
    is_loose: bool = False
    original_packet_count: int = 0
    estimated_packet_count: int = 0
    original_total: int = 0
    buckets: List[PacketBucket] = []
    adjusted_for_returns: bool = False


class LineItemView(BaseModel):
    item_id: Optional[UUID] = None  # None for items not yet persisted
    position: int
    original_position: Optional[int] = None
    product_name: str
    product_code: Optional[str] = None
    quantity: int
    total_returned: int = 0
    confirmed_qty: int
    cost_price: Money
    supplier_payment_amount: Money
    supplier_payment_item_total: Money
    landed_price: Money
    item_total: Money
    box_numbers: str = ""
    packets: Optional[PacketSummary] = None
    is_new: bool = False
    is_removed: bool = False


class OrderTotals(BaseModel):
    supplier_payment_total: Money  # supplier currency, sum(cost x confirmed qty)
    landed_price_total: Money  # base currency
    supplier_payment_before_discount: Money  # base currency
    discount: Money  # supplier currency
    discount_in_base: Money
    total_amount: Money  # base currency, what we owe the supplier after discount
    final_amount: Money  # supplier currency
    payments: Money  # supplier currency
    remaining_balance: Money  # supplier currency
    outstanding_balance: Money  # supplier currency, supplier owes us


class RemainingSummary(BaseModel):
    rows: int
    quantity: int
    value: Money


class OrderView(BaseModel):
    order_id: UUID
    order_number: str
    status: OrderStatus
    exchange_rate: Decimal
    percentage: Decimal
    has_returns: bool
    items: List[LineItemView]
    totals: OrderTotals
    remaining_summary: RemainingSummary


class ValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = []


class PaymentSnapshot(BaseModel):
    """Financial snapshot emitted on submit/confirm (supplier currency amounts)"""
    cash_payment: Money
    bank_payment: Money
    exchange_rate: Decimal
    percentage: Decimal
    discount: Money


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class LineItemResponse(LineItem):
    pass


class ReturnRecordResponse(ReturnRecord):
    pass


class DispatchOrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    status: OrderStatus
    supplier_id: Optional[UUID] = None
    logistics_company_id: Optional[UUID] = None
    dispatch_date: Optional[date] = None
    exchange_rate: Decimal
    percentage: Decimal
    total_discount: Money
    total_boxes: int
    is_total_boxes_confirmed: bool
    items: List[LineItemResponse] = []
    returned_items: List[ReturnRecordResponse] = []
    confirmed_quantities: List[ConfirmedQuantity] = []
    payment_details: PaymentDetails
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
