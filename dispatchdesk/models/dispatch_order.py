"""
Dispatch order models (order header, line items, return records)
"""
from sqlalchemy import Column, String, Integer, Numeric, Date, Text, ForeignKey, Boolean, JSON, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP
import uuid
from dispatchdesk.database import Base


class DispatchOrder(Base):
    """Dispatch Order - one supplier shipment tracked through approval, confirmation and returns"""
    __tablename__ = "dispatch_orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_number = Column(String(100), nullable=False, unique=True)
    status = Column(String(50), nullable=False, default="pending")  # pending, pending-approval, confirmed, cancelled
    supplier_id = Column(Uuid, ForeignKey("suppliers.id"), nullable=False)  # immutable once created
    logistics_company_id = Column(Uuid, ForeignKey("logistics_companies.id"), nullable=True)
    dispatch_date = Column(Date)
    exchange_rate = Column(Numeric(20, 6), nullable=False, default=1)  # supplier currency per 1 base currency
    percentage = Column(Numeric(9, 4), nullable=False, default=0)  # markup %
    total_discount = Column(Numeric(20, 4), nullable=False, default=0)  # supplier currency
    # original supplier total the discount rate is taken from; set once returns exist
    discount_basis = Column(Numeric(20, 4), nullable=True)
    total_boxes = Column(Integer, nullable=False, default=0)
    is_total_boxes_confirmed = Column(Boolean, nullable=False, default=False)
    # [{"item_id": "...", "quantity": 10}] - frozen at confirmation
    confirmed_quantities = Column(JSON, nullable=False, default=list)
    # Payment details (supplier currency)
    cash_payment = Column(Numeric(20, 4), default=0)
    bank_payment = Column(Numeric(20, 4), default=0)
    remaining_balance = Column(Numeric(20, 4), default=0)
    outstanding_balance = Column(Numeric(20, 4), default=0)
    notes = Column(Text)
    submitted_at = Column(TIMESTAMP(timezone=True), nullable=True)
    confirmed_at = Column(TIMESTAMP(timezone=True), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    supplier = relationship("Supplier")
    logistics_company = relationship("LogisticsCompany")
    items = relationship(
        "DispatchOrderItem",
        back_populates="dispatch_order",
        cascade="all, delete-orphan",
        order_by="DispatchOrderItem.position",
    )
    returned_items = relationship(
        "DispatchOrderReturn",
        back_populates="dispatch_order",
        cascade="all, delete-orphan",
        order_by="DispatchOrderReturn.returned_at",
    )

    __table_args__ = (
        {"comment": "Dispatch orders. Items and money fields are read-only once status is confirmed."},
    )

    @property
    def payment_details(self) -> dict:
        return {
            "cash_payment": self.cash_payment or 0,
            "bank_payment": self.bank_payment or 0,
            "remaining_balance": self.remaining_balance or 0,
            "outstanding_balance": self.outstanding_balance or 0,
        }


class DispatchOrderItem(Base):
    """Dispatch order line item. `id` is the stable identity; `position` is display order only."""
    __tablename__ = "dispatch_order_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    dispatch_order_id = Column(Uuid, ForeignKey("dispatch_orders.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    product_name = Column(String(255), nullable=False)
    product_code = Column(String(100))
    quantity = Column(Integer, nullable=False)  # originally ordered quantity
    cost_price = Column(Numeric(20, 4), nullable=False, default=0)  # supplier currency
    primary_color = Column(JSON, nullable=False, default=list)
    size = Column(JSON, nullable=False, default=list)
    packets = Column(JSON, nullable=False, default=list)  # [{"is_loose": false, "composition": [{color, size, quantity}]}]
    use_variant_tracking = Column(Boolean, nullable=False, default=False)
    boxes = Column(JSON, nullable=False, default=list)  # [{"box_number": 1}]
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    # Relationships
    dispatch_order = relationship("DispatchOrder", back_populates="items")


class DispatchOrderReturn(Base):
    """Return record - append-only, never updated or deleted while the order exists"""
    __tablename__ = "dispatch_order_returns"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    dispatch_order_id = Column(Uuid, ForeignKey("dispatch_orders.id", ondelete="CASCADE"), nullable=False)
    item_id = Column(Uuid, nullable=False)  # dispatch_order_items.id
    quantity = Column(Integer, nullable=False)
    reason = Column(String(255))
    notes = Column(Text)
    returned_at = Column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    dispatch_order = relationship("DispatchOrder", back_populates="returned_items")
