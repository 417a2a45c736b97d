"""
External party models (suppliers and logistics companies)
"""
from sqlalchemy import Column, String, Boolean, Numeric, Text, Uuid
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP
import uuid
from dispatchdesk.database import Base


class Supplier(Base):
    """Supplier model"""
    __tablename__ = "suppliers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    company = Column(String(255))
    currency = Column(String(3))  # Supplier currency code, display only
    phone = Column(String(50))
    email = Column(String(255))
    address = Column(Text)
    # Stored balance: fallback only when the ledger has no relevant entries
    balance = Column(Numeric(20, 4), default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())


class LogisticsCompany(Base):
    """Logistics company model"""
    __tablename__ = "logistics_companies"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    contact_person = Column(String(255))
    phone = Column(String(50))
    email = Column(String(255))
    balance = Column(Numeric(20, 4), default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())
