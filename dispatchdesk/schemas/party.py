"""
Supplier and logistics company schemas (master data)
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from dispatchdesk.schemas.common import Money


class SupplierBase(BaseModel):
    name: str
    company: Optional[str] = None
    currency: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class SupplierCreate(SupplierBase):
    balance: Decimal = Decimal("0")


class SupplierResponse(SupplierBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    balance: Money
    is_active: bool
    created_at: Optional[datetime] = None


class LogisticsCompanyBase(BaseModel):
    name: str
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class LogisticsCompanyCreate(LogisticsCompanyBase):
    balance: Decimal = Decimal("0")


class LogisticsCompanyResponse(LogisticsCompanyBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    balance: Money
    is_active: bool
    created_at: Optional[datetime] = None
