"""
Suppliers and logistics companies API routes (master data)
"""
from uuid import UUID

from fastapi import APIRouter, Depends, status

from dispatchdesk.api.errors import engine_errors
from dispatchdesk.dependencies import get_master_data
from dispatchdesk.schemas.party import (
    LogisticsCompanyCreate, LogisticsCompanyResponse, SupplierCreate, SupplierResponse,
)
from dispatchdesk.services.stores import MasterDataStore

router = APIRouter()


@router.post("/suppliers", response_model=SupplierResponse, status_code=status.HTTP_201_CREATED)
def create_supplier(supplier: SupplierCreate, master_data: MasterDataStore = Depends(get_master_data)):
    """Create a new supplier"""
    with engine_errors():
        return master_data.create_supplier(supplier)


@router.get("/suppliers/{supplier_id}", response_model=SupplierResponse)
def get_supplier(supplier_id: UUID, master_data: MasterDataStore = Depends(get_master_data)):
    """Get supplier by ID"""
    with engine_errors():
        return master_data.get_supplier(supplier_id)


@router.post("/logistics-companies", response_model=LogisticsCompanyResponse, status_code=status.HTTP_201_CREATED)
def create_logistics_company(
    company: LogisticsCompanyCreate,
    master_data: MasterDataStore = Depends(get_master_data),
):
    """Create a new logistics company"""
    with engine_errors():
        return master_data.create_logistics_company(company)


@router.get("/logistics-companies/{company_id}", response_model=LogisticsCompanyResponse)
def get_logistics_company(company_id: UUID, master_data: MasterDataStore = Depends(get_master_data)):
    """Get logistics company by ID"""
    with engine_errors():
        return master_data.get_logistics_company(company_id)
