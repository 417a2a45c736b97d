"""
Dispatch Orders API routes
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from dispatchdesk.api.errors import engine_errors
from dispatchdesk.dependencies import get_current_role, get_dispatch_service
from dispatchdesk.schemas.dispatch_order import (
    DispatchOrderCreate, DispatchOrderResponse, OrderDraft, OrderView, ReturnRequest, ValidationResult,
)
from dispatchdesk.schemas.ledger import LedgerEntryResponse
from dispatchdesk.services.dispatch_order_service import DispatchOrderService

router = APIRouter()


@router.post("/", response_model=DispatchOrderResponse, status_code=status.HTTP_201_CREATED)
def create_dispatch_order(
    order: DispatchOrderCreate,
    service: DispatchOrderService = Depends(get_dispatch_service),
):
    """Batch receipt: create a dispatch order in pending"""
    with engine_errors():
        return service.orders.create(order)


@router.get("/{order_id}", response_model=DispatchOrderResponse)
def get_dispatch_order(order_id: UUID, service: DispatchOrderService = Depends(get_dispatch_service)):
    """Stored order with items and return history"""
    with engine_errors():
        return service.get(order_id)


@router.get("/{order_id}/view", response_model=OrderView)
def view_dispatch_order(order_id: UUID, service: DispatchOrderService = Depends(get_dispatch_service)):
    """
    Derived state: confirmed quantities, landed prices, discount and totals.
    Money fields are rounded to 2 places in the response only.
    """
    with engine_errors():
        return service.view(order_id)


@router.post("/{order_id}/view", response_model=OrderView)
def preview_dispatch_order(
    order_id: UUID,
    draft: OrderDraft,
    service: DispatchOrderService = Depends(get_dispatch_service),
):
    """Same as GET /view with unsaved edits applied (pending / pending-approval only)"""
    with engine_errors():
        return service.view(order_id, draft)


@router.post("/{order_id}/validate", response_model=ValidationResult)
def validate_dispatch_order(
    order_id: UUID,
    draft: OrderDraft,
    service: DispatchOrderService = Depends(get_dispatch_service),
):
    """Run the confirm gate without changing anything; returns every violated rule"""
    with engine_errors():
        return service.validate(order_id, draft)


@router.patch("/{order_id}", response_model=DispatchOrderResponse)
def save_dispatch_order(
    order_id: UUID,
    draft: OrderDraft,
    role: Optional[str] = Depends(get_current_role),
    service: DispatchOrderService = Depends(get_dispatch_service),
):
    """Save edits while pending / pending-approval"""
    with engine_errors():
        return service.save_draft(order_id, draft, role)


@router.post("/{order_id}/submit-approval", response_model=DispatchOrderResponse)
def submit_dispatch_order_for_approval(
    order_id: UUID,
    draft: OrderDraft,
    role: Optional[str] = Depends(get_current_role),
    service: DispatchOrderService = Depends(get_dispatch_service),
):
    """Admin: submit (or re-submit) for super-admin approval"""
    with engine_errors():
        return service.submit_approval(order_id, draft, role)


@router.post("/{order_id}/revert-pending", response_model=DispatchOrderResponse)
def revert_dispatch_order_to_pending(
    order_id: UUID,
    role: Optional[str] = Depends(get_current_role),
    service: DispatchOrderService = Depends(get_dispatch_service),
):
    """Super-admin: send a pending-approval order back to pending"""
    with engine_errors():
        return service.revert_to_pending(order_id, role)


@router.post("/{order_id}/confirm", response_model=DispatchOrderResponse)
def confirm_dispatch_order(
    order_id: UUID,
    draft: OrderDraft,
    role: Optional[str] = Depends(get_current_role),
    service: DispatchOrderService = Depends(get_dispatch_service),
):
    """
    Super-admin: confirm the order.

    Fails with 400 and the full error list when the confirm gate does not
    pass. Payment failures after confirmation return 502; a partial failure
    lists the sub-payments that were recorded.
    """
    with engine_errors():
        return service.confirm(order_id, draft, role)


@router.post("/{order_id}/returns", response_model=DispatchOrderResponse, status_code=status.HTTP_201_CREATED)
def return_dispatch_order_items(
    order_id: UUID,
    request: ReturnRequest,
    role: Optional[str] = Depends(get_current_role),
    service: DispatchOrderService = Depends(get_dispatch_service),
):
    """Record a return; all lines are accepted or none"""
    with engine_errors():
        return service.return_items(order_id, request, role)


@router.post("/{order_id}/cancel", response_model=DispatchOrderResponse)
def cancel_dispatch_order(
    order_id: UUID,
    role: Optional[str] = Depends(get_current_role),
    service: DispatchOrderService = Depends(get_dispatch_service),
):
    with engine_errors():
        return service.cancel(order_id, role)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_dispatch_order(
    order_id: UUID,
    role: Optional[str] = Depends(get_current_role),
    service: DispatchOrderService = Depends(get_dispatch_service),
):
    with engine_errors():
        service.delete(order_id, role)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{order_id}/payments", response_model=List[LedgerEntryResponse])
def list_dispatch_order_payments(order_id: UUID, service: DispatchOrderService = Depends(get_dispatch_service)):
    """Ledger payments recorded against this order (base currency)"""
    with engine_errors():
        return service.payments(order_id)
