"""
Dispatch Order Service - state machine, confirm gate and order workflow

Transitions:
    pending           --submit_approval-->  pending-approval   (admin)
    pending-approval  --submit_approval-->  pending-approval   (admin, re-submit)
    pending-approval  --revert_to_pending-> pending            (super-admin)
    pending|p-approval --confirm-->         confirmed          (super-admin)
    pending|p-approval --cancel-->          cancelled          (super-admin)

confirmed is terminal for items and money; only returns and payments are
accepted afterwards.
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from dispatchdesk.exceptions import (
    DispatchValidationError, InvalidTransition, InvariantViolation, PermissionDenied,
)
from dispatchdesk.schemas.dispatch_order import (
    DispatchOrderData, FinalLineItem, OrderDraft, OrderView, PaymentSnapshot, ReturnRequest,
    ValidationResult,
)
from dispatchdesk.schemas.ledger import LedgerEntryCreate, PaymentInstruction
from dispatchdesk.services import returns as return_service
from dispatchdesk.services.ledger_balance import SUPPLIER, entity_model_for
from dispatchdesk.services.order_view import (
    apply_item_edit, compute_order_view, effective_fields, is_editable,
)
from dispatchdesk.services.payment_distribution import distribute_payment
from dispatchdesk.utils.boxes import parse_box_numbers
from dispatchdesk.utils.money import EXCHANGE_RATE_ERROR, convert, is_valid_exchange_rate, to_decimal

logger = logging.getLogger(__name__)

ADMIN = "admin"
SUPER_ADMIN = "super-admin"

EDIT_STATUSES = ("pending", "pending-approval")

# action -> (allowed source statuses, target status; None keeps the current one)
TRANSITIONS: Dict[str, tuple] = {
    "save": (EDIT_STATUSES, None),
    "submit_approval": (EDIT_STATUSES, "pending-approval"),
    "revert_to_pending": (("pending-approval",), "pending"),
    "confirm": (EDIT_STATUSES, "confirmed"),
    "cancel": (EDIT_STATUSES, "cancelled"),
    "delete": (("pending", "pending-approval", "cancelled"), None),
}

ACTION_ROLES: Dict[str, frozenset] = {
    "save": frozenset({ADMIN, SUPER_ADMIN}),
    "submit_approval": frozenset({ADMIN}),
    "revert_to_pending": frozenset({SUPER_ADMIN}),
    "confirm": frozenset({SUPER_ADMIN}),
    "cancel": frozenset({SUPER_ADMIN}),
    "delete": frozenset({SUPER_ADMIN}),
    "return": frozenset({ADMIN, SUPER_ADMIN}),
}


def authorize(action: str, role: Optional[str]) -> None:
    allowed = ACTION_ROLES.get(action, frozenset())
    if role not in allowed:
        raise PermissionDenied(
            f"Role '{role or 'anonymous'}' may not {action.replace('_', ' ')} dispatch orders"
        )


def next_status(current_status: str, action: str) -> str:
    """Target status for `action`, or InvalidTransition when it is not legal from `current_status`."""
    sources, target = TRANSITIONS[action]
    if current_status not in sources:
        raise InvalidTransition(current_status, action)
    return target or current_status


def _item_labels(positions: List[int]) -> str:
    return ", ".join(f"#{p + 1}" for p in positions)


def validate_for_confirm(order: DispatchOrderData, draft: Optional[OrderDraft] = None) -> ValidationResult:
    """
    Confirm gate. Every rule is checked; all violations are returned together.

    `draft` carries the operator's verification state. Without it no item is
    verified, so the gate fails for any order with items.
    """
    draft = draft or OrderDraft()
    fields = effective_fields(order, draft)
    errors: List[str] = []

    if order.supplier_id is None:
        errors.append("Supplier is required")
    if fields.logistics_company_id is None:
        errors.append("Logistics company is required")
    if fields.dispatch_date is None:
        errors.append("Dispatch date is required")
    if not is_valid_exchange_rate(fields.exchange_rate):
        errors.append(EXCHANGE_RATE_ERROR)

    removed = set(draft.removed_item_ids) if is_editable(order) else set()
    active = [item for item in order.items if item.id not in removed]
    new_items = draft.new_items if is_editable(order) else []
    if not active and not new_items:
        errors.append("At least one item is required")

    verified = set(draft.verified_item_ids)
    unverified = [item.position for item in active if item.id not in verified]
    if unverified:
        errors.append(f"Items not verified: {_item_labels(unverified)}")

    invalid_qty = []
    for item in active:
        effective = apply_item_edit(item, draft.item_edits.get(item.id))
        if effective.quantity is None or effective.quantity <= 0:
            invalid_qty.append(item.position)
    if invalid_qty:
        errors.append(f"Items with invalid quantity: {_item_labels(invalid_qty)}")

    invalid_new = [index for index, item in enumerate(new_items) if item.quantity is None or item.quantity <= 0]
    if invalid_new:
        errors.append(f"New items with invalid quantity: {_item_labels(invalid_new)}")

    if not fields.total_boxes_confirmed:
        errors.append("Total boxes must be confirmed before order confirmation")
    if fields.total_boxes is None or fields.total_boxes <= 0:
        errors.append("Total boxes must be greater than 0")

    return ValidationResult(is_valid=not errors, errors=errors)


def check_edit_invariants(order: DispatchOrderData, draft: OrderDraft) -> None:
    """Edits may not hide stock that has already gone back to the supplier."""
    returned = return_service.returned_by_item(order.returned_items)
    known = {item.id: item for item in order.items}
    problems: List[str] = []

    for item_id in draft.removed_item_ids:
        if item_id not in known:
            problems.append(f"Item {item_id} is not part of dispatch order {order.order_number}")
        elif returned.get(item_id, 0) > 0:
            problems.append(f"{known[item_id].product_name} has returns and cannot be removed")

    for item_id, edit in draft.item_edits.items():
        if item_id not in known:
            problems.append(f"Item {item_id} is not part of dispatch order {order.order_number}")
            continue
        already = returned.get(item_id, 0)
        if edit.quantity is not None and edit.quantity < already:
            problems.append(
                f"Quantity for {known[item_id].product_name} ({edit.quantity}) "
                f"is below the quantity already returned ({already})"
            )

    if problems:
        raise InvariantViolation("Order edit refused", problems)


def assemble_final_items(order: DispatchOrderData, draft: OrderDraft) -> List[FinalLineItem]:
    """
    Final item set persisted on save / submit / confirm.

    Edited fields override originals, removed items are dropped and new
    items are appended with original_position None. Positions are
    renumbered for display; ids are kept.
    """
    check_edit_invariants(order, draft)
    removed = set(draft.removed_item_ids)
    final: List[FinalLineItem] = []

    for item in order.items:
        if item.id in removed:
            continue
        effective = apply_item_edit(item, draft.item_edits.get(item.id))
        data = effective.model_dump()
        data.update(position=len(final), original_position=item.position, quantity=max(0, effective.quantity))
        final.append(FinalLineItem.model_validate(data))

    for new_item in draft.new_items:
        final.append(FinalLineItem(
            id=uuid4(),
            position=len(final),
            original_position=None,
            product_name=new_item.product_name,
            product_code=new_item.product_code,
            quantity=max(0, new_item.quantity or 0),
            cost_price=new_item.cost_price,
            primary_color=new_item.primary_color,
            size=new_item.size,
            packets=new_item.packets,
            use_variant_tracking=new_item.use_variant_tracking,
            boxes=parse_box_numbers(new_item.box_numbers),
        ))
    return final


def build_payment_snapshot(order: DispatchOrderData, draft: OrderDraft, view: OrderView) -> PaymentSnapshot:
    """Discount comes from the view so returns before confirmation shrink it proportionally."""
    return PaymentSnapshot(
        cash_payment=to_decimal(draft.cash_payment),
        bank_payment=to_decimal(draft.bank_payment),
        exchange_rate=view.exchange_rate,
        percentage=view.percentage,
        discount=view.totals.discount,
    )


def draft_to_patch(order: DispatchOrderData, draft: OrderDraft, final_items: List[FinalLineItem]) -> dict:
    """Order-level columns plus the final item set, ready for the order store."""
    fields = effective_fields(order, draft)
    # With returns the stored discount stays the pre-return amount; the view rescales it
    # against discount_basis, which is carried over so edited items do not move the rate
    if order.returned_items or draft.discount is None:
        total_discount = order.total_discount
    else:
        total_discount = draft.discount
    patch = {
        "logistics_company_id": fields.logistics_company_id,
        "dispatch_date": fields.dispatch_date,
        "exchange_rate": fields.exchange_rate,
        "percentage": fields.percentage,
        "total_discount": total_discount,
        "total_boxes": fields.total_boxes,
        "is_total_boxes_confirmed": fields.total_boxes_confirmed,
        "items": final_items,
    }
    if order.returned_items:
        patch["discount_basis"] = return_service.discount_basis(order)
    if draft.notes is not None:
        patch["notes"] = draft.notes
    return patch


def frozen_quantities(order: DispatchOrderData, final_items: List[FinalLineItem]) -> List[dict]:
    """Confirmed quantity per final item, stored as the override at confirmation."""
    returned = return_service.returned_by_item(order.returned_items)
    return [
        {
            "item_id": str(item.id),
            "quantity": return_service.confirmed_quantity(item.quantity, returned.get(item.id, 0)),
        }
        for item in final_items
    ]


class DispatchOrderService:
    """
    Order workflow over an order store and a ledger store.

    Reads always go through compute_order_view(); every write is preceded by
    the role check, the transition check and, where relevant, the gate.
    """

    def __init__(self, order_store, ledger_store):
        self.orders = order_store
        self.ledger = ledger_store

    def get(self, order_id: UUID) -> DispatchOrderData:
        return self.orders.load(order_id)

    def view(self, order_id: UUID, draft: Optional[OrderDraft] = None) -> OrderView:
        order = self.orders.load(order_id)
        payments = None
        if order.status == "confirmed":
            payments = self.ledger.payments_for_reference(order.id)
        return compute_order_view(order, draft=draft, payment_entries=payments)

    def validate(self, order_id: UUID, draft: Optional[OrderDraft] = None) -> ValidationResult:
        return validate_for_confirm(self.orders.load(order_id), draft)

    def _require_gate(self, order: DispatchOrderData, draft: OrderDraft, action: str) -> None:
        result = validate_for_confirm(order, draft)
        if not result.is_valid:
            logger.info(
                f"{action} refused for dispatch order {order.order_number}: {len(result.errors)} validation error(s)"
            )
            raise DispatchValidationError(result.errors, message=f"Cannot {action.replace('_', ' ')} dispatch order")

    def save_draft(self, order_id: UUID, draft: OrderDraft, role: Optional[str]) -> DispatchOrderData:
        """Persist edits without leaving the current status. No gate; quantities must not be negative."""
        authorize("save", role)
        order = self.orders.load(order_id)
        next_status(order.status, "save")

        errors = []
        if draft.exchange_rate is not None and not is_valid_exchange_rate(draft.exchange_rate):
            errors.append(EXCHANGE_RATE_ERROR)
        negative = [
            item.position for item in order.items
            if item.id in draft.item_edits
            and draft.item_edits[item.id].quantity is not None
            and draft.item_edits[item.id].quantity < 0
        ]
        if negative:
            errors.append(f"Items with invalid quantity: {_item_labels(negative)}")
        if errors:
            raise DispatchValidationError(errors)

        final_items = assemble_final_items(order, draft)
        saved = self.orders.save(order.id, draft_to_patch(order, draft, final_items))
        logger.info(f"Saved dispatch order {order.order_number} ({len(final_items)} items)")
        return saved

    def submit_approval(self, order_id: UUID, draft: OrderDraft, role: Optional[str]) -> DispatchOrderData:
        """Admin hand-off to a super-admin. Same gate as confirm; the financial snapshot is not locked."""
        authorize("submit_approval", role)
        order = self.orders.load(order_id)
        target = next_status(order.status, "submit_approval")
        self._require_gate(order, draft, "submit_approval")

        final_items = assemble_final_items(order, draft)
        view = compute_order_view(order, draft=draft)
        snapshot = build_payment_snapshot(order, draft, view)
        patch = draft_to_patch(order, draft, final_items)
        patch.update(
            status=target,
            submitted_at=datetime.now(timezone.utc),
            cash_payment=snapshot.cash_payment,
            bank_payment=snapshot.bank_payment,
        )
        submitted = self.orders.submit_approval(order.id, patch)
        logger.info(f"Dispatch order {order.order_number}: {order.status} -> {target}")
        return submitted

    def revert_to_pending(self, order_id: UUID, role: Optional[str]) -> DispatchOrderData:
        authorize("revert_to_pending", role)
        order = self.orders.load(order_id)
        target = next_status(order.status, "revert_to_pending")
        reverted = self.orders.revert_to_pending(order.id)
        logger.info(f"Dispatch order {order.order_number}: {order.status} -> {target}")
        return reverted

    def confirm(self, order_id: UUID, draft: OrderDraft, role: Optional[str]) -> DispatchOrderData:
        """
        Confirm the order and lock its financial snapshot.

        After the order row is committed the supplier ledger receives a
        purchase debit for the base-currency total, followed by the cash and
        bank payments (cash first). A payment failure leaves the order
        confirmed and is raised as ExternalFailure / PartialPaymentFailure.
        """
        authorize("confirm", role)
        order = self.orders.load(order_id)
        target = next_status(order.status, "confirm")
        self._require_gate(order, draft, "confirm")

        final_items = assemble_final_items(order, draft)
        view = compute_order_view(order, draft=draft)
        snapshot = build_payment_snapshot(order, draft, view)
        totals = view.totals

        patch = draft_to_patch(order, draft, final_items)
        patch.update(
            status=target,
            confirmed_at=datetime.now(timezone.utc),
            confirmed_quantities=frozen_quantities(order, final_items),
            cash_payment=snapshot.cash_payment,
            bank_payment=snapshot.bank_payment,
            remaining_balance=totals.remaining_balance,
            outstanding_balance=totals.outstanding_balance,
        )
        confirmed = self.orders.confirm(order.id, patch)
        logger.info(f"Dispatch order {order.order_number}: {order.status} -> {target}")

        today = date.today()
        if totals.total_amount > 0:
            self.ledger.append_entry(LedgerEntryCreate(
                entity_id=order.supplier_id,
                entity_model=entity_model_for(SUPPLIER),
                transaction_type="purchase",
                debit=totals.total_amount,
                date=confirmed.dispatch_date or today,
                description=f"Dispatch order {order.order_number}",
                reference_id=order.id,
                reference_model="DispatchOrder",
            ))

        cash = to_decimal(snapshot.cash_payment)
        bank = to_decimal(snapshot.bank_payment)
        if cash + bank > 0:
            distribute_payment(
                self.ledger,
                order.supplier_id,
                PaymentInstruction(
                    cash_amount=convert(cash, snapshot.exchange_rate),
                    bank_amount=convert(bank, snapshot.exchange_rate),
                    date=today,
                    notes=f"Payment for dispatch order {order.order_number}",
                    reference_id=order.id,
                    reference_model="DispatchOrder",
                ),
                party_class=SUPPLIER,
            )
        return confirmed

    def return_items(self, order_id: UUID, request: ReturnRequest, role: Optional[str]) -> DispatchOrderData:
        """
        Append return records for one submission.

        All lines are validated before anything is written. On a confirmed
        order the supplier ledger is credited with the drop in the order's
        base-currency total.
        """
        authorize("return", role)
        order = self.orders.load(order_id)
        return_service.validate_return_request(order, request.lines)
        records = return_service.build_return_records(request.lines, notes=request.notes)

        before: Optional[Decimal] = None
        if order.status == "confirmed":
            before = compute_order_view(order).totals.total_amount

        updated = self.orders.append_returns(
            order.id, records, discount_basis=return_service.discount_basis(order),
        )
        logger.info(
            f"Recorded {len(records)} return line(s) on dispatch order {order.order_number} "
            f"({sum(r.quantity for r in records)} units)"
        )

        if before is not None:
            drop = before - compute_order_view(updated).totals.total_amount
            if drop > 0:
                self.ledger.append_entry(LedgerEntryCreate(
                    entity_id=order.supplier_id,
                    entity_model=entity_model_for(SUPPLIER),
                    transaction_type="return",
                    credit=drop,
                    date=date.today(),
                    description=f"Return on dispatch order {order.order_number}",
                    reference_id=order.id,
                    reference_model="DispatchOrder",
                ))
        return updated

    def cancel(self, order_id: UUID, role: Optional[str]) -> DispatchOrderData:
        authorize("cancel", role)
        order = self.orders.load(order_id)
        target = next_status(order.status, "cancel")
        cancelled = self.orders.cancel(order.id)
        logger.info(f"Dispatch order {order.order_number}: {order.status} -> {target}")
        return cancelled

    def delete(self, order_id: UUID, role: Optional[str]) -> None:
        authorize("delete", role)
        order = self.orders.load(order_id)
        next_status(order.status, "delete")
        self.orders.delete(order.id)
        logger.info(f"Deleted dispatch order {order.order_number}")

    def payments(self, order_id: UUID) -> list:
        order = self.orders.load(order_id)
        return self.ledger.payments_for_reference(order.id)
