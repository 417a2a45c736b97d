"""
Order View Service - the single read-side computation for a dispatch order.

compute_order_view() is pure: same order, returns, draft and payments in,
same view out. UI, reports and the confirm flow all read derived values
(confirmed quantities, landed prices, discounts, totals) from here.
"""
from decimal import Decimal
from typing import Any, Iterable, List, NamedTuple, Optional, Sequence
from uuid import UUID

from dispatchdesk.schemas.dispatch_order import (
    BoxRecord, DispatchOrderData, ItemEdit, LineItem, LineItemView, OrderDraft, OrderTotals, OrderView,
    RemainingSummary, ReturnRecord,
)
from dispatchdesk.services import landed_cost, returns as return_service
from dispatchdesk.utils.boxes import format_box_numbers, parse_box_numbers
from dispatchdesk.utils.money import convert, require_exchange_rate, to_decimal

EDITABLE_STATUSES = ("pending", "pending-approval")


class EffectiveFields(NamedTuple):
    """Order-level values after applying a draft (draft wins where set)."""
    logistics_company_id: Optional[UUID]
    dispatch_date: Any
    exchange_rate: Optional[Decimal]
    percentage: Decimal
    discount: Decimal  # raw entered discount, supplier currency
    total_boxes: int
    total_boxes_confirmed: bool


def is_editable(order: DispatchOrderData) -> bool:
    return order.status in EDITABLE_STATUSES


def active_draft(order: DispatchOrderData, draft: Optional[OrderDraft]) -> Optional[OrderDraft]:
    """Drafts only apply while the order can still be edited."""
    if draft is None or not is_editable(order):
        return None
    return draft


def effective_fields(order: DispatchOrderData, draft: Optional[OrderDraft]) -> EffectiveFields:
    draft = active_draft(order, draft)
    if draft is None:
        return EffectiveFields(
            logistics_company_id=order.logistics_company_id,
            dispatch_date=order.dispatch_date,
            exchange_rate=order.exchange_rate,
            percentage=to_decimal(order.percentage),
            discount=to_decimal(order.total_discount),
            total_boxes=order.total_boxes,
            total_boxes_confirmed=order.is_total_boxes_confirmed,
        )

    total_boxes = draft.total_boxes if draft.total_boxes is not None else order.total_boxes
    if draft.total_boxes_confirmed is not None:
        boxes_confirmed = draft.total_boxes_confirmed
    else:
        # Changing the count un-confirms it
        boxes_confirmed = order.is_total_boxes_confirmed and total_boxes == order.total_boxes

    return EffectiveFields(
        logistics_company_id=draft.logistics_company_id or order.logistics_company_id,
        dispatch_date=draft.dispatch_date or order.dispatch_date,
        exchange_rate=draft.exchange_rate if draft.exchange_rate is not None else order.exchange_rate,
        percentage=to_decimal(draft.percentage if draft.percentage is not None else order.percentage),
        discount=to_decimal(draft.discount if draft.discount is not None else order.total_discount),
        total_boxes=total_boxes,
        total_boxes_confirmed=boxes_confirmed,
    )


def apply_item_edit(item: LineItem, edit: Optional[ItemEdit]) -> LineItem:
    """Overlay operator edits on a stored item. The stored item is not modified."""
    if edit is None:
        return item
    update = {
        key: getattr(edit, key)
        for key in edit.model_fields_set
        if key != "box_numbers" and getattr(edit, key) is not None
    }
    if "packets" in update:
        update["use_variant_tracking"] = True
    if edit.box_numbers is not None:
        update["boxes"] = [BoxRecord(**box) for box in parse_box_numbers(edit.box_numbers)]
    # model_copy skips validation; a blank/negative quantity is reported by the confirm gate
    return item.model_copy(update=update) if update else item


def _view_line(
    item: LineItem,
    position: int,
    original_position: Optional[int],
    returned: int,
    confirmed: int,
    exchange_rate,
    percentage,
    is_new: bool,
    is_removed: bool,
) -> LineItemView:
    pricing = landed_cost.price_line(item.cost_price, confirmed, exchange_rate, percentage)
    return LineItemView(
        item_id=None if is_new else item.id,
        position=position,
        original_position=original_position,
        product_name=item.product_name,
        product_code=item.product_code,
        quantity=item.quantity,
        total_returned=returned,
        confirmed_qty=confirmed,
        cost_price=to_decimal(item.cost_price),
        supplier_payment_amount=pricing.supplier_payment_amount,
        supplier_payment_item_total=pricing.supplier_payment_item_total,
        landed_price=pricing.landed_price,
        item_total=pricing.item_total,
        box_numbers=format_box_numbers(item.boxes),
        packets=return_service.reallocate_packets(item.packets, confirmed, returned > 0),
        is_new=is_new,
        is_removed=is_removed,
    )


def _payments_in_supplier_currency(
    order: DispatchOrderData,
    draft: Optional[OrderDraft],
    exchange_rate: Decimal,
    payment_entries: Optional[Iterable[Any]],
) -> Decimal:
    if draft is not None:
        return to_decimal(draft.cash_payment) + to_decimal(draft.bank_payment)
    if payment_entries is not None:
        # Ledger payments are in base currency
        paid_base = sum(
            (to_decimal(getattr(e, "credit", 0)) for e in payment_entries
             if getattr(e, "transaction_type", None) == "payment"),
            Decimal("0"),
        )
        return paid_base * exchange_rate
    details = order.payment_details
    return to_decimal(details.cash_payment) + to_decimal(details.bank_payment)


def compute_order_view(
    order: DispatchOrderData,
    returns: Optional[Sequence[ReturnRecord]] = None,
    draft: Optional[OrderDraft] = None,
    payment_entries: Optional[Iterable[Any]] = None,
) -> OrderView:
    """
    Derive the current (post-return) state of a dispatch order.

    - returns defaults to order.returned_items
    - draft (pending / pending-approval only) overlays unsaved operator edits
    - payment_entries: ledger payments referencing the order (base currency);
      when omitted the stored payment details are used
    Raises DispatchValidationError if the effective exchange rate is not > 0.
    """
    returns = order.returned_items if returns is None else returns
    draft = active_draft(order, draft)
    fields = effective_fields(order, draft)
    exchange_rate = require_exchange_rate(fields.exchange_rate)
    percentage = fields.percentage

    returned = return_service.returned_by_item(returns)
    overrides = return_service.confirmed_overrides(order)
    has_returns = len(returns) > 0
    removed = set(draft.removed_item_ids) if draft else set()
    edits = draft.item_edits if draft else {}

    lines: List[LineItemView] = []
    for position, item in enumerate(order.items):
        effective = apply_item_edit(item, edits.get(item.id))
        total_ret = returned.get(item.id, 0)
        confirmed = return_service.confirmed_quantity(effective.quantity, total_ret, overrides.get(item.id))
        lines.append(_view_line(
            effective, position, position, total_ret, confirmed,
            exchange_rate, percentage, is_new=False, is_removed=item.id in removed,
        ))

    for offset, new_item in enumerate(draft.new_items if draft else []):
        candidate = LineItem(
            id=UUID(int=0),
            position=len(order.items) + offset,
            product_name=new_item.product_name,
            product_code=new_item.product_code,
            quantity=max(0, new_item.quantity or 0),
            cost_price=new_item.cost_price,
            primary_color=new_item.primary_color,
            size=new_item.size,
            packets=new_item.packets,
            use_variant_tracking=new_item.use_variant_tracking,
            boxes=[BoxRecord(**box) for box in parse_box_numbers(new_item.box_numbers)],
        )
        lines.append(_view_line(
            candidate, candidate.position, None, 0, candidate.quantity,
            exchange_rate, percentage, is_new=True, is_removed=False,
        ))

    active = [line for line in lines if not line.is_removed]
    pricing_totals = landed_cost.sum_lines(
        landed_cost.price_line(line.cost_price, line.confirmed_qty, exchange_rate, percentage)
        for line in active
    )
    supplier_total = pricing_totals.supplier_payment_total

    if has_returns:
        discount = return_service.proportional_discount(
            order.total_discount,
            return_service.discount_basis(order),
            supplier_total,
        )
    else:
        discount = fields.discount

    before_discount = convert(supplier_total, exchange_rate)
    discount_in_base = convert(discount, exchange_rate)
    total_amount = before_discount - discount_in_base
    final_amount = supplier_total - discount
    payments = _payments_in_supplier_currency(order, draft, exchange_rate, payment_entries)
    remaining = final_amount - payments

    # Editable orders without returns summarise every active row at its ordered quantity
    if is_editable(order) and not has_returns:
        remaining_summary = RemainingSummary(
            rows=len(active),
            quantity=sum(line.quantity for line in active),
            value=total_amount,
        )
    else:
        still_in = [line for line in active if line.confirmed_qty > 0]
        remaining_summary = RemainingSummary(
            rows=len(still_in),
            quantity=sum(line.confirmed_qty for line in still_in),
            value=sum((line.item_total for line in still_in), Decimal("0")),
        )

    return OrderView(
        order_id=order.id,
        order_number=order.order_number,
        status=order.status,
        exchange_rate=exchange_rate,
        percentage=percentage,
        has_returns=has_returns,
        items=lines,
        totals=OrderTotals(
            supplier_payment_total=supplier_total,
            landed_price_total=pricing_totals.landed_price_total,
            supplier_payment_before_discount=before_discount,
            discount=discount,
            discount_in_base=discount_in_base,
            total_amount=total_amount,
            final_amount=final_amount,
            payments=payments,
            remaining_balance=remaining,
            outstanding_balance=max(Decimal("0"), -remaining),
        ),
        remaining_summary=remaining_summary,
    )
