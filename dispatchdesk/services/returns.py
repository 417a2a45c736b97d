"""
Return & Discount Reallocation Service

Return records are append-only. Everything here is recomputed from them on
every read; original line items are never mutated by a return.
"""
import math
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Mapping, Optional, Sequence
from uuid import UUID

from dispatchdesk.exceptions import InvariantViolation
from dispatchdesk.schemas.dispatch_order import (
    DispatchOrderData, LineItem, Packet, PacketBucket, PacketSummary, ReturnLine, ReturnRecord,
)
from dispatchdesk.utils.money import to_decimal


def returned_by_item(returns: Iterable[ReturnRecord]) -> Dict[UUID, int]:
    """item_id -> total returned quantity"""
    totals: Dict[UUID, int] = {}
    for record in returns:
        totals[record.item_id] = totals.get(record.item_id, 0) + int(record.quantity)
    return totals


def total_returned(returns: Iterable[ReturnRecord], item_id: UUID) -> int:
    return returned_by_item(returns).get(item_id, 0)


def confirmed_quantity(
    quantity: int,
    returned: int,
    override: Optional[int] = None,
) -> int:
    """Stored override wins; otherwise ordered minus returned, clamped at 0."""
    if override is not None:
        return int(override)
    return max(0, int(quantity) - int(returned))


def confirmed_overrides(order: DispatchOrderData) -> Dict[UUID, int]:
    return {cq.item_id: cq.quantity for cq in order.confirmed_quantities}


def original_supplier_total(items: Sequence[LineItem]) -> Decimal:
    """Supplier-currency total of the items at their ordered quantities (no returns)."""
    total = Decimal("0")
    for item in items:
        total += to_decimal(item.cost_price) * item.quantity
    return total


def discount_basis(order: DispatchOrderData) -> Decimal:
    """
    Denominator of the discount rate once returns exist.

    The frozen basis wins; before it is stored, the stored items at their
    ordered quantities are used. Later item edits must not move the rate.
    """
    if order.discount_basis is not None:
        return to_decimal(order.discount_basis)
    return original_supplier_total(order.items)


def discount_rate(original_discount, original_total) -> Decimal:
    """original_discount / original_total; 0 when the total is 0."""
    total = to_decimal(original_total)
    if total == 0:
        return Decimal("0")
    return to_decimal(original_discount) / total


def proportional_discount(original_discount, original_total, current_total) -> Decimal:
    """
    Keep the discount rate, not the discount amount, when returns shrink the order.

    50 off 500 is 10%; after returns leave 300 the discount is 30.
    """
    return discount_rate(original_discount, original_total) * to_decimal(current_total)


def reallocate_packets(
    packets: Sequence[Packet],
    remaining_qty: int,
    has_returns: bool,
) -> Optional[PacketSummary]:
    """
    Scale the per color/size packet breakdown to the remaining quantity.

    This is a display estimate: ratio = remaining / original packet total,
    each bucket is rounded independently (half-up) and zero buckets dropped,
    so bucket sums may differ from remaining_qty by rounding. Do not use the
    result for money or stock.
    """
    if not packets:
        return None

    if packets[0].is_loose:
        return PacketSummary(is_loose=True, original_packet_count=len(packets))

    breakdown: Dict[tuple, int] = {}
    original_total = 0
    for packet in packets:
        for part in packet.composition:
            if part.color and part.size and part.quantity > 0:
                key = (part.color, part.size)
                breakdown[key] = breakdown.get(key, 0) + part.quantity
                original_total += part.quantity

    if original_total == 0:
        return PacketSummary(original_packet_count=len(packets), estimated_packet_count=len(packets))

    ratio = Decimal(remaining_qty) / Decimal(original_total) if has_returns else Decimal("1")

    buckets: List[PacketBucket] = []
    for (color, size), qty in breakdown.items():
        adjusted = int((Decimal(qty) * ratio).to_integral_value(rounding=ROUND_HALF_UP))
        if adjusted > 0:
            buckets.append(PacketBucket(color=color, size=size, quantity=adjusted))

    estimated = math.ceil(len(packets) * ratio) if has_returns else len(packets)
    return PacketSummary(
        original_packet_count=len(packets),
        estimated_packet_count=estimated,
        original_total=original_total,
        buckets=buckets,
        adjusted_for_returns=has_returns,
    )


def validate_return_request(order: DispatchOrderData, lines: Sequence[ReturnLine]) -> None:
    """
    Check every requested line before anything is written.

    Lines for the same item are summed. Any violation refuses the whole
    submission; the error lists all offending lines.
    """
    if order.status == "cancelled":
        raise InvariantViolation("Cannot return items from a cancelled dispatch order")
    if not lines:
        raise InvariantViolation("Return request has no lines")

    items_by_id = {item.id: item for item in order.items}
    already_returned = returned_by_item(order.returned_items)
    overrides = confirmed_overrides(order)

    requested: Dict[UUID, int] = {}
    problems: List[str] = []
    for line in lines:
        if line.quantity <= 0:
            problems.append(f"Return quantity must be greater than 0 (item {line.item_id})")
            continue
        if line.item_id not in items_by_id:
            problems.append(f"Item {line.item_id} is not part of dispatch order {order.order_number}")
            continue
        requested[line.item_id] = requested.get(line.item_id, 0) + line.quantity

    for item_id, qty in requested.items():
        item = items_by_id[item_id]
        remaining = confirmed_quantity(item.quantity, already_returned.get(item_id, 0), overrides.get(item_id))
        if qty > remaining:
            problems.append(
                f"Return quantity for {item.product_name} ({qty}) exceeds remaining quantity ({remaining})"
            )

    if problems:
        raise InvariantViolation("Return request refused", problems)


def build_return_records(
    lines: Sequence[ReturnLine],
    notes: Optional[str] = None,
    returned_at: Optional[datetime] = None,
) -> List[ReturnRecord]:
    returned_at = returned_at or datetime.now(timezone.utc)
    return [
        ReturnRecord(
            item_id=line.item_id,
            quantity=line.quantity,
            reason=line.reason or "",
            notes=notes,
            returned_at=returned_at,
        )
        for line in lines
    ]


def lower_overrides(overrides: Mapping[UUID, int], records: Iterable[ReturnRecord]) -> Dict[UUID, int]:
    """Reduce frozen confirmed quantities by newly returned amounts, clamped at 0."""
    lowered = dict(overrides)
    for record in records:
        if record.item_id in lowered:
            lowered[record.item_id] = max(0, lowered[record.item_id] - record.quantity)
    return lowered
