from decimal import Decimal
from uuid import uuid4

import pytest

from dispatchdesk.exceptions import InvariantViolation
from dispatchdesk.schemas.dispatch_order import ConfirmedQuantity, Packet, PacketComposition, ReturnLine
from dispatchdesk.services import returns as return_service
from dispatchdesk.services.order_view import compute_order_view
from tests.factories import line_item, make_order, return_record


def _packet(*parts, is_loose=False):
    return Packet(
        is_loose=is_loose,
        composition=[PacketComposition(color=c, size=s, quantity=q) for c, s, q in parts],
    )


def test_confirmed_plus_returned_equals_ordered():
    item = line_item(quantity=10)
    order = make_order(items=[item], returned_items=[return_record(item, 3), return_record(item, 2, minutes=5)])
    view = compute_order_view(order)
    line = view.items[0]
    assert line.total_returned == 5
    assert line.confirmed_qty == 5
    assert line.confirmed_qty + line.total_returned == item.quantity


def test_confirmed_quantity_clamps_and_override_wins():
    assert return_service.confirmed_quantity(10, 12) == 0
    assert return_service.confirmed_quantity(10, 2, override=4) == 4


def test_override_from_order_is_used_in_view():
    item = line_item(quantity=10)
    order = make_order(
        items=[item],
        status="confirmed",
        confirmed_quantities=[ConfirmedQuantity(item_id=item.id, quantity=6)],
    )
    assert compute_order_view(order).items[0].confirmed_qty == 6


def test_discount_keeps_its_rate_after_returns():
    assert return_service.proportional_discount(50, 500, 300) == Decimal("30")

    item = line_item(quantity=50, cost_price=10)
    order = make_order(items=[item], total_discount=Decimal("50"), returned_items=[return_record(item, 20)])
    totals = compute_order_view(order).totals
    assert totals.supplier_payment_total == Decimal("300")
    assert totals.discount == Decimal("30")


def test_discount_rate_is_zero_for_zero_total():
    assert return_service.discount_rate(50, 0) == Decimal("0")
    assert return_service.proportional_discount(50, 0, 100) == Decimal("0")


def test_fully_returned_item_stays_with_zero_total():
    item = line_item(quantity=4, cost_price=10)
    other = line_item(quantity=1, cost_price=10, position=1)
    order = make_order(items=[item, other], returned_items=[return_record(item, 4)])
    view = compute_order_view(order)
    assert len(view.items) == 2
    assert view.items[0].confirmed_qty == 0
    assert view.items[0].item_total == 0
    assert view.remaining_summary.rows == 1
    assert view.remaining_summary.quantity == 1


def test_return_over_remaining_is_rejected_without_mutation():
    item = line_item(quantity=10)
    order = make_order(items=[item])
    with pytest.raises(InvariantViolation) as exc_info:
        return_service.validate_return_request(order, [ReturnLine(item_id=item.id, quantity=15)])
    assert "exceeds remaining quantity (10)" in exc_info.value.details[0]
    assert order.returned_items == []


def test_lines_for_the_same_item_are_summed():
    item = line_item(quantity=10)
    order = make_order(items=[item])
    lines = [ReturnLine(item_id=item.id, quantity=6), ReturnLine(item_id=item.id, quantity=5)]
    with pytest.raises(InvariantViolation):
        return_service.validate_return_request(order, lines)


def test_previous_returns_count_against_remaining():
    item = line_item(quantity=10)
    order = make_order(items=[item], returned_items=[return_record(item, 4)])
    return_service.validate_return_request(order, [ReturnLine(item_id=item.id, quantity=6)])
    with pytest.raises(InvariantViolation):
        return_service.validate_return_request(order, [ReturnLine(item_id=item.id, quantity=7)])


def test_all_problems_are_reported_together():
    first = line_item(quantity=2)
    second = line_item(quantity=3, position=1)
    order = make_order(items=[first, second])
    lines = [
        ReturnLine(item_id=first.id, quantity=5),
        ReturnLine(item_id=second.id, quantity=9),
        ReturnLine(item_id=uuid4(), quantity=1),
    ]
    with pytest.raises(InvariantViolation) as exc_info:
        return_service.validate_return_request(order, lines)
    assert len(exc_info.value.details) == 3


def test_cancelled_order_refuses_returns():
    item = line_item(quantity=10)
    order = make_order(items=[item], status="cancelled")
    with pytest.raises(InvariantViolation):
        return_service.validate_return_request(order, [ReturnLine(item_id=item.id, quantity=1)])


def test_packets_scale_to_remaining_quantity():
    packets = [_packet(("red", "S", 2), ("red", "M", 3)), _packet(("red", "S", 2), ("red", "M", 3))]
    summary = return_service.reallocate_packets(packets, remaining_qty=5, has_returns=True)
    assert summary.original_total == 10
    assert {(b.color, b.size): b.quantity for b in summary.buckets} == {("red", "S"): 2, ("red", "M"): 3}
    assert summary.estimated_packet_count == 1
    assert summary.adjusted_for_returns


def test_packet_buckets_rounding_to_zero_are_dropped():
    packets = [_packet(("red", "S", 4), ("blue", "M", 6))]
    summary = return_service.reallocate_packets(packets, remaining_qty=1, has_returns=True)
    assert [(b.color, b.size, b.quantity) for b in summary.buckets] == [("blue", "M", 1)]


def test_packets_without_returns_are_unscaled():
    packets = [_packet(("red", "S", 4))]
    summary = return_service.reallocate_packets(packets, remaining_qty=1, has_returns=False)
    assert summary.buckets[0].quantity == 4
    assert summary.estimated_packet_count == 1
    assert not summary.adjusted_for_returns


def test_loose_packets_and_no_packets():
    assert return_service.reallocate_packets([], 5, True) is None
    summary = return_service.reallocate_packets([_packet(is_loose=True)], 5, True)
    assert summary.is_loose
    assert summary.buckets == []


def test_lower_overrides():
    item = line_item(quantity=10)
    lowered = return_service.lower_overrides({item.id: 8}, [return_record(item, 3), return_record(item, 9)])
    assert lowered == {item.id: 0}
