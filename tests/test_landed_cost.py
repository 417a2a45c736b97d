from decimal import Decimal

import pytest

from dispatchdesk.exceptions import DispatchValidationError
from dispatchdesk.schemas.dispatch_order import OrderDraft
from dispatchdesk.services.landed_cost import landed_price, price_line, sum_lines
from dispatchdesk.services.order_view import compute_order_view
from tests.factories import line_item, make_order


def test_price_line():
    pricing = price_line(cost_price=10, quantity=100, exchange_rate=2, percentage=10)
    assert pricing.supplier_payment_amount == Decimal("5")
    assert pricing.landed_price == Decimal("5.5")
    assert pricing.item_total == Decimal("550")
    assert pricing.supplier_payment_item_total == Decimal("1000")


def test_zero_quantity_prices_to_zero():
    pricing = price_line(cost_price=10, quantity=0, exchange_rate=2, percentage=10)
    assert pricing.item_total == 0
    assert pricing.landed_price == Decimal("5.5")


def test_rate_must_be_positive():
    with pytest.raises(DispatchValidationError):
        landed_price(10, 0, 10)


def test_sum_lines():
    totals = sum_lines([price_line(10, 2, 2, 0), price_line(4, 5, 2, 0)])
    assert totals.supplier_payment_total == Decimal("40")
    assert totals.landed_price_total == Decimal("20")


def test_end_to_end_order_totals():
    order = make_order(
        items=[line_item(quantity=100, cost_price=10)],
        exchange_rate=Decimal("2"),
        percentage=Decimal("10"),
        total_discount=Decimal("50"),
    )
    view = compute_order_view(order)
    line = view.items[0]
    assert line.landed_price == Decimal("5.5")
    assert line.item_total == Decimal("550")
    assert view.totals.supplier_payment_before_discount == Decimal("500")
    assert view.totals.discount_in_base == Decimal("25")
    assert view.totals.total_amount == Decimal("475")
    assert view.totals.final_amount == Decimal("950")


def test_view_is_idempotent():
    order = make_order(items=[line_item(quantity=7, cost_price="3.3")], exchange_rate=Decimal("3"))
    assert compute_order_view(order) == compute_order_view(order)


def test_money_rounded_only_in_json():
    order = make_order(items=[line_item(quantity=1, cost_price=10)], exchange_rate=Decimal("3"), percentage=0)
    view = compute_order_view(order)
    assert view.items[0].landed_price != Decimal("3.33")
    assert view.model_dump(mode="json")["items"][0]["landed_price"] == "3.33"


def test_invalid_rate_refuses_view():
    order = make_order(exchange_rate=Decimal("0"))
    with pytest.raises(DispatchValidationError):
        compute_order_view(order)


def test_pending_summary_does_not_depend_on_a_draft():
    order = make_order(
        items=[line_item(quantity=100, cost_price=10)],
        exchange_rate=Decimal("2"),
        percentage=Decimal("10"),
        total_discount=Decimal("50"),
    )
    stored = compute_order_view(order).remaining_summary
    assert stored == compute_order_view(order, draft=OrderDraft()).remaining_summary
    assert (stored.rows, stored.quantity, stored.value) == (1, 100, Decimal("475"))

    confirmed = compute_order_view(order.model_copy(update={"status": "confirmed"})).remaining_summary
    assert confirmed.value == Decimal("550")
