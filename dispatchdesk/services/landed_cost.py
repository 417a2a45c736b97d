"""
Landed Cost Service - supplier-currency cost -> base-currency landed price

    supplier_payment_amount = cost_price / exchange_rate
    landed_price            = supplier_payment_amount x (1 + percentage/100)
    item_total              = landed_price x quantity

Quantities passed in are always the current confirmed quantity. A zero
quantity yields a zero total; the line is kept.
"""
from decimal import Decimal
from typing import Iterable, NamedTuple

from dispatchdesk.utils.money import convert, markup, to_decimal


class LinePricing(NamedTuple):
    supplier_payment_amount: Decimal  # base currency, per unit
    landed_price: Decimal  # base currency, per unit
    item_total: Decimal  # base currency, landed_price x quantity
    supplier_payment_item_total: Decimal  # supplier currency, cost_price x quantity


class PricingTotals(NamedTuple):
    supplier_payment_total: Decimal  # supplier currency
    landed_price_total: Decimal  # base currency


def supplier_payment_amount(cost_price, exchange_rate) -> Decimal:
    return convert(cost_price, exchange_rate)


def landed_price(cost_price, exchange_rate, percentage) -> Decimal:
    return markup(convert(cost_price, exchange_rate), percentage)


def price_line(cost_price, quantity, exchange_rate, percentage) -> LinePricing:
    """Price one line at the given (confirmed) quantity."""
    cost = to_decimal(cost_price)
    qty = to_decimal(quantity)
    per_unit = supplier_payment_amount(cost, exchange_rate)
    landed = markup(per_unit, percentage)
    return LinePricing(
        supplier_payment_amount=per_unit,
        landed_price=landed,
        item_total=landed * qty,
        supplier_payment_item_total=cost * qty,
    )


def sum_lines(lines: Iterable[LinePricing]) -> PricingTotals:
    supplier_total = Decimal("0")
    landed_total = Decimal("0")
    for line in lines:
        supplier_total += line.supplier_payment_item_total
        landed_total += line.item_total
    return PricingTotals(supplier_payment_total=supplier_total, landed_price_total=landed_total)
