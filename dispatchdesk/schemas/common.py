"""
Shared schema types
"""
from decimal import Decimal
from typing import Annotated
from pydantic import PlainSerializer

from dispatchdesk.config import settings
from dispatchdesk.utils.money import round_money


def _present_money(value: Decimal) -> Decimal:
    return round_money(value, settings.MONEY_DECIMAL_PLACES)


# Full precision in Python, rounded only when rendered to JSON
Money = Annotated[Decimal, PlainSerializer(_present_money, return_type=Decimal, when_used="json")]
