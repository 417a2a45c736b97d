"""
Payment Distribution Service

One instruction with cash and bank amounts becomes up to two ledger
payments, submitted one after the other (cash first, then bank). Each
sub-payment reads the party's entries fresh before it is written, so the
bank payment sees the balance after the cash payment.

Failure handling:
- first sub-payment fails -> ExternalFailure, nothing committed, bank never tried
- a later one fails       -> PartialPaymentFailure carrying what was committed
"""
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from dispatchdesk.exceptions import DispatchValidationError, ExternalFailure, PartialPaymentFailure
from dispatchdesk.schemas.ledger import (
    LedgerEntryCreate, PaymentDistributionResult, PaymentInstruction, SubPaymentResult,
)
from dispatchdesk.services.ledger_balance import NO_DATA, SUPPLIER, compute_balance, entity_model_for
from dispatchdesk.utils.money import to_decimal

logger = logging.getLogger(__name__)

PAYMENT_ORDER = ("cash", "bank")


def _current_balance(ledger_store, entity_id: UUID, entity_model: str, party_class: str) -> Optional[Decimal]:
    result = compute_balance(ledger_store.list_entries(entity_id, entity_model), party_class)
    return None if result is NO_DATA else result


def distribute_payment(
    ledger_store,
    entity_id: UUID,
    instruction: PaymentInstruction,
    party_class: str = SUPPLIER,
) -> PaymentDistributionResult:
    """
    Record `instruction` against one party as sequential payment entries.

    ledger_store needs list_entries(entity_id, entity_model) and
    append_entry(LedgerEntryCreate) -> stored entry with an `id`.
    """
    amounts = {
        "cash": to_decimal(instruction.cash_amount),
        "bank": to_decimal(instruction.bank_amount),
    }
    total = amounts["cash"] + amounts["bank"]
    if total <= 0:
        raise DispatchValidationError(["Payment amount must be greater than 0"])

    entity_model = entity_model_for(party_class)
    payment_date = instruction.date or date.today()
    committed: List[SubPaymentResult] = []

    for method in PAYMENT_ORDER:
        amount = amounts[method]
        if amount <= 0:
            continue

        try:
            balance_before = _current_balance(ledger_store, entity_id, entity_model, party_class)
            entry = ledger_store.append_entry(LedgerEntryCreate(
                entity_id=entity_id,
                entity_model=entity_model,
                transaction_type="payment",
                credit=amount,
                date=payment_date,
                payment_method=method,
                description=instruction.notes or f"{method.capitalize()} payment",
                reference_id=instruction.reference_id,
                reference_model=instruction.reference_model,
            ))
        except Exception as e:
            if not committed:
                logger.warning(f"{method} payment of {amount} for {entity_model} {entity_id} failed: {e}")
                raise ExternalFailure(f"{method.capitalize()} payment failed: {e}") from e
            logger.warning(
                f"{method} payment for {entity_model} {entity_id} failed after "
                f"{len(committed)} committed sub-payment(s): {e}"
            )
            raise PartialPaymentFailure(
                f"{method.capitalize()} payment failed after earlier payments were recorded: {e}",
                committed=committed,
                failed_method=method,
            ) from e

        balance_after = (balance_before or Decimal("0")) - amount
        logger.info(
            f"Recorded {method} payment of {amount} for {entity_model} {entity_id} "
            f"(balance {balance_before} -> {balance_after})"
        )
        committed.append(SubPaymentResult(
            payment_method=method,
            amount=amount,
            entry_id=entry.id,
            balance_before=balance_before,
            balance_after=balance_after,
        ))

    return PaymentDistributionResult(
        entity_id=entity_id,
        party_class=party_class,
        total_amount=total,
        submissions=committed,
    )
