"""
Party Ledger API routes (suppliers and logistics companies)

Balances are derived from the ledger on every request; the stored balance
column is only reported when the party has no relevant entries.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, status

from dispatchdesk.api.errors import engine_errors
from dispatchdesk.dependencies import get_ledger_store, get_master_data
from dispatchdesk.exceptions import DispatchValidationError
from dispatchdesk.schemas.ledger import (
    BalanceResponse, LedgerEntryCreate, LedgerEntryResponse, LedgerResponse, LedgerRow, PartyClass,
    PaymentDistributionResult, PaymentInstruction,
)
from dispatchdesk.services.ledger_balance import (
    NO_DATA, PARTY_ENTITY_MODELS, PARTY_TRANSACTION_TYPES, balance_or_fallback, compute_balance, entity_model_for,
    running_ledger,
)
from dispatchdesk.services.payment_distribution import distribute_payment
from dispatchdesk.services.stores import MasterDataStore, SqlLedgerStore

router = APIRouter()


@router.get("/{party_class}/{entity_id}", response_model=LedgerResponse)
def get_party_ledger(
    party_class: PartyClass,
    entity_id: UUID,
    ledger: SqlLedgerStore = Depends(get_ledger_store),
    master_data: MasterDataStore = Depends(get_master_data),
):
    """Ledger entries with running balance, newest first"""
    with engine_errors():
        party = master_data.get_party(party_class, entity_id)
        rows = running_ledger(ledger.list_entries(entity_id, entity_model_for(party_class)), party_class)
        current = rows[-1].balance if rows else balance_or_fallback(NO_DATA, party.balance)
        return LedgerResponse(
            entity_id=entity_id,
            party_class=party_class,
            entries=[
                LedgerRow(entry=LedgerEntryResponse.model_validate(row.entry.model_dump()), balance=row.balance)
                for row in reversed(rows)
            ],
            current_balance=current,
            has_data=bool(rows),
        )


@router.get("/{party_class}/{entity_id}/balance", response_model=BalanceResponse)
def get_party_balance(
    party_class: PartyClass,
    entity_id: UUID,
    ledger: SqlLedgerStore = Depends(get_ledger_store),
    master_data: MasterDataStore = Depends(get_master_data),
):
    """Positive: we owe the party. Negative: the party owes us."""
    with engine_errors():
        stored = master_data.stored_balance(party_class, entity_id)
        result = compute_balance(ledger.list_entries(entity_id, entity_model_for(party_class)), party_class)
        return BalanceResponse(
            entity_id=entity_id,
            party_class=party_class,
            balance=balance_or_fallback(result, stored),
            source="stored" if result is NO_DATA else "ledger",
        )


@router.post("/entries", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
def create_ledger_entry(
    entry: LedgerEntryCreate,
    ledger: SqlLedgerStore = Depends(get_ledger_store),
    master_data: MasterDataStore = Depends(get_master_data),
):
    """Append one entry (charges, adjustments, manual corrections)"""
    with engine_errors():
        errors = []
        party_class = next((pc for pc, model in PARTY_ENTITY_MODELS.items() if model == entry.entity_model), None)
        if party_class is None:
            errors.append(f"Unknown entity model: {entry.entity_model}")
        elif entry.transaction_type not in PARTY_TRANSACTION_TYPES[party_class]:
            # the balance fold would skip it
            errors.append(
                f"Transaction type '{entry.transaction_type}' does not apply to {entry.entity_model} ledgers"
            )
        if (entry.debit > 0) == (entry.credit > 0):
            errors.append("Exactly one of debit or credit must be greater than 0")
        if errors:
            raise DispatchValidationError(errors)
        master_data.get_party(party_class, entry.entity_id)
        return ledger.append_entry(entry)


@router.post(
    "/{party_class}/{entity_id}/payments",
    response_model=PaymentDistributionResult,
    status_code=status.HTTP_201_CREATED,
)
def pay_party(
    party_class: PartyClass,
    entity_id: UUID,
    instruction: PaymentInstruction,
    ledger: SqlLedgerStore = Depends(get_ledger_store),
    master_data: MasterDataStore = Depends(get_master_data),
):
    """Record a payment: cash first, then bank, each as its own entry"""
    with engine_errors():
        master_data.get_party(party_class, entity_id)
        return distribute_payment(ledger, entity_id, instruction, party_class=party_class)
