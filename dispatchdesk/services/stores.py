"""
SQLAlchemy-backed order, ledger and master data stores.

Stores own the session: each write commits or rolls back as a unit and
returns an immutable pydantic snapshot, never an ORM row. SQLAlchemy errors
are rolled back and re-raised as ExternalFailure with the cause chained.
"""
import logging
from typing import List, Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from dispatchdesk.exceptions import (
    ExternalFailure, InvalidTransition, InvariantViolation, OrderNotFound, PartyNotFound,
)
from dispatchdesk.models import (
    DispatchOrder, DispatchOrderItem, DispatchOrderReturn, LedgerEntry, LogisticsCompany, Supplier,
)
from dispatchdesk.schemas.dispatch_order import (
    DispatchOrderCreate, DispatchOrderData, FinalLineItem, ReturnRecord,
)
from dispatchdesk.schemas.ledger import LedgerEntryCreate, LedgerEntryData
from dispatchdesk.schemas.party import LogisticsCompanyCreate, SupplierCreate
from dispatchdesk.services import returns as return_service
from dispatchdesk.services.ledger_balance import (
    LOGISTICS, NO_DATA, PARTY_ENTITY_MODELS, SUPPLIER, compute_balance,
)

logger = logging.getLogger(__name__)

# Item columns written from a FinalLineItem
_ITEM_FIELDS = (
    "position", "product_name", "product_code", "quantity", "cost_price",
    "primary_color", "size", "packets", "use_variant_tracking", "boxes",
)

# Order header columns a patch may set
_ORDER_FIELDS = (
    "status", "logistics_company_id", "dispatch_date", "exchange_rate", "percentage",
    "total_discount", "discount_basis", "total_boxes", "is_total_boxes_confirmed", "confirmed_quantities",
    "cash_payment", "bank_payment", "remaining_balance", "outstanding_balance", "notes",
    "submitted_at", "confirmed_at",
)

_PARTY_MODELS = {
    SUPPLIER: Supplier,
    LOGISTICS: LogisticsCompany,
}


def _item_values(item: FinalLineItem) -> dict:
    data = item.model_dump(mode="json", include=set(_ITEM_FIELDS))
    # Keep Decimal precision for money
    data["cost_price"] = item.cost_price
    return data


class SqlOrderStore:
    """Dispatch order persistence"""

    def __init__(self, db: Session):
        self.db = db

    def _get_row(self, order_id: UUID) -> DispatchOrder:
        row = (
            self.db.query(DispatchOrder)
            .options(selectinload(DispatchOrder.items), selectinload(DispatchOrder.returned_items))
            .filter(DispatchOrder.id == order_id)
            .first()
        )
        if not row:
            raise OrderNotFound(f"Dispatch order {order_id} not found")
        return row

    def _snapshot(self, row: DispatchOrder) -> DispatchOrderData:
        return DispatchOrderData.model_validate(row)

    def _commit(self, action: str, order_id) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Integrity error on {action} for dispatch order {order_id}: {e}")
            raise InvariantViolation(f"Dispatch order {action} violates a database constraint") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Store failure on {action} for dispatch order {order_id}")
            raise ExternalFailure(f"Could not {action} dispatch order {order_id}") from e

    def create(self, data: DispatchOrderCreate) -> DispatchOrderData:
        """Batch receipt: a new order in pending with positioned items."""
        if not self.db.query(Supplier.id).filter(Supplier.id == data.supplier_id).first():
            raise PartyNotFound(f"Supplier {data.supplier_id} not found")
        if data.logistics_company_id and not self.db.query(LogisticsCompany.id).filter(
            LogisticsCompany.id == data.logistics_company_id
        ).first():
            raise PartyNotFound(f"Logistics company {data.logistics_company_id} not found")

        row = DispatchOrder(
            order_number=data.order_number,
            status="pending",
            supplier_id=data.supplier_id,
            logistics_company_id=data.logistics_company_id,
            dispatch_date=data.dispatch_date,
            exchange_rate=data.exchange_rate,
            percentage=data.percentage,
            total_discount=data.total_discount,
            total_boxes=data.total_boxes,
            is_total_boxes_confirmed=False,
            confirmed_quantities=[],
            notes=data.notes,
        )
        for position, item in enumerate(data.items):
            row.items.append(DispatchOrderItem(
                position=position,
                product_name=item.product_name,
                product_code=item.product_code,
                quantity=item.quantity,
                cost_price=item.cost_price,
                primary_color=list(item.primary_color),
                size=list(item.size),
                packets=[p.model_dump(mode="json") for p in item.packets],
                use_variant_tracking=item.use_variant_tracking,
                boxes=[],
            ))
        self.db.add(row)
        self._commit("create", data.order_number)
        logger.info(f"Created dispatch order {data.order_number} with {len(data.items)} items")
        return self.load(row.id)

    def load(self, order_id: UUID) -> DispatchOrderData:
        try:
            return self._snapshot(self._get_row(order_id))
        except SQLAlchemyError as e:
            self.db.rollback()
            raise ExternalFailure(f"Could not load dispatch order {order_id}") from e

    def _apply_items(self, row: DispatchOrder, items: Sequence[FinalLineItem]) -> None:
        existing = {item.id: item for item in row.items}
        kept: List[DispatchOrderItem] = []
        for item in items:
            values = _item_values(item)
            db_item = existing.get(item.id)
            if db_item is None:
                db_item = DispatchOrderItem(id=item.id, **values)
            else:
                for key, value in values.items():
                    setattr(db_item, key, value)
            kept.append(db_item)
        # delete-orphan removes items that are no longer listed
        row.items = kept

    def _update(self, order_id: UUID, patch: dict, action: str, allowed: Sequence[str]) -> DispatchOrderData:
        row = self._get_row(order_id)
        # Re-check inside the write; another request may have moved the order
        if row.status not in allowed:
            raise InvalidTransition(row.status, action)
        for key in _ORDER_FIELDS:
            if key in patch:
                setattr(row, key, patch[key])
        if "items" in patch:
            self._apply_items(row, patch["items"])
        self._commit(action, order_id)
        self.db.refresh(row)
        return self._snapshot(row)

    def save(self, order_id: UUID, patch: dict) -> DispatchOrderData:
        return self._update(order_id, patch, "save", ("pending", "pending-approval"))

    def submit_approval(self, order_id: UUID, patch: dict) -> DispatchOrderData:
        return self._update(order_id, patch, "submit_approval", ("pending", "pending-approval"))

    def confirm(self, order_id: UUID, patch: dict) -> DispatchOrderData:
        return self._update(order_id, patch, "confirm", ("pending", "pending-approval"))

    def revert_to_pending(self, order_id: UUID) -> DispatchOrderData:
        return self._update(order_id, {"status": "pending"}, "revert_to_pending", ("pending-approval",))

    def cancel(self, order_id: UUID) -> DispatchOrderData:
        return self._update(order_id, {"status": "cancelled"}, "cancel", ("pending", "pending-approval"))

    def append_returns(
        self, order_id: UUID, records: Sequence[ReturnRecord], discount_basis=None,
    ) -> DispatchOrderData:
        """
        All records in one commit. Frozen confirmed quantities drop by the
        returned amounts; discount_basis is stored only if none is stored yet.
        """
        row = self._get_row(order_id)
        if row.discount_basis is None and discount_basis is not None:
            row.discount_basis = discount_basis
        for record in records:
            row.returned_items.append(DispatchOrderReturn(
                item_id=record.item_id,
                quantity=record.quantity,
                reason=record.reason,
                notes=record.notes,
                returned_at=record.returned_at,
            ))
        if row.confirmed_quantities:
            current = {UUID(str(cq["item_id"])): int(cq["quantity"]) for cq in row.confirmed_quantities}
            lowered = return_service.lower_overrides(current, records)
            # Reassign so the JSON column is flagged dirty
            row.confirmed_quantities = [
                {"item_id": str(item_id), "quantity": qty} for item_id, qty in lowered.items()
            ]
        self._commit("return", order_id)
        self.db.refresh(row)
        return self._snapshot(row)

    def delete(self, order_id: UUID) -> None:
        row = self._get_row(order_id)
        self.db.delete(row)
        self._commit("delete", order_id)


class SqlLedgerStore:
    """Append-only party ledger"""

    def __init__(self, db: Session):
        self.db = db

    def list_entries(self, entity_id: UUID, entity_model: str) -> List[LedgerEntryData]:
        try:
            rows = (
                self.db.query(LedgerEntry)
                .filter(LedgerEntry.entity_id == entity_id, LedgerEntry.entity_model == entity_model)
                .order_by(LedgerEntry.created_at)
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise ExternalFailure(f"Could not load ledger entries for {entity_model} {entity_id}") from e
        return [LedgerEntryData.model_validate(row) for row in rows]

    def payments_for_reference(self, reference_id: UUID) -> List[LedgerEntryData]:
        try:
            rows = (
                self.db.query(LedgerEntry)
                .filter(LedgerEntry.reference_id == reference_id, LedgerEntry.transaction_type == "payment")
                .order_by(LedgerEntry.created_at)
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise ExternalFailure(f"Could not load payments for {reference_id}") from e
        return [LedgerEntryData.model_validate(row) for row in rows]

    def _refresh_stored_balance(self, entity_id: UUID, entity_model: str) -> None:
        """Keep the party's fallback balance column in line with the ledger."""
        for party_class, model_name in PARTY_ENTITY_MODELS.items():
            if model_name != entity_model:
                continue
            party = self.db.query(_PARTY_MODELS[party_class]).filter(
                _PARTY_MODELS[party_class].id == entity_id
            ).first()
            if party is None:
                return
            rows = self.db.query(LedgerEntry).filter(
                LedgerEntry.entity_id == entity_id, LedgerEntry.entity_model == entity_model
            ).all()
            result = compute_balance(rows, party_class)
            if result is not NO_DATA:
                party.balance = result

    def append_entry(self, entry: LedgerEntryCreate) -> LedgerEntryData:
        row = LedgerEntry(**entry.model_dump())
        try:
            self.db.add(row)
            self.db.flush()
            self._refresh_stored_balance(entry.entity_id, entry.entity_model)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Could not append {entry.transaction_type} entry for {entry.entity_model} {entry.entity_id}")
            raise ExternalFailure(f"Could not append ledger entry for {entry.entity_model} {entry.entity_id}") from e
        self.db.refresh(row)
        logger.info(
            f"Ledger {entry.transaction_type} for {entry.entity_model} {entry.entity_id}: "
            f"debit={entry.debit} credit={entry.credit}"
        )
        return LedgerEntryData.model_validate(row)


class MasterDataStore:
    """Supplier / logistics company lookup"""

    def __init__(self, db: Session):
        self.db = db

    def _create(self, model, values: dict):
        row = model(**values)
        self.db.add(row)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise ExternalFailure(f"Could not create {model.__name__}") from e
        self.db.refresh(row)
        return row

    def create_supplier(self, data: SupplierCreate) -> Supplier:
        return self._create(Supplier, data.model_dump())

    def create_logistics_company(self, data: LogisticsCompanyCreate) -> LogisticsCompany:
        return self._create(LogisticsCompany, data.model_dump())

    def get_party(self, party_class: str, entity_id: UUID):
        try:
            model = _PARTY_MODELS[party_class]
        except KeyError:
            raise ValueError(f"Unknown party class: {party_class}")
        party = self.db.query(model).filter(model.id == entity_id).first()
        if not party:
            label = "Supplier" if party_class == SUPPLIER else "Logistics company"
            raise PartyNotFound(f"{label} {entity_id} not found")
        return party

    def get_supplier(self, supplier_id: UUID) -> Supplier:
        return self.get_party(SUPPLIER, supplier_id)

    def get_logistics_company(self, company_id: UUID) -> LogisticsCompany:
        return self.get_party(LOGISTICS, company_id)

    def stored_balance(self, party_class: str, entity_id: UUID):
        """The party's balance column, used only when the ledger has no data."""
        return self.get_party(party_class, entity_id).balance
