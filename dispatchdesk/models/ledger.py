"""
Party ledger model - append-only money movements for suppliers and logistics companies
"""
from datetime import datetime, timezone
from sqlalchemy import Column, String, Numeric, Date, Text, Uuid, CheckConstraint
from sqlalchemy.types import TIMESTAMP
import uuid
from dispatchdesk.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class LedgerEntry(Base):
    """
    Ledger entry for one external party.

    Never update or delete. Always append.
    Balance = SUM(debit - credit) in createdAt order; positive means we owe the party.
    """
    __tablename__ = "ledger_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    entity_id = Column(Uuid, nullable=False, index=True)
    entity_model = Column(String(50), nullable=False)  # Supplier, LogisticsCompany
    transaction_type = Column(String(50), nullable=False)  # purchase, charge, payment, return, adjustment
    debit = Column(Numeric(20, 4), nullable=False, default=0)
    credit = Column(Numeric(20, 4), nullable=False, default=0)
    date = Column(Date)
    payment_method = Column(String(20))  # cash, bank
    description = Column(Text)
    reference_id = Column(Uuid, nullable=True, index=True)
    reference_model = Column(String(50))  # DispatchOrder
    # Python-side default keeps sub-second ordering on every backend
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        CheckConstraint("debit >= 0 AND credit >= 0", name="ledger_amounts_non_negative"),
        {"comment": "Append-only party ledger. Balances are always derived, never stored authoritatively."},
    )
