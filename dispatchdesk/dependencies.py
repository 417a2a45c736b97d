"""
Request dependencies: database session, stores and caller role.

Authentication is handled upstream; the caller's role arrives in the
X-User-Role header ("admin" or "super-admin").
"""
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from dispatchdesk.database import get_db
from dispatchdesk.services.dispatch_order_service import DispatchOrderService
from dispatchdesk.services.stores import MasterDataStore, SqlLedgerStore, SqlOrderStore


def get_current_role(x_user_role: Optional[str] = Header(None)) -> Optional[str]:
    """Role of the caller, normalised to lower case. None when the header is missing."""
    if not x_user_role:
        return None
    return x_user_role.strip().lower()


def get_ledger_store(db: Session = Depends(get_db)) -> SqlLedgerStore:
    return SqlLedgerStore(db)


def get_master_data(db: Session = Depends(get_db)) -> MasterDataStore:
    return MasterDataStore(db)


def get_dispatch_service(db: Session = Depends(get_db)) -> DispatchOrderService:
    return DispatchOrderService(SqlOrderStore(db), SqlLedgerStore(db))
