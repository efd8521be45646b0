from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from textile_ledger.common.response import documents, send
from textile_ledger.core.dependencies import get_store, require_permission
from textile_ledger.core.store import DataStore
from textile_ledger.schemas.common import SuccessResponse
from textile_ledger.schemas.user import UserProfile
from textile_ledger.services.report_service import (
    entity_balance,
    list_entries,
    trial_balance,
    unbalanced_voucher_report,
)

router = APIRouter()


@router.get("/entries", response_model=SuccessResponse)
def get_journal_entries(
    voucher_id: Optional[str] = Query(None),
    account_id: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("reports")),
):
    rows = list_entries(store.state, voucher_id, account_id, entity_id, start_date, end_date)
    return send(documents(rows))


@router.get("/trial-balance", response_model=SuccessResponse)
def get_trial_balance(
    end_date: Optional[date] = Query(None),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("reports")),
):
    return send(trial_balance(store.state, end_date))


@router.get("/entities/{entity_id}/balance", response_model=SuccessResponse)
def get_entity_balance(
    entity_id: str,
    end_date: Optional[date] = Query(None),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("reports")),
):
    """Running balance of a supplier, customer or agent across all vouchers."""
    return send(entity_balance(store.state, entity_id, end_date))


@router.get("/unbalanced-vouchers", response_model=SuccessResponse)
def get_unbalanced_vouchers(
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("reports")),
):
    rows = unbalanced_voucher_report(store.state)
    warnings = [f"{len(rows)} voucher(s) do not balance"] if rows else []
    return send(rows, warnings=warnings)
