from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from textile_ledger.common.response import send
from textile_ledger.core.dependencies import get_store, require_permission
from textile_ledger.core.store import BALE_COUNTER_PREFIX, DataStore
from textile_ledger.schemas.common import SuccessResponse
from textile_ledger.schemas.user import UserProfile
from textile_ledger.services.cost_tracker import combination_cost_per_kg
from textile_ledger.services.stock_ledger import RawCombination, StockLedgerService

router = APIRouter()


@router.get("/raw", response_model=SuccessResponse)
def get_raw_stock(
    include_internal: bool = Query(False, description="Include stock returned from finished goods"),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("reports")),
):
    """Raw material on hand per (supplier, sub-supplier, type, product) combination."""
    service = StockLedgerService(store.state)
    return send(service.raw_stock_by_combination(include_internal=include_internal))


@router.get("/raw/combination", response_model=SuccessResponse)
def get_combination_stock(
    supplier_id: str = Query(...),
    original_type_id: str = Query(...),
    sub_supplier_id: Optional[str] = Query(None),
    original_product_id: Optional[str] = Query(None),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("reports")),
):
    combination = RawCombination.of(supplier_id, sub_supplier_id, original_type_id, original_product_id)
    service = StockLedgerService(store.state)
    return send({
        **combination._asdict(),
        "available_kg": service.available_raw_stock(combination),
        "cost_per_kg": combination_cost_per_kg(store.state, combination),
    })


@router.get("/items", response_model=SuccessResponse)
def get_item_stock(
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("reports")),
):
    return send(StockLedgerService(store.state).item_stock_summary())


@router.get("/items/{item_id}/next-bale", response_model=SuccessResponse)
def get_next_bale_number(
    item_id: str,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("production")),
):
    item = store.state.get("items", item_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Item {item_id} not found")
    seed = StockLedgerService(store.state).next_bale_number(item_id)
    counter = store.state.counters.get(f"{BALE_COUNTER_PREFIX}{item_id}", item.next_bale_number or seed)
    return send({"item_id": item_id, "next_bale_number": counter})


@router.get("/batches/{purchase_id}", response_model=SuccessResponse)
def get_batch_availability(
    purchase_id: str,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("sales")),
):
    """Kg of a purchase batch still available for direct sale."""
    if store.state.get("originalPurchases", purchase_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Purchase {purchase_id} not found")
    available = StockLedgerService(store.state).available_batch_kg(purchase_id)
    return send({"purchase_id": purchase_id, "available_kg": available})
