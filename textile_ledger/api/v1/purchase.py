from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from textile_ledger.common.response import documents, from_result, send
from textile_ledger.core.dependencies import get_store, require_permission
from textile_ledger.core.exceptions import NotFoundError, PersistenceError
from textile_ledger.core.store import DataStore
from textile_ledger.logger_config import logger
from textile_ledger.schemas.common import SuccessResponse
from textile_ledger.schemas.purchase import BundlePurchaseCreate, OriginalPurchaseCreate
from textile_ledger.schemas.user import UserProfile
from textile_ledger.services.purchase_service import (
    create_bundle_purchase,
    create_original_purchase,
    get_original_purchase,
    list_original_purchases,
    preview_landed_cost,
    update_original_purchase,
)

router = APIRouter()


# ==================== ORIGINAL PURCHASES ====================

@router.get("", response_model=SuccessResponse)
def get_purchases(
    supplier_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("purchases")),
):
    rows = list_original_purchases(store.state, supplier_id, start_date, end_date)
    return send(documents(rows))


@router.post("/preview", response_model=SuccessResponse)
def preview_purchase(
    purchase_data: OriginalPurchaseCreate,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("purchases")),
):
    """Landed cost of a purchase before it is saved. Nothing is stored."""
    try:
        return send(preview_landed_cost(store.state, purchase_data), "Landed cost calculated")
    except NotFoundError:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/bundles", response_model=SuccessResponse)
def get_bundle_purchases(
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("purchases")),
):
    rows = sorted(store.state.finished_goods_purchases, key=lambda p: (p.date, p.id), reverse=True)
    return send(documents(rows))


@router.post("/bundles", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def create_bundle_purchase_route(
    purchase_data: BundlePurchaseCreate,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("purchases")),
):
    """Finished goods bought ready-made: journal voucher plus one production per line."""
    logger.info(f"API: Create finished goods purchase by {current_user.uid}")
    try:
        result = create_bundle_purchase(store, purchase_data)
        return from_result(result, "Finished goods purchase saved")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error creating finished goods purchase")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save finished goods purchase",
        )


@router.get("/{purchase_id}", response_model=SuccessResponse)
def get_purchase(
    purchase_id: str,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("purchases")),
):
    return send(get_original_purchase(store.state, purchase_id).to_document())


@router.post("", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def create_purchase_route(
    purchase_data: OriginalPurchaseCreate,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("purchases")),
):
    """
    Save a raw-material purchase. The purchase and its journal voucher are
    written together; the response carries the landed cost per kg.
    """
    logger.info(f"API: Create purchase from {purchase_data.supplier_id} by {current_user.uid}")
    try:
        result = create_original_purchase(store, purchase_data)
        return from_result(result, "Purchase saved")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error creating purchase")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save purchase",
        )


@router.put("/{purchase_id}", response_model=SuccessResponse)
def update_purchase_route(
    purchase_id: str,
    purchase_data: OriginalPurchaseCreate,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("purchases")),
):
    logger.info(f"API: Update purchase {purchase_id} by {current_user.uid}")
    try:
        result = update_original_purchase(store, purchase_id, purchase_data)
        return from_result(result, "Purchase updated")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception(f"Error updating purchase {purchase_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update purchase",
        )
