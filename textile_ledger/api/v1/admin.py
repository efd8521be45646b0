"""
Administrator tools: corrections with cascade, weighted-average price tools,
backup and restore. Every route requires an admin profile.
"""

from datetime import date
from typing import Annotated, Union

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from textile_ledger.common.response import documents, from_result, send
from textile_ledger.core.dependencies import get_store, require_admin
from textile_ledger.core.exceptions import NotFoundError, PersistenceError
from textile_ledger.core.store import DataStore
from textile_ledger.logger_config import logger
from textile_ledger.schemas.common import SuccessResponse
from textile_ledger.schemas.correction import (
    ConfirmRequest,
    InvoiceDocument,
    PriceConversionRequest,
    PriceImportRequest,
    RestoreRequest,
    VoucherDocument,
)
from textile_ledger.schemas.purchase import DateRange, RateCorrection
from textile_ledger.schemas.user import UserProfile
from textile_ledger.services import backup_service, correction_service, cost_tracker
from textile_ledger.services.setup_service import clear_opening_stock

router = APIRouter()

DELETERS = {
    "purchases": correction_service.delete_original_purchase,
    "bundles": correction_service.delete_bundle_purchase,
    "openings": correction_service.delete_opening,
    "invoices": correction_service.delete_invoice,
    "productions": correction_service.delete_production,
    "rebaling": correction_service.delete_rebaling,
}


# ==================== CORRECTIONS ====================

@router.delete("/corrections/{kind}/{doc_id}", response_model=SuccessResponse)
def delete_with_cascade(
    kind: str,
    doc_id: str,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_admin),
):
    """
    Delete a source document and everything derived from it (journal entries,
    productions, dummy types, shipped order quantities) in one batch.
    """
    deleter = DELETERS.get(kind)
    if deleter is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown document kind: {kind}")
    logger.info(f"API: Delete {kind} {doc_id} with cascade by {current_user.uid}")
    try:
        result = deleter(store, doc_id)
        return from_result(result, f"{doc_id} deleted")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception(f"Error deleting {kind} {doc_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete {doc_id}",
        )


@router.post("/corrections/purchases/delete-range", response_model=SuccessResponse)
def delete_purchases_in_range_route(
    date_range: DateRange,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_admin),
):
    logger.info(f"API: Delete purchases {date_range.start_date}..{date_range.end_date} by {current_user.uid}")
    try:
        result = correction_service.delete_purchases_in_range(store, date_range.start_date, date_range.end_date)
        return from_result(result, "Purchases deleted")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error deleting purchases in range")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete purchases",
        )


@router.post("/corrections/purchases/{purchase_id}/rate", response_model=SuccessResponse)
def correct_purchase_rate_route(
    purchase_id: str,
    correction: RateCorrection,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_admin),
):
    """Set line rates so the purchase totals ``correctedTotal`` and rewrite its voucher."""
    logger.info(f"API: Correct rate of {purchase_id} to total {correction.corrected_total} by {current_user.uid}")
    try:
        result = correction_service.correct_purchase_rate(store, purchase_id, correction.corrected_total)
        return from_result(result, "Purchase rate corrected")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception(f"Error correcting rate of {purchase_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to correct purchase rate",
        )


@router.get("/documents", response_model=SuccessResponse)
def get_editable_documents(
    on: date = Query(..., alias="date"),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_admin),
):
    return send(documents(correction_service.editable_documents(store.state, on)))


@router.put("/documents", response_model=SuccessResponse)
def save_document_route(
    document: Annotated[Union[InvoiceDocument, VoucherDocument], Body(discriminator="kind")],
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_admin),
):
    """Save an edited invoice or voucher. Vouchers must still balance."""
    logger.info(f"API: Save edited {document.kind} by {current_user.uid}")
    try:
        result = correction_service.save_document(store, document)
        return from_result(result, "Document saved")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error saving edited document")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save document",
        )


@router.post("/items/{item_id}/clear-opening-stock", response_model=SuccessResponse)
def clear_opening_stock_route(
    item_id: str,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_admin),
):
    logger.info(f"API: Clear opening stock of {item_id} by {current_user.uid}")
    try:
        result = clear_opening_stock(store, item_id)
        return from_result(result, "Opening stock cleared")
    except (NotFoundError, PersistenceError):
        raise
    except Exception:
        logger.exception(f"Error clearing opening stock of {item_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to clear opening stock",
        )


# ==================== PRICE TOOLS ====================

@router.post("/prices/convert", response_model=SuccessResponse)
def convert_prices_route(
    request: PriceConversionRequest,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_admin),
):
    logger.info(f"API: Convert item prices {request.direction} by {current_user.uid}")
    try:
        result = cost_tracker.convert_item_prices(store, request.direction, confirm=request.confirm)
        return from_result(result, "Item prices converted")
    except PersistenceError:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error converting item prices")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to convert item prices",
        )


@router.post("/prices/import", response_model=SuccessResponse)
def import_prices_route(
    request: PriceImportRequest,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_admin),
):
    logger.info(f"API: Import item prices from CSV by {current_user.uid}")
    try:
        result = cost_tracker.apply_price_csv(store, request.csv)
        return from_result(result, "Item prices updated")
    except PersistenceError:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error importing item prices")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to import item prices",
        )


# ==================== BACKUP ====================

@router.get("/backup")
def export_backup(
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_admin),
):
    """The complete state as camelCase JSON, suitable for restore."""
    logger.info(f"API: Backup exported by {current_user.uid}")
    return backup_service.export_snapshot(store)


@router.post("/restore", response_model=SuccessResponse)
def restore_backup(
    request: RestoreRequest,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_admin),
):
    logger.info(f"API: Restore requested by {current_user.uid}")
    try:
        result = backup_service.restore_snapshot(store, request.snapshot, confirm=request.confirm)
        return from_result(result, "Backup restored")
    except PersistenceError:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error restoring backup")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to restore backup",
        )


@router.post("/hard-reset", response_model=SuccessResponse)
def hard_reset_route(
    request: ConfirmRequest,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_admin),
):
    logger.info(f"API: Hard reset requested by {current_user.uid}")
    try:
        result = backup_service.hard_reset(store, confirm=request.confirm)
        return from_result(result, "Transactions cleared")
    except PersistenceError:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error during hard reset")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to clear transactions",
        )
