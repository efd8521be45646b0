from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from textile_ledger.common.response import documents, from_result, send
from textile_ledger.core.dependencies import get_store, require_permission
from textile_ledger.core.exceptions import LedgerValidationError, NotFoundError, PersistenceError
from textile_ledger.core.store import DataStore
from textile_ledger.logger_config import logger
from textile_ledger.schemas.common import SuccessResponse
from textile_ledger.schemas.sales import DirectSaleCreate, InvoiceCreate, InvoiceStatus, SalesInvoice
from textile_ledger.schemas.user import UserProfile
from textile_ledger.services.sales_service import (
    create_direct_sale,
    create_invoice,
    get_invoice,
    list_invoices,
    post_invoice,
    save_invoice,
)

router = APIRouter()


@router.get("", response_model=SuccessResponse)
def get_invoices(
    invoice_status: Optional[InvoiceStatus] = Query(None, alias="status"),
    customer_id: Optional[str] = Query(None),
    on: Optional[date] = Query(None, alias="date"),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("sales")),
):
    return send(documents(list_invoices(store.state, invoice_status, customer_id, on)))


@router.post("/direct", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def create_direct_sale_route(
    sale_data: DirectSaleCreate,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("sales")),
):
    """Sell raw material from a purchase batch as-is. The invoice is posted immediately."""
    logger.info(f"API: Direct sale of {sale_data.quantity_kg} kg from {sale_data.original_purchase_id} by {current_user.uid}")
    try:
        result = create_direct_sale(store, sale_data)
        return from_result(result, "Direct sale posted")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error creating direct sale")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create direct sale",
        )


@router.get("/{invoice_id}", response_model=SuccessResponse)
def get_invoice_route(
    invoice_id: str,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("sales")),
):
    return send(get_invoice(store.state, invoice_id).to_document())


@router.post("", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def create_invoice_route(
    invoice_data: InvoiceCreate,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("sales")),
):
    logger.info(f"API: Create invoice for {invoice_data.customer_id} by {current_user.uid}")
    try:
        result = create_invoice(store, invoice_data)
        return from_result(result, "Invoice created")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error creating invoice")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create invoice",
        )


@router.put("/{invoice_id}", response_model=SuccessResponse)
def update_invoice_route(
    invoice_id: str,
    invoice: SalesInvoice,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("sales")),
):
    """Overwrite an invoice. Posted invoices have their vouchers re-derived."""
    logger.info(f"API: Update invoice {invoice_id} by {current_user.uid}")
    try:
        if invoice.id != invoice_id:
            raise LedgerValidationError(f"Invoice id {invoice.id} does not match {invoice_id}")
        result = save_invoice(store, invoice)
        return from_result(result, "Invoice saved")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception(f"Error saving invoice {invoice_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save invoice",
        )


@router.post("/{invoice_id}/post", response_model=SuccessResponse)
def post_invoice_route(
    invoice_id: str,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("sales")),
):
    """Post an invoice: sale voucher and COGS voucher are written with the status change."""
    logger.info(f"API: Post invoice {invoice_id} by {current_user.uid}")
    try:
        result = post_invoice(store, invoice_id)
        return from_result(result, "Invoice posted")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception(f"Error posting invoice {invoice_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to post invoice",
        )
