from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from textile_ledger.common.response import documents, from_result, send
from textile_ledger.core.dependencies import get_store, require_permission
from textile_ledger.core.exceptions import NotFoundError, PersistenceError
from textile_ledger.core.store import DataStore
from textile_ledger.logger_config import logger
from textile_ledger.schemas.common import SuccessResponse
from textile_ledger.schemas.sales import OrderCreate, OrderStatus, ShipmentRequest
from textile_ledger.schemas.user import UserProfile
from textile_ledger.services.order_service import cancel_order, create_order, get_order, list_orders, ship_order

router = APIRouter()


@router.get("", response_model=SuccessResponse)
def get_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    customer_id: Optional[str] = Query(None),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("sales")),
):
    return send(documents(list_orders(store.state, order_status, customer_id)))


@router.get("/{order_id}", response_model=SuccessResponse)
def get_order_route(
    order_id: str,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("sales")),
):
    return send(get_order(store.state, order_id).to_document())


@router.post("", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def create_order_route(
    order_data: OrderCreate,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("sales")),
):
    logger.info(f"API: Create order for {order_data.customer_id} by {current_user.uid}")
    try:
        result = create_order(store, order_data)
        return from_result(result, "Order created")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error creating order")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create order",
        )


@router.post("/{order_id}/ship", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def ship_order_route(
    order_id: str,
    shipment: ShipmentRequest,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("sales")),
):
    """Ship part of an order as a new unposted invoice."""
    logger.info(f"API: Ship order {order_id} by {current_user.uid}")
    try:
        result = ship_order(store, order_id, shipment)
        return from_result(result, "Shipment invoiced")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception(f"Error shipping order {order_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to ship order",
        )


@router.post("/{order_id}/cancel", response_model=SuccessResponse)
def cancel_order_route(
    order_id: str,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("sales")),
):
    logger.info(f"API: Cancel order {order_id} by {current_user.uid}")
    try:
        result = cancel_order(store, order_id)
        return from_result(result, "Order cancelled")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception(f"Error cancelling order {order_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel order",
        )
