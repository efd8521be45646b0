from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from textile_ledger.common.response import documents, from_result, send
from textile_ledger.core.dependencies import get_store, require_permission
from textile_ledger.core.exceptions import NotFoundError, PersistenceError
from textile_ledger.core.store import DataStore
from textile_ledger.logger_config import logger
from textile_ledger.schemas.common import SuccessResponse
from textile_ledger.schemas.setup import ItemCreate
from textile_ledger.schemas.user import UserProfile
from textile_ledger.services.setup_service import create_item, delete_record, list_records, update_item

router = APIRouter()


@router.get("", response_model=SuccessResponse)
def get_items(
    search: Optional[str] = Query(None),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("setup")),
):
    items = list_records(store.state, "items")
    if search:
        needle = search.lower()
        items = [i for i in items if needle in i.name.lower() or needle in (i.code or "").lower()]
    return send(documents(items))


@router.post("", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def create_item_route(
    item_data: ItemCreate,
    opening_date: Optional[date] = Query(None, description="Date of the opening stock voucher"),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("setup")),
):
    """
    Create a finished-goods item. A non-zero opening stock is valued at the
    average production price and posted to voucher OS-{itemId}.
    """
    logger.info(f"API: Create item {item_data.name} by {current_user.uid}")
    try:
        result = create_item(store, item_data, opening_date)
        return from_result(result, "Item created")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error creating item")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create item",
        )


@router.put("/{item_id}", response_model=SuccessResponse)
def update_item_route(
    item_id: str,
    payload: Dict[str, Any] = Body(...),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("setup")),
):
    logger.info(f"API: Update item {item_id} by {current_user.uid}")
    try:
        result = update_item(store, item_id, payload)
        return from_result(result, "Item updated")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception(f"Error updating item {item_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update item",
        )


@router.delete("/{item_id}", response_model=SuccessResponse)
def delete_item_route(
    item_id: str,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("setup")),
):
    logger.info(f"API: Delete item {item_id} by {current_user.uid}")
    try:
        result = delete_record(store, "items", item_id)
        return from_result(result, "Item deleted")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception(f"Error deleting item {item_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete item",
        )
