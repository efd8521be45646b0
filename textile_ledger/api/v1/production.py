from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from textile_ledger.common.response import documents, from_result, send
from textile_ledger.core.dependencies import get_store, require_permission
from textile_ledger.core.exceptions import NotFoundError, PersistenceError
from textile_ledger.core.store import DataStore
from textile_ledger.logger_config import logger
from textile_ledger.schemas.common import SuccessResponse
from textile_ledger.schemas.production import BaleOpeningCreate, OpeningCreate, ProductionCreate, RebalingCreate
from textile_ledger.schemas.user import UserProfile
from textile_ledger.services.opening_service import create_opening, list_openings, open_bales
from textile_ledger.services.production_service import create_productions, list_productions, rebale

router = APIRouter()


# ==================== PRODUCTION ====================

@router.get("", response_model=SuccessResponse)
def get_productions(
    on: Optional[date] = Query(None, alias="date"),
    item_id: Optional[str] = Query(None),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("production")),
):
    return send(documents(list_productions(store.state, on, item_id)))


@router.post("", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def create_productions_route(
    production_data: ProductionCreate,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("production")),
):
    """Record produced quantities. Bales items are assigned consecutive bale numbers."""
    logger.info(f"API: Record {len(production_data.entries)} production entries by {current_user.uid}")
    try:
        result = create_productions(store, production_data)
        return from_result(result, "Production recorded")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error recording production")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record production",
        )


@router.post("/rebaling", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def rebaling_route(
    rebaling_data: RebalingCreate,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("production")),
):
    logger.info(f"API: Re-baling by {current_user.uid}")
    try:
        result = rebale(store, rebaling_data)
        return from_result(result, "Re-baling recorded")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error recording re-baling")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record re-baling",
        )


# ==================== OPENINGS ====================

@router.get("/openings", response_model=SuccessResponse)
def get_openings(
    on: Optional[date] = Query(None, alias="date"),
    internal: Optional[bool] = Query(None, description="Only bale-to-raw transfers (true) or only supplier stock (false)"),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("production")),
):
    return send(documents(list_openings(store.state, on, internal)))


@router.post("/openings", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def create_opening_route(
    opening_data: OpeningCreate,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("production")),
):
    """
    Open raw material into production. Opening more than is in stock is
    allowed and reported as a warning.
    """
    logger.info(f"API: Open {opening_data.quantity} of {opening_data.original_type_id} by {current_user.uid}")
    try:
        result = create_opening(store, opening_data)
        return from_result(result, "Opening recorded")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error recording opening")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record opening",
        )


@router.post("/openings/bales", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def open_bales_route(
    opening_data: BaleOpeningCreate,
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("production")),
):
    """Move finished-goods stock back into raw material."""
    logger.info(f"API: Open {len(opening_data.entries)} finished goods lines by {current_user.uid}")
    try:
        result = open_bales(store, opening_data)
        return from_result(result, "Bales opened")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Error opening bales")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to open bales",
        )
