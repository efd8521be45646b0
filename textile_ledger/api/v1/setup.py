from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Path, status

from textile_ledger.common.response import documents, from_result, send
from textile_ledger.core.dependencies import get_store, require_permission
from textile_ledger.core.exceptions import NotFoundError, PersistenceError
from textile_ledger.core.store import DataStore
from textile_ledger.logger_config import logger
from textile_ledger.schemas.common import SuccessResponse
from textile_ledger.schemas.setup import PartyCreate
from textile_ledger.schemas.user import UserProfile
from textile_ledger.services.setup_service import (
    PARTY_COLLECTIONS,
    REFERENCE_COLLECTIONS,
    create_party,
    create_reference_record,
    delete_record,
    list_records,
    update_record,
)

router = APIRouter()

ENTITY_PATTERN = "^(" + "|".join(PARTY_COLLECTIONS + REFERENCE_COLLECTIONS) + ")$"


@router.get("/{entity}", response_model=SuccessResponse)
def list_setup_records(
    entity: str = Path(..., pattern=ENTITY_PATTERN),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("setup")),
):
    return send(documents(list_records(store.state, entity)))


@router.post("/{entity}", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def create_setup_record(
    entity: str = Path(..., pattern=ENTITY_PATTERN),
    payload: Dict[str, Any] = Body(...),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("setup")),
):
    """
    Create a party (supplier, customer, agent) or a reference record (original
    type, original product, division, sub-division). The id is generated.
    """
    logger.info(f"API: Create {entity} by {current_user.uid}")
    try:
        if entity in PARTY_COLLECTIONS:
            result = create_party(store, entity, PartyCreate.model_validate(payload))
        else:
            result = create_reference_record(store, entity, payload)
        return from_result(result, f"{entity} record created")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception(f"Error creating {entity} record")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create {entity} record",
        )


@router.put("/{entity}/{doc_id}", response_model=SuccessResponse)
def update_setup_record(
    entity: str = Path(..., pattern=ENTITY_PATTERN),
    doc_id: str = Path(...),
    payload: Dict[str, Any] = Body(...),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("setup")),
):
    logger.info(f"API: Update {entity} {doc_id} by {current_user.uid}")
    try:
        result = update_record(store, entity, doc_id, payload)
        return from_result(result, f"{doc_id} updated")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception(f"Error updating {entity} {doc_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update {doc_id}",
        )


@router.delete("/{entity}/{doc_id}", response_model=SuccessResponse)
def delete_setup_record(
    entity: str = Path(..., pattern=ENTITY_PATTERN),
    doc_id: str = Path(...),
    store: DataStore = Depends(get_store),
    current_user: UserProfile = Depends(require_permission("setup")),
):
    logger.info(f"API: Delete {entity} {doc_id} by {current_user.uid}")
    try:
        result = delete_record(store, entity, doc_id)
        return from_result(result, f"{doc_id} deleted")
    except (NotFoundError, PersistenceError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception(f"Error deleting {entity} {doc_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete {doc_id}",
        )
