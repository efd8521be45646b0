from datetime import date as Date
from typing import List, Optional

from textile_ledger.core.exceptions import NotFoundError
from textile_ledger.core.store import DataStore
from textile_ledger.logger_config import logger
from textile_ledger.schemas.common import PackingType
from textile_ledger.schemas.production import BaleOpeningCreate, OpeningCreate, OriginalOpening, Production
from textile_ledger.schemas.results import OperationResult
from textile_ledger.schemas.setup import OriginalType
from textile_ledger.schemas.state import AppState, BatchUpdate, add
from textile_ledger.services import journal_service
from textile_ledger.services.conversion import to_kg
from textile_ledger.services.cost_tracker import combination_cost_per_kg
from textile_ledger.services.stock_ledger import INTERNAL_SUPPLIER_ID, RawCombination, StockLedgerService
from textile_ledger.utils.id_generator import generate_token_id


DUMMY_TYPE_PREFIX = "OT-FROM-"


def list_openings(state: AppState, on: Optional[Date] = None, internal: Optional[bool] = None) -> List[OriginalOpening]:
    rows = state.original_openings
    if on:
        rows = [o for o in rows if o.date == on]
    if internal is not None:
        rows = [o for o in rows if (o.supplier_id == INTERNAL_SUPPLIER_ID) == internal]
    return sorted(rows, key=lambda o: (o.date, o.id))


# ==================== RAW MATERIAL OPENING ====================

def create_opening(store: DataStore, data: OpeningCreate) -> OperationResult:
    """
    Release raw material from bulk stock into production.

    The voucher is valued at the weighted average landed cost of every purchase
    with exactly the same combination, recomputed now.
    """
    state = store.state
    if state.get("suppliers", data.supplier_id) is None:
        raise NotFoundError(f"Supplier {data.supplier_id} not found")
    original_type = state.get("originalTypes", data.original_type_id)
    if original_type is None:
        raise NotFoundError(f"Original type {data.original_type_id} not found")

    combination = RawCombination.of(
        data.supplier_id, data.sub_supplier_id, data.original_type_id, data.original_product_id,
    )
    total_kg = to_kg(data.quantity, original_type)
    opening = OriginalOpening(id=generate_token_id("oo"), total_kg=total_kg, **data.model_dump())

    warnings = []
    available = StockLedgerService(state).available_raw_stock(combination)
    if total_kg > available:
        warnings.append(f"Opening {total_kg} kg exceeds available raw stock of {available} kg for this combination")

    cost_per_kg = combination_cost_per_kg(state, combination)
    entries = journal_service.post_opening(opening, cost_per_kg)
    if not entries:
        warnings.append("No matching purchases found; opening recorded without a journal voucher")

    actions = [add("originalOpenings", opening)] + [add("journalEntries", e) for e in entries]
    store.dispatch(BatchUpdate(actions=actions))

    for warning in warnings:
        logger.warning(f"Opening {opening.id}: {warning}")
    logger.info(f"Opening {opening.id}: {total_kg} kg at {cost_per_kg} USD/kg")
    return OperationResult(
        document_id=opening.id,
        voucher_ids=sorted({e.voucher_id for e in entries}),
        entry_ids=[e.id for e in entries],
        warnings=warnings,
        data={"total_kg": total_kg, "cost_per_kg": cost_per_kg},
    )


# ==================== BALE-TO-RAW TRANSFER ====================

def dummy_type_id(item_id: str) -> str:
    return f"{DUMMY_TYPE_PREFIX}{item_id}"


def open_bales(store: DataStore, data: BaleOpeningCreate) -> OperationResult:
    """
    Move finished-goods packages back into production as raw material.

    Each entry gets its own transaction id linking the opening, the negative
    production and the JV voucher.
    """
    state = store.state
    ledger = StockLedgerService(state)
    actions = []
    warnings = []
    opening_ids = []
    entry_ids = []
    voucher_ids = []

    for entry in data.entries:
        item = state.get("items", entry.item_id)
        if item is None:
            raise NotFoundError(f"Item {entry.item_id} not found")

        available = ledger.available_item_stock(item.id)
        if entry.quantity > available:
            warnings.append(f"Opening {entry.quantity} of {item.name} but only {available} in stock")

        type_id = dummy_type_id(item.id)
        if state.get("originalTypes", type_id) is None:
            actions.append(add("originalTypes", OriginalType(
                id=type_id,
                name=f"{item.name} (from Stock)",
                packing_type=item.packing_type,
                packing_size=1 if item.packing_type == PackingType.KG else item.packing_size,
            )))

        transaction_id = generate_token_id("bale_open")
        total_kg = to_kg(entry.quantity, item)
        opening = OriginalOpening(
            id=f"oo_{transaction_id}",
            date=data.date,
            supplier_id=INTERNAL_SUPPLIER_ID,
            original_type_id=type_id,
            quantity=entry.quantity,
            total_kg=total_kg,
            batch_number=f"From Stock: {item.name}",
            transaction_id=transaction_id,
        )
        production = Production(
            id=f"prod_deduct_{transaction_id}",
            date=data.date,
            item_id=item.id,
            quantity=-entry.quantity,
            description=f"Bales opened into raw material ({opening.id})",
        )
        entries = journal_service.post_bale_transfer(transaction_id, data.date, item, total_kg)

        actions.append(add("originalOpenings", opening))
        actions.append(add("productions", production))
        actions += [add("journalEntries", e) for e in entries]
        opening_ids.append(opening.id)
        entry_ids += [e.id for e in entries]
        voucher_ids += sorted({e.voucher_id for e in entries})

    store.dispatch(BatchUpdate(actions=actions))

    for warning in warnings:
        logger.warning(warning)
    logger.info(f"Posted {len(opening_ids)} bale opening(s) for {data.date}")
    return OperationResult(
        voucher_ids=voucher_ids,
        entry_ids=entry_ids,
        warnings=warnings,
        data={"openings": opening_ids},
    )
