from datetime import date as Date
from typing import List, Optional, Tuple

from textile_ledger.core.exceptions import LedgerValidationError, NotFoundError
from textile_ledger.core.store import BALE_COUNTER_PREFIX, DataStore
from textile_ledger.logger_config import logger
from textile_ledger.schemas.common import PackingType
from textile_ledger.schemas.production import Production, ProductionCreate, ProductionEntry, RebalingCreate
from textile_ledger.schemas.results import OperationResult
from textile_ledger.schemas.setup import Item
from textile_ledger.schemas.state import AppState, BatchUpdate, add, update
from textile_ledger.services.stock_ledger import StockLedgerService
from textile_ledger.utils.id_generator import generate_token_id


# ==================== BALE NUMBERS ====================

def allocate_bales(store: DataStore, item: Item, quantity: float) -> Tuple[Optional[int], Optional[int]]:
    """Reserve serial numbers for ``quantity`` bales; non-Bales items get none."""
    if item.packing_type != PackingType.BALES:
        return None, None
    if quantity != int(quantity):
        raise LedgerValidationError(f"{item.name}: bales must be produced in whole numbers, got {quantity}")
    count = int(quantity)
    seed = item.next_bale_number or StockLedgerService(store.state).next_bale_number(item.id)
    start = store.allocate(f"{BALE_COUNTER_PREFIX}{item.id}", count, seed=seed)
    return start, start + count - 1


def _get_item(state: AppState, item_id: str) -> Item:
    item = state.get("items", item_id)
    if item is None:
        raise NotFoundError(f"Item {item_id} not found")
    return item


def bale_counter_updates(productions: List[Production]) -> list:
    """Mirror each item's counter onto the item record for display."""
    latest = {}
    for p in productions:
        if p.end_bale_number is not None:
            latest[p.item_id] = max(latest.get(p.item_id, 0), p.end_bale_number + 1)
    return [update("items", item_id, next_bale_number=value) for item_id, value in latest.items()]


def build_production(
    store: DataStore,
    production_id: str,
    on: Date,
    item: Item,
    quantity: float,
    description: Optional[str] = None,
) -> Production:
    start, end = allocate_bales(store, item, quantity) if quantity > 0 else (None, None)
    return Production(
        id=production_id,
        date=on,
        item_id=item.id,
        quantity=quantity,
        start_bale_number=start,
        end_bale_number=end,
        description=description,
    )


# ==================== PRODUCTION ENTRIES ====================

def list_productions(
    state: AppState,
    on: Optional[Date] = None,
    item_id: Optional[str] = None,
) -> List[Production]:
    rows = state.productions
    if on:
        rows = [p for p in rows if p.date == on]
    if item_id:
        rows = [p for p in rows if p.item_id == item_id]
    return sorted(rows, key=lambda p: (p.date, p.id))


def create_productions(store: DataStore, data: ProductionCreate) -> OperationResult:
    items = [_get_item(store.state, entry.item_id) for entry in data.entries]
    productions = [
        build_production(store, generate_token_id("prod"), data.date, item, entry.quantity)
        for item, entry in zip(items, data.entries)
    ]
    actions = [add("productions", p) for p in productions] + bale_counter_updates(productions)
    store.dispatch(BatchUpdate(actions=actions))
    logger.info(f"Recorded {len(productions)} production entries for {data.date}")
    return OperationResult(
        entry_ids=[p.id for p in productions],
        data=[p.to_document() for p in productions],
    )


# ==================== RE-BALING ====================

def rebaling_ids(transaction_id: str, consumed: List[ProductionEntry], produced: List[ProductionEntry]) -> List[str]:
    return (
        [f"rebaling_from_{e.item_id}_{transaction_id}" for e in consumed]
        + [f"rebaling_to_{e.item_id}_{transaction_id}" for e in produced]
    )


def rebale(store: DataStore, data: RebalingCreate) -> OperationResult:
    """Consume some items and produce others in one batch. No journal entries."""
    state = store.state
    ledger = StockLedgerService(state)
    transaction_id = generate_token_id("rb")
    ids = rebaling_ids(transaction_id, data.consumed, data.produced)
    if len(ids) != len(set(ids)):
        raise LedgerValidationError("Each item may appear once on each side of a re-baling")
    warnings = []
    productions = []

    for entry in data.consumed:
        item = _get_item(state, entry.item_id)
        available = ledger.available_item_stock(item.id)
        if entry.quantity > available:
            warnings.append(
                f"Re-baling consumes {entry.quantity} of {item.name} but only {available} available"
            )
        productions.append(Production(
            id=f"rebaling_from_{item.id}_{transaction_id}",
            date=data.date,
            item_id=item.id,
            quantity=-entry.quantity,
            description=f"Re-baling {transaction_id}",
        ))

    for entry in data.produced:
        item = _get_item(state, entry.item_id)
        productions.append(build_production(
            store, f"rebaling_to_{item.id}_{transaction_id}", data.date, item, entry.quantity,
            description=f"Re-baling {transaction_id}",
        ))

    actions = [add("productions", p) for p in productions] + bale_counter_updates(productions)
    store.dispatch(BatchUpdate(actions=actions))

    for warning in warnings:
        logger.warning(warning)
    logger.info(f"Re-baling {transaction_id}: {len(data.consumed)} consumed, {len(data.produced)} produced")
    return OperationResult(document_id=transaction_id, entry_ids=ids, warnings=warnings)
