from datetime import date as Date
from typing import List, Optional

from textile_ledger.core.exceptions import LedgerValidationError, NotFoundError
from textile_ledger.core.store import DataStore
from textile_ledger.logger_config import logger
from textile_ledger.schemas.production import Production
from textile_ledger.schemas.purchase import (
    BundlePurchase,
    BundlePurchaseCreate,
    OriginalPurchase,
    OriginalPurchaseCreate,
)
from textile_ledger.schemas.results import OperationResult
from textile_ledger.schemas.state import AppState, BatchUpdate, add
from textile_ledger.services import journal_service
from textile_ledger.services.landed_cost import calculate_bundle_cost, calculate_landed_cost, index_by_id
from textile_ledger.services.linkage import candidate_ids, find_journal_entries, overwrite_entries
from textile_ledger.services.production_service import bale_counter_updates, build_production
from textile_ledger.utils.id_generator import (
    BUNDLE_PURCHASE_PREFIX,
    ORIGINAL_PURCHASE_PREFIX,
    generate_dated_id,
)


# ==================== HELPER FUNCTIONS ====================

def _check_references(state: AppState, purchase) -> None:
    if state.get("suppliers", purchase.supplier_id) is None:
        raise NotFoundError(f"Supplier {purchase.supplier_id} not found")
    sub_supplier_id = getattr(purchase, "sub_supplier_id", None)
    if sub_supplier_id and state.get("subSuppliers", sub_supplier_id) is None:
        raise NotFoundError(f"Sub-supplier {sub_supplier_id} not found")
    agents = {
        "freight": "freightForwarders",
        "clearing": "clearingAgents",
        "commission": "commissionAgents",
    }
    for kind, entity in agents.items():
        cost = getattr(purchase, kind)
        if cost and cost.agent_id and state.get(entity, cost.agent_id) is None:
            raise NotFoundError(f"{kind.capitalize()} agent {cost.agent_id} not found")


def _check_original_lines(state: AppState, data) -> None:
    for line in data.lines:
        if state.get("originalTypes", line.original_type_id) is None:
            raise NotFoundError(f"Original type {line.original_type_id} not found")
        if line.original_product_id and state.get("originalProducts", line.original_product_id) is None:
            raise NotFoundError(f"Original product {line.original_product_id} not found")


# ==================== ORIGINAL PURCHASES ====================

def get_original_purchase(state: AppState, purchase_id: str) -> OriginalPurchase:
    purchase = state.get("originalPurchases", purchase_id)
    if purchase is None:
        raise NotFoundError(f"Purchase {purchase_id} not found")
    return purchase


def list_original_purchases(
    state: AppState,
    supplier_id: Optional[str] = None,
    start_date: Optional[Date] = None,
    end_date: Optional[Date] = None,
) -> List[OriginalPurchase]:
    rows = state.original_purchases
    if supplier_id:
        rows = [p for p in rows if p.supplier_id == supplier_id]
    if start_date:
        rows = [p for p in rows if p.date >= start_date]
    if end_date:
        rows = [p for p in rows if p.date <= end_date]
    return sorted(rows, key=lambda p: (p.date, p.id), reverse=True)


def preview_landed_cost(state: AppState, data: OriginalPurchaseCreate) -> dict:
    """Landed cost breakdown of an unsaved purchase."""
    _check_original_lines(state, data)
    preview = OriginalPurchase(id="preview", **data.model_dump())
    landed = calculate_landed_cost(preview, index_by_id(state.original_types))
    return {
        "item_value_fc": landed.item_value_fc,
        "item_value_usd": landed.item_value_usd,
        "freight_usd": landed.freight_usd,
        "clearing_usd": landed.clearing_usd,
        "commission_usd": landed.commission_usd,
        "total_usd": landed.total_usd,
        "total_kg": landed.total_kg,
        "cost_per_kg": landed.cost_per_kg,
    }


def create_original_purchase(store: DataStore, data: OriginalPurchaseCreate) -> OperationResult:
    """
    Save a raw-material purchase and its journal voucher as one batch.

    The landed cost is validated before anything is dispatched: a purchase
    whose lines weigh nothing has no cost per kg and is rejected.
    """
    state = store.state
    _check_references(state, data)
    _check_original_lines(state, data)

    preview = OriginalPurchase(id="preview", **data.model_dump())
    landed = calculate_landed_cost(preview, index_by_id(state.original_types))
    cost_per_kg = landed.cost_per_kg

    sequence = store.allocate("nextOriginalPurchaseNumber")
    purchase = preview.model_copy(update={"id": generate_dated_id(ORIGINAL_PURCHASE_PREFIX, sequence)})
    entries = journal_service.post_purchase(purchase, landed)

    actions = [add("originalPurchases", purchase)]
    actions += [add("journalEntries", entry) for entry in entries]
    store.dispatch(BatchUpdate(actions=actions))

    logger.info(
        f"Purchase {purchase.id} saved: {landed.total_kg} kg, total {landed.total_usd} USD, "
        f"{len(entries)} journal entries"
    )
    return OperationResult(
        document_id=purchase.id,
        voucher_ids=sorted({e.voucher_id for e in entries}),
        entry_ids=[e.id for e in entries],
        data={"total_usd": landed.total_usd, "total_kg": landed.total_kg, "cost_per_kg": cost_per_kg},
    )


def update_original_purchase(store: DataStore, purchase_id: str, data: OriginalPurchaseCreate) -> OperationResult:
    """Overwrite a purchase and re-derive its voucher, removing entries no longer generated."""
    state = store.state
    get_original_purchase(state, purchase_id)
    _check_references(state, data)
    _check_original_lines(state, data)

    purchase = OriginalPurchase(id=purchase_id, **data.model_dump())
    landed = calculate_landed_cost(purchase, index_by_id(state.original_types))
    if landed.total_kg == 0:
        raise LedgerValidationError(f"Purchase {purchase_id} has zero total weight")
    entries = journal_service.post_purchase(purchase, landed)
    existing, _ = find_journal_entries(state, candidate_ids(purchase_id), allow_fallback=False)

    actions = [add("originalPurchases", purchase)] + overwrite_entries(existing, entries)
    store.dispatch(BatchUpdate(actions=actions))
    logger.info(f"Purchase {purchase_id} updated; {len(existing)} entries replaced by {len(entries)}")
    return OperationResult(
        document_id=purchase_id,
        voucher_ids=sorted({e.voucher_id for e in entries}),
        entry_ids=[e.id for e in entries],
    )


# ==================== FINISHED GOODS PURCHASES ====================

def bundle_production_id(purchase_id: str, item_id: str) -> str:
    return f"prod_fgp_{purchase_id}_{item_id}"


def _bundle_productions(store: DataStore, purchase: BundlePurchase) -> List[Production]:
    """One stock-increasing production per line; Bales lines take bale numbers."""
    return [
        build_production(
            store,
            bundle_production_id(purchase.id, line.item_id),
            purchase.date,
            store.state.get("items", line.item_id),
            line.quantity,
            description=f"Finished goods purchase {purchase.id}",
        )
        for line in purchase.lines
    ]


def create_bundle_purchase(store: DataStore, data: BundlePurchaseCreate) -> OperationResult:
    state = store.state
    _check_references(state, data)
    items = index_by_id(state.items)
    seen = set()
    for line in data.lines:
        if line.item_id not in items:
            raise NotFoundError(f"Item {line.item_id} not found")
        if line.item_id in seen:
            raise LedgerValidationError(f"Item {line.item_id} appears more than once")
        seen.add(line.item_id)

    preview = BundlePurchase(id="preview", **data.model_dump())
    landed = calculate_bundle_cost(preview, items)

    sequence = store.allocate("nextFinishedGoodsPurchaseNumber")
    purchase = preview.model_copy(update={"id": generate_dated_id(BUNDLE_PURCHASE_PREFIX, sequence)})
    entries = journal_service.post_bundle_purchase(purchase, landed)
    productions = _bundle_productions(store, purchase)

    actions = [add("finishedGoodsPurchases", purchase)]
    actions += [add("productions", p) for p in productions]
    actions += [add("journalEntries", e) for e in entries]
    actions += bale_counter_updates(productions)
    store.dispatch(BatchUpdate(actions=actions))

    logger.info(f"Finished goods purchase {purchase.id} saved with {len(productions)} production records")
    return OperationResult(
        document_id=purchase.id,
        voucher_ids=sorted({e.voucher_id for e in entries}),
        entry_ids=[e.id for e in entries],
        data={"productions": [p.id for p in productions], "total_usd": landed.total_usd},
    )
