"""
Reference data: parties, original types and products, divisions and items.

Updates arrive as camelCase partial documents, are merged onto the stored
document and re-validated before the full document replaces it.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from textile_ledger.core.exceptions import LedgerValidationError, NotFoundError
from textile_ledger.core.store import DataStore
from textile_ledger.logger_config import logger
from textile_ledger.schemas.common import PackingType
from textile_ledger.schemas.results import OperationResult
from textile_ledger.schemas.setup import Item, ItemCreate, PartyCreate
from textile_ledger.schemas.state import COLLECTION_MODELS, AppState, BatchUpdate, add, delete, update
from textile_ledger.services import journal_service
from textile_ledger.services.linkage import overwrite_entries
from textile_ledger.utils.id_generator import ENTITY_PREFIXES, generate_entity_id


PARTY_COLLECTIONS = (
    "suppliers",
    "subSuppliers",
    "customers",
    "commissionAgents",
    "freightForwarders",
    "clearingAgents",
)
REFERENCE_COLLECTIONS = ("originalTypes", "originalProducts", "divisions", "subDivisions")

# maintained by production and bale allocation only
READ_ONLY_FIELDS = ("id", "nextBaleNumber")


def next_entity_id(state: AppState, entity: str) -> str:
    prefix = ENTITY_PREFIXES.get(entity)
    if prefix is None:
        raise LedgerValidationError(f"{entity} records do not use generated ids")
    return generate_entity_id(prefix, (doc.id for doc in state.collection(entity)))


def _merged(entity: str, current, changes: Dict[str, Any]):
    data = {**current.to_document(), **{k: v for k, v in changes.items() if k not in READ_ONLY_FIELDS}}
    try:
        return COLLECTION_MODELS[entity].model_validate(data)
    except ValidationError as e:
        raise LedgerValidationError(str(e)) from e


def _require(state: AppState, entity: str, doc_id: str):
    doc = state.get(entity, doc_id)
    if doc is None:
        raise NotFoundError(f"{entity} {doc_id} not found")
    return doc


def list_records(state: AppState, entity: str) -> list:
    if entity not in ENTITY_PREFIXES:
        raise LedgerValidationError(f"Unknown setup collection: {entity}")
    return sorted(state.collection(entity), key=lambda d: d.id)


# ==================== PARTIES AND REFERENCE DATA ====================

def create_party(store: DataStore, entity: str, data: PartyCreate) -> OperationResult:
    if entity not in PARTY_COLLECTIONS:
        raise LedgerValidationError(f"{entity} is not a party collection")
    payload = data.model_dump()
    if entity == "subSuppliers":
        if not data.supplier_id or store.state.get("suppliers", data.supplier_id) is None:
            raise NotFoundError(f"Supplier {data.supplier_id} not found")
    else:
        payload.pop("supplier_id")

    doc = COLLECTION_MODELS[entity].model_validate({"id": next_entity_id(store.state, entity), **payload})
    store.dispatch(add(entity, doc))
    logger.info(f"Created {entity} {doc.id}: {doc.name}")
    return OperationResult(document_id=doc.id, data=doc.to_document())


def create_reference_record(store: DataStore, entity: str, data: Dict[str, Any]) -> OperationResult:
    if entity not in REFERENCE_COLLECTIONS:
        raise LedgerValidationError(f"{entity} cannot be created here")
    payload = {k: v for k, v in data.items() if k != "id"}
    try:
        doc = COLLECTION_MODELS[entity].model_validate({"id": next_entity_id(store.state, entity), **payload})
    except ValidationError as e:
        raise LedgerValidationError(str(e)) from e
    if entity == "subDivisions" and store.state.get("divisions", doc.division_id) is None:
        raise NotFoundError(f"Division {doc.division_id} not found")
    store.dispatch(add(entity, doc))
    logger.info(f"Created {entity} {doc.id}")
    return OperationResult(document_id=doc.id, data=doc.to_document())


def update_record(store: DataStore, entity: str, doc_id: str, changes: Dict[str, Any]) -> OperationResult:
    if entity == "items":
        return update_item(store, doc_id, changes)
    if entity not in ENTITY_PREFIXES:
        raise LedgerValidationError(f"{entity} cannot be updated here")
    doc = _merged(entity, _require(store.state, entity, doc_id), changes)
    store.dispatch(add(entity, doc))
    logger.info(f"Updated {entity} {doc_id}")
    return OperationResult(document_id=doc_id, data=doc.to_document())


def _references(state: AppState, entity: str, doc_id: str) -> List[str]:
    refs = []
    if entity == "items":
        refs += [p.id for p in state.productions if p.item_id == doc_id]
        refs += [i.id for i in state.sales_invoices if any(line.item_id == doc_id for line in i.items)]
        refs += [o.id for o in state.ongoing_orders if any(line.item_id == doc_id for line in o.lines)]
    elif entity in ("suppliers", "subSuppliers"):
        field = "supplier_id" if entity == "suppliers" else "sub_supplier_id"
        refs += [p.id for p in state.original_purchases if getattr(p, field) == doc_id]
        refs += [o.id for o in state.original_openings if getattr(o, field) == doc_id]
        if entity == "suppliers":
            refs += [p.id for p in state.finished_goods_purchases if p.supplier_id == doc_id]
            refs += [s.id for s in state.sub_suppliers if s.supplier_id == doc_id]
    elif entity == "customers":
        refs += [i.id for i in state.sales_invoices if i.customer_id == doc_id]
        refs += [o.id for o in state.ongoing_orders if o.customer_id == doc_id]
    elif entity == "originalTypes":
        refs += [p.id for p in state.original_purchases if any(l.original_type_id == doc_id for l in p.lines)]
        refs += [o.id for o in state.original_openings if o.original_type_id == doc_id]
    elif entity == "divisions":
        refs += [s.id for s in state.sub_divisions if s.division_id == doc_id]
    refs += [e.id for e in state.journal_entries if e.entity_id == doc_id]
    return refs


def delete_record(store: DataStore, entity: str, doc_id: str) -> OperationResult:
    """Refuses while any document still references the record."""
    if entity not in ENTITY_PREFIXES:
        raise LedgerValidationError(f"{entity} cannot be deleted here")
    _require(store.state, entity, doc_id)
    refs = _references(store.state, entity, doc_id)
    if refs:
        raise LedgerValidationError(f"{doc_id} is still used by {len(refs)} record(s), e.g. {refs[0]}")

    actions = [delete(entity, doc_id)]
    if entity == "items":
        actions += [
            delete("journalEntries", e.id) for e in store.state.journal_entries
            if e.voucher_id == journal_service.opening_stock_voucher_id(doc_id)
        ]
    store.dispatch(BatchUpdate(actions=actions))
    logger.info(f"Deleted {entity} {doc_id}")
    return OperationResult(document_id=doc_id)


# ==================== ITEMS ====================

def create_item(store: DataStore, data: ItemCreate, opening_date: Optional[date] = None) -> OperationResult:
    """Opening stock is valued at the average production price into an OS voucher."""
    item = Item(id=next_entity_id(store.state, "items"), **data.model_dump())
    entries = journal_service.post_item_opening_stock(item, opening_date or date.today())

    store.dispatch(BatchUpdate(actions=[add("items", item)] + [add("journalEntries", e) for e in entries]))
    logger.info(f"Item {item.id} created with opening stock {item.opening_stock}")
    return OperationResult(
        document_id=item.id,
        voucher_ids=sorted({e.voucher_id for e in entries}),
        entry_ids=[e.id for e in entries],
        data=item.to_document(),
    )


def update_item(store: DataStore, item_id: str, changes: Dict[str, Any]) -> OperationResult:
    state = store.state
    current = _require(state, "items", item_id)
    item = _merged("items", current, changes)
    if item.packing_type != PackingType.KG and item.packing_size <= 0:
        raise LedgerValidationError(f"Packing size must be positive for {item.packing_type} items")

    actions = [add("items", item)]
    entries = []
    if (item.opening_stock, item.avg_production_price, item.packing_size) != (
        current.opening_stock, current.avg_production_price, current.packing_size
    ):
        voucher = journal_service.opening_stock_voucher_id(item_id)
        existing = [e for e in state.journal_entries if e.voucher_id == voucher]
        on = existing[0].date if existing else date.today()
        entries = journal_service.post_item_opening_stock(item, on)
        actions += overwrite_entries(existing, entries)

    store.dispatch(BatchUpdate(actions=actions))
    logger.info(f"Updated item {item_id}, {len(entries)} opening stock entries")
    return OperationResult(document_id=item_id, entry_ids=[e.id for e in entries], data=item.to_document())


def clear_opening_stock(store: DataStore, item_id: str) -> OperationResult:
    """Zero an item's opening stock; removes the OS pair and any legacy opening production."""
    state = store.state
    _require(state, "items", item_id)
    entry_ids = [e.id for e in state.journal_entries if e.id in (f"je-d-os-{item_id}", f"je-c-os-{item_id}")]
    legacy = f"prod_open_stock_{item_id}"
    production_ids = [p.id for p in state.productions if p.id == legacy]

    actions = [update("items", item_id, opening_stock=0.0)]
    actions += [delete("journalEntries", eid) for eid in entry_ids]
    actions += [delete("productions", pid) for pid in production_ids]
    store.dispatch(BatchUpdate(actions=actions))

    warnings = []
    if not entry_ids and not production_ids:
        warnings.append(f"Only the opening stock of {item_id} was cleared. Associated records not found.")
        logger.warning(warnings[0])
    logger.info(f"Opening stock cleared for {item_id}: {len(entry_ids)} entries, {len(production_ids)} productions")
    return OperationResult(document_id=item_id, entry_ids=entry_ids, warnings=warnings)
