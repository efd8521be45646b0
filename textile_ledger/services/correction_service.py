"""
Correction and reversal tools.

Deleting or correcting a source document also deletes or rewrites everything
derived from it, in one BATCH_UPDATE. Journal entries are overwritten in place
rather than reversed.
"""

from collections import defaultdict
from datetime import date as Date
from typing import Dict, List, Optional, Tuple

from textile_ledger.core.exceptions import LedgerValidationError, NotFoundError
from textile_ledger.core.store import DataStore
from textile_ledger.logger_config import logger
from textile_ledger.schemas.correction import EditableDocument, InvoiceDocument, VoucherDocument
from textile_ledger.schemas.results import CorrectionResult
from textile_ledger.schemas.sales import InvoiceStatus
from textile_ledger.schemas.state import AppState, BatchUpdate, add, delete
from textile_ledger.services import journal_service
from textile_ledger.services.landed_cost import calculate_landed_cost, index_by_id
from textile_ledger.services.linkage import (
    candidate_ids,
    dedupe,
    find_journal_entries,
    find_productions,
    overwrite_entries,
)
from textile_ledger.services.opening_service import DUMMY_TYPE_PREFIX
from textile_ledger.services.order_service import unship
from textile_ledger.services.sales_service import save_invoice


NOT_FOUND_WARNING = "Only {source} was deleted. Associated records not found."


# ==================== CASCADE ====================

def _cascade(
    state: AppState,
    entity: str,
    source_id: str,
    candidates: List[str],
    bundle: bool = False,
    extra_actions: Optional[list] = None,
) -> Tuple[list, CorrectionResult]:
    entries, used_fallback = find_journal_entries(state, candidates)
    production_ids = find_productions(state, candidates, bundle=bundle)
    extra_actions = extra_actions or []

    actions = [delete(entity, source_id)]
    actions += [delete("journalEntries", e.id) for e in entries]
    actions += [delete("productions", pid) for pid in production_ids]
    actions += extra_actions

    result = CorrectionResult(source_id=source_id)
    deleted: Dict[str, List[str]] = defaultdict(list)
    updated: Dict[str, List[str]] = defaultdict(list)
    deleted[entity].append(source_id)
    for action in actions[1:]:
        if action.type == "DELETE_ENTITY":
            deleted[action.entity].append(action.id)
        else:
            updated[action.entity].append(action.data["id"])
    result.deleted = dict(deleted)
    result.updated = dict(updated)

    if not entries and not production_ids and not extra_actions:
        result.warnings.append(NOT_FOUND_WARNING.format(source=source_id))
    elif used_fallback:
        result.warnings.append(
            f"{len(entries)} journal entries for {source_id} matched by legacy naming only"
        )
    return actions, result


def _dispatch(store: DataStore, actions: list, result: CorrectionResult) -> CorrectionResult:
    store.dispatch(BatchUpdate(actions=dedupe(actions)))
    for warning in result.warnings:
        logger.warning(warning)
    logger.info(f"Correction of {result.source_id}: {result.dependents_found} dependent record(s) changed")
    return result


# ==================== DELETIONS ====================

def delete_original_purchase(store: DataStore, purchase_id: str) -> CorrectionResult:
    state = store.state
    if state.get("originalPurchases", purchase_id) is None:
        raise NotFoundError(f"Purchase {purchase_id} not found")
    actions, result = _cascade(state, "originalPurchases", purchase_id, candidate_ids(purchase_id))
    direct_sales = [
        i.id for i in state.sales_invoices
        if i.direct_sales_details and i.direct_sales_details.original_purchase_id == purchase_id
    ]
    if direct_sales:
        result.warnings.append(f"Direct sales still reference {purchase_id}: {', '.join(direct_sales)}")
    return _dispatch(store, actions, result)


def delete_bundle_purchase(store: DataStore, purchase_id: str) -> CorrectionResult:
    state = store.state
    if state.get("finishedGoodsPurchases", purchase_id) is None:
        raise NotFoundError(f"Finished goods purchase {purchase_id} not found")
    actions, result = _cascade(
        state, "finishedGoodsPurchases", purchase_id, candidate_ids(purchase_id), bundle=True,
    )
    return _dispatch(store, actions, result)


def _opening_cascade(state: AppState, opening_id: str) -> Tuple[list, CorrectionResult]:
    opening = state.get("originalOpenings", opening_id)
    if opening is None:
        raise NotFoundError(f"Opening {opening_id} not found")
    extra = []
    type_id = opening.original_type_id
    if type_id.startswith(DUMMY_TYPE_PREFIX) and state.get("originalTypes", type_id) is not None:
        others = [
            o for o in state.original_openings
            if o.original_type_id == type_id and o.id != opening_id
        ]
        if not others:
            extra.append(delete("originalTypes", type_id))
    return _cascade(
        state, "originalOpenings", opening_id,
        candidate_ids(opening_id, opening.transaction_id), extra_actions=extra,
    )


def delete_opening(store: DataStore, opening_id: str) -> CorrectionResult:
    actions, result = _opening_cascade(store.state, opening_id)
    return _dispatch(store, actions, result)


def delete_invoice(store: DataStore, invoice_id: str) -> CorrectionResult:
    state = store.state
    invoice = state.get("salesInvoices", invoice_id)
    if invoice is None:
        raise NotFoundError(f"Sales invoice {invoice_id} not found")
    extra = []
    if invoice.source_order_id:
        order = state.get("ongoingOrders", invoice.source_order_id)
        if order is not None:
            extra.append(add("ongoingOrders", unship(order, invoice.items)))
    actions, result = _cascade(state, "salesInvoices", invoice_id, [invoice_id], extra_actions=extra)
    if invoice.status != InvoiceStatus.POSTED:
        # unposted invoices never had entries
        result.warnings = []
    return _dispatch(store, actions, result)


def delete_production(store: DataStore, production_id: str) -> CorrectionResult:
    if store.state.get("productions", production_id) is None:
        raise NotFoundError(f"Production {production_id} not found")
    store.dispatch(delete("productions", production_id))
    logger.info(f"Production {production_id} deleted")
    return CorrectionResult(source_id=production_id, deleted={"productions": [production_id]})


def delete_rebaling(store: DataStore, transaction_id: str) -> CorrectionResult:
    ids = [
        p.id for p in store.state.productions
        if p.id.startswith("rebaling_") and p.id.endswith(f"_{transaction_id}")
    ]
    if not ids:
        raise NotFoundError(f"Re-baling {transaction_id} not found")
    store.dispatch(BatchUpdate(actions=[delete("productions", pid) for pid in ids]))
    logger.info(f"Re-baling {transaction_id} deleted ({len(ids)} productions)")
    return CorrectionResult(source_id=transaction_id, deleted={"productions": ids})


def delete_purchases_in_range(store: DataStore, start: Date, end: Date) -> CorrectionResult:
    """Delete every raw and finished-goods purchase dated within [start, end] and all dependents."""
    state = store.state
    actions = []
    summary = CorrectionResult(source_id=f"{start.isoformat()}..{end.isoformat()}")
    deleted: Dict[str, List[str]] = defaultdict(list)

    sources = [("originalPurchases", p.id, False) for p in state.original_purchases if start <= p.date <= end]
    sources += [("finishedGoodsPurchases", p.id, True) for p in state.finished_goods_purchases if start <= p.date <= end]
    for entity, purchase_id, bundle in sources:
        cascade, result = _cascade(state, entity, purchase_id, candidate_ids(purchase_id), bundle=bundle)
        actions += cascade
        summary.warnings += result.warnings
        for name, ids in result.deleted.items():
            deleted[name] += ids

    if not actions:
        summary.warnings.append(f"No purchases found between {start} and {end}")
        logger.warning(summary.warnings[-1])
        return summary

    summary.deleted = {name: sorted(set(ids)) for name, ids in deleted.items()}
    return _dispatch(store, actions, summary)


# ==================== RATE CORRECTION ====================

def correct_purchase_rate(store: DataStore, purchase_id: str, corrected_total: float) -> CorrectionResult:
    """
    Adjust line rates so the purchase's item value equals ``corrected_total``
    (purchase currency), then rewrite its journal voucher.
    """
    if corrected_total <= 0:
        raise LedgerValidationError("Corrected total must be positive")
    state = store.state
    purchase = state.get("originalPurchases", purchase_id)
    if purchase is None:
        raise NotFoundError(f"Purchase {purchase_id} not found")

    if len(purchase.lines) == 1:
        line = purchase.lines[0]
        lines = [line.model_copy(update={"rate": corrected_total / line.weight})]
    else:
        recorded = sum(line.weight * line.rate for line in purchase.lines)
        factor = corrected_total / recorded
        lines = [line.model_copy(update={"rate": line.rate * factor}) for line in purchase.lines]

    corrected = purchase.model_copy(update={"lines": lines})
    landed = calculate_landed_cost(corrected, index_by_id(state.original_types))
    entries = journal_service.post_purchase(corrected, landed)
    existing, _ = find_journal_entries(state, candidate_ids(purchase_id), allow_fallback=False)

    actions = [add("originalPurchases", corrected)] + overwrite_entries(existing, entries)
    result = CorrectionResult(
        source_id=purchase_id,
        updated={"originalPurchases": [purchase_id], "journalEntries": [e.id for e in entries]},
        deleted={"journalEntries": [e.id for e in existing if e.id not in {n.id for n in entries}]},
    )
    if not existing:
        result.warnings.append(f"No journal entries found for {purchase_id}; voucher created from scratch")

    logger.info(
        f"Rate correction {purchase_id}: rates {[l.rate for l in purchase.lines]} -> "
        f"{[l.rate for l in lines]}, item value {landed.item_value_usd} USD"
    )
    return _dispatch(store, actions, result)


# ==================== DOCUMENT EDITOR ====================

def editable_documents(state: AppState, on: Date) -> List[EditableDocument]:
    """Invoices and manual/derived vouchers dated ``on``. Sale vouchers are edited through their invoice."""
    invoices = [i for i in state.sales_invoices if i.date == on]
    invoice_vouchers = {i.id for i in state.sales_invoices}
    invoice_vouchers |= {journal_service.cogs_voucher_id(i) for i in invoice_vouchers}

    vouchers: Dict[str, list] = defaultdict(list)
    for entry in state.journal_entries:
        if entry.date == on and entry.voucher_id not in invoice_vouchers:
            vouchers[entry.voucher_id].append(entry)

    docs: List[EditableDocument] = [InvoiceDocument(invoice=i) for i in invoices]
    docs += [VoucherDocument(voucher_id=v, lines=lines) for v, lines in sorted(vouchers.items())]
    return docs


def save_document(store: DataStore, document: EditableDocument) -> CorrectionResult:
    if isinstance(document, InvoiceDocument):
        outcome = save_invoice(store, document.invoice)
        return CorrectionResult(
            source_id=document.invoice.id,
            updated={"salesInvoices": [document.invoice.id], "journalEntries": outcome.entry_ids},
        )

    state = store.state
    owners = {e.id: e.voucher_id for e in state.journal_entries}
    for line in document.lines:
        if line.voucher_id != document.voucher_id:
            raise LedgerValidationError(f"Entry {line.id} does not belong to voucher {document.voucher_id}")
        if owners.get(line.id, document.voucher_id) != document.voucher_id:
            raise LedgerValidationError(f"Entry id {line.id} is already used by voucher {owners[line.id]}")
    line_ids = [line.id for line in document.lines]
    if len(line_ids) != len(set(line_ids)):
        raise LedgerValidationError(f"Voucher {document.voucher_id} repeats an entry id")
    journal_service.ensure_balanced(document.lines)

    existing = [e for e in state.journal_entries if e.voucher_id == document.voucher_id]
    if not existing:
        raise NotFoundError(f"Voucher {document.voucher_id} not found")
    actions = overwrite_entries(existing, document.lines)
    keep = {line.id for line in document.lines}
    result = CorrectionResult(
        source_id=document.voucher_id,
        updated={"journalEntries": sorted(keep)},
        deleted={"journalEntries": [e.id for e in existing if e.id not in keep]},
    )
    return _dispatch(store, actions, result)
