from datetime import date as Date
from typing import List, Optional, Tuple

from textile_ledger.core.exceptions import LedgerValidationError, NotFoundError
from textile_ledger.core.store import DataStore
from textile_ledger.logger_config import logger
from textile_ledger.schemas.results import OperationResult
from textile_ledger.schemas.sales import (
    DIRECT_SALE_ITEM_ID,
    DirectSaleCreate,
    DirectSalesDetails,
    InvoiceCreate,
    InvoiceItem,
    InvoiceStatus,
    SalesInvoice,
)
from textile_ledger.schemas.state import AppState, BatchUpdate, add
from textile_ledger.services import journal_service
from textile_ledger.services.conversion import is_kg_packed, to_kg
from textile_ledger.services.landed_cost import calculate_landed_cost, index_by_id
from textile_ledger.services.linkage import find_journal_entries, overwrite_entries
from textile_ledger.services.stock_ledger import StockLedgerService
from textile_ledger.utils.id_generator import SALES_INVOICE_PREFIX, generate_dated_id


# ==================== HELPER FUNCTIONS ====================

def invoice_totals(state: AppState, lines: List[InvoiceItem]) -> Tuple[float, float, List[InvoiceItem]]:
    """(packages, kg, lines with per-line kg). Kg items count toward kg only."""
    packages = 0.0
    total_kg = 0.0
    out = []
    for line in lines:
        item = state.get("items", line.item_id)
        if item is None:
            raise NotFoundError(f"Item {line.item_id} not found")
        kg = to_kg(line.quantity, item)
        if not is_kg_packed(item):
            packages += line.quantity
        total_kg += kg
        out.append(line.model_copy(update={"total_kg": kg}))
    return packages, total_kg, out


def _check_customer(state: AppState, customer_id: str) -> None:
    if state.get("customers", customer_id) is None:
        raise NotFoundError(f"Customer {customer_id} not found")


def _check_sale_value(invoice) -> None:
    """Goods value plus discount/surcharge must not be negative."""
    value = journal_service.sale_value_usd(invoice)
    if value < 0:
        raise LedgerValidationError(
            f"Discount exceeds the value of the goods: net sale value would be {value} USD"
        )


def get_invoice(state: AppState, invoice_id: str) -> SalesInvoice:
    invoice = state.get("salesInvoices", invoice_id)
    if invoice is None:
        raise NotFoundError(f"Sales invoice {invoice_id} not found")
    return invoice


def list_invoices(
    state: AppState,
    status: Optional[InvoiceStatus] = None,
    customer_id: Optional[str] = None,
    on: Optional[Date] = None,
) -> List[SalesInvoice]:
    rows = state.sales_invoices
    if status:
        rows = [i for i in rows if i.status == status]
    if customer_id:
        rows = [i for i in rows if i.customer_id == customer_id]
    if on:
        rows = [i for i in rows if i.date == on]
    return sorted(rows, key=lambda i: (i.date, i.id), reverse=True)


def build_invoice(store: DataStore, data: InvoiceCreate, source_order_id: Optional[str] = None) -> SalesInvoice:
    """Allocate the next SI number and compute totals. Nothing is dispatched."""
    state = store.state
    _check_customer(state, data.customer_id)
    _check_sale_value(data)
    packages, total_kg, lines = invoice_totals(state, data.items)
    sequence = store.allocate("nextInvoiceNumber")
    return SalesInvoice(
        id=generate_dated_id(SALES_INVOICE_PREFIX, sequence),
        status=InvoiceStatus.UNPOSTED,
        total_bales=packages,
        total_kg=total_kg,
        source_order_id=source_order_id,
        **{**data.model_dump(), "items": lines},
    )


# ==================== INVOICES ====================

def create_invoice(store: DataStore, data: InvoiceCreate) -> OperationResult:
    invoice = build_invoice(store, data)
    store.dispatch(add("salesInvoices", invoice))
    logger.info(f"Sales invoice {invoice.id} created: {invoice.total_bales} packages, {invoice.total_kg} kg")
    return OperationResult(document_id=invoice.id, data=invoice.to_document())


def _stock_warnings(state: AppState, invoice: SalesInvoice) -> List[str]:
    ledger = StockLedgerService(state)
    warnings = []
    for line in invoice.items:
        available = ledger.available_item_stock(line.item_id)
        if line.quantity > available:
            warnings.append(f"Item {line.item_id}: selling {line.quantity} but only {available} in stock")
    return warnings


def post_invoice(store: DataStore, invoice_id: str) -> OperationResult:
    """Unposted -> Posted, with the sale and COGS vouchers in the same batch."""
    state = store.state
    invoice = get_invoice(state, invoice_id)
    if invoice.status == InvoiceStatus.POSTED:
        raise LedgerValidationError(f"Invoice {invoice_id} is already posted")
    _check_sale_value(invoice)

    warnings = _stock_warnings(state, invoice)
    posted = invoice.model_copy(update={"status": InvoiceStatus.POSTED.value})
    entries = journal_service.post_sale(posted, index_by_id(state.items))
    existing, _ = find_journal_entries(state, [invoice_id], allow_fallback=False)

    actions = [add("salesInvoices", posted)] + overwrite_entries(existing, entries)
    store.dispatch(BatchUpdate(actions=actions))

    for warning in warnings:
        logger.warning(warning)
    logger.info(f"Invoice {invoice_id} posted with {len(entries)} journal entries")
    return OperationResult(
        document_id=invoice_id,
        voucher_ids=sorted({e.voucher_id for e in entries}),
        entry_ids=[e.id for e in entries],
        warnings=warnings,
    )


def save_invoice(store: DataStore, invoice: SalesInvoice) -> OperationResult:
    """
    Overwrite an invoice. Posted invoices have their vouchers re-derived and
    stale entries removed in the same batch.
    """
    state = store.state
    get_invoice(state, invoice.id)
    _check_sale_value(invoice)
    if invoice.direct_sales_details is None:
        packages, total_kg, lines = invoice_totals(state, invoice.items)
        invoice = invoice.model_copy(update={"total_bales": packages, "total_kg": total_kg, "items": lines})

    actions = [add("salesInvoices", invoice)]
    entries = []
    if invoice.status == InvoiceStatus.POSTED:
        if invoice.direct_sales_details:
            entries = journal_service.post_direct_sale(
                invoice, invoice.direct_sales_details.original_purchase_cost,
            )
        else:
            entries = journal_service.post_sale(invoice, index_by_id(state.items))
        existing, _ = find_journal_entries(state, [invoice.id], allow_fallback=False)
        actions += overwrite_entries(existing, entries)

    store.dispatch(BatchUpdate(actions=actions))
    logger.info(f"Invoice {invoice.id} saved ({invoice.status}), {len(entries)} journal entries")
    return OperationResult(
        document_id=invoice.id,
        voucher_ids=sorted({e.voucher_id for e in entries}),
        entry_ids=[e.id for e in entries],
    )


# ==================== DIRECT SALES ====================

def create_direct_sale(store: DataStore, data: DirectSaleCreate) -> OperationResult:
    """
    Resell raw material from one purchase batch without processing. Posted at
    creation; COGS is the batch's landed cost per kg.
    """
    state = store.state
    _check_customer(state, data.customer_id)
    purchase = state.get("originalPurchases", data.original_purchase_id)
    if purchase is None:
        raise NotFoundError(f"Purchase {data.original_purchase_id} not found")
    landed = calculate_landed_cost(purchase, index_by_id(state.original_types))
    cost_per_kg = landed.cost_per_kg

    warnings = []
    available = StockLedgerService(state).available_batch_kg(purchase.id)
    if data.quantity_kg > available:
        warnings.append(f"Selling {data.quantity_kg} kg from batch {purchase.id} but only {available} kg available")

    sequence = store.allocate("nextInvoiceNumber")
    invoice = SalesInvoice(
        id=generate_dated_id(SALES_INVOICE_PREFIX, sequence),
        date=data.date,
        customer_id=data.customer_id,
        items=[InvoiceItem(
            item_id=DIRECT_SALE_ITEM_ID,
            quantity=data.quantity_kg,
            rate=data.rate,
            currency=data.currency,
            conversion_rate=data.conversion_rate,
            total_kg=data.quantity_kg,
        )],
        status=InvoiceStatus.POSTED,
        total_kg=data.quantity_kg,
        direct_sales_details=DirectSalesDetails(
            original_purchase_id=purchase.id,
            original_purchase_cost=cost_per_kg,
        ),
    )
    entries = journal_service.post_direct_sale(invoice, cost_per_kg)

    actions = [add("salesInvoices", invoice)] + [add("journalEntries", e) for e in entries]
    store.dispatch(BatchUpdate(actions=actions))

    for warning in warnings:
        logger.warning(warning)
    logger.info(f"Direct sale {invoice.id}: {data.quantity_kg} kg of {purchase.id} at cost {cost_per_kg}/kg")
    return OperationResult(
        document_id=invoice.id,
        voucher_ids=sorted({e.voucher_id for e in entries}),
        entry_ids=[e.id for e in entries],
        warnings=warnings,
        data={"cost_per_kg": cost_per_kg},
    )
