"""
Journal entry generator.

Every transaction type is turned into balanced debit/credit pairs. Entry and voucher
ids are derived from the source document id so the correction engine can find them
again:

    purchase        JV-{id}          je-d-{id} / je-c-{id}, je-d-{cost}-{id} / je-c-{cost}-{id}
    bundle purchase JV-FGP-{id}      je-d-fgp-{id} / je-c-fgp-{id}, je-d-{cost}-fgp-{id} ...
    sale            {invoiceId}      je-d-{inv}, je-c-sales-{inv}, je-c-freight-{inv}, ...
    sale COGS       COGS-{invoiceId} je-d-cogs-COGS-{inv} / je-c-inv-COGS-{inv}
    direct sale     {invoiceId}      je-d-ds-{inv} / je-c-ds-{inv}
    direct COGS     COGS-{invoiceId} je-d-cogs-ds-{inv} / je-c-cogs-ds-{inv}
    opening         AUTO-OPEN-{id}   je-d-open-{id} / je-c-open-{id}
    bale transfer   JV-{tx}          je-d-JV-{tx} / je-c-JV-{tx}
    opening stock   OS-{itemId}      je-d-os-{itemId} / je-c-os-{itemId}
"""

from collections import defaultdict
from datetime import date as Date
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from textile_ledger.core.config import settings
from textile_ledger.core.exceptions import LedgerValidationError
from textile_ledger.logger_config import logger
from textile_ledger.schemas.common import CostLine, EntityType, OriginalAmount
from textile_ledger.schemas.journal import JournalEntry
from textile_ledger.schemas.production import OriginalOpening
from textile_ledger.schemas.purchase import BundlePurchase, OriginalPurchase
from textile_ledger.schemas.sales import SalesInvoice
from textile_ledger.schemas.setup import Item
from textile_ledger.services.conversion import to_kg, to_usd
from textile_ledger.services.landed_cost import COST_KINDS, LandedCost, cost_line_usd


# ==================== CHART OF ACCOUNTS ====================

ACCOUNTS_PAYABLE = "AP-001"
CUSTOMS_PAYABLE = "AP-002"
ACCOUNTS_RECEIVABLE = "AR-001"
SALES_REVENUE = "REV-001"
RAW_MATERIAL_EXPENSE = "EXP-004"
FREIGHT_EXPENSE = "EXP-005"
CLEARING_EXPENSE = "EXP-006"
BUNDLE_PURCHASE_EXPENSE = "EXP-007"
COMMISSION_EXPENSE = "EXP-008"
COST_OF_GOODS_SOLD = "EXP-010"
FINISHED_GOODS_INVENTORY = "INV-FG-001"
OPENING_STOCK_CAPITAL = "CAP-002"

COST_ACCOUNTS = {
    "freight": (FREIGHT_EXPENSE, EntityType.FREIGHT_FORWARDER),
    "clearing": (CLEARING_EXPENSE, EntityType.CLEARING_AGENT),
    "commission": (COMMISSION_EXPENSE, EntityType.COMMISSION_AGENT),
}

# source document types recorded on every generated entry
SOURCE_PURCHASE = "originalPurchase"
SOURCE_BUNDLE = "finishedGoodsPurchase"
SOURCE_SALE = "salesInvoice"
SOURCE_OPENING = "originalOpening"
SOURCE_BALE_TRANSFER = "baleTransfer"
SOURCE_OPENING_STOCK = "itemOpeningStock"


# ==================== VOUCHER IDS ====================

def purchase_voucher_id(purchase_id: str) -> str:
    return f"JV-{purchase_id}"


def bundle_voucher_id(purchase_id: str) -> str:
    return f"JV-FGP-{purchase_id}"


def cogs_voucher_id(invoice_id: str) -> str:
    return f"COGS-{invoice_id}"


def opening_voucher_id(opening_id: str) -> str:
    return f"AUTO-OPEN-{opening_id}"


def opening_stock_voucher_id(item_id: str) -> str:
    return f"OS-{item_id}"


# ==================== HELPERS ====================

def _entry(
    entry_id: str,
    voucher_id: str,
    on: Date,
    account_id: str,
    description: str,
    source: Tuple[str, str],
    debit: float = 0.0,
    credit: float = 0.0,
    entity: Optional[Tuple[str, EntityType]] = None,
    original_amount: Optional[OriginalAmount] = None,
) -> JournalEntry:
    entity_id, entity_type = entity if entity else (None, None)
    return JournalEntry(
        id=entry_id,
        voucher_id=voucher_id,
        date=on,
        account_id=account_id,
        debit=debit,
        credit=credit,
        description=description,
        entity_id=entity_id,
        entity_type=entity_type,
        original_amount=original_amount,
        source_document_id=source[0],
        source_document_type=source[1],
    )


def _foreign(amount: float, currency: str) -> Optional[OriginalAmount]:
    if currency == settings.BASE_CURRENCY:
        return None
    return OriginalAmount(amount=amount, currency=currency)


def _cost_pairs(
    costs: Mapping[str, Optional[CostLine]],
    landed: LandedCost,
    voucher_id: str,
    suffix: str,
    on: Date,
    label: str,
    source: Tuple[str, str],
) -> List[JournalEntry]:
    entries = []
    for kind in COST_KINDS:
        cost = costs.get(kind)
        amount = landed.cost_usd(kind)
        if cost is None or amount <= 0:
            continue
        account, entity_type = COST_ACCOUNTS[kind]
        description = f"{kind.capitalize()} for {label}"
        entries.append(_entry(
            f"je-d-{kind}-{suffix}", voucher_id, on, account, description, source, debit=amount,
        ))
        entries.append(_entry(
            f"je-c-{kind}-{suffix}", voucher_id, on, ACCOUNTS_PAYABLE, description, source,
            credit=amount,
            entity=(cost.agent_id, entity_type) if cost.agent_id else None,
            original_amount=_foreign(cost.amount, cost.currency),
        ))
    return entries


def voucher_totals(entries: Iterable[JournalEntry]) -> Dict[str, Tuple[float, float]]:
    totals: Dict[str, List[float]] = defaultdict(lambda: [0.0, 0.0])
    for entry in entries:
        totals[entry.voucher_id][0] += entry.debit
        totals[entry.voucher_id][1] += entry.credit
    return {voucher: (debit, credit) for voucher, (debit, credit) in totals.items()}


def unbalanced_vouchers(entries: Iterable[JournalEntry]) -> Dict[str, float]:
    """Voucher id -> debit minus credit, for vouchers outside the balance tolerance."""
    return {
        voucher: debit - credit
        for voucher, (debit, credit) in voucher_totals(entries).items()
        if abs(debit - credit) > settings.BALANCE_TOLERANCE
    }


def ensure_balanced(entries: List[JournalEntry]) -> List[JournalEntry]:
    gaps = unbalanced_vouchers(entries)
    if gaps:
        raise LedgerValidationError(f"Unbalanced vouchers: {gaps}")
    return entries


# ==================== PURCHASES ====================

def post_purchase(purchase: OriginalPurchase, landed: LandedCost) -> List[JournalEntry]:
    voucher_id = purchase_voucher_id(purchase.id)
    source = (purchase.id, SOURCE_PURCHASE)
    label = f"purchase {purchase.id}"
    entries = []

    if landed.item_value_usd > 0:
        description = f"Raw material {label}"
        entries.append(_entry(
            f"je-d-{purchase.id}", voucher_id, purchase.date, RAW_MATERIAL_EXPENSE, description, source,
            debit=landed.item_value_usd,
        ))
        entries.append(_entry(
            f"je-c-{purchase.id}", voucher_id, purchase.date, ACCOUNTS_PAYABLE, description, source,
            credit=landed.item_value_usd,
            entity=(purchase.supplier_id, EntityType.SUPPLIER),
            original_amount=_foreign(landed.item_value_fc, purchase.currency),
        ))

    entries += _cost_pairs(
        {kind: getattr(purchase, kind) for kind in COST_KINDS},
        landed, voucher_id, purchase.id, purchase.date, label, source,
    )
    logger.debug(f"Generated {len(entries)} journal entries for purchase {purchase.id}")
    return ensure_balanced(entries)


def post_bundle_purchase(purchase: BundlePurchase, landed: LandedCost) -> List[JournalEntry]:
    voucher_id = bundle_voucher_id(purchase.id)
    suffix = f"fgp-{purchase.id}"
    source = (purchase.id, SOURCE_BUNDLE)
    label = f"finished goods purchase {purchase.id}"
    entries = []

    if landed.item_value_usd > 0:
        description = f"Finished goods {label}"
        entries.append(_entry(
            f"je-d-{suffix}", voucher_id, purchase.date, BUNDLE_PURCHASE_EXPENSE, description, source,
            debit=landed.item_value_usd,
        ))
        entries.append(_entry(
            f"je-c-{suffix}", voucher_id, purchase.date, ACCOUNTS_PAYABLE, description, source,
            credit=landed.item_value_usd,
            entity=(purchase.supplier_id, EntityType.SUPPLIER),
            original_amount=_foreign(landed.item_value_fc, purchase.currency),
        ))

    entries += _cost_pairs(
        {kind: getattr(purchase, kind) for kind in COST_KINDS},
        landed, voucher_id, suffix, purchase.date, label, source,
    )
    return ensure_balanced(entries)


# ==================== SALES ====================

def sale_value_usd(invoice: SalesInvoice) -> float:
    lines = sum(to_usd(line.quantity * line.rate, line.conversion_rate) for line in invoice.items)
    return lines + invoice.discount_surcharge


def sale_cogs_usd(invoice: SalesInvoice, items: Mapping[str, Item]) -> float:
    total = 0.0
    for line in invoice.items:
        item = items.get(line.item_id)
        if item is None:
            logger.warning(f"Invoice {invoice.id}: item {line.item_id} not found, excluded from COGS")
            continue
        total += to_kg(line.quantity, item) * item.avg_production_price
    return total


def _invoice_original_amount(invoice: SalesInvoice) -> Optional[OriginalAmount]:
    currencies = {line.currency for line in invoice.items}
    if len(currencies) != 1:
        return None
    return _foreign(sum(line.quantity * line.rate for line in invoice.items), currencies.pop())


def post_sale(invoice: SalesInvoice, items: Mapping[str, Item]) -> List[JournalEntry]:
    inv = invoice.id
    source = (inv, SOURCE_SALE)
    customer = (invoice.customer_id, EntityType.CUSTOMER)
    on = invoice.date
    revenue = sale_value_usd(invoice)
    freight = cost_line_usd(invoice.freight)
    customs = cost_line_usd(invoice.customs)
    commission = cost_line_usd(invoice.commission)
    entries = []

    receivable = revenue + freight + customs
    if receivable > 0:
        entries.append(_entry(
            f"je-d-{inv}", inv, on, ACCOUNTS_RECEIVABLE, f"Sales invoice {inv}", source,
            debit=receivable, entity=customer, original_amount=_invoice_original_amount(invoice),
        ))
    if revenue > 0:
        entries.append(_entry(
            f"je-c-sales-{inv}", inv, on, SALES_REVENUE, f"Sales revenue {inv}", source, credit=revenue,
        ))
    if freight > 0:
        agent = invoice.freight.agent_id
        entries.append(_entry(
            f"je-c-freight-{inv}", inv, on, ACCOUNTS_PAYABLE, f"Freight on invoice {inv}", source,
            credit=freight,
            entity=(agent, EntityType.FREIGHT_FORWARDER) if agent else None,
            original_amount=_foreign(invoice.freight.amount, invoice.freight.currency),
        ))
    if customs > 0:
        agent = invoice.customs.agent_id
        entries.append(_entry(
            f"je-c-customs-{inv}", inv, on, CUSTOMS_PAYABLE, f"Customs on invoice {inv}", source,
            credit=customs,
            entity=(agent, EntityType.CLEARING_AGENT) if agent else None,
        ))
    if commission > 0:
        agent = invoice.commission.agent_id
        entries.append(_entry(
            f"je-d-com-{inv}", inv, on, COMMISSION_EXPENSE, f"Commission on invoice {inv}", source,
            debit=commission,
        ))
        entries.append(_entry(
            f"je-c-com-{inv}", inv, on, ACCOUNTS_PAYABLE, f"Commission on invoice {inv}", source,
            credit=commission,
            entity=(agent, EntityType.COMMISSION_AGENT) if agent else None,
            original_amount=_foreign(invoice.commission.amount, invoice.commission.currency),
        ))

    cogs = sale_cogs_usd(invoice, items)
    if cogs > 0:
        voucher = cogs_voucher_id(inv)
        entries.append(_entry(
            f"je-d-cogs-{voucher}", voucher, on, COST_OF_GOODS_SOLD, f"Cost of goods sold {inv}", source,
            debit=cogs,
        ))
        entries.append(_entry(
            f"je-c-inv-{voucher}", voucher, on, RAW_MATERIAL_EXPENSE, f"Cost of goods sold {inv}", source,
            credit=cogs,
        ))

    logger.debug(f"Sale {inv}: revenue={revenue} freight={freight} customs={customs} cogs={cogs}")
    return ensure_balanced(entries)


def post_direct_sale(invoice: SalesInvoice, cost_per_kg: float) -> List[JournalEntry]:
    inv = invoice.id
    source = (inv, SOURCE_SALE)
    on = invoice.date
    revenue = sale_value_usd(invoice)
    kg = sum(line.quantity for line in invoice.items)
    cogs = kg * cost_per_kg
    purchase_id = invoice.direct_sales_details.original_purchase_id
    entries = []

    if revenue > 0:
        description = f"Direct sale of batch {purchase_id}"
        entries.append(_entry(
            f"je-d-ds-{inv}", inv, on, ACCOUNTS_RECEIVABLE, description, source,
            debit=revenue, entity=(invoice.customer_id, EntityType.CUSTOMER),
            original_amount=_invoice_original_amount(invoice),
        ))
        entries.append(_entry(
            f"je-c-ds-{inv}", inv, on, SALES_REVENUE, description, source, credit=revenue,
        ))
    if cogs > 0:
        voucher = cogs_voucher_id(inv)
        description = f"Cost of direct sale {inv} ({kg} kg @ {cost_per_kg:.4f})"
        entries.append(_entry(
            f"je-d-cogs-ds-{inv}", voucher, on, COST_OF_GOODS_SOLD, description, source, debit=cogs,
        ))
        entries.append(_entry(
            f"je-c-cogs-ds-{inv}", voucher, on, RAW_MATERIAL_EXPENSE, description, source, credit=cogs,
        ))
    return ensure_balanced(entries)


# ==================== OPENINGS AND STOCK ====================

def post_opening(opening: OriginalOpening, cost_per_kg: float) -> List[JournalEntry]:
    value = opening.total_kg * cost_per_kg
    if value <= 0:
        logger.warning(f"Opening {opening.id} has no cost basis; no journal entries generated")
        return []
    voucher = opening_voucher_id(opening.id)
    source = (opening.id, SOURCE_OPENING)
    description = f"Raw material opened: {opening.total_kg} kg of {opening.original_type_id}"
    return ensure_balanced([
        _entry(f"je-d-open-{opening.id}", voucher, opening.date, FINISHED_GOODS_INVENTORY, description, source,
               debit=value),
        _entry(f"je-c-open-{opening.id}", voucher, opening.date, RAW_MATERIAL_EXPENSE, description, source,
               credit=value),
    ])


def post_bale_transfer(transaction_id: str, on: Date, item: Item, kg: float) -> List[JournalEntry]:
    value = kg * item.avg_production_price
    if value <= 0:
        return []
    voucher = purchase_voucher_id(transaction_id)
    source = (transaction_id, SOURCE_BALE_TRANSFER)
    description = f"Transfer from finished goods stock to raw material: {item.name}"
    return ensure_balanced([
        _entry(f"je-d-{voucher}", voucher, on, RAW_MATERIAL_EXPENSE, description, source, debit=value),
        _entry(f"je-c-{voucher}", voucher, on, FINISHED_GOODS_INVENTORY, description, source, credit=value),
    ])


def post_item_opening_stock(item: Item, on: Date) -> List[JournalEntry]:
    value = to_kg(item.opening_stock, item) * item.avg_production_price
    if value <= 0:
        return []
    voucher = opening_stock_voucher_id(item.id)
    source = (item.id, SOURCE_OPENING_STOCK)
    description = f"Opening stock of {item.name}"
    return ensure_balanced([
        _entry(f"je-d-os-{item.id}", voucher, on, FINISHED_GOODS_INVENTORY, description, source, debit=value),
        _entry(f"je-c-os-{item.id}", voucher, on, OPENING_STOCK_CAPITAL, description, source, credit=value),
    ])
