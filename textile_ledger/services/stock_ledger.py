from collections import defaultdict
from typing import Dict, List, NamedTuple, Optional

from textile_ledger.logger_config import logger
from textile_ledger.schemas.sales import InvoiceStatus
from textile_ledger.schemas.state import AppState
from textile_ledger.services.conversion import to_kg
from textile_ledger.services.landed_cost import index_by_id, line_kg


NONE_KEY = "none"
INTERNAL_SUPPLIER_ID = "SUP-INTERNAL-STOCK"


def _key_part(value: Optional[str]) -> str:
    return value if value else NONE_KEY


class RawCombination(NamedTuple):
    """Raw material is tracked by this key, compared by exact equality."""
    supplier_id: str
    sub_supplier_id: str
    original_type_id: str
    original_product_id: str

    @classmethod
    def of(cls, supplier_id, sub_supplier_id, original_type_id, original_product_id) -> "RawCombination":
        return cls(
            _key_part(supplier_id),
            _key_part(sub_supplier_id),
            _key_part(original_type_id),
            _key_part(original_product_id),
        )

    @property
    def is_internal(self) -> bool:
        return self.supplier_id == INTERNAL_SUPPLIER_ID


class StockLedgerService:
    """
    Derived stock queries. Nothing here is cached or stored: every call recomputes
    from the full transaction history held in ``state``.
    """

    def __init__(self, state: AppState):
        self.state = state

    # ==================== RAW MATERIAL ====================

    def purchased_kg_by_combination(self) -> Dict[RawCombination, float]:
        types = index_by_id(self.state.original_types)
        totals: Dict[RawCombination, float] = defaultdict(float)
        for purchase in self.state.original_purchases:
            for line in purchase.lines:
                key = RawCombination.of(
                    purchase.supplier_id, purchase.sub_supplier_id,
                    line.original_type_id, line.original_product_id,
                )
                totals[key] += line_kg(line, types)
        return totals

    def opened_kg_by_combination(self) -> Dict[RawCombination, float]:
        totals: Dict[RawCombination, float] = defaultdict(float)
        for opening in self.state.original_openings:
            key = RawCombination.of(
                opening.supplier_id, opening.sub_supplier_id,
                opening.original_type_id, opening.original_product_id,
            )
            totals[key] += opening.total_kg
        return totals

    def available_raw_stock(self, combination: RawCombination) -> float:
        purchased = self.purchased_kg_by_combination().get(combination, 0.0)
        opened = self.opened_kg_by_combination().get(combination, 0.0)
        available = purchased - opened
        logger.debug(f"Raw stock {tuple(combination)}: purchased={purchased} opened={opened} available={available}")
        return available

    def raw_stock_by_combination(self, include_internal: bool = False) -> List[dict]:
        purchased = self.purchased_kg_by_combination()
        opened = self.opened_kg_by_combination()
        rows = []
        for key in sorted(set(purchased) | set(opened)):
            if key.is_internal and not include_internal:
                continue
            rows.append({
                **key._asdict(),
                "purchased_kg": purchased.get(key, 0.0),
                "opened_kg": opened.get(key, 0.0),
                "available_kg": purchased.get(key, 0.0) - opened.get(key, 0.0),
            })
        return rows

    def available_batch_kg(self, purchase_id: str, exclude_invoice_id: Optional[str] = None) -> float:
        """Kg of one purchase still free for direct resale."""
        purchase = self.state.get("originalPurchases", purchase_id)
        if purchase is None:
            return 0.0
        types = index_by_id(self.state.original_types)
        purchased = sum(line_kg(line, types) for line in purchase.lines)
        opened = 0.0
        if purchase.batch_number:
            opened = sum(
                o.total_kg for o in self.state.original_openings
                if o.supplier_id == purchase.supplier_id and o.batch_number == purchase.batch_number
            )
        direct_sold = 0.0
        for invoice in self.state.sales_invoices:
            details = invoice.direct_sales_details
            if details and details.original_purchase_id == purchase_id and invoice.id != exclude_invoice_id:
                direct_sold += sum(line.quantity for line in invoice.items)
        return purchased - opened - direct_sold

    # ==================== ITEMS ====================

    def produced_by_item(self) -> Dict[str, float]:
        totals: Dict[str, float] = defaultdict(float)
        for production in self.state.productions:
            totals[production.item_id] += production.quantity
        return totals

    def sold_by_item(self) -> Dict[str, float]:
        totals: Dict[str, float] = defaultdict(float)
        for invoice in self.state.sales_invoices:
            if invoice.status != InvoiceStatus.POSTED:
                continue
            for line in invoice.items:
                totals[line.item_id] += line.quantity
        return totals

    def available_item_stock(self, item_id: str) -> float:
        item = self.state.get("items", item_id)
        opening = item.opening_stock if item else 0.0
        return opening + self.produced_by_item().get(item_id, 0.0) - self.sold_by_item().get(item_id, 0.0)

    def item_stock_summary(self) -> List[dict]:
        produced = self.produced_by_item()
        sold = self.sold_by_item()
        rows = []
        for item in self.state.items:
            units = item.opening_stock + produced.get(item.id, 0.0) - sold.get(item.id, 0.0)
            rows.append({
                "item_id": item.id,
                "name": item.name,
                "packing_type": item.packing_type,
                "opening_stock": item.opening_stock,
                "produced": produced.get(item.id, 0.0),
                "sold": sold.get(item.id, 0.0),
                "available_units": units,
                "available_kg": to_kg(units, item),
            })
        return rows

    def next_bale_number(self, item_id: str) -> int:
        """Seed for an item's bale counter when none has been stored yet."""
        item = self.state.get("items", item_id)
        opening = int(item.opening_stock) if item else 0
        return opening + int(self.produced_by_item().get(item_id, 0.0)) + 1
