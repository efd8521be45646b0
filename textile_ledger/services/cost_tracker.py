"""
Weighted-average cost tools.

Item average prices are maintained by administrators, not recomputed from history.
Unit/package conversions compound if applied twice, so the bulk tools refuse to
run without an explicit confirmation.
"""

import csv
import io
from typing import Dict, List, Optional, Tuple

from textile_ledger.core.exceptions import LedgerValidationError
from textile_ledger.core.store import DataStore
from textile_ledger.logger_config import logger
from textile_ledger.schemas.common import PackingType
from textile_ledger.schemas.results import OperationResult
from textile_ledger.schemas.setup import Item
from textile_ledger.schemas.state import AppState, BatchUpdate, update
from textile_ledger.services.landed_cost import calculate_landed_cost, index_by_id, line_kg
from textile_ledger.services.stock_ledger import RawCombination


UNIT_TO_KG = "unit_to_kg"
KG_TO_PACKAGE = "kg_to_package"


# ==================== PRICE CONVERSION ====================

def is_convertible(item: Item) -> bool:
    return item.packing_type != PackingType.KG and item.packing_size > 0


def unit_to_kg(item: Item) -> Optional[Tuple[float, float]]:
    """Per-package prices to per-kg prices, or None when the item has no package size."""
    if not is_convertible(item):
        return None
    return (
        item.avg_production_price / item.packing_size,
        item.avg_sales_price / item.packing_size,
    )


def kg_to_package(item: Item) -> Optional[Tuple[float, float]]:
    if not is_convertible(item):
        return None
    return (
        item.avg_production_price * item.packing_size,
        item.avg_sales_price * item.packing_size,
    )


def convert_item_prices(store: DataStore, direction: str, confirm: bool = False) -> OperationResult:
    if direction not in (UNIT_TO_KG, KG_TO_PACKAGE):
        raise LedgerValidationError(f"Unknown price conversion: {direction}")
    if not confirm:
        raise LedgerValidationError(
            "Price conversion compounds when applied twice; pass confirm=true to proceed"
        )

    convert = unit_to_kg if direction == UNIT_TO_KG else kg_to_package
    actions = []
    skipped = []
    for item in store.state.items:
        prices = convert(item)
        if prices is None:
            skipped.append(item.id)
            continue
        actions.append(update(
            "items", item.id, avg_production_price=prices[0], avg_sales_price=prices[1],
        ))

    if actions:
        store.dispatch(BatchUpdate(actions=actions))
    logger.info(f"Price conversion {direction}: {len(actions)} items updated, {len(skipped)} skipped")
    return OperationResult(
        data={"updated": len(actions), "skipped": skipped},
    )


# ==================== CSV IMPORT ====================

ID_COLUMNS = ("item code", "id")
PRODUCTION_COLUMN = "avg production price"
SALES_COLUMN = "avg sales price"


def _parse_price(raw: str, row_number: int, column: str) -> Optional[float]:
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        value = float(raw.replace(",", ""))
    except ValueError:
        raise LedgerValidationError(f"Row {row_number}: '{raw}' is not a valid {column}")
    if value < 0:
        raise LedgerValidationError(f"Row {row_number}: {column} cannot be negative")
    return value


def parse_price_csv(text: str) -> List[Dict[str, object]]:
    """Rows of {item_id, avg_production_price?, avg_sales_price?}; headers are case-insensitive."""
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    if not reader.fieldnames:
        raise LedgerValidationError("CSV file has no header row")
    headers = {name.strip().lower(): name for name in reader.fieldnames if name}
    id_header = next((headers[c] for c in ID_COLUMNS if c in headers), None)
    if id_header is None:
        raise LedgerValidationError("CSV must have an 'Item Code' or 'ID' column")
    production_header = headers.get(PRODUCTION_COLUMN)
    sales_header = headers.get(SALES_COLUMN)
    if production_header is None and sales_header is None:
        raise LedgerValidationError("CSV must have 'Avg Production Price' and/or 'Avg Sales Price' columns")

    rows = []
    for row_number, row in enumerate(reader, start=2):
        item_id = (row.get(id_header) or "").strip()
        if not item_id:
            continue
        parsed: Dict[str, object] = {"item_id": item_id}
        if production_header:
            value = _parse_price(row.get(production_header), row_number, PRODUCTION_COLUMN)
            if value is not None:
                parsed["avg_production_price"] = value
        if sales_header:
            value = _parse_price(row.get(sales_header), row_number, SALES_COLUMN)
            if value is not None:
                parsed["avg_sales_price"] = value
        rows.append(parsed)
    return rows


def apply_price_csv(store: DataStore, text: str) -> OperationResult:
    rows = parse_price_csv(text)
    known = {item.id for item in store.state.items}
    actions = []
    unknown = []
    for row in rows:
        item_id = row.pop("item_id")
        if item_id not in known:
            unknown.append(item_id)
            continue
        if row:
            actions.append(update("items", item_id, **row))

    if actions:
        store.dispatch(BatchUpdate(actions=actions))
    warnings = [f"Unknown item id in CSV: {item_id}" for item_id in unknown]
    for warning in warnings:
        logger.warning(warning)
    logger.info(f"CSV price update: {len(actions)} items updated, {len(unknown)} unknown")
    return OperationResult(
        warnings=warnings,
        data={"updated": len(actions), "unknown": unknown},
    )


# ==================== RAW MATERIAL AVERAGE COST ====================

def combination_cost_per_kg(state: AppState, combination: RawCombination) -> float:
    """
    Weighted average landed cost per kg over every purchase line with exactly this
    combination. Each line carries its purchase's landed cost per kg.
    """
    types = index_by_id(state.original_types)
    total_kg = 0.0
    total_value = 0.0
    for purchase in state.original_purchases:
        matching = [
            line for line in purchase.lines
            if RawCombination.of(
                purchase.supplier_id, purchase.sub_supplier_id,
                line.original_type_id, line.original_product_id,
            ) == combination
        ]
        if not matching:
            continue
        landed = calculate_landed_cost(purchase, types)
        if landed.total_kg == 0:
            continue
        kg = sum(line_kg(line, types) for line in matching)
        total_kg += kg
        total_value += kg * landed.cost_per_kg

    if total_kg == 0:
        logger.warning(f"No purchases found for combination {tuple(combination)}")
        return 0.0
    average = total_value / total_kg
    logger.debug(f"Average cost for {tuple(combination)}: {total_value} / {total_kg} kg = {average}")
    return average
