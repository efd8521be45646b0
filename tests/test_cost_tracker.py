import pytest

from tests.conftest import PURCHASE_DATE
from textile_ledger.core.exceptions import LedgerValidationError
from textile_ledger.schemas.purchase import OriginalPurchaseCreate, PurchaseLine
from textile_ledger.services import cost_tracker
from textile_ledger.services.purchase_service import create_original_purchase
from textile_ledger.services.stock_ledger import RawCombination


# ==================== PRICE CONVERSION ====================

def test_conversion_requires_confirmation(seeded_store):
    with pytest.raises(LedgerValidationError):
        cost_tracker.convert_item_prices(seeded_store, cost_tracker.UNIT_TO_KG)
    assert seeded_store.state.get("items", "ITM-001").avg_production_price == 1.5


def test_conversion_skips_kg_items(seeded_store):
    result = cost_tracker.convert_item_prices(seeded_store, cost_tracker.KG_TO_PACKAGE, confirm=True)

    assert result.data == {"updated": 1, "skipped": ["ITM-002"]}
    assert seeded_store.state.get("items", "ITM-001").avg_production_price == pytest.approx(150)
    assert seeded_store.state.get("items", "ITM-002").avg_production_price == 0.8


def test_conversions_undo_each_other(seeded_store):
    cost_tracker.convert_item_prices(seeded_store, cost_tracker.KG_TO_PACKAGE, confirm=True)
    cost_tracker.convert_item_prices(seeded_store, cost_tracker.UNIT_TO_KG, confirm=True)

    item = seeded_store.state.get("items", "ITM-001")
    assert item.avg_production_price == pytest.approx(1.5)
    assert item.avg_sales_price == pytest.approx(2.2)


def test_unknown_direction(seeded_store):
    with pytest.raises(LedgerValidationError):
        cost_tracker.convert_item_prices(seeded_store, "sideways", confirm=True)


# ==================== CSV IMPORT ====================

def test_csv_headers_are_case_insensitive_and_bom_tolerant():
    rows = cost_tracker.parse_price_csv(
        "\ufeffITEM CODE,Avg Production Price,avg sales price\n"
        "ITM-001,\"1,200.50\",3\n"
        ",9,9\n"
        "ITM-002,,1.4\n"
    )
    assert rows == [
        {"item_id": "ITM-001", "avg_production_price": 1200.5, "avg_sales_price": 3.0},
        {"item_id": "ITM-002", "avg_sales_price": 1.4},
    ]


@pytest.mark.parametrize("text", [
    "Name,Avg Sales Price\nx,1\n",
    "ID,Colour\nITM-001,red\n",
    "ID,Avg Sales Price\nITM-001,-2\n",
    "ID,Avg Sales Price\nITM-001,cheap\n",
])
def test_invalid_csv_is_rejected(text):
    with pytest.raises(LedgerValidationError):
        cost_tracker.parse_price_csv(text)


def test_csv_import_warns_about_unknown_items(seeded_store):
    result = cost_tracker.apply_price_csv(seeded_store, "id,avg sales price\nITM-002,1.25\nITM-999,4\n")

    assert result.data == {"updated": 1, "unknown": ["ITM-999"]}
    assert result.warnings == ["Unknown item id in CSV: ITM-999"]
    assert seeded_store.state.get("items", "ITM-002").avg_sales_price == 1.25


# ==================== RAW MATERIAL AVERAGE COST ====================

def test_combination_cost_is_weighted_by_kg(seeded_store, aed_purchase):
    create_original_purchase(seeded_store, OriginalPurchaseCreate(
        date=PURCHASE_DATE, supplier_id="SUP-001",
        lines=[PurchaseLine(original_type_id="OT-001", weight=3000, rate=0.5)],
    ))
    combination = RawCombination.of("SUP-001", None, "OT-001", None)

    # (1000 * 0.73125 + 3000 * 0.5) / 4000
    assert cost_tracker.combination_cost_per_kg(seeded_store.state, combination) == pytest.approx(0.5578125)


def test_combination_without_purchases_costs_nothing(seeded_store, aed_purchase):
    combination = RawCombination.of("SUP-002", None, "OT-001", None)
    assert cost_tracker.combination_cost_per_kg(seeded_store.state, combination) == 0.0
