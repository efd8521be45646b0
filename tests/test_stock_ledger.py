from datetime import date

import pytest

from textile_ledger.schemas.production import OpeningCreate, ProductionCreate, ProductionEntry
from textile_ledger.schemas.purchase import OriginalPurchaseCreate, PurchaseLine
from textile_ledger.schemas.setup import OriginalProduct
from textile_ledger.schemas.state import add
from textile_ledger.services.opening_service import create_opening
from textile_ledger.services.production_service import create_productions
from textile_ledger.services.purchase_service import create_original_purchase
from textile_ledger.services.stock_ledger import RawCombination, StockLedgerService

ON = date(2026, 3, 4)


def buy(store, supplier_id, type_id, weight, product_id=None, sub_supplier_id=None):
    return create_original_purchase(store, OriginalPurchaseCreate(
        date=ON, supplier_id=supplier_id, sub_supplier_id=sub_supplier_id,
        lines=[PurchaseLine(original_type_id=type_id, original_product_id=product_id, weight=weight, rate=1.0)],
    )).document_id


def test_combinations_are_isolated(seeded_store):
    seeded_store.dispatch(add("originalProducts", OriginalProduct(id="OP-001", name="Whites", original_type_id="OT-001")))
    buy(seeded_store, "SUP-001", "OT-001", 1000)
    buy(seeded_store, "SUP-001", "OT-001", 300, product_id="OP-001")
    buy(seeded_store, "SUP-002", "OT-001", 700)

    ledger = StockLedgerService(seeded_store.state)
    assert ledger.available_raw_stock(RawCombination.of("SUP-001", None, "OT-001", None)) == 1000
    assert ledger.available_raw_stock(RawCombination.of("SUP-001", None, "OT-001", "OP-001")) == 300
    assert ledger.available_raw_stock(RawCombination.of("SUP-002", None, "OT-001", None)) == 700


def test_openings_only_reduce_their_own_combination(seeded_store):
    buy(seeded_store, "SUP-001", "OT-001", 1000)
    buy(seeded_store, "SUP-002", "OT-001", 500)
    create_opening(seeded_store, OpeningCreate(date=ON, supplier_id="SUP-001", original_type_id="OT-001", quantity=400))

    ledger = StockLedgerService(seeded_store.state)
    assert ledger.available_raw_stock(RawCombination.of("SUP-001", None, "OT-001", None)) == 600
    assert ledger.available_raw_stock(RawCombination.of("SUP-002", None, "OT-001", None)) == 500


def test_bale_purchase_counts_in_kg(seeded_store):
    buy(seeded_store, "SUP-001", "OT-002", 20)
    rows = StockLedgerService(seeded_store.state).raw_stock_by_combination()
    assert rows == [{
        "supplier_id": "SUP-001",
        "sub_supplier_id": "none",
        "original_type_id": "OT-002",
        "original_product_id": "none",
        "purchased_kg": 1000,
        "opened_kg": 0.0,
        "available_kg": 1000,
    }]


def test_overopening_goes_negative_with_warning(seeded_store):
    buy(seeded_store, "SUP-001", "OT-001", 100)
    result = create_opening(
        seeded_store, OpeningCreate(date=ON, supplier_id="SUP-001", original_type_id="OT-001", quantity=150),
    )
    assert result.warnings
    ledger = StockLedgerService(seeded_store.state)
    assert ledger.available_raw_stock(RawCombination.of("SUP-001", None, "OT-001", None)) == -50


def test_item_stock_counts_opening_production_and_posted_sales(seeded_store):
    create_productions(seeded_store, ProductionCreate(date=ON, entries=[ProductionEntry(item_id="ITM-002", quantity=250)]))
    ledger = StockLedgerService(seeded_store.state)

    assert ledger.available_item_stock("ITM-002") == 250
    summary = {row["item_id"]: row for row in ledger.item_stock_summary()}
    assert summary["ITM-002"]["produced"] == 250
    assert summary["ITM-001"]["available_kg"] == 0


def test_next_bale_number_seed(seeded_store):
    assert StockLedgerService(seeded_store.state).next_bale_number("ITM-001") == 1
    create_productions(seeded_store, ProductionCreate(date=ON, entries=[ProductionEntry(item_id="ITM-001", quantity=5)]))
    assert StockLedgerService(seeded_store.state).next_bale_number("ITM-001") == 6


def test_batch_availability_subtracts_openings_and_direct_sales(seeded_store, aed_purchase):
    create_opening(seeded_store, OpeningCreate(
        date=ON, supplier_id="SUP-001", original_type_id="OT-001", quantity=100, batch_number="B-17",
    ))
    assert StockLedgerService(seeded_store.state).available_batch_kg(aed_purchase) == pytest.approx(900)
