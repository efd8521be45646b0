from datetime import date

import pytest

from textile_ledger.core.exceptions import LedgerValidationError, NotFoundError
from textile_ledger.schemas.common import CostLine
from textile_ledger.schemas.purchase import BundleLine, BundlePurchaseCreate, OriginalPurchaseCreate, PurchaseLine
from textile_ledger.services.journal_service import unbalanced_vouchers
from textile_ledger.services.purchase_service import (
    create_bundle_purchase,
    create_original_purchase,
    preview_landed_cost,
    update_original_purchase,
)

ON = date(2026, 3, 2)


def purchase_data(**kwargs):
    fields = dict(
        date=ON, supplier_id="SUP-001",
        lines=[PurchaseLine(original_type_id="OT-001", weight=1000, rate=2.5)],
        currency="AED", conversion_rate=0.2725,
        freight=CostLine(amount=50, agent_id="FFW-001"),
    )
    fields.update(kwargs)
    return OriginalPurchaseCreate(**fields)


def test_purchase_and_voucher_saved_together(seeded_store):
    result = create_original_purchase(seeded_store, purchase_data())
    state = seeded_store.state

    assert result.document_id.startswith("OPP1_")
    assert result.data["cost_per_kg"] == pytest.approx(0.73125)
    assert state.get("originalPurchases", result.document_id) is not None
    entries = [e for e in state.journal_entries if e.voucher_id == f"JV-{result.document_id}"]
    assert len(entries) == 4
    assert unbalanced_vouchers(entries) == {}
    assert state.counter("nextOriginalPurchaseNumber") == 2


def test_preview_stores_nothing(seeded_store):
    preview = preview_landed_cost(seeded_store.state, purchase_data())
    assert preview["total_usd"] == pytest.approx(731.25)
    assert seeded_store.state.original_purchases == []


def test_unknown_supplier_is_rejected_before_dispatch(seeded_store):
    with pytest.raises(NotFoundError):
        create_original_purchase(seeded_store, purchase_data(supplier_id="SUP-404"))
    assert seeded_store.state.counter("nextOriginalPurchaseNumber") == 1


def test_cost_without_agent_is_invalid():
    with pytest.raises(ValueError):
        purchase_data(freight=CostLine(amount=50))


def test_edit_rewrites_voucher_and_drops_stale_entries(seeded_store, aed_purchase):
    update_original_purchase(seeded_store, aed_purchase, purchase_data(freight=None, conversion_rate=0.3))
    entries = {e.id: e for e in seeded_store.state.journal_entries}

    assert f"je-d-freight-{aed_purchase}" not in entries
    assert entries[f"je-d-{aed_purchase}"].debit == pytest.approx(750)
    assert len(entries) == 2


def test_bundle_purchase_adds_productions_with_bale_numbers(seeded_store):
    result = create_bundle_purchase(seeded_store, BundlePurchaseCreate(
        date=ON, supplier_id="SUP-001",
        lines=[BundleLine(item_id="ITM-001", quantity=4, rate=150), BundleLine(item_id="ITM-002", quantity=200, rate=0.9)],
    ))
    state = seeded_store.state
    fgp = result.document_id

    bale_line = state.get("productions", f"prod_fgp_{fgp}_ITM-001")
    assert (bale_line.start_bale_number, bale_line.end_bale_number) == (1, 4)
    assert state.get("productions", f"prod_fgp_{fgp}_ITM-002").start_bale_number is None
    assert state.get("items", "ITM-001").next_bale_number == 5
    debit = next(e for e in state.journal_entries if e.id == f"je-d-fgp-{fgp}")
    assert debit.account_id == "EXP-007"
    assert debit.voucher_id == f"JV-FGP-{fgp}"


def test_bundle_rejects_repeated_items(seeded_store):
    with pytest.raises(LedgerValidationError):
        create_bundle_purchase(seeded_store, BundlePurchaseCreate(
            date=ON, supplier_id="SUP-001",
            lines=[BundleLine(item_id="ITM-001", quantity=1, rate=1), BundleLine(item_id="ITM-001", quantity=2, rate=1)],
        ))
