from datetime import date

import pytest

from tests.conftest import PURCHASE_DATE
from textile_ledger.core.exceptions import LedgerValidationError, NotFoundError
from textile_ledger.schemas.correction import VoucherDocument
from textile_ledger.schemas.journal import JournalEntry
from textile_ledger.schemas.production import BaleOpeningCreate, ProductionCreate, ProductionEntry
from textile_ledger.schemas.purchase import OriginalPurchase, OriginalPurchaseCreate, PurchaseLine
from textile_ledger.schemas.sales import DirectSaleCreate, OrderCreate, OrderLineCreate, ShipmentRequest
from textile_ledger.schemas.state import BatchUpdate, add, delete
from textile_ledger.services import correction_service, sales_service
from textile_ledger.services.correction_service import NOT_FOUND_WARNING
from textile_ledger.services.journal_service import unbalanced_vouchers
from textile_ledger.services.opening_service import open_bales
from textile_ledger.services.order_service import create_order, ship_order
from textile_ledger.services.production_service import create_productions
from textile_ledger.services.purchase_service import create_original_purchase


def entry(entry_id, voucher_id, debit=0.0, credit=0.0, **kwargs):
    return JournalEntry(
        id=entry_id, voucher_id=voucher_id, date=PURCHASE_DATE,
        account_id="EXP-004" if debit else "AP-001", debit=debit, credit=credit, **kwargs,
    )


def bare_purchase(purchase_id):
    return OriginalPurchase(
        id=purchase_id, date=PURCHASE_DATE, supplier_id="SUP-001",
        lines=[PurchaseLine(original_type_id="OT-001", weight=100, rate=1)],
    )


@pytest.fixture
def usd_purchase(seeded_store):
    result = create_original_purchase(seeded_store, OriginalPurchaseCreate(
        date=PURCHASE_DATE, supplier_id="SUP-002",
        lines=[PurchaseLine(original_type_id="OT-001", weight=1000, rate=2.5)],
    ))
    return result.document_id


@pytest.fixture
def sold_batch(seeded_store, aed_purchase):
    """A batch with a direct sale whose own purchase voucher has gone missing."""
    invoice_id = sales_service.create_direct_sale(seeded_store, DirectSaleCreate(
        date=PURCHASE_DATE, customer_id="CUS-001", original_purchase_id=aed_purchase,
        quantity_kg=200, rate=1.2,
    )).document_id
    seeded_store.dispatch(BatchUpdate(actions=[
        delete("journalEntries", e.id) for e in seeded_store.state.journal_entries
        if e.source_document_id == aed_purchase
    ]))
    return aed_purchase, invoice_id


def direct_sale_ids(invoice_id):
    return {f"je-d-ds-{invoice_id}", f"je-c-ds-{invoice_id}", f"je-d-cogs-ds-{invoice_id}", f"je-c-cogs-ds-{invoice_id}"}


# ==================== DELETIONS ====================

def test_delete_purchase_removes_its_voucher(seeded_store, aed_purchase):
    result = correction_service.delete_original_purchase(seeded_store, aed_purchase)

    assert seeded_store.state.original_purchases == []
    assert seeded_store.state.journal_entries == []
    assert len(result.deleted["journalEntries"]) == 4
    assert result.warnings == []


def test_delete_purchase_leaves_similarly_named_vouchers(seeded_store, aed_purchase):
    other = f"{aed_purchase}0"
    seeded_store.dispatch(BatchUpdate(actions=[
        add("journalEntries", entry(f"je-d-{other}", f"JV-{other}", debit=10, source_document_id=other)),
        add("journalEntries", entry(f"je-c-{other}", f"JV-{other}", credit=10, source_document_id=other)),
    ]))

    correction_service.delete_original_purchase(seeded_store, aed_purchase)

    remaining = sorted(e.id for e in seeded_store.state.journal_entries)
    assert remaining == [f"je-c-{other}", f"je-d-{other}"]


def test_delete_without_dependents_warns(seeded_store):
    seeded_store.dispatch(add("originalPurchases", bare_purchase("OPP9_01_01_25")))

    result = correction_service.delete_original_purchase(seeded_store, "OPP9_01_01_25")

    assert result.warnings == [NOT_FOUND_WARNING.format(source="OPP9_01_01_25")]
    assert seeded_store.state.get("originalPurchases", "OPP9_01_01_25") is None


def test_legacy_entries_found_by_description(seeded_store):
    seeded_store.dispatch(BatchUpdate(actions=[
        add("originalPurchases", bare_purchase("OPP7_01_01_25")),
        add("journalEntries", entry("legacy-1", "IMPORT-3", debit=100, description="Purchase OPP7_01_01_25")),
        add("journalEntries", entry("legacy-2", "IMPORT-3", credit=100, description="Purchase OPP7_01_01_25")),
        add("journalEntries", entry("legacy-3", "IMPORT-4", debit=5, description="Purchase OPP7_01_01_250")),
        add("journalEntries", entry("legacy-4", "IMPORT-4", credit=5, description="Purchase OPP7_01_01_250")),
    ]))

    result = correction_service.delete_original_purchase(seeded_store, "OPP7_01_01_25")

    assert sorted(result.deleted["journalEntries"]) == ["legacy-1", "legacy-2"]
    assert "legacy naming" in result.warnings[0]
    assert {e.id for e in seeded_store.state.journal_entries} == {"legacy-3", "legacy-4"}


def test_delete_purchase_keeps_direct_sales_of_its_batch(seeded_store, sold_batch):
    purchase_id, invoice_id = sold_batch

    result = correction_service.delete_original_purchase(seeded_store, purchase_id)

    assert {e.id for e in seeded_store.state.journal_entries} == direct_sale_ids(invoice_id)
    assert NOT_FOUND_WARNING.format(source=purchase_id) in result.warnings
    assert unbalanced_vouchers(seeded_store.state.journal_entries) == {}


def test_delete_unknown_purchase(seeded_store):
    with pytest.raises(NotFoundError):
        correction_service.delete_original_purchase(seeded_store, "OPP404_01_01_25")


def test_delete_range_only_touches_dates_inside(seeded_store, aed_purchase):
    seeded_store.dispatch(add("originalPurchases", bare_purchase("OPP9_01_01_25").model_copy(
        update={"date": date(2025, 1, 1)},
    )))

    result = correction_service.delete_purchases_in_range(seeded_store, date(2026, 3, 1), date(2026, 3, 31))

    assert result.deleted["originalPurchases"] == [aed_purchase]
    assert [p.id for p in seeded_store.state.original_purchases] == ["OPP9_01_01_25"]


def test_delete_invoice_returns_quantities_to_order(seeded_store):
    order_id = create_order(seeded_store, OrderCreate(
        date=PURCHASE_DATE, customer_id="CUS-001", lines=[OrderLineCreate(item_id="ITM-001", quantity=10)],
    )).document_id
    invoice_id = ship_order(
        seeded_store, order_id, ShipmentRequest(date=PURCHASE_DATE, quantities={"ITM-001": 4}),
    ).document_id
    assert seeded_store.state.get("ongoingOrders", order_id).status == "PartiallyShipped"

    result = correction_service.delete_invoice(seeded_store, invoice_id)

    order = seeded_store.state.get("ongoingOrders", order_id)
    assert order.lines[0].shipped_quantity == 0
    assert order.status == "Active"
    assert result.warnings == []
    assert seeded_store.state.sales_invoices == []


def test_delete_bale_opening_removes_transfer_and_dummy_type(seeded_store):
    create_productions(seeded_store, ProductionCreate(
        date=PURCHASE_DATE, entries=[ProductionEntry(item_id="ITM-001", quantity=10)],
    ))
    opening_id = open_bales(seeded_store, BaleOpeningCreate(
        date=PURCHASE_DATE, entries=[ProductionEntry(item_id="ITM-001", quantity=2)],
    )).data["openings"][0]
    state = seeded_store.state
    assert state.get("originalTypes", "OT-FROM-ITM-001") is not None
    assert len(state.journal_entries) == 2

    correction_service.delete_opening(seeded_store, opening_id)

    state = seeded_store.state
    assert state.original_openings == []
    assert state.journal_entries == []
    assert state.get("originalTypes", "OT-FROM-ITM-001") is None
    assert not [p for p in state.productions if p.id.startswith("prod_deduct_")]
    assert len(state.productions) == 1


# ==================== RATE CORRECTION ====================

def test_rate_correction_rewrites_voucher(seeded_store, usd_purchase):
    result = correction_service.correct_purchase_rate(seeded_store, usd_purchase, 2550)

    purchase = seeded_store.state.get("originalPurchases", usd_purchase)
    entries = {e.id: e for e in seeded_store.state.journal_entries}
    assert purchase.lines[0].rate == pytest.approx(2.55)
    assert entries[f"je-d-{usd_purchase}"].debit == pytest.approx(2550)
    assert entries[f"je-c-{usd_purchase}"].credit == pytest.approx(2550)
    assert result.warnings == []


def test_rate_correction_scales_every_line(seeded_store):
    purchase_id = create_original_purchase(seeded_store, OriginalPurchaseCreate(
        date=PURCHASE_DATE, supplier_id="SUP-002",
        lines=[
            PurchaseLine(original_type_id="OT-001", weight=100, rate=2),
            PurchaseLine(original_type_id="OT-002", weight=2, rate=100),
        ],
    )).document_id

    correction_service.correct_purchase_rate(seeded_store, purchase_id, 800)

    rates = [line.rate for line in seeded_store.state.get("originalPurchases", purchase_id).lines]
    assert rates == [pytest.approx(4), pytest.approx(200)]


def test_rate_correction_requires_positive_total(seeded_store, usd_purchase):
    with pytest.raises(LedgerValidationError):
        correction_service.correct_purchase_rate(seeded_store, usd_purchase, 0)


def test_rate_correction_leaves_direct_sales_alone(seeded_store, sold_batch):
    purchase_id, invoice_id = sold_batch

    result = correction_service.correct_purchase_rate(seeded_store, purchase_id, 5000)

    ids = {e.id for e in seeded_store.state.journal_entries}
    assert direct_sale_ids(invoice_id) <= ids
    assert f"je-d-{purchase_id}" in ids
    assert result.deleted["journalEntries"] == []
    assert unbalanced_vouchers(seeded_store.state.journal_entries) == {}


# ==================== DOCUMENT EDITOR ====================

def test_purchase_vouchers_are_editable_by_date(seeded_store, aed_purchase):
    docs = correction_service.editable_documents(seeded_store.state, PURCHASE_DATE)
    assert [d.voucher_id for d in docs] == [f"JV-{aed_purchase}"]


def test_saving_a_voucher_drops_removed_lines(seeded_store, aed_purchase):
    voucher = f"JV-{aed_purchase}"
    lines = [
        entry("manual-d", voucher, debit=700),
        entry("manual-c", voucher, credit=700),
    ]

    result = correction_service.save_document(seeded_store, VoucherDocument(voucher_id=voucher, lines=lines))

    assert sorted(e.id for e in seeded_store.state.journal_entries) == ["manual-c", "manual-d"]
    assert len(result.deleted["journalEntries"]) == 4


def test_saving_an_unbalanced_voucher_is_refused(seeded_store, aed_purchase):
    voucher = f"JV-{aed_purchase}"
    document = VoucherDocument(voucher_id=voucher, lines=[entry("x-d", voucher, debit=1), entry("x-c", voucher, credit=2)])
    with pytest.raises(LedgerValidationError):
        correction_service.save_document(seeded_store, document)
    assert len(seeded_store.state.journal_entries) == 4


def test_saving_a_voucher_cannot_take_another_vouchers_entry_id(seeded_store, sold_batch):
    purchase_id, invoice_id = sold_batch
    voucher = f"JV-{purchase_id}"
    seeded_store.dispatch(BatchUpdate(actions=[
        add("journalEntries", entry(f"je-d-{purchase_id}", voucher, debit=700, source_document_id=purchase_id)),
        add("journalEntries", entry(f"je-c-{purchase_id}", voucher, credit=700, source_document_id=purchase_id)),
    ]))
    document = VoucherDocument(voucher_id=voucher, lines=[
        entry(f"je-d-ds-{invoice_id}", voucher, debit=700),
        entry(f"je-c-{purchase_id}", voucher, credit=700),
    ])

    with pytest.raises(LedgerValidationError):
        correction_service.save_document(seeded_store, document)

    entries = {e.id: e for e in seeded_store.state.journal_entries}
    assert entries[f"je-d-ds-{invoice_id}"].voucher_id == invoice_id
    assert f"je-d-{purchase_id}" in entries
    assert unbalanced_vouchers(entries.values()) == {}


def test_saving_a_voucher_with_a_repeated_entry_id_is_refused(seeded_store, aed_purchase):
    voucher = f"JV-{aed_purchase}"
    document = VoucherDocument(voucher_id=voucher, lines=[
        entry("dup", voucher, debit=5), entry("dup", voucher, credit=5),
    ])
    with pytest.raises(LedgerValidationError):
        correction_service.save_document(seeded_store, document)
    assert len(seeded_store.state.journal_entries) == 4
