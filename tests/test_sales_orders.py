import pytest

from tests.conftest import PURCHASE_DATE
from textile_ledger.core.exceptions import LedgerValidationError, NotFoundError
from textile_ledger.schemas.purchase import CostLine
from textile_ledger.schemas.sales import (
    DirectSaleCreate,
    InvoiceCreate,
    InvoiceItem,
    OrderCreate,
    OrderLineCreate,
    ShipmentRequest,
)
from textile_ledger.schemas.setup import Item
from textile_ledger.schemas.state import add
from textile_ledger.services import order_service, sales_service
from textile_ledger.services.journal_service import unbalanced_vouchers


def invoice_data(**kwargs):
    fields = dict(
        date=PURCHASE_DATE, customer_id="CUS-001",
        items=[InvoiceItem(item_id="ITM-001", quantity=2, rate=230), InvoiceItem(item_id="ITM-002", quantity=50, rate=1.1)],
    )
    fields.update(kwargs)
    return InvoiceCreate(**fields)


# ==================== INVOICES ====================

def test_invoice_totals_count_packages_and_kg(seeded_store):
    result = sales_service.create_invoice(seeded_store, invoice_data())
    invoice = seeded_store.state.get("salesInvoices", result.document_id)

    assert result.document_id.startswith("SI1_")
    assert invoice.status == "Unposted"
    assert invoice.total_bales == 2
    assert invoice.total_kg == 250
    assert seeded_store.state.journal_entries == []


def test_posting_creates_sale_and_cogs_vouchers(seeded_store):
    invoice_id = sales_service.create_invoice(seeded_store, invoice_data()).document_id

    result = sales_service.post_invoice(seeded_store, invoice_id)

    entries = {e.id: e for e in seeded_store.state.journal_entries}
    assert result.voucher_ids == sorted([invoice_id, f"COGS-{invoice_id}"])
    assert entries[f"je-d-{invoice_id}"].debit == pytest.approx(515)
    # 200 kg at 1.5 plus 50 kg at 0.8
    assert entries[f"je-d-cogs-COGS-{invoice_id}"].debit == pytest.approx(340)
    assert unbalanced_vouchers(entries.values()) == {}
    # nothing produced yet, so both lines oversell
    assert len(result.warnings) == 2


def test_posting_twice_is_refused(seeded_store):
    invoice_id = sales_service.create_invoice(seeded_store, invoice_data()).document_id
    sales_service.post_invoice(seeded_store, invoice_id)
    with pytest.raises(LedgerValidationError):
        sales_service.post_invoice(seeded_store, invoice_id)


def test_saving_posted_invoice_drops_stale_entries(seeded_store):
    invoice_id = sales_service.create_invoice(seeded_store, invoice_data()).document_id
    sales_service.post_invoice(seeded_store, invoice_id)
    posted = seeded_store.state.get("salesInvoices", invoice_id)

    edited = posted.model_copy(update={"items": [InvoiceItem(item_id="ITM-002", quantity=10, rate=0)]})
    sales_service.save_invoice(seeded_store, edited)

    ids = {e.id for e in seeded_store.state.journal_entries}
    assert ids == {f"je-d-cogs-COGS-{invoice_id}", f"je-c-inv-COGS-{invoice_id}"}
    assert seeded_store.state.get("salesInvoices", invoice_id).total_kg == 10


def test_unknown_customer(seeded_store):
    with pytest.raises(NotFoundError):
        sales_service.create_invoice(seeded_store, invoice_data(customer_id="CUS-404"))


def test_discount_larger_than_goods_is_refused(seeded_store):
    data = invoice_data(
        items=[InvoiceItem(item_id="ITM-002", quantity=10, rate=2.0)],
        discount_surcharge=-25, freight=CostLine(amount=40, agent_id="FFW-001"),
    )
    with pytest.raises(LedgerValidationError):
        sales_service.create_invoice(seeded_store, data)
    assert seeded_store.state.sales_invoices == []


def test_discount_equal_to_goods_is_accepted(seeded_store):
    data = invoice_data(items=[InvoiceItem(item_id="ITM-002", quantity=10, rate=2.0)], discount_surcharge=-20)
    result = sales_service.create_invoice(seeded_store, data)
    assert seeded_store.state.get("salesInvoices", result.document_id) is not None


def test_saving_posted_invoice_with_oversized_discount_is_refused(seeded_store):
    invoice_id = sales_service.create_invoice(seeded_store, invoice_data()).document_id
    sales_service.post_invoice(seeded_store, invoice_id)
    before = sorted(e.id for e in seeded_store.state.journal_entries)
    posted = seeded_store.state.get("salesInvoices", invoice_id)

    with pytest.raises(LedgerValidationError):
        sales_service.save_invoice(seeded_store, posted.model_copy(update={"discount_surcharge": -600}))

    assert sorted(e.id for e in seeded_store.state.journal_entries) == before
    assert seeded_store.state.get("salesInvoices", invoice_id).discount_surcharge == 0
    assert unbalanced_vouchers(seeded_store.state.journal_entries) == {}


# ==================== DIRECT SALES ====================

def test_direct_sale_uses_batch_landed_cost(seeded_store, aed_purchase):
    result = sales_service.create_direct_sale(seeded_store, DirectSaleCreate(
        date=PURCHASE_DATE, customer_id="CUS-001", original_purchase_id=aed_purchase,
        quantity_kg=200, rate=1.2,
    ))

    invoice = seeded_store.state.get("salesInvoices", result.document_id)
    assert invoice.status == "Posted"
    assert invoice.direct_sales_details.original_purchase_cost == pytest.approx(0.73125)
    entries = {e.id: e for e in seeded_store.state.journal_entries}
    assert entries[f"je-d-cogs-ds-{invoice.id}"].debit == pytest.approx(146.25)
    assert result.warnings == []


def test_direct_sale_over_batch_warns(seeded_store, aed_purchase):
    result = sales_service.create_direct_sale(seeded_store, DirectSaleCreate(
        date=PURCHASE_DATE, customer_id="CUS-001", original_purchase_id=aed_purchase,
        quantity_kg=1200, rate=1.2,
    ))
    assert len(result.warnings) == 1
    assert seeded_store.state.get("salesInvoices", result.document_id) is not None

# ==================== ONGOING ORDERS ====================

@pytest.fixture
def order_id(seeded_store):
    return order_service.create_order(seeded_store, OrderCreate(
        date=PURCHASE_DATE, customer_id="CUS-001",
        lines=[OrderLineCreate(item_id="ITM-001", quantity=10), OrderLineCreate(item_id="ITM-002", quantity=30)],
    )).document_id


def test_order_totals(seeded_store, order_id):
    order = seeded_store.state.get("ongoingOrders", order_id)
    assert order.total_bales == 10
    assert order.total_kg == 1030
    assert order.status == "Active"


def test_shipping_creates_unposted_invoice(seeded_store, order_id):
    result = order_service.ship_order(
        seeded_store, order_id, ShipmentRequest(date=PURCHASE_DATE, quantities={"ITM-001": 4}),
    )

    invoice = seeded_store.state.get("salesInvoices", result.document_id)
    assert invoice.status == "Unposted"
    assert invoice.source_order_id == order_id
    assert result.data["order_status"] == "PartiallyShipped"
    assert seeded_store.state.get("ongoingOrders", order_id).lines[0].remaining == 6


def test_shipping_everything_completes_order(seeded_store, order_id):
    order_service.ship_order(
        seeded_store, order_id, ShipmentRequest(date=PURCHASE_DATE, quantities={"ITM-001": 10, "ITM-002": 30}),
    )
    assert seeded_store.state.get("ongoingOrders", order_id).status == "Completed"


def test_cannot_ship_more_than_remaining(seeded_store, order_id):
    with pytest.raises(LedgerValidationError):
        order_service.ship_order(
            seeded_store, order_id, ShipmentRequest(date=PURCHASE_DATE, quantities={"ITM-001": 11}),
        )
    assert seeded_store.state.sales_invoices == []


def test_cancelled_order_cannot_ship(seeded_store, order_id):
    order_service.cancel_order(seeded_store, order_id)
    with pytest.raises(LedgerValidationError):
        order_service.ship_order(
            seeded_store, order_id, ShipmentRequest(date=PURCHASE_DATE, quantities={"ITM-001": 1}),
        )


def test_shipment_quantities_must_be_positive():
    with pytest.raises(ValueError):
        ShipmentRequest(date=PURCHASE_DATE, quantities={"ITM-001": 0})


def test_order_and_invoice_count_packages_alike(seeded_store):
    seeded_store.dispatch(add("items", Item(
        id="ITM-003", name="Mixed Shoes", packing_type="Sacks", packing_size=25, avg_production_price=1.0,
    )))
    order_id = order_service.create_order(seeded_store, OrderCreate(
        date=PURCHASE_DATE, customer_id="CUS-001",
        lines=[
            OrderLineCreate(item_id="ITM-001", quantity=2),
            OrderLineCreate(item_id="ITM-003", quantity=4),
            OrderLineCreate(item_id="ITM-002", quantity=30),
        ],
    )).document_id

    result = order_service.ship_order(
        seeded_store, order_id, ShipmentRequest(date=PURCHASE_DATE, quantities={"ITM-001": 2, "ITM-003": 4, "ITM-002": 30}),
    )

    order = seeded_store.state.get("ongoingOrders", order_id)
    invoice = seeded_store.state.get("salesInvoices", result.document_id)
    assert order.total_bales == invoice.total_bales == 6
    assert order.total_kg == invoice.total_kg == 330
