from datetime import date

import pytest

from textile_ledger.core.exceptions import LedgerValidationError, NotFoundError
from textile_ledger.schemas.setup import ItemCreate, PartyCreate
from textile_ledger.schemas.state import add
from textile_ledger.schemas.production import Production
from textile_ledger.services import setup_service


def test_party_ids_continue_from_highest(seeded_store):
    result = setup_service.create_party(seeded_store, "suppliers", PartyCreate(name="Dubai Mills"))
    assert result.document_id == "SUP-003"
    assert "supplierId" not in result.data


def test_sub_supplier_needs_existing_supplier(seeded_store):
    with pytest.raises(NotFoundError):
        setup_service.create_party(seeded_store, "subSuppliers", PartyCreate(name="Yard 4", supplier_id="SUP-404"))

    result = setup_service.create_party(seeded_store, "subSuppliers", PartyCreate(name="Yard 4", supplier_id="SUP-001"))
    assert result.document_id == "SSUP-001"


def test_sub_division_needs_existing_division(seeded_store):
    with pytest.raises(NotFoundError):
        setup_service.create_reference_record(seeded_store, "subDivisions", {"name": "North", "divisionId": "DIV-001"})

    setup_service.create_reference_record(seeded_store, "divisions", {"name": "Export"})
    result = setup_service.create_reference_record(seeded_store, "subDivisions", {"name": "North", "divisionId": "DIV-001"})
    assert result.document_id == "SUB-001"


def test_update_merges_partial_changes(seeded_store):
    setup_service.update_record(seeded_store, "customers", "CUS-001", {"phone": "+234 1 555", "id": "CUS-999"})

    customer = seeded_store.state.get("customers", "CUS-001")
    assert customer.phone == "+234 1 555"
    assert customer.name == "Lagos Traders"
    assert seeded_store.state.get("customers", "CUS-999") is None


def test_invalid_update_is_rejected(seeded_store):
    with pytest.raises(LedgerValidationError):
        setup_service.update_record(seeded_store, "originalTypes", "OT-001", {"packingType": "Crates"})


def test_delete_refused_while_referenced(seeded_store, aed_purchase):
    with pytest.raises(LedgerValidationError):
        setup_service.delete_record(seeded_store, "suppliers", "SUP-001")
    with pytest.raises(LedgerValidationError):
        setup_service.delete_record(seeded_store, "freightForwarders", "FFW-001")

    setup_service.delete_record(seeded_store, "suppliers", "SUP-002")
    assert seeded_store.state.get("suppliers", "SUP-002") is None


# ==================== ITEMS ====================

def test_item_opening_stock_voucher(seeded_store):
    result = setup_service.create_item(seeded_store, ItemCreate(
        name="Shoes Mixed", packing_type="Sacks", packing_size=25, opening_stock=4, avg_production_price=2,
    ), opening_date=date(2026, 1, 1))

    assert result.document_id == "ITM-003"
    assert result.voucher_ids == ["OS-ITM-003"]
    entries = {e.id: e for e in seeded_store.state.journal_entries}
    assert entries["je-d-os-ITM-003"].debit == pytest.approx(200)
    assert entries["je-c-os-ITM-003"].account_id == "CAP-002"
    assert seeded_store.state.productions == []


def test_item_without_opening_stock_posts_nothing(seeded_store):
    result = setup_service.create_item(seeded_store, ItemCreate(name="Rags"))
    assert result.voucher_ids == []
    assert seeded_store.state.journal_entries == []


def test_changing_opening_stock_rewrites_voucher(seeded_store):
    setup_service.create_item(seeded_store, ItemCreate(
        name="Shoes Mixed", packing_type="Sacks", packing_size=25, opening_stock=4, avg_production_price=2,
    ), opening_date=date(2026, 1, 1))

    setup_service.update_item(seeded_store, "ITM-003", {"openingStock": 6, "nextBaleNumber": 99})

    entry = next(e for e in seeded_store.state.journal_entries if e.id == "je-d-os-ITM-003")
    assert entry.debit == pytest.approx(300)
    assert entry.date == date(2026, 1, 1)
    assert seeded_store.state.get("items", "ITM-003").next_bale_number is None


def test_clear_opening_stock(seeded_store):
    setup_service.create_item(seeded_store, ItemCreate(name="Rags", opening_stock=100, avg_production_price=0.5))
    seeded_store.dispatch(add("productions", Production(
        id="prod_open_stock_ITM-003", date=date(2024, 1, 1), item_id="ITM-003", quantity=100,
    )))

    result = setup_service.clear_opening_stock(seeded_store, "ITM-003")

    state = seeded_store.state
    assert state.get("items", "ITM-003").opening_stock == 0
    assert state.journal_entries == []
    assert state.productions == []
    assert result.warnings == []


def test_clear_opening_stock_without_records_warns(seeded_store):
    result = setup_service.clear_opening_stock(seeded_store, "ITM-001")
    assert result.warnings == ["Only the opening stock of ITM-001 was cleared. Associated records not found."]


def test_deleting_item_removes_opening_stock_voucher(seeded_store):
    setup_service.create_item(seeded_store, ItemCreate(name="Rags", opening_stock=100, avg_production_price=0.5))
    setup_service.delete_record(seeded_store, "items", "ITM-003")
    assert seeded_store.state.journal_entries == []
