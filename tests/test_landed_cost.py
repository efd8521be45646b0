from datetime import date

import pytest

from textile_ledger.core.exceptions import LedgerValidationError, NotFoundError
from textile_ledger.schemas.common import CostLine
from textile_ledger.schemas.purchase import BundleLine, BundlePurchase, OriginalPurchase, PurchaseLine
from textile_ledger.schemas.setup import Item, OriginalType
from textile_ledger.services.landed_cost import calculate_bundle_cost, calculate_landed_cost

TYPES = {
    "OT-001": OriginalType(id="OT-001", name="Mixed Rags", packing_type="Kg", packing_size=1),
    "OT-002": OriginalType(id="OT-002", name="Cream Bales", packing_type="Bales", packing_size=50),
}


def make_purchase(lines, **kwargs):
    return OriginalPurchase(id="OPP1_02_03_26", date=date(2026, 3, 2), supplier_id="SUP-001", lines=lines, **kwargs)


def test_aed_purchase_with_freight():
    purchase = make_purchase(
        [PurchaseLine(original_type_id="OT-001", weight=1000, rate=2.5)],
        currency="AED",
        conversion_rate=0.2725,
        freight=CostLine(amount=50, agent_id="FFW-001"),
    )
    landed = calculate_landed_cost(purchase, TYPES)

    assert landed.item_value_fc == pytest.approx(2500)
    assert landed.item_value_usd == pytest.approx(681.25)
    assert landed.total_usd == pytest.approx(731.25)
    assert landed.cost_per_kg == pytest.approx(0.73125)


def test_total_is_sum_of_components():
    purchase = make_purchase(
        [PurchaseLine(original_type_id="OT-001", weight=400, rate=1.2)],
        discount_surcharge=-10,
        freight=CostLine(amount=100, currency="EUR", conversion_rate=1.17, agent_id="FFW-001"),
        clearing=CostLine(amount=30, agent_id="CLA-001"),
        commission=CostLine(amount=12.5, agent_id="CA-001"),
    )
    landed = calculate_landed_cost(purchase, TYPES)

    assert landed.total_usd == (
        landed.item_value_usd + landed.freight_usd + landed.clearing_usd + landed.commission_usd
    )
    assert landed.freight_usd == pytest.approx(117.0)
    assert landed.item_value_usd == pytest.approx(470.0)


def test_bale_lines_weigh_by_packing_size():
    purchase = make_purchase([PurchaseLine(original_type_id="OT-002", weight=20, rate=40)])
    landed = calculate_landed_cost(purchase, TYPES)

    assert landed.total_kg == 1000
    assert landed.cost_per_kg == pytest.approx(0.8)


def test_zero_weight_has_no_cost_per_kg():
    types = {"OT-009": OriginalType(id="OT-009", name="Broken", packing_type="Bales", packing_size=0)}
    purchase = make_purchase([PurchaseLine(original_type_id="OT-009", weight=5, rate=10)])
    landed = calculate_landed_cost(purchase, types)

    assert landed.total_kg == 0
    with pytest.raises(LedgerValidationError):
        landed.cost_per_kg


def test_unknown_type_is_rejected():
    purchase = make_purchase([PurchaseLine(original_type_id="OT-404", weight=5, rate=10)])
    with pytest.raises(NotFoundError):
        calculate_landed_cost(purchase, TYPES)


def test_bundle_cost_uses_item_packing():
    items = {"ITM-001": Item(id="ITM-001", name="T-Shirts", packing_type="Bales", packing_size=100)}
    purchase = BundlePurchase(
        id="FGP1_02_03_26", date=date(2026, 3, 2), supplier_id="SUP-001",
        lines=[BundleLine(item_id="ITM-001", quantity=4, rate=150)],
    )
    landed = calculate_bundle_cost(purchase, items)

    assert landed.item_value_usd == pytest.approx(600)
    assert landed.total_kg == 400
    assert landed.cost_per_kg == pytest.approx(1.5)
