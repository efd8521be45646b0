"""
Landed cost of a purchase in the base currency.

    itemValueUSD  = sum(weight * rate) * conversionRate + discountSurcharge
    totalUSD      = itemValueUSD + freightUSD + clearingUSD + commissionUSD
    costPerKg     = totalUSD / totalKg
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from textile_ledger.core.exceptions import LedgerValidationError, NotFoundError
from textile_ledger.logger_config import logger
from textile_ledger.schemas.common import CostLine
from textile_ledger.schemas.purchase import BundlePurchase, OriginalPurchase, PurchaseLine
from textile_ledger.schemas.setup import Item, OriginalType
from textile_ledger.services.conversion import to_kg, to_usd


COST_KINDS = ("freight", "clearing", "commission")


@dataclass(frozen=True)
class LandedCost:
    item_value_fc: float
    item_value_usd: float
    freight_usd: float
    clearing_usd: float
    commission_usd: float
    total_kg: float

    @property
    def total_usd(self) -> float:
        return self.item_value_usd + self.freight_usd + self.clearing_usd + self.commission_usd

    @property
    def cost_per_kg(self) -> float:
        if self.total_kg == 0:
            raise LedgerValidationError("Cost per kg is undefined: purchase has zero total weight")
        return self.total_usd / self.total_kg

    def cost_usd(self, kind: str) -> float:
        return getattr(self, f"{kind}_usd")


def cost_line_usd(cost: Optional[CostLine]) -> float:
    if cost is None:
        return 0.0
    return to_usd(cost.amount, cost.conversion_rate)


def line_kg(line: PurchaseLine, original_types: Mapping[str, OriginalType]) -> float:
    original_type = original_types.get(line.original_type_id)
    if original_type is None:
        raise NotFoundError(f"Original type {line.original_type_id} not found")
    return to_kg(line.weight, original_type)


def _build(purchase, item_value_fc: float, total_kg: float) -> LandedCost:
    landed = LandedCost(
        item_value_fc=item_value_fc,
        item_value_usd=to_usd(item_value_fc, purchase.conversion_rate) + purchase.discount_surcharge,
        freight_usd=cost_line_usd(purchase.freight),
        clearing_usd=cost_line_usd(purchase.clearing),
        commission_usd=cost_line_usd(purchase.commission),
        total_kg=total_kg,
    )
    logger.debug(
        f"Landed cost {purchase.id}: items={landed.item_value_usd} freight={landed.freight_usd} "
        f"clearing={landed.clearing_usd} commission={landed.commission_usd} "
        f"total={landed.total_usd} kg={total_kg}"
    )
    return landed


def calculate_landed_cost(
    purchase: OriginalPurchase,
    original_types: Mapping[str, OriginalType],
) -> LandedCost:
    item_value_fc = sum(line.weight * line.rate for line in purchase.lines)
    total_kg = sum(line_kg(line, original_types) for line in purchase.lines)
    return _build(purchase, item_value_fc, total_kg)


def calculate_bundle_cost(
    purchase: BundlePurchase,
    items: Mapping[str, Item],
) -> LandedCost:
    item_value_fc = sum(line.quantity * line.rate for line in purchase.lines)
    total_kg = 0.0
    for line in purchase.lines:
        item = items.get(line.item_id)
        if item is None:
            raise NotFoundError(f"Item {line.item_id} not found")
        total_kg += to_kg(line.quantity, item)
    return _build(purchase, item_value_fc, total_kg)


def index_by_id(rows) -> Dict[str, object]:
    return {row.id: row for row in rows}
