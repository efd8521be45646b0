from datetime import date as Date
from typing import List, Optional

from pydantic import Field, model_validator

from textile_ledger.schemas.common import CamelModel, CostLine, Currency


class PurchaseLine(CamelModel):
    """One raw-material line. Weight is in the type's packing units (kg for Kg types)."""
    original_type_id: str
    original_product_id: Optional[str] = None
    weight: float = Field(..., gt=0)
    rate: float = Field(..., gt=0)


class PurchaseCosts(CamelModel):
    currency: Currency = Currency.USD
    conversion_rate: float = Field(default=1.0, gt=0)
    # already in USD, may be negative
    discount_surcharge: float = 0.0
    freight: Optional[CostLine] = None
    clearing: Optional[CostLine] = None
    commission: Optional[CostLine] = None
    container_number: Optional[str] = None
    division_id: Optional[str] = None
    sub_division_id: Optional[str] = None

    @model_validator(mode='after')
    def check_cost_agents(self):
        for name in ("freight", "clearing", "commission"):
            cost = getattr(self, name)
            if cost and cost.amount > 0 and not cost.agent_id:
                raise ValueError(f"{name.capitalize()} amount given without an agent")
        return self


class OriginalPurchase(PurchaseCosts):
    id: str
    date: Date
    supplier_id: str
    sub_supplier_id: Optional[str] = None
    lines: List[PurchaseLine] = Field(..., min_length=1)
    batch_number: Optional[str] = None


class BundleLine(CamelModel):
    item_id: str
    quantity: float = Field(..., gt=0)
    rate: float = Field(..., gt=0)


class BundlePurchase(PurchaseCosts):
    id: str
    date: Date
    supplier_id: str
    lines: List[BundleLine] = Field(..., min_length=1)


# ============================================================================
# Request schemas
# ============================================================================

class OriginalPurchaseCreate(PurchaseCosts):
    date: Date
    supplier_id: str = Field(..., min_length=1)
    sub_supplier_id: Optional[str] = None
    lines: List[PurchaseLine] = Field(..., min_length=1)
    batch_number: Optional[str] = None


class BundlePurchaseCreate(PurchaseCosts):
    date: Date
    supplier_id: str = Field(..., min_length=1)
    lines: List[BundleLine] = Field(..., min_length=1)


class RateCorrection(CamelModel):
    corrected_total: float = Field(..., gt=0, description="Actual invoice amount in purchase currency")


class DateRange(CamelModel):
    start_date: Date
    end_date: Date

    @model_validator(mode='after')
    def check_order(self):
        if self.end_date < self.start_date:
            raise ValueError("End date must not be before start date")
        return self
