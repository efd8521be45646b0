from datetime import date as Date
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from textile_ledger.schemas.common import CamelModel, CostLine, Currency


DIRECT_SALE_ITEM_ID = "DS-001"


class InvoiceStatus(str, Enum):
    UNPOSTED = "Unposted"
    POSTED = "Posted"


class OrderStatus(str, Enum):
    ACTIVE = "Active"
    PARTIALLY_SHIPPED = "PartiallyShipped"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class InvoiceItem(CamelModel):
    item_id: str
    quantity: float = Field(..., gt=0)
    rate: float = Field(default=0.0, ge=0)
    currency: Currency = Currency.USD
    conversion_rate: float = Field(default=1.0, gt=0)
    total_kg: float = 0.0


class DirectSalesDetails(CamelModel):
    original_purchase_id: str
    # landed USD cost per kg of the source batch at the time of sale
    original_purchase_cost: float


class SalesInvoice(CamelModel):
    id: str
    date: Date
    customer_id: str
    items: List[InvoiceItem] = Field(..., min_length=1)
    status: InvoiceStatus = InvoiceStatus.UNPOSTED
    total_bales: float = 0.0
    total_kg: float = 0.0
    discount_surcharge: float = 0.0
    freight: Optional[CostLine] = None
    customs: Optional[CostLine] = None
    commission: Optional[CostLine] = None
    container_number: Optional[str] = None
    division_id: Optional[str] = None
    sub_division_id: Optional[str] = None
    source_order_id: Optional[str] = None
    direct_sales_details: Optional[DirectSalesDetails] = None


class OrderLine(CamelModel):
    item_id: str
    quantity: float = Field(..., gt=0)
    shipped_quantity: float = Field(default=0.0, ge=0)

    @property
    def remaining(self) -> float:
        return max(self.quantity - self.shipped_quantity, 0.0)


class OngoingOrder(CamelModel):
    id: str
    date: Date
    customer_id: str
    lines: List[OrderLine] = Field(..., min_length=1)
    status: OrderStatus = OrderStatus.ACTIVE
    total_bales: float = 0.0
    total_kg: float = 0.0


# ============================================================================
# Request schemas
# ============================================================================

class InvoiceCreate(CamelModel):
    date: Date
    customer_id: str = Field(..., min_length=1)
    items: List[InvoiceItem] = Field(..., min_length=1)
    discount_surcharge: float = 0.0
    freight: Optional[CostLine] = None
    customs: Optional[CostLine] = None
    commission: Optional[CostLine] = None
    container_number: Optional[str] = None
    division_id: Optional[str] = None
    sub_division_id: Optional[str] = None


class DirectSaleCreate(CamelModel):
    date: Date
    customer_id: str = Field(..., min_length=1)
    original_purchase_id: str = Field(..., min_length=1)
    quantity_kg: float = Field(..., gt=0)
    rate: float = Field(..., gt=0)
    currency: Currency = Currency.USD
    conversion_rate: float = Field(default=1.0, gt=0)


class OrderLineCreate(CamelModel):
    item_id: str = Field(..., min_length=1)
    quantity: float = Field(..., gt=0)


class OrderCreate(CamelModel):
    date: Date
    customer_id: str = Field(..., min_length=1)
    lines: List[OrderLineCreate] = Field(..., min_length=1)


class ShipmentRequest(CamelModel):
    date: Date
    quantities: Dict[str, float] = Field(..., min_length=1, description="item id -> quantity to ship")

    @field_validator('quantities')
    @classmethod
    def check_positive(cls, v):
        for item_id, qty in v.items():
            if qty <= 0:
                raise ValueError(f"Shipment quantity for {item_id} must be positive")
        return v
