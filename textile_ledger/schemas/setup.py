from typing import Optional

from pydantic import EmailStr, Field, model_validator

from textile_ledger.schemas.common import CamelModel, Currency, PackingType


class Party(CamelModel):
    """Supplier, customer or agent. Stored in one collection per role."""
    id: str
    name: str = Field(..., min_length=1)
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    country: Optional[str] = None
    default_currency: Currency = Currency.USD


class SubSupplier(Party):
    supplier_id: str


class OriginalType(CamelModel):
    id: str
    name: str
    packing_type: PackingType = PackingType.KG
    packing_size: float = Field(default=1.0, ge=0)


class OriginalProduct(CamelModel):
    id: str
    name: str
    original_type_id: Optional[str] = None


class Division(CamelModel):
    id: str
    name: str


class SubDivision(CamelModel):
    id: str
    name: str
    division_id: str


class Item(CamelModel):
    id: str
    code: Optional[str] = None
    name: str = Field(..., min_length=1)
    category: Optional[str] = None
    packing_type: PackingType = PackingType.KG
    # kg per package; ignored for Kg items
    packing_size: float = Field(default=0.0, ge=0)
    opening_stock: float = 0.0
    avg_production_price: float = 0.0
    avg_sales_price: float = 0.0
    next_bale_number: Optional[int] = None


# ============================================================================
# Request schemas
# ============================================================================

class PartyCreate(CamelModel):
    name: str = Field(..., min_length=1)
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    country: Optional[str] = None
    default_currency: Currency = Currency.USD
    supplier_id: Optional[str] = None


class ItemCreate(CamelModel):
    code: Optional[str] = None
    name: str = Field(..., min_length=1)
    category: Optional[str] = None
    packing_type: PackingType = PackingType.KG
    packing_size: float = Field(default=0.0, ge=0)
    opening_stock: float = Field(default=0.0, ge=0)
    avg_production_price: float = Field(default=0.0, ge=0)
    avg_sales_price: float = Field(default=0.0, ge=0)

    @model_validator(mode='after')
    def check_packing_size(self):
        if self.packing_type != PackingType.KG and self.packing_size <= 0:
            raise ValueError(f"Packing size must be positive for {self.packing_type} items")
        return self
