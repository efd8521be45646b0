from datetime import date as Date
from typing import List, Optional

from pydantic import Field, model_validator

from textile_ledger.schemas.common import CamelModel


class Production(CamelModel):
    """Signed stock movement for an item; negative quantities are consumption."""
    id: str
    date: Date
    item_id: str
    quantity: float
    start_bale_number: Optional[int] = None
    end_bale_number: Optional[int] = None
    description: Optional[str] = None


class OriginalOpening(CamelModel):
    id: str
    date: Date
    supplier_id: str
    sub_supplier_id: Optional[str] = None
    original_type_id: str
    original_product_id: Optional[str] = None
    quantity: float
    total_kg: float
    batch_number: Optional[str] = None
    division_id: Optional[str] = None
    sub_division_id: Optional[str] = None
    # set on openings created by a bale-to-raw transfer
    transaction_id: Optional[str] = None


# ============================================================================
# Request schemas
# ============================================================================

class ProductionEntry(CamelModel):
    item_id: str = Field(..., min_length=1)
    quantity: float = Field(..., gt=0)


class ProductionCreate(CamelModel):
    date: Date
    entries: List[ProductionEntry] = Field(..., min_length=1)


class RebalingCreate(CamelModel):
    date: Date
    consumed: List[ProductionEntry] = Field(..., min_length=1)
    produced: List[ProductionEntry] = Field(..., min_length=1)


class OpeningCreate(CamelModel):
    date: Date
    supplier_id: str = Field(..., min_length=1)
    sub_supplier_id: Optional[str] = None
    original_type_id: str = Field(..., min_length=1)
    original_product_id: Optional[str] = None
    quantity: float = Field(..., gt=0)
    batch_number: Optional[str] = None
    division_id: Optional[str] = None
    sub_division_id: Optional[str] = None


class BaleOpeningCreate(CamelModel):
    date: Date
    entries: List[ProductionEntry] = Field(..., min_length=1)

    @model_validator(mode='after')
    def check_unique_items(self):
        ids = [entry.item_id for entry in self.entries]
        if len(ids) != len(set(ids)):
            raise ValueError("Each item may appear only once per bale opening")
        return self
