from datetime import date as Date
from typing import Optional

from pydantic import Field, model_validator

from textile_ledger.schemas.common import CamelModel, EntityType, OriginalAmount


class JournalEntry(CamelModel):
    """One side of a voucher. At most one of debit/credit is non-zero."""
    id: str
    voucher_id: str
    date: Date
    account_id: str
    debit: float = Field(default=0.0, ge=0)
    credit: float = Field(default=0.0, ge=0)
    description: str = ""
    entity_id: Optional[str] = None
    entity_type: Optional[EntityType] = None
    original_amount: Optional[OriginalAmount] = None
    source_document_id: Optional[str] = None
    source_document_type: Optional[str] = None

    @model_validator(mode='after')
    def check_one_side(self):
        if self.debit and self.credit:
            raise ValueError(f"Journal entry {self.id} has both a debit and a credit")
        return self
