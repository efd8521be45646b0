from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


# ============================================================================
# Enums
# ============================================================================

class Currency(str, Enum):
    USD = "USD"
    AED = "AED"
    EUR = "EUR"
    GBP = "GBP"
    AUD = "AUD"
    SAR = "SAR"


class PackingType(str, Enum):
    """Kg items are tracked by loose weight, everything else by package."""
    KG = "Kg"
    BALES = "Bales"
    SACKS = "Sacks"
    BOX = "Box"
    BAGS = "Bags"


class EntityType(str, Enum):
    SUPPLIER = "supplier"
    SUB_SUPPLIER = "subSupplier"
    CUSTOMER = "customer"
    COMMISSION_AGENT = "commissionAgent"
    FREIGHT_FORWARDER = "freightForwarder"
    CLEARING_AGENT = "clearingAgent"


# ============================================================================
# Base models
# ============================================================================

class CamelModel(BaseModel):
    """snake_case attributes, camelCase on the wire and in backups."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        use_enum_values = True

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class OriginalAmount(CamelModel):
    """Pre-conversion value kept on journal lines for audit."""
    amount: float
    currency: Currency


class CostLine(CamelModel):
    """Freight, clearing, customs or commission charged on a document."""
    amount: float = Field(default=0.0, ge=0)
    currency: Currency = Currency.USD
    conversion_rate: float = Field(default=1.0, gt=0)
    agent_id: Optional[str] = None


# ============================================================================
# Response envelopes
# ============================================================================

class SuccessResponse(BaseModel):
    success: bool = True
    message: str
    data: Optional[Any] = None
    warnings: List[str] = []


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    status_code: int
