from typing import Optional

from textile_ledger.core.config import settings
from textile_ledger.core.exceptions import LedgerValidationError
from textile_ledger.schemas.common import PackingType


# ==================== UNITS ====================

def is_kg_packed(packed) -> bool:
    """``packed`` is anything with a ``packing_type`` (item or original type)."""
    return packed.packing_type == PackingType.KG


def to_kg(quantity: float, packed) -> float:
    """Packages to kilograms. Kg-packed quantities are already kilograms."""
    if is_kg_packed(packed):
        return quantity
    return quantity * packed.packing_size


def to_units(kg: float, packed) -> float:
    if is_kg_packed(packed):
        return kg
    if not packed.packing_size:
        raise LedgerValidationError(f"Cannot convert kg to packages: packing size of {packed.id} is zero")
    return kg / packed.packing_size


# ==================== CURRENCY ====================

def to_usd(amount: float, currency_rate: float) -> float:
    """Convert with the rate captured on the transaction, never a live rate."""
    return amount * currency_rate


def default_rate(currency: Optional[str]) -> float:
    if not currency:
        return 1.0
    try:
        return settings.DEFAULT_CURRENCY_RATES[currency]
    except KeyError:
        raise LedgerValidationError(f"No default conversion rate for currency {currency}")
