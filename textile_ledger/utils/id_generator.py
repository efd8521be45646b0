import re
import uuid
from datetime import date
from typing import Iterable, Optional


ENTITY_PREFIXES = {
    "customers": "CUS",
    "suppliers": "SUP",
    "subSuppliers": "SSUP",
    "commissionAgents": "CA",
    "freightForwarders": "FFW",
    "clearingAgents": "CLA",
    "originalTypes": "OT",
    "originalProducts": "OP",
    "divisions": "DIV",
    "subDivisions": "SUB",
    "items": "ITM",
}

# dated document ids: {PREFIX}{seq}_{dd}_{mm}_{yy}
SALES_INVOICE_PREFIX = "SI"
ONGOING_ORDER_PREFIX = "OO"
BUNDLE_PURCHASE_PREFIX = "FGP"
ORIGINAL_PURCHASE_PREFIX = "OPP"


def generate_entity_id(prefix: str, existing_ids: Iterable[str]) -> str:
    """Next ``{PREFIX}-{NNN}`` after the highest existing number for that prefix."""
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
    highest = 0
    for existing in existing_ids:
        match = pattern.match(existing or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}-{highest + 1:03d}"


def generate_dated_id(prefix: str, sequence: int, on: Optional[date] = None) -> str:
    on = on or date.today()
    return f"{prefix}{sequence}_{on:%d}_{on:%m}_{on:%y}"


def generate_token_id(prefix: str) -> str:
    """Opaque id for documents without a sequence, e.g. ``oo_3f2a9c1b7d4e``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"
