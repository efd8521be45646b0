from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import Field

from textile_ledger.schemas.common import CamelModel
from textile_ledger.schemas.journal import JournalEntry
from textile_ledger.schemas.sales import SalesInvoice


class InvoiceDocument(CamelModel):
    kind: Literal["invoice"] = "invoice"
    invoice: SalesInvoice


class VoucherDocument(CamelModel):
    kind: Literal["voucher"] = "voucher"
    voucher_id: str
    lines: List[JournalEntry] = Field(..., min_length=1)


EditableDocument = Annotated[Union[InvoiceDocument, VoucherDocument], Field(discriminator="kind")]


class ConfirmRequest(CamelModel):
    confirm: bool = False


class PriceConversionRequest(ConfirmRequest):
    direction: Literal["unit_to_kg", "kg_to_package"]


class PriceImportRequest(CamelModel):
    csv: str = Field(..., min_length=1, description="Header row: id,avgProductionPrice,avgSalesPrice")


class RestoreRequest(ConfirmRequest):
    snapshot: Dict[str, Any]
