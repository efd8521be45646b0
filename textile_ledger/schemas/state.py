"""
Application state and the store command set.

AppState holds every entity collection plus the running counters. Commands are a
tagged union on ``type``; BATCH_UPDATE carries entity-level actions only.
"""

from typing import Annotated, Any, Dict, List, Literal, Type, Union

from pydantic import BaseModel, Field, field_validator

from textile_ledger.schemas.common import CamelModel
from textile_ledger.schemas.journal import JournalEntry
from textile_ledger.schemas.production import OriginalOpening, Production
from textile_ledger.schemas.purchase import BundlePurchase, OriginalPurchase
from textile_ledger.schemas.sales import OngoingOrder, SalesInvoice
from textile_ledger.schemas.setup import (
    Division,
    Item,
    OriginalProduct,
    OriginalType,
    Party,
    SubDivision,
    SubSupplier,
)


COLLECTION_MODELS: Dict[str, Type[CamelModel]] = {
    "suppliers": Party,
    "subSuppliers": SubSupplier,
    "customers": Party,
    "commissionAgents": Party,
    "freightForwarders": Party,
    "clearingAgents": Party,
    "divisions": Division,
    "subDivisions": SubDivision,
    "originalTypes": OriginalType,
    "originalProducts": OriginalProduct,
    "items": Item,
    "originalPurchases": OriginalPurchase,
    "finishedGoodsPurchases": BundlePurchase,
    "productions": Production,
    "originalOpenings": OriginalOpening,
    "salesInvoices": SalesInvoice,
    "ongoingOrders": OngoingOrder,
    "journalEntries": JournalEntry,
}

TRANSACTIONAL_COLLECTIONS = (
    "originalPurchases",
    "finishedGoodsPurchases",
    "productions",
    "originalOpenings",
    "salesInvoices",
    "ongoingOrders",
    "journalEntries",
)

SEQUENCE_COUNTERS = (
    "nextInvoiceNumber",
    "nextOngoingOrderNumber",
    "nextFinishedGoodsPurchaseNumber",
    "nextOriginalPurchaseNumber",
)


class AppState(CamelModel):
    suppliers: List[Party] = []
    sub_suppliers: List[SubSupplier] = []
    customers: List[Party] = []
    commission_agents: List[Party] = []
    freight_forwarders: List[Party] = []
    clearing_agents: List[Party] = []
    divisions: List[Division] = []
    sub_divisions: List[SubDivision] = []
    original_types: List[OriginalType] = []
    original_products: List[OriginalProduct] = []
    items: List[Item] = []
    original_purchases: List[OriginalPurchase] = []
    finished_goods_purchases: List[BundlePurchase] = []
    productions: List[Production] = []
    original_openings: List[OriginalOpening] = []
    sales_invoices: List[SalesInvoice] = []
    ongoing_orders: List[OngoingOrder] = []
    journal_entries: List[JournalEntry] = []
    counters: Dict[str, int] = {}

    def collection(self, entity: str) -> list:
        return getattr(self, attribute_for(entity))

    def get(self, entity: str, doc_id: str):
        for doc in self.collection(entity):
            if doc.id == doc_id:
                return doc
        return None

    def counter(self, name: str) -> int:
        return self.counters.get(name, 1)


def attribute_for(entity: str) -> str:
    """Map a camelCase collection name to its AppState attribute."""
    if entity not in COLLECTION_MODELS:
        raise ValueError(f"Unknown entity collection: {entity}")
    return "".join("_" + c.lower() if c.isupper() else c for c in entity)


# ============================================================================
# Commands
# ============================================================================

class _EntityCommand(BaseModel):
    entity: str

    @field_validator('entity')
    @classmethod
    def check_entity(cls, v):
        if v not in COLLECTION_MODELS:
            raise ValueError(f"Unknown entity collection: {v}")
        return v


class AddEntity(_EntityCommand):
    type: Literal["ADD_ENTITY"] = "ADD_ENTITY"
    data: Dict[str, Any]


class UpdateEntity(_EntityCommand):
    """Merge ``data`` into the document with ``data['id']``."""
    type: Literal["UPDATE_ENTITY"] = "UPDATE_ENTITY"
    data: Dict[str, Any]

    @field_validator('data')
    @classmethod
    def check_id(cls, v):
        if not v.get("id"):
            raise ValueError("UPDATE_ENTITY data must carry an id")
        return v


class DeleteEntity(_EntityCommand):
    type: Literal["DELETE_ENTITY"] = "DELETE_ENTITY"
    id: str


EntityAction = Annotated[Union[AddEntity, UpdateEntity, DeleteEntity], Field(discriminator="type")]


class BatchUpdate(BaseModel):
    type: Literal["BATCH_UPDATE"] = "BATCH_UPDATE"
    actions: List[EntityAction]


class RestoreState(BaseModel):
    type: Literal["RESTORE_STATE"] = "RESTORE_STATE"
    snapshot: Dict[str, Any]


class HardResetTransactions(BaseModel):
    type: Literal["HARD_RESET_TRANSACTIONS"] = "HARD_RESET_TRANSACTIONS"


Command = Annotated[
    Union[AddEntity, UpdateEntity, DeleteEntity, BatchUpdate, RestoreState, HardResetTransactions],
    Field(discriminator="type"),
]


# ============================================================================
# Command builders
# ============================================================================

def add(entity: str, model: CamelModel) -> AddEntity:
    return AddEntity(entity=entity, data=model.to_document())


def update(entity: str, doc_id: str, **fields) -> UpdateEntity:
    """Build an UPDATE_ENTITY from snake_case field values."""
    model_cls = COLLECTION_MODELS[entity]
    data: Dict[str, Any] = {"id": doc_id}
    for name, value in fields.items():
        info = model_cls.model_fields.get(name)
        if info is None:
            raise ValueError(f"{model_cls.__name__} has no field {name}")
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json", by_alias=True)
        elif isinstance(value, list):
            value = [v.model_dump(mode="json", by_alias=True) if isinstance(v, BaseModel) else v for v in value]
        data[info.alias or name] = value
    return UpdateEntity(entity=entity, data=data)


def replace(entity: str, model: CamelModel) -> UpdateEntity:
    return UpdateEntity(entity=entity, data=model.to_document())


def delete(entity: str, doc_id: str) -> DeleteEntity:
    return DeleteEntity(entity=entity, id=doc_id)
