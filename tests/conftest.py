from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from textile_ledger.core.database import Base, build_engine
from textile_ledger.core.dependencies import get_store
from textile_ledger.core.store import DataStore
from textile_ledger.main import app
from textile_ledger.schemas.purchase import CostLine, OriginalPurchaseCreate, PurchaseLine
from textile_ledger.schemas.setup import Item, OriginalType, Party
from textile_ledger.schemas.state import BatchUpdate, add
from textile_ledger.services.purchase_service import create_original_purchase

PURCHASE_DATE = date(2026, 3, 2)

ADMIN_HEADERS = {"X-User-Id": "u-admin", "X-User-Name": "Admin", "X-User-Admin": "true"}
CLERK_HEADERS = {"X-User-Id": "u-clerk", "X-User-Permissions": "purchases,sales,production,setup,reports"}


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def store(session_factory):
    store = DataStore(session_factory)
    store.load()
    return store


@pytest.fixture
def seeded_store(store):
    """Reference data shared by most service tests."""
    store.dispatch(BatchUpdate(actions=[
        add("suppliers", Party(id="SUP-001", name="Gulf Textiles")),
        add("suppliers", Party(id="SUP-002", name="Karachi Rags")),
        add("customers", Party(id="CUS-001", name="Lagos Traders")),
        add("freightForwarders", Party(id="FFW-001", name="Blue Line Freight")),
        add("clearingAgents", Party(id="CLA-001", name="Port Clearing Co")),
        add("commissionAgents", Party(id="CA-001", name="A. Broker")),
        add("originalTypes", OriginalType(id="OT-001", name="Mixed Rags", packing_type="Kg", packing_size=1)),
        add("originalTypes", OriginalType(id="OT-002", name="Cream Bales", packing_type="Bales", packing_size=50)),
        add("items", Item(
            id="ITM-001", name="Cotton T-Shirts Grade A", packing_type="Bales", packing_size=100,
            avg_production_price=1.5, avg_sales_price=2.2,
        )),
        add("items", Item(
            id="ITM-002", name="Loose Wipers", packing_type="Kg",
            avg_production_price=0.8, avg_sales_price=1.1,
        )),
    ]))
    return store


@pytest.fixture
def aed_purchase(seeded_store):
    """1000 kg at 2.5 AED/kg, rate 0.2725, freight 50 USD."""
    result = create_original_purchase(seeded_store, OriginalPurchaseCreate(
        date=PURCHASE_DATE,
        supplier_id="SUP-001",
        currency="AED",
        conversion_rate=0.2725,
        lines=[PurchaseLine(original_type_id="OT-001", weight=1000, rate=2.5)],
        freight=CostLine(amount=50, currency="USD", conversion_rate=1.0, agent_id="FFW-001"),
        batch_number="B-17",
    ))
    return result.document_id


@pytest.fixture
def client(seeded_store):
    app.dependency_overrides[get_store] = lambda: seeded_store
    yield TestClient(app)
    app.dependency_overrides.clear()
