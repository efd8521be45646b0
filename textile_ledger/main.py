from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from textile_ledger.api.v1 import admin, item, ledger, order, production, purchase, sales, setup, stock_ledger
from textile_ledger.common.error_handlers import register_error_handlers
from textile_ledger.core.config import settings
from textile_ledger.core.database import Base, SessionLocal, engine
from textile_ledger.core.store import DataStore
from textile_ledger.logger_config import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    # alembic owns the schema outside local development
    if settings.APP_ENV == "local":
        Base.metadata.create_all(bind=engine)
    store = DataStore(SessionLocal)
    store.load()
    app.state.store = store
    logger.info(f"Textile ledger started ({settings.APP_ENV})")
    yield
    engine.dispose()


app = FastAPI(title="Textile Ledger", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Register API routers
app.include_router(setup.router, prefix="/api/v1/setup", tags=["setup"])
app.include_router(item.router, prefix="/api/v1/items", tags=["items"])
app.include_router(
    purchase.router, prefix="/api/v1/purchases", tags=["purchases"])
app.include_router(
    production.router, prefix="/api/v1/productions", tags=["productions"])
app.include_router(sales.router, prefix="/api/v1/invoices", tags=["sales"])
app.include_router(order.router, prefix="/api/v1/orders", tags=["orders"])
app.include_router(
    stock_ledger.router, prefix="/api/v1/stock", tags=["stock ledger"])
app.include_router(ledger.router, prefix="/api/v1/ledger", tags=["ledger"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["admin"])


@app.get("/")
def read_root():
    return {"message": "Welcome to the Textile Ledger APIs!"}
