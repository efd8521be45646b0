from typing import List, Optional

from textile_ledger.core.exceptions import LedgerValidationError, NotFoundError
from textile_ledger.core.store import DataStore
from textile_ledger.logger_config import logger
from textile_ledger.schemas.results import OperationResult
from textile_ledger.schemas.sales import (
    InvoiceCreate,
    InvoiceItem,
    OngoingOrder,
    OrderCreate,
    OrderLine,
    OrderStatus,
    ShipmentRequest,
)
from textile_ledger.schemas.state import AppState, BatchUpdate, add
from textile_ledger.services.conversion import is_kg_packed, to_kg
from textile_ledger.services.sales_service import build_invoice
from textile_ledger.utils.id_generator import ONGOING_ORDER_PREFIX, generate_dated_id


def order_totals(state: AppState, lines: List[OrderLine]) -> tuple:
    """(packages, kg). Kg items count toward kg only, as on invoices."""
    bales = 0.0
    total_kg = 0.0
    for line in lines:
        item = state.get("items", line.item_id)
        if item is None:
            raise NotFoundError(f"Item {line.item_id} not found")
        if not is_kg_packed(item):
            bales += line.quantity
        total_kg += to_kg(line.quantity, item)
    return bales, total_kg


def derive_status(lines: List[OrderLine]) -> OrderStatus:
    if all(line.shipped_quantity >= line.quantity for line in lines):
        return OrderStatus.COMPLETED
    if any(line.shipped_quantity > 0 for line in lines):
        return OrderStatus.PARTIALLY_SHIPPED
    return OrderStatus.ACTIVE


def get_order(state: AppState, order_id: str) -> OngoingOrder:
    order = state.get("ongoingOrders", order_id)
    if order is None:
        raise NotFoundError(f"Ongoing order {order_id} not found")
    return order


def list_orders(state: AppState, status: Optional[OrderStatus] = None, customer_id: Optional[str] = None) -> List[OngoingOrder]:
    rows = state.ongoing_orders
    if status:
        rows = [o for o in rows if o.status == status]
    if customer_id:
        rows = [o for o in rows if o.customer_id == customer_id]
    return sorted(rows, key=lambda o: (o.date, o.id), reverse=True)


def create_order(store: DataStore, data: OrderCreate) -> OperationResult:
    state = store.state
    if state.get("customers", data.customer_id) is None:
        raise NotFoundError(f"Customer {data.customer_id} not found")
    item_ids = [line.item_id for line in data.lines]
    if len(item_ids) != len(set(item_ids)):
        raise LedgerValidationError("Each item may appear only once per order")

    lines = [OrderLine(item_id=line.item_id, quantity=line.quantity) for line in data.lines]
    bales, total_kg = order_totals(state, lines)
    sequence = store.allocate("nextOngoingOrderNumber")
    order = OngoingOrder(
        id=generate_dated_id(ONGOING_ORDER_PREFIX, sequence),
        date=data.date,
        customer_id=data.customer_id,
        lines=lines,
        total_bales=bales,
        total_kg=total_kg,
    )
    store.dispatch(add("ongoingOrders", order))
    logger.info(f"Ongoing order {order.id} created: {bales} bales, {total_kg} kg")
    return OperationResult(document_id=order.id, data=order.to_document())


def ship_order(store: DataStore, order_id: str, shipment: ShipmentRequest) -> OperationResult:
    """
    Turn part of an order into an Unposted invoice and record the shipped
    quantities, in one batch.
    """
    state = store.state
    order = get_order(state, order_id)
    if order.status in (OrderStatus.CANCELLED, OrderStatus.COMPLETED):
        raise LedgerValidationError(f"Order {order_id} is {order.status} and cannot be shipped")

    lines_by_item = {line.item_id: line for line in order.lines}
    for item_id, qty in shipment.quantities.items():
        line = lines_by_item.get(item_id)
        if line is None:
            raise LedgerValidationError(f"Item {item_id} is not on order {order_id}")
        if qty > line.remaining:
            raise LedgerValidationError(
                f"Cannot ship {qty} of {item_id}: only {line.remaining} remaining on order {order_id}"
            )

    invoice = build_invoice(
        store,
        InvoiceCreate(
            date=shipment.date,
            customer_id=order.customer_id,
            items=[InvoiceItem(item_id=item_id, quantity=qty) for item_id, qty in shipment.quantities.items()],
        ),
        source_order_id=order.id,
    )
    lines = [
        line.model_copy(update={"shipped_quantity": line.shipped_quantity + shipment.quantities.get(line.item_id, 0.0)})
        for line in order.lines
    ]
    shipped = order.model_copy(update={"lines": lines, "status": derive_status(lines).value})

    store.dispatch(BatchUpdate(actions=[add("salesInvoices", invoice), add("ongoingOrders", shipped)]))
    logger.info(f"Order {order_id} shipped as invoice {invoice.id}; status {shipped.status}")
    return OperationResult(document_id=invoice.id, data={"order_status": shipped.status})


def cancel_order(store: DataStore, order_id: str) -> OperationResult:
    order = get_order(store.state, order_id)
    if order.status == OrderStatus.COMPLETED:
        raise LedgerValidationError(f"Order {order_id} is already completed")
    cancelled = order.model_copy(update={"status": OrderStatus.CANCELLED.value})
    store.dispatch(add("ongoingOrders", cancelled))
    logger.info(f"Order {order_id} cancelled")
    return OperationResult(document_id=order_id)


def unship(order: OngoingOrder, invoice_lines: List[InvoiceItem]) -> OngoingOrder:
    """Order with the quantities of a deleted invoice returned to it."""
    returned = {}
    for line in invoice_lines:
        returned[line.item_id] = returned.get(line.item_id, 0.0) + line.quantity
    lines = [
        line.model_copy(update={"shipped_quantity": max(line.shipped_quantity - returned.get(line.item_id, 0.0), 0.0)})
        for line in order.lines
    ]
    status = order.status
    if status != OrderStatus.CANCELLED:
        status = derive_status(lines).value
    return order.model_copy(update={"lines": lines, "status": status})
