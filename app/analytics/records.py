"""
Metric Records

Normalizes raw store rows (service orders, sales, order items, payments)
into the single MetricRecord shape every calculator consumes.

Missing fields are never an error: amounts default to 0, timestamps to None.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from app.analytics.numeric import to_amount, to_int
from app.analytics.periods import parse_timestamp
from app.models.enums import OrderStatus, PaymentMethod, PaymentType

UNKNOWN_SERVICE = "Serviço Desconhecido"
UNKNOWN_TECHNICIAN = "Técnico Desconhecido"
UNASSIGNED_TECHNICIAN = "Não atribuído"

AMOUNT_FIELDS = ("total_price", "valor", "amount")


@dataclass(frozen=True)
class LineItem:
    """Service order line item"""
    service_id: Optional[Any]
    name: str
    item_type: str
    quantity: int
    unit_price: float

    @property
    def revenue(self) -> float:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class MetricRecord:
    """Transaction-like record consumed by calculators and aggregators"""
    id: Any
    amount: float
    status: str
    created_at: Optional[datetime]
    completed_at: Optional[datetime] = None
    # Actor (technician) and subject (customer, service, product)
    actor_id: Optional[Any] = None
    actor_name: Optional[str] = None
    subject_id: Optional[Any] = None
    subject_name: Optional[str] = None
    payment_method: str = PaymentMethod.CASH.value
    category: Optional[str] = None
    items: List[LineItem] = field(default_factory=list)

    @property
    def is_completed(self) -> bool:
        return self.status == OrderStatus.COMPLETED.value


def _amount(row: Dict[str, Any]) -> float:
    for name in AMOUNT_FIELDS:
        if row.get(name) is not None:
            return to_amount(row.get(name))
    return 0.0


def _nested(row: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Embedded PostgREST relation; may come back as a dict, list or None."""
    value = row.get(key)
    if isinstance(value, list):
        value = value[0] if value else None
    return value if isinstance(value, dict) else {}


def line_item_from_row(row: Dict[str, Any]) -> LineItem:
    service = _nested(row, "services")
    quantity = to_int(row.get("quantity"), default=1) or 1
    return LineItem(
        service_id=row.get("service_id") or service.get("id"),
        name=service.get("name") or UNKNOWN_SERVICE,
        item_type=row.get("item_type") or "service",
        quantity=max(quantity, 0),
        unit_price=to_amount(row.get("unit_price")),
    )


def order_from_row(row: Dict[str, Any]) -> MetricRecord:
    """service_orders row (optionally with technicians/service_order_items embedded)"""
    technician = _nested(row, "technicians")
    items = [line_item_from_row(item) for item in row.get("service_order_items") or []]

    return MetricRecord(
        id=row.get("id"),
        amount=_amount(row),
        status=str(row.get("status") or ""),
        created_at=parse_timestamp(row.get("created_at")),
        completed_at=parse_timestamp(row.get("completed_at")),
        actor_id=row.get("technician_id") or technician.get("id"),
        actor_name=technician.get("name"),
        subject_id=row.get("client_id"),
        payment_method=PaymentMethod.normalize(row.get("payment_method")),
        items=items,
    )


def sale_from_row(row: Dict[str, Any]) -> MetricRecord:
    client = _nested(row, "clients")
    return MetricRecord(
        id=row.get("id"),
        amount=_amount(row),
        status=str(row.get("payment_status") or ""),
        created_at=parse_timestamp(row.get("created_at")),
        subject_id=row.get("client_id") or client.get("id"),
        subject_name=client.get("name"),
        payment_method=PaymentMethod.normalize(row.get("payment_method")),
    )


def order_item_from_row(row: Dict[str, Any]) -> MetricRecord:
    """
    service_order_items row joined with its order and service.

    Status and timestamps come from the parent order; the subject is the
    service, the amount is the line revenue.
    """
    order = _nested(row, "service_orders")
    item = line_item_from_row(row)
    return MetricRecord(
        id=row.get("id"),
        amount=item.revenue,
        status=str(order.get("status") or ""),
        created_at=parse_timestamp(order.get("created_at")),
        completed_at=parse_timestamp(order.get("completed_at")),
        subject_id=item.service_id,
        subject_name=item.name,
        items=[item],
    )


def payment_from_row(row: Dict[str, Any]) -> MetricRecord:
    """payments row; category tells purchases apart from operational spend."""
    payment_type = str(row.get("payment_type") or "")
    category = None
    if payment_type == PaymentType.EXPENSE.value:
        is_purchase = row.get("accounts_payable_id") or row.get("stock_movement_id")
        category = "purchases" if is_purchase else "operational"

    return MetricRecord(
        id=row.get("id"),
        amount=_amount(row),
        status=payment_type,
        created_at=parse_timestamp(row.get("payment_date") or row.get("created_at")),
        category=category,
    )


def orders_from_rows(rows: Iterable[Dict[str, Any]]) -> List[MetricRecord]:
    return [order_from_row(r) for r in rows or []]


def sales_from_rows(rows: Iterable[Dict[str, Any]]) -> List[MetricRecord]:
    return [sale_from_row(r) for r in rows or []]


def order_items_from_rows(rows: Iterable[Dict[str, Any]]) -> List[MetricRecord]:
    return [order_item_from_row(r) for r in rows or []]


def payments_from_rows(rows: Iterable[Dict[str, Any]]) -> List[MetricRecord]:
    return [payment_from_row(r) for r in rows or []]


@dataclass
class CustomerHistory:
    """A client with their service orders and sales"""
    customer_id: Any
    customer_name: str
    orders: List[MetricRecord] = field(default_factory=list)
    sales: List[MetricRecord] = field(default_factory=list)


def customer_history_from_row(row: Dict[str, Any]) -> CustomerHistory:
    """clients row with service_orders (and their items) and sales embedded"""
    return CustomerHistory(
        customer_id=row.get("id"),
        customer_name=row.get("name") or "",
        orders=orders_from_rows(row.get("service_orders") or []),
        sales=sales_from_rows(row.get("sales") or []),
    )
