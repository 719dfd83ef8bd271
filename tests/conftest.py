"""
Test Suite Configuration
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest

from app.analytics.periods import parse_timestamp

# Wednesday, mid-March
FIXED_NOW = datetime(2025, 3, 19, 15, 30, 0)


class FakeDataSource:
    """In-memory stand-in for SupabaseDataSource with the same fetch methods"""

    def __init__(
        self,
        orders: Optional[List[Dict[str, Any]]] = None,
        order_items: Optional[List[Dict[str, Any]]] = None,
        sales: Optional[List[Dict[str, Any]]] = None,
        clients: Optional[List[Dict[str, Any]]] = None,
        products: Optional[List[Dict[str, Any]]] = None,
        payments: Optional[List[Dict[str, Any]]] = None,
        credit_sales: Optional[List[Dict[str, Any]]] = None,
        failing: tuple = (),
    ):
        self.orders = orders or []
        self.order_items = order_items or []
        self.sales = sales or []
        self.clients = clients or []
        self.products = products or []
        self.payments = payments or []
        self.credit_sales = credit_sales or []
        self.failing = set(failing)
        self.calls: List[str] = []

    def _check(self, name: str):
        self.calls.append(name)
        if name in self.failing:
            raise ConnectionError(f"{name} unavailable")

    @staticmethod
    def _between(rows, moment_of, start, end):
        if start is None and end is None:
            return list(rows)
        selected = []
        for row in rows:
            moment = parse_timestamp(moment_of(row))
            if moment is None:
                continue
            if start is not None and moment < start:
                continue
            if end is not None and moment > end:
                continue
            selected.append(row)
        return selected

    async def fetch_service_orders(self, start=None, end=None, technician_id=None, client_id=None,
                                   status=None, with_items=False, with_technician=False):
        self._check("fetch_service_orders")
        rows = self._between(self.orders, lambda r: r.get("created_at"), start, end)
        if technician_id is not None:
            rows = [r for r in rows if r.get("technician_id") == technician_id]
        if client_id is not None:
            rows = [r for r in rows if r.get("client_id") == client_id]
        if status is not None:
            rows = [r for r in rows if r.get("status") == status]
        return rows

    async def fetch_order_items(self, start=None, end=None):
        self._check("fetch_order_items")
        return self._between(
            self.order_items, lambda r: (r.get("service_orders") or {}).get("created_at"), start, end
        )

    async def fetch_sales(self, start=None, end=None, client_id=None):
        self._check("fetch_sales")
        rows = self._between(self.sales, lambda r: r.get("created_at"), start, end)
        if client_id is not None:
            rows = [r for r in rows if r.get("client_id") == client_id]
        return rows

    async def fetch_clients(self, with_history=False, client_id=None):
        self._check("fetch_clients")
        if client_id is not None:
            return [c for c in self.clients if c.get("id") == client_id]
        return list(self.clients)

    async def fetch_products(self):
        self._check("fetch_products")
        return list(self.products)

    async def fetch_payments(self, start=None, end=None, payment_type=None):
        self._check("fetch_payments")
        rows = self._between(self.payments, lambda r: r.get("payment_date"), start, end)
        if payment_type is not None:
            rows = [r for r in rows if r.get("payment_type") == payment_type]
        return rows

    async def fetch_open_credit_sales(self):
        self._check("fetch_open_credit_sales")
        return [c for c in self.credit_sales if c.get("status") != "paid"]


# ============== Row factories ==============

def order_row(
    id: Any,
    status: str = "completed",
    created_at: str = "2025-03-19T09:00:00",
    completed_at: Optional[str] = None,
    total_price: Any = 100,
    technician: Optional[Dict[str, Any]] = None,
    client_id: Any = None,
    payment_method: Optional[str] = None,
    items: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    return {
        "id": id,
        "status": status,
        "created_at": created_at,
        "completed_at": completed_at,
        "total_price": total_price,
        "technician_id": technician["id"] if technician else None,
        "technicians": technician,
        "client_id": client_id,
        "payment_method": payment_method,
        "service_order_items": items or [],
    }


def item_row(
    name: Optional[str],
    unit_price: Any,
    quantity: Any = 1,
    item_type: str = "service",
    service_id: Any = None,
    order: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    row = {
        "service_id": service_id,
        "item_type": item_type,
        "quantity": quantity,
        "unit_price": unit_price,
        "services": {"id": service_id, "name": name} if name else None,
    }
    if order is not None:
        row["service_orders"] = order
    return row


def sale_row(id: Any, total_price: Any = 50, created_at: str = "2025-03-19T11:00:00",
             client_id: Any = None, payment_method: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": id,
        "total_price": total_price,
        "created_at": created_at,
        "client_id": client_id,
        "payment_method": payment_method,
        "payment_status": "paid",
    }


def payment_row(id: Any, amount: Any, payment_type: str = "expense", payment_date: str = "2025-03-19T12:00:00",
                accounts_payable_id: Any = None, stock_movement_id: Any = None) -> Dict[str, Any]:
    return {
        "id": id,
        "amount": amount,
        "payment_type": payment_type,
        "payment_date": payment_date,
        "accounts_payable_id": accounts_payable_id,
        "stock_movement_id": stock_movement_id,
    }


@pytest.fixture
def now() -> datetime:
    """Fixed reference time"""
    return FIXED_NOW


@pytest.fixture
def make_order():
    return order_row


@pytest.fixture
def make_item():
    return item_row


@pytest.fixture
def make_sale():
    return sale_row


@pytest.fixture
def make_payment():
    return payment_row


@pytest.fixture
def make_source():
    """Build a FakeDataSource from keyword row lists"""
    return FakeDataSource


@pytest.fixture
def empty_source() -> FakeDataSource:
    return FakeDataSource()


@pytest.fixture
def failing_source() -> FakeDataSource:
    """Every fetch raises"""
    return FakeDataSource(failing=(
        "fetch_service_orders",
        "fetch_order_items",
        "fetch_sales",
        "fetch_clients",
        "fetch_products",
        "fetch_payments",
        "fetch_open_credit_sales",
    ))
