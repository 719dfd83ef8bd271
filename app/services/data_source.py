"""
Supabase Data Source

Read-only access to the shop's operational tables (service orders, sales,
clients, products, payments, credit sales).

Uses the service key when present so reports are not limited by RLS.
The supabase client is synchronous; queries run on worker threads so that
an assembler's sibling fetches overlap.
"""

import asyncio
import logging
import os
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from fastapi import HTTPException
from supabase import create_client, Client

from app.analytics.periods import to_store_timestamp
from app.models.enums import CreditSaleStatus

logger = logging.getLogger(__name__)

ORDER_COLUMNS = "*"
ORDER_TECHNICIAN_EMBED = "technicians(id, name)"
ORDER_ITEMS_EMBED = "service_order_items(*, services(id, name))"
# PostgREST caps each response at max-rows (1000 on hosted Supabase)
PAGE_SIZE = int(os.getenv("SUPABASE_PAGE_SIZE", "1000"))

CLIENT_HISTORY_COLUMNS = (
    "*, "
    "service_orders(id, total_price, status, created_at, completed_at, "
    "service_order_items(item_type, quantity, unit_price, services(id, name))), "
    "sales(id, total_price, payment_status, payment_method, created_at)"
)


class SupabaseDataSource:
    """Fetches raw rows from Supabase, filtered by inclusive date range"""

    def __init__(self):
        supabase_url = os.getenv("SUPABASE_URL")
        supabase_key = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY")

        if not supabase_url or not supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY/SUPABASE_SERVICE_KEY required")

        self.supabase: Client = create_client(supabase_url, supabase_key)

        # Table names (configurable)
        self.orders_table = os.getenv("ORDERS_TABLE", "service_orders")
        self.order_items_table = os.getenv("ORDER_ITEMS_TABLE", "service_order_items")
        self.sales_table = os.getenv("SALES_TABLE", "sales")
        self.clients_table = os.getenv("CLIENTS_TABLE", "clients")
        self.products_table = os.getenv("PRODUCTS_TABLE", "products")
        self.payments_table = os.getenv("PAYMENTS_TABLE", "payments")
        self.credit_sales_table = os.getenv("CREDIT_SALES_TABLE", "credit_sales")

    async def _execute(self, build_query: Callable[[], Any], source: str) -> List[Dict[str, Any]]:
        """Run a query page by page until a short page comes back."""
        rows: List[Dict[str, Any]] = []
        offset = 0
        while True:
            query = build_query().order("id").range(offset, offset + PAGE_SIZE - 1)
            result = await asyncio.to_thread(query.execute)
            page = result.data or []
            rows.extend(page)
            if len(page) < PAGE_SIZE:
                break
            offset += PAGE_SIZE
        logger.debug(f"[DataSource] {source}: {len(rows)} rows")
        return rows

    @staticmethod
    def _between(query, column: str, start: Optional[datetime], end: Optional[datetime]):
        if start is not None:
            query = query.gte(column, to_store_timestamp(start))
        if end is not None:
            query = query.lte(column, to_store_timestamp(end))
        return query

    # =========================================================================
    # Operational records
    # =========================================================================

    async def fetch_service_orders(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        technician_id: Optional[Any] = None,
        client_id: Optional[Any] = None,
        status: Optional[str] = None,
        with_items: bool = False,
        with_technician: bool = False
    ) -> List[Dict[str, Any]]:
        """Service orders created in [start, end]."""
        columns = [ORDER_COLUMNS]
        if with_technician:
            columns.append(ORDER_TECHNICIAN_EMBED)
        if with_items:
            columns.append(ORDER_ITEMS_EMBED)

        def build():
            query = self.supabase.table(self.orders_table).select(", ".join(columns))
            query = self._between(query, "created_at", start, end)
            if technician_id is not None:
                query = query.eq("technician_id", technician_id)
            if client_id is not None:
                query = query.eq("client_id", client_id)
            if status is not None:
                query = query.eq("status", status)
            return query

        return await self._execute(build, self.orders_table)

    async def fetch_order_items(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """Service-type line items whose parent order was created in [start, end]."""
        def build():
            query = self.supabase.table(self.order_items_table).select(
                "*, service_orders!inner(status, created_at, completed_at), services(id, name)"
            ).eq("item_type", "service")
            return self._between(query, "service_orders.created_at", start, end)

        return await self._execute(build, self.order_items_table)

    async def fetch_sales(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        client_id: Optional[Any] = None
    ) -> List[Dict[str, Any]]:
        """Sales created in [start, end]."""
        def build():
            query = self.supabase.table(self.sales_table).select("*")
            query = self._between(query, "created_at", start, end)
            if client_id is not None:
                query = query.eq("client_id", client_id)
            return query

        return await self._execute(build, self.sales_table)

    async def fetch_clients(
        self,
        with_history: bool = False,
        client_id: Optional[Any] = None
    ) -> List[Dict[str, Any]]:
        """All clients, optionally with their orders and sales embedded."""
        columns = CLIENT_HISTORY_COLUMNS if with_history else "id, name, created_at"

        def build():
            query = self.supabase.table(self.clients_table).select(columns)
            if client_id is not None:
                query = query.eq("id", client_id)
            return query

        return await self._execute(build, self.clients_table)

    async def fetch_products(self) -> List[Dict[str, Any]]:
        return await self._execute(
            lambda: self.supabase.table(self.products_table).select("id, name, price, stock_quantity"),
            self.products_table
        )

    # =========================================================================
    # Financial movements
    # =========================================================================

    async def fetch_payments(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        payment_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Payments dated in [start, end]; open bounds are unbounded."""
        def build():
            query = self.supabase.table(self.payments_table).select("*")
            query = self._between(query, "payment_date", start, end)
            if payment_type is not None:
                query = query.eq("payment_type", payment_type)
            return query

        return await self._execute(build, self.payments_table)

    async def fetch_open_credit_sales(self) -> List[Dict[str, Any]]:
        """Credit sales (crediário) not fully paid."""
        return await self._execute(
            lambda: self.supabase.table(self.credit_sales_table)
            .select("id, client_id, balance_due, status")
            .neq("status", CreditSaleStatus.PAID.value),
            self.credit_sales_table
        )


# Singleton instance
_data_source: Optional[SupabaseDataSource] = None


def get_data_source() -> SupabaseDataSource:
    """Get or create the Supabase data source"""
    global _data_source
    if _data_source is None:
        _data_source = SupabaseDataSource()
    return _data_source


def require_data_source() -> SupabaseDataSource:
    """FastAPI dependency: data source, or HTTP 500 when not configured."""
    try:
        return get_data_source()
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e))
