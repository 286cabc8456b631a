"""Repository for the Order aggregate: lookups and the admin read side."""

from datetime import UTC, datetime

from orders.domain import orders
from orders.order.order import Order, OrderStatus, PaymentStatus, as_utc

_PAGE = 100


@orders.repository(part_of=Order)
class OrderRepository:
    """Repository for Order aggregate.

    The base repository provides standard CRUD operations; the methods below
    back the admin order list, search and dashboard statistics.
    """

    def find_by_number(self, order_number: str) -> Order | None:
        return self._dao.query.filter(order_number=order_number).all().first

    def next_order_number(self, today: datetime | None = None) -> str:
        """Next sequential order number, e.g. ``ORD260315000042``."""
        today = today or datetime.now(UTC)
        sequence = self._dao.query.all().total + 1
        while True:
            candidate = f"ORD{today:%y%m%d}{sequence:06d}"
            if self.find_by_number(candidate) is None:
                return candidate
            sequence += 1

    def _matching(self, **filters) -> list[Order]:
        query = self._dao.query.filter(**filters) if filters else self._dao.query
        records: list[Order] = []
        offset = 0
        while True:
            page = query.offset(offset).limit(_PAGE).all()
            records.extend(page.items)
            offset += _PAGE
            if offset >= page.total:
                return records

    def list_orders(
        self,
        order_status: str | None = None,
        payment_status: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Order], int]:
        """Newest-first page of orders plus the total number of matches.

        ``search`` matches order numbers and tracking numbers, case-insensitively.
        """
        filters = {}
        if order_status:
            filters["order_status"] = order_status
        if payment_status:
            filters["payment_status"] = payment_status

        records = self._matching(**filters)
        if search:
            needle = search.lower()
            records = [
                order
                for order in records
                if needle in (order.order_number or "").lower() or needle in (order.tracking_number or "").lower()
            ]

        records.sort(key=lambda order: as_utc(order.created_at), reverse=True)
        page = max(page, 1)
        start = (page - 1) * limit
        return records[start : start + limit], len(records)

    def stats(self) -> dict:
        """Counts per order status plus revenue from paid, non-cancelled orders."""
        counts = {status.value: self._dao.query.filter(order_status=status.value).all().total for status in OrderStatus}

        revenue_orders = [
            order
            for order in self._matching(payment_status=PaymentStatus.PAID.value)
            if order.order_status != OrderStatus.CANCELLED.value
        ]
        total_revenue = round(sum(order.pricing.total for order in revenue_orders), 2)
        return {
            "total_orders": self._dao.query.all().total,
            "by_status": counts,
            "paid_orders": len(revenue_orders),
            "total_revenue": total_revenue,
            "average_order_value": round(total_revenue / len(revenue_orders), 2) if revenue_orders else 0.0,
        }
