import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from common import db as common_db
from order_service.config import ORDER_DB_PATH, RECENT_ORDERS_LIMIT
from order_service.models import Order, OrderItem, OrderItemRequest

logger = logging.getLogger(__name__)


class OrderStore:
    """Orders database owned by the order service."""

    def __init__(self, db_path: str = ORDER_DB_PATH):
        self.db_path = db_path

    def init(self) -> None:
        common_db.init_db(self.db_path, "orders")

    def insert_order(self, customer_id: str, items: List[OrderItemRequest]) -> Order:
        """Insert an order and its items in one transaction.

        The returned order is durably committed.
        """
        order_date = datetime.now(timezone.utc)
        conn = common_db.connect(self.db_path)
        try:
            with conn:
                cur = conn.execute(
                    "INSERT INTO orders (customer_id, order_date, status) VALUES (?, ?, ?)",
                    (customer_id, order_date.isoformat(), "Placed"),
                )
                order_id = cur.lastrowid
                conn.executemany(
                    "INSERT INTO order_items (order_id, product_id, quantity, unit_price) "
                    "VALUES (?, ?, ?, ?)",
                    [(order_id, i.product_id, i.quantity, str(i.unit_price)) for i in items],
                )
        finally:
            conn.close()

        logger.info("Order %s saved to orders database.", order_id)
        return Order(
            order_id=order_id,
            customer_id=customer_id,
            order_date=order_date,
            status="Placed",
            items=[OrderItem(product_id=i.product_id, quantity=i.quantity,
                             unit_price=i.unit_price) for i in items],
        )

    def get_order(self, order_id: int) -> Optional[Order]:
        conn = common_db.connect(self.db_path)
        try:
            row = conn.execute(
                "SELECT order_id, customer_id, order_date, status FROM orders WHERE order_id = ?",
                (order_id,),
            ).fetchone()
            if row is None:
                return None
            return self._hydrate(conn, row)
        finally:
            conn.close()

    def recent_orders(self, limit: int = RECENT_ORDERS_LIMIT) -> List[Order]:
        conn = common_db.connect(self.db_path)
        try:
            rows = conn.execute(
                "SELECT order_id, customer_id, order_date, status FROM orders "
                "ORDER BY order_id DESC LIMIT ?",
                (limit,),
            ).fetchall()
            return [self._hydrate(conn, row) for row in rows]
        finally:
            conn.close()

    @staticmethod
    def _hydrate(conn, row) -> Order:
        items = conn.execute(
            "SELECT product_id, quantity, unit_price FROM order_items WHERE order_id = ? ORDER BY id",
            (row["order_id"],),
        ).fetchall()
        return Order(
            order_id=row["order_id"],
            customer_id=row["customer_id"],
            order_date=datetime.fromisoformat(row["order_date"]),
            status=row["status"],
            items=[OrderItem(product_id=i["product_id"], quantity=i["quantity"],
                             unit_price=Decimal(i["unit_price"])) for i in items],
        )
