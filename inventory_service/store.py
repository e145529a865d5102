import logging
import sqlite3
from typing import List, Optional

from common import db as common_db
from common.errors import ReferenceNotFound, TransientStoreError
from inventory_service.config import INVENTORY_DB_PATH
from inventory_service.models import Product

logger = logging.getLogger(__name__)


def _row_to_product(row) -> Product:
    return Product(
        product_id=row["product_id"],
        product_name=row["product_name"],
        units_in_stock=row["units_in_stock"],
    )


class InventoryUnitOfWork:
    """One isolated transaction over the products table.

    Use as a context manager. Nothing is written unless ``commit`` is called;
    leaving the block any other way rolls back, and the connection is closed
    on every exit path. sqlite errors surface as TransientStoreError.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.conn = None
        self.committed = False

    def __enter__(self) -> "InventoryUnitOfWork":
        try:
            self.conn = common_db.connect(self.db_path)
        except sqlite3.Error as exc:
            raise TransientStoreError(f"Cannot open inventory database: {exc}") from exc
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if not self.committed:
                self.conn.rollback()
        finally:
            self.conn.close()
            self.conn = None

    def get_product(self, product_id: int) -> Product:
        """Raises ReferenceNotFound when the product is unknown."""
        try:
            row = self.conn.execute(
                "SELECT product_id, product_name, units_in_stock FROM products WHERE product_id = ?",
                (product_id,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise TransientStoreError(f"Reading product {product_id} failed: {exc}") from exc
        if row is None:
            raise ReferenceNotFound(product_id)
        return _row_to_product(row)

    def save_stock(self, product_id: int, units_in_stock: int) -> None:
        try:
            self.conn.execute(
                "UPDATE products SET units_in_stock = ? WHERE product_id = ?",
                (units_in_stock, product_id),
            )
        except sqlite3.Error as exc:
            raise TransientStoreError(f"Writing stock for product {product_id} failed: {exc}") from exc

    def commit(self) -> None:
        try:
            self.conn.commit()
        except sqlite3.Error as exc:
            raise TransientStoreError(f"Commit failed: {exc}") from exc
        self.committed = True


class UnitOfWorkFactory:
    """Hands out a brand-new InventoryUnitOfWork per call.

    The long-lived worker holds this factory, never a connection.
    """

    def __init__(self, db_path: str = INVENTORY_DB_PATH):
        self.db_path = db_path

    def __call__(self) -> InventoryUnitOfWork:
        return InventoryUnitOfWork(self.db_path)


class InventoryStore:
    """Read paths used by the HTTP API, plus seeding."""

    def __init__(self, db_path: str = INVENTORY_DB_PATH):
        self.db_path = db_path

    def init(self) -> None:
        common_db.init_db(self.db_path, "inventory")

    def unit_of_work_factory(self) -> UnitOfWorkFactory:
        return UnitOfWorkFactory(self.db_path)

    def list_products(self) -> List[Product]:
        conn = common_db.connect(self.db_path)
        try:
            rows = conn.execute(
                "SELECT product_id, product_name, units_in_stock FROM products ORDER BY product_id"
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_product(r) for r in rows]

    def get_product(self, product_id: int) -> Optional[Product]:
        conn = common_db.connect(self.db_path)
        try:
            row = conn.execute(
                "SELECT product_id, product_name, units_in_stock FROM products WHERE product_id = ?",
                (product_id,),
            ).fetchone()
        finally:
            conn.close()
        return _row_to_product(row) if row else None

    def upsert_product(self, product_id: int, product_name: str, units_in_stock: int) -> None:
        conn = common_db.connect(self.db_path)
        try:
            conn.execute(
                "INSERT INTO products (product_id, product_name, units_in_stock) VALUES (?, ?, ?) "
                "ON CONFLICT(product_id) DO UPDATE SET "
                "product_name = excluded.product_name, units_in_stock = excluded.units_in_stock",
                (product_id, product_name, units_in_stock),
            )
            conn.commit()
        finally:
            conn.close()
