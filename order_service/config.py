import os

from common.db import default_db_path

ORDER_DB_PATH = default_db_path("ORDER_DB_PATH", "orders.db")
SERVICE_PORT = int(os.environ.get("SERVICE_PORT", "5021"))

RECENT_ORDERS_LIMIT = 20
