import os

from common.db import default_db_path

INVENTORY_DB_PATH = default_db_path("INVENTORY_DB_PATH", "inventory.db")
SERVICE_PORT = int(os.environ.get("SERVICE_PORT", "5022"))

# Worker
RECONNECT_DELAY_S = float(os.environ.get("RECONNECT_DELAY_S", "5"))
SHUTDOWN_TIMEOUT_S = float(os.environ.get("SHUTDOWN_TIMEOUT_S", "30"))
