import os

# "rabbitmq" in deployment, "memory" for single-process local runs.
QUEUE_BACKEND = os.environ.get("QUEUE_BACKEND", "rabbitmq")

RABBITMQ_HOST = os.environ.get("RABBITMQ_HOST", "localhost")
RABBITMQ_PORT = int(os.environ.get("RABBITMQ_PORT", "5672"))
RABBITMQ_USER = os.environ.get("RABBITMQ_USER", "guest")
RABBITMQ_PASSWORD = os.environ.get("RABBITMQ_PASSWORD", "guest")
RABBITMQ_VHOST = os.environ.get("RABBITMQ_VHOST", "/")

# Queue
ORDER_PLACED_QUEUE = os.environ.get("ORDER_PLACED_QUEUE", "order-placed")
ORDER_PLACED_SUBJECT = "OrderPlaced"
CONTENT_TYPE_JSON = "application/json"

# Dead-letter
DEAD_LETTER_EXCHANGE = os.environ.get("DEAD_LETTER_EXCHANGE", f"{ORDER_PLACED_QUEUE}.dlx")
DEAD_LETTER_QUEUE = os.environ.get("DEAD_LETTER_QUEUE", f"{ORDER_PLACED_QUEUE}.dlq")
MAX_DELIVERY_COUNT = int(os.environ.get("MAX_DELIVERY_COUNT", "10"))

# Connection
CONNECT_RETRIES = int(os.environ.get("CONNECT_RETRIES", "15"))
CONNECT_DELAY_S = float(os.environ.get("CONNECT_DELAY_S", "2"))
RECEIVE_TIMEOUT_S = float(os.environ.get("RECEIVE_TIMEOUT_S", "1.0"))
