from datetime import datetime
from decimal import Decimal
from typing import Annotated, List

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Up to 15 significant digits, so a price survives the trip through a JSON
# number (a binary double) unchanged.
Price = Annotated[Decimal, Field(ge=0, max_digits=15, decimal_places=4)]


# ── Request / response DTOs ───────────────────────────────────────────────

class OrderItemRequest(CamelModel):
    product_id: int
    quantity: int = Field(..., ge=1)
    unit_price: Price


class CreateOrderRequest(CamelModel):
    customer_id: str
    items: List[OrderItemRequest] = Field(default_factory=list)


class OrderCreatedResponse(CamelModel):
    order_id: int
    customer_id: str
    status: str
    message: str


# ── Persistence ───────────────────────────────────────────────────────────

class OrderItem(CamelModel):
    product_id: int
    quantity: int
    unit_price: Decimal


class Order(CamelModel):
    order_id: int
    customer_id: str
    order_date: datetime
    status: str = "Placed"
    items: List[OrderItem] = Field(default_factory=list)


# ── Event published to the order-placed queue ─────────────────────────────
# InventoryService keeps its own copy of this schema; only the JSON is shared.

class OrderItemMessage(CamelModel):
    product_id: int
    quantity: int
    unit_price: Price

    @field_serializer("unit_price", when_used="json")
    def _price_as_number(self, value: Decimal) -> float:
        return float(value)


class OrderPlacedEvent(CamelModel):
    order_id: int
    customer_id: str
    placed_at: datetime
    items: List[OrderItemMessage]

    @classmethod
    def from_order(cls, order: Order) -> "OrderPlacedEvent":
        return cls(
            order_id=order.order_id,
            customer_id=order.customer_id,
            placed_at=order.order_date,
            items=[OrderItemMessage(**item.model_dump()) for item in order.items],
        )

    def to_json(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")
