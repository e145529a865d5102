from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Own copy of the OrderPlaced schema; OrderService defines the producer side.
# Only the JSON contract is shared between the two services.

class MessageModel(CamelModel):
    """Matches incoming keys case-insensitively, so ``OrderId`` reads as ``orderId``."""

    @model_validator(mode="before")
    @classmethod
    def _match_keys_ignoring_case(cls, data):
        if not isinstance(data, dict):
            return data
        known = {}
        for name, field in cls.model_fields.items():
            known[name.lower()] = name
            if field.alias:
                known[field.alias.lower()] = field.alias
        return {
            known.get(key.lower(), key) if isinstance(key, str) else key: value
            for key, value in data.items()
        }


class OrderItemMessage(MessageModel):
    product_id: int
    quantity: int = Field(..., ge=0)
    unit_price: Decimal = Decimal("0")


class OrderPlacedMessage(MessageModel):
    order_id: int
    customer_id: str = ""
    placed_at: Optional[datetime] = None
    items: List[OrderItemMessage] = Field(default_factory=list)


class Product(CamelModel):
    product_id: int
    product_name: str
    units_in_stock: int
