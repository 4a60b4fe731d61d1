"""Domain records carried as message payloads."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_pascal

# Written as a JSON number, the way the .NET side reads and writes decimals.
JsonDecimal = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]


class Order(BaseModel):
    """An order placed by a customer.

    On the wire the fields are PascalCase (``Id``, ``CustomerName``, ``Price``,
    ``Quantity``, ``OrderDate``), so orders interoperate with producers and
    consumers written against the same contract in other stacks. Python code
    may use either the field names or the aliases.

    Serialized once by the producer and immutable for the life of the message.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_pascal,
        populate_by_name=True,
    )

    id: int
    customer_name: str = Field(..., min_length=1)
    price: JsonDecimal = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    order_date: datetime
    notes: str | None = None
