"""MessageEnvelope and OutboundMessage — immutable wrappers for transport."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MessageEnvelope(BaseModel):
    """Immutable unit delivered by the broker.

    Carries the opaque payload plus delivery metadata. Settlement is an action
    on the receiver that delivered it, never a change to the envelope.
    """

    model_config = ConfigDict(frozen=True)

    message_id: str = Field(..., description="Broker-assigned message identifier")
    payload: bytes = b""
    delivery_count: int = Field(default=1, ge=1, description="1 on first delivery")
    enqueued_at: datetime | None = None
    lock_token: str | None = Field(
        default=None, description="Delivery-scoped handle used for settlement"
    )
    content_type: str | None = None
    properties: dict[str, str] = Field(default_factory=dict)


class OutboundMessage(BaseModel):
    """Immutable unit handed to a sender for enqueue."""

    model_config = ConfigDict(frozen=True)

    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    body: bytes
    content_type: str = "application/json"
    subject: str | None = None
    properties: dict[str, str] = Field(default_factory=dict)
