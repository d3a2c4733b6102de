"""Realtime channel frames."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from courier.models.base import CamelModel, Location
from courier.models.order import OrderStatus
from courier.utils.security import Role


class RealtimeFrame(BaseModel):
    """Envelope for every websocket message in either direction."""

    event: str
    data: dict[str, Any] = Field(default_factory=dict)


class JoinPayload(CamelModel):
    actor_id: str
    role: Role


class LocationPayload(CamelModel):
    driver_id: UUID
    location: Location


class OrderStatusPayload(CamelModel):
    order_id: UUID
    status: OrderStatus
    restaurant_id: UUID | None = None
    driver_id: UUID | None = None
