"""Order-related data models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from pydantic import Field, model_validator

from courier.models.base import CamelModel, Location, utcnow


class OrderStatus(str, Enum):
    """Order status progression."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    PICKED_UP = "pickedUp"
    EN_ROUTE = "enRoute"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Statuses a driver may request through a status update
DRIVER_SETTABLE_STATUSES = (
    OrderStatus.PICKED_UP,
    OrderStatus.EN_ROUTE,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
)

ACTIVE_STATUSES = (
    OrderStatus.ACCEPTED,
    OrderStatus.PICKED_UP,
    OrderStatus.EN_ROUTE,
)


class OrderItem(CamelModel):
    """Individual line item in an order."""

    name: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    price: Decimal = Field(ge=0)


class OrderCreate(CamelModel):
    """Fields supplied when an order is placed."""

    restaurant_id: UUID
    customer_id: UUID
    items: list[OrderItem] = Field(min_length=1)
    total_amount: Decimal | None = Field(default=None, ge=0)
    delivery_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    pickup_location: Location
    dropoff_location: Location


class Order(CamelModel):
    """One delivery job."""

    id: UUID = Field(default_factory=uuid4)
    restaurant_id: UUID
    customer_id: UUID
    driver_id: UUID | None = None
    status: OrderStatus = OrderStatus.PENDING

    items: list[OrderItem] = Field(default_factory=list)
    total_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    delivery_fee: Decimal = Field(default=Decimal("0.00"), ge=0)

    pickup_location: Location
    dropoff_location: Location

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    accepted_at: datetime | None = None
    delivered_at: datetime | None = None

    @model_validator(mode="after")
    def check_assignment(self) -> "Order":
        """A pending order has no driver; an order in progress or delivered has one."""
        if self.status == OrderStatus.PENDING and self.driver_id is not None:
            raise ValueError("pending orders cannot have an assigned driver")
        if self.status in (*ACTIVE_STATUSES, OrderStatus.DELIVERED) and self.driver_id is None:
            raise ValueError(f"{self.status.value} orders must have an assigned driver")
        return self

    @classmethod
    def from_create(cls, data: OrderCreate) -> "Order":
        items_total = sum((item.price * item.quantity for item in data.items), Decimal("0.00"))
        return cls(
            restaurant_id=data.restaurant_id,
            customer_id=data.customer_id,
            items=data.items,
            total_amount=data.total_amount if data.total_amount is not None else items_total,
            delivery_fee=data.delivery_fee,
            pickup_location=data.pickup_location,
            dropoff_location=data.dropoff_location,
        )
