"""First-come-first-served order dispatch and driver earnings."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from courier.errors import ValidationError
from courier.models.base import CamelModel
from courier.models.order import DRIVER_SETTABLE_STATUSES, Order, OrderCreate, OrderStatus
from courier.realtime.presence import PresenceHub, actor_room
from courier.state.drivers import DriverRegistry
from courier.state.orders import OrderRegistry
from courier.utils.logging import get_logger

logger = get_logger(__name__)


class DeliveryEarning(CamelModel):
    order_id: UUID
    delivery_fee: Decimal
    delivered_at: datetime | None = None


class EarningsSummary(CamelModel):
    driver_id: UUID
    total_deliveries: int
    total_earnings: Decimal
    today_earnings: Decimal
    history: list[DeliveryEarning] = Field(default_factory=list)


class DispatchService:
    """Order lifecycle as driven by drivers, announced on the realtime hub."""

    def __init__(
        self,
        orders: OrderRegistry,
        drivers: DriverRegistry,
        presence: PresenceHub | None = None,
    ):
        self.orders = orders
        self.drivers = drivers
        self.presence = presence

    async def _announce(self, order: Order) -> None:
        if self.presence is not None:
            await self.presence.broadcast_order_update(order.id, order.status)

    async def create_order(self, data: OrderCreate) -> Order:
        order = await self.orders.create_order(data)
        if self.presence is not None:
            await self.presence.emit(
                "orderReceived",
                order.model_dump(mode="json", by_alias=True),
                room=actor_room("restaurant", str(order.restaurant_id)),
            )
        return order

    async def accept(self, order_id: UUID, driver_id: UUID) -> Order:
        order, _ = await self.orders.accept(order_id, driver_id)
        await self._announce(order)
        return order

    async def advance_status(
        self, order_id: UUID, driver_id: UUID, status: OrderStatus | str
    ) -> Order:
        try:
            new_status = OrderStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid order status {status!r}") from None
        if new_status not in DRIVER_SETTABLE_STATUSES:
            raise ValidationError(
                f"Drivers cannot set status {new_status.value!r}",
                allowed=[s.value for s in DRIVER_SETTABLE_STATUSES],
            )

        order, _ = await self.orders.advance_status(order_id, driver_id, new_status)
        await self._announce(order)
        return order

    async def cancel(self, order_id: UUID, restaurant_id: UUID | None = None) -> Order:
        order = await self.orders.cancel(order_id, restaurant_id=restaurant_id)
        await self._announce(order)
        return order

    async def list_available(self) -> list[Order]:
        return await self.orders.list_by_status(OrderStatus.PENDING)

    async def list_for_driver(self, driver_id: UUID, active_only: bool = False) -> list[Order]:
        return await self.orders.list_for_driver(driver_id, active_only=active_only)

    async def get_earnings(self, driver_id: UUID) -> EarningsSummary:
        driver = await self.drivers.require_driver(driver_id)
        delivered = [
            o for o in await self.orders.list_for_driver(driver_id) if o.status == OrderStatus.DELIVERED
        ]
        delivered.sort(key=lambda o: o.delivered_at or o.created_at, reverse=True)
        return EarningsSummary(
            driver_id=driver.id,
            total_deliveries=driver.total_deliveries,
            total_earnings=driver.total_earnings,
            today_earnings=driver.today_earnings,
            history=[
                DeliveryEarning(
                    order_id=o.id, delivery_fee=o.delivery_fee, delivered_at=o.delivered_at
                )
                for o in delivered
            ],
        )
