"""Order registry and its guarded status transitions."""

from uuid import UUID

from redis.asyncio.client import Pipeline

from courier.errors import AuthorizationError, ConflictError, NotFoundError, StateError
from courier.models.base import utcnow
from courier.models.driver import Driver, DriverStatus
from courier.models.order import ACTIVE_STATUSES, Order, OrderCreate, OrderStatus
from courier.state.drivers import DriverRegistry, driver_key
from courier.state.manager import StateManager, dumps, loads
from courier.state.workflow import OrderTransitions
from courier.utils.logging import get_logger

logger = get_logger(__name__)

ALL_ORDERS_KEY = "orders"


def order_key(order_id: UUID) -> str:
    """Generate Redis key for an order document."""
    return f"order:{order_id}"


def _status_index_key(status: OrderStatus) -> str:
    return f"orders:status:{status.value}"


def _driver_index_key(driver_id: UUID) -> str:
    return f"orders:driver:{driver_id}"


def _release(driver: Driver) -> None:
    # A cancelled job puts the driver back in the pool if still verified
    driver.is_available = driver.is_verified
    driver.current_status = DriverStatus.IDLE


class OrderRegistry:
    """Holds orders and applies status transitions as compare-and-swap updates.

    ``accept`` and ``advance_status`` watch both the order and the driver
    document, so the order change and its driver cascade commit together or
    not at all.
    """

    def __init__(self, state_manager: StateManager, drivers: DriverRegistry):
        self.state = state_manager
        self.drivers = drivers

    async def _read(self, pipe: Pipeline, order_id: UUID) -> Order:
        data = loads(await pipe.get(order_key(order_id)))
        if data is None:
            raise NotFoundError("Order not found", order_id=str(order_id))
        return Order.model_validate(data)

    def _queue_save(self, pipe: Pipeline, order: Order, previous: OrderStatus) -> None:
        order.updated_at = utcnow()
        pipe.set(order_key(order.id), dumps(order.model_dump(mode="json")))
        if previous != order.status:
            pipe.srem(_status_index_key(previous), str(order.id))
            pipe.sadd(_status_index_key(order.status), str(order.id))

    async def _load_many(self, ids: set[str]) -> list[Order]:
        documents = await self.state.get_many([order_key(UUID(i)) for i in ids])
        orders = [Order.model_validate(doc) for doc in documents]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    async def create_order(self, data: OrderCreate) -> Order:
        """Store a new pending, unassigned order."""
        order = Order.from_create(data)

        async def _create(pipe: Pipeline) -> None:
            pipe.multi()
            pipe.set(order_key(order.id), dumps(order.model_dump(mode="json")))
            pipe.sadd(ALL_ORDERS_KEY, str(order.id))
            pipe.sadd(_status_index_key(order.status), str(order.id))

        await self.state.atomic(_create)

        logger.info(
            "order_created",
            order_id=str(order.id),
            restaurant_id=str(order.restaurant_id),
            total_amount=str(order.total_amount),
        )
        return order

    async def get_order(self, order_id: UUID) -> Order | None:
        data = await self.state.get(order_key(order_id))
        if not data:
            return None
        return Order.model_validate(data)

    async def require_order(self, order_id: UUID) -> Order:
        order = await self.get_order(order_id)
        if order is None:
            raise NotFoundError("Order not found", order_id=str(order_id))
        return order

    async def list_by_status(self, status: OrderStatus) -> list[Order]:
        return await self._load_many(await self.state.members(_status_index_key(status)))

    async def list_for_driver(self, driver_id: UUID, active_only: bool = False) -> list[Order]:
        orders = await self._load_many(await self.state.members(_driver_index_key(driver_id)))
        if active_only:
            orders = [o for o in orders if o.status in ACTIVE_STATUSES]
        return orders

    async def accept(self, order_id: UUID, driver_id: UUID) -> tuple[Order, Driver]:
        """Claim a pending order for a verified driver.

        Raises:
            AuthorizationError: the driver is not verified
            ConflictError: the order is no longer pending
        """

        async def _accept(pipe: Pipeline) -> tuple[Order, Driver]:
            order = await self._read(pipe, order_id)
            driver = await self.drivers.read(pipe, driver_id)

            if not driver.is_verified:
                raise AuthorizationError(
                    "Only verified drivers can accept orders", driver_id=str(driver_id)
                )
            if order.status != OrderStatus.PENDING or order.driver_id is not None:
                raise ConflictError(
                    "Order is no longer available",
                    order_id=str(order_id),
                    status=order.status.value,
                )

            previous = order.status
            order.driver_id = driver.id
            order.status = OrderStatus.ACCEPTED
            order.accepted_at = utcnow()
            driver.is_available = False
            driver.current_status = DriverStatus.ACTIVE

            pipe.multi()
            self._queue_save(pipe, order, previous)
            pipe.sadd(_driver_index_key(driver.id), str(order.id))
            self.drivers.queue_save(pipe, driver)
            return order, driver

        order, driver = await self.state.atomic(
            _accept, order_key(order_id), driver_key(driver_id)
        )
        logger.info("order_accepted", order_id=str(order_id), driver_id=str(driver_id))
        return order, driver

    async def advance_status(
        self, order_id: UUID, driver_id: UUID, new_status: OrderStatus
    ) -> tuple[Order, Driver]:
        """Move an accepted order along accepted -> pickedUp -> enRoute -> delivered.

        ``cancelled`` is reachable from any non-terminal state. Delivery
        credits the order's delivery fee to the driver in the same commit, so
        a duplicate request can never count it twice.
        """
        observed: OrderStatus | None = None

        async def _advance(pipe: Pipeline) -> tuple[Order, Driver]:
            nonlocal observed
            order = await self._read(pipe, order_id)

            if order.driver_id != driver_id:
                raise AuthorizationError(
                    "Only the assigned driver can update this order", order_id=str(order_id)
                )
            if observed is not None and order.status != observed:
                # Another request moved the order between our read and commit
                raise ConflictError(
                    "Order was updated concurrently",
                    order_id=str(order_id),
                    status=order.status.value,
                )
            observed = order.status

            if not OrderTransitions.can_transition(order.status, new_status):
                raise StateError(
                    f"Cannot move order from {order.status.value} to {new_status.value}",
                    order_id=str(order_id),
                )

            driver = await self.drivers.read(pipe, driver_id)
            previous = order.status
            order.status = new_status

            if new_status == OrderStatus.PICKED_UP:
                driver.current_status = DriverStatus.ON_TRIP
            elif new_status == OrderStatus.DELIVERED:
                order.delivered_at = utcnow()
                driver.record_delivery(order.delivery_fee)
                driver.is_available = True
                driver.current_status = DriverStatus.IDLE
            elif new_status == OrderStatus.CANCELLED:
                _release(driver)

            pipe.multi()
            self._queue_save(pipe, order, previous)
            self.drivers.queue_save(pipe, driver)
            return order, driver

        order, driver = await self.state.atomic(
            _advance, order_key(order_id), driver_key(driver_id)
        )
        logger.info(
            "order_status_advanced",
            order_id=str(order_id),
            driver_id=str(driver_id),
            status=new_status.value,
        )
        return order, driver

    async def cancel(self, order_id: UUID, restaurant_id: UUID | None = None) -> Order:
        """Cancel an order that has not been delivered yet.

        ``restaurant_id`` restricts the cancellation to that restaurant's own
        orders; ``None`` cancels on behalf of an admin. An assigned driver is
        released in the same commit.
        """
        observed: OrderStatus | None = None

        async def _cancel(pipe: Pipeline) -> Order:
            nonlocal observed
            order = await self._read(pipe, order_id)

            if restaurant_id is not None and order.restaurant_id != restaurant_id:
                raise AuthorizationError(
                    "Restaurants may only cancel their own orders", order_id=str(order_id)
                )
            if observed is not None and order.status != observed:
                raise ConflictError(
                    "Order was updated concurrently",
                    order_id=str(order_id),
                    status=order.status.value,
                )
            observed = order.status

            if not OrderTransitions.can_transition(order.status, OrderStatus.CANCELLED):
                raise StateError(
                    f"Cannot cancel a {order.status.value} order", order_id=str(order_id)
                )

            driver: Driver | None = None
            if order.driver_id is not None:
                await pipe.watch(driver_key(order.driver_id))
                driver = await self.drivers.read(pipe, order.driver_id)
                _release(driver)

            previous = order.status
            order.status = OrderStatus.CANCELLED

            pipe.multi()
            self._queue_save(pipe, order, previous)
            if driver is not None:
                self.drivers.queue_save(pipe, driver)
            return order

        order = await self.state.atomic(_cancel, order_key(order_id))
        logger.info(
            "order_cancelled",
            order_id=str(order_id),
            driver_id=str(order.driver_id) if order.driver_id else None,
        )
        return order
