"""Realtime presence hub: connection rooms, driver mapping and event relay."""

import asyncio
from collections import defaultdict
from typing import Any, Protocol
from uuid import UUID

from redis.exceptions import RedisError

from courier.errors import AuthorizationError, CourierError
from courier.models.base import Location
from courier.models.driver import Driver
from courier.models.events import OrderStatusPayload, RealtimeFrame
from courier.models.order import OrderStatus
from courier.state.drivers import DriverRegistry
from courier.utils.logging import get_logger
from courier.utils.security import Role

logger = get_logger(__name__)

ADMIN_ROOM = "role:admin"


class Connection(Protocol):
    """Anything that can push a JSON frame to a client (e.g. a WebSocket)."""

    async def send_json(self, data: Any) -> None: ...


def actor_room(role: str, actor_id: str) -> str:
    return f"{role}_{actor_id}"


def role_room(role: str) -> str:
    return f"role:{role}"


class PresenceHub:
    """Tracks live connections and which driver each one belongs to.

    All state is process-local and owned by the instance: it is created at
    application start and discarded at shutdown. A dropped connection forces
    its driver offline.
    """

    def __init__(self, drivers: DriverRegistry):
        self.drivers = drivers
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = defaultdict(set)
        self._memberships: dict[str, set[str]] = defaultdict(set)
        self._connection_to_driver: dict[str, UUID] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def driver_for(self, connection_id: str) -> UUID | None:
        return self._connection_to_driver.get(connection_id)

    def room_members(self, room: str) -> set[str]:
        return set(self._rooms.get(room, ()))

    def register(self, connection_id: str, connection: Connection) -> None:
        """Start tracking a newly opened connection."""
        self._connections[connection_id] = connection
        logger.debug("presence_connection_registered", connection_id=connection_id)

    def _subscribe(self, connection_id: str, room: str) -> None:
        self._rooms[room].add(connection_id)
        self._memberships[connection_id].add(room)

    async def join(self, connection_id: str, actor_id: str, role: Role) -> UUID | None:
        """Subscribe a connection to its actor and role rooms.

        Drivers are additionally resolved to their driver id and mapped, so a
        later disconnect can take them offline. Resolution failures are logged
        and leave the connection subscribed but unmapped.
        """
        self._subscribe(connection_id, actor_room(role, actor_id))
        self._subscribe(connection_id, role_room(role))

        driver_id: UUID | None = None
        if role == "driver":
            try:
                driver = await self.drivers.get_by_identity(actor_id)
            except (CourierError, RedisError, ValueError) as exc:
                logger.error(
                    "presence_driver_lookup_failed",
                    connection_id=connection_id,
                    actor_id=actor_id,
                    error=str(exc),
                )
                driver = None

            if driver is None:
                logger.warning(
                    "presence_driver_unresolved", connection_id=connection_id, actor_id=actor_id
                )
            else:
                driver_id = driver.id
                self._connection_to_driver[connection_id] = driver_id
                self._subscribe(connection_id, actor_room("driver", str(driver_id)))

        logger.info(
            "presence_joined",
            connection_id=connection_id,
            actor_id=actor_id,
            role=role,
            driver_id=str(driver_id) if driver_id else None,
        )
        return driver_id

    async def update_location(
        self, connection_id: str, driver_id: UUID, location: Location
    ) -> Driver:
        """Persist a driver's position and relay it to admin observers."""
        mapped = self._connection_to_driver.get(connection_id)
        if mapped is None:
            # Location arrived before join finished resolving the driver
            self._connection_to_driver[connection_id] = driver_id
            self._subscribe(connection_id, actor_room("driver", str(driver_id)))
            logger.info("presence_mapping_healed", connection_id=connection_id, driver_id=str(driver_id))
        elif mapped != driver_id:
            raise AuthorizationError("Connection is bound to another driver")

        driver = await self.drivers.set_location(driver_id, location.lng, location.lat)
        await self.emit(
            "driverLocationUpdate",
            {"driverId": str(driver_id), "location": location.model_dump(by_alias=True)},
            room=ADMIN_ROOM,
        )
        return driver

    async def order_status_update(self, event: OrderStatusPayload) -> None:
        """Relay an order status change to the involved parties and everyone else."""
        data = {"orderId": str(event.order_id), "status": event.status.value}
        if event.restaurant_id:
            await self.emit(
                "orderStatusChanged", data, room=actor_room("restaurant", str(event.restaurant_id))
            )
        if event.driver_id:
            await self.emit(
                "orderStatusChanged", data, room=actor_room("driver", str(event.driver_id))
            )
        await self.emit("orderUpdate", data)

    async def broadcast_order_update(self, order_id: UUID, status: OrderStatus) -> None:
        await self.emit("orderUpdate", {"orderId": str(order_id), "status": status.value})

    async def disconnect(self, connection_id: str) -> None:
        """Forget a connection and force its driver offline. Unknown ids are a no-op."""
        self._connections.pop(connection_id, None)
        for room in self._memberships.pop(connection_id, set()):
            members = self._rooms.get(room)
            if members is not None:
                members.discard(connection_id)
                if not members:
                    del self._rooms[room]

        driver_id = self._connection_to_driver.pop(connection_id, None)
        if driver_id is None:
            return

        try:
            await self.drivers.set_availability(driver_id, False)
        except (CourierError, RedisError) as exc:
            logger.error(
                "presence_offline_failed",
                connection_id=connection_id,
                driver_id=str(driver_id),
                error=str(exc),
            )
            return
        logger.info("presence_driver_offline", connection_id=connection_id, driver_id=str(driver_id))

    async def close(self) -> None:
        """Drop every connection, taking mapped drivers offline."""
        for connection_id in list(self._connections) + list(self._connection_to_driver):
            await self.disconnect(connection_id)
        self._rooms.clear()
        self._memberships.clear()
        logger.info("presence_hub_closed")

    async def emit(self, event: str, data: dict[str, Any], room: str | None = None) -> None:
        """Send a frame to a room, or to every connection when ``room`` is None."""
        targets = self._rooms.get(room, set()) if room else set(self._connections)
        frame = RealtimeFrame(event=event, data=data).model_dump()
        await asyncio.gather(*(self._send(cid, frame) for cid in list(targets)))

    async def _send(self, connection_id: str, frame: dict[str, Any]) -> None:
        connection = self._connections.get(connection_id)
        if connection is None:
            return
        try:
            await connection.send_json(frame)
        except Exception as exc:
            logger.warning(
                "presence_send_failed",
                connection_id=connection_id,
                frame_event=frame["event"],
                error=str(exc),
            )
