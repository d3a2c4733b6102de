"""Driver registry: profiles, operational flags and earnings counters."""

from decimal import Decimal
from typing import Any, Callable
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from redis.asyncio.client import Pipeline

from courier.errors import NotFoundError, StateError, ValidationError
from courier.models.base import Location, utcnow
from courier.models.driver import (
    Driver,
    DriverProfile,
    DriverProfileUpdate,
    VerificationStatus,
)
from courier.state.identities import IdentityStore
from courier.state.manager import StateManager, dumps, loads
from courier.utils.logging import get_logger

logger = get_logger(__name__)

ALL_DRIVERS_KEY = "drivers"


def driver_key(driver_id: UUID) -> str:
    """Generate Redis key for a driver document."""
    return f"driver:{driver_id}"


def _identity_index_key(identity_id: UUID) -> str:
    return f"driver:identity:{identity_id}"


def _verification_index_key(status: VerificationStatus) -> str:
    return f"drivers:verification:{status.value}"


class DriverRegistry:
    """Single source of truth for driver profiles and operational state.

    Every mutation runs as a single-document optimistic transaction: the
    driver key is watched, re-read, changed in memory and written back in
    ``MULTI``/``EXEC``. The ``read``/``queue_save`` pair lets the order
    registry fold driver changes into its own transactions.
    """

    def __init__(self, state_manager: StateManager, identities: IdentityStore | None = None):
        self.state = state_manager
        self.identities = identities or IdentityStore(state_manager)

    # Transaction building blocks

    async def read(self, pipe: Pipeline, driver_id: UUID) -> Driver:
        """Read a driver through a watching pipeline."""
        data = loads(await pipe.get(driver_key(driver_id)))
        if data is None:
            raise NotFoundError("Driver not found", driver_id=str(driver_id))
        return Driver.model_validate(data)

    def queue_save(
        self,
        pipe: Pipeline,
        driver: Driver,
        previous_status: VerificationStatus | None = None,
    ) -> None:
        """Queue the write of ``driver`` (and its index moves) after ``pipe.multi()``."""
        driver.updated_at = utcnow()
        pipe.set(driver_key(driver.id), dumps(driver.model_dump(mode="json")))
        if previous_status is not None and previous_status != driver.verification_status:
            pipe.srem(_verification_index_key(previous_status), str(driver.id))
            pipe.sadd(_verification_index_key(driver.verification_status), str(driver.id))

    async def mutate(self, driver_id: UUID, apply: Callable[[Driver], None]) -> Driver:
        """Apply ``apply`` to the stored driver atomically and return the result.

        ``apply`` may raise a domain error to abort without writing.
        """

        async def _update(pipe: Pipeline) -> Driver:
            driver = await self.read(pipe, driver_id)
            previous = driver.verification_status
            apply(driver)
            pipe.multi()
            self.queue_save(pipe, driver, previous)
            return driver

        return await self.state.atomic(_update, driver_key(driver_id))

    # Queries

    async def get_driver(self, driver_id: UUID) -> Driver | None:
        data = await self.state.get(driver_key(driver_id))
        if not data:
            return None
        return Driver.model_validate(data)

    async def require_driver(self, driver_id: UUID) -> Driver:
        driver = await self.get_driver(driver_id)
        if driver is None:
            raise NotFoundError("Driver not found", driver_id=str(driver_id))
        return driver

    async def get_by_identity(self, identity_id: UUID | str) -> Driver | None:
        """Resolve the driver owned by an identity."""
        driver_id = await self.state.get(_identity_index_key(identity_id))
        if not driver_id:
            return None
        return await self.get_driver(UUID(driver_id))

    async def list_drivers(self, status: VerificationStatus | None = None) -> list[Driver]:
        """List drivers, optionally filtered by verification status, newest first."""
        index = _verification_index_key(status) if status else ALL_DRIVERS_KEY
        ids = await self.state.members(index)
        documents = await self.state.get_many([driver_key(UUID(i)) for i in ids])
        drivers = [Driver.model_validate(doc) for doc in documents]
        return sorted(drivers, key=lambda d: d.created_at, reverse=True)

    # Mutations

    async def create_driver(
        self, identity_id: UUID, profile: DriverProfile | dict[str, Any]
    ) -> Driver:
        """Create the driver owned by ``identity_id`` in ``pending_documents``."""
        if not isinstance(profile, DriverProfile):
            try:
                profile = DriverProfile.model_validate(profile)
            except PydanticValidationError as exc:
                raise ValidationError.from_errors("Invalid driver profile", exc.errors()) from exc

        driver = Driver(identity_id=identity_id, **profile.model_dump())
        index_key = _identity_index_key(identity_id)

        async def _create(pipe: Pipeline) -> None:
            if await pipe.exists(index_key):
                raise ValidationError(
                    "Identity already has a driver profile", identity_id=str(identity_id)
                )
            pipe.multi()
            pipe.set(index_key, dumps(str(driver.id)))
            pipe.set(driver_key(driver.id), dumps(driver.model_dump(mode="json")))
            pipe.sadd(ALL_DRIVERS_KEY, str(driver.id))
            pipe.sadd(_verification_index_key(driver.verification_status), str(driver.id))

        await self.state.atomic(_create, index_key)

        logger.info(
            "driver_created",
            driver_id=str(driver.id),
            identity_id=str(identity_id),
            vehicle_type=driver.vehicle_type.value,
        )
        return driver

    async def update_profile(
        self, driver_id: UUID, fields: DriverProfileUpdate | dict[str, Any]
    ) -> Driver:
        """Update profile fields; regulated numbers are re-validated first."""
        if not isinstance(fields, DriverProfileUpdate):
            try:
                fields = DriverProfileUpdate.model_validate(fields)
            except PydanticValidationError as exc:
                raise ValidationError.from_errors("Invalid profile update", exc.errors()) from exc

        changes = fields.model_dump(exclude_unset=True, exclude_none=True)
        for name in ("name", "phone"):
            if name in changes:
                changes[name] = changes[name].strip()
                if not changes[name]:
                    raise ValidationError(f"{name} must not be blank")

        def _apply(driver: Driver) -> None:
            for name, value in changes.items():
                setattr(driver, name, value)

        driver = await self.mutate(driver_id, _apply)
        logger.info("driver_profile_updated", driver_id=str(driver_id), fields=sorted(changes))
        return driver

    async def set_location(self, driver_id: UUID, lng: float, lat: float) -> Driver:
        """Overwrite the driver's current location. Last write wins."""
        location = Location(lng=lng, lat=lat)

        def _apply(driver: Driver) -> None:
            driver.current_location = location

        driver = await self.mutate(driver_id, _apply)
        logger.debug("driver_location_set", driver_id=str(driver_id), lng=lng, lat=lat)
        return driver

    async def set_availability(self, driver_id: UUID, is_available: bool) -> bool:
        """Toggle availability. Only verified drivers may go available."""

        def _apply(driver: Driver) -> None:
            if is_available and not driver.is_verified:
                raise StateError(
                    "Only verified drivers can go online",
                    verification_status=driver.verification_status.value,
                )
            driver.is_available = is_available

        driver = await self.mutate(driver_id, _apply)
        logger.info(
            "driver_availability_set",
            driver_id=str(driver_id),
            is_available=driver.is_available,
        )
        return driver.is_available

    async def record_delivery_completion(self, driver_id: UUID, amount: Decimal) -> Driver:
        """Atomically count one delivery and add ``amount`` to both earnings totals."""

        def _apply(driver: Driver) -> None:
            driver.record_delivery(amount)

        driver = await self.mutate(driver_id, _apply)
        logger.info(
            "delivery_recorded",
            driver_id=str(driver_id),
            amount=str(amount),
            total_deliveries=driver.total_deliveries,
        )
        return driver

    async def reset_today_earnings(self) -> int:
        """Zero ``today_earnings`` for every driver. Returns the number touched."""

        def _apply(driver: Driver) -> None:
            driver.today_earnings = Decimal("0.00")

        count = 0
        for driver_id in await self.state.members(ALL_DRIVERS_KEY):
            try:
                await self.mutate(UUID(driver_id), _apply)
            except NotFoundError:
                logger.warning("driver_index_stale", driver_id=driver_id)
                continue
            count += 1

        logger.info("today_earnings_reset", drivers=count)
        return count

    async def delete_driver(self, driver_id: UUID) -> Driver:
        """Delete a driver and cascade to its owning identity."""

        async def _delete(pipe: Pipeline) -> Driver:
            driver = await self.read(pipe, driver_id)
            pipe.multi()
            pipe.delete(driver_key(driver_id), _identity_index_key(driver.identity_id))
            pipe.srem(ALL_DRIVERS_KEY, str(driver_id))
            pipe.srem(_verification_index_key(driver.verification_status), str(driver_id))
            return driver

        driver = await self.state.atomic(_delete, driver_key(driver_id))
        await self.identities.delete_identity(driver.identity_id)

        logger.info(
            "driver_deleted", driver_id=str(driver_id), identity_id=str(driver.identity_id)
        )
        return driver
