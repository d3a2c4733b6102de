"""Tests for the driver registry."""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from courier.container import Container
from courier.errors import NotFoundError, StateError, ValidationError
from courier.models.driver import DriverStatus, VerificationStatus


@pytest.mark.asyncio
async def test_create_driver_initial_state(container: Container, sample_profile: dict) -> None:
    """A valid registration starts in pending_documents, offline."""
    identity = await container.identities.create_identity(email="ravi@courier.io", name="Ravi")

    driver = await container.drivers.create_driver(identity.id, sample_profile)

    assert driver.verification_status == VerificationStatus.PENDING_DOCUMENTS
    assert driver.is_available is False
    assert driver.current_status == DriverStatus.IDLE
    assert driver.current_location.coordinates == [0.0, 0.0]
    assert driver.vehicle_number == "MH01AB1234"

    stored = await container.drivers.get_by_identity(identity.id)
    assert stored is not None and stored.id == driver.id


@pytest.mark.asyncio
async def test_create_driver_rejects_bad_vehicle_number(
    container: Container, sample_profile: dict
) -> None:
    """A vehicle number of "123" is a validation error and stores nothing."""
    identity = await container.identities.create_identity(email="bad@courier.io", name="Bad")

    with pytest.raises(ValidationError) as exc_info:
        await container.drivers.create_driver(identity.id, {**sample_profile, "vehicleNumber": "123"})

    assert exc_info.value.details["errors"][0]["field"] == "vehicleNumber"
    assert await container.drivers.get_by_identity(identity.id) is None


@pytest.mark.asyncio
async def test_one_driver_per_identity(container: Container, sample_profile: dict) -> None:
    identity = await container.identities.create_identity(email="once@courier.io", name="Once")
    await container.drivers.create_driver(identity.id, sample_profile)

    with pytest.raises(ValidationError):
        await container.drivers.create_driver(identity.id, sample_profile)

    assert len(await container.drivers.list_drivers()) == 1


@pytest.mark.asyncio
async def test_concurrent_creates_for_one_identity(container: Container, sample_profile: dict) -> None:
    identity = await container.identities.create_identity(email="race@courier.io", name="Race")

    results = await asyncio.gather(
        *(container.drivers.create_driver(identity.id, sample_profile) for _ in range(4)),
        return_exceptions=True,
    )

    created = [r for r in results if not isinstance(r, Exception)]
    assert len(created) == 1
    assert all(isinstance(r, ValidationError) for r in results if isinstance(r, Exception))
    assert (await container.drivers.get_by_identity(identity.id)).id == created[0].id
    assert [d.id for d in await container.drivers.list_drivers()] == [created[0].id]


@pytest.mark.asyncio
async def test_update_profile(container: Container, make_driver) -> None:
    _, driver = await make_driver()

    updated = await container.drivers.update_profile(
        driver.id, {"name": "  New Name ", "vehicleNumber": "ka 05 mn 4321"}
    )

    assert updated.name == "New Name"
    assert updated.vehicle_number == "KA05MN4321"
    assert updated.verification_status == VerificationStatus.PENDING_DOCUMENTS

    with pytest.raises(ValidationError):
        await container.drivers.update_profile(driver.id, {"licenseNumber": "XX1"})

    stored = await container.drivers.require_driver(driver.id)
    assert stored.license_number == driver.license_number


@pytest.mark.asyncio
async def test_update_profile_ignores_operational_fields(container: Container, make_driver) -> None:
    _, driver = await make_driver()

    updated = await container.drivers.update_profile(
        driver.id, {"isAvailable": True, "verificationStatus": "verified", "phone": "+91 1"}
    )

    assert updated.phone == "+91 1"
    assert updated.is_available is False
    assert updated.verification_status == VerificationStatus.PENDING_DOCUMENTS


@pytest.mark.asyncio
async def test_set_location_in_any_state(container: Container, make_driver) -> None:
    _, driver = await make_driver()

    updated = await container.drivers.set_location(driver.id, 72.8777, 19.076)

    assert updated.current_location.coordinates == [72.8777, 19.076]


@pytest.mark.asyncio
async def test_set_availability_requires_verification(container: Container, make_driver) -> None:
    _, pending = await make_driver(status=VerificationStatus.PENDING_VERIFICATION)
    _, verified = await make_driver(status=VerificationStatus.VERIFIED)

    with pytest.raises(StateError):
        await container.drivers.set_availability(pending.id, True)
    assert await container.drivers.set_availability(pending.id, False) is False

    assert await container.drivers.set_availability(verified.id, True) is True
    assert (await container.drivers.require_driver(verified.id)).is_available is True


@pytest.mark.asyncio
async def test_record_delivery_completion(container: Container, make_driver) -> None:
    _, driver = await make_driver(status=VerificationStatus.VERIFIED)

    await container.drivers.record_delivery_completion(driver.id, Decimal("40.00"))
    updated = await container.drivers.record_delivery_completion(driver.id, Decimal("2.50"))

    assert updated.total_deliveries == 2
    assert updated.total_earnings == Decimal("42.50")
    assert updated.today_earnings == Decimal("42.50")


@pytest.mark.asyncio
async def test_reset_today_earnings(container: Container, make_driver) -> None:
    _, first = await make_driver()
    _, second = await make_driver()
    await container.drivers.record_delivery_completion(first.id, Decimal("10.00"))

    assert await container.drivers.reset_today_earnings() == 2

    driver = await container.drivers.require_driver(first.id)
    assert driver.today_earnings == Decimal("0.00")
    assert driver.total_earnings == Decimal("10.00")


@pytest.mark.asyncio
async def test_delete_driver_cascades_to_identity(container: Container, make_driver) -> None:
    identity, driver = await make_driver()

    await container.drivers.delete_driver(driver.id)

    assert await container.drivers.get_driver(driver.id) is None
    assert await container.drivers.get_by_identity(identity.id) is None
    assert await container.identities.get_identity(identity.id) is None
    assert await container.drivers.list_drivers() == []
    # The email can be registered again
    assert not await container.identities.email_registered(identity.email)


@pytest.mark.asyncio
async def test_unknown_driver_is_not_found(container: Container) -> None:
    with pytest.raises(NotFoundError):
        await container.drivers.set_location(uuid4(), 1.0, 2.0)
    with pytest.raises(NotFoundError):
        await container.drivers.delete_driver(uuid4())


@pytest.mark.asyncio
async def test_list_drivers_by_verification_status(container: Container, make_driver) -> None:
    _, pending = await make_driver()
    _, verified = await make_driver(status=VerificationStatus.VERIFIED)

    listed = await container.drivers.list_drivers(VerificationStatus.VERIFIED)

    assert [d.id for d in listed] == [verified.id]
    assert {d.id for d in await container.drivers.list_drivers()} == {pending.id, verified.id}
