"""Seed demo drivers and pending orders."""

import asyncio
from decimal import Decimal
from uuid import uuid4

from courier.errors import ValidationError
from courier.models.base import Location
from courier.models.driver import DriverProfile, VehicleType, VerificationStatus
from courier.models.order import OrderCreate, OrderItem
from courier.state.drivers import DriverRegistry
from courier.state.identities import IdentityStore
from courier.state.manager import StateManager
from courier.state.orders import OrderRegistry


async def seed_drivers(identities: IdentityStore, drivers: DriverRegistry) -> None:
    """Seed a verified driver pool plus one awaiting review."""
    print("Seeding drivers...")

    profiles = [
        ("ravi@example.com", "Ravi Kumar", "+91 9000000001", VehicleType.BIKE, "MH01AB1234", "MH1420110012345", True),
        ("anita@example.com", "Anita Desai", "+91 9000000002", VehicleType.SCOOTER, "MH02CD5678", "MH1420120023456", True),
        ("arjun@example.com", "Arjun Mehta", "+91 9000000003", VehicleType.CAR, "KA05MN4321", "KA0520150034567", True),
        ("priya@example.com", "Priya Nair", "+91 9000000004", VehicleType.BICYCLE, "KL07X9876", "KL0720180045678", False),
    ]

    for email, name, phone, vehicle_type, vehicle_number, license_number, verified in profiles:
        try:
            identity = await identities.create_identity(email=email, name=name, phone=phone)
        except ValidationError:
            print(f"  - {email} already seeded")
            continue

        driver = await drivers.create_driver(
            identity.id,
            DriverProfile(
                name=name,
                phone=phone,
                vehicle_type=vehicle_type,
                vehicle_number=vehicle_number,
                license_number=license_number,
            ),
        )

        def _apply(d, verified=verified) -> None:
            d.verification_status = (
                VerificationStatus.VERIFIED if verified else VerificationStatus.PENDING_VERIFICATION
            )
            d.current_location = Location(lng=72.8777, lat=19.0760)

        await drivers.mutate(driver.id, _apply)
        print(f"  ✓ Added {name} ({vehicle_type.value}, verified: {verified})")

    print("✓ Drivers seeded successfully\n")


async def seed_orders(orders: OrderRegistry) -> None:
    """Seed pending orders from one demo restaurant."""
    print("Seeding orders...")

    restaurant_id = uuid4()
    samples = [
        ([OrderItem(name="Paneer Tikka", quantity=1, price=Decimal("249.00"))], Decimal("40.00")),
        ([OrderItem(name="Masala Dosa", quantity=2, price=Decimal("120.00"))], Decimal("30.00")),
        ([OrderItem(name="Veg Biryani", quantity=1, price=Decimal("199.00")),
          OrderItem(name="Raita", quantity=1, price=Decimal("49.00"))], Decimal("45.00")),
    ]

    for items, fee in samples:
        order = await orders.create_order(
            OrderCreate(
                restaurant_id=restaurant_id,
                customer_id=uuid4(),
                items=items,
                delivery_fee=fee,
                pickup_location=Location(lng=72.8347, lat=18.9220),
                dropoff_location=Location(lng=72.8258, lat=18.9750),
            )
        )
        print(f"  ✓ Added order {order.id} (total: {order.total_amount}, fee: {fee})")

    print(f"✓ Orders seeded for restaurant {restaurant_id}\n")


async def main() -> None:
    """Run all seed functions."""
    print("\n" + "=" * 50)
    print("  Seeding Courier Platform Data")
    print("=" * 50 + "\n")

    state_manager = StateManager()
    await state_manager.connect()
    identities = IdentityStore(state_manager)
    drivers = DriverRegistry(state_manager, identities)

    try:
        await seed_drivers(identities, drivers)
        await seed_orders(OrderRegistry(state_manager, drivers))
    finally:
        await state_manager.disconnect()

    print("=" * 50)
    print("  ✓ All data seeded successfully!")
    print("=" * 50 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
